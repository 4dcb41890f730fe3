"""
Metrics Relay - Wire Model

The single JSON record shared by the HTTP protocol and the file backend.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, TypeAdapter


# Counter accumulators and deltas are signed 64-bit
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class MetricKind(str, Enum):
    """Metric kind, which decides how an update is applied."""
    GAUGE = "gauge"        # Last write wins
    COUNTER = "counter"    # Deltas accumulate


class Metric(BaseModel):
    """A metric record: {id, type, value?, delta?}.

    ``type`` is kept as a plain string so that an unknown kind survives
    parsing and is rejected by validation with a proper message.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    delta: Optional[int] = None
    value: Optional[float] = None

    @classmethod
    def gauge(cls, name: str, value: float) -> "Metric":
        return cls(id=name, type=MetricKind.GAUGE.value, value=value)

    @classmethod
    def counter(cls, name: str, delta: int) -> "Metric":
        return cls(id=name, type=MetricKind.COUNTER.value, delta=delta)

    @property
    def kind(self) -> Optional[MetricKind]:
        """The parsed kind, or None if the type is unknown."""
        try:
            return MetricKind(self.type)
        except ValueError:
            return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, omitting absent fields."""
        return self.model_dump(exclude_none=True)


MetricList = TypeAdapter(List[Metric])


def dump_metrics(metrics: List[Metric], indent: Optional[int] = None) -> bytes:
    """Serialize a list of metrics to a JSON array."""
    return MetricList.dump_json(metrics, exclude_none=True, indent=indent)


def load_metrics(data: bytes) -> List[Metric]:
    """Parse a JSON array of metrics. Raises pydantic.ValidationError."""
    return MetricList.validate_json(data)
