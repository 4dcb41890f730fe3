"""
Metrics Collector - Base Store Interface

Every storage backend implements this contract so the HTTP layer and the
ingest service never need to know which one is configured.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

from metrics_common.errors import BackendNotSupportedError, CounterOverflowError
from metrics_common.models import INT64_MAX, INT64_MIN, Metric


class BackendKind(str, Enum):
    """Storage backend selected at startup."""
    MEMORY = "memory"
    FILE = "file"
    RELATIONAL = "relational"


def checked_counter(name: str, value: int) -> int:
    """Return ``value`` if it fits a counter accumulator, else raise."""
    if not INT64_MIN <= value <= INT64_MAX:
        raise CounterOverflowError(f"counter {name} would leave the int64 range")
    return value


class MetricStore(ABC):
    """Base class for all metric stores.

    Mutations and reads are atomic with respect to each other: a reader
    never observes a half-applied update.
    """

    @property
    @abstractmethod
    def kind(self) -> BackendKind:
        """Backend kind (memory, file, relational)."""
        pass

    @abstractmethod
    async def update_gauge(self, name: str, value: float) -> None:
        """Overwrite a gauge."""
        pass

    @abstractmethod
    async def update_counter(self, name: str, delta: int) -> None:
        """Add ``delta`` to a counter."""
        pass

    @abstractmethod
    async def set_counter(self, name: str, value: int) -> None:
        """Replace a counter's accumulator outright."""
        pass

    @abstractmethod
    async def get_gauge(self, name: str) -> Optional[float]:
        """Current gauge value, or None if absent."""
        pass

    @abstractmethod
    async def get_counter(self, name: str) -> Optional[int]:
        """Current counter accumulator, or None if absent."""
        pass

    @abstractmethod
    async def get_all(self) -> List[Metric]:
        """Consistent snapshot of every metric."""
        pass

    async def save(self) -> None:
        """Persist the full state. Override in durable backends."""
        return None

    async def ping(self) -> None:
        """Check backend health. Only database backends support this."""
        raise BackendNotSupportedError(f"{self.kind.value} backend has no database to ping")

    async def close(self) -> None:
        """Release backend resources. Override in subclass if needed."""
        return None
