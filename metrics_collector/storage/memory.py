"""
Metrics Collector - Memory Store

In-process dicts guarded by a readers-writer lock. No durability; also the
mirror underneath the file backend.
"""

from typing import Dict, List, Optional

from metrics_common.models import Metric, MetricKind

from .base import BackendKind, MetricStore, checked_counter
from .locks import RWLock


class MemoryMetricStore(MetricStore):
    """Metric store held entirely in memory."""

    def __init__(self):
        self._gauges: Dict[str, float] = {}
        self._counters: Dict[str, int] = {}
        self._lock = RWLock()

    @property
    def kind(self) -> BackendKind:
        return BackendKind.MEMORY

    async def update_gauge(self, name: str, value: float) -> None:
        async with self._lock.write():
            self._gauges[name] = value

    async def update_counter(self, name: str, delta: int) -> None:
        async with self._lock.write():
            self._counters[name] = checked_counter(name, self._counters.get(name, 0) + delta)

    async def set_counter(self, name: str, value: int) -> None:
        async with self._lock.write():
            self._counters[name] = checked_counter(name, value)

    async def get_gauge(self, name: str) -> Optional[float]:
        async with self._lock.read():
            return self._gauges.get(name)

    async def get_counter(self, name: str) -> Optional[int]:
        async with self._lock.read():
            return self._counters.get(name)

    async def get_all(self) -> List[Metric]:
        async with self._lock.read():
            return self._snapshot()

    def _snapshot(self) -> List[Metric]:
        """Build a snapshot. Caller must hold the lock."""
        metrics = [Metric.gauge(name, value) for name, value in sorted(self._gauges.items())]
        metrics.extend(
            Metric.counter(name, value) for name, value in sorted(self._counters.items())
        )
        return metrics

    def _restore(self, metrics: List[Metric]) -> None:
        """Merge snapshot records into the mirror. Caller must hold the lock."""
        for m in metrics:
            if m.kind == MetricKind.GAUGE and m.value is not None:
                self._gauges[m.id] = m.value
            elif m.kind == MetricKind.COUNTER and m.delta is not None:
                self._counters[m.id] = m.delta
