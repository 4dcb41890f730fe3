"""
Metrics Agent - Telemetry Collector

Samples process, interpreter and host metrics at the poll interval and keeps
them in an in-memory registry until the reporter delivers them.
"""

import asyncio
import gc
import random
import time
from typing import Dict, List, Optional

import psutil
import structlog

from metrics_common.models import Metric

logger = structlog.get_logger(__name__)

POLL_COUNT = "PollCount"


class TelemetryCollector:
    """Collects runtime telemetry into a gauge/counter registry.

    Gauges hold the latest sample. Counters hold the delta accumulated since
    the last acknowledged delivery.
    """

    def __init__(self, poll_interval: float = 2):
        self._interval = poll_interval
        self._process = psutil.Process()

        self._gauges: Dict[str, float] = {}
        self._counters: Dict[str, int] = {}
        self._lock = asyncio.Lock()

        self._running = False
        self._collection_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the poll loop."""
        if self._running:
            return

        # First cpu_percent() call only primes psutil's counters
        self._process.cpu_percent(interval=None)
        psutil.cpu_percent(interval=None, percpu=True)

        self._running = True
        self._collection_task = asyncio.create_task(self._collection_loop())

        logger.info("Telemetry collector started", interval=self._interval)

    async def stop(self) -> None:
        """Stop the poll loop."""
        self._running = False

        if self._collection_task:
            self._collection_task.cancel()
            try:
                await self._collection_task
            except asyncio.CancelledError:
                pass
            self._collection_task = None

        logger.info("Telemetry collector stopped")

    async def _collection_loop(self) -> None:
        """Main collection loop."""
        while self._running:
            start_time = time.monotonic()
            try:
                await self.poll()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Collection error", error=str(e))

            elapsed = time.monotonic() - start_time
            await asyncio.sleep(max(0, self._interval - elapsed))

    async def poll(self) -> None:
        """Take one sample and fold it into the registry."""
        gauges = self.sample()

        async with self._lock:
            self._gauges.update(gauges)
            self._counters[POLL_COUNT] = self._counters.get(POLL_COUNT, 0) + 1

        logger.debug("Telemetry sampled", gauges=len(gauges))

    def sample(self) -> Dict[str, float]:
        """Read every gauge once."""
        gauges: Dict[str, float] = {}

        # Process
        with self._process.oneshot():
            mem = self._process.memory_info()
            gauges["ProcessRSS"] = float(mem.rss)
            gauges["ProcessVMS"] = float(mem.vms)
            gauges["ProcessCPUPercent"] = float(self._process.cpu_percent(interval=None))
            gauges["ProcessThreads"] = float(self._process.num_threads())
            try:
                gauges["ProcessOpenFiles"] = float(len(self._process.open_files()))
            except (psutil.AccessDenied, NotImplementedError):
                pass

        # Interpreter garbage collector
        gen0, gen1, gen2 = gc.get_count()
        gauges["GCGen0Count"] = float(gen0)
        gauges["GCGen1Count"] = float(gen1)
        gauges["GCGen2Count"] = float(gen2)

        stats = gc.get_stats()
        gauges["GCCollections"] = float(sum(s["collections"] for s in stats))
        gauges["GCCollected"] = float(sum(s["collected"] for s in stats))
        gauges["GCUncollectable"] = float(sum(s["uncollectable"] for s in stats))

        # Host
        vmem = psutil.virtual_memory()
        gauges["TotalMemory"] = float(vmem.total)
        gauges["FreeMemory"] = float(vmem.available)

        for i, pct in enumerate(psutil.cpu_percent(interval=None, percpu=True), start=1):
            gauges[f"CPUutilization{i}"] = float(pct)

        gauges["RandomValue"] = random.random()

        return gauges

    async def snapshot(self) -> List[Metric]:
        """Registry contents as records: gauges, then counters with a pending delta."""
        async with self._lock:
            metrics = [Metric.gauge(name, value) for name, value in sorted(self._gauges.items())]
            metrics.extend(
                Metric.counter(name, delta)
                for name, delta in sorted(self._counters.items())
                if delta
            )
        return metrics

    async def acknowledge(self, metric: Metric) -> None:
        """Mark a delivered record; a counter's delivered delta is no longer pending."""
        if metric.delta is None:
            return

        async with self._lock:
            self._counters[metric.id] = self._counters.get(metric.id, 0) - metric.delta

    async def get_counter(self, name: str) -> int:
        """Pending delta of a counter (0 if nothing is pending)."""
        async with self._lock:
            return self._counters.get(name, 0)
