"""
Metrics Agent - Reporter

Delivers the telemetry registry to the collector on the report interval:
one batch per tick, falling back to per-metric sends when the batch fails.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

import httpx
import structlog

from metrics_common.backoff import NETWORK_RETRY_DELAYS, BackoffExecutor
from metrics_common.errors import CollectorResponseError, HTTPErrorClassifier, RetryExhaustedError
from metrics_common.models import Metric

from ..config import AgentSettings, BatchFallbackPolicy, ReportProtocol
from ..telemetry import TelemetryCollector
from .client import CollectorClient

logger = structlog.get_logger(__name__)

# What a failed send can raise once the retry schedule has run its course
SEND_ERRORS = (RetryExhaustedError, CollectorResponseError, httpx.HTTPError)


class Reporter:
    """Periodically sends collected metrics to the collector."""

    def __init__(
        self,
        collector: TelemetryCollector,
        client: CollectorClient,
        settings: AgentSettings,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.collector = collector
        self.client = client
        self.interval = settings.report_interval
        self.protocol = settings.protocol
        self.fallback = settings.batch_fallback

        self._executor = BackoffExecutor(
            NETWORK_RETRY_DELAYS,
            HTTPErrorClassifier(),
            sleep=sleep,
            name="report",
        )

        # Set once the batch endpoint fails under the sticky policy
        self.degraded = False

        self._running = False
        self._report_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the report loop."""
        if self._running:
            return

        self._running = True
        self._report_task = asyncio.create_task(self._report_loop())

        logger.info(
            "Reporter started",
            interval=self.interval,
            protocol=self.protocol.value,
            fallback=self.fallback.value,
        )

    async def stop(self) -> None:
        """Stop the report loop."""
        self._running = False

        if self._report_task:
            self._report_task.cancel()
            try:
                await self._report_task
            except asyncio.CancelledError:
                pass
            self._report_task = None

        logger.info("Reporter stopped")

    async def _report_loop(self) -> None:
        """Report loop - runs every ``interval`` seconds."""
        while self._running:
            await asyncio.sleep(self.interval)

            try:
                await self.report_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Report error", error=str(e))

    async def report_once(self) -> int:
        """Run one report tick. Returns the number of records delivered."""
        metrics = await self.collector.snapshot()
        if not metrics:
            logger.debug("Nothing to report")
            return 0

        if self.protocol == ReportProtocol.PLAIN:
            return await self._send_each(metrics, self.client.send_plain)

        if self.fallback == BatchFallbackPolicy.STICKY and self.degraded:
            return await self._send_each(metrics, self.client.send_metric)

        try:
            await self._executor.run(lambda: self.client.send_batch(metrics))
        except SEND_ERRORS as e:
            logger.warning("Batch send failed, falling back to single updates", size=len(metrics), error=str(e))
            if self.fallback == BatchFallbackPolicy.STICKY:
                self.degraded = True
            return await self._send_each(metrics, self.client.send_metric)

        for metric in metrics:
            await self.collector.acknowledge(metric)

        logger.debug("Batch delivered", size=len(metrics))
        return len(metrics)

    async def _send_each(
        self,
        metrics: List[Metric],
        send: Callable[[Metric], Awaitable[None]],
    ) -> int:
        """Send records one by one; a failed record is dropped for this tick."""
        delivered = 0

        for metric in metrics:
            try:
                await self._executor.run(lambda: send(metric))
            except SEND_ERRORS as e:
                logger.error("Metric send failed", metric=metric.id, type=metric.type, error=str(e))
                continue

            await self.collector.acknowledge(metric)
            delivered += 1

        logger.debug("Single updates delivered", delivered=delivered, size=len(metrics))
        return delivered
