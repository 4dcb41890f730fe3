"""
Metrics Collector - Ingest Service

Validates inbound metric updates and applies them to the configured store.
"""

import math
from typing import List, Optional

import structlog

from metrics_common.errors import BatchApplyError, MetricValidationError, StorageError
from metrics_common.models import INT64_MAX, INT64_MIN, Metric, MetricKind

from ..config import BatchApplyPolicy
from ..storage import MetricStore

logger = structlog.get_logger(__name__)


def validate_metric(metric: Metric) -> MetricKind:
    """Check a single update payload and return its kind.

    A gauge carries exactly ``value``, a counter exactly ``delta``.
    """
    if not metric.id:
        raise MetricValidationError("Missing metric ID")

    kind = metric.kind
    if kind == MetricKind.GAUGE:
        if metric.value is None:
            raise MetricValidationError(f"Missing 'value' for gauge metric {metric.id}")
        if metric.delta is not None:
            raise MetricValidationError(f"Unexpected 'delta' for gauge metric {metric.id}")
        if not math.isfinite(metric.value):
            raise MetricValidationError(f"Non-finite 'value' for gauge metric {metric.id}")
    elif kind == MetricKind.COUNTER:
        if metric.delta is None:
            raise MetricValidationError(f"Missing 'delta' for counter metric {metric.id}")
        if metric.value is not None:
            raise MetricValidationError(f"Unexpected 'value' for counter metric {metric.id}")
        if not INT64_MIN <= metric.delta <= INT64_MAX:
            raise MetricValidationError(f"'delta' out of int64 range for counter metric {metric.id}")
    else:
        raise MetricValidationError(f"Unknown metric type '{metric.type}' for {metric.id}")

    return kind


def validate_batch(batch: List[Metric]) -> None:
    """Validate every element before anything is applied."""
    if not batch:
        raise MetricValidationError("Empty batch not allowed")
    for metric in batch:
        validate_metric(metric)


class MetricIngestor:
    """Applies validated updates to a metric store."""

    def __init__(self, store: MetricStore, policy: BatchApplyPolicy = BatchApplyPolicy.CONTINUE):
        self.store = store
        self.policy = policy

    async def apply(self, metric: Metric) -> Metric:
        """Validate and apply one update; return the stored state."""
        kind = validate_metric(metric)
        await self._apply(kind, metric)

        if kind == MetricKind.GAUGE:
            return Metric.gauge(metric.id, metric.value)
        current = await self.store.get_counter(metric.id)
        return Metric.counter(metric.id, current if current is not None else metric.delta)

    async def apply_batch(self, batch: List[Metric]) -> List[Metric]:
        """Validate a whole batch, then apply it under the configured policy.

        Validation is all-or-nothing. Persistence failures either stop the
        batch (ABORT) or are collected while the rest is applied (CONTINUE);
        both end in BatchApplyError.
        """
        validate_batch(batch)

        applied = 0
        failed = 0
        first_error: Optional[StorageError] = None

        for metric in batch:
            try:
                await self._apply(metric.kind, metric)
                applied += 1
            except StorageError as e:
                failed += 1
                if first_error is None:
                    first_error = e
                if self.policy == BatchApplyPolicy.ABORT:
                    break

        if first_error is not None:
            logger.error(
                "Batch apply failed",
                policy=self.policy.value,
                applied=applied,
                failed=failed,
                size=len(batch),
                error=str(first_error),
            )
            raise BatchApplyError(failed=failed, applied=applied, first_error=first_error)

        logger.debug("Batch applied", size=len(batch))
        return batch

    async def read(self, name: str, kind: Optional[MetricKind]) -> Optional[Metric]:
        """Current state of one metric, or None if absent."""
        if kind == MetricKind.GAUGE:
            value = await self.store.get_gauge(name)
            return Metric.gauge(name, value) if value is not None else None
        if kind == MetricKind.COUNTER:
            delta = await self.store.get_counter(name)
            return Metric.counter(name, delta) if delta is not None else None
        raise MetricValidationError(f"Unknown metric type for {name}")

    async def _apply(self, kind: MetricKind, metric: Metric) -> None:
        if kind == MetricKind.GAUGE:
            await self.store.update_gauge(metric.id, metric.value)
        else:
            await self.store.update_counter(metric.id, metric.delta)
