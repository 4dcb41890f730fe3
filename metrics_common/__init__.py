"""
Metrics Relay - Shared Package

Wire model, retry machinery and payload integrity used by both the agent
and the collector.
"""

from .backoff import BackoffExecutor, NETWORK_RETRY_DELAYS, STORAGE_RETRY_DELAYS
from .errors import (
    BackendNotSupportedError,
    BatchApplyError,
    CollectorResponseError,
    CounterOverflowError,
    ErrorClass,
    ErrorClassifier,
    HTTPErrorClassifier,
    MetricValidationError,
    RetryExhaustedError,
    SQLiteErrorClassifier,
    StorageError,
)
from .integrity import HASH_HEADER, IntegrityGuard
from .models import Metric, MetricKind

__all__ = [
    "BackoffExecutor",
    "NETWORK_RETRY_DELAYS",
    "STORAGE_RETRY_DELAYS",
    "BackendNotSupportedError",
    "BatchApplyError",
    "CollectorResponseError",
    "CounterOverflowError",
    "ErrorClass",
    "ErrorClassifier",
    "HTTPErrorClassifier",
    "MetricValidationError",
    "RetryExhaustedError",
    "SQLiteErrorClassifier",
    "StorageError",
    "HASH_HEADER",
    "IntegrityGuard",
    "Metric",
    "MetricKind",
]
