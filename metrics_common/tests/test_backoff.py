"""
Metrics Relay - Backoff Executor Tests
"""

import pytest

from metrics_common.backoff import NETWORK_RETRY_DELAYS, BackoffExecutor
from metrics_common.errors import (
    CollectorResponseError,
    ErrorClass,
    ErrorClassifier,
    HTTPErrorClassifier,
    RetryExhaustedError,
)


class RecordingSleep:
    """Stands in for asyncio.sleep and records every requested pause."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class FlakyOperation:
    """Fails with the given errors in order, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestBackoffExecutor:
    """Test the fixed-schedule retry executor."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self):
        """No retries and no sleeping when the first attempt succeeds."""
        sleep = RecordingSleep()
        executor = BackoffExecutor(NETWORK_RETRY_DELAYS, HTTPErrorClassifier(), sleep=sleep)
        operation = FlakyOperation([])

        assert await executor.run(operation) == "ok"
        assert operation.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_retriable_failure_exhausts_schedule(self):
        """A permanently retriable failure makes exactly four attempts."""
        sleep = RecordingSleep()
        executor = BackoffExecutor([0, 1, 3, 5], HTTPErrorClassifier(), sleep=sleep)
        operation = FlakyOperation([CollectorResponseError(503)] * 10)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await executor.run(operation)

        assert operation.calls == 4
        assert sleep.delays == [1, 3, 5]
        assert exc_info.value.attempts == 4
        assert isinstance(exc_info.value.last_error, CollectorResponseError)
        assert "failed after 4 attempts" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_fatal_failure_stops_immediately(self):
        """A fatal error is re-raised after a single attempt."""
        sleep = RecordingSleep()
        executor = BackoffExecutor([0, 1, 3, 5], HTTPErrorClassifier(), sleep=sleep)
        operation = FlakyOperation([CollectorResponseError(400, "bad request")])

        with pytest.raises(CollectorResponseError):
            await executor.run(operation)

        assert operation.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self):
        """Succeeds on the third attempt after two retriable failures."""
        sleep = RecordingSleep()
        executor = BackoffExecutor([0, 1, 3, 5], HTTPErrorClassifier(), sleep=sleep)
        operation = FlakyOperation([CollectorResponseError(502), CollectorResponseError(500)], result=42)

        assert await executor.run(operation) == 42
        assert operation.calls == 3
        assert sleep.delays == [1, 3]

    @pytest.mark.asyncio
    async def test_custom_classifier(self):
        """The classifier alone decides what is retried."""

        class EverythingRetriable(ErrorClassifier):
            def classify(self, error):
                return ErrorClass.RETRIABLE

        sleep = RecordingSleep()
        executor = BackoffExecutor([0, 0.5], EverythingRetriable(), sleep=sleep)
        operation = FlakyOperation([RuntimeError("boom"), RuntimeError("boom")])

        with pytest.raises(RetryExhaustedError):
            await executor.run(operation)

        assert operation.calls == 2
        assert sleep.delays == [0.5]

    def test_empty_schedule_rejected(self):
        """A schedule needs at least one attempt."""
        with pytest.raises(ValueError):
            BackoffExecutor([], HTTPErrorClassifier())

    def test_max_attempts(self):
        executor = BackoffExecutor(NETWORK_RETRY_DELAYS, HTTPErrorClassifier())
        assert executor.max_attempts == 4
