"""
Metrics Relay - Backoff Executor

Runs an async operation against a fixed retry schedule. Used by the agent
for network sends and by the relational backend for writes.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

import structlog

from .errors import ErrorClass, ErrorClassifier, RetryExhaustedError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# One entry per attempt: the pause in seconds before that attempt.
NETWORK_RETRY_DELAYS = (0.0, 1.0, 3.0, 5.0)
STORAGE_RETRY_DELAYS = (0.0, 1.0, 3.0, 5.0)


class BackoffExecutor:
    """Retry an operation on a fixed delay schedule.

    Attempt *i* waits ``delays[i]`` seconds first (zero means immediately),
    so the schedule length is the attempt cap. A fatal error is re-raised
    after the attempt that produced it; running out of attempts raises
    RetryExhaustedError chained from the last error.
    """

    def __init__(
        self,
        delays: Sequence[float],
        classifier: ErrorClassifier,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        name: str = "operation",
    ):
        if not delays:
            raise ValueError("retry schedule must contain at least one attempt")
        self.delays = tuple(delays)
        self.classifier = classifier
        self.name = name
        self._sleep = sleep or asyncio.sleep

    @property
    def max_attempts(self) -> int:
        return len(self.delays)

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Invoke ``operation`` until it succeeds, fails fatally or the schedule ends."""
        last_error: Optional[BaseException] = None

        for attempt, delay in enumerate(self.delays, start=1):
            if delay > 0:
                await self._sleep(delay)

            try:
                return await operation()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e

                if self.classifier.classify(e) == ErrorClass.FATAL:
                    logger.error(
                        "Fatal error, not retrying",
                        operation=self.name,
                        attempt=attempt,
                        error=str(e),
                    )
                    raise

                if attempt < self.max_attempts:
                    logger.warning(
                        "Retriable error, retrying",
                        operation=self.name,
                        attempt=attempt,
                        next_delay=self.delays[attempt],
                        error=str(e),
                    )

        logger.error(
            "Retry schedule exhausted",
            operation=self.name,
            attempts=self.max_attempts,
            error=str(last_error),
        )
        raise RetryExhaustedError(self.max_attempts, last_error) from last_error
