"""
Metrics Relay - Errors and Failure Classification

Exception types shared by agent and collector, plus the classifiers that
decide whether a failed operation is worth another attempt.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

import httpx


class ErrorClass(str, Enum):
    """Whether re-attempting a failed operation could plausibly succeed."""
    RETRIABLE = "retriable"
    FATAL = "fatal"


class MetricValidationError(ValueError):
    """Malformed or contradictory metric payload."""


class CounterOverflowError(MetricValidationError):
    """A counter update would leave the signed 64-bit range."""


class StorageError(Exception):
    """A storage backend failed to apply or persist a change."""


class BatchApplyError(StorageError):
    """One or more batch elements failed to persist."""

    def __init__(self, failed: int, applied: int, first_error: BaseException):
        self.failed = failed
        self.applied = applied
        self.first_error = first_error
        super().__init__(
            f"{failed} batch element(s) failed to persist, {applied} applied: {first_error}"
        )


class BackendNotSupportedError(StorageError):
    """The configured backend does not support the requested operation."""


class CollectorResponseError(Exception):
    """The collector answered with a non-200 status."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"server returned status {status_code}: {body}")


class RetryExhaustedError(Exception):
    """Every attempt of a retry schedule failed with a retriable error."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"failed after {attempts} attempts: {last_error}")


class ErrorClassifier(ABC):
    """Maps a failure to RETRIABLE or FATAL from its structured code."""

    @abstractmethod
    def classify(self, error: BaseException) -> ErrorClass:
        pass


class HTTPErrorClassifier(ErrorClassifier):
    """Classifies agent-side send failures.

    Transport failures (timeouts, refused or reset connections, broken
    framing) and 5xx responses are retriable. 4xx responses mean the payload
    itself was rejected and will be rejected again.
    """

    _RETRIABLE_TRANSPORT = (
        httpx.TimeoutException,
        httpx.NetworkError,
        httpx.RemoteProtocolError,
    )

    def classify(self, error: BaseException) -> ErrorClass:
        if isinstance(error, self._RETRIABLE_TRANSPORT):
            return ErrorClass.RETRIABLE
        if isinstance(error, CollectorResponseError):
            if 500 <= error.status_code <= 599:
                return ErrorClass.RETRIABLE
            return ErrorClass.FATAL
        return ErrorClass.FATAL


# SQLite primary result codes (https://www.sqlite.org/rescode.html)
SQLITE_BUSY = 5
SQLITE_LOCKED = 6
SQLITE_INTERRUPT = 9
SQLITE_IOERR = 10
SQLITE_CANTOPEN = 14
SQLITE_PROTOCOL = 15


class SQLiteErrorClassifier(ErrorClassifier):
    """Classifies relational backend failures by SQLite result code.

    Extended result codes carry the primary code in their low byte, so
    SQLITE_BUSY_SNAPSHOT and friends classify like SQLITE_BUSY.
    """

    RETRIABLE_CODES = frozenset({
        SQLITE_BUSY,
        SQLITE_LOCKED,
        SQLITE_INTERRUPT,
        SQLITE_IOERR,
        SQLITE_CANTOPEN,
        SQLITE_PROTOCOL,
    })

    def classify(self, error: BaseException) -> ErrorClass:
        code: Optional[int] = getattr(error, "sqlite_errorcode", None)
        if code is None:
            return ErrorClass.FATAL
        if (code & 0xFF) in self.RETRIABLE_CODES:
            return ErrorClass.RETRIABLE
        return ErrorClass.FATAL
