"""
Error taxonomy for attendance sync operations.

Exception Hierarchy:
    AttendanceSyncError (base)
    ├── UpstreamTimeout      - TIPSOI API did not answer within the timeout
    ├── UpstreamError        - TIPSOI API answered with a non-2xx status
    ├── UpstreamUnreachable  - No response at all (DNS, refused, reset)
    ├── RequestError         - Request could not be built or sent
    ├── StoreError           - Tabular store read/write failed
    ├── AlreadyRunning       - Another sync attempt holds the guard
    ├── InvalidSchedule      - Cadence expression rejected
    └── ValidationDrop       - One raw record failed validation (non-fatal)

``kind`` is the classification string surfaced to callers in result objects.
"""
from typing import Optional


class AttendanceSyncError(Exception):
    """Base exception for all attendance sync errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class UpstreamTimeout(AttendanceSyncError):
    """The upstream request exceeded the configured timeout."""

    def __init__(self, timeout: float, details: Optional[str] = None):
        super().__init__(
            f"Request timeout - TIPSOI API took longer than {timeout:g}s to respond",
            details,
        )
        self.timeout = timeout


class UpstreamError(AttendanceSyncError):
    """
    The upstream API returned an error response.

    ``status`` is the HTTP status; ``upstream_message`` is the body's
    ``message`` field (or the reason phrase when the body has none).
    """

    def __init__(self, status: int, upstream_message: str = ""):
        message = f"TIPSOI API error ({status})"
        if upstream_message:
            message = f"{message}: {upstream_message}"
        super().__init__(message)
        self.status = status
        self.upstream_message = upstream_message


class UpstreamUnreachable(AttendanceSyncError):
    """The request was sent but no response was received."""


class RequestError(AttendanceSyncError):
    """The request could not be constructed or dispatched."""


class StoreError(AttendanceSyncError):
    """A read or write against the tabular store failed."""


class AlreadyRunning(AttendanceSyncError):
    """A sync attempt is already in flight."""

    def __init__(self, message: str = "Another sync operation is already running"):
        super().__init__(message)


class InvalidSchedule(AttendanceSyncError):
    """A cadence expression could not be parsed."""

    def __init__(self, expression: str, details: Optional[str] = None):
        super().__init__(f"Invalid cron expression: {expression!r}", details)
        self.expression = expression


class ValidationDrop(AttendanceSyncError):
    """
    A single raw record was rejected by the validator.

    Never fails a batch: the normalizer catches it, counts it and moves on.
    """

    def __init__(self, reason: str, uid: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.uid = uid

    def __str__(self) -> str:
        if self.uid:
            return f"record {self.uid}: {self.reason}"
        return self.reason
