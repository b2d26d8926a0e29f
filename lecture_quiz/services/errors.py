"""Exception taxonomy shared by the pipeline client and the sync engine."""

from __future__ import annotations

from typing import Optional


class SyncError(RuntimeError):
    """Base class for every error raised by the synchronization engine."""


class NotYetAvailableError(SyncError):
    """Raised when a transcript or question set has not been produced yet.

    The poller treats this as an expected, transient condition and simply
    retries on its next cycle.
    """


class RequestFailedError(SyncError):
    """Raised when the backend cannot be reached or answers with a failure."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFoundError(RequestFailedError):
    """Raised when the requested resource does not exist on the backend."""


class MalformedResponseError(RequestFailedError):
    """Raised when a response body does not match the expected wire shape."""


class JobFailedError(SyncError):
    """Describes a job the backend reports in the ``error`` state."""

    def __init__(self, job_id: str, message: str) -> None:
        super().__init__(f"Job {job_id} failed: {message}")
        self.job_id = job_id
        self.message = message


class IdentityUnresolvableError(SyncError):
    """A question could not be matched to a backend-issued identity."""


__all__ = [
    "IdentityUnresolvableError",
    "JobFailedError",
    "MalformedResponseError",
    "NotFoundError",
    "NotYetAvailableError",
    "RequestFailedError",
    "SyncError",
]
