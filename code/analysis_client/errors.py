"""Error taxonomy for the analysis job client.

Every failure surfaced by the HTTP clients is an ``ApiClientError`` carrying
the normalized ``message``, ``code``, HTTP ``status`` and raw ``details`` of
the response, so callers can render ``str(exc)`` verbatim.

    ApiClientError
    ├── NetworkError          transport failure, no response
    ├── ValidationError       4xx, bad uploadId or malformed request
    │   └── NotFoundError     404, unknown jobId
    ├── ServerError           5xx or unreadable response body
    ├── PollExhaustedError    synthesized locally after repeated poll failures
    └── JobNotCompletedError  results requested before the job completed
"""
from __future__ import annotations

from typing import Any, Optional


class ApiClientError(Exception):
    """Base class for every error raised by the job and results clients."""

    default_code = "UNKNOWN_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status: Optional[int] = None,
        details: Any = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.status = status
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "code": self.code,
            "status": self.status,
            "details": self.details,
        }


class NetworkError(ApiClientError):
    """Raised when the request never produced a response (DNS, refused, timeout)."""

    default_code = "NETWORK_ERROR"


class ValidationError(ApiClientError):
    """Raised when the backend rejects the request with a 4xx status."""

    default_code = "VALIDATION_ERROR"


class NotFoundError(ValidationError):
    """Raised when the backend does not know the requested jobId (404)."""

    default_code = "NOT_FOUND"


class ServerError(ApiClientError):
    """Raised on 5xx responses and on bodies that do not match the wire shape."""

    default_code = "SERVER_ERROR"


class PollExhaustedError(ApiClientError):
    """Synthesized by the poller once its consecutive-failure budget is spent."""

    default_code = "POLL_EXHAUSTED"

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None) -> None:
        message = f"Lost connection to the analysis service after {attempts} failed status checks"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message, details={"attempts": attempts})
        self.attempts = attempts
        self.last_error = last_error


class JobNotCompletedError(ApiClientError):
    """Raised when results are requested while the current job is not completed."""

    default_code = "JOB_NOT_COMPLETED"
