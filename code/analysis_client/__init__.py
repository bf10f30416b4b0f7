"""Client-side orchestration of asynchronous analysis jobs."""

__version__ = "0.1.0"

from .errors import (  # noqa: E402
    ApiClientError,
    JobNotCompletedError,
    NetworkError,
    NotFoundError,
    PollExhaustedError,
    ServerError,
    ValidationError,
)
from .models import Job, JobStatus, JobStatusSnapshot, ResultBundle  # noqa: E402
from .poller import JobPoller  # noqa: E402
from .route_guard import LANDING, PROCESSING, RESULTS, RouteDecision, RouteGuard, View  # noqa: E402
from .session import JobSession  # noqa: E402
from .store import JobStore  # noqa: E402

__all__ = [
    "__version__",
    "ApiClientError",
    "JobNotCompletedError",
    "NetworkError",
    "NotFoundError",
    "PollExhaustedError",
    "ServerError",
    "ValidationError",
    "Job",
    "JobStatus",
    "JobStatusSnapshot",
    "ResultBundle",
    "JobPoller",
    "LANDING",
    "PROCESSING",
    "RESULTS",
    "RouteDecision",
    "RouteGuard",
    "View",
    "JobSession",
    "JobStore",
]
