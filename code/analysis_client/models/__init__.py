from .job import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    AgentType,
    CreateJobRequest,
    CreateJobResponse,
    Job,
    JobStatus,
    JobStatusSnapshot,
)
from .results import (
    ImpactLevel,
    Intervention,
    Phase,
    ResultBundle,
    TrajectoryPoint,
)

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "AgentType",
    "CreateJobRequest",
    "CreateJobResponse",
    "Job",
    "JobStatus",
    "JobStatusSnapshot",
    "ImpactLevel",
    "Intervention",
    "Phase",
    "ResultBundle",
    "TrajectoryPoint",
]
