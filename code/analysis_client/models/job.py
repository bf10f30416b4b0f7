"""Job lifecycle models: wire payloads of the /jobs endpoints and the store record."""
from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    IDLE = "idle"
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        """Position along idle < queued < processing < {completed, failed}."""
        return _STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    def can_advance_to(self, other: "JobStatus") -> bool:
        """True if moving from this status to *other* is not a backward step."""
        if self.is_terminal:
            return other == self
        return other.rank >= self.rank


_STATUS_RANK = {
    JobStatus.IDLE: 0,
    JobStatus.QUEUED: 1,
    JobStatus.PROCESSING: 2,
    JobStatus.COMPLETED: 3,
    JobStatus.FAILED: 3,
}

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})
ACTIVE_STATUSES = frozenset({JobStatus.QUEUED, JobStatus.PROCESSING})


class AgentType(str, Enum):
    """Processing stages reported in ``currentAgent`` by the analysis service."""

    INGEST = "ingest"
    NORMALIZE = "normalize"
    PHASE = "phase"
    TRAJECTORY = "trajectory"
    NARRATIVE = "narrative"
    EXPORT = "export"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CreateJobRequest(_WireModel):
    upload_id: str = Field(..., alias="uploadId", min_length=1)


class CreateJobResponse(_WireModel):
    job_id: str = Field(..., alias="jobId", min_length=1)
    status: JobStatus


class JobStatusSnapshot(_WireModel):
    """Server-reported state of one job, as returned by ``GET /jobs/{jobId}``."""

    job_id: str = Field(..., alias="jobId", min_length=1)
    status: JobStatus
    # Stage labels are server-owned; unknown ones are kept verbatim
    current_agent: Optional[str] = Field(default=None, alias="currentAgent")
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    logs: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class Job(BaseModel):
    """The single current job held by the JobStore."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    status: JobStatus = JobStatus.IDLE
    current_agent: Optional[str] = None
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    logs: tuple[str, ...] = ()
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
