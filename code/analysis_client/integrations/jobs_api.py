"""Job endpoints of the analysis service.

Translates job lifecycle intents into backend calls. No retries happen here;
the poller owns the retry policy.
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import quote

import structlog

from analysis_client.errors import ServerError, ValidationError
from analysis_client.integrations.api_client import ApiClient, parse_model
from analysis_client.integrations.datadog_metrics import track_job_created
from analysis_client.models.job import (
    CreateJobRequest,
    CreateJobResponse,
    JobStatus,
    JobStatusSnapshot,
)

log = structlog.get_logger(__name__)

_INITIAL_STATUSES = {JobStatus.IDLE, JobStatus.QUEUED}


class JobClient:
    """Client for ``/jobs``."""

    def __init__(self, api: Optional[ApiClient] = None) -> None:
        self.api = api or ApiClient()

    async def create_job(self, upload_id: str) -> CreateJobResponse:
        """Start an analysis job for a previously uploaded artifact."""
        if not upload_id or not upload_id.strip():
            raise ValidationError("uploadId is required", code="INVALID_UPLOAD_ID")
        body = CreateJobRequest(upload_id=upload_id).to_wire()
        data = await self.api.request("POST", "/jobs", json=body, endpoint="jobs.create")
        created = parse_model(CreateJobResponse, data, "POST /jobs")
        if created.status not in _INITIAL_STATUSES:
            raise ServerError(
                f"New job {created.job_id} reported unexpected status {created.status.value!r}",
                code="BAD_RESPONSE",
                details=data,
            )
        track_job_created(created.job_id)
        log.info("job_created", job_id=created.job_id, upload_id=upload_id, status=created.status.value)
        return created

    async def get_job_status(self, job_id: str) -> JobStatusSnapshot:
        """Fetch the current server-side snapshot of *job_id*."""
        data = await self.api.request("GET", f"/jobs/{quote(job_id, safe='')}", endpoint="jobs.status")
        return parse_model(JobStatusSnapshot, data, f"GET /jobs/{job_id}")

    async def simulate_job(self, job_id: str) -> None:
        """Ask a demo backend to start advancing *job_id* through its stages."""
        await self.api.request("POST", f"/jobs/{quote(job_id, safe='')}/simulate", endpoint="jobs.simulate")
        log.info("job_simulation_requested", job_id=job_id)
