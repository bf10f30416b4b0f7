"""In-process job registry behind the demo analysis backend.

``POST /api/jobs`` registers a queued job and returns its id immediately; the
client polls ``GET /api/jobs/{job_id}`` until status is "completed" or
"failed". ``POST /api/jobs/{job_id}/simulate`` walks a job through the
analysis stages so the whole lifecycle can be exercised locally.
"""
from __future__ import annotations

import asyncio
import hashlib
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from analysis_client.models.job import AgentType, JobStatus, JobStatusSnapshot
from analysis_client.models.results import (
    ImpactLevel,
    Intervention,
    Phase,
    ResultBundle,
    TrajectoryPoint,
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class JobRecord(BaseModel):
    job_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    upload_id: str
    status: JobStatus = JobStatus.QUEUED
    current_agent: Optional[AgentType] = None
    progress: float = 0.0
    logs: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    result: Optional[ResultBundle] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def to_snapshot(self) -> JobStatusSnapshot:
        return JobStatusSnapshot(
            job_id=self.job_id,
            status=self.status,
            current_agent=self.current_agent.value if self.current_agent else None,
            progress=self.progress,
            logs=list(self.logs),
            error=self.error,
        )


class JobRegistry:
    """Job records keyed by id, pruned by age and count."""

    def __init__(self, max_jobs: int = 1000, terminal_ttl: timedelta = timedelta(hours=24)) -> None:
        self._store: Dict[str, JobRecord] = {}
        self._tasks: Set[asyncio.Task] = set()
        self.max_jobs = max_jobs
        self.terminal_ttl = terminal_ttl

    def _cleanup_store(self) -> None:
        now = _utcnow()
        expired: list[str] = []
        for job_id, record in self._store.items():
            if record.status.is_terminal and (now - record.updated_at) > self.terminal_ttl:
                expired.append(job_id)
        for job_id in expired:
            self._store.pop(job_id, None)

        if len(self._store) <= self.max_jobs:
            return

        overflow = len(self._store) - self.max_jobs
        oldest = sorted(self._store.values(), key=lambda r: r.updated_at)
        for record in oldest[:overflow]:
            self._store.pop(record.job_id, None)

    def create_job(self, upload_id: str) -> JobRecord:
        """Create and register a new queued job."""
        self._cleanup_store()
        job = JobRecord(upload_id=upload_id)
        job.logs.append("Job created successfully")
        self._store[job.job_id] = job
        return job

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        self._cleanup_store()
        return self._store.get(job_id)

    def _mark(
        self,
        job_id: str,
        status: JobStatus,
        agent: Optional[AgentType] = None,
        progress: Optional[float] = None,
        message: Optional[str] = None,
        error: Optional[str] = None,
        result: Optional[ResultBundle] = None,
    ) -> None:
        record = self._store.get(job_id)
        if not record or record.status.is_terminal:
            return
        record.status = status
        if agent is not None:
            record.current_agent = agent
        if progress is not None:
            record.progress = max(record.progress, min(100.0, progress))
        if message:
            record.logs.append(message)
        if error is not None:
            record.error = error
        if result is not None:
            record.result = result
        record.updated_at = _utcnow()

    def update_progress(self, job_id: str, agent: AgentType, progress: float) -> None:
        """Hand the job to *agent* and record progress while it remains in-flight."""
        self._mark(
            job_id,
            JobStatus.PROCESSING,
            agent=agent,
            progress=progress,
            message=f"Starting agent: {agent.value}",
        )

    def mark_completed(self, job_id: str, result: ResultBundle) -> None:
        self._mark(job_id, JobStatus.COMPLETED, progress=100.0, message="Analysis complete", result=result)

    def mark_failed(self, job_id: str, error: str) -> None:
        self._mark(job_id, JobStatus.FAILED, message=f"Analysis failed: {error}", error=error)

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def simulate(self, job_id: str, step_delay_s: float) -> asyncio.Task:
        """Schedule ``run_simulation`` and keep a reference until it finishes."""
        task = asyncio.create_task(self.run_simulation(job_id, step_delay_s), name=f"simulate-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run_simulation(self, job_id: str, step_delay_s: float) -> None:
        """Advance *job_id* through every analysis stage, then complete it."""
        record = self._store.get(job_id)
        if not record:
            return
        stages = list(AgentType)
        try:
            for index, agent in enumerate(stages):
                await asyncio.sleep(step_delay_s)
                self.update_progress(job_id, agent, progress=index * 100.0 / len(stages))
            await asyncio.sleep(step_delay_s)
            self.mark_completed(job_id, build_demo_results(record.upload_id))
        except Exception as exc:  # noqa: BLE001
            self.mark_failed(job_id, str(exc))

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


def build_demo_results(upload_id: str) -> ResultBundle:
    """Deterministic sample bundle derived from the upload id."""
    seed = int(hashlib.sha256(upload_id.encode("utf-8")).hexdigest()[:8], 16)
    base = 40 + seed % 20
    phases = [
        Phase(
            id="phase-1",
            name="Exploration",
            start_date="2024-01-01",
            end_date="2024-03-31",
            description="Trying many things with no clear focus.",
            color="#f4a261",
            dominant_categories=["learning", "social"],
            confidence_score=0.72,
        ),
        Phase(
            id="phase-2",
            name="Consolidation",
            start_date="2024-04-01",
            end_date="2024-08-31",
            description="Habits settle around a few core activities.",
            color="#2a9d8f",
            dominant_categories=["work", "health"],
            confidence_score=0.81,
        ),
    ]
    trajectory = [
        TrajectoryPoint(date=f"2024-{month:02d}-01", value=float(base + month * 3 - (seed >> month) % 5), label=f"M{month}")
        for month in range(1, 9)
    ]
    interventions = [
        Intervention(
            id="int-1",
            title="Protect a weekly focus block",
            description="Schedule one uninterrupted block for the core activity.",
            impact=ImpactLevel.HIGH,
            category="work",
        ),
        Intervention(
            id="int-2",
            title="Log evenings for two weeks",
            description="Short nightly notes sharpen the next analysis.",
            impact=ImpactLevel.LOW,
            category="reflection",
        ),
    ]
    return ResultBundle(
        phases=phases,
        trajectory=trajectory,
        interventions=interventions,
        identity_statement="Someone who builds momentum through steady routines.",
    )


def record_summary(record: JobRecord) -> Dict[str, Any]:
    return {"jobId": record.job_id, "status": record.status.value}
