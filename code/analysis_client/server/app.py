"""
Demo analysis backend — FastAPI app serving the job and results endpoints.
Run with:  analysis-client serve
Or:        uvicorn analysis_client.server.app:app --port 5000
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

import structlog
from fastapi import APIRouter, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from analysis_client import __version__
from analysis_client.config import settings
from analysis_client.models.job import CreateJobRequest, CreateJobResponse, JobStatus
from analysis_client.server.registry import JobRegistry, record_summary

log = structlog.get_logger(__name__)


def _error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"message": message, "code": code})


def build_router(registry: JobRegistry, step_delay_s: float) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["jobs"])

    def _require_job(job_id: str):
        job = registry.get_job(job_id)
        if not job:
            raise _error(status.HTTP_404_NOT_FOUND, "JOB_NOT_FOUND", f"Job {job_id!r} not found")
        return job

    @router.post("/jobs", status_code=status.HTTP_201_CREATED)
    async def create_job(body: CreateJobRequest):
        """Register a queued analysis job for an uploaded artifact."""
        job = registry.create_job(body.upload_id)
        log.info("demo_job_created", job_id=job.job_id, upload_id=body.upload_id)
        return CreateJobResponse(job_id=job.job_id, status=job.status).to_wire()

    @router.get("/jobs/{job_id}")
    async def get_job_status(job_id: str):
        """Return the current state of a job.

        Terminal states:  completed | failed
        In-progress:      queued | processing
        """
        body = _require_job(job_id).to_snapshot().model_dump(mode="json", by_alias=True)
        if body.get("error") is None:
            body.pop("error", None)
        return body

    @router.post("/jobs/{job_id}/simulate", status_code=status.HTTP_202_ACCEPTED)
    async def simulate_job(job_id: str):
        """Start walking the job through every analysis stage."""
        job = _require_job(job_id)
        if job.status != JobStatus.QUEUED:
            raise _error(status.HTTP_409_CONFLICT, "JOB_ALREADY_STARTED", f"Job {job_id!r} is {job.status.value}")
        registry.simulate(job_id, step_delay_s)
        return record_summary(job)

    @router.get("/results/{job_id}")
    async def get_results(job_id: str):
        job = _require_job(job_id)
        if job.status != JobStatus.COMPLETED or job.result is None:
            raise _error(
                status.HTTP_409_CONFLICT,
                "JOB_NOT_COMPLETED",
                f"Results for job {job_id!r} are not ready (status: {job.status.value})",
            )
        return job.result.to_wire()

    return router


def create_app(registry: Optional[JobRegistry] = None, step_delay_s: Optional[float] = None) -> FastAPI:
    registry = registry or JobRegistry(terminal_ttl=timedelta(hours=settings.DEMO_JOB_TTL_H))
    delay = settings.DEMO_STEP_DELAY_S if step_delay_s is None else step_delay_s

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        try:
            yield
        finally:
            await registry.shutdown()

    app = FastAPI(
        title="Analysis Demo API",
        description="In-memory analysis job backend for local runs of the analysis client",
        version=__version__,
        lifespan=_lifespan,
    )
    app.state.registry = registry

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        message = "; ".join(err.get("msg", "validation error") for err in exc.errors())
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"message": message, "code": "VALIDATION_ERROR"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions and return 500 with detail for debugging."""
        log.exception("demo_unhandled_exception", path=request.url.path)
        message = str(exc) if settings.is_local else "Internal server error"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": message, "code": type(exc).__name__ if settings.is_local else "INTERNAL_ERROR"},
        )

    app.include_router(build_router(registry, delay))

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
