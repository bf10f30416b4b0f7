"""One client session: create a job, poll it to the end, fetch its results.

JobSession owns the JobStore and makes sure at most one JobPoller is active:
starting a new job first cancels the previous poller, then replaces the
stored job.

Usage::

    async with JobSession() as session:
        await session.start("upload-123")
        job = await session.wait()
        if job.status == JobStatus.COMPLETED:
            bundle = await session.results()
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import structlog

from analysis_client.errors import ApiClientError, JobNotCompletedError
from analysis_client.integrations.api_client import ApiClient
from analysis_client.integrations.datadog_metrics import timed
from analysis_client.integrations.jobs_api import JobClient
from analysis_client.integrations.results_api import ResultsClient
from analysis_client.models.job import Job, JobStatus
from analysis_client.models.results import ResultBundle
from analysis_client.poller import JobPoller
from analysis_client.route_guard import RouteGuard
from analysis_client.store import JobStore

log = structlog.get_logger(__name__)


class JobSession:
    def __init__(
        self,
        api: Optional[ApiClient] = None,
        store: Optional[JobStore] = None,
        job_client: Optional[JobClient] = None,
        results_client: Optional[ResultsClient] = None,
        poll_interval_s: Optional[float] = None,
        max_retries: Optional[int] = None,
    ) -> None:
        self._owns_api = api is None and (job_client is None or results_client is None)
        self.api = api or (ApiClient() if self._owns_api else None)
        self.store = store or JobStore()
        self.jobs = job_client or JobClient(self.api)
        self.results_client = results_client or ResultsClient(self.api)
        self.guard = RouteGuard(self.store)
        self.poll_interval_s = poll_interval_s
        self.max_retries = max_retries
        self._poller: Optional[JobPoller] = None
        self._results: Dict[str, ResultBundle] = {}

    async def __aenter__(self) -> "JobSession":
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.aclose()

    @property
    def poller(self) -> Optional[JobPoller]:
        return self._poller

    @property
    def job(self) -> Optional[Job]:
        return self.store.job

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, upload_id: str, simulate: bool = False) -> Job:
        """Create a job for *upload_id* and begin polling it.

        Client errors from job creation or simulation propagate unchanged;
        the store is cleared so no unpolled job stays current.
        """
        await self._stop_poller()
        try:
            created = await self.jobs.create_job(upload_id)
        except ApiClientError as exc:
            log.warning("job_session_create_failed", upload_id=upload_id, error=exc.message, code=exc.code)
            self.store.clear()
            raise

        job = self.store.set_job(created.job_id, created.status)
        if simulate:
            try:
                await self.jobs.simulate_job(created.job_id)
            except ApiClientError as exc:
                log.warning("job_session_simulate_failed", job_id=created.job_id, error=exc.message, code=exc.code)
                self.store.clear()
                raise
        self._poller = JobPoller(
            self.store,
            self.jobs,
            created.job_id,
            interval_s=self.poll_interval_s,
            max_retries=self.max_retries,
        )
        await self._poller.start()
        return job

    async def wait(self) -> Optional[Job]:
        """Wait for the active poller to stop and return the resulting job."""
        if self._poller is None:
            return self.store.job
        return await self._poller.wait()

    async def run(self, upload_id: str, simulate: bool = False) -> Optional[Job]:
        await self.start(upload_id, simulate=simulate)
        return await self.wait()

    async def results(self) -> ResultBundle:
        """Fetch the current job's result bundle, once per job."""
        job = self.store.job
        if job is None or job.status != JobStatus.COMPLETED:
            status = job.status.value if job else None
            raise JobNotCompletedError(
                f"Results are only available for completed jobs (status: {status})",
                details={"job_id": job.job_id if job else None, "status": status},
            )
        cached = self._results.get(job.job_id)
        if cached is not None:
            return cached
        with timed("analysis.results.fetch_ms"):
            bundle = await self.results_client.get_results(job.job_id)
        self._results[job.job_id] = bundle
        return bundle

    async def reset(self) -> None:
        """Cancel polling and forget the current job."""
        await self._stop_poller()
        self.store.clear()
        self._results.clear()

    async def aclose(self) -> None:
        await self._stop_poller()
        if self._owns_api and self.api is not None:
            await self.api.aclose()

    async def _stop_poller(self) -> None:
        poller = self._poller
        self._poller = None
        if poller is not None:
            await poller.stop()
