"""Background poller that drives a job to a terminal status."""
from __future__ import annotations

import asyncio
import time
from typing import Optional

import structlog

from analysis_client.config import settings
from analysis_client.errors import (
    NetworkError,
    PollExhaustedError,
    ServerError,
    ValidationError,
)
from analysis_client.integrations.datadog_metrics import (
    track_job_terminal,
    track_poll_failure,
    track_poll_tick,
)
from analysis_client.integrations.jobs_api import JobClient
from analysis_client.integrations.logging_setup import job_context
from analysis_client.models.job import Job
from analysis_client.store import JobStore

log = structlog.get_logger(__name__)


class JobPoller:
    """Polls ``GET /jobs/{jobId}`` on a fixed interval and feeds the JobStore.

    Stops once the store reports ``completed`` or ``failed``. Transport and
    5xx failures are retried up to ``max_retries`` consecutive times; one more
    failure fails the job with a PollExhaustedError message. 4xx responses
    (including 404) fail the job at once.

    A response that arrives after ``cancel()``, after the store moved on to
    another job, or after the job went terminal is discarded.
    """

    def __init__(
        self,
        store: JobStore,
        client: JobClient,
        job_id: str,
        interval_s: Optional[float] = None,
        max_retries: Optional[int] = None,
    ) -> None:
        self.store = store
        self.client = client
        self.job_id = job_id
        self.interval_s = max(0.0, float(interval_s if interval_s is not None else settings.JOB_POLL_INTERVAL_S))
        self.max_retries = max(0, int(max_retries if max_retries is not None else settings.JOB_POLL_MAX_RETRIES))
        self.ticks: int = 0
        self._failures: int = 0
        self._cancelled: bool = False
        self._started_at: Optional[float] = None
        self._task: Optional[asyncio.Task] = None
        self._log = log.bind(job_id=job_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return bool(self._task and not self._task.done())

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        if self._cancelled:
            raise RuntimeError("A cancelled poller cannot be restarted")
        self._started_at = time.perf_counter()
        self._task = asyncio.create_task(self._run(), name=f"job-poller-{self.job_id}")
        self._log.info(
            "job_poller_started",
            interval_s=self.interval_s,
            max_retries=self.max_retries,
        )

    def cancel(self) -> None:
        """Stop future ticks immediately; an in-flight response will be discarded."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._task and not self._task.done():
            self._task.cancel()
        self._log.info("job_poller_cancelled", ticks=self.ticks)

    async def stop(self) -> None:
        """Cancel and wait for the polling task to unwind."""
        self.cancel()
        await self.wait()

    async def wait(self) -> Optional[Job]:
        """Wait until polling ends (terminal status or cancellation)."""
        task = self._task
        if task:
            try:
                await task
            except asyncio.CancelledError:
                pass
        return self.store.job if self.store.job_id == self.job_id else None

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _owns_store(self) -> bool:
        """True while results of this poller may still be applied."""
        return (
            not self._cancelled
            and self.store.job_id == self.job_id
            and not self.store.is_terminal
        )

    async def _run(self) -> None:
        with job_context(self.job_id):
            while self._owns_store():
                await self._tick()
                if not self._owns_store():
                    break
                await asyncio.sleep(self.interval_s)
            self._finish()

    def _finish(self) -> None:
        job = self.store.job
        if self._cancelled or job is None or job.job_id != self.job_id:
            self._log.info("job_poller_detached", ticks=self.ticks)
            return
        duration_ms = None
        if self._started_at is not None:
            duration_ms = (time.perf_counter() - self._started_at) * 1000
        track_job_terminal(self.job_id, job.status.value, duration_ms)
        self._log.info(
            "job_poller_finished",
            status=job.status.value,
            progress=job.progress,
            ticks=self.ticks,
            error=job.error,
        )

    async def _tick(self) -> None:
        self.ticks += 1
        start = time.perf_counter()
        try:
            snapshot = await self.client.get_job_status(self.job_id)
        except ValidationError as exc:
            # Covers NotFoundError: the jobId itself is bad, retrying cannot help
            if self._discard("rejected"):
                return
            track_poll_failure(self.job_id, type(exc).__name__, self._failures)
            self._log.warning("job_poll_rejected", status=exc.status, error=exc.message)
            self.store.fail(exc.message)
            return
        except (NetworkError, ServerError) as exc:
            if self._discard("failed"):
                return
            self._record_failure(exc)
            return
        except Exception as exc:  # noqa: BLE001
            if self._discard("failed"):
                return
            self._log.exception("job_poll_tick_crashed")
            self._record_failure(exc)
            return

        if self._discard("succeeded"):
            return
        latency_ms = (time.perf_counter() - start) * 1000
        self._failures = 0
        track_poll_tick(self.job_id, snapshot.status.value, latency_ms)
        applied = self.store.apply_status_snapshot(snapshot)
        self._log.debug(
            "job_poll_tick",
            tick=self.ticks,
            status=snapshot.status.value,
            progress=snapshot.progress,
            applied=applied,
        )

    def _discard(self, outcome: str) -> bool:
        if self._owns_store():
            return False
        self._log.info("job_poll_response_discarded", outcome=outcome, tick=self.ticks)
        return True

    def _record_failure(self, exc: BaseException) -> None:
        self._failures += 1
        track_poll_failure(self.job_id, type(exc).__name__, self._failures)
        if self._failures <= self.max_retries:
            self._log.warning(
                "job_poll_retrying",
                consecutive_failures=self._failures,
                max_retries=self.max_retries,
                error=str(exc),
            )
            return
        exhausted = PollExhaustedError(self._failures, last_error=exc)
        self._log.error("job_poll_exhausted", consecutive_failures=self._failures, error=str(exc))
        self.store.fail(exhausted.message)
