"""Job store: the single current analysis job of a client session.

The store is the only shared mutable state of the client. It has one writer
role (the active JobPoller, plus the session's set_job/clear) and any number
of readers (RouteGuard, renderers) that subscribe for change notifications.

Status only moves forward along

    idle -> queued -> processing -> {completed | failed}

and snapshots that would move it backward are rejected without raising.
"""
from __future__ import annotations

from typing import Callable, List, Optional

import structlog

from analysis_client.models.job import Job, JobStatus, JobStatusSnapshot

log = structlog.get_logger(__name__)

Observer = Callable[[Optional[Job]], None]

DEFAULT_FAILURE_MESSAGE = "Analysis job failed"


class JobStore:
    """Holds the current Job and notifies observers on every accepted mutation."""

    def __init__(self) -> None:
        self._job: Optional[Job] = None
        self._observers: List[Observer] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def job(self) -> Optional[Job]:
        return self._job

    @property
    def job_id(self) -> Optional[str]:
        return self._job.job_id if self._job else None

    @property
    def status(self) -> Optional[JobStatus]:
        """Current status, or None when no job is held."""
        return self._job.status if self._job else None

    @property
    def is_terminal(self) -> bool:
        return bool(self._job and self._job.is_terminal)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register *observer*; returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def _notify(self) -> None:
        job = self._job
        for observer in list(self._observers):
            try:
                observer(job)
            except Exception:  # noqa: BLE001
                log.exception("job_store_observer_failed", observer=repr(observer))

    def _replace(self, job: Optional[Job], event: str) -> None:
        self._job = job
        log.debug(
            event,
            job_id=job.job_id if job else None,
            status=job.status.value if job else None,
            progress=job.progress if job else None,
        )
        self._notify()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_job(self, job_id: str, status: JobStatus = JobStatus.QUEUED) -> Job:
        """Start tracking a new job. The previous record is dropped, not merged."""
        job = Job(job_id=job_id, status=JobStatus(status))
        self._replace(job, "job_store_set")
        return job

    def apply_status_snapshot(self, snapshot: JobStatusSnapshot) -> bool:
        """Merge a server-reported snapshot into the current job.

        Returns False (store unchanged) when there is no job, the snapshot is
        for another job, the job is already terminal, or its status would be
        a backward transition.
        """
        current = self._job
        if current is None:
            log.debug("job_snapshot_ignored_no_job", job_id=snapshot.job_id)
            return False
        if snapshot.job_id != current.job_id:
            log.warning(
                "job_snapshot_rejected_foreign",
                job_id=current.job_id,
                snapshot_job_id=snapshot.job_id,
            )
            return False
        if current.is_terminal:
            log.debug("job_snapshot_ignored_terminal", job_id=current.job_id, status=current.status.value)
            return False
        if not current.status.can_advance_to(snapshot.status):
            log.warning(
                "job_snapshot_rejected_backward",
                job_id=current.job_id,
                current=current.status.value,
                reported=snapshot.status.value,
            )
            return False

        # Server owns log ordering: anything past our length is new
        logs = current.logs
        if len(snapshot.logs) > len(logs):
            logs = logs + tuple(snapshot.logs[len(logs):])

        error = None
        if snapshot.status == JobStatus.FAILED:
            error = snapshot.error or DEFAULT_FAILURE_MESSAGE

        updated = current.model_copy(
            update={
                "status": snapshot.status,
                "current_agent": snapshot.current_agent,
                "progress": max(current.progress, snapshot.progress),
                "logs": logs,
                "error": error,
            }
        )
        if updated != current:
            self._replace(updated, "job_store_snapshot_applied")
        return True

    def fail(self, message: str) -> bool:
        """Move a non-terminal job to ``failed``; progress and logs are kept."""
        current = self._job
        if current is None or current.is_terminal:
            return False
        updated = current.model_copy(
            update={"status": JobStatus.FAILED, "error": message or DEFAULT_FAILURE_MESSAGE}
        )
        self._replace(updated, "job_store_failed")
        return True

    def clear(self) -> None:
        """Forget the current job (session reset)."""
        if self._job is None:
            return
        self._replace(None, "job_store_cleared")
