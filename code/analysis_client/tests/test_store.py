"""Tests for the JobStore state machine.

Covers:
- set_job / clear replacing the current job wholesale
- forward-only status transitions and rejection of backward snapshots
- positional log deduplication and non-decreasing progress
- observer notification
"""
from __future__ import annotations

import random
from unittest.mock import MagicMock

import pytest

from analysis_client.models.job import JobStatus, JobStatusSnapshot
from analysis_client.store import DEFAULT_FAILURE_MESSAGE, JobStore


def _snap(status: str, job_id: str = "j1", **kwargs) -> JobStatusSnapshot:
    return JobStatusSnapshot(job_id=job_id, status=status, **kwargs)


@pytest.fixture
def store() -> JobStore:
    s = JobStore()
    s.set_job("j1", JobStatus.QUEUED)
    return s


# ===========================================================================
# set_job / clear
# ===========================================================================


class TestLifecycle:
    def test_empty_store_has_no_status(self) -> None:
        s = JobStore()
        assert s.job is None
        assert s.status is None
        assert s.is_terminal is False

    def test_set_job_initializes_record(self, store: JobStore) -> None:
        job = store.job
        assert job.job_id == "j1"
        assert job.status == JobStatus.QUEUED
        assert job.progress == 0
        assert job.logs == ()
        assert job.error is None

    def test_set_job_discards_previous_job(self, store: JobStore) -> None:
        store.apply_status_snapshot(_snap("processing", progress=40, logs=["a", "b"]))
        store.set_job("j2", JobStatus.IDLE)
        assert store.job_id == "j2"
        assert store.status == JobStatus.IDLE
        assert store.job.logs == ()
        assert store.job.progress == 0

    def test_clear(self, store: JobStore) -> None:
        store.clear()
        assert store.job is None
        assert store.status is None


# ===========================================================================
# apply_status_snapshot
# ===========================================================================


class TestSnapshots:
    def test_forward_snapshot_is_applied(self, store: JobStore) -> None:
        applied = store.apply_status_snapshot(
            _snap("processing", current_agent="ingest", progress=10, logs=["started"])
        )
        assert applied is True
        job = store.job
        assert job.status == JobStatus.PROCESSING
        assert job.current_agent == "ingest"
        assert job.progress == 10
        assert job.logs == ("started",)

    def test_backward_snapshot_is_rejected(self, store: JobStore) -> None:
        store.apply_status_snapshot(_snap("processing", progress=30, logs=["x"]))
        before = store.job
        assert store.apply_status_snapshot(_snap("queued", progress=90, logs=["x", "y"])) is False
        assert store.job == before

    @pytest.mark.parametrize("terminal", ["completed", "failed"])
    @pytest.mark.parametrize("reported", ["idle", "queued", "processing", "completed", "failed"])
    def test_terminal_status_never_changes(self, store: JobStore, terminal: str, reported: str) -> None:
        store.apply_status_snapshot(_snap(terminal, progress=100 if terminal == "completed" else 20, error="x"))
        before = store.job
        assert store.apply_status_snapshot(_snap(reported, progress=100, logs=["late"], error="y")) is False
        assert store.job == before

    def test_queued_can_jump_to_completed(self, store: JobStore) -> None:
        assert store.apply_status_snapshot(_snap("completed", progress=100)) is True
        assert store.status == JobStatus.COMPLETED
        assert store.is_terminal is True

    def test_snapshot_for_other_job_is_rejected(self, store: JobStore) -> None:
        before = store.job
        assert store.apply_status_snapshot(_snap("processing", job_id="other")) is False
        assert store.job == before

    def test_snapshot_without_job_is_ignored(self) -> None:
        s = JobStore()
        assert s.apply_status_snapshot(_snap("processing")) is False
        assert s.job is None

    def test_logs_deduplicated_by_position(self, store: JobStore) -> None:
        store.apply_status_snapshot(_snap("processing", logs=["started"]))
        store.apply_status_snapshot(_snap("processing", logs=["started", "phase 1"]))
        # Repeated content at a new position is still new
        store.apply_status_snapshot(_snap("processing", logs=["started", "phase 1", "phase 1"]))
        assert store.job.logs == ("started", "phase 1", "phase 1")

    def test_shorter_log_list_never_shrinks_logs(self, store: JobStore) -> None:
        store.apply_status_snapshot(_snap("processing", logs=["a", "b", "c"]))
        store.apply_status_snapshot(_snap("processing", logs=["a"]))
        assert store.job.logs == ("a", "b", "c")

    def test_progress_never_decreases(self, store: JobStore) -> None:
        store.apply_status_snapshot(_snap("processing", progress=50))
        store.apply_status_snapshot(_snap("processing", progress=30))
        assert store.job.progress == 50

    def test_progress_frozen_at_terminal(self, store: JobStore) -> None:
        store.apply_status_snapshot(_snap("processing", progress=60))
        store.apply_status_snapshot(_snap("failed", progress=0, error="disk full"))
        assert store.job.progress == 60
        assert store.apply_status_snapshot(_snap("failed", progress=90, error="disk full")) is False
        assert store.job.progress == 60

    def test_error_only_kept_when_failed(self, store: JobStore) -> None:
        store.apply_status_snapshot(_snap("processing", error="transient"))
        assert store.job.error is None
        store.apply_status_snapshot(_snap("failed", error="model crashed"))
        assert store.job.error == "model crashed"

    def test_failed_without_message_gets_default_error(self, store: JobStore) -> None:
        store.apply_status_snapshot(_snap("failed"))
        assert store.job.error == DEFAULT_FAILURE_MESSAGE

    def test_random_sequences_keep_invariants(self) -> None:
        rng = random.Random(1234)
        statuses = [s.value for s in JobStatus]
        for _ in range(200):
            s = JobStore()
            s.set_job("j1", JobStatus.QUEUED)
            prev_rank = s.status.rank
            prev_logs = 0
            prev_status = s.status
            for _ in range(12):
                snapshot = _snap(
                    rng.choice(statuses),
                    progress=rng.uniform(0, 100),
                    logs=[f"l{i}" for i in range(rng.randint(0, 8))],
                    error="boom",
                )
                s.apply_status_snapshot(snapshot)
                assert s.status.rank >= prev_rank
                assert len(s.job.logs) >= prev_logs
                if prev_status.is_terminal:
                    assert s.status == prev_status
                prev_rank = s.status.rank
                prev_logs = len(s.job.logs)
                prev_status = s.status


# ===========================================================================
# fail()
# ===========================================================================


class TestFail:
    def test_fail_marks_active_job_failed(self, store: JobStore) -> None:
        store.apply_status_snapshot(_snap("processing", progress=25, logs=["a"]))
        assert store.fail("lost connection") is True
        job = store.job
        assert job.status == JobStatus.FAILED
        assert job.error == "lost connection"
        assert job.progress == 25
        assert job.logs == ("a",)

    def test_fail_is_noop_on_terminal_job(self, store: JobStore) -> None:
        store.apply_status_snapshot(_snap("completed", progress=100))
        assert store.fail("late failure") is False
        assert store.status == JobStatus.COMPLETED
        assert store.job.error is None

    def test_fail_without_job(self) -> None:
        assert JobStore().fail("nothing") is False


# ===========================================================================
# Observers
# ===========================================================================


class TestObservers:
    def test_every_mutation_notifies_synchronously(self) -> None:
        s = JobStore()
        seen = []
        s.subscribe(lambda job: seen.append(job.status if job else None))

        s.set_job("j1", JobStatus.QUEUED)
        s.apply_status_snapshot(_snap("processing"))
        s.fail("x")
        s.clear()

        assert seen == [JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.FAILED, None]

    def test_rejected_snapshot_does_not_notify(self, store: JobStore) -> None:
        observer = MagicMock()
        store.apply_status_snapshot(_snap("processing"))
        store.subscribe(observer)
        store.apply_status_snapshot(_snap("queued"))
        observer.assert_not_called()

    def test_unsubscribe(self, store: JobStore) -> None:
        observer = MagicMock()
        unsubscribe = store.subscribe(observer)
        unsubscribe()
        unsubscribe()
        store.apply_status_snapshot(_snap("processing"))
        observer.assert_not_called()

    def test_failing_observer_does_not_block_others(self, store: JobStore) -> None:
        broken = MagicMock(side_effect=RuntimeError("render failed"))
        healthy = MagicMock()
        store.subscribe(broken)
        store.subscribe(healthy)
        store.apply_status_snapshot(_snap("processing"))
        broken.assert_called_once()
        healthy.assert_called_once_with(store.job)
