from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from analysis_client.errors import NetworkError, NotFoundError, ServerError, ValidationError
from analysis_client.models.job import JobStatus, JobStatusSnapshot
from analysis_client.poller import JobPoller
from analysis_client.store import JobStore


def _snap(status: str, job_id: str = "j1", **kwargs) -> JobStatusSnapshot:
    return JobStatusSnapshot(job_id=job_id, status=status, **kwargs)


def _make(side_effect, max_retries: int = 2, job_id: str = "j1"):
    store = JobStore()
    store.set_job(job_id, JobStatus.QUEUED)
    client = MagicMock()
    client.get_job_status = AsyncMock(side_effect=side_effect)
    poller = JobPoller(store, client, job_id, interval_s=0, max_retries=max_retries)
    return store, client, poller


async def _run(poller: JobPoller) -> None:
    await poller.start()
    await asyncio.wait_for(poller.wait(), timeout=5)


@pytest.mark.asyncio
async def test_polls_until_completed_and_stops():
    store, client, poller = _make(
        [
            _snap("processing", progress=10, logs=["started"]),
            _snap("completed", progress=100, logs=["started", "done"]),
            AssertionError("a third tick must never be issued"),
        ]
    )
    seen = []
    store.subscribe(lambda job: seen.append((job.status, job.progress, job.logs)))

    await _run(poller)

    assert seen == [
        (JobStatus.PROCESSING, 10, ("started",)),
        (JobStatus.COMPLETED, 100, ("started", "done")),
    ]
    assert client.get_job_status.await_count == 2
    client.get_job_status.assert_awaited_with("j1")
    assert poller.ticks == 2
    assert poller.is_running is False


@pytest.mark.asyncio
async def test_failed_snapshot_is_terminal():
    store, client, poller = _make([_snap("failed", progress=40, error="bad input")])

    await _run(poller)

    assert store.status == JobStatus.FAILED
    assert store.job.error == "bad input"
    assert client.get_job_status.await_count == 1


@pytest.mark.asyncio
async def test_exhausted_retry_budget_fails_job():
    store, client, poller = _make(
        [NetworkError("connection refused"), ServerError("bad gateway", status=502), NetworkError("reset")],
        max_retries=2,
    )

    await _run(poller)

    job = store.job
    assert job.status == JobStatus.FAILED
    assert job.error.startswith("Lost connection to the analysis service after 3 failed status checks")
    assert job.progress == 0
    assert job.logs == ()
    assert client.get_job_status.await_count == 3


@pytest.mark.asyncio
async def test_success_resets_failure_count():
    store, client, poller = _make(
        [
            NetworkError("a"),
            NetworkError("b"),
            _snap("processing", progress=20),
            ServerError("c"),
            NetworkError("d"),
            _snap("completed", progress=100),
        ],
        max_retries=2,
    )

    await _run(poller)

    assert store.status == JobStatus.COMPLETED
    assert client.get_job_status.await_count == 6


@pytest.mark.asyncio
async def test_zero_retry_budget_fails_on_first_error():
    store, client, poller = _make([NetworkError("down")], max_retries=0)

    await _run(poller)

    assert store.status == JobStatus.FAILED
    assert client.get_job_status.await_count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        NotFoundError("Job 'j1' not found", status=404),
        ValidationError("Invalid job id", status=400),
    ],
)
async def test_client_errors_fail_immediately(error):
    store, client, poller = _make([error, _snap("processing")])

    await _run(poller)

    assert store.status == JobStatus.FAILED
    assert store.job.error == error.message
    assert client.get_job_status.await_count == 1


@pytest.mark.asyncio
async def test_unexpected_errors_count_against_budget():
    store, client, poller = _make([RuntimeError("boom")] * 3, max_retries=2)

    await _run(poller)

    assert store.status == JobStatus.FAILED
    assert "boom" in store.job.error


@pytest.mark.asyncio
async def test_cancel_discards_in_flight_response():
    store = JobStore()
    store.set_job("j1", JobStatus.QUEUED)
    observer = MagicMock()
    store.subscribe(observer)
    client = MagicMock()
    poller = JobPoller(store, client, "j1", interval_s=0, max_retries=2)

    async def respond_after_cancel(job_id):
        # the owner navigates away while this request is in flight
        poller.cancel()
        return _snap("completed", progress=100, logs=["done"])

    client.get_job_status = AsyncMock(side_effect=respond_after_cancel)

    await _run(poller)

    assert store.status == JobStatus.QUEUED
    assert store.job.logs == ()
    observer.assert_not_called()
    assert poller.is_cancelled is True
    assert client.get_job_status.await_count == 1


@pytest.mark.asyncio
async def test_cancel_stops_future_ticks():
    store, client, poller = _make(lambda job_id: _snap("processing"))
    poller.interval_s = 0.05

    await poller.start()
    while client.get_job_status.await_count < 1:
        await asyncio.sleep(0)
    await poller.stop()
    calls = client.get_job_status.await_count
    await asyncio.sleep(0.15)

    assert client.get_job_status.await_count == calls
    assert poller.is_running is False


@pytest.mark.asyncio
async def test_response_for_superseded_job_is_discarded():
    store = JobStore()
    store.set_job("j1", JobStatus.QUEUED)
    client = MagicMock()

    async def replaced_mid_flight(job_id):
        store.set_job("j2", JobStatus.QUEUED)
        return _snap("completed", job_id="j1", progress=100)

    client.get_job_status = AsyncMock(side_effect=replaced_mid_flight)
    poller = JobPoller(store, client, "j1", interval_s=0)

    await _run(poller)

    assert store.job_id == "j2"
    assert store.status == JobStatus.QUEUED
    assert client.get_job_status.await_count == 1


@pytest.mark.asyncio
async def test_terminal_state_is_idempotent_under_further_ticks():
    store, client, poller = _make([_snap("completed", progress=100, logs=["done"])])
    await _run(poller)
    final = store.job

    client.get_job_status = AsyncMock(return_value=_snap("failed", error="late"))
    await poller._tick()

    assert store.job == final


@pytest.mark.asyncio
async def test_start_is_idempotent_and_cancelled_poller_cannot_restart():
    release = asyncio.Event()

    async def hang(job_id):
        await release.wait()
        return _snap("processing")

    store, client, poller = _make(hang)
    await poller.start()
    first_task = poller._task
    await poller.start()
    assert poller._task is first_task

    await poller.stop()
    with pytest.raises(RuntimeError):
        await poller.start()


def test_defaults_come_from_settings(monkeypatch):
    from analysis_client.config import settings

    monkeypatch.setattr(settings, "JOB_POLL_INTERVAL_S", 3.5)
    monkeypatch.setattr(settings, "JOB_POLL_MAX_RETRIES", 4)
    poller = JobPoller(JobStore(), MagicMock(), "j1")
    assert poller.interval_s == 3.5
    assert poller.max_retries == 4


@pytest.mark.asyncio
async def test_rejection_does_not_count_as_consecutive_failure():
    store, client, poller = _make([NetworkError("blip"), _snap("processing"), NotFoundError("gone", status=404)])

    with patch("analysis_client.poller.track_poll_failure") as track:
        await _run(poller)

    assert store.status == JobStatus.FAILED
    assert track.call_args_list[-1].args == ("j1", "NotFoundError", 0)
