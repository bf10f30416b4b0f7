"""DogStatsD metrics for the job lifecycle.

Every helper is safe to call unconditionally: without a usable DD_API_KEY
nothing is sent and only the structlog event is emitted.

    analysis.jobs.created        count      jobs accepted by the backend
    analysis.jobs.terminal       count      jobs reaching completed/failed, tag status
    analysis.jobs.duration_ms    histogram  poller start to terminal status
    analysis.poll.ticks          count      successful status checks, tag status
    analysis.poll.failures       count      failed status checks, tag error
    analysis.poll.latency_ms     histogram  status check round trip
    analysis.api.calls           count      backend calls, tags endpoint and status
    analysis.api.latency_ms      histogram  backend call round trip, tag endpoint
"""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator, List, Optional

import structlog

from analysis_client.config import settings

log = structlog.get_logger(__name__)

_dd_initialized = False


def _statsd():
    """The shared DogStatsD client, or None while metrics are disabled."""
    global _dd_initialized
    if not _dd_initialized:
        if not settings.metrics_configured:
            return None
        from datadog import initialize

        try:
            initialize(statsd_host=settings.DD_AGENT_HOST, statsd_port=settings.DD_STATSD_PORT)
        except Exception as exc:  # noqa: BLE001
            log.warning("datadog_init_failed", error=str(exc))
            return None
        _dd_initialized = True
        log.info("datadog_metrics_initialized", host=settings.DD_AGENT_HOST, port=settings.DD_STATSD_PORT)

    from datadog import statsd

    return statsd


def track_job_created(job_id: str) -> None:
    sd = _statsd()
    if sd:
        sd.increment("analysis.jobs.created")
    log.info("metric.job_created", job_id=job_id)


def track_job_terminal(job_id: str, status: str, duration_ms: Optional[float] = None) -> None:
    """Count a job that reached *status*; the duration is optional."""
    tags = [f"status:{status}"]
    sd = _statsd()
    if sd:
        sd.increment("analysis.jobs.terminal", tags=tags)
        if duration_ms is not None:
            sd.histogram("analysis.jobs.duration_ms", duration_ms, tags=tags)
    log.info(
        "metric.job_terminal",
        job_id=job_id,
        status=status,
        duration_ms=None if duration_ms is None else round(duration_ms, 1),
    )


def track_poll_tick(job_id: str, status: str, latency_ms: float) -> None:
    sd = _statsd()
    if sd:
        sd.increment("analysis.poll.ticks", tags=[f"status:{status}"])
        sd.histogram("analysis.poll.latency_ms", latency_ms)
    log.debug("metric.poll_tick", job_id=job_id, status=status, latency_ms=round(latency_ms, 1))


def track_poll_failure(job_id: str, error_type: str, consecutive: int) -> None:
    """Count a failed status check; *consecutive* is only logged."""
    sd = _statsd()
    if sd:
        sd.increment("analysis.poll.failures", tags=[f"error:{error_type}"])
    log.warning("metric.poll_failure", job_id=job_id, error_type=error_type, consecutive=consecutive)


def track_api_call(endpoint: str, success: bool, latency_ms: Optional[float] = None) -> None:
    outcome = "success" if success else "error"
    sd = _statsd()
    if sd:
        sd.increment("analysis.api.calls", tags=[f"endpoint:{endpoint}", f"status:{outcome}"])
        if latency_ms is not None:
            sd.histogram("analysis.api.latency_ms", latency_ms, tags=[f"endpoint:{endpoint}"])
    log.debug("metric.api_call", endpoint=endpoint, status=outcome, latency_ms=latency_ms)


@contextmanager
def timed(metric_name: str, tags: Optional[List[str]] = None) -> Iterator[None]:
    """Record the wall time of the block as a histogram, also when it raises."""
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        sd = _statsd()
        if sd:
            sd.histogram(metric_name, elapsed_ms, tags=list(tags or ()))
        log.debug("metric.timed", metric=metric_name, elapsed_ms=round(elapsed_ms, 1))
