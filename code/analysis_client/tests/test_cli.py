from __future__ import annotations

from unittest.mock import patch

import pytest

from analysis_client.cli import _ProgressPrinter, build_parser, main
from analysis_client.config import settings
from analysis_client.models.job import Job, JobStatus


def test_watch_defaults_come_from_settings():
    args = build_parser().parse_args(["watch", "upload-1"])
    assert args.command == "watch"
    assert args.upload_id == "upload-1"
    assert args.base_url == settings.API_BASE_URL
    assert args.interval == settings.JOB_POLL_INTERVAL_S
    assert args.retries == settings.JOB_POLL_MAX_RETRIES
    assert args.simulate is False


def test_watch_overrides():
    args = build_parser().parse_args(
        ["--log-level", "debug", "watch", "u", "--interval", "0.5", "--retries", "5", "--simulate"]
    )
    assert args.log_level == "debug"
    assert args.interval == 0.5
    assert args.retries == 5
    assert args.simulate is True


def test_command_is_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_serve_runs_uvicorn():
    with patch("uvicorn.run") as run, patch("analysis_client.cli.configure_logging"):
        assert main(["serve", "--port", "5055"]) == 0
    run.assert_called_once()
    assert run.call_args[0][0] == "analysis_client.server.app:app"
    assert run.call_args[1]["port"] == 5055


def test_progress_printer_prints_changes_and_new_logs(capsys):
    printer = _ProgressPrinter()
    printer(Job(job_id="j1", status=JobStatus.QUEUED))
    printer(Job(job_id="j1", status=JobStatus.PROCESSING, current_agent="ingest", progress=10, logs=("started",)))
    printer(Job(job_id="j1", status=JobStatus.PROCESSING, current_agent="ingest", progress=10, logs=("started", "more")))
    printer(Job(job_id="j1", status=JobStatus.FAILED, progress=10, logs=("started", "more"), error="disk full"))
    printer(None)

    out = capsys.readouterr().out.splitlines()
    assert out == [
        "queued       0.0%",
        "processing  10.0% [ingest]",
        "  | started",
        "  | more",
        "failed      10.0%",
        "  ! disk full",
    ]
