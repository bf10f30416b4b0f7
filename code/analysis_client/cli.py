"""Command line entry point.

    analysis-client watch <uploadId> [--simulate] [--base-url URL]
    analysis-client serve [--host HOST] [--port PORT]

``watch`` creates a job, prints status/progress/log lines as the poller
applies snapshots, and prints the result bundle as JSON once completed.
Exit codes: 0 completed, 1 failed, 2 client error.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Optional, Sequence

from analysis_client.config import settings
from analysis_client.errors import ApiClientError
from analysis_client.integrations.api_client import ApiClient
from analysis_client.integrations.logging_setup import configure_logging
from analysis_client.models.job import Job, JobStatus
from analysis_client.session import JobSession


class _ProgressPrinter:
    """Store observer that echoes changes to stdout."""

    def __init__(self) -> None:
        self._printed_logs = 0
        self._last: Optional[tuple] = None

    def __call__(self, job: Optional[Job]) -> None:
        if job is None:
            return
        state = (job.status, job.current_agent, job.progress)
        if state != self._last:
            agent = f" [{job.current_agent}]" if job.current_agent else ""
            print(f"{job.status.value:<10} {job.progress:5.1f}%{agent}")
            self._last = state
        for line in job.logs[self._printed_logs:]:
            print(f"  | {line}")
        self._printed_logs = len(job.logs)
        if job.error:
            print(f"  ! {job.error}")


async def _watch(args: argparse.Namespace) -> int:
    api = ApiClient(base_url=args.base_url)
    async with api, JobSession(
        api=api,
        poll_interval_s=args.interval,
        max_retries=args.retries,
    ) as session:
        session.store.subscribe(_ProgressPrinter())
        try:
            job = await session.run(args.upload_id, simulate=args.simulate)
        except ApiClientError as exc:
            print(f"error: {exc.message} ({exc.code})", file=sys.stderr)
            return 2
        if job is None or job.status != JobStatus.COMPLETED:
            return 1
        try:
            bundle = await session.results()
        except ApiClientError as exc:
            print(f"error: {exc.message} ({exc.code})", file=sys.stderr)
            return 2
        print(json.dumps(bundle.to_wire(), indent=2))
        return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "analysis_client.server.app:app",
        host=args.host,
        port=args.port,
        log_level=settings.LOG_LEVEL.lower(),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="analysis-client", description=__doc__.splitlines()[0])
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    watch = sub.add_parser("watch", help="Create a job and poll it to completion")
    watch.add_argument("upload_id", help="Identifier returned by the upload endpoint")
    watch.add_argument("--base-url", default=settings.API_BASE_URL)
    watch.add_argument("--interval", type=float, default=settings.JOB_POLL_INTERVAL_S, help="Seconds between polls")
    watch.add_argument("--retries", type=int, default=settings.JOB_POLL_MAX_RETRIES, help="Consecutive failures tolerated")
    watch.add_argument("--simulate", action="store_true", help="Ask a demo backend to advance the job")

    serve = sub.add_parser("serve", help="Run the in-memory demo backend")
    serve.add_argument("--host", default=settings.DEMO_HOST)
    serve.add_argument("--port", type=int, default=settings.DEMO_PORT)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    if args.command == "serve":
        return _serve(args)
    return asyncio.run(_watch(args))


if __name__ == "__main__":
    sys.exit(main())
