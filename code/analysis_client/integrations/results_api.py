"""Results endpoint of the analysis service."""
from __future__ import annotations

from typing import Optional
from urllib.parse import quote

import structlog

from analysis_client.integrations.api_client import ApiClient, parse_model
from analysis_client.models.results import ResultBundle

log = structlog.get_logger(__name__)


class ResultsClient:
    """Client for ``/results``. Safe to call repeatedly for the same job."""

    def __init__(self, api: Optional[ApiClient] = None) -> None:
        self.api = api or ApiClient()

    async def get_results(self, job_id: str) -> ResultBundle:
        """Fetch the final result bundle of a completed job."""
        data = await self.api.request("GET", f"/results/{quote(job_id, safe='')}", endpoint="results.get")
        bundle = parse_model(ResultBundle, data, f"GET /results/{job_id}")
        log.info(
            "results_fetched",
            job_id=job_id,
            phases=len(bundle.phases),
            trajectory_points=len(bundle.trajectory),
            interventions=len(bundle.interventions),
        )
        return bundle
