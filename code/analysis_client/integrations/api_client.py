"""Async HTTP transport shared by the job and results clients.

Wraps one ``httpx.AsyncClient`` configured with the backend base URL, a
request timeout and optional bearer credentials. Every request carries an
``X-Request-ID`` header for tracing, and every failure is normalized into the
``analysis_client.errors`` taxonomy so callers never see raw httpx errors.

Usage::

    async with ApiClient() as api:
        data = await api.request("GET", "/jobs/j1", endpoint="jobs.status")
"""
from __future__ import annotations

import time
import uuid
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
import pydantic
import structlog

from analysis_client.config import settings
from analysis_client.errors import (
    ApiClientError,
    NetworkError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from analysis_client.integrations.datadog_metrics import track_api_call

log = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


class ApiClient:
    """Async client for the analysis job backend."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        auth_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.API_TIMEOUT_S
        token = auth_token if auth_token is not None else settings.API_AUTH_TOKEN
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        endpoint: str = "unknown",
    ) -> Any:
        """Send one request and return the decoded JSON body (None when empty).

        Raises ``NetworkError`` when no response arrives, and the status-mapped
        ``ApiClientError`` subclass for any non-2xx response.
        """
        request_id = uuid.uuid4().hex[:8]
        start = time.perf_counter()
        log.debug("api_request", request_id=request_id, method=method, path=path)
        try:
            resp = await self._client.request(
                method,
                path,
                json=json,
                headers={"X-Request-ID": request_id},
            )
        except httpx.TimeoutException as exc:
            track_api_call(endpoint, success=False)
            raise NetworkError(f"Request to {path} timed out", code="TIMEOUT") from exc
        except httpx.TransportError as exc:
            track_api_call(endpoint, success=False)
            raise NetworkError(f"Could not reach the analysis service: {exc}") from exc

        latency_ms = (time.perf_counter() - start) * 1000
        track_api_call(endpoint, success=resp.is_success, latency_ms=latency_ms)
        log.debug("api_response", request_id=request_id, status=resp.status_code)

        if not resp.is_success:
            error = error_from_response(resp)
            log.warning(
                "api_error",
                request_id=request_id,
                path=path,
                status=error.status,
                code=error.code,
                message=error.message,
            )
            raise error

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise ServerError(
                f"Unreadable response from {path}",
                code="BAD_RESPONSE",
                status=resp.status_code,
            ) from exc


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def error_from_response(resp: httpx.Response) -> ApiClientError:
    """Map a non-2xx response to the error taxonomy.

    The message is taken from the body's ``message`` (or FastAPI's ``detail``)
    and falls back to the HTTP reason phrase.
    """
    try:
        body = resp.json()
    except ValueError:
        body = None

    message: Optional[str] = None
    code: Optional[str] = None
    if isinstance(body, dict):
        detail = body.get("detail")
        if isinstance(detail, dict):
            message = detail.get("message")
            code = detail.get("code")
        elif isinstance(detail, str):
            message = detail
        message = body.get("message") or message
        code = body.get("code") or code

    status = resp.status_code
    message = message or resp.reason_phrase or f"HTTP {status}"
    code = code or f"HTTP_{status}"

    if status == 404:
        return NotFoundError(message, code=code, status=status, details=body)
    if 400 <= status < 500:
        return ValidationError(message, code=code, status=status, details=body)
    return ServerError(message, code=code, status=status, details=body)


def parse_model(model: Type[ModelT], data: Any, source: str) -> ModelT:
    """Validate a decoded body against *model*, raising ServerError on mismatch."""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ServerError(
            f"Malformed response from {source}",
            code="BAD_RESPONSE",
            details=exc.errors(include_url=False),
        ) from exc
