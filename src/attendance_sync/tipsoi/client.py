"""
Async HTTP client for the TIPSOI attendance-log API.

One query operation: fetch every record whose ``criteria`` timestamp falls
inside a time window. Transport failures are classified into the
attendance_sync exception taxonomy at this boundary, so callers never see
raw httpx errors.

Usage:
    async with TipsoiClient(base_url, api_token) as client:
        result = await client.fetch(start, end)
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from attendance_sync.exceptions import (
    RequestError,
    UpstreamError,
    UpstreamTimeout,
    UpstreamUnreachable,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0
DEFAULT_PER_PAGE = 500
USER_AGENT = "TIPSOI-Attendance-Sync/1.0"
TIPSOI_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class FetchResult:
    """Raw upstream batch plus source-side metadata."""

    records: List[Dict[str, Any]] = field(default_factory=list)
    project: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)
    links: Dict[str, Any] = field(default_factory=dict)


def format_datetime(value: datetime) -> str:
    """Format a datetime the way TIPSOI expects (UTC, ``YYYY-MM-DD HH:MM:SS``)."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIPSOI_DATETIME_FORMAT)


class TipsoiClient:
    """
    Thin async wrapper over the TIPSOI logs endpoint.

    Call connect() (or use as an async context manager) to open the pooled
    connection; fetch() opens one lazily if needed.
    """

    def __init__(
        self,
        base_url: str,
        api_token: str,
        per_page: int = DEFAULT_PER_PAGE,
        timeout: float = REQUEST_TIMEOUT,
    ):
        """
        Args:
            base_url: Full URL of the TIPSOI logs endpoint.
            api_token: TIPSOI API token.
            per_page: Page-size hint sent with every query.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url
        self.api_token = api_token
        self.per_page = per_page
        self.timeout = timeout
        self.last_fetch_at: Optional[datetime] = None
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(headers=self.headers, timeout=self.timeout)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "TipsoiClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def build_params(
        self, window_start: datetime, window_end: datetime, criteria: str
    ) -> Dict[str, Any]:
        return {
            "start": format_datetime(window_start),
            "end": format_datetime(window_end),
            "api_token": self.api_token,
            "per_page": self.per_page,
            "criteria": criteria,
        }

    async def fetch(
        self,
        window_start: datetime,
        window_end: datetime,
        criteria: str = "sync_time",
    ) -> FetchResult:
        """
        Fetch raw attendance records for ``[window_start, window_end)``.

        Args:
            window_start: Lower bound of the window.
            window_end: Upper bound of the window.
            criteria: Which upstream timestamp the window applies to
                ("sync_time" or "logged_time").

        Returns:
            FetchResult; ``records`` is empty when the body carries no ``data``.

        Raises:
            UpstreamTimeout: the request exceeded ``timeout``.
            UpstreamError: non-2xx response (or a 2xx body that is not JSON).
            UpstreamUnreachable: no response was received.
            RequestError: the request could not be built or sent.
        """
        if self._client is None:
            await self.connect()

        params = self.build_params(window_start, window_end, criteria)
        logger.info(
            "Fetching attendance data from %s to %s (criteria=%s)",
            params["start"],
            params["end"],
            criteria,
        )

        try:
            response = await self._client.get(self.base_url, params=params)
        except httpx.TimeoutException as exc:
            raise UpstreamTimeout(self.timeout, details=str(exc) or None) from exc
        except httpx.UnsupportedProtocol as exc:
            raise RequestError("Request setup error", details=str(exc)) from exc
        except httpx.TransportError as exc:
            raise UpstreamUnreachable(
                "No response from TIPSOI API - network error", details=str(exc) or None
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            raise RequestError("Request setup error", details=str(exc)) from exc

        if not response.is_success:
            raise UpstreamError(response.status_code, _error_message(response))

        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamError(
                response.status_code, "Response body is not valid JSON"
            ) from exc

        if not isinstance(body, dict):
            body = {}
        self.last_fetch_at = datetime.now(timezone.utc)

        if not body.get("data"):
            if "data" not in body:
                logger.warning("No data field in API response")
            return FetchResult(
                records=[],
                project=body.get("project") or {},
                meta=body.get("meta") or {},
                links=body.get("links") or {},
            )

        logger.info("Fetched %d attendance records", len(body["data"]))
        return FetchResult(
            records=body["data"],
            project=body.get("project") or {},
            meta=body.get("meta") or {},
            links=body.get("links") or {},
        )

    async def test_connection(self) -> Dict[str, Any]:
        """Fetch the last minute of records to prove the API answers. Never raises."""
        window_end = datetime.now(timezone.utc)
        window_start = window_end - timedelta(minutes=1)
        try:
            result = await self.fetch(window_start, window_end)
        except Exception as exc:
            return {
                "success": False,
                "message": str(exc),
                "error": getattr(exc, "kind", type(exc).__name__),
            }
        return {
            "success": True,
            "message": "Connection successful",
            "record_count": len(result.records),
            "project": result.project,
        }

    def get_status(self) -> Dict[str, Any]:
        return {
            "base_url": self.base_url,
            "has_token": bool(self.api_token),
            "per_page": self.per_page,
            "last_fetch_at": self.last_fetch_at,
            "token_preview": f"{self.api_token[:8]}..." if self.api_token else "Not set",
        }


def _error_message(response: httpx.Response) -> str:
    """Prefer the body's ``message`` field; fall back to the reason phrase."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase
