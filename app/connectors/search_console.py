"""
Google Search Console analytics connector

Queries the Search Analytics API with a per-user OAuth access token.
Rows come back with positional keys matching the requested dimensions.
"""
import httpx
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import quote

from app.config import get_settings
from app.errors import ProviderError
from app.utils.logger import log

settings = get_settings()

VALID_DIMENSIONS = ("query", "page", "country", "device", "searchAppearance")
MAX_DIMENSIONS = 2


@dataclass(frozen=True)
class MetricRow:
    """One Search Analytics row; dimension_keys follow the requested dimension order"""
    dimension_keys: Tuple[str, ...]
    clicks: int
    impressions: int
    ctr: float  # Decimal 0-1
    position: float

    def key(self, index: int = 0) -> str:
        """Dimension value at index, or empty string when absent"""
        if index < len(self.dimension_keys):
            return self.dimension_keys[index]
        return ""

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "MetricRow":
        return cls(
            dimension_keys=tuple(row.get("keys") or ()),
            clicks=int(row.get("clicks", 0)),
            impressions=int(row.get("impressions", 0)),
            ctr=float(row.get("ctr", 0)),
            position=float(row.get("position", 0)),
        )


def _format_date(value: Union[date, str]) -> str:
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    return value


@dataclass
class SearchAnalyticsQuery:
    """Request options for a single Search Analytics call"""
    start_date: Union[date, str]
    end_date: Union[date, str]
    dimensions: Sequence[str] = field(default_factory=lambda: ["query"])
    row_limit: int = 100
    start_row: int = 0

    def to_body(self, max_row_limit: int) -> Dict[str, Any]:
        """
        Validate and build the API request body.

        row_limit is clamped to the provider ceiling; rows beyond it are
        only reachable through start_row.
        """
        dimensions = list(self.dimensions) or ["query"]
        if len(dimensions) > MAX_DIMENSIONS:
            raise ValueError(f"At most {MAX_DIMENSIONS} dimensions are supported, got {dimensions}")
        unknown = [d for d in dimensions if d not in VALID_DIMENSIONS]
        if unknown:
            raise ValueError(f"Unsupported dimensions: {', '.join(unknown)}")
        if self.row_limit < 1:
            raise ValueError("row_limit must be positive")
        if self.start_row < 0:
            raise ValueError("start_row must not be negative")

        return {
            "startDate": _format_date(self.start_date),
            "endDate": _format_date(self.end_date),
            "dimensions": dimensions,
            "rowLimit": min(self.row_limit, max_row_limit),
            "startRow": self.start_row,
        }


class SearchConsoleClient:
    """Client for the Search Console webmasters v3 API"""

    def __init__(
        self,
        api_base: Optional[str] = None,
        max_row_limit: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = (api_base or settings.search_console_api_base).rstrip("/")
        self.max_row_limit = max_row_limit or settings.gsc_max_row_limit
        self.timeout = timeout or settings.request_timeout_seconds
        self._transport = transport

    async def query(
        self,
        access_token: str,
        site_url: str,
        request: SearchAnalyticsQuery,
    ) -> List[MetricRow]:
        """
        Run one Search Analytics query.

        Does not paginate: a single page of at most max_row_limit rows is
        returned.

        Raises:
            ProviderError: any non-2xx response, carrying the raw body
        """
        body = request.to_body(self.max_row_limit)
        url = f"{self.api_base}/sites/{quote(site_url, safe='')}/searchAnalytics/query"

        payload = await self._request("POST", url, access_token, json=body)
        rows = [MetricRow.from_api(r) for r in payload.get("rows", [])]

        log.info(
            f"Fetched {len(rows)} Search Console rows for {site_url} "
            f"({body['startDate']} to {body['endDate']}, dimensions={body['dimensions']})"
        )
        return rows

    async def list_sites(self, access_token: str) -> List[Dict[str, str]]:
        """Sites the token holder can read"""
        payload = await self._request("GET", f"{self.api_base}/sites", access_token)
        return [
            {"site_url": s.get("siteUrl"), "permission_level": s.get("permissionLevel")}
            for s in payload.get("siteEntry", [])
        ]

    async def _request(self, method: str, url: str, access_token: str, **kwargs) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {access_token}"}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.request(method, url, headers=headers, **kwargs)

        if response.status_code >= 300:
            log.error(f"Search Console API error: {response.status_code} - {response.text[:300]}")
            raise ProviderError("Search Console", response.status_code, response.text)

        if not response.content:
            return {}
        return response.json()
