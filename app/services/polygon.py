import logging
import httpx
from typing import List, Optional
from datetime import date, datetime, timezone

from app.core.cache import cache
from app.core.config import settings

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when the quote/history provider cannot answer a request."""


class PolygonService:
    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self.base_url = base_url or settings.POLYGON_BASE_URL
        self.api_key = api_key if api_key is not None else settings.POLYGON_API_KEY
        self.timeout = settings.PROVIDER_TIMEOUT_SECONDS

    async def _make_request(self, path: str, params: Optional[dict] = None) -> Optional[dict]:
        if not self.api_key:
            raise ProviderError("POLYGON_API_KEY is not configured")

        full_params = {"apiKey": self.api_key}
        if params:
            full_params.update(params)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(f"{self.base_url}{path}", params=full_params)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 404:
                    return None
                raise ProviderError(f"API error {e.response.status_code}: {e.response.text}") from e
            except httpx.RequestError as e:
                raise ProviderError(f"Network error: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"Malformed response for {path}") from e

    @staticmethod
    def _bar_date(timestamp_ms: int) -> date:
        return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date()

    async def get_historical_prices(self, ticker: str, start: date, end: date) -> List[dict]:
        """Daily bars for ``ticker`` in ``[start, end]``, oldest first."""
        path = f"/v2/aggs/ticker/{ticker}/range/1/day/{start.isoformat()}/{end.isoformat()}"
        data = await self._make_request(path, params={"adjusted": "true", "sort": "asc", "limit": 50000})
        if not data or not data.get("results"):
            return []

        bars = []
        try:
            for result in data["results"]:
                bars.append({
                    "date": self._bar_date(result["t"]),
                    "open": result.get("o"),
                    "high": result.get("h"),
                    "low": result.get("l"),
                    "close": result["c"],
                    "adjusted_close": result["c"],
                    "volume": int(result["v"]) if result.get("v") is not None else None,
                })
        except (KeyError, TypeError) as e:
            raise ProviderError(f"Malformed aggregate bar for {ticker}: {e}") from e
        return bars

    async def get_latest_quote(self, ticker: str, use_cache: bool = True) -> Optional[dict]:
        cache_key = cache.key("quote", ticker)
        if use_cache:
            cached = await cache.get(cache_key)
            if cached:
                return cached

        data = await self._make_request(f"/v2/aggs/ticker/{ticker}/prev", params={"adjusted": "true"})
        if not data or not data.get("results"):
            return None

        result = data["results"][0]
        try:
            quote = {
                "symbol": ticker,
                "price": result["c"],
                "as_of": datetime.fromtimestamp(result["t"] / 1000, tz=timezone.utc).isoformat(),
            }
        except (KeyError, TypeError) as e:
            raise ProviderError(f"Malformed quote for {ticker}: {e}") from e

        await cache.set(cache_key, quote, ttl=60)
        return quote

polygon_service = PolygonService()
