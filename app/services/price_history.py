"""
Daily close-price history per asset.

Prices are synchronized from the quote provider into ``daily_prices`` on
demand and always read back from the database, so valuation keeps working
on whatever is cached when the provider is slow, rate-limited or down.
Missing days are never interpolated: callers carry the last known price
forward, or carry the earliest known price backward.
"""
import asyncio
import logging
from bisect import bisect_right
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.crud.market_data import asset_quote_cache as crud_quote_cache, daily_price as crud_daily_price
from app.models.market_data import Asset
from app.services.polygon import ProviderError, polygon_service

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def as_utc(value: datetime) -> datetime:
    # sqlite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def weekend_only(start: date, end: date) -> bool:
    """True when every day in ``[start, end]`` is a Saturday or Sunday."""
    day = start
    while day <= end:
        if day.weekday() < 5:
            return False
        day += timedelta(days=1)
    return True


@dataclass(frozen=True)
class PricePoint:
    date: date
    price: Decimal


class PriceSeries:
    """Sorted daily prices of one asset with O(log n) carry-forward lookup."""

    def __init__(self, points: Iterable[PricePoint] = ()):
        self._points: List[PricePoint] = sorted(points, key=lambda p: p.date)
        self._dates: List[date] = [p.date for p in self._points]

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self):
        return iter(self._points)

    def on_or_before(self, day: date) -> Optional[Decimal]:
        index = bisect_right(self._dates, day)
        if index == 0:
            return None
        return self._points[index - 1].price

    def earliest(self) -> Optional[Decimal]:
        return self._points[0].price if self._points else None

    def dates_between(self, start: date, end: date) -> List[date]:
        return [d for d in self._dates if start <= d <= end]


class PriceHistoryResolver:
    def __init__(
        self,
        provider=None,
        concurrency: Optional[int] = None,
        max_backfill_days: Optional[int] = None,
        today: Callable[[], date] = utc_today
    ):
        self.provider = provider or polygon_service
        self.concurrency = concurrency or settings.PROVIDER_CONCURRENCY
        self.max_backfill_days = max_backfill_days or settings.MAX_BACKFILL_DAYS
        self.today = today

    def _sync_window(self, db: Session, asset_id: int, start: date, end: date) -> Optional[tuple]:
        end = min(end, self.today())
        if start > end:
            return None

        earliest, latest = crud_daily_price.get_date_bounds_in_range(db, asset_id, start, end)
        if earliest is not None:
            missing_head = earliest > start and not weekend_only(start, earliest - timedelta(days=1))
            missing_tail = latest < end
            if not missing_head and not missing_tail:
                return None
            if not missing_head:
                start = latest + timedelta(days=1)
            if not missing_tail:
                end = earliest - timedelta(days=1)

        if (end - start).days + 1 > self.max_backfill_days:
            start = end - timedelta(days=self.max_backfill_days - 1)
        return start, end

    async def _fetch_history(self, asset: Asset, window: tuple, semaphore: asyncio.Semaphore) -> List[dict]:
        async with semaphore:
            return await self.provider.get_historical_prices(asset.ticker, window[0], window[1])

    async def ensure_ranges(self, db: Session, assets: Sequence[Asset], start: date, end: date) -> Dict[int, int]:
        """Backfill every asset's gaps in ``[start, end]`` concurrently.

        Returns the number of rows written per asset id. Provider failures
        are logged per asset and never raised.
        """
        windows = {}
        for asset in {a.id: a for a in assets}.values():
            window = self._sync_window(db, asset.id, start, end)
            if window:
                windows[asset.id] = (asset, window)

        if not windows:
            return {}

        semaphore = asyncio.Semaphore(self.concurrency)
        pending = list(windows.values())
        results = await asyncio.gather(
            *[self._fetch_history(asset, window, semaphore) for asset, window in pending],
            return_exceptions=True
        )

        written: Dict[int, int] = {}
        for (asset, window), result in zip(pending, results):
            if isinstance(result, ProviderError):
                logger.warning(f"Price history unavailable for {asset.ticker} {window[0]}..{window[1]}: {result}")
                continue
            if isinstance(result, Exception):
                logger.error(f"Unexpected error syncing {asset.ticker}: {result}", exc_info=result)
                continue

            rows = [row for row in result if window[0] <= row["date"] <= window[1] and row.get("close")]
            written[asset.id] = crud_daily_price.upsert_many(db, asset.id, rows)

        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to persist price history: {e}")
            return {}

        synced = sum(written.values())
        if synced:
            logger.info(f"Synced {synced} daily prices across {len(written)} assets")
        return written

    async def ensure_range(self, db: Session, asset: Asset, start: date, end: date) -> int:
        written = await self.ensure_ranges(db, [asset], start, end)
        return written.get(asset.id, 0)

    def get_range(self, db: Session, asset_id: int, start: date, end: date) -> List[PricePoint]:
        points = []
        for row in crud_daily_price.get_range(db, asset_id, start, end):
            raw = row.close if row.close is not None else row.adjusted_close
            if not raw:
                continue
            points.append(PricePoint(date=row.date, price=Decimal(str(raw))))
        return points

    def get_series(self, db: Session, asset_ids: Iterable[int], start: date, end: date) -> Dict[int, PriceSeries]:
        return {
            asset_id: PriceSeries(self.get_range(db, asset_id, start, end))
            for asset_id in set(asset_ids)
        }

    async def _fetch_quote(self, asset: Asset, semaphore: asyncio.Semaphore) -> Optional[dict]:
        async with semaphore:
            return await self.provider.get_latest_quote(asset.ticker)

    async def latest_prices(
        self,
        db: Session,
        assets: Sequence[Asset],
        refresh_missing: bool = True
    ) -> Dict[int, Decimal]:
        """Latest quote per asset from the cache.

        Missing or expired quotes are refetched best-effort; an expired quote
        that cannot be refreshed is still served rather than dropped.
        """
        by_id = {a.id: a for a in assets}
        now = datetime.now(timezone.utc)
        prices: Dict[int, Decimal] = {}
        stale = set()
        for q in crud_quote_cache.get_multi_by_asset_ids(db, by_id.keys()):
            prices[q.asset_id] = Decimal(str(q.price))
            if q.expires_at is None or as_utc(q.expires_at) <= now:
                stale.add(q.asset_id)

        refresh = [a for asset_id, a in by_id.items() if asset_id not in prices or asset_id in stale]
        if not refresh or not refresh_missing:
            return prices

        semaphore = asyncio.Semaphore(self.concurrency)
        results = await asyncio.gather(
            *[self._fetch_quote(a, semaphore) for a in refresh],
            return_exceptions=True
        )

        expires_at = now + timedelta(seconds=settings.QUOTE_CACHE_TTL_SECONDS)
        for asset, quote in zip(refresh, results):
            if isinstance(quote, Exception):
                logger.warning(f"Latest quote unavailable for {asset.ticker}: {quote}")
                continue
            if not quote or quote.get("price") is None:
                continue

            price = Decimal(str(quote["price"]))
            as_of = datetime.fromisoformat(quote["as_of"]) if quote.get("as_of") else now
            prices[asset.id] = price
            crud_quote_cache.upsert(db, asset_id=asset.id, price=price, as_of=as_of, expires_at=expires_at)

        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to persist quote cache: {e}")
        return prices

price_history_resolver = PriceHistoryResolver()
