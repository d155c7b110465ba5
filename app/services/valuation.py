import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.constants import ASSET_TYPE_CATEGORIES, CategoryEnum
from app.crud.market_data import asset as crud_asset
from app.crud.portfolio import portfolio as crud_portfolio, transaction as crud_transaction
from app.services.ledger import LedgerReplay, to_decimal
from app.services.price_history import PriceHistoryResolver, PriceSeries, price_history_resolver

logger = logging.getLogger(__name__)

MONEY = Decimal("0.01")
HOLDING_CATEGORIES = (CategoryEnum.STOCKS, CategoryEnum.BONDS, CategoryEnum.MUTUAL_FUNDS)


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY, rounding=ROUND_HALF_UP)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max)


def calendar_domain(start: date, end: date) -> List[date]:
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def trading_day_domain(series_by_asset: Mapping[int, PriceSeries], start: date, end: date) -> List[date]:
    """Union of days on which any held asset has a price; the full calendar if none do."""
    days = set()
    for series in series_by_asset.values():
        days.update(series.dates_between(start, end))
    if not days:
        return calendar_domain(start, end)
    return sorted(days)


def category_for(asset) -> CategoryEnum:
    category = ASSET_TYPE_CATEGORIES.get((asset.type or "").upper())
    if category is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Asset {asset.ticker} has type '{asset.type}' which maps to no portfolio category"
        )
    return category


@dataclass
class DailyValuePoint:
    date: date
    total_value: Decimal
    cash: Decimal
    categories: Dict[CategoryEnum, Decimal] = field(default_factory=dict)


def resolve_price(series: Optional[PriceSeries], ledger: LedgerReplay, asset_id: int, day: date) -> Optional[Decimal]:
    # carry forward, then last trade's implied price, then carry backward
    price = series.on_or_before(day) if series else None
    if price is None:
        price = ledger.last_unit_price(asset_id)
    if price is None and series:
        price = series.earliest()
    return price


def value_series(
    transactions: Sequence,
    starting_cash,
    series_by_asset: Mapping[int, PriceSeries],
    domain: Iterable[date],
    categories: Optional[Mapping[int, CategoryEnum]] = None
) -> List[DailyValuePoint]:
    """Walk ``domain`` in order, valuing cash plus holdings at each day's close."""
    ledger = LedgerReplay(transactions, starting_cash)
    unpriced = set()
    points: List[DailyValuePoint] = []

    for day in sorted(domain):
        ledger.advance_to(day)
        holdings_value = Decimal("0")
        by_category = {category: Decimal("0") for category in HOLDING_CATEGORIES}

        for asset_id, quantity in ledger.held().items():
            price = resolve_price(series_by_asset.get(asset_id), ledger, asset_id, day)
            if price is None:
                if asset_id not in unpriced:
                    logger.warning(f"No price data for asset {asset_id}; valuing holding at 0")
                    unpriced.add(asset_id)
                continue

            value = quantity * price
            holdings_value += value
            if categories is not None:
                by_category[categories[asset_id]] += value

        point = DailyValuePoint(
            date=day,
            total_value=quantize_money(ledger.cash + holdings_value),
            cash=quantize_money(ledger.cash),
        )
        if categories is not None:
            point.categories = {category: quantize_money(v) for category, v in by_category.items()}
            point.categories[CategoryEnum.CASH] = point.cash
        points.append(point)

    return points


def current_value(cash_balance, transactions: Sequence, prices: Mapping[int, Decimal]) -> Decimal:
    """Live cash plus ledger quantities priced at the latest cached quote (0 when unpriced)."""
    ledger = LedgerReplay(transactions, 0)
    ledger.advance_to(date.max)
    total = to_decimal(cash_balance)
    for asset_id, quantity in ledger.held().items():
        total += quantity * prices.get(asset_id, Decimal("0"))
    return total


class DailyValuationEngine:
    def __init__(self, resolver: Optional[PriceHistoryResolver] = None, lookback_days: int = 7):
        self.resolver = resolver or price_history_resolver
        self.lookback_days = lookback_days

    async def load_price_series(self, db: Session, assets: Sequence, start: date, end: date) -> Dict[int, PriceSeries]:
        history_start = start - timedelta(days=self.lookback_days)
        await self.resolver.ensure_ranges(db, assets, history_start, end)
        return self.resolver.get_series(db, [a.id for a in assets], history_start, end)

    async def reconstruct_daily_series(
        self,
        db: Session,
        portfolio_id: int,
        start: date,
        end: date,
        domain: Optional[List[date]] = None,
        by_category: bool = False
    ) -> List[DailyValuePoint]:
        if start > end:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="start date must not be after end date"
            )

        portfolio = crud_portfolio.get(db, id=portfolio_id)
        if not portfolio:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Portfolio not found"
            )

        starting_cash = portfolio.session.starting_cash if portfolio.session else portfolio.cash_balance
        transactions = crud_transaction.get_multi_by_portfolio_up_to(db, portfolio_id, end_of_day(end))
        assets = {tx.asset_id: tx.asset for tx in transactions}
        categories = {asset_id: category_for(a) for asset_id, a in assets.items()} if by_category else None

        series = await self.load_price_series(db, list(assets.values()), start, end)
        if domain is None:
            domain = trading_day_domain(series, start, end)

        return value_series(transactions, starting_cash, series, domain, categories)

    async def current_values(self, db: Session, portfolios: Sequence) -> Dict[int, Decimal]:
        """Latest value of each portfolio: live cash plus holdings at the latest cached quote."""
        if not portfolios:
            return {}

        by_portfolio: Dict[int, list] = {p.id: [] for p in portfolios}
        for tx in crud_transaction.get_multi_by_portfolios(db, by_portfolio.keys()):
            by_portfolio[tx.portfolio_id].append(tx)

        asset_ids = {tx.asset_id for txs in by_portfolio.values() for tx in txs}
        prices = await self.resolver.latest_prices(db, crud_asset.get_multi_by_ids(db, asset_ids))

        return {
            p.id: current_value(p.cash_balance, by_portfolio[p.id], prices)
            for p in portfolios
        }

valuation_engine = DailyValuationEngine()
