import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import AssetTypeEnum, CategoryEnum, DEFAULT_RANGE, RangeEnum, SeriesSourceEnum
from app.crud.game_session import game_session as crud_game_session
from app.crud.market_data import asset as crud_asset
from app.crud.performance import portfolio_performance as crud_performance
from app.crud.portfolio import portfolio as crud_portfolio, transaction as crud_transaction
from app.models.game_session import GameSession
from app.models.portfolio import Portfolio
from app.schemas.performance import (
    CategoryMetaSchema,
    CategoryPointSchema,
    CategorySeriesSchema,
    ComputeSummarySchema,
    PerformanceMetaSchema,
    PerformancePointSchema,
    PerformanceSeriesSchema,
)
from app.services.benchmark import apply_noise_clamp, find_clamp_index, to_percent_series
from app.services.ledger import to_day
from app.services.price_history import utc_today
from app.services.ranking import leaderboard_service
from app.services.valuation import DailyValuationEngine, calendar_domain, valuation_engine

logger = logging.getLogger(__name__)

RANGE_DAYS = {
    RangeEnum.ONE_DAY: 1,
    RangeEnum.ONE_WEEK: 7,
    RangeEnum.ONE_MONTH: 30,
    RangeEnum.THREE_MONTHS: 90,
    RangeEnum.SIX_MONTHS: 180,
    RangeEnum.ONE_YEAR: 365,
    RangeEnum.MAX: 5 * 365,
}

PercentSeries = List[Optional[float]]


def parse_range(range_key: Optional[str]) -> RangeEnum:
    if not range_key:
        return DEFAULT_RANGE
    try:
        return RangeEnum(range_key.lower())
    except ValueError:
        allowed = ", ".join(r.value for r in RangeEnum)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid range '{range_key}'. Expected one of: {allowed}"
        )


def range_start(range_enum: RangeEnum, end: date) -> date:
    if range_enum == RangeEnum.YEAR_TO_DATE:
        return date(end.year, 1, 1)
    return end - timedelta(days=RANGE_DAYS[range_enum])


def session_window(session: GameSession, today: date) -> Tuple[date, date]:
    """Session start through the earlier of today and the session end."""
    return to_day(session.start_date), min(today, to_day(session.end_date))


def _float(value) -> Optional[float]:
    return float(value) if value is not None else None


class PerformanceService:
    def __init__(self, engine: Optional[DailyValuationEngine] = None, today: Callable[[], date] = utc_today):
        self.engine = engine or valuation_engine
        self.today = today

    def benchmark_asset(self, db: Session):
        return crud_asset.get_or_create(
            db,
            ticker=settings.BENCHMARK_TICKER,
            name=settings.BENCHMARK_NAME,
            type=AssetTypeEnum.INDEX.value
        )

    async def benchmark_values(self, db: Session, start: date, end: date) -> Dict[date, Decimal]:
        """Benchmark closes in ``[start, end]``, seeded with the last close before ``start``."""
        asset = self.benchmark_asset(db)
        series = (await self.engine.load_price_series(db, [asset], start, end)).get(asset.id)
        if not series:
            return {}

        values = {p.date: p.price for p in series if start <= p.date <= end}
        opening = series.on_or_before(start)
        if opening is not None:
            values.setdefault(start, opening)
        return values

    async def find_leader(self, db: Session, session_id: int) -> Optional[Portfolio]:
        portfolios = crud_portfolio.get_multi_by_session(db, session_id)
        if not portfolios:
            return None
        values = await self.engine.current_values(db, portfolios)
        return max(portfolios, key=lambda p: (values.get(p.id, Decimal("0")), -p.id))

    async def portfolio_values(self, db: Session, portfolio: Portfolio, domain: List[date]) -> Dict[date, Decimal]:
        points = await self.engine.reconstruct_daily_series(db, portfolio.id, domain[0], domain[-1], domain=domain)
        return {p.date: p.total_value for p in points}

    def _stored_rows(self, db: Session, portfolio_id: int, domain: List[date]):
        rows = crud_performance.get_multi_by_portfolio_in_range(db, portfolio_id, domain[0], domain[-1])
        if [r.date for r in rows] != domain:
            return None
        return rows

    def _precomputed_series(
        self,
        db: Session,
        portfolio: Portfolio,
        leader: Optional[Portfolio],
        domain: List[date]
    ) -> Optional[Tuple[PercentSeries, PercentSeries, PercentSeries]]:
        rows = self._stored_rows(db, portfolio.id, domain)
        if rows is None:
            return None

        you = [_float(r.portfolio_percent_change) for r in rows]
        sp500 = [_float(r.sp500_percent_change) for r in rows]
        if leader is None or leader.id == portfolio.id:
            return you, sp500, list(you)

        leader_rows = self._stored_rows(db, leader.id, domain)
        if leader_rows is None:
            return None
        return you, sp500, [_float(r.portfolio_percent_change) for r in leader_rows]

    async def _live_series(
        self,
        db: Session,
        portfolio: Portfolio,
        leader: Optional[Portfolio],
        domain: List[date]
    ) -> Tuple[PercentSeries, PercentSeries, PercentSeries]:
        baseline = portfolio.session.starting_cash
        you = to_percent_series(domain, await self.portfolio_values(db, portfolio, domain), baseline)

        if leader is None or leader.id == portfolio.id:
            leader_pct = list(you)
        else:
            leader_pct = to_percent_series(domain, await self.portfolio_values(db, leader, domain), baseline)

        sp500 = to_percent_series(domain, await self.benchmark_values(db, domain[0], domain[-1]))
        return you, sp500, leader_pct

    async def get_performance_series(
        self,
        db: Session,
        user_id: int,
        range_key: Optional[str] = None
    ) -> PerformanceSeriesSchema:
        range_enum = parse_range(range_key)
        portfolio = crud_portfolio.get_latest_for_user(db, user_id)
        if not portfolio or not portfolio.session:
            return PerformanceSeriesSchema()

        start, end = session_window(portfolio.session, self.today())
        meta = PerformanceMetaSchema(session_id=portfolio.session_id, start_date=start, end_date=end)
        if start > end:
            return PerformanceSeriesSchema(meta=meta)

        domain = calendar_domain(start, end)
        leader = await self.find_leader(db, portfolio.session_id)
        if leader is not None:
            meta.leader_user_id = leader.user_id
            meta.leader_name = leader.user.display_name if leader.user else None

        series = self._precomputed_series(db, portfolio, leader, domain)
        meta.source = SeriesSourceEnum.PRECOMPUTED
        if series is None:
            series = await self._live_series(db, portfolio, leader, domain)
            meta.source = SeriesSourceEnum.LIVE

        you, sp500, leader_pct = apply_noise_clamp(series, find_clamp_index(series[0]))

        window_start = max(start, range_start(range_enum, end))
        points = [
            PerformancePointSchema(date=day, you_pct=you[i], sp500_pct=sp500[i], leader_pct=leader_pct[i])
            for i, day in enumerate(domain)
            if day >= window_start
        ]
        meta.start_date = window_start
        meta.data_points = len(points)
        logger.info(
            f"Performance series for user {user_id}: {len(points)} points ({meta.source.value}, range={range_enum.value})"
        )
        return PerformanceSeriesSchema(points=points, meta=meta)

    async def get_category_series(
        self,
        db: Session,
        user_id: int,
        range_key: Optional[str] = None
    ) -> CategorySeriesSchema:
        range_enum = parse_range(range_key)
        portfolio = crud_portfolio.get_latest_for_user(db, user_id)
        if not portfolio or not portfolio.session:
            return CategorySeriesSchema(meta=CategoryMetaSchema(range=range_enum.value))

        session_start, end = session_window(portfolio.session, self.today())
        start = max(session_start, range_start(range_enum, end))
        meta = CategoryMetaSchema(
            session_id=portfolio.session_id,
            start_date=start,
            end_date=end,
            range=range_enum.value
        )
        if start > end:
            return CategorySeriesSchema(meta=meta)

        daily = await self.engine.reconstruct_daily_series(db, portfolio.id, start, end, by_category=True)
        points = [
            CategoryPointSchema(
                date=p.date,
                stocks=float(p.categories[CategoryEnum.STOCKS]),
                bonds=float(p.categories[CategoryEnum.BONDS]),
                mutual_funds=float(p.categories[CategoryEnum.MUTUAL_FUNDS]),
                cash=float(p.categories[CategoryEnum.CASH]),
                total=float(p.total_value),
            )
            for p in daily
        ]
        meta.data_points = len(points)
        return CategorySeriesSchema(points=points, meta=meta)

    async def compute_and_store_portfolio_performance(
        self,
        db: Session,
        portfolio: Portfolio,
        benchmark: Optional[Dict[date, Decimal]] = None
    ) -> int:
        """Reconstruct the full session series of one portfolio and replace its stored rows."""
        start, end = session_window(portfolio.session, self.today())
        if start > end:
            return 0

        domain = calendar_domain(start, end)
        if benchmark is None:
            benchmark = await self.benchmark_values(db, start, end)

        values = await self.portfolio_values(db, portfolio, domain)
        baseline = portfolio.session.starting_cash
        you = to_percent_series(domain, values, baseline)
        sp500 = to_percent_series(domain, benchmark)

        rows = []
        last_close = None
        for i, day in enumerate(domain):
            last_close = benchmark.get(day, last_close)
            outperformance = round(you[i] - sp500[i], 4) if you[i] is not None and sp500[i] is not None else None
            rows.append({
                "date": day,
                "portfolio_value": values[day],
                "sp500_value": last_close,
                "portfolio_percent_change": you[i] if you[i] is not None else 0.0,
                "sp500_percent_change": sp500[i],
                "outperformance": outperformance,
            })

        return crud_performance.replace_range(db, portfolio.id, start, end, rows)

    async def compute_session_performance(self, db: Session, session: GameSession) -> ComputeSummarySchema:
        summary = ComputeSummarySchema(session_id=session.id)
        portfolios = crud_portfolio.get_multi_by_session(db, session.id)
        start, end = session_window(session, self.today())
        if not portfolios or start > end:
            return summary

        # warm the price cache for every asset traded in the session in one fan-out
        asset_ids = {tx.asset_id for tx in crud_transaction.get_multi_by_portfolios(db, [p.id for p in portfolios])}
        assets: Sequence = crud_asset.get_multi_by_ids(db, asset_ids)
        await self.engine.load_price_series(db, assets, start, end)
        benchmark = await self.benchmark_values(db, start, end)

        for portfolio in portfolios:
            try:
                await self.compute_and_store_portfolio_performance(db, portfolio, benchmark)
                summary.portfolios += 1
            except Exception as e:
                db.rollback()
                summary.failed += 1
                logger.error(f"Performance computation failed for portfolio {portfolio.id}: {e}", exc_info=True)

        logger.info(
            f"Session {session.id}: stored performance for {summary.portfolios} portfolios ({summary.failed} failed)"
        )
        return summary

    async def compute_all_active_sessions(self, db: Session) -> List[ComputeSummarySchema]:
        summaries = []
        for session in crud_game_session.get_multi_active(db):
            summary = await self.compute_session_performance(db, session)
            summary.rankings = await leaderboard_service.compute_and_store_session_rankings(db, session.id)
            summaries.append(summary)
        return summaries

performance_service = PerformanceService()
