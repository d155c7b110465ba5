"""
Session leaderboard.

Rankings are computed from the latest cached quote per asset, never from the
daily series, and persisted to ``user_rankings`` as the session's snapshot.
A snapshot younger than the freshness window is served as-is; anything older,
missing, or explicitly bypassed triggers a recompute. Concurrent recomputes
for one session simply overwrite each other.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.crud.game_session import game_session as crud_game_session
from app.crud.performance import user_ranking as crud_user_ranking
from app.crud.portfolio import portfolio as crud_portfolio
from app.models.game_session import GameSession
from app.schemas.ranking import CurrentUserRankingSchema, RankingMetaSchema, RankingsSchema, TopUserSchema
from app.services.ledger import to_decimal
from app.services.price_history import as_utc
from app.services.valuation import DailyValuationEngine, quantize_money, valuation_engine

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RankingEntry:
    user_id: int
    name: str
    total_portfolio_value: Decimal
    return_percent: Decimal
    rank: int = 0


@dataclass
class RankingSnapshot:
    session_id: int
    entries: List[RankingEntry]
    calculated_at: datetime


def rank_entries(entries: List[RankingEntry]) -> List[RankingEntry]:
    """Sort by return descending, then name ascending (case-insensitive), and number from 1."""
    ordered = sorted(entries, key=lambda e: (-e.return_percent, e.name.lower(), e.name))
    for index, entry in enumerate(ordered, start=1):
        entry.rank = index
    return ordered


class RankingCache:
    def __init__(
        self,
        freshness_window: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.freshness_window = freshness_window or timedelta(hours=settings.RANKING_FRESHNESS_HOURS)
        self.clock = clock

    def get(self, db: Session, session_id: int) -> Optional[RankingSnapshot]:
        calculated_at = crud_user_ranking.get_calculated_at(db, session_id)
        if calculated_at is None:
            return None

        entries = [
            RankingEntry(
                user_id=row.user_id,
                name=row.user.display_name if row.user else str(row.user_id),
                total_portfolio_value=to_decimal(row.total_portfolio_value),
                return_percent=to_decimal(row.return_percent),
                rank=row.rank,
            )
            for row in crud_user_ranking.get_multi_by_session(db, session_id)
        ]
        return RankingSnapshot(session_id=session_id, entries=entries, calculated_at=as_utc(calculated_at))

    def is_fresh(self, snapshot: RankingSnapshot) -> bool:
        return self.clock() - snapshot.calculated_at <= self.freshness_window

    def get_fresh(self, db: Session, session_id: int) -> Optional[RankingSnapshot]:
        snapshot = self.get(db, session_id)
        if snapshot and self.is_fresh(snapshot):
            return snapshot
        return None

    def store(self, db: Session, snapshot: RankingSnapshot) -> bool:
        rows = [
            {
                "user_id": e.user_id,
                "rank": e.rank,
                "total_portfolio_value": e.total_portfolio_value,
                "return_percent": e.return_percent,
            }
            for e in snapshot.entries
        ]
        try:
            crud_user_ranking.replace_for_session(db, snapshot.session_id, rows, snapshot.calculated_at)
            return True
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to persist rankings for session {snapshot.session_id}: {e}")
            return False


class LeaderboardService:
    def __init__(
        self,
        engine: Optional[DailyValuationEngine] = None,
        ranking_cache: Optional[RankingCache] = None,
        top_n: Optional[int] = None
    ):
        self.engine = engine or valuation_engine
        self.cache = ranking_cache or RankingCache()
        self.top_n = top_n or settings.RANKING_TOP_N

    async def recompute(self, db: Session, session: GameSession) -> RankingSnapshot:
        portfolios = crud_portfolio.get_multi_by_session(db, session.id)
        values = await self.engine.current_values(db, portfolios)

        totals: Dict[int, Decimal] = defaultdict(Decimal)
        counts: Dict[int, int] = defaultdict(int)
        names: Dict[int, str] = {}
        for p in portfolios:
            totals[p.user_id] += values.get(p.id, Decimal("0"))
            counts[p.user_id] += 1
            names[p.user_id] = p.user.display_name if p.user else str(p.user_id)

        starting_cash = to_decimal(session.starting_cash)
        entries = []
        for user_id, total in totals.items():
            base = starting_cash * max(1, counts[user_id])
            return_percent = (total / base - 1) * 100 if base else Decimal("0")
            entries.append(RankingEntry(
                user_id=user_id,
                name=names[user_id],
                total_portfolio_value=quantize_money(total),
                return_percent=return_percent.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
            ))

        return RankingSnapshot(session_id=session.id, entries=rank_entries(entries), calculated_at=self.cache.clock())

    async def get_rankings(
        self,
        db: Session,
        session_id: Optional[int] = None,
        current_user_id: Optional[int] = None,
        force_fresh: bool = False
    ) -> RankingsSchema:
        session = crud_game_session.get(db, id=session_id) if session_id else crud_game_session.get_active(db)
        if not session:
            return RankingsSchema(meta=RankingMetaSchema(session_id=session_id))

        snapshot = None if force_fresh else self.cache.get_fresh(db, session.id)
        is_cached = snapshot is not None
        if snapshot is None:
            snapshot = await self.recompute(db, session)
            self.cache.store(db, snapshot)
            logger.info(f"Recomputed rankings for session {session.id}: {len(snapshot.entries)} users")

        entries = snapshot.entries
        current = next((e for e in entries if e.user_id == current_user_id), None)
        current_user = CurrentUserRankingSchema(total_users=len(entries))
        if current:
            current_user.rank = current.rank
            current_user.total_portfolio_value = float(current.total_portfolio_value)
            current_user.return_percent = float(current.return_percent)
            current_user.name = current.name

        return RankingsSchema(
            current_user=current_user,
            top_users=[
                TopUserSchema(
                    rank=e.rank,
                    user_id=e.user_id,
                    name=e.name,
                    total_portfolio_value=float(e.total_portfolio_value),
                    return_percent=float(e.return_percent),
                    is_current_user=e.user_id == current_user_id,
                )
                for e in entries[:self.top_n]
            ],
            meta=RankingMetaSchema(
                total_active_users=len(entries),
                calculated_at=snapshot.calculated_at,
                session_id=session.id,
                starting_cash=float(session.starting_cash),
                is_cached=is_cached,
            ),
        )

    async def compute_and_store_session_rankings(self, db: Session, session_id: int) -> int:
        session = crud_game_session.get(db, id=session_id)
        if not session:
            return 0
        snapshot = await self.recompute(db, session)
        if not self.cache.store(db, snapshot):
            return 0
        return len(snapshot.entries)

leaderboard_service = LeaderboardService()
