from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.core.constants import TransactionTypeEnum
from app.crud.performance import user_ranking as crud_user_ranking
from app.services.ranking import LeaderboardService, RankingCache, RankingEntry, RankingSnapshot, rank_entries
from tests.helpers.factories import add_quote, add_transaction, make_asset, make_portfolio, make_session, make_user


class FakeClock:
    def __init__(self, now=datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(clock):
    return LeaderboardService(ranking_cache=RankingCache(timedelta(hours=24), clock=clock), top_n=20)


def test_equal_returns_are_ordered_by_name():
    entries = [
        RankingEntry(user_id=1, name="Bob", total_portfolio_value=Decimal("110"), return_percent=Decimal("10")),
        RankingEntry(user_id=2, name="Amy", total_portfolio_value=Decimal("95"), return_percent=Decimal("-5")),
        RankingEntry(user_id=3, name="Alice", total_portfolio_value=Decimal("110"), return_percent=Decimal("10")),
    ]

    ranked = rank_entries(entries)

    assert [(e.name, e.rank) for e in ranked] == [("Alice", 1), ("Bob", 2), ("Amy", 3)]


def test_name_tie_break_is_case_insensitive():
    entries = [
        RankingEntry(user_id=1, name="bob", total_portfolio_value=Decimal("0"), return_percent=Decimal("0")),
        RankingEntry(user_id=2, name="Alice", total_portfolio_value=Decimal("0"), return_percent=Decimal("0")),
    ]
    assert [e.name for e in rank_entries(entries)] == ["Alice", "bob"]


def test_cache_freshness_window(db_session, clock):
    session = make_session(db_session)
    user = make_user(db_session, "Alice")
    cache = RankingCache(timedelta(hours=24), clock=clock)
    entry = RankingEntry(user_id=user.id, name="Alice", total_portfolio_value=Decimal("100000"), return_percent=Decimal("0"), rank=1)

    assert cache.get_fresh(db_session, session.id) is None
    assert cache.store(db_session, RankingSnapshot(session.id, [entry], clock()))

    clock.advance(hours=24)
    snapshot = cache.get_fresh(db_session, session.id)
    assert snapshot is not None
    assert snapshot.calculated_at == datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)
    assert snapshot.entries[0].name == "Alice"

    clock.advance(seconds=1)
    assert cache.get_fresh(db_session, session.id) is None


@pytest.mark.asyncio
async def test_rankings_aggregate_per_user(db_session, service):
    session = make_session(db_session, starting_cash=1000)
    alice, bob = make_user(db_session, "Alice"), make_user(db_session, "Bob")
    asset = make_asset(db_session, "ACME")
    add_quote(db_session, asset, 15)

    first = make_portfolio(db_session, alice, session, cash_balance=0)
    add_transaction(db_session, first, asset, TransactionTypeEnum.BUY, 100, 1000, datetime(2024, 1, 2))
    make_portfolio(db_session, alice, session, cash_balance=1000)
    make_portfolio(db_session, bob, session, cash_balance=900)

    result = await service.get_rankings(db_session, session.id, current_user_id=bob.id)

    assert [(u.name, u.rank, u.return_percent) for u in result.top_users] == [("Alice", 1, 25.0), ("Bob", 2, -10.0)]
    assert result.top_users[0].total_portfolio_value == 2500.0
    assert result.current_user.rank == 2
    assert result.current_user.total_users == 2
    assert result.top_users[1].is_current_user
    assert result.meta.starting_cash == 1000.0
    assert result.meta.is_cached is False


@pytest.mark.asyncio
async def test_consecutive_calls_share_calculated_at(db_session, service, clock):
    session = make_session(db_session)
    user = make_user(db_session, "Alice")
    make_portfolio(db_session, user, session)

    first = await service.get_rankings(db_session, session.id, user.id)
    clock.advance(hours=1)
    second = await service.get_rankings(db_session, session.id, user.id)

    assert second.meta.is_cached is True
    assert second.meta.calculated_at == first.meta.calculated_at

    clock.advance(minutes=5)
    forced = await service.get_rankings(db_session, session.id, user.id, force_fresh=True)
    assert forced.meta.is_cached is False
    assert forced.meta.calculated_at > first.meta.calculated_at


@pytest.mark.asyncio
async def test_empty_session_snapshot_is_cached(db_session, service, clock):
    session = make_session(db_session)

    first = await service.get_rankings(db_session, session.id)
    clock.advance(hours=1)
    second = await service.get_rankings(db_session, session.id)

    assert first.top_users == []
    assert second.meta.is_cached is True
    assert second.meta.calculated_at == first.meta.calculated_at
    assert second.meta.total_active_users == 0


@pytest.mark.asyncio
async def test_stale_snapshot_is_recomputed(db_session, service, clock):
    session = make_session(db_session)
    make_portfolio(db_session, make_user(db_session, "Alice"), session)

    first = await service.get_rankings(db_session, session.id)
    clock.advance(hours=25)
    second = await service.get_rankings(db_session, session.id)

    assert second.meta.is_cached is False
    assert second.meta.calculated_at == first.meta.calculated_at + timedelta(hours=25)


@pytest.mark.asyncio
async def test_persistence_failure_does_not_fail_the_read(db_session, service):
    session = make_session(db_session)
    user = make_user(db_session, "Alice")
    make_portfolio(db_session, user, session)

    with patch.object(crud_user_ranking, "replace_for_session", side_effect=SQLAlchemyError("disk full")):
        result = await service.get_rankings(db_session, session.id, user.id)

    assert result.current_user.rank == 1
    assert crud_user_ranking.get_multi_by_session(db_session, session.id) == []


@pytest.mark.asyncio
async def test_missing_session_returns_empty_rankings(db_session, service):
    result = await service.get_rankings(db_session, session_id=999, current_user_id=1)

    assert result.top_users == []
    assert result.current_user is None
    assert result.meta.total_active_users == 0


@pytest.mark.asyncio
async def test_top_users_are_capped(db_session, clock):
    service = LeaderboardService(ranking_cache=RankingCache(timedelta(hours=24), clock=clock), top_n=2)
    session = make_session(db_session)
    for name in ["Ann", "Ben", "Cat"]:
        make_portfolio(db_session, make_user(db_session, name), session)

    result = await service.get_rankings(db_session, session.id)

    assert len(result.top_users) == 2
    assert result.meta.total_active_users == 3


@pytest.mark.asyncio
async def test_compute_and_store_session_rankings(db_session, service):
    session = make_session(db_session)
    make_portfolio(db_session, make_user(db_session, "Alice"), session)
    make_portfolio(db_session, make_user(db_session, "Bob"), session)

    assert await service.compute_and_store_session_rankings(db_session, session.id) == 2
    assert [r.rank for r in crud_user_ranking.get_multi_by_session(db_session, session.id)] == [1, 2]
