from datetime import date, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from app.core.constants import CategoryEnum, TransactionTypeEnum
from app.services.benchmark import to_percent_series
from app.services.price_history import PricePoint, PriceSeries
from app.services.valuation import (
    calendar_domain,
    current_value,
    trading_day_domain,
    valuation_engine,
    value_series,
)
from tests.helpers.factories import add_prices, add_transaction, make_asset, make_portfolio, make_session, make_user

START = date(2024, 1, 1)
END = date(2024, 1, 10)


def day(n):
    return START + timedelta(days=n - 1)


def buy(quantity, total, when, asset_id=1):
    return SimpleNamespace(asset_id=asset_id, type=TransactionTypeEnum.BUY, quantity=quantity, total=total, date=when)


def test_trading_day_domain_is_union_of_priced_days():
    series = {
        1: PriceSeries([PricePoint(day(2), Decimal("1")), PricePoint(day(4), Decimal("1"))]),
        2: PriceSeries([PricePoint(day(4), Decimal("1")), PricePoint(day(12), Decimal("1"))]),
    }
    assert trading_day_domain(series, START, END) == [day(2), day(4)]


def test_trading_day_domain_falls_back_to_calendar():
    assert trading_day_domain({}, START, day(3)) == calendar_domain(START, day(3))
    assert trading_day_domain({1: PriceSeries()}, START, day(3)) == [day(1), day(2), day(3)]


def test_carry_forward_between_price_points():
    series = {1: PriceSeries([PricePoint(day(1), Decimal("10")), PricePoint(day(5), Decimal("20"))])}
    points = value_series([buy(10, 100, datetime(2024, 1, 1, 10))], 100000, series, calendar_domain(START, day(5)))

    assert [p.total_value for p in points] == [
        Decimal("100000.00"),
        Decimal("100000.00"),
        Decimal("100000.00"),
        Decimal("100000.00"),
        Decimal("100100.00"),
    ]


def test_implied_trade_price_used_before_first_price():
    series = {1: PriceSeries([PricePoint(day(3), Decimal("12"))])}
    points = value_series([buy(10, 100, datetime(2024, 1, 1))], 1000, series, calendar_domain(START, day(3)))

    assert [p.total_value for p in points] == [Decimal("1000.00"), Decimal("1000.00"), Decimal("1020.00")]


def test_earliest_price_carried_backward_when_no_trade_price():
    # a negative SELL leaves a long position with no usable trade price
    transactions = [SimpleNamespace(asset_id=1, type="SELL", quantity=-5, total=0, date=datetime(2024, 1, 1))]
    series = {1: PriceSeries([PricePoint(day(3), Decimal("4"))])}

    points = value_series(transactions, 0, series, [day(1), day(3)])

    assert [p.total_value for p in points] == [Decimal("20.00"), Decimal("20.00")]


def test_unpriced_holding_contributes_zero():
    transactions = [SimpleNamespace(asset_id=9, type="SELL", quantity=-3, total=0, date=datetime(2024, 1, 1))]

    points = value_series(transactions, 500, {}, [day(1), day(2)])

    assert [p.total_value for p in points] == [Decimal("500.00"), Decimal("500.00")]


def test_current_value_uses_live_cash_and_latest_quotes():
    transactions = [buy(10, 100, datetime(2024, 1, 1), asset_id=1), buy(5, 50, datetime(2024, 1, 2), asset_id=2)]
    total = current_value(Decimal("850"), transactions, {1: Decimal("12")})
    assert total == Decimal("970")


@pytest.mark.asyncio
async def test_portfolio_without_transactions_is_flat_at_starting_cash(db_session):
    session = make_session(db_session, starting_cash=100000)
    portfolio = make_portfolio(db_session, make_user(db_session), session)

    points = await valuation_engine.reconstruct_daily_series(db_session, portfolio.id, START, END)

    assert [p.date for p in points] == calendar_domain(START, END)
    assert all(p.total_value == Decimal("100000.00") for p in points)


@pytest.mark.asyncio
async def test_end_to_end_buy_and_hold(db_session):
    session = make_session(db_session, starting_cash=100000)
    portfolio = make_portfolio(db_session, make_user(db_session), session, cash_balance=95000)
    asset = make_asset(db_session, "ACME")
    add_transaction(db_session, portfolio, asset, TransactionTypeEnum.BUY, 100, 5000, day(1))
    add_prices(db_session, asset, {day(10): 55})

    domain = calendar_domain(START, END)
    points = await valuation_engine.reconstruct_daily_series(db_session, portfolio.id, START, END, domain=domain)
    values = {p.date: p.total_value for p in points}

    assert values[day(1)] == Decimal("100000.00")
    assert values[day(5)] == Decimal("100000.00")
    assert values[day(10)] == Decimal("100500.00")
    assert to_percent_series(domain, values, session.starting_cash)[-1] == 0.5


@pytest.mark.asyncio
async def test_transactions_after_end_are_ignored(db_session):
    session = make_session(db_session)
    portfolio = make_portfolio(db_session, make_user(db_session), session)
    asset = make_asset(db_session, "ACME")
    add_transaction(db_session, portfolio, asset, TransactionTypeEnum.BUY, 10, 1000, day(8))

    points = await valuation_engine.reconstruct_daily_series(db_session, portfolio.id, START, day(5))

    assert len(points) == 5
    assert points[-1].total_value == Decimal("100000.00")


@pytest.mark.asyncio
async def test_category_breakdown(db_session):
    session = make_session(db_session)
    portfolio = make_portfolio(db_session, make_user(db_session), session)
    stock = make_asset(db_session, "ACME", "STOCK")
    bond = make_asset(db_session, "BND", "BOND")
    add_transaction(db_session, portfolio, stock, TransactionTypeEnum.BUY, 10, 1000, day(1))
    add_transaction(db_session, portfolio, bond, TransactionTypeEnum.BUY, 20, 2000, day(2))
    add_prices(db_session, stock, {day(1): 100, day(3): 110})
    add_prices(db_session, bond, {day(2): 100})

    points = await valuation_engine.reconstruct_daily_series(db_session, portfolio.id, START, day(3), by_category=True)

    assert [p.date for p in points] == [day(1), day(2), day(3)]
    last = points[-1]
    assert last.categories[CategoryEnum.STOCKS] == Decimal("1100.00")
    assert last.categories[CategoryEnum.BONDS] == Decimal("2000.00")
    assert last.categories[CategoryEnum.MUTUAL_FUNDS] == Decimal("0.00")
    assert last.categories[CategoryEnum.CASH] == Decimal("97000.00")
    assert last.total_value == Decimal("100100.00")


@pytest.mark.asyncio
async def test_unknown_asset_type_is_rejected_for_categories(db_session):
    session = make_session(db_session)
    portfolio = make_portfolio(db_session, make_user(db_session), session)
    odd = make_asset(db_session, "ODD", "CRYPTO")
    add_transaction(db_session, portfolio, odd, TransactionTypeEnum.BUY, 1, 100, day(1))

    with pytest.raises(HTTPException) as exc:
        await valuation_engine.reconstruct_daily_series(db_session, portfolio.id, START, END, by_category=True)
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_inverted_range_is_rejected(db_session):
    session = make_session(db_session)
    portfolio = make_portfolio(db_session, make_user(db_session), session)

    with pytest.raises(HTTPException) as exc:
        await valuation_engine.reconstruct_daily_series(db_session, portfolio.id, END, START)
    assert exc.value.status_code == 400
