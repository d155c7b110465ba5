from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.constants import TransactionTypeEnum
from app.services.ledger import LedgerReplay, replay, to_day


def tx(type, quantity, total, when, asset_id=1):
    return SimpleNamespace(asset_id=asset_id, type=type, quantity=quantity, total=total, date=when)


def test_buy_then_sell_updates_quantity_and_cash():
    ledger = replay(
        [
            tx(TransactionTypeEnum.BUY, 10, 1000, datetime(2024, 1, 2, 10)),
            tx(TransactionTypeEnum.SELL, 4, 200, datetime(2024, 1, 3, 10)),
        ],
        starting_cash=Decimal("100000"),
        end=date(2024, 1, 3),
    )

    assert ledger.held() == {1: Decimal("6")}
    assert ledger.cash == Decimal("100000") - 1000 + 200


def test_cash_moves_by_recorded_total_not_quantity_times_price():
    ledger = replay([tx("BUY", 3, "100.01", datetime(2024, 1, 2))], 1000, date(2024, 1, 2))
    assert ledger.cash == Decimal("899.99")


def test_same_day_transactions_apply_together():
    ledger = LedgerReplay(
        [
            tx(TransactionTypeEnum.SELL, 5, 600, datetime(2024, 1, 2, 9)),
            tx(TransactionTypeEnum.BUY, 5, 500, datetime(2024, 1, 2, 15)),
        ],
        starting_cash=0,
    )

    ledger.advance_to(date(2024, 1, 1))
    assert ledger.held() == {}
    assert ledger.cash == 0

    ledger.advance_to(date(2024, 1, 2))
    assert ledger.held() == {}
    assert ledger.cash == Decimal("100")


def test_advance_is_incremental_and_forward_only():
    ledger = LedgerReplay([tx("BUY", 1, 50, datetime(2024, 1, 5))], 100)

    ledger.advance_to(date(2024, 1, 5))
    ledger.advance_to(date(2024, 1, 6))
    assert ledger.cash == Decimal("50")
    assert ledger.quantities[1] == Decimal("1")

    with pytest.raises(ValueError):
        ledger.advance_to(date(2024, 1, 4))


def test_last_unit_price_tracks_latest_trade():
    ledger = LedgerReplay(
        [
            tx("BUY", 10, 500, datetime(2024, 1, 1)),
            tx("BUY", 10, 600, datetime(2024, 1, 3)),
        ],
        0,
    )

    ledger.advance_to(date(2024, 1, 2))
    assert ledger.last_unit_price(1) == Decimal("50")
    ledger.advance_to(date(2024, 1, 3))
    assert ledger.last_unit_price(1) == Decimal("60")
    assert ledger.last_unit_price(2) is None


def test_to_day_normalizes_aware_timestamps_to_utc():
    from datetime import timedelta, timezone

    late_evening_ny = datetime(2024, 1, 1, 22, 0, tzinfo=timezone(timedelta(hours=-5)))
    assert to_day(late_evening_ny) == date(2024, 1, 2)
    assert to_day(date(2024, 1, 1)) == date(2024, 1, 1)
