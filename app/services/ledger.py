from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from app.core.constants import TransactionTypeEnum


def to_day(value) -> date:
    """Calendar day (UTC) of a transaction timestamp."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or 0))


@dataclass(frozen=True)
class LedgerEntry:
    asset_id: int
    type: TransactionTypeEnum
    quantity: Decimal
    total: Decimal
    day: date

    @classmethod
    def from_transaction(cls, tx) -> "LedgerEntry":
        tx_type = tx.type if isinstance(tx.type, TransactionTypeEnum) else TransactionTypeEnum(str(tx.type).upper())
        return cls(
            asset_id=tx.asset_id,
            type=tx_type,
            quantity=to_decimal(tx.quantity),
            total=to_decimal(tx.total),
            day=to_day(tx.date),
        )


class LedgerReplay:
    """
    Replays a portfolio's transaction ledger one calendar day at a time.

    Transactions are bucketed by day so every trade of a day is applied
    before that day is valued. ``advance_to`` only moves forward and applies
    each bucket exactly once. BUY adds quantity and spends its total, SELL
    removes quantity and credits its total; quantities are not clamped.
    """

    def __init__(self, transactions: Iterable, starting_cash):
        self.cash: Decimal = to_decimal(starting_cash)
        self.quantities: Dict[int, Decimal] = defaultdict(Decimal)
        self.unit_prices: Dict[int, Decimal] = {}
        self.cursor_day: Optional[date] = None

        buckets: Dict[date, List[LedgerEntry]] = defaultdict(list)
        for tx in transactions:
            entry = tx if isinstance(tx, LedgerEntry) else LedgerEntry.from_transaction(tx)
            buckets[entry.day].append(entry)

        self._buckets = buckets
        self._days: List[date] = sorted(buckets)
        self._next = 0

    def advance_to(self, day: date) -> None:
        if self.cursor_day is not None and day < self.cursor_day:
            raise ValueError(f"Ledger replay cannot move backwards ({day} < {self.cursor_day})")

        while self._next < len(self._days) and self._days[self._next] <= day:
            for entry in self._buckets[self._days[self._next]]:
                self._apply(entry)
            self._next += 1
        self.cursor_day = day

    def _apply(self, entry: LedgerEntry) -> None:
        if entry.type == TransactionTypeEnum.BUY:
            self.quantities[entry.asset_id] += entry.quantity
            self.cash -= entry.total
        else:
            self.quantities[entry.asset_id] -= entry.quantity
            self.cash += entry.total

        if entry.quantity > 0:
            self.unit_prices[entry.asset_id] = entry.total / entry.quantity

    def held(self) -> Dict[int, Decimal]:
        return {asset_id: qty for asset_id, qty in self.quantities.items() if qty != 0}

    def last_unit_price(self, asset_id: int) -> Optional[Decimal]:
        """Implied price (total / quantity) of the latest applied trade in the asset."""
        return self.unit_prices.get(asset_id)


def replay(transactions: Iterable, starting_cash, end: date) -> LedgerReplay:
    ledger = LedgerReplay(transactions, starting_cash)
    ledger.advance_to(end)
    return ledger
