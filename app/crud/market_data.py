from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.crud.base import CRUDBase
from app.models.market_data import Asset, DailyPrice, AssetQuoteCache

class CRUDAsset(CRUDBase[Asset, dict, dict]):
    def get_by_ticker(self, db: Session, ticker: str) -> Optional[Asset]:
        return db.query(self.model).filter(self.model.ticker == ticker.upper()).first()

    def get_or_create(self, db: Session, *, ticker: str, name: str, type: str) -> Asset:
        existing = self.get_by_ticker(db, ticker)
        if existing:
            return existing
        return self.create(db, obj_in={"ticker": ticker.upper(), "name": name, "type": type})

    def get_multi_by_ids(self, db: Session, ids: Iterable[int]) -> List[Asset]:
        ids = list(ids)
        if not ids:
            return []
        return db.query(self.model).filter(self.model.id.in_(ids)).all()

asset = CRUDAsset(Asset)

class CRUDDailyPrice(CRUDBase[DailyPrice, dict, dict]):
    def get_range(self, db: Session, asset_id: int, start: date, end: date) -> List[DailyPrice]:
        return db.query(self.model).filter(
            self.model.asset_id == asset_id,
            self.model.date >= start,
            self.model.date <= end
        ).order_by(self.model.date.asc()).all()

    def get_date_bounds_in_range(
        self,
        db: Session,
        asset_id: int,
        start: date,
        end: date
    ) -> Tuple[Optional[date], Optional[date]]:
        """Earliest and latest cached dates in ``[start, end]``, ``(None, None)`` when empty."""
        earliest, latest = db.query(func.min(self.model.date), func.max(self.model.date)).filter(
            self.model.asset_id == asset_id,
            self.model.date >= start,
            self.model.date <= end
        ).one()
        return earliest, latest

    def upsert_many(self, db: Session, asset_id: int, rows: List[dict], data_source: str = "polygon") -> int:
        """Insert or update one row per (asset_id, date). Does not commit."""
        if not rows:
            return 0
        dates = [row["date"] for row in rows]
        existing: Dict[date, DailyPrice] = {
            p.date: p for p in db.query(self.model).filter(
                self.model.asset_id == asset_id,
                self.model.date.in_(dates)
            ).all()
        }
        for row in rows:
            values = {
                "open": row.get("open"),
                "high": row.get("high"),
                "low": row.get("low"),
                "close": row.get("close"),
                "adjusted_close": row.get("adjusted_close"),
                "volume": row.get("volume"),
                "data_source": data_source,
            }
            current = existing.get(row["date"])
            if current is None:
                current = self.model(asset_id=asset_id, date=row["date"], **values)
                existing[row["date"]] = current
                db.add(current)
            else:
                for field, value in values.items():
                    setattr(current, field, value)
        return len(rows)

daily_price = CRUDDailyPrice(DailyPrice)

class CRUDAssetQuoteCache(CRUDBase[AssetQuoteCache, dict, dict]):
    def get_multi_by_asset_ids(self, db: Session, asset_ids: Iterable[int]) -> List[AssetQuoteCache]:
        ids = list(asset_ids)
        if not ids:
            return []
        return db.query(self.model).filter(self.model.asset_id.in_(ids)).all()

    def upsert(
        self,
        db: Session,
        *,
        asset_id: int,
        price: Decimal,
        as_of: Optional[datetime],
        expires_at: Optional[datetime]
    ) -> AssetQuoteCache:
        """Does not commit."""
        current = db.query(self.model).filter(self.model.asset_id == asset_id).first()
        if current is None:
            current = self.model(asset_id=asset_id, price=price, as_of=as_of, expires_at=expires_at)
            db.add(current)
        else:
            current.price = price
            current.as_of = as_of
            current.expires_at = expires_at
        return current

asset_quote_cache = CRUDAssetQuoteCache(AssetQuoteCache)
