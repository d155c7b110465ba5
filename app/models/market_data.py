from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey, Numeric, BigInteger, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base

class Asset(Base):
    __tablename__ = "assets"

    id = Column(Integer, primary_key=True, index=True)
    ticker = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False, default="STOCK")

    daily_prices = relationship("DailyPrice", back_populates="asset", cascade="all, delete-orphan")
    quote = relationship("AssetQuoteCache", back_populates="asset", uselist=False, cascade="all, delete-orphan")

class DailyPrice(Base):
    __tablename__ = "daily_prices"
    __table_args__ = (
        UniqueConstraint("asset_id", "date", name="uq_daily_prices_asset_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    open = Column(Numeric(18, 4), nullable=True)
    high = Column(Numeric(18, 4), nullable=True)
    low = Column(Numeric(18, 4), nullable=True)
    close = Column(Numeric(18, 4), nullable=True)
    adjusted_close = Column(Numeric(18, 4), nullable=True)
    volume = Column(BigInteger, nullable=True)
    data_source = Column(String, nullable=False, default="polygon")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    asset = relationship("Asset", back_populates="daily_prices")

class AssetQuoteCache(Base):
    __tablename__ = "asset_quote_cache"

    id = Column(Integer, primary_key=True, index=True)
    asset_id = Column(Integer, ForeignKey("assets.id"), unique=True, nullable=False)
    price = Column(Numeric(18, 4), nullable=False)
    as_of = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    asset = relationship("Asset", back_populates="quote")
