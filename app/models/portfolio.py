from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, Enum, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
from app.core.constants import TransactionTypeEnum

class Portfolio(Base):
    __tablename__ = "portfolios"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, default="Main")
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("game_sessions.id"), nullable=False, index=True)
    cash_balance = Column(Numeric(18, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="portfolios")
    session = relationship("GameSession", back_populates="portfolios")
    transactions = relationship("Transaction", back_populates="portfolio", order_by="Transaction.date")
    performance = relationship("PortfolioPerformance", back_populates="portfolio", cascade="all, delete-orphan")

class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_portfolio_date", "portfolio_id", "date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    portfolio_id = Column(Integer, ForeignKey("portfolios.id"), nullable=False)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(Enum(TransactionTypeEnum), nullable=False)
    quantity = Column(Numeric(18, 6), nullable=False)
    price = Column(Numeric(18, 4), nullable=False)
    total = Column(Numeric(18, 2), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    portfolio = relationship("Portfolio", back_populates="transactions")
    asset = relationship("Asset")
