from sqlalchemy import Column, Integer, DateTime, Date, ForeignKey, Numeric, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from app.core.database import Base


class PortfolioPerformance(Base):
    __tablename__ = "portfolio_performance"
    __table_args__ = (
        UniqueConstraint("portfolio_id", "date", name="uq_portfolio_performance_portfolio_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    portfolio_id = Column(Integer, ForeignKey("portfolios.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    portfolio_value = Column(Numeric(18, 2), nullable=False)
    sp500_value = Column(Numeric(18, 4), nullable=True)
    portfolio_percent_change = Column(Numeric(12, 4), nullable=False)
    sp500_percent_change = Column(Numeric(12, 4), nullable=True)
    outperformance = Column(Numeric(12, 4), nullable=True)

    portfolio = relationship("Portfolio", back_populates="performance")


class UserRanking(Base):
    __tablename__ = "user_rankings"
    __table_args__ = (
        UniqueConstraint("user_id", "session_id", name="uq_user_rankings_user_session"),
        Index("ix_user_rankings_session_rank", "session_id", "rank"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    session_id = Column(Integer, ForeignKey("game_sessions.id"), nullable=False)
    rank = Column(Integer, nullable=False)
    total_portfolio_value = Column(Numeric(18, 2), nullable=False)
    return_percent = Column(Numeric(12, 2), nullable=False)
    calculated_at = Column(DateTime(timezone=True), nullable=False, index=True)

    user = relationship("User", back_populates="rankings")
    session = relationship("GameSession", back_populates="rankings")
