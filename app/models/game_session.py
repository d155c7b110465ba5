from sqlalchemy import Column, Integer, String, DateTime, Boolean, Numeric
from sqlalchemy.orm import relationship
from app.core.database import Base

class GameSession(Base):
    __tablename__ = "game_sessions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    starting_cash = Column(Numeric(18, 2), nullable=False, default=100000)
    is_active = Column(Boolean, nullable=False, default=False, index=True)
    rankings_calculated_at = Column(DateTime(timezone=True), nullable=True)

    portfolios = relationship("Portfolio", back_populates="session")
    rankings = relationship("UserRanking", back_populates="session", cascade="all, delete-orphan")
