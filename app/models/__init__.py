from app.models.user import User
from app.models.game_session import GameSession
from app.models.portfolio import Portfolio, Transaction
from app.models.market_data import Asset, DailyPrice, AssetQuoteCache
from app.models.performance import PortfolioPerformance, UserRanking

__all__ = [
    "User",
    "GameSession",
    "Portfolio",
    "Transaction",
    "Asset",
    "DailyPrice",
    "AssetQuoteCache",
    "PortfolioPerformance",
    "UserRanking",
]
