from pydantic import Field
from typing import Optional, List
from datetime import datetime
from app.schemas.performance import CamelModel

class CurrentUserRankingSchema(CamelModel):
    rank: Optional[int] = None
    total_users: int = 0
    total_portfolio_value: float = 0.0
    return_percent: float = 0.0
    name: Optional[str] = None

class TopUserSchema(CamelModel):
    rank: int
    user_id: int
    name: str
    total_portfolio_value: float
    return_percent: float
    is_current_user: bool = False

class RankingMetaSchema(CamelModel):
    total_active_users: int = 0
    calculated_at: Optional[datetime] = None
    session_id: Optional[int] = None
    starting_cash: Optional[float] = None
    is_cached: bool = False

class RankingsSchema(CamelModel):
    current_user: Optional[CurrentUserRankingSchema] = None
    top_users: List[TopUserSchema] = Field(default_factory=list)
    meta: RankingMetaSchema = Field(default_factory=RankingMetaSchema)
