from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import date
from app.core.constants import SeriesSourceEnum

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class PerformancePointSchema(CamelModel):
    date: date
    you_pct: Optional[float] = None
    sp500_pct: Optional[float] = None
    leader_pct: Optional[float] = None

class PerformanceMetaSchema(CamelModel):
    session_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    leader_user_id: Optional[int] = None
    leader_name: Optional[str] = None
    data_points: int = 0
    source: Optional[SeriesSourceEnum] = None

class PerformanceSeriesSchema(CamelModel):
    points: List[PerformancePointSchema] = Field(default_factory=list)
    meta: PerformanceMetaSchema = Field(default_factory=PerformanceMetaSchema)

class CategoryPointSchema(CamelModel):
    date: date
    stocks: float = 0.0
    bonds: float = 0.0
    mutual_funds: float = 0.0
    cash: float = 0.0
    total: float = 0.0

class CategoryMetaSchema(CamelModel):
    session_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    range: Optional[str] = None
    data_points: int = 0

class CategorySeriesSchema(CamelModel):
    points: List[CategoryPointSchema] = Field(default_factory=list)
    meta: CategoryMetaSchema = Field(default_factory=CategoryMetaSchema)

class ComputeSummarySchema(CamelModel):
    session_id: int
    portfolios: int = 0
    failed: int = 0
    rankings: int = 0
