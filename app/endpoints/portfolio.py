from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from app.models.user import User
from app.schemas.performance import CategorySeriesSchema, PerformanceSeriesSchema
from app.schemas.response import APIResponse
from app.services.performance import performance_service
from app.utils import deps

router = APIRouter()

@router.get("/performance-series", response_model=APIResponse[PerformanceSeriesSchema])
async def get_performance_series(
    range: Optional[str] = Query(None, description="1d, 1w, 1m, 3m, 6m, 1y, ytd or max"),
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    series = await performance_service.get_performance_series(db, current_user.id, range)
    message = "Performance series retrieved successfully" if series.points else "No performance data available"
    return APIResponse(message=message, data=series)

@router.get("/category-series", response_model=APIResponse[CategorySeriesSchema])
async def get_category_series(
    range: Optional[str] = Query(None, description="1d, 1w, 1m, 3m, 6m, 1y, ytd or max"),
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    series = await performance_service.get_category_series(db, current_user.id, range)
    message = "Category series retrieved successfully" if series.points else "No category data available"
    return APIResponse(message=message, data=series)
