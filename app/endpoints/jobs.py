import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from app.schemas.performance import ComputeSummarySchema
from app.schemas.response import APIResponse
from app.services.performance import performance_service
from app.utils import deps

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post(
    "/compute-performance",
    response_model=APIResponse[List[ComputeSummarySchema]],
    dependencies=[Depends(deps.verify_cron_key)]
)
async def compute_performance(db: Session = Depends(deps.get_db)):
    logger.info("Performance computation triggered via job endpoint")
    summaries = await performance_service.compute_all_active_sessions(db)
    return APIResponse(
        message=f"Performance computed for {len(summaries)} active sessions",
        data=summaries
    )
