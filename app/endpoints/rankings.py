from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from app.models.user import User
from app.schemas.ranking import RankingsSchema
from app.schemas.response import APIResponse
from app.services.ranking import leaderboard_service
from app.utils import deps

router = APIRouter()

@router.get("", response_model=APIResponse[RankingsSchema])
async def get_rankings(
    session_id: Optional[int] = None,
    fresh: bool = False,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    rankings = await leaderboard_service.get_rankings(
        db, session_id=session_id, current_user_id=current_user.id, force_fresh=fresh
    )
    return APIResponse(message="Rankings retrieved successfully", data=rankings)
