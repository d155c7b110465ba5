from datetime import date, datetime
from typing import List, Optional
from sqlalchemy.orm import Session, joinedload
from app.crud.base import CRUDBase
from app.models.game_session import GameSession
from app.models.performance import PortfolioPerformance, UserRanking

class CRUDPortfolioPerformance(CRUDBase[PortfolioPerformance, dict, dict]):
    def get_multi_by_portfolio_in_range(
        self,
        db: Session,
        portfolio_id: int,
        start: date,
        end: date
    ) -> List[PortfolioPerformance]:
        return db.query(self.model).filter(
            self.model.portfolio_id == portfolio_id,
            self.model.date >= start,
            self.model.date <= end
        ).order_by(self.model.date.asc()).all()

    def replace_range(
        self,
        db: Session,
        portfolio_id: int,
        start: date,
        end: date,
        rows: List[dict]
    ) -> int:
        db.query(self.model).filter(
            self.model.portfolio_id == portfolio_id,
            self.model.date >= start,
            self.model.date <= end
        ).delete(synchronize_session=False)
        db.add_all(self.model(portfolio_id=portfolio_id, **row) for row in rows)
        db.commit()
        return len(rows)

portfolio_performance = CRUDPortfolioPerformance(PortfolioPerformance)

class CRUDUserRanking(CRUDBase[UserRanking, dict, dict]):
    def get_multi_by_session(self, db: Session, session_id: int) -> List[UserRanking]:
        return db.query(self.model).options(
            joinedload(self.model.user)
        ).filter(
            self.model.session_id == session_id
        ).order_by(self.model.rank.asc()).all()

    def get_calculated_at(self, db: Session, session_id: int) -> Optional[datetime]:
        """When the session's snapshot was last written, even if it holds no rows."""
        return db.query(GameSession.rankings_calculated_at).filter(GameSession.id == session_id).scalar()

    def replace_for_session(
        self,
        db: Session,
        session_id: int,
        rows: List[dict],
        calculated_at: datetime
    ) -> int:
        db.query(self.model).filter(
            self.model.session_id == session_id
        ).delete(synchronize_session=False)
        db.add_all(
            self.model(session_id=session_id, calculated_at=calculated_at, **row)
            for row in rows
        )
        db.query(GameSession).filter(
            GameSession.id == session_id
        ).update({"rankings_calculated_at": calculated_at}, synchronize_session=False)
        db.commit()
        return len(rows)

user_ranking = CRUDUserRanking(UserRanking)
