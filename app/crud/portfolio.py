from datetime import datetime
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session, joinedload
from app.crud.base import CRUDBase
from app.models.portfolio import Portfolio, Transaction

class CRUDPortfolio(CRUDBase[Portfolio, dict, dict]):
    def get_latest_for_user(self, db: Session, user_id: int) -> Optional[Portfolio]:
        """Most recently created portfolio of the user."""
        return db.query(self.model).options(
            joinedload(self.model.session)
        ).filter(
            self.model.user_id == user_id
        ).order_by(
            self.model.created_at.desc(), self.model.id.desc()
        ).first()

    def get_multi_by_session(self, db: Session, session_id: int) -> List[Portfolio]:
        return db.query(self.model).options(
            joinedload(self.model.user)
        ).filter(
            self.model.session_id == session_id
        ).order_by(self.model.id.asc()).all()

portfolio = CRUDPortfolio(Portfolio)

class CRUDTransaction(CRUDBase[Transaction, dict, dict]):
    def get_multi_by_portfolio_up_to(
        self,
        db: Session,
        portfolio_id: int,
        up_to: Optional[datetime] = None
    ) -> List[Transaction]:
        query = db.query(self.model).options(
            joinedload(self.model.asset)
        ).filter(self.model.portfolio_id == portfolio_id)
        if up_to is not None:
            query = query.filter(self.model.date <= up_to)
        return query.order_by(self.model.date.asc(), self.model.id.asc()).all()

    def get_multi_by_portfolios(self, db: Session, portfolio_ids: Iterable[int]) -> List[Transaction]:
        ids = list(portfolio_ids)
        if not ids:
            return []
        return db.query(self.model).filter(
            self.model.portfolio_id.in_(ids)
        ).order_by(self.model.date.asc(), self.model.id.asc()).all()

transaction = CRUDTransaction(Transaction)
