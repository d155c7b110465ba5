from typing import List, Optional
from sqlalchemy.orm import Session
from app.crud.base import CRUDBase
from app.models.game_session import GameSession

class CRUDGameSession(CRUDBase[GameSession, dict, dict]):
    def get_active(self, db: Session) -> Optional[GameSession]:
        return db.query(self.model).filter(self.model.is_active.is_(True)).order_by(self.model.id.desc()).first()

    def get_multi_active(self, db: Session) -> List[GameSession]:
        return db.query(self.model).filter(self.model.is_active.is_(True)).all()

game_session = CRUDGameSession(GameSession)
