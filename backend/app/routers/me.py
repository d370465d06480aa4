from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.attempt import AttemptHistoryResponse
from app.services.history import HistoryService

router = APIRouter(prefix="/me", tags=["me"])


@router.get("/history", response_model=AttemptHistoryResponse)
def my_history(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    limit: int = Query(default=50),
):
    return {"items": HistoryService(db).list_attempts(user.id, limit=limit)}
