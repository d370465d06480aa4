from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.attempt import QuizAttempt
from app.models.package import QuizPackage
from app.schemas.attempt import AttemptHistoryItem


class HistoryService:
    def __init__(self, db: Session):
        self.db = db

    def list_attempts(self, user_id: uuid.UUID, *, limit: int = 50) -> list[AttemptHistoryItem]:
        """A user's attempts, newest first, with the package title joined in.

        Stored values only: an expired attempt nobody has touched since still
        reads as IN_PROGRESS here until its next snapshot read or submission.
        """
        take = max(1, min(int(limit or 50), 200))
        rows = self.db.execute(
            select(QuizAttempt, QuizPackage.title)
            .outerjoin(QuizPackage, QuizPackage.id == QuizAttempt.package_id)
            .where(QuizAttempt.user_id == user_id)
            .order_by(QuizAttempt.created_at.desc())
            .limit(take)
        ).all()

        return [
            AttemptHistoryItem(
                attempt_id=str(a.id),
                package_id=str(a.package_id),
                quiz_title=title,
                status=getattr(a.status, "value", str(a.status)),
                score=int(a.score or 0),
                total_questions=int(a.total_questions),
                current_question_index=int(a.current_question_index),
                time_remaining_seconds=int(a.time_remaining_seconds),
                started_at=a.started_at.isoformat(),
                completed_at=a.completed_at.isoformat() if a.completed_at else None,
            )
            for a, title in rows
        ]
