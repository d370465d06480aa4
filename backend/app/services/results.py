from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.clock import elapsed_seconds
from app.models.attempt import AttemptStatus, QuizAnswer, QuizAttempt
from app.models.package import QuizQuestion
from app.schemas.attempt import ResultAnswer, ResultSummary
from app.services.packages import parse_uuid


def _opt(value) -> str:
    return str(getattr(value, "value", value) or "")


def build_result(db: Session, attempt: QuizAttempt) -> ResultSummary:
    """Full-disclosure review of an attempt, recomputed from the ledger on every call."""
    rows = db.execute(
        select(QuizAnswer, QuizQuestion)
        .join(QuizQuestion, QuizQuestion.id == QuizAnswer.question_id)
        .where(QuizAnswer.attempt_id == attempt.id)
        .order_by(QuizAnswer.answered_at, QuizQuestion.order_index)
    ).all()

    answers = [
        ResultAnswer(
            question_id=str(q.id),
            question_text=q.question_text,
            option_a=q.option_a,
            option_b=q.option_b,
            option_c=q.option_c,
            option_d=q.option_d,
            option_e=q.option_e,
            selected_answer=_opt(a.selected_answer),
            correct_answer=_opt(q.correct_answer),
            is_correct=bool(a.is_correct),
        )
        for a, q in rows
    ]
    correct = sum(1 for a in answers if a.is_correct)

    time_taken = 0
    if attempt.started_at is not None and attempt.completed_at is not None:
        time_taken = elapsed_seconds(attempt.started_at, attempt.completed_at)

    return ResultSummary(
        attempt_id=str(attempt.id),
        score=int(attempt.score or 0),
        total_questions=int(attempt.total_questions),
        correct_answers=correct,
        incorrect_answers=len(answers) - correct,
        time_taken_seconds=time_taken,
        completed_at=attempt.completed_at.isoformat() if attempt.completed_at else None,
        answers=answers,
    )


def get_result(db: Session, attempt_id: uuid.UUID, user_id: uuid.UUID) -> ResultSummary | None:
    # Only COMPLETED attempts are reviewable here; TIME_OUT ones are not returned.
    aid, uid = parse_uuid(attempt_id), parse_uuid(user_id)
    if aid is None or uid is None:
        return None
    attempt = db.scalar(
        select(QuizAttempt).where(
            QuizAttempt.id == aid,
            QuizAttempt.user_id == uid,
            QuizAttempt.status == AttemptStatus.COMPLETED,
        )
    )
    if attempt is None:
        return None
    return build_result(db, attempt)
