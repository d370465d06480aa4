from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.errors import QuizError, to_http_exception
from app.core.rate_limit import rate_limit
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.attempt import AttemptSnapshot, ResultSummary, StartAttemptRequest, SubmitAnswerRequest
from app.services.attempts import AttemptService
from app.services.results import get_result

router = APIRouter(prefix="/attempts", tags=["attempts"])


def _uuid(value: str, *, field: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"invalid {field}") from e


@router.post("", response_model=AttemptSnapshot)
def start_attempt(
    body: StartAttemptRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    _: object = rate_limit(key_prefix="attempt_start", limit=30, window_seconds=60),
):
    package_id = _uuid(body.package_id, field="package_id")
    try:
        return AttemptService(db).start_attempt(package_id, user.id)
    except QuizError as e:
        raise to_http_exception(e) from e


@router.get("/{attempt_id}", response_model=AttemptSnapshot | None)
def get_attempt_snapshot(
    attempt_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    # null means "nothing to answer here": missing, finished, timed out, or not yours.
    aid = _uuid(attempt_id, field="attempt_id")
    return AttemptService(db).get_snapshot(aid, user_id=user.id)


@router.post("/{attempt_id}/answers", response_model=AttemptSnapshot)
def submit_answer(
    attempt_id: str,
    body: SubmitAnswerRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    _: object = rate_limit(key_prefix="attempt_answer", limit=240, window_seconds=60),
):
    aid = _uuid(attempt_id, field="attempt_id")
    qid = _uuid(body.question_id, field="question_id")
    try:
        return AttemptService(db).submit_answer(aid, qid, body.selected_answer, user.id)
    except QuizError as e:
        raise to_http_exception(e) from e


@router.post("/{attempt_id}/complete", response_model=ResultSummary)
def complete_attempt(
    attempt_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    _: object = rate_limit(key_prefix="attempt_complete", limit=30, window_seconds=60),
):
    aid = _uuid(attempt_id, field="attempt_id")
    try:
        return AttemptService(db).complete_attempt(aid, user.id)
    except QuizError as e:
        raise to_http_exception(e) from e


@router.get("/{attempt_id}/result", response_model=ResultSummary | None)
def attempt_result(
    attempt_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    aid = _uuid(attempt_id, field="attempt_id")
    return get_result(db, aid, user.id)
