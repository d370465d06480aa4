from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.errors import QuizError, to_http_exception
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.package import QuizPackage, QuizQuestion
from app.models.user import User, UserRole
from app.schemas.package import PackagePublic, PackagesListResponse, QuestionPublic, QuestionsListResponse
from app.services.packages import count_questions, get_package, list_packages, list_questions

router = APIRouter(prefix="/packages", tags=["packages"])


def _uuid(value: str, *, field: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"invalid {field}") from e


def package_public(p: QuizPackage, question_count: int) -> dict[str, object]:
    return {
        "id": str(p.id),
        "title": p.title,
        "description": p.description,
        "created_by": str(p.created_by),
        "created_at": p.created_at.isoformat(),
        "updated_at": p.updated_at.isoformat(),
        "question_count": int(question_count),
    }


def question_public(q: QuizQuestion, *, with_answer: bool) -> dict[str, object]:
    return {
        "id": str(q.id),
        "package_id": str(q.package_id),
        "question_text": q.question_text,
        "option_a": q.option_a,
        "option_b": q.option_b,
        "option_c": q.option_c,
        "option_d": q.option_d,
        "option_e": q.option_e,
        "correct_answer": getattr(q.correct_answer, "value", str(q.correct_answer)) if with_answer else None,
        "order_index": int(q.order_index),
    }


@router.get("", response_model=PackagesListResponse)
def get_packages(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = list_packages(db, include_incomplete=user.role == UserRole.admin)
    return {"items": [package_public(p, n) for p, n in rows]}


@router.get("/{package_id}", response_model=PackagePublic)
def get_package_by_id(
    package_id: str,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    pid = _uuid(package_id, field="package_id")
    try:
        p = get_package(db, pid)
    except QuizError as e:
        raise to_http_exception(e) from e
    return package_public(p, count_questions(db, p.id))


@router.get("/{package_id}/questions", response_model=QuestionsListResponse)
def get_package_questions(
    package_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    pid = _uuid(package_id, field="package_id")
    try:
        items = list_questions(db, pid)
    except QuizError as e:
        raise to_http_exception(e) from e
    is_admin = user.role == UserRole.admin
    return {"items": [question_public(q, with_answer=is_admin) for q in items]}
