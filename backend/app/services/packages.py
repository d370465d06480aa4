from __future__ import annotations

import logging
import uuid

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.errors import InvalidStateError, NotFoundError
from app.models.attempt import QuizAnswer, QuizAttempt
from app.models.package import AnswerOption, QuizPackage, QuizQuestion


log = logging.getLogger(__name__)

MAX_QUESTIONS_PER_PACKAGE = 110

_QUESTION_FIELDS = (
    "question_text",
    "option_a",
    "option_b",
    "option_c",
    "option_d",
    "option_e",
    "correct_answer",
    "order_index",
)


def parse_uuid(value) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def count_questions(db: Session, package_id: uuid.UUID) -> int:
    return int(db.scalar(select(func.count(QuizQuestion.id)).where(QuizQuestion.package_id == package_id)) or 0)


def get_question_at(db: Session, package_id: uuid.UUID, order_index: int) -> QuizQuestion | None:
    return db.scalar(
        select(QuizQuestion).where(
            QuizQuestion.package_id == package_id,
            QuizQuestion.order_index == int(order_index),
        )
    )


def get_question(db: Session, question_id: uuid.UUID) -> QuizQuestion | None:
    return db.scalar(select(QuizQuestion).where(QuizQuestion.id == question_id))


def get_package(db: Session, package_id: uuid.UUID) -> QuizPackage:
    package = db.scalar(select(QuizPackage).where(QuizPackage.id == package_id))
    if package is None:
        raise NotFoundError("quiz package not found")
    return package


def list_questions(db: Session, package_id: uuid.UUID) -> list[QuizQuestion]:
    get_package(db, package_id)
    return list(
        db.scalars(
            select(QuizQuestion).where(QuizQuestion.package_id == package_id).order_by(QuizQuestion.order_index)
        )
    )


def list_packages(db: Session, *, include_incomplete: bool) -> list[tuple[QuizPackage, int]]:
    """Packages newest first with their question counts.

    Regular takers only ever see complete packages (exactly 110 questions).
    """
    counts = (
        select(QuizQuestion.package_id, func.count(QuizQuestion.id).label("n"))
        .group_by(QuizQuestion.package_id)
        .subquery()
    )
    stmt = (
        select(QuizPackage, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.package_id == QuizPackage.id)
        .order_by(QuizPackage.created_at.desc())
    )
    if not include_incomplete:
        stmt = stmt.where(func.coalesce(counts.c.n, 0) == MAX_QUESTIONS_PER_PACKAGE)
    return [(p, int(n or 0)) for p, n in db.execute(stmt).all()]


def create_package(db: Session, *, title: str, description: str | None, created_by: uuid.UUID) -> QuizPackage:
    now = utcnow()
    package = QuizPackage(
        title=title,
        description=description,
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )
    db.add(package)
    db.flush()
    return package


def update_package(db: Session, package_id: uuid.UUID, changes: dict) -> QuizPackage:
    package = get_package(db, package_id)
    if "title" in changes and changes["title"] is not None:
        package.title = str(changes["title"])
    if "description" in changes:
        package.description = changes["description"]
    package.updated_at = utcnow()
    db.flush()
    return package


def delete_package(db: Session, package_id: uuid.UUID) -> dict[str, int]:
    package = get_package(db, package_id)

    attempt_ids = list(db.scalars(select(QuizAttempt.id).where(QuizAttempt.package_id == package.id)))
    deleted_answers = 0
    if attempt_ids:
        deleted_answers = db.execute(delete(QuizAnswer).where(QuizAnswer.attempt_id.in_(attempt_ids))).rowcount or 0
    deleted_attempts = db.execute(delete(QuizAttempt).where(QuizAttempt.package_id == package.id)).rowcount or 0
    deleted_questions = db.execute(delete(QuizQuestion).where(QuizQuestion.package_id == package.id)).rowcount or 0
    db.execute(delete(QuizPackage).where(QuizPackage.id == package.id))
    db.flush()

    log.info(
        "package deleted id=%s questions=%s attempts=%s answers=%s",
        package_id,
        deleted_questions,
        deleted_attempts,
        deleted_answers,
    )
    return {
        "deleted_questions": int(deleted_questions),
        "deleted_attempts": int(deleted_attempts),
        "deleted_answers": int(deleted_answers),
    }


def create_question(db: Session, package_id: uuid.UUID, data: dict) -> QuizQuestion:
    package = get_package(db, package_id)

    if count_questions(db, package.id) >= MAX_QUESTIONS_PER_PACKAGE:
        raise InvalidStateError(f"quiz package cannot have more than {MAX_QUESTIONS_PER_PACKAGE} questions")

    order_index = int(data["order_index"])
    if get_question_at(db, package.id, order_index) is not None:
        raise InvalidStateError("order index already exists for this quiz package")

    now = utcnow()
    question = QuizQuestion(
        package_id=package.id,
        question_text=str(data["question_text"]),
        option_a=str(data["option_a"]),
        option_b=str(data["option_b"]),
        option_c=str(data["option_c"]),
        option_d=str(data["option_d"]),
        option_e=str(data["option_e"]),
        correct_answer=AnswerOption(data["correct_answer"]),
        order_index=order_index,
        created_at=now,
        updated_at=now,
    )
    db.add(question)
    db.flush()
    return question


def update_question(db: Session, question_id: uuid.UUID, changes: dict) -> tuple[QuizQuestion, dict]:
    """Merge the provided fields into the question. Returns (question, before)."""
    q = get_question(db, question_id)
    if q is None:
        raise NotFoundError("question not found")

    before = question_fields(q)

    new_index = changes.get("order_index")
    if new_index is not None and int(new_index) != q.order_index:
        clash = db.scalar(
            select(QuizQuestion.id).where(
                QuizQuestion.package_id == q.package_id,
                QuizQuestion.order_index == int(new_index),
                QuizQuestion.id != q.id,
            )
        )
        if clash is not None:
            raise InvalidStateError(f"order index {int(new_index)} already exists in this quiz package")

    for field in _QUESTION_FIELDS:
        value = changes.get(field)
        if value is None:
            continue
        if field == "correct_answer":
            value = AnswerOption(value)
        elif field == "order_index":
            value = int(value)
        else:
            value = str(value)
        setattr(q, field, value)

    q.updated_at = utcnow()
    db.flush()
    return q, before


def delete_question(db: Session, question_id: uuid.UUID) -> dict[str, int]:
    q = get_question(db, question_id)
    if q is None:
        raise NotFoundError("question not found")

    package_id = q.package_id
    removed_index = q.order_index

    deleted_answers = db.execute(delete(QuizAnswer).where(QuizAnswer.question_id == q.id)).rowcount or 0
    db.execute(delete(QuizQuestion).where(QuizQuestion.id == q.id))

    # Keep order_index dense: shift later questions down one at a time, lowest first,
    # so the (package_id, order_index) unique constraint never sees a duplicate.
    later = list(
        db.scalars(
            select(QuizQuestion.id)
            .where(QuizQuestion.package_id == package_id, QuizQuestion.order_index > removed_index)
            .order_by(QuizQuestion.order_index)
        )
    )
    for qid in later:
        db.execute(
            update(QuizQuestion)
            .where(QuizQuestion.id == qid)
            .values(order_index=QuizQuestion.order_index - 1)
            .execution_options(synchronize_session=False)
        )
    db.expire_all()
    db.flush()

    return {"deleted_answers": int(deleted_answers), "renumbered": len(later)}


def question_fields(q: QuizQuestion) -> dict[str, object]:
    return {
        "question_text": q.question_text,
        "option_a": q.option_a,
        "option_b": q.option_b,
        "option_c": q.option_c,
        "option_d": q.option_d,
        "option_e": q.option_e,
        "correct_answer": getattr(q.correct_answer, "value", str(q.correct_answer)),
        "order_index": int(q.order_index),
    }
