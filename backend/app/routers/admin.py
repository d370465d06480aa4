from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import QuizError, to_http_exception
from app.core.rate_limit import rate_limit
from app.core.security import hash_password, require_roles
from app.core.security_audit_log import audit_admin_change, audit_log
from app.db.session import get_db
from app.models.user import User, UserRole
from app.routers.auth import normalize_email
from app.routers.packages import package_public, question_public
from app.schemas.admin import CreatedResponse, OkResponse, UserCreateRequest, UsersListResponse
from app.schemas.package import (
    PackageCreateRequest,
    PackagePublic,
    PackageUpdateRequest,
    QuestionCreateRequest,
    QuestionPublic,
    QuestionUpdateRequest,
)
from app.services import packages as package_service

router = APIRouter(prefix="/admin", tags=["admin"])


def _uuid(value: str, *, field: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"invalid {field}") from e


@router.post("/packages", response_model=PackagePublic)
def create_package(
    request: Request,
    body: PackageCreateRequest,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
    _: object = rate_limit(key_prefix="admin_create_package", limit=30, window_seconds=60),
):
    p = package_service.create_package(db, title=body.title, description=body.description, created_by=current.id)
    audit_admin_change(
        db=db, request=request, actor_user_id=current.id, action="create", entity="package", entity_id=p.id, title=p.title
    )
    db.commit()
    db.refresh(p)
    return package_public(p, 0)


@router.patch("/packages/{package_id}", response_model=PackagePublic)
def update_package(
    request: Request,
    package_id: str,
    body: PackageUpdateRequest,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
    _: object = rate_limit(key_prefix="admin_update_package", limit=60, window_seconds=60),
):
    pid = _uuid(package_id, field="package_id")
    changes = body.model_dump(exclude_unset=True)
    try:
        p = package_service.update_package(db, pid, changes)
    except QuizError as e:
        raise to_http_exception(e) from e

    audit_admin_change(
        db=db, request=request, actor_user_id=current.id, action="update", entity="package", entity_id=p.id, changes=changes
    )
    db.commit()
    db.refresh(p)
    return package_public(p, package_service.count_questions(db, p.id))


@router.delete("/packages/{package_id}", response_model=OkResponse)
def delete_package(
    request: Request,
    package_id: str,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
    _: object = rate_limit(key_prefix="admin_delete_package", limit=30, window_seconds=60),
):
    pid = _uuid(package_id, field="package_id")
    try:
        stats = package_service.delete_package(db, pid)
    except QuizError as e:
        raise to_http_exception(e) from e

    audit_admin_change(
        db=db, request=request, actor_user_id=current.id, action="delete", entity="package", entity_id=pid, **stats
    )
    db.commit()
    return {"ok": True}


@router.post("/questions", response_model=QuestionPublic)
def create_question(
    request: Request,
    body: QuestionCreateRequest,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
    _: object = rate_limit(key_prefix="admin_create_question", limit=240, window_seconds=60),
):
    pid = _uuid(body.package_id, field="package_id")
    try:
        q = package_service.create_question(db, pid, body.model_dump(exclude={"package_id"}))
    except QuizError as e:
        raise to_http_exception(e) from e

    audit_admin_change(
        db=db,
        request=request,
        actor_user_id=current.id,
        action="create",
        entity="question",
        entity_id=q.id,
        package_id=str(pid),
        order_index=int(q.order_index),
    )
    db.commit()
    db.refresh(q)
    return question_public(q, with_answer=True)


@router.get("/questions/{question_id}", response_model=QuestionPublic)
def get_question(
    question_id: str,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(UserRole.admin)),
):
    qid = _uuid(question_id, field="question_id")
    q = package_service.get_question(db, qid)
    if q is None:
        raise HTTPException(status_code=404, detail="question not found")
    return question_public(q, with_answer=True)


@router.patch("/questions/{question_id}", response_model=QuestionPublic)
def update_question(
    request: Request,
    question_id: str,
    body: QuestionUpdateRequest,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
    _: object = rate_limit(key_prefix="admin_update_question", limit=120, window_seconds=60),
):
    qid = _uuid(question_id, field="question_id")
    try:
        q, before = package_service.update_question(db, qid, body.model_dump(exclude_unset=True))
    except QuizError as e:
        raise to_http_exception(e) from e

    audit_admin_change(
        db=db,
        request=request,
        actor_user_id=current.id,
        action="update",
        entity="question",
        entity_id=q.id,
        package_id=str(q.package_id),
        before=before,
        after=package_service.question_fields(q),
    )
    db.commit()
    db.refresh(q)
    return question_public(q, with_answer=True)


@router.delete("/questions/{question_id}", response_model=OkResponse)
def delete_question(
    request: Request,
    question_id: str,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
    _: object = rate_limit(key_prefix="admin_delete_question", limit=120, window_seconds=60),
):
    qid = _uuid(question_id, field="question_id")
    try:
        stats = package_service.delete_question(db, qid)
    except QuizError as e:
        raise to_http_exception(e) from e

    audit_admin_change(
        db=db, request=request, actor_user_id=current.id, action="delete", entity="question", entity_id=qid, **stats
    )
    db.commit()
    return {"ok": True}


@router.get("/users", response_model=UsersListResponse)
def list_users(
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(UserRole.admin)),
):
    rows = db.scalars(select(User).order_by(User.email)).all()
    return {
        "items": [
            {
                "id": str(u.id),
                "email": u.email,
                "role": u.role.value,
                "created_at": u.created_at.isoformat(),
            }
            for u in rows
        ]
    }


@router.post("/users", response_model=CreatedResponse)
def create_user(
    request: Request,
    body: UserCreateRequest,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
    _: object = rate_limit(key_prefix="admin_create_user", limit=20, window_seconds=60),
):
    email = normalize_email(body.email)
    if "@" not in email:
        raise HTTPException(status_code=400, detail="invalid email")

    if len(body.password or "") < int(settings.password_min_length or 0):
        raise HTTPException(status_code=400, detail="password too short")

    existing = db.scalar(select(User).where(User.email == email))
    if existing is not None:
        raise HTTPException(status_code=409, detail="user already exists")

    user = User(email=email, role=UserRole(str(body.role)), password_hash=hash_password(body.password))
    db.add(user)
    db.commit()
    db.refresh(user)

    audit_log(db=db, request=request, event_type="admin_create_user", actor_user_id=current.id, target_user_id=user.id)
    db.commit()

    return {"id": str(user.id)}
