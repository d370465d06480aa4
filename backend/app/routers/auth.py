from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.rate_limit import rate_limit
from app.core.security import TOKEN_COOKIE, create_access_token, get_current_user, hash_password, verify_password
from app.core.security_audit_log import audit_log
from app.db.session import get_db
from app.models.user import User, UserRole

router = APIRouter(prefix="/auth", tags=["auth"])


class MeResponse(BaseModel):
    id: str
    email: str
    role: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int | None = None
    user: MeResponse


class RegisterRequest(BaseModel):
    email: str
    password: str


def normalize_email(raw: str) -> str:
    return str(raw or "").strip().lower()


def _looks_like_email(value: str) -> bool:
    local, sep, domain = value.partition("@")
    return bool(sep and local and "." in domain and " " not in value)


def _me(user: User) -> dict[str, str]:
    return {"id": str(user.id), "email": user.email, "role": user.role.value}


def _token_response(user: User) -> dict[str, object]:
    return {
        "access_token": create_access_token(user_id=str(user.id), role=user.role.value),
        "expires_in": int(settings.jwt_access_token_minutes) * 60,
        "user": _me(user),
    }


@router.post("/register", response_model=TokenResponse)
def register(
    request: Request,
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    _: object = rate_limit(key_prefix="auth_register", limit=10, window_seconds=60),
):
    if not settings.allow_public_register:
        raise HTTPException(status_code=403, detail="registration disabled")

    email = normalize_email(payload.email)
    if not _looks_like_email(email):
        raise HTTPException(status_code=400, detail="invalid email")

    if not payload.password or len(payload.password) < int(settings.password_min_length or 0):
        raise HTTPException(status_code=400, detail="password too short")

    existing = db.scalar(select(User).where(User.email == email))
    if existing is not None:
        audit_log(db=db, request=request, event_type="auth_register_failed", meta={"reason": "user_exists", "email": email})
        db.commit()
        raise HTTPException(status_code=409, detail="user already exists")

    # Public registration never grants admin.
    user = User(email=email, role=UserRole.user, password_hash=hash_password(payload.password))
    db.add(user)
    db.commit()
    db.refresh(user)

    audit_log(db=db, request=request, event_type="auth_register_success", actor_user_id=user.id, target_user_id=user.id)
    db.commit()

    return _token_response(user)


@router.post("/token", response_model=TokenResponse)
def token(
    request: Request,
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
    _: object = rate_limit(key_prefix="auth_token", limit=20, window_seconds=60),
):
    email = normalize_email(form_data.username)
    user = db.scalar(select(User).where(User.email == email))
    if user is None or not verify_password(form_data.password, user.password_hash):
        audit_log(db=db, request=request, event_type="auth_login_failed", meta={"email": email})
        db.commit()
        raise HTTPException(status_code=401, detail="invalid credentials")

    audit_log(db=db, request=request, event_type="auth_login_success", actor_user_id=user.id, target_user_id=user.id)
    db.commit()

    body = _token_response(user)
    response.set_cookie(
        TOKEN_COOKIE,
        str(body["access_token"]),
        max_age=int(settings.jwt_access_token_minutes) * 60,
        httponly=True,
        samesite="lax",
        secure=(settings.app_env or "").strip().lower() in {"prod", "production"},
    )
    return body


@router.post("/logout")
def logout(response: Response, user: User = Depends(get_current_user)):
    # Tokens are stateless; logging out only drops the browser cookie.
    response.delete_cookie(TOKEN_COOKIE)
    return {"ok": True}


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return _me(user)
