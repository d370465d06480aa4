import sys
import time
import uuid
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.core.clock import utcnow
from app.core.security import create_access_token, hash_password
from app.db.base import Base
from app.db import session as session_module
from app.main import create_app

# Import models so that they are registered in Base.metadata before create_all.
from app.models import (  # noqa: F401
    AnswerOption,
    QuizAnswer,
    QuizAttempt,
    QuizPackage,
    QuizQuestion,
    SecurityAuditEvent,
    User,
    UserRole,
)


TEST_PASSWORD = "testpass123"
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)
CORRECT_CYCLE = "ABCDE"


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def ping(self):
        return True

    def _now(self) -> float:
        return time.time()

    def _get_entry(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value, exp

    def get(self, key: str):
        entry = self._get_entry(key)
        return entry[0] if entry else None

    def set(self, key: str, value: str, ex: int | None = None, nx: bool = False):
        if nx and self._get_entry(key) is not None:
            return None
        exp = (self._now() + int(ex)) if ex else None
        self._data[key] = (value, exp)
        return True

    def incr(self, key: str):
        cur = self.get(key)
        n = int(cur or 0) + 1
        _, exp = self._data.get(key, ("", None))
        self._data[key] = (str(n), exp)
        return n

    def expire(self, key: str, seconds: int):
        entry = self._get_entry(key)
        if not entry:
            return False
        value, _ = entry
        self._data[key] = (value, self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        entry = self._get_entry(key)
        if not entry:
            return -2
        _, exp = entry
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))

    def clear(self) -> None:
        self._data.clear()


# Configure test DB (SQLite in-memory) at import time so all tests importing
# app.db.session.SessionLocal will get the patched version.
_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = session_module.sessionmaker(autocommit=False, autoflush=False, bind=_engine)


# Stub Redis at import time (rate limiting, cron locks, readiness).
_mem_redis = _MemoryRedis()
import app.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis


class FakeClock:
    """Settable clock for AttemptService; starts at the real current time."""

    def __init__(self, start: datetime | None = None):
        self.now = start or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> datetime:
        self.now = self.now + timedelta(seconds=int(seconds))
        return self.now


@pytest.fixture(autouse=True)
def _reset_redis():
    _mem_redis.clear()
    yield


@pytest.fixture(scope="session")
def client():
    app = create_app()

    # Ensure app dependencies use our session factory.
    def _get_db_override():
        db = session_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[session_module.get_db] = _get_db_override
    return TestClient(app)


@pytest.fixture()
def db():
    with session_module.SessionLocal() as session:
        yield session


@pytest.fixture()
def clock():
    return FakeClock()


def make_user(*, role: UserRole = UserRole.user, email: str | None = None) -> User:
    with session_module.SessionLocal() as s:
        user = User(
            email=email or f"{role.value}_{uuid.uuid4().hex[:10]}@example.com",
            role=role,
            password_hash=_TEST_PASSWORD_HASH,
        )
        s.add(user)
        s.commit()
        s.refresh(user)
        s.expunge(user)
        return user


def headers_for(user: User) -> dict[str, str]:
    token = create_access_token(user_id=str(user.id), role=user.role.value)
    return {"Authorization": f"Bearer {token}"}


def make_package(*, questions: int, created_by: uuid.UUID, title: str | None = None) -> uuid.UUID:
    """Insert a package whose question i has correct answer CORRECT_CYCLE[i % 5]."""
    with session_module.SessionLocal() as s:
        package = QuizPackage(
            title=title or f"Package {uuid.uuid4().hex[:6]}",
            description="seeded",
            created_by=created_by,
        )
        s.add(package)
        s.flush()
        for i in range(int(questions)):
            s.add(
                QuizQuestion(
                    package_id=package.id,
                    question_text=f"Question {i + 1}",
                    option_a=f"q{i}-a",
                    option_b=f"q{i}-b",
                    option_c=f"q{i}-c",
                    option_d=f"q{i}-d",
                    option_e=f"q{i}-e",
                    correct_answer=AnswerOption(CORRECT_CYCLE[i % len(CORRECT_CYCLE)]),
                    order_index=i,
                )
            )
        s.commit()
        return package.id


@pytest.fixture()
def user():
    return make_user()


@pytest.fixture()
def admin():
    return make_user(role=UserRole.admin)


@pytest.fixture()
def user_headers(user):
    return headers_for(user)


@pytest.fixture()
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture()
def full_package(admin):
    return make_package(questions=110, created_by=admin.id)
