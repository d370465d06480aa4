from __future__ import annotations

import logging

from sqlalchemy import select

from app.core.clock import utcnow
from app.db import session as session_module
from app.models.attempt import AttemptStatus, QuizAttempt
from app.services.attempts import AttemptService


log = logging.getLogger(__name__)


def expire_overdue_attempts(db, *, service: AttemptService | None = None, batch_size: int = 500) -> list[str]:
    """Move every IN_PROGRESS attempt whose clock reached zero to TIME_OUT.

    Uses the same remaining-time rule and the same conditional update as the
    lazy path in AttemptService, so a concurrent submit or read wins cleanly.
    """
    svc = service or AttemptService(db)
    now = svc.clock()

    expired: list[str] = []
    candidates = db.scalars(
        select(QuizAttempt)
        .where(QuizAttempt.status == AttemptStatus.IN_PROGRESS)
        .order_by(QuizAttempt.started_at)
        .limit(int(batch_size))
    ).all()
    for attempt in candidates:
        if svc.current_remaining(attempt, now) > 0:
            continue
        if svc.expire(attempt, now):
            expired.append(str(attempt.id))
    return expired


def expire_overdue_attempts_job(*, batch_size: int = 500) -> dict:
    """RQ entrypoint for the optional active sweep."""
    started = utcnow()
    with session_module.SessionLocal() as db:
        expired = expire_overdue_attempts(db, batch_size=batch_size)

    log.info("expiry sweep done expired=%s started_at=%s", len(expired), started.isoformat())
    return {"ok": True, "expired": len(expired), "attempt_ids": expired}
