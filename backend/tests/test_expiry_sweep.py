import uuid
from datetime import timedelta

from sqlalchemy import select, update

from app.core.clock import utcnow
from app.models.attempt import AttemptStatus, QuizAttempt
from app.services.attempt_expiry_jobs import expire_overdue_attempts, expire_overdue_attempts_job
from app.services.attempts import AttemptService

from conftest import make_package


def _status(db, attempt_id):
    db.expire_all()
    return db.scalar(select(QuizAttempt.status).where(QuizAttempt.id == uuid.UUID(attempt_id)))


def test_sweep_expires_only_overdue_attempts(db, admin, user, clock):
    svc = AttemptService(db, clock=clock, required_question_count=1)
    overdue = svc.start_attempt(make_package(questions=1, created_by=admin.id), user.id)
    clock.advance(7000)
    fresh = svc.start_attempt(make_package(questions=1, created_by=admin.id), user.id)

    clock.advance(300)
    expired = expire_overdue_attempts(db, service=svc)

    assert overdue.attempt_id in expired
    assert fresh.attempt_id not in expired
    assert _status(db, overdue.attempt_id) == AttemptStatus.TIME_OUT
    assert _status(db, fresh.attempt_id) == AttemptStatus.IN_PROGRESS

    # Nothing left to do for this attempt on a second pass.
    assert overdue.attempt_id not in expire_overdue_attempts(db, service=svc)


def test_sweep_job_uses_its_own_session(db, admin, user):
    snap = AttemptService(db, required_question_count=1).start_attempt(
        make_package(questions=1, created_by=admin.id), user.id
    )
    db.execute(
        update(QuizAttempt)
        .where(QuizAttempt.id == uuid.UUID(snap.attempt_id))
        .values(started_at=utcnow() - timedelta(hours=3))
    )
    db.commit()

    out = expire_overdue_attempts_job()
    assert out["ok"] is True
    assert snap.attempt_id in out["attempt_ids"]
    assert out["expired"] == len(out["attempt_ids"])
    assert _status(db, snap.attempt_id) == AttemptStatus.TIME_OUT
