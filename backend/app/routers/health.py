import hmac

from fastapi import APIRouter, HTTPException, Request
from sqlalchemy import text

from app.core import redis_client
from app.core.config import settings
from app.core.queue import enqueue_attempt_expiry_sweep
from app.db import session as session_module

router = APIRouter(tags=["health"])


def _require_cron_secret(request: Request) -> None:
    secret = str(settings.cron_secret or "").strip()
    if not secret:
        raise HTTPException(status_code=404, detail="not found")

    provided = str(request.headers.get("x-cron-secret") or "").strip()
    if not provided or not hmac.compare_digest(provided, secret):
        raise HTTPException(status_code=403, detail="forbidden")


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/health/live")
def live():
    return {"status": "live"}


@router.get("/health/ready")
def ready():
    try:
        db = session_module.SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as e:
        raise HTTPException(status_code=503, detail="db not ready") from e

    try:
        redis_client.get_redis().ping()
    except Exception as e:
        raise HTTPException(status_code=503, detail="redis not ready") from e

    return {"status": "ready"}


@router.post("/health/cron/expire-attempts")
def cron_expire_attempts(request: Request):
    _require_cron_secret(request)

    interval_seconds = max(60, int(settings.attempt_expiry_sweep_interval_minutes) * 60)
    if not redis_client.try_acquire_lock("attempt_expiry_sweep", ttl_seconds=max(30, interval_seconds - 5)):
        return {"ok": True, "enqueued": False, "reason": "locked"}

    job = enqueue_attempt_expiry_sweep()
    return {"ok": True, "enqueued": True, "job_id": str(job.id)}
