from __future__ import annotations

import redis
from rq import Queue
from rq.job import Job

from app.core.config import settings
from app.services.attempt_expiry_jobs import expire_overdue_attempts_job


def get_queue(name: str | None = None) -> Queue:
    conn = redis.Redis.from_url(settings.redis_url)
    eff = str(name or "").strip() or str(settings.rq_queue_default)
    return Queue(name=eff, connection=conn)


def enqueue_attempt_expiry_sweep(name: str | None = None) -> Job:
    q = get_queue(name)
    return q.enqueue(
        expire_overdue_attempts_job,
        job_timeout=60 * 5,
        result_ttl=60 * 60,
        failure_ttl=60 * 60,
    )
