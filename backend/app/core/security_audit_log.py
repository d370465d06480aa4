from __future__ import annotations

import json
import uuid

from fastapi import Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.security_audit import SecurityAuditEvent


def request_id(request: Request) -> str | None:
    rid = str(getattr(request.state, "request_id", None) or "").strip()
    return rid or None


def client_ip(request: Request) -> str | None:
    """Caller address; proxy headers only count when TRUST_PROXY_HEADERS is on."""
    if settings.trust_proxy_headers:
        for header in ("x-real-ip", "x-forwarded-for"):
            ip = str(request.headers.get(header) or "").split(",")[0].strip()
            if ip:
                return ip
    if request.client and request.client.host:
        return request.client.host
    return None


def audit_log(
    *,
    db: Session,
    request: Request,
    event_type: str,
    actor_user_id: uuid.UUID | None = None,
    target_user_id: uuid.UUID | None = None,
    meta: dict | None = None,
) -> SecurityAuditEvent:
    """Stage an audit row on the session. The caller commits."""
    event = SecurityAuditEvent(
        actor_user_id=actor_user_id,
        target_user_id=target_user_id,
        event_type=str(event_type),
        meta=json.dumps(meta, ensure_ascii=False, default=str) if meta else None,
        request_id=request_id(request),
        ip=client_ip(request),
    )
    db.add(event)
    return event


def audit_admin_change(
    *,
    db: Session,
    request: Request,
    actor_user_id: uuid.UUID,
    action: str,
    entity: str,
    entity_id,
    **meta,
) -> SecurityAuditEvent:
    # e.g. admin_delete_question with {"question_id": ..., "renumbered": 3}
    return audit_log(
        db=db,
        request=request,
        event_type=f"admin_{action}_{entity}",
        actor_user_id=actor_user_id,
        meta={f"{entity}_id": str(entity_id), **meta},
    )
