import json
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.onboarding.context import RequestContext
from app.onboarding.models import AuditEvent, User


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    company_id: int | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """
    Append-only audit event helper. Works outside a request (scripts, tests).
    """
    in_request = has_request_context()
    rid = request_id or (getattr(g, "request_id", None) if in_request else None)
    ev = AuditEvent(
        request_id=rid,
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        company_id=company_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        client_ip=request.remote_addr if in_request else None,
    )
    s.add(ev)
    return ev


def record_ctx_event(s: Session, ctx: RequestContext, action: str, **kwargs: Any) -> AuditEvent:
    return record_event(
        s,
        actor=ctx.user,
        company_id=ctx.company.id,
        request_id=ctx.request_id,
        action=action,
        **kwargs,
    )
