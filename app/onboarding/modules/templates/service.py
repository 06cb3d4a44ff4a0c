from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_, select

from app.onboarding.audit import record_ctx_event
from app.onboarding.constants import TEMPLATE_TYPES
from app.onboarding.errors import NotFoundError, ValidationError
from app.onboarding.modules.templates.models import DocumentTemplate
from app.onboarding.rbac import require_admin_or_lawyer

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.onboarding.context import RequestContext


def _visible_to(ctx: "RequestContext"):
    return or_(DocumentTemplate.company_id == ctx.company.id, DocumentTemplate.company_id.is_(None))


def template_summary(t: DocumentTemplate) -> dict[str, Any]:
    return {
        "id": t.id,
        "externalId": t.external_id,
        "name": t.name,
        "type": t.document_type,
        "signable": t.signable,
        "richTextContent": t.rich_text_content,
    }


def template_detail(t: DocumentTemplate) -> dict[str, Any]:
    return {
        "id": t.id,
        "name": t.name,
        "type": t.document_type,
        "richTextContent": t.rich_text_content,
        "signedDocumentUrl": t.signed_document_url,
        "isSignedElsewhere": t.is_signed_elsewhere,
    }


def validate_template_payload(payload: dict, *, creating: bool) -> list[str]:
    """Validate template creation/update payload. Returns list of errors."""
    errors = []
    name = payload.get("name")
    if creating or name is not None:
        if not isinstance(name, str) or not name.strip():
            errors.append("Name is required.")
    if creating:
        t = payload.get("type")
        if not isinstance(t, str) or t.strip() not in TEMPLATE_TYPES:
            errors.append(f"Invalid type. Must be one of: {', '.join(TEMPLATE_TYPES)}")
    for key in ("richTextContent", "signedDocumentUrl"):
        value = payload.get(key)
        if value is not None and not isinstance(value, str):
            errors.append(f"{key} must be a string.")
    return errors


def list_templates(
    s: "Session",
    ctx: "RequestContext",
    document_type: str | None = None,
    company_id: int | None = None,
) -> list[DocumentTemplate]:
    stmt = select(DocumentTemplate).where(_visible_to(ctx))
    if company_id is not None:
        stmt = stmt.where(DocumentTemplate.company_id == company_id)
    if document_type:
        stmt = stmt.where(DocumentTemplate.document_type == document_type)
    return list(s.scalars(stmt.order_by(DocumentTemplate.name.asc())).all())


def get_template(s: "Session", ctx: "RequestContext", external_id: str) -> DocumentTemplate:
    t = s.scalar(select(DocumentTemplate).where(DocumentTemplate.external_id == external_id, _visible_to(ctx)))
    if t is None:
        raise NotFoundError("Template not found.")
    return t


def create_template(s: "Session", ctx: "RequestContext", payload: dict) -> DocumentTemplate:
    """Create a signable template owned by the caller's company."""
    require_admin_or_lawyer(ctx)
    errors = validate_template_payload(payload, creating=True)
    if errors:
        raise ValidationError(" ".join(errors))

    now = datetime.utcnow()
    t = DocumentTemplate(
        company_id=ctx.company.id,
        name=payload["name"].strip(),
        document_type=payload["type"].strip(),
        rich_text_content=payload.get("richTextContent") or None,
        signed_document_url=(payload.get("signedDocumentUrl") or "").strip() or None,
        is_signed_elsewhere=bool(payload.get("isSignedElsewhere")),
        signable=True,
        created_at=now,
        updated_at=now,
    )
    s.add(t)
    s.flush()

    record_ctx_event(
        s,
        ctx,
        "template.create",
        entity_type="DocumentTemplate",
        entity_id=t.external_id,
        metadata={"name": t.name, "type": t.document_type},
    )
    return t


def update_template(s: "Session", ctx: "RequestContext", external_id: str, payload: dict) -> DocumentTemplate:
    """Update a template owned by the caller's company. Shared templates are read-only."""
    require_admin_or_lawyer(ctx)
    errors = validate_template_payload(payload, creating=False)
    if errors:
        raise ValidationError(" ".join(errors))

    t = s.scalar(
        select(DocumentTemplate).where(
            DocumentTemplate.external_id == external_id,
            DocumentTemplate.company_id == ctx.company.id,
        )
    )
    if t is None:
        raise NotFoundError("Template not found.")

    changes = {}
    if payload.get("name") is not None:
        new_name = payload["name"].strip()
        if new_name != t.name:
            changes["name"] = {"old": t.name, "new": new_name}
            t.name = new_name

    if "richTextContent" in payload:
        new_content = payload.get("richTextContent") or None
        if new_content != t.rich_text_content:
            changes["richTextContent"] = {"changed": True}
            t.rich_text_content = new_content

    if "signedDocumentUrl" in payload:
        new_url = (payload.get("signedDocumentUrl") or "").strip() or None
        if new_url != t.signed_document_url:
            changes["signedDocumentUrl"] = {"old": t.signed_document_url, "new": new_url}
            t.signed_document_url = new_url

    if "isSignedElsewhere" in payload:
        new_flag = bool(payload.get("isSignedElsewhere"))
        if new_flag != t.is_signed_elsewhere:
            changes["isSignedElsewhere"] = {"old": t.is_signed_elsewhere, "new": new_flag}
            t.is_signed_elsewhere = new_flag

    if changes:
        t.updated_at = datetime.utcnow()
        record_ctx_event(
            s,
            ctx,
            "template.update",
            entity_type="DocumentTemplate",
            entity_id=t.external_id,
            metadata={"changes": changes},
        )
    return t
