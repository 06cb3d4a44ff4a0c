from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, func, not_, or_, select, update

from app.onboarding.audit import record_ctx_event
from app.onboarding.constants import COMPANY_REPRESENTATIVE, DOCUMENT_TYPES
from app.onboarding.errors import AuthorizationError, NotFoundError, ValidationError
from app.onboarding.models import CompanyMembership, User
from app.onboarding.modules.documents.models import Document, DocumentSignature
from app.onboarding.rbac import require_admin_or_lawyer

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.onboarding.context import RequestContext

logger = logging.getLogger(__name__)

SIGNED_BY_PREFIX = "Signed by: "


@dataclass(frozen=True)
class SignResult:
    document_id: int
    complete: bool

    def to_dict(self) -> dict[str, Any]:
        return {"documentId": self.document_id, "complete": self.complete}


def _visible_documents(ctx: "RequestContext", user_id: int | None) -> list:
    conds = [
        Document.company_id == ctx.company.id,
        Document.deleted_at.is_(None),
    ]
    if user_id is not None:
        conds.append(DocumentSignature.user_id == user_id)
    return conds


def _signable_condition():
    has_content = or_(
        Document.rich_text_content.is_not(None),
        Document.signed_document_url.is_not(None),
        Document.is_signed_elsewhere.is_(True),
    )
    return and_(has_content, DocumentSignature.signed_at.is_(None))


def signatures_complete(s: "Session", document_id: int) -> bool:
    """Every signature row on the document has signed_at set. Derived on demand, never stored."""
    outstanding = s.scalar(
        select(func.count())
        .select_from(DocumentSignature)
        .where(DocumentSignature.document_id == document_id, DocumentSignature.signed_at.is_(None))
    )
    return outstanding == 0


def signatory_to_dict(sig: DocumentSignature) -> dict[str, Any]:
    return {
        "id": sig.user.external_id,
        "email": sig.user.email,
        "name": sig.user.display_name,
        "title": sig.title,
        "signedAt": sig.signed_at.isoformat() if sig.signed_at else None,
    }


def ordered_signatories(doc: Document) -> list[DocumentSignature]:
    # signed_at DESC with NULLs first, as Postgres orders it.
    return sorted(
        doc.signatures,
        key=lambda sig: (sig.signed_at is None, sig.signed_at or datetime.min),
        reverse=True,
    )


def document_to_dict(doc: Document) -> dict[str, Any]:
    attachment = None
    if doc.attachment_storage_key:
        attachment = {"key": doc.attachment_storage_key, "filename": doc.attachment_filename}
    return {
        "id": doc.id,
        "name": doc.name,
        "type": doc.document_type,
        "createdAt": doc.created_at.isoformat() if doc.created_at else None,
        "richTextContent": doc.rich_text_content,
        "signedDocumentUrl": doc.signed_document_url,
        "isSignedElsewhere": doc.is_signed_elsewhere,
        "presentation": doc.presentation,
        "attachment": attachment,
        "signatories": [signatory_to_dict(sig) for sig in ordered_signatories(doc)],
    }


def list_documents(
    s: "Session",
    ctx: "RequestContext",
    user_external_id: str | None,
    signable: bool | None = None,
) -> list[Document]:
    """
    Documents of the caller's company, newest first.

    With a user id, only documents where that user holds a signature row are
    returned, and the signable filter applies to that user's rows.
    """
    if user_external_id != ctx.user.external_id and not ctx.is_admin_or_lawyer:
        raise AuthorizationError("Only administrators and lawyers can list other users' documents.")

    user_id: int | None = None
    if user_external_id:
        user_id = s.scalar(select(User.id).where(User.external_id == user_external_id))
        if user_id is None:
            return []

    conds = _visible_documents(ctx, user_id)
    if signable is not None:
        conds.append(_signable_condition() if signable else not_(_signable_condition()))

    ids = s.scalars(
        select(Document.id)
        .join(DocumentSignature, DocumentSignature.document_id == Document.id)
        .where(*conds)
        .distinct()
    ).all()
    if not ids:
        return []
    return list(s.scalars(select(Document).where(Document.id.in_(ids)).order_by(Document.id.desc())).all())


def _get_visible_document(s: "Session", ctx: "RequestContext", document_id: int) -> Document:
    user_id = None if ctx.is_admin_or_lawyer else ctx.user.id
    doc = s.scalar(
        select(Document)
        .join(DocumentSignature, DocumentSignature.document_id == Document.id)
        .where(Document.id == document_id, *_visible_documents(ctx, user_id))
        .limit(1)
    )
    if doc is None:
        raise NotFoundError("Document not found.")
    return doc


def get_document(s: "Session", ctx: "RequestContext", document_id: int) -> tuple[Document, bool]:
    doc = _get_visible_document(s, ctx, document_id)
    return doc, signatures_complete(s, doc.id)


def get_signed_document_url(s: "Session", ctx: "RequestContext", document_id: int) -> str:
    doc = _get_visible_document(s, ctx, document_id)
    if not doc.signed_document_url:
        raise NotFoundError("Document has no signed copy.")
    return doc.signed_document_url


def sign_document(
    s: "Session",
    ctx: "RequestContext",
    document_id: int,
    role: str,
    *,
    signature: str | None = None,
    signed_document_url: str | None = None,
) -> SignResult:
    """
    Mark the (document, role) signature row signed and report completeness.

    The signature row and the document content change in the caller's
    transaction; nothing is committed here, so a failure leaves both untouched.
    """
    role = (role or "").strip()
    if not role:
        raise ValidationError("role is required.")
    if role == COMPANY_REPRESENTATIVE:
        require_admin_or_lawyer(ctx)

    conds = _visible_documents(ctx, None if role == COMPANY_REPRESENTATIVE else ctx.user.id)
    eligible = s.scalar(
        select(DocumentSignature.id)
        .join(Document, Document.id == DocumentSignature.document_id)
        .where(
            Document.id == document_id,
            DocumentSignature.title == role,
            DocumentSignature.signed_at.is_(None),
            *conds,
        )
        .limit(1)
    )
    if eligible is None:
        raise NotFoundError("No open signature for this document and role.")

    # Conditional update: a concurrent signer that got here first leaves zero rows to update.
    res = s.execute(
        update(DocumentSignature)
        .where(
            DocumentSignature.document_id == document_id,
            DocumentSignature.title == role,
            DocumentSignature.signed_at.is_(None),
        )
        .values(signed_at=datetime.utcnow())
    )
    if res.rowcount != 1:
        raise NotFoundError("No open signature for this document and role.")

    if signature or signed_document_url:
        doc = s.get(Document, document_id)
        if signed_document_url:
            doc.signed_document_url = signed_document_url
        if signature:
            doc.rich_text_content = f"{SIGNED_BY_PREFIX}{signature}"
    s.flush()

    complete = signatures_complete(s, document_id)
    record_ctx_event(
        s,
        ctx,
        "document.sign",
        entity_type="Document",
        entity_id=str(document_id),
        metadata={
            "role": role,
            "complete": complete,
            "with_signature": bool(signature),
            "with_url": bool(signed_document_url),
        },
    )
    logger.info("Document %s signed as %r by user %s (complete=%s)", document_id, role, ctx.user.id, complete)
    return SignResult(document_id=document_id, complete=complete)


def _str_field(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string.")
    return value.strip()


def _parse_signers(s: "Session", ctx: "RequestContext", raw: Any) -> list[tuple[User, str]]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("At least one signer is required.")
    signers: list[tuple[User, str]] = []
    seen_titles: set[str] = set()
    for item in raw:
        if not isinstance(item, dict):
            raise ValidationError("Each signer must be an object with userId and title.")
        title = _str_field(item, "title")
        external_id = _str_field(item, "userId")
        if not title or not external_id:
            raise ValidationError("Each signer needs a userId and a title.")
        if title in seen_titles:
            raise ValidationError(f"Duplicate signer title: {title}")
        seen_titles.add(title)
        user = s.scalar(
            select(User)
            .join(CompanyMembership, CompanyMembership.user_id == User.id)
            .where(User.external_id == external_id, CompanyMembership.company_id == ctx.company.id)
        )
        if user is None:
            raise NotFoundError(f"Signer {external_id} is not a member of this company.")
        signers.append((user, title))
    return signers


def create_document(s: "Session", ctx: "RequestContext", payload: dict) -> Document:
    """Create a document (optionally from a template) together with its signature rows."""
    from app.onboarding.modules.templates.service import get_template

    require_admin_or_lawyer(ctx)

    fields: dict[str, Any] = {}
    template_id = _str_field(payload, "templateId")
    if template_id:
        tpl = get_template(s, ctx, template_id)
        fields.update(
            name=tpl.name,
            document_type=tpl.document_type,
            rich_text_content=tpl.rich_text_content,
            signed_document_url=tpl.signed_document_url,
            is_signed_elsewhere=tpl.is_signed_elsewhere,
        )

    for key, attr in (
        ("name", "name"),
        ("type", "document_type"),
        ("richTextContent", "rich_text_content"),
        ("signedDocumentUrl", "signed_document_url"),
    ):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            fields[attr] = value.strip() if attr in ("name", "document_type") else value
    if "isSignedElsewhere" in payload:
        fields["is_signed_elsewhere"] = bool(payload.get("isSignedElsewhere"))

    if not fields.get("name"):
        raise ValidationError("name is required.")
    if fields.get("document_type") not in DOCUMENT_TYPES:
        raise ValidationError(f"Invalid type. Must be one of: {', '.join(DOCUMENT_TYPES)}")

    signers = _parse_signers(s, ctx, payload.get("signers"))

    doc = Document(company_id=ctx.company.id, **fields)
    s.add(doc)
    s.flush()
    for user, title in signers:
        s.add(DocumentSignature(document_id=doc.id, user_id=user.id, title=title))
    s.flush()
    s.refresh(doc)

    record_ctx_event(
        s,
        ctx,
        "document.create",
        entity_type="Document",
        entity_id=str(doc.id),
        metadata={"name": doc.name, "template": template_id or None, "signers": [t for _, t in signers]},
    )
    return doc
