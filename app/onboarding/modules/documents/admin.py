from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.onboarding.db import db_session
from app.onboarding.errors import ValidationError
from app.onboarding.modules.documents.service import (
    create_document,
    document_to_dict,
    get_document,
    get_signed_document_url,
    list_documents,
    sign_document,
)
from app.onboarding.rbac import current_context, require_company

bp = Blueprint("documents", __name__)


def _parse_bool_arg(name: str) -> bool | None:
    raw = (request.args.get(name) or "").strip().lower()
    if not raw:
        return None
    if raw in ("1", "true", "yes"):
        return True
    if raw in ("0", "false", "no"):
        return False
    raise ValidationError(f"{name} must be true or false.")


def _optional_str(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string.")
    return value.strip() or None


@bp.get("")
@require_company
def list_view():
    s = db_session()
    ctx = current_context()
    user_id = (request.args.get("userId") or "").strip() or None
    docs = list_documents(s, ctx, user_id, signable=_parse_bool_arg("signable"))
    return jsonify([document_to_dict(d) for d in docs])


@bp.post("")
@require_company
def create_view():
    s = db_session()
    ctx = current_context()
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object body.")
    doc = create_document(s, ctx, payload)
    s.commit()
    return jsonify(document_to_dict(doc)), 201


@bp.get("/<int:document_id>")
@require_company
def detail_view(document_id: int):
    s = db_session()
    doc, complete = get_document(s, current_context(), document_id)
    return jsonify({**document_to_dict(doc), "complete": complete})


@bp.get("/<int:document_id>/url")
@require_company
def url_view(document_id: int):
    s = db_session()
    return jsonify({"url": get_signed_document_url(s, current_context(), document_id)})


@bp.post("/<int:document_id>/sign")
@require_company
def sign_view(document_id: int):
    s = db_session()
    ctx = current_context()
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object body.")
    role = payload.get("role")
    if not isinstance(role, str) or not role.strip():
        raise ValidationError("role is required.")

    result = sign_document(
        s,
        ctx,
        document_id,
        role,
        signature=_optional_str(payload, "signature"),
        signed_document_url=_optional_str(payload, "signedDocumentUrl"),
    )
    s.commit()
    return jsonify(result.to_dict())
