from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.onboarding.constants import TEMPLATE_TYPES
from app.onboarding.db import db_session
from app.onboarding.errors import ValidationError
from app.onboarding.modules.templates.service import (
    create_template,
    get_template,
    list_templates,
    template_detail,
    template_summary,
    update_template,
)
from app.onboarding.rbac import current_context, require_company

bp = Blueprint("templates", __name__)


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object body.")
    return payload


@bp.get("")
@require_company
def list_view():
    s = db_session()
    doc_type = (request.args.get("type") or "").strip() or None
    if doc_type and doc_type not in TEMPLATE_TYPES:
        raise ValidationError(f"Invalid type. Must be one of: {', '.join(TEMPLATE_TYPES)}")
    company_id = None
    raw_company = (request.args.get("companyId") or "").strip()
    if raw_company:
        try:
            company_id = int(raw_company)
        except ValueError:
            raise ValidationError("companyId must be an integer.") from None
    templates = list_templates(s, current_context(), document_type=doc_type, company_id=company_id)
    return jsonify([template_summary(t) for t in templates])


@bp.get("/<external_id>")
@require_company
def detail_view(external_id: str):
    s = db_session()
    t = get_template(s, current_context(), external_id)
    # No external e-signature provider; token and fields stay empty.
    return jsonify({"template": template_detail(t), "token": "", "requiredFields": []})


@bp.post("")
@require_company
def create_view():
    s = db_session()
    t = create_template(s, current_context(), _json_body())
    s.commit()
    return jsonify({"id": t.external_id}), 201


@bp.post("/<external_id>")
@require_company
def update_view(external_id: str):
    s = db_session()
    update_template(s, current_context(), external_id, _json_body())
    s.commit()
    return jsonify({"success": True})
