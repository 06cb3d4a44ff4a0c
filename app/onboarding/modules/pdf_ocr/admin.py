from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.onboarding.audit import record_ctx_event
from app.onboarding.db import db_session
from app.onboarding.errors import ValidationError
from app.onboarding.modules.pdf_ocr.detector import contains_signature_indicators
from app.onboarding.modules.pdf_ocr.service import OcrResult, extract_from_storage, process_upload
from app.onboarding.rbac import current_context, require_company
from app.onboarding.storage import storage_from_config

bp = Blueprint("pdf_ocr", __name__)


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object body.")
    return payload


def _required_str(payload: dict, key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} is required.")
    return value


def _audit_extraction(result: OcrResult, filename: str, source: str) -> None:
    s = db_session()
    record_ctx_event(
        s,
        current_context(),
        "pdf.extract",
        entity_type="Upload",
        entity_id=filename,
        metadata={
            "source": source,
            "pages": result.pages,
            "confidence": result.confidence,
            "is_signed_document": result.is_signed_document,
            "signature_indicators": contains_signature_indicators(result.text),
        },
    )
    s.commit()


@bp.post("/extract-text")
@require_company
def extract_text():
    payload = _json_body()
    file_key = _required_str(payload, "fileKey")
    filename = _required_str(payload, "filename")

    storage = storage_from_config(current_app.config)
    result = extract_from_storage(
        storage,
        file_key,
        filename,
        max_bytes=current_app.config["MAX_PDF_BYTES"],
        ocr_fallback=current_app.extensions.get("ocr_fallback"),
    )
    _audit_extraction(result, filename, "storage")
    current_app.logger.info("Extracted %d page(s) from %s (signed=%s)", result.pages, file_key, result.is_signed_document)
    return jsonify(result.to_dict())


@bp.post("/process-upload")
@require_company
def process_upload_view():
    payload = _json_body()
    base64_data = _required_str(payload, "base64Data")
    filename = _required_str(payload, "filename")

    result = process_upload(
        base64_data,
        filename,
        max_bytes=current_app.config["MAX_PDF_BYTES"],
        ocr_fallback=current_app.extensions.get("ocr_fallback"),
    )
    _audit_extraction(result, filename, "upload")
    current_app.logger.info("Extracted %d page(s) from upload %s (signed=%s)", result.pages, filename, result.is_signed_document)
    return jsonify(result.to_dict())
