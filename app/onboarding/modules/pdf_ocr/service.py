from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Callable
from dataclasses import dataclass
from io import BytesIO

import pdfplumber

from app.onboarding.constants import MAX_PDF_BYTES
from app.onboarding.errors import (
    ExtractionError,
    InternalError,
    NotFoundError,
    OnboardingError,
    PdfValidationError,
    ValidationError,
)
from app.onboarding.modules.pdf_ocr.detector import is_signed
from app.onboarding.storage import ObjectNotFound, Storage

logger = logging.getLogger(__name__)

# Direct extraction shorter than this is treated as an image-only scan.
MIN_DIRECT_TEXT_CHARS = 100
DIRECT_TEXT_CONFIDENCE = 0.95
OCR_FALLBACK_CONFIDENCE = 0.7

PLACEHOLDER_OCR_TEXT = """CONTRACTOR AGREEMENT

This agreement is made between [Company Name] and [Contractor Name].

Terms and Conditions:
1. Services to be provided as outlined in Exhibit A
2. Payment terms: Monthly invoicing
3. Contract duration: 12 months

[This appears to be an unsigned contract template]"""


@dataclass(frozen=True)
class PdfValidation:
    valid: bool
    error: str | None = None
    code: str | None = None


@dataclass(frozen=True)
class OcrResult:
    text: str
    is_signed_document: bool
    confidence: float
    pages: int

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "isSignedDocument": self.is_signed_document,
            "confidence": self.confidence,
            "pages": self.pages,
        }


OcrFallback = Callable[[bytes, int], OcrResult]


def validate_pdf_file(data: bytes, filename: str, *, max_bytes: int = MAX_PDF_BYTES) -> PdfValidation:
    if len(data) > max_bytes:
        return PdfValidation(False, f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB.", "SizeExceeded")
    if not (filename or "").lower().endswith(".pdf"):
        return PdfValidation(False, "Only PDF files are supported.", "UnsupportedExtension")
    header = data[:4].decode("latin-1")
    if "%PDF" not in header:
        return PdfValidation(False, "Invalid PDF file format.", "InvalidFormat")
    return PdfValidation(True)


def ensure_valid_pdf(data: bytes, filename: str, *, max_bytes: int = MAX_PDF_BYTES) -> None:
    result = validate_pdf_file(data, filename, max_bytes=max_bytes)
    if not result.valid:
        logger.warning("PDF rejected (%s): filename=%r size=%d", result.code, filename, len(data))
        raise PdfValidationError(result.error, code=result.code)


def placeholder_ocr(data: bytes, pages: int) -> OcrResult:
    """
    Stand-in for image OCR.

    Returns a fixed agreement body at reduced confidence. Swap in a real engine
    by passing ``ocr_fallback`` to :func:`extract_text_from_pdf`.
    """
    return OcrResult(
        text=PLACEHOLDER_OCR_TEXT,
        is_signed_document=False,
        confidence=OCR_FALLBACK_CONFIDENCE,
        pages=pages,
    )


def _read_pdf(data: bytes) -> tuple[str, int]:
    text = []
    with pdfplumber.open(BytesIO(data)) as pdf:
        for page in pdf.pages:
            text.append(page.extract_text() or "")
        pages = len(pdf.pages)
    return "\n".join(text), pages


def extract_text_from_pdf(data: bytes, ocr_fallback: OcrFallback | None = None) -> OcrResult:
    try:
        text, pages = _read_pdf(data)
    except Exception as e:
        logger.warning("PDF text extraction failed: %s", e)
        raise ExtractionError("Failed to extract text from PDF") from e

    stripped = text.strip()
    if len(stripped) > MIN_DIRECT_TEXT_CHARS:
        return OcrResult(
            text=stripped,
            is_signed_document=is_signed(text),
            confidence=DIRECT_TEXT_CONFIDENCE,
            pages=pages,
        )

    logger.info("Direct extraction yielded %d chars over %d page(s); using OCR fallback", len(stripped), pages)
    fallback = ocr_fallback or placeholder_ocr
    try:
        return fallback(data, pages)
    except Exception as e:
        logger.warning("OCR fallback failed: %s", e)
        raise ExtractionError("OCR processing temporarily unavailable") from e


def decode_base64_payload(base64_data: str) -> bytes:
    # MIME-style payloads wrap lines; whitespace is not part of the alphabet.
    compact = "".join((base64_data or "").split())
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("File payload is not valid base64.") from e


def _validate_and_extract(data: bytes, filename: str, *, max_bytes: int, ocr_fallback: OcrFallback | None) -> OcrResult:
    try:
        ensure_valid_pdf(data, filename, max_bytes=max_bytes)
        return extract_text_from_pdf(data, ocr_fallback)
    except OnboardingError:
        raise
    except Exception as e:
        logger.exception("PDF OCR processing failed: filename=%r", filename)
        raise InternalError("Failed to process PDF document") from e


def process_upload(
    base64_data: str,
    filename: str,
    *,
    max_bytes: int = MAX_PDF_BYTES,
    ocr_fallback: OcrFallback | None = None,
) -> OcrResult:
    """Decode a base64 upload, validate it, and extract its text."""
    data = decode_base64_payload(base64_data)
    return _validate_and_extract(data, filename, max_bytes=max_bytes, ocr_fallback=ocr_fallback)


def extract_from_storage(
    storage: Storage,
    file_key: str,
    filename: str,
    *,
    max_bytes: int = MAX_PDF_BYTES,
    ocr_fallback: OcrFallback | None = None,
) -> OcrResult:
    """Same as :func:`process_upload` for bytes already sitting in object storage."""
    try:
        data = storage.get_bytes(file_key)
    except ObjectNotFound as e:
        raise NotFoundError("File not found") from e
    except Exception as e:
        logger.exception("Storage read failed for key=%r", file_key)
        raise InternalError("Failed to process PDF document") from e
    return _validate_and_extract(data, filename, max_bytes=max_bytes, ocr_fallback=ocr_fallback)
