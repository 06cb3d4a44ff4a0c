"""
Error taxonomy surfaced by the API.

Services raise these; the app-level error handlers turn them into JSON
responses. Nothing here is retried automatically.
"""
from __future__ import annotations


class OnboardingError(Exception):
    status_code = 500
    code = "InternalError"

    def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        if code:
            self.code = code

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "code": self.code}


class ValidationError(OnboardingError):
    status_code = 400
    code = "ValidationError"


class PdfValidationError(ValidationError):
    """Raised with one of SizeExceeded, UnsupportedExtension, InvalidFormat."""


class AuthenticationRequired(OnboardingError):
    status_code = 401
    code = "AuthenticationRequired"


class AuthorizationError(OnboardingError):
    status_code = 403
    code = "Forbidden"


class NotFoundError(OnboardingError):
    status_code = 404
    code = "NotFound"


class ExtractionError(OnboardingError):
    status_code = 422
    code = "ExtractionFailed"


class InternalError(OnboardingError):
    status_code = 500
    code = "InternalError"
