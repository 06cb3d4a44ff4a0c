import logging
import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request, session

from app.onboarding.auth import load_current_user
from app.onboarding.config import load_config
from app.onboarding.db import init_db, teardown_db_session
from app.onboarding.errors import OnboardingError
from app.onboarding.modules.documents.admin import bp as documents_bp
from app.onboarding.modules.pdf_ocr.admin import bp as pdf_ocr_bp
from app.onboarding.modules.pdf_ocr.service import OcrFallback
from app.onboarding.modules.templates.admin import bp as templates_bp
from app.onboarding.routes import bp as routes_bp

logger = logging.getLogger(__name__)


def create_app(*, ocr_fallback: OcrFallback | None = None) -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    # None means the placeholder fallback in pdf_ocr.service
    app.extensions["ocr_fallback"] = ocr_fallback

    from app.onboarding.security import ensure_csrf_token, validate_csrf

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            if not validate_csrf(request):
                return jsonify({"error": "CSRF token missing or invalid.", "code": "ValidationError"}), 400
        return None

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    if hasattr(os, "register_at_fork"):
        def _after_fork_child():
            engine = app.extensions.get("sqlalchemy_engine")
            if engine:
                engine.dispose()
                app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

        os.register_at_fork(after_in_child=_after_fork_child)

    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [
            key
            for key in ("S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not app.config.get(key)
        ]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    app.register_blueprint(routes_bp)
    app.register_blueprint(pdf_ocr_bp, url_prefix="/api/pdf-ocr")
    app.register_blueprint(documents_bp, url_prefix="/api/documents")
    app.register_blueprint(templates_bp, url_prefix="/api/documents/templates")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(OnboardingError)
    def _err_onboarding(e: OnboardingError):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        if e.status_code >= 500:
            app.logger.error("%s (request_id=%s): %s", e.code, rid, e.message, exc_info=e)
        elif e.status_code == 403:
            app.logger.warning(
                "Forbidden: %s user=%s company=%s request_id=%s",
                e.message,
                getattr(getattr(g, "current_user", None), "id", None),
                getattr(g, "missing_company", None),
                rid,
            )
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return jsonify({"error": "Not found.", "code": "NotFound"}), 404

    @app.errorhandler(405)
    def _err_405(e):  # type: ignore[no-redef]
        return jsonify({"error": "Method not allowed.", "code": "MethodNotAllowed"}), 405

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        limit_mb = app.config["MAX_PDF_BYTES"] // (1024 * 1024)
        return jsonify({"error": f"File too large. Maximum size is {limit_mb}MB.", "code": "SizeExceeded"}), 413

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": "Internal server error.", "code": "InternalError"}), 500

    logger.info("create_app() complete; app ready to serve")
    return app
