from flask import Blueprint

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for load balancer probes. No DB access, minimal overhead.
    """
    return "ok", 200


@bp.get("/api/csrf-token")
def csrf_token():
    """Token the client echoes back in X-CSRF-Token on mutating requests."""
    from app.onboarding.security import ensure_csrf_token

    return {"csrfToken": ensure_csrf_token()}
