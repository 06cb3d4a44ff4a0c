from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g, request, session

from app.onboarding.context import RequestContext
from app.onboarding.db import db_session
from app.onboarding.errors import AuthenticationRequired, AuthorizationError
from app.onboarding.models import Company, CompanyMembership, User


def _requested_company_id() -> int | None:
    raw = (request.headers.get("X-Company-Id") or "").strip() or session.get("company_id")
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def build_context(user: User | None) -> RequestContext:
    if not user or not user.is_active:
        raise AuthenticationRequired("Sign in to continue.")
    company_id = _requested_company_id()
    if company_id is None:
        raise AuthorizationError("No company selected.")

    s = db_session()
    membership = s.get(CompanyMembership, {"company_id": company_id, "user_id": user.id})
    if membership is None:
        g.missing_company = company_id
        raise AuthorizationError("Not a member of this company.")
    company = s.get(Company, company_id)
    return RequestContext(user=user, company=company, role=membership.role, request_id=getattr(g, "request_id", None))


def current_context() -> RequestContext:
    ctx = getattr(g, "ctx", None)
    if ctx is None:
        raise RuntimeError("No request context; wrap the view in @require_company")
    return ctx


def require_company(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Resolve the caller's company membership into g.ctx before running the view."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        g.ctx = build_context(getattr(g, "current_user", None))
        return fn(*args, **kwargs)

    return wrapped


def require_admin_or_lawyer(ctx: RequestContext) -> None:
    if not ctx.is_admin_or_lawyer:
        raise AuthorizationError("Company administrator or lawyer required.")
