from __future__ import annotations

from dataclasses import dataclass

from app.onboarding.constants import ROLE_ADMINISTRATOR, ROLE_LAWYER
from app.onboarding.models import Company, User


@dataclass(frozen=True)
class RequestContext:
    """Who is calling, and on behalf of which company."""

    user: User
    company: Company
    role: str
    request_id: str | None = None

    @property
    def company_administrator(self) -> bool:
        return self.role == ROLE_ADMINISTRATOR

    @property
    def company_lawyer(self) -> bool:
        return self.role == ROLE_LAWYER

    @property
    def is_admin_or_lawyer(self) -> bool:
        return self.company_administrator or self.company_lawyer
