import os
import sys
from pathlib import Path

from sqlalchemy import select

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.onboarding.constants import ROLE_ADMINISTRATOR  # noqa: E402
from app.onboarding.models import Company, CompanyMembership, User  # noqa: E402
from app.onboarding.modules.templates.models import DocumentTemplate  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402

SHARED_TEMPLATES = (
    (
        "Consulting Agreement",
        "ConsultingContract",
        "<h1>Consulting Agreement</h1><p>This agreement is made between the Company and the Contractor.</p>",
    ),
    (
        "Equity Plan Agreement",
        "EquityPlanContract",
        "<h1>Equity Plan Agreement</h1><p>Grant terms are set out in the attached schedule.</p>",
    ),
)


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed the first company, its administrator and the shared templates.
    Idempotent: existing rows are left alone.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@example.com").strip().lower()
    company_name = (os.environ.get("COMPANY_NAME") or "Demo Company").strip()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///onboarding.db").strip()

    with script_session(db_url) as s:
        company = s.scalar(select(Company).where(Company.name == company_name))
        if not company:
            company = Company(name=company_name)
            s.add(company)
            s.flush()

        user = s.scalar(select(User).where(User.email == admin_email))
        if not user:
            user = User(email=admin_email, legal_name="Company Administrator", is_active=True)
            s.add(user)
            s.flush()

        if s.get(CompanyMembership, {"company_id": company.id, "user_id": user.id}) is None:
            s.add(CompanyMembership(company_id=company.id, user_id=user.id, role=ROLE_ADMINISTRATOR))

        for name, doc_type, content in SHARED_TEMPLATES:
            exists = s.scalar(
                select(DocumentTemplate).where(DocumentTemplate.name == name, DocumentTemplate.company_id.is_(None))
            )
            if not exists:
                s.add(
                    DocumentTemplate(
                        company_id=None,
                        name=name,
                        document_type=doc_type,
                        rich_text_content=content,
                        signable=True,
                    )
                )

    print("Initialized database (seed_only).")
    print(f"Company: {company_name}")
    print(f"Admin email: {admin_email}")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
