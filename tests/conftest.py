from datetime import datetime
from types import SimpleNamespace

import pytest

from app.onboarding import create_app
from app.onboarding.db import session_scope
from app.onboarding.models import Base, Company, CompanyMembership, User
from app.onboarding.modules.documents.models import Document, DocumentSignature
from app.onboarding.modules.templates.models import DocumentTemplate

CSRF = "test-csrf-token"


def build_pdf(pages: list[list[str]]) -> bytes:
    """Minimal Helvetica PDF, one list of text lines per page. An empty list gives a text-less page."""
    page_ids = [4 + 2 * i for i in range(len(pages))]
    objs: dict[int, bytes] = {
        1: b"<< /Type /Catalog /Pages 2 0 R >>",
        2: ("<< /Type /Pages /Kids [%s] /Count %d >>" % (" ".join(f"{p} 0 R" for p in page_ids), len(pages))).encode(),
        3: b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    }
    for pid, lines in zip(page_ids, pages):
        objs[pid] = (
            "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            "/Resources << /Font << /F1 3 0 R >> >> /Contents %d 0 R >>" % (pid + 1)
        ).encode()
        ops = ["BT", "/F1 11 Tf", "14 TL", "72 740 Td"]
        for line in lines:
            esc = line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
            ops.append(f"({esc}) Tj T*")
        ops.append("ET")
        stream = "\n".join(ops).encode("latin-1")
        objs[pid + 1] = b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream"

    out = bytearray(b"%PDF-1.4\n")
    offsets: dict[int, int] = {}
    for num in sorted(objs):
        offsets[num] = len(out)
        out += b"%d 0 obj\n" % num + objs[num] + b"\nendobj\n"
    xref_at = len(out)
    size = max(objs) + 1
    out += b"xref\n0 %d\n" % size
    out += b"0000000000 65535 f \n"
    for num in range(1, size):
        out += b"%010d 00000 n \n" % offsets[num]
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (size, xref_at)
    return bytes(out)


@pytest.fixture()
def make_pdf():
    return build_pdf


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "MAX_PDF_BYTES"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app


@pytest.fixture()
def seed(app):
    """Two companies, their people, a few documents and templates."""
    with session_scope(app) as s:
        acme = Company(name="Acme")
        other = Company(name="Other Co")
        s.add_all([acme, other])
        s.flush()

        admin = User(email="admin@acme.test", legal_name="Ada Admin")
        lawyer = User(email="lawyer@acme.test", legal_name="Larry Lawyer")
        contractor = User(email="jane@acme.test", legal_name="Jane Contractor", preferred_name="Jane")
        contractor2 = User(email="joe@acme.test", legal_name="Joe Contractor")
        outsider = User(email="olga@other.test", legal_name="Olga Outsider")
        s.add_all([admin, lawyer, contractor, contractor2, outsider])
        s.flush()

        s.add_all(
            [
                CompanyMembership(company_id=acme.id, user_id=admin.id, role="administrator"),
                CompanyMembership(company_id=acme.id, user_id=lawyer.id, role="lawyer"),
                CompanyMembership(company_id=acme.id, user_id=contractor.id, role="contractor"),
                CompanyMembership(company_id=acme.id, user_id=contractor2.id, role="contractor"),
                CompanyMembership(company_id=other.id, user_id=outsider.id, role="administrator"),
            ]
        )

        contract = Document(
            company_id=acme.id,
            name="Consulting Agreement",
            document_type="ConsultingContract",
            rich_text_content="<p>Terms of engagement</p>",
        )
        elsewhere = Document(
            company_id=acme.id,
            name="Signed Offline NDA",
            document_type="ReleaseAgreement",
            signed_document_url="https://files.example.com/nda.pdf",
            is_signed_elsewhere=True,
        )
        deleted = Document(
            company_id=acme.id,
            name="Withdrawn Agreement",
            document_type="ConsultingContract",
            rich_text_content="<p>Old terms</p>",
            deleted_at=datetime(2026, 1, 1),
        )
        foreign = Document(
            company_id=other.id,
            name="Other Co Agreement",
            document_type="ConsultingContract",
            rich_text_content="<p>Other terms</p>",
        )
        s.add_all([contract, elsewhere, deleted, foreign])
        s.flush()

        s.add_all(
            [
                DocumentSignature(document_id=contract.id, user_id=admin.id, title="Company Representative"),
                DocumentSignature(document_id=contract.id, user_id=contractor.id, title="Signer"),
                DocumentSignature(
                    document_id=elsewhere.id, user_id=contractor.id, title="Signer", signed_at=datetime(2026, 2, 1)
                ),
                DocumentSignature(document_id=deleted.id, user_id=contractor.id, title="Signer"),
                DocumentSignature(document_id=foreign.id, user_id=outsider.id, title="Signer"),
            ]
        )

        shared_tpl = DocumentTemplate(
            company_id=None,
            name="Consulting Agreement",
            document_type="ConsultingContract",
            rich_text_content="<p>Shared consulting terms</p>",
            signable=True,
        )
        acme_tpl = DocumentTemplate(
            company_id=acme.id,
            name="Acme Equity Plan",
            document_type="EquityPlanContract",
            rich_text_content="<p>Acme equity terms</p>",
            signable=True,
        )
        other_tpl = DocumentTemplate(
            company_id=other.id,
            name="Other Co Contract",
            document_type="ConsultingContract",
            rich_text_content="<p>Other</p>",
            signable=True,
        )
        s.add_all([shared_tpl, acme_tpl, other_tpl])
        s.flush()

        return SimpleNamespace(
            acme_id=acme.id,
            other_id=other.id,
            admin_id=admin.id,
            lawyer_id=lawyer.id,
            contractor_id=contractor.id,
            contractor_ext=contractor.external_id,
            contractor2_id=contractor2.id,
            outsider_id=outsider.id,
            outsider_ext=outsider.external_id,
            contract_id=contract.id,
            elsewhere_id=elsewhere.id,
            deleted_id=deleted.id,
            foreign_id=foreign.id,
            shared_tpl=shared_tpl.external_id,
            acme_tpl=acme_tpl.external_id,
            other_tpl=other_tpl.external_id,
        )


@pytest.fixture()
def login(app):
    """Return a test client whose session belongs to the given user and company."""

    def _login(user_id: int, company_id: int):
        client = app.test_client()
        with client.session_transaction() as sess:
            sess["user_id"] = user_id
            sess["company_id"] = company_id
            sess["csrf_token"] = CSRF
        return client

    return _login


@pytest.fixture()
def post_json():
    def _post(client, url: str, payload: dict):
        return client.post(url, json=payload, headers={"X-CSRF-Token": CSRF})

    return _post
