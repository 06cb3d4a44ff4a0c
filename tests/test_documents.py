"""Tests for the documents API: listing, signing and creation."""
import json
from datetime import datetime

import pytest
from sqlalchemy import event, update

from app.onboarding.context import RequestContext
from app.onboarding.db import session_scope
from app.onboarding.errors import NotFoundError
from app.onboarding.models import AuditEvent, Company, User
from app.onboarding.modules.documents.models import Document, DocumentSignature
from app.onboarding.modules.documents.service import sign_document


def _sign(post_json, client, doc_id, **payload):
    return post_json(client, f"/api/documents/{doc_id}/sign", payload)


def test_requires_signed_in_user(app, seed):
    r = app.test_client().get("/api/documents")
    assert r.status_code == 401
    assert r.json["code"] == "AuthenticationRequired"


def test_non_member_company_is_forbidden(seed, login):
    client = login(seed.contractor_id, seed.other_id)
    r = client.get(f"/api/documents?userId={seed.contractor_ext}")
    assert r.status_code == 403


def test_contractor_lists_own_visible_documents(seed, login):
    client = login(seed.contractor_id, seed.acme_id)
    r = client.get(f"/api/documents?userId={seed.contractor_ext}")
    assert r.status_code == 200
    ids = [d["id"] for d in r.json]
    # newest first, no soft-deleted or other-company documents
    assert ids == [seed.elsewhere_id, seed.contract_id]


def test_contractor_cannot_list_other_users_documents(seed, login):
    client = login(seed.contractor_id, seed.acme_id)
    assert client.get("/api/documents").status_code == 403
    assert client.get(f"/api/documents?userId={seed.outsider_ext}").status_code == 403


def test_admin_lists_company_documents(seed, login):
    client = login(seed.admin_id, seed.acme_id)
    r = client.get("/api/documents")
    assert r.status_code == 200
    assert [d["id"] for d in r.json] == [seed.elsewhere_id, seed.contract_id]


def test_signable_filter(seed, login):
    client = login(seed.contractor_id, seed.acme_id)
    r = client.get(f"/api/documents?userId={seed.contractor_ext}&signable=true")
    assert [d["id"] for d in r.json] == [seed.contract_id]

    r = client.get(f"/api/documents?userId={seed.contractor_ext}&signable=false")
    assert [d["id"] for d in r.json] == [seed.elsewhere_id]


def test_signable_filter_rejects_garbage(seed, login):
    client = login(seed.admin_id, seed.acme_id)
    assert client.get("/api/documents?signable=maybe").status_code == 400


def test_signed_elsewhere_document_presentation(seed, login):
    client = login(seed.contractor_id, seed.acme_id)
    r = client.get(f"/api/documents?userId={seed.contractor_ext}")
    by_id = {d["id"]: d for d in r.json}

    elsewhere = by_id[seed.elsewhere_id]
    assert elsewhere["presentation"] == "signed_elsewhere"
    assert elsewhere["isSignedElsewhere"] is True
    assert elsewhere["signedDocumentUrl"] == "https://files.example.com/nda.pdf"
    assert by_id[seed.contract_id]["presentation"] == "rich_text"

    r = client.get(f"/api/documents/{seed.elsewhere_id}/url")
    assert r.status_code == 200
    assert r.json["url"] == "https://files.example.com/nda.pdf"


def test_url_missing_is_not_found(seed, login):
    client = login(seed.admin_id, seed.acme_id)
    assert client.get(f"/api/documents/{seed.contract_id}/url").status_code == 404
    assert client.get(f"/api/documents/{seed.foreign_id}/url").status_code == 404


def test_signer_then_representative_completes_document(seed, login, post_json):
    contractor = login(seed.contractor_id, seed.acme_id)
    r = _sign(post_json, contractor, seed.contract_id, role="Signer", signature="Jane Contractor")
    assert r.status_code == 200
    assert r.json == {"documentId": seed.contract_id, "complete": False}

    admin = login(seed.admin_id, seed.acme_id)
    r = _sign(post_json, admin, seed.contract_id, role="Company Representative")
    assert r.status_code == 200
    assert r.json == {"documentId": seed.contract_id, "complete": True}

    with session_scope(admin.application) as s:
        doc = s.get(Document, seed.contract_id)
        assert doc.rich_text_content == "Signed by: Jane Contractor"
        assert all(sig.signed_at is not None for sig in doc.signatures)


def test_signing_twice_is_not_found(seed, login, post_json):
    client = login(seed.contractor_id, seed.acme_id)
    assert _sign(post_json, client, seed.contract_id, role="Signer").status_code == 200
    r = _sign(post_json, client, seed.contract_id, role="Signer")
    assert r.status_code == 404
    assert r.json["code"] == "NotFound"


def test_contractor_cannot_sign_as_representative(seed, login, post_json):
    client = login(seed.contractor_id, seed.acme_id)
    r = _sign(post_json, client, seed.contract_id, role="Company Representative")
    assert r.status_code == 403


def test_lawyer_can_sign_as_representative(seed, login, post_json):
    client = login(seed.lawyer_id, seed.acme_id)
    r = _sign(post_json, client, seed.contract_id, role="Company Representative")
    assert r.status_code == 200
    assert r.json["complete"] is False


def test_only_invited_signer_can_sign_their_role(seed, login, post_json):
    client = login(seed.contractor2_id, seed.acme_id)
    assert _sign(post_json, client, seed.contract_id, role="Signer").status_code == 404


def test_cannot_sign_deleted_or_foreign_documents(seed, login, post_json):
    client = login(seed.contractor_id, seed.acme_id)
    assert _sign(post_json, client, seed.deleted_id, role="Signer").status_code == 404

    admin = login(seed.admin_id, seed.acme_id)
    assert _sign(post_json, admin, seed.foreign_id, role="Company Representative").status_code == 404


def test_sign_with_signed_document_url(seed, login, post_json):
    client = login(seed.contractor_id, seed.acme_id)
    r = _sign(
        post_json,
        client,
        seed.contract_id,
        role="Signer",
        signedDocumentUrl="https://files.example.com/countersigned.pdf",
    )
    assert r.status_code == 200
    with session_scope(client.application) as s:
        doc = s.get(Document, seed.contract_id)
        assert doc.signed_document_url == "https://files.example.com/countersigned.pdf"
        assert doc.rich_text_content == "<p>Terms of engagement</p>"


def test_sign_requires_role(seed, login, post_json):
    client = login(seed.contractor_id, seed.acme_id)
    assert _sign(post_json, client, seed.contract_id, signature="x").status_code == 400


def test_sign_requires_csrf_token(seed, login):
    client = login(seed.contractor_id, seed.acme_id)
    r = client.post(f"/api/documents/{seed.contract_id}/sign", json={"role": "Signer"})
    assert r.status_code == 400
    with session_scope(client.application) as s:
        sig = s.query(DocumentSignature).filter_by(document_id=seed.contract_id, title="Signer").one()
        assert sig.signed_at is None


def test_sign_records_audit_event(seed, login, post_json):
    client = login(seed.contractor_id, seed.acme_id)
    _sign(post_json, client, seed.contract_id, role="Signer", signature="Jane")
    with session_scope(client.application) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "document.sign").one()
        assert ev.actor_user_id == seed.contractor_id
        assert ev.company_id == seed.acme_id
        assert ev.entity_id == str(seed.contract_id)
        assert json.loads(ev.metadata_json)["role"] == "Signer"


def test_signatories_unsigned_first_then_most_recently_signed(seed, login, post_json):
    admin = login(seed.admin_id, seed.acme_id)
    _sign(post_json, admin, seed.contract_id, role="Company Representative")

    r = admin.get(f"/api/documents/{seed.contract_id}")
    assert r.status_code == 200
    titles = [sig["title"] for sig in r.json["signatories"]]
    assert titles == ["Signer", "Company Representative"]
    assert r.json["signatories"][0]["signedAt"] is None
    assert r.json["signatories"][0]["name"] == "Jane"
    assert r.json["complete"] is False

    contractor = login(seed.contractor_id, seed.acme_id)
    _sign(post_json, contractor, seed.contract_id, role="Signer")
    r = admin.get(f"/api/documents/{seed.contract_id}")
    assert [sig["title"] for sig in r.json["signatories"]] == ["Signer", "Company Representative"]
    assert all(sig["signedAt"] for sig in r.json["signatories"])


def test_document_detail_hidden_from_non_signers(seed, login):
    client = login(seed.contractor2_id, seed.acme_id)
    assert client.get(f"/api/documents/{seed.contract_id}").status_code == 404


def test_admin_creates_document_from_template(seed, login, post_json):
    client = login(seed.admin_id, seed.acme_id)
    with session_scope(client.application) as s:
        contractor_ext = s.get(User, seed.contractor_id).external_id
        admin_ext = s.get(User, seed.admin_id).external_id

    r = post_json(
        client,
        "/api/documents",
        {
            "templateId": seed.shared_tpl,
            "signers": [
                {"userId": admin_ext, "title": "Company Representative"},
                {"userId": contractor_ext, "title": "Signer"},
            ],
        },
    )
    assert r.status_code == 201
    assert r.json["name"] == "Consulting Agreement"
    assert r.json["richTextContent"] == "<p>Shared consulting terms</p>"
    assert {sig["title"] for sig in r.json["signatories"]} == {"Company Representative", "Signer"}

    r = client.get(f"/api/documents?userId={contractor_ext}&signable=true")
    assert len(r.json) == 2


def test_create_document_validation(seed, login, post_json):
    client = login(seed.admin_id, seed.acme_id)
    r = post_json(client, "/api/documents", {"name": "Offer", "type": "Nope", "signers": []})
    assert r.status_code == 400

    r = post_json(
        client,
        "/api/documents",
        {"name": "Offer", "type": "ConsultingContract", "signers": [{"userId": seed.outsider_ext, "title": "Signer"}]},
    )
    assert r.status_code == 404


def test_contractor_cannot_create_documents(seed, login, post_json):
    client = login(seed.contractor_id, seed.acme_id)
    r = post_json(
        client,
        "/api/documents",
        {"name": "Offer", "type": "ConsultingContract", "signers": [{"userId": seed.contractor_ext, "title": "Signer"}]},
    )
    assert r.status_code == 403


def test_create_document_rejects_non_string_fields(seed, login, post_json):
    client = login(seed.admin_id, seed.acme_id)
    r = post_json(
        client,
        "/api/documents",
        {"name": "Offer", "type": "ConsultingContract", "signers": [{"userId": seed.contractor_ext, "title": 7}]},
    )
    assert r.status_code == 400
    assert r.json["code"] == "ValidationError"

    r = post_json(client, "/api/documents", {"templateId": 12, "signers": []})
    assert r.status_code == 400
    assert r.json["error"] == "templateId must be a string."


def test_losing_a_signing_race_is_not_found(app, seed):
    won_at = datetime(2024, 1, 2, 3, 4, 5)

    def _competing_sign():
        with session_scope(app) as other:
            other.execute(
                update(DocumentSignature)
                .where(DocumentSignature.document_id == seed.contract_id, DocumentSignature.title == "Signer")
                .values(signed_at=won_at)
            )

    with session_scope(app) as s:
        ctx = RequestContext(
            user=s.get(User, seed.contractor_id),
            company=s.get(Company, seed.acme_id),
            role="contractor",
        )

        # The other signer commits after our eligibility check, right before our UPDATE.
        @event.listens_for(s, "do_orm_execute")
        def _before_update(state):
            if state.is_update:
                _competing_sign()

        with pytest.raises(NotFoundError):
            sign_document(s, ctx, seed.contract_id, "Signer", signature="Jane")

    with session_scope(app) as s:
        sig = s.query(DocumentSignature).filter_by(document_id=seed.contract_id, title="Signer").one()
        assert sig.signed_at == won_at
        assert s.get(Document, seed.contract_id).rich_text_content == "<p>Terms of engagement</p>"
        assert s.query(AuditEvent).filter(AuditEvent.action == "document.sign").count() == 0
