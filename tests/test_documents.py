from __future__ import annotations

import itertools

import pytest
from sqlalchemy import func, select

from actions.documents import (
    complete_verification,
    compute_document_sub_status,
    get_document_summary,
    link_document,
    list_verification_history,
    reject_verification,
    reupload_document,
    request_resubmission,
    upload_document,
    verify_document,
)
from actions.candidate_projects import nominate_candidate
from actions.statuses import SubStatusName
from db import SessionLocal, session_scope
from models import CandidateProject, Document, DocumentVerification, DocumentVerificationHistory, OutboxEvent, SubStatus
from utils import ApiError, iso_utc_now


def _sub_status(cp_id: str) -> str:
    with SessionLocal() as db:
        cp = db.get(CandidateProject, cp_id)
        return db.get(SubStatus, cp.subStatusId).name


def _events(event_type: str) -> list[OutboxEvent]:
    with SessionLocal() as db:
        return list(db.execute(select(OutboxEvent).where(OutboxEvent.type == event_type)).scalars().all())


def _upload(run, admin, cp_id: str, doc_type: str) -> str:
    out = run(
        upload_document,
        candidate_project_id=cp_id,
        doc_type=doc_type,
        file={"fileName": f"{doc_type}.pdf", "fileUrl": f"https://files.example.com/{doc_type}.pdf", "mimeType": "application/pdf"},
        auth=admin,
    )
    return out["verification"]["documentId"]


@pytest.mark.parametrize(
    "required,submitted,pending,rejected,expected",
    [
        (3, 0, 0, 0, SubStatusName.PENDING_DOCUMENTS),
        (3, 2, 0, 0, SubStatusName.VERIFICATION_IN_PROGRESS),
        (3, 3, 1, 0, SubStatusName.VERIFICATION_IN_PROGRESS),
        (3, 3, 1, 1, SubStatusName.VERIFICATION_IN_PROGRESS),
        (3, 3, 0, 1, SubStatusName.REJECTED_DOCUMENTS),
        (3, 3, 0, 0, SubStatusName.DOCUMENTS_VERIFIED),
        (0, 1, 0, 0, SubStatusName.DOCUMENTS_VERIFIED),
    ],
)
def test_aggregate_rule(required, submitted, pending, rejected, expected):
    assert compute_document_sub_status(required=required, submitted=submitted, pending=pending, rejected=rejected) == expected


def test_aggregate_rule_is_a_pure_function_of_counts():
    for required, submitted, pending, rejected in itertools.product(range(3), range(4), range(3), range(3)):
        first = compute_document_sub_status(required=required, submitted=submitted, pending=pending, rejected=rejected)
        second = compute_document_sub_status(required=required, submitted=submitted, pending=pending, rejected=rejected)
        assert first == second


def test_three_required_types_scenario(seeded, run, admin):
    cp_id = seeded["candidateProjectId"]
    doc_ids = [_upload(run, admin, cp_id, t) for t in ("passport", "degree", "offer_letter")]
    assert _sub_status(cp_id) == "verification_in_progress"

    for doc_id in doc_ids[:2]:
        out = run(verify_document, document_id=doc_id, candidate_project_id=cp_id, status="verified", auth=admin)
        assert out["allDocumentsVerified"] is False
    assert _sub_status(cp_id) == "verification_in_progress"
    assert _events("CandidateDocumentsVerified") == []

    out = run(verify_document, document_id=doc_ids[2], candidate_project_id=cp_id, status="verified", auth=admin)
    assert out["subStatus"] == "documents_verified"
    assert out["allDocumentsVerified"] is True
    assert _sub_status(cp_id) == "documents_verified"

    fired = _events("CandidateDocumentsVerified")
    assert len(fired) == 1
    assert len(_events("DocumentVerified")) == 3

    with SessionLocal() as db:
        summary = get_document_summary(db, candidate_project_id=cp_id)
        doc = db.get(Document, doc_ids[2])
        assert doc.status == "verified"
        assert doc.verifiedAt
        assert doc.verifiedBy == "USR-ADMIN"
    assert summary["totalRequired"] == 3
    assert summary["totalVerified"] == 3
    assert summary["totalPending"] == 0
    assert summary["allDocumentsVerified"] is True


def test_rejection_sets_rejected_documents_once_nothing_pending(seeded, run, admin):
    cp_id = seeded["candidateProjectId"]
    doc_ids = [_upload(run, admin, cp_id, t) for t in ("passport", "degree", "offer_letter")]
    run(verify_document, document_id=doc_ids[0], candidate_project_id=cp_id, status="verified", auth=admin)
    run(
        verify_document,
        document_id=doc_ids[1],
        candidate_project_id=cp_id,
        status="rejected",
        rejection_reason="Blurry scan",
        auth=admin,
    )
    assert _sub_status(cp_id) == "verification_in_progress"

    run(verify_document, document_id=doc_ids[2], candidate_project_id=cp_id, status="verified", auth=admin)
    assert _sub_status(cp_id) == "rejected_documents"
    assert len(_events("DocumentRejected")) == 1
    assert _events("CandidateDocumentsVerified") == []

    with SessionLocal() as db:
        doc = db.get(Document, doc_ids[1])
        assert doc.status == "rejected"
        assert doc.rejectionReason == "Blurry scan"
        assert doc.rejectedAt


def test_verify_rejects_document_of_another_candidate(seeded, run, admin):
    cp_id = seeded["candidateProjectId"]
    now = iso_utc_now()
    with session_scope() as db:
        db.add(Document(id="DOC-OTHER", candidateId="C-2", docType="passport", fileUrl="x", createdAt=now, updatedAt=now))

    with pytest.raises(ApiError) as exc:
        run(verify_document, document_id="DOC-OTHER", candidate_project_id=cp_id, status="verified", auth=admin)
    assert exc.value.code == "BAD_REQUEST"
    assert _events("DocumentVerified") == []


def test_verify_unknown_document_and_bad_decision(seeded, run, admin):
    cp_id = seeded["candidateProjectId"]
    with pytest.raises(ApiError) as exc:
        run(verify_document, document_id="nope", candidate_project_id=cp_id, status="verified", auth=admin)
    assert exc.value.code == "NOT_FOUND"

    doc_id = _upload(run, admin, cp_id, "passport")
    with pytest.raises(ApiError) as exc:
        run(verify_document, document_id=doc_id, candidate_project_id=cp_id, status="maybe", auth=admin)
    assert exc.value.code == "BAD_REQUEST"


def test_resubmission_then_reupload(seeded, run, admin):
    cp_id = seeded["candidateProjectId"]
    doc_ids = [_upload(run, admin, cp_id, t) for t in ("passport", "degree", "offer_letter")]
    for doc_id in doc_ids:
        run(verify_document, document_id=doc_id, candidate_project_id=cp_id, status="verified", auth=admin)
    assert _sub_status(cp_id) == "documents_verified"

    run(request_resubmission, document_id=doc_ids[0], candidate_project_id=cp_id, reason="Expired", auth=admin)
    assert _sub_status(cp_id) == "pending_documents"
    assert len(_events("DocumentResubmissionRequested")) == 1
    with SessionLocal() as db:
        v = db.execute(select(DocumentVerification).where(DocumentVerification.documentId == doc_ids[0])).scalar_one()
        assert v.status == "resubmission_required"
        assert v.resubmissionRequested is True
        assert v.rejectionReason == "Expired"

    run(
        reupload_document,
        document_id=doc_ids[0],
        candidate_project_id=cp_id,
        file={"fileUrl": "https://files.example.com/passport-v2.pdf", "fileName": "passport-v2.pdf"},
        auth=admin,
    )
    # resubmitted rows are submitted but no longer pending
    assert _sub_status(cp_id) == "documents_verified"
    assert len(_events("DocumentResubmitted")) == 1
    with SessionLocal() as db:
        v = db.execute(select(DocumentVerification).where(DocumentVerification.documentId == doc_ids[0])).scalar_one()
        assert v.status == "resubmitted"
        assert v.resubmissionRequested is False
        assert db.get(Document, doc_ids[0]).fileName == "passport-v2.pdf"

        actions = [h["action"] for h in list_verification_history(db, document_id=doc_ids[0], candidate_project_id=cp_id)]
    assert actions == ["resubmitted", "resubmission_requested", "verified", "uploaded"]


def test_offer_letter_replacement_soft_deletes_previous(seeded, run, admin):
    cp_id = seeded["candidateProjectId"]
    old_id = _upload(run, admin, cp_id, "offer_letter")
    run(verify_document, document_id=old_id, candidate_project_id=cp_id, status="verified", auth=admin)

    out = run(
        upload_document,
        candidate_project_id=cp_id,
        doc_type="offer_letter",
        file={"fileName": "offer-v2.pdf", "fileUrl": "https://files.example.com/offer-v2.pdf"},
        auth=admin,
    )
    assert out["replacedDocumentIds"] == [old_id]
    new_id = out["verification"]["documentId"]
    assert new_id != old_id

    with SessionLocal() as db:
        old_doc = db.get(Document, old_id)
        assert old_doc.isDeleted is True
        assert old_doc.deletedAt
        old_v = db.execute(select(DocumentVerification).where(DocumentVerification.documentId == old_id)).scalar_one()
        assert old_v.isDeleted is True

        new_v = db.execute(select(DocumentVerification).where(DocumentVerification.documentId == new_id)).scalar_one()
        assert new_v.status == "pending"
        assert new_v.isDeleted is False
        assert db.get(Document, new_id).status == "pending"

        replaced = db.execute(
            select(DocumentVerificationHistory)
            .where(DocumentVerificationHistory.verificationId == old_v.id)
            .where(DocumentVerificationHistory.action == "replaced")
        ).scalar_one()
        assert "replaced" in replaced.notes

        summary = get_document_summary(db, candidate_project_id=cp_id)
    assert summary["totalSubmitted"] == 1
    assert summary["totalPending"] == 1


def test_complete_verification_requires_all_required_verified(seeded, run, admin):
    cp_id = seeded["candidateProjectId"]
    doc_ids = [_upload(run, admin, cp_id, t) for t in ("passport", "degree", "offer_letter")]
    run(verify_document, document_id=doc_ids[0], candidate_project_id=cp_id, status="verified", auth=admin)

    with pytest.raises(ApiError) as exc:
        run(complete_verification, candidate_project_id=cp_id, auth=admin)
    assert exc.value.code == "BAD_REQUEST"

    for doc_id in doc_ids[1:]:
        run(verify_document, document_id=doc_id, candidate_project_id=cp_id, status="verified", auth=admin)
    out = run(complete_verification, candidate_project_id=cp_id, auth=admin)
    assert out["subStatus"] == "documents_verified"
    # one from the third verification, one from explicit completion
    assert len(_events("CandidateDocumentsVerified")) == 2


def test_complete_verification_needs_recruiter(seeded, run, admin):
    with session_scope() as db:
        cp = nominate_candidate(db, candidate_id="C-2", project_id="P-2", role_needed_id="R-2", auth=admin)
    # P-2 has no required documents, so only the recruiter check can fail.
    with pytest.raises(ApiError) as exc:
        run(complete_verification, candidate_project_id=cp["id"], auth=admin)
    assert exc.value.code == "BAD_REQUEST"
    assert "Recruiter" in exc.value.message


def test_reject_verification_publishes_event(seeded, run, admin):
    cp_id = seeded["candidateProjectId"]
    run(reject_verification, candidate_project_id=cp_id, reason="Forged degree", auth=admin)
    assert _sub_status(cp_id) == "rejected_documents"
    fired = _events("CandidateDocumentsRejected")
    assert len(fired) == 1
    assert '"reason":"Forged degree"' in fired[0].payloadJson


def test_link_document_conflicts_when_already_linked(seeded, run, admin):
    cp_id = seeded["candidateProjectId"]
    doc_id = _upload(run, admin, cp_id, "passport")
    with pytest.raises(ApiError) as exc:
        run(link_document, document_id=doc_id, candidate_project_id=cp_id, auth=admin)
    assert exc.value.code == "CONFLICT"

    with session_scope() as db:
        other = nominate_candidate(db, candidate_id="C-1", project_id="P-2", role_needed_id="R-2", auth=admin)
    out = run(link_document, document_id=doc_id, candidate_project_id=other["id"], auth=admin)
    assert out["verification"]["status"] == "pending"


def test_events_are_dropped_when_transaction_rolls_back(seeded, admin, run):
    cp_id = seeded["candidateProjectId"]
    doc_id = _upload(run, admin, cp_id, "passport")

    with pytest.raises(RuntimeError):
        with session_scope() as db:
            verify_document(db, document_id=doc_id, candidate_project_id=cp_id, status="verified", auth=admin)
            raise RuntimeError("boom")

    assert _events("DocumentVerified") == []
    with SessionLocal() as db:
        assert db.get(Document, doc_id).status == "pending"
        assert db.execute(select(func.count()).select_from(OutboxEvent)).scalar_one() == 0
