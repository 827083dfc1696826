from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select

from actions.helpers import actor_display_name, actor_user_id
from actions.status_core import apply_sub_status, lock_assignment
from actions.statuses import SubStatusName, find_sub_status
from models import CandidateProject, Document, DocumentRequirement, DocumentVerification, DocumentVerificationHistory, Project
from services.outbox import (
    EVENT_CANDIDATE_DOCUMENTS_REJECTED,
    EVENT_CANDIDATE_DOCUMENTS_VERIFIED,
    EVENT_DOCUMENT_REJECTED,
    EVENT_DOCUMENT_RESUBMISSION_REQUESTED,
    EVENT_DOCUMENT_RESUBMITTED,
    EVENT_DOCUMENT_VERIFIED,
    queue_event,
)
from utils import ApiError, AuthContext, iso_utc_now, new_uuid, normalize_iso


_log = logging.getLogger("workflow.documents")

VERIFICATION_STATUSES = {"pending", "verified", "rejected", "resubmission_required", "resubmitted"}
VERIFY_DECISIONS = {"verified", "rejected"}
# Document types where a new upload supersedes the previous one.
REPLACEABLE_DOC_TYPES = {"offer_letter"}


def compute_document_sub_status(*, required: int, submitted: int, pending: int, rejected: int) -> SubStatusName:
    """Aggregate document stage for an assignment. First matching rule wins."""
    if submitted == 0:
        return SubStatusName.PENDING_DOCUMENTS
    if pending > 0 or submitted < required:
        return SubStatusName.VERIFICATION_IN_PROGRESS
    if rejected > 0:
        return SubStatusName.REJECTED_DOCUMENTS
    return SubStatusName.DOCUMENTS_VERIFIED


def _load_document(db, document_id: str) -> Document:
    did = str(document_id or "").strip()
    if not did:
        raise ApiError("BAD_REQUEST", "Missing documentId")
    doc = db.get(Document, did)
    if doc is None or doc.isDeleted:
        raise ApiError("NOT_FOUND", f"Document with ID {did} not found")
    return doc


def _assert_owned(doc: Document, cp: CandidateProject) -> None:
    if str(doc.candidateId or "") != str(cp.candidateId or ""):
        raise ApiError("BAD_REQUEST", "Document does not belong to this candidate")


def _required_doc_types(db, cp: CandidateProject) -> set[str]:
    if db.get(Project, cp.projectId) is None:
        raise ApiError("NOT_FOUND", f"Project with ID {cp.projectId} not found")
    return set(
        db.execute(
            select(DocumentRequirement.docType)
            .where(DocumentRequirement.projectId == cp.projectId)
            .where(DocumentRequirement.mandatory.is_(True))
            .where(DocumentRequirement.isDeleted.is_(False))
        )
        .scalars()
        .all()
    )


def _active_verifications(db, candidate_project_id: str) -> list[tuple[DocumentVerification, Document]]:
    return list(
        db.execute(
            select(DocumentVerification, Document)
            .join(Document, Document.id == DocumentVerification.documentId)
            .where(DocumentVerification.candidateProjectId == candidate_project_id)
            .where(DocumentVerification.isDeleted.is_(False))
            .order_by(DocumentVerification.createdAt.asc(), DocumentVerification.id.asc())
        ).all()
    )


def _counts(db, cp: CandidateProject) -> dict[str, Any]:
    required = _required_doc_types(db, cp)
    rows = _active_verifications(db, cp.id)
    verified_types = {doc.docType for v, doc in rows if v.status == "verified"}
    return {
        "requiredTypes": required,
        "required": len(required),
        "submitted": len(rows),
        "pending": sum(1 for v, _doc in rows if v.status == "pending"),
        "rejected": sum(1 for v, _doc in rows if v.status == "rejected"),
        "verified": sum(1 for v, _doc in rows if v.status == "verified"),
        "verifiedRequired": len(required & verified_types),
        "rows": rows,
    }


def _all_required_verified(counts: dict[str, Any]) -> bool:
    return counts["required"] > 0 and counts["verifiedRequired"] == counts["required"]


def _append_verification_history(
    db,
    *,
    verification: DocumentVerification,
    action: str,
    auth: AuthContext | None,
    notes: str = "",
    reason: str = "",
) -> None:
    db.add(
        DocumentVerificationHistory(
            verificationId=verification.id,
            action=action,
            performedBy=actor_user_id(auth),
            performedByName=actor_display_name(db, auth),
            notes=str(notes or ""),
            reason=str(reason or ""),
            performedAt=iso_utc_now(),
        )
    )


def _upsert_verification(db, *, candidate_project_id: str, document_id: str, now: str) -> DocumentVerification:
    row = db.execute(
        select(DocumentVerification)
        .where(DocumentVerification.candidateProjectId == candidate_project_id)
        .where(DocumentVerification.documentId == document_id)
    ).scalar_one_or_none()
    if row is None:
        row = DocumentVerification(
            id=new_uuid(),
            candidateProjectId=candidate_project_id,
            documentId=document_id,
            status="pending",
            notes="",
            resubmissionRequested=False,
            isDeleted=False,
            createdAt=now,
            updatedAt=now,
        )
        db.add(row)
    elif row.isDeleted:
        row.isDeleted = False
        row.deletedAt = None
    return row


def _recompute_document_status(db, *, cp: CandidateProject, auth: AuthContext | None, reason: str) -> SubStatusName:
    db.flush()
    c = _counts(db, cp)
    target = compute_document_sub_status(
        required=c["required"], submitted=c["submitted"], pending=c["pending"], rejected=c["rejected"]
    )
    sub = find_sub_status(db, target)
    if sub is None or cp.subStatusId != sub["id"]:
        apply_sub_status(db, candidate_project_id=cp.id, sub_status_name=target, auth=auth, reason=reason, cp=cp)
    return target


def _event_payload(cp: CandidateProject, doc: Document | None, auth: AuthContext | None, **extra: Any) -> dict[str, Any]:
    out: dict[str, Any] = {
        "candidateProjectId": cp.id,
        "candidateId": cp.candidateId,
        "projectId": cp.projectId,
        "recruiterId": cp.recruiterId,
        "performedBy": actor_user_id(auth),
    }
    if doc is not None:
        out["documentId"] = doc.id
        out["docType"] = doc.docType
    out.update(extra)
    return out


def verify_document(
    db,
    *,
    document_id: str,
    candidate_project_id: str,
    status: str,
    auth: AuthContext,
    notes: str = "",
    rejection_reason: str | None = None,
) -> dict[str, Any]:
    decision = str(status or "").strip().lower()
    if decision not in VERIFY_DECISIONS:
        raise ApiError("BAD_REQUEST", "status must be one of: verified, rejected")

    doc = _load_document(db, document_id)
    cp = lock_assignment(db, candidate_project_id=candidate_project_id)
    _assert_owned(doc, cp)

    now = iso_utc_now()
    verification = _upsert_verification(db, candidate_project_id=cp.id, document_id=doc.id, now=now)
    verification.status = decision
    verification.notes = str(notes or "")
    verification.rejectionReason = rejection_reason if decision == "rejected" else None
    verification.resubmissionRequested = False
    verification.updatedAt = now

    doc.status = decision
    doc.updatedAt = now
    if decision == "verified":
        doc.verifiedBy = actor_user_id(auth)
        doc.verifiedAt = now
        doc.rejectionReason = None
    else:
        doc.rejectedBy = actor_user_id(auth)
        doc.rejectedAt = now
        doc.rejectionReason = rejection_reason

    db.flush()
    _append_verification_history(
        db, verification=verification, action=decision, auth=auth, notes=notes, reason=rejection_reason or ""
    )

    aggregate = _recompute_document_status(db, cp=cp, auth=auth, reason=f"Document {decision}")

    event_type = EVENT_DOCUMENT_VERIFIED if decision == "verified" else EVENT_DOCUMENT_REJECTED
    queue_event(db, event_type, _event_payload(cp, doc, auth, status=decision, reason=rejection_reason))

    counts = _counts(db, cp)
    all_verified = decision == "verified" and _all_required_verified(counts)
    if all_verified:
        queue_event(
            db,
            EVENT_CANDIDATE_DOCUMENTS_VERIFIED,
            _event_payload(cp, None, auth, totalRequired=counts["required"], totalVerified=counts["verifiedRequired"]),
        )
        _log.info("all required documents verified candidateProject=%s", cp.id)

    return {
        "verification": serialize_verification(verification, doc),
        "subStatus": aggregate.value,
        "allDocumentsVerified": all_verified,
    }


def request_resubmission(db, *, document_id: str, candidate_project_id: str, reason: str, auth: AuthContext) -> dict[str, Any]:
    why = str(reason or "").strip()
    if not why:
        raise ApiError("BAD_REQUEST", "Missing reason")

    doc = _load_document(db, document_id)
    cp = lock_assignment(db, candidate_project_id=candidate_project_id)
    _assert_owned(doc, cp)

    now = iso_utc_now()
    verification = _upsert_verification(db, candidate_project_id=cp.id, document_id=doc.id, now=now)
    verification.status = "resubmission_required"
    verification.resubmissionRequested = True
    verification.rejectionReason = why
    verification.updatedAt = now

    doc.status = "resubmission_required"
    doc.updatedAt = now

    db.flush()
    _append_verification_history(db, verification=verification, action="resubmission_requested", auth=auth, reason=why)

    # Unconditional: the aggregate rule is not consulted here.
    apply_sub_status(
        db,
        candidate_project_id=cp.id,
        sub_status_name=SubStatusName.PENDING_DOCUMENTS,
        auth=auth,
        reason="Document re-submission requested",
        notes=why,
        cp=cp,
    )
    queue_event(db, EVENT_DOCUMENT_RESUBMISSION_REQUESTED, _event_payload(cp, doc, auth, reason=why))
    return {"verification": serialize_verification(verification, doc), "subStatus": SubStatusName.PENDING_DOCUMENTS.value}


def _apply_file_fields(doc: Document, data: dict[str, Any]) -> None:
    if "fileName" in data:
        doc.fileName = str(data.get("fileName") or "")
    if "fileUrl" in data:
        doc.fileUrl = str(data.get("fileUrl") or "")
    if "fileSize" in data:
        size = data.get("fileSize")
        doc.fileSize = int(size) if size not in (None, "") else None
    if "mimeType" in data:
        doc.mimeType = str(data.get("mimeType") or "")
    if "documentNumber" in data:
        doc.documentNumber = str(data.get("documentNumber") or "")
    if "expiryDate" in data:
        doc.expiryDate = normalize_iso(data.get("expiryDate"), field="expiryDate")
    if "notes" in data:
        doc.notes = str(data.get("notes") or "")


def reupload_document(
    db,
    *,
    document_id: str,
    candidate_project_id: str,
    file: dict[str, Any],
    auth: AuthContext,
) -> dict[str, Any]:
    data = dict(file or {})
    if not str(data.get("fileUrl") or "").strip():
        raise ApiError("BAD_REQUEST", "Missing fileUrl")

    doc = _load_document(db, document_id)
    cp = lock_assignment(db, candidate_project_id=candidate_project_id)
    _assert_owned(doc, cp)

    verification = db.execute(
        select(DocumentVerification)
        .where(DocumentVerification.candidateProjectId == cp.id)
        .where(DocumentVerification.documentId == doc.id)
        .where(DocumentVerification.isDeleted.is_(False))
    ).scalar_one_or_none()
    if verification is None:
        raise ApiError("NOT_FOUND", "Document verification not found")

    now = iso_utc_now()
    _apply_file_fields(doc, data)
    doc.status = "resubmitted"
    doc.rejectionReason = None
    doc.updatedAt = now

    verification.status = "resubmitted"
    verification.resubmissionRequested = False
    verification.rejectionReason = None
    verification.updatedAt = now

    db.flush()
    _append_verification_history(db, verification=verification, action="resubmitted", auth=auth, notes="Document re-uploaded")

    aggregate = _recompute_document_status(db, cp=cp, auth=auth, reason="Document re-uploaded")
    queue_event(db, EVENT_DOCUMENT_RESUBMITTED, _event_payload(cp, doc, auth))
    return {"verification": serialize_verification(verification, doc), "subStatus": aggregate.value}


def upload_document(
    db,
    *,
    candidate_project_id: str,
    doc_type: str,
    file: dict[str, Any],
    auth: AuthContext,
    replace: bool = False,
) -> dict[str, Any]:
    dtype = str(doc_type or "").strip().lower()
    if not dtype:
        raise ApiError("BAD_REQUEST", "Missing docType")
    data = dict(file or {})
    if not str(data.get("fileUrl") or "").strip():
        raise ApiError("BAD_REQUEST", "Missing fileUrl")

    cp = lock_assignment(db, candidate_project_id=candidate_project_id)
    now = iso_utc_now()

    replaced: list[str] = []
    if replace or dtype in REPLACEABLE_DOC_TYPES:
        superseded = db.execute(
            select(DocumentVerification, Document)
            .join(Document, Document.id == DocumentVerification.documentId)
            .where(DocumentVerification.candidateProjectId == cp.id)
            .where(DocumentVerification.isDeleted.is_(False))
            .where(Document.docType == dtype)
            .where(Document.candidateId == cp.candidateId)
        ).all()
        for old_verification, old_doc in superseded:
            old_verification.isDeleted = True
            old_verification.deletedAt = now
            old_verification.updatedAt = now
            old_doc.isDeleted = True
            old_doc.deletedAt = now
            old_doc.updatedAt = now
            _append_verification_history(
                db,
                verification=old_verification,
                action="replaced",
                auth=auth,
                notes=f"{dtype} replaced by a new upload (soft-deleted old record)",
            )
            replaced.append(old_doc.id)

    doc = Document(
        id=new_uuid(),
        candidateId=cp.candidateId,
        docType=dtype,
        status="pending",
        uploadedBy=actor_user_id(auth) or "",
        isDeleted=False,
        createdAt=now,
        updatedAt=now,
    )
    _apply_file_fields(doc, data)
    db.add(doc)

    verification = DocumentVerification(
        id=new_uuid(),
        candidateProjectId=cp.id,
        documentId=doc.id,
        status="pending",
        notes="",
        resubmissionRequested=False,
        isDeleted=False,
        createdAt=now,
        updatedAt=now,
    )
    db.add(verification)
    db.flush()
    _append_verification_history(db, verification=verification, action="uploaded", auth=auth, notes=f"{dtype} uploaded")

    aggregate = _recompute_document_status(db, cp=cp, auth=auth, reason=f"{dtype} uploaded")
    if replaced:
        _log.info("candidateProject=%s replaced %s document(s) of type %s", cp.id, len(replaced), dtype)
    return {
        "verification": serialize_verification(verification, doc),
        "replacedDocumentIds": replaced,
        "subStatus": aggregate.value,
    }


def link_document(db, *, document_id: str, candidate_project_id: str, auth: AuthContext) -> dict[str, Any]:
    """Reuses a candidate's existing document for another project assignment."""
    doc = _load_document(db, document_id)
    cp = lock_assignment(db, candidate_project_id=candidate_project_id)
    _assert_owned(doc, cp)

    existing = db.execute(
        select(DocumentVerification)
        .where(DocumentVerification.candidateProjectId == cp.id)
        .where(DocumentVerification.documentId == doc.id)
    ).scalar_one_or_none()
    if existing is not None and not existing.isDeleted:
        raise ApiError("CONFLICT", "Document is already linked to this project")

    now = iso_utc_now()
    verification = _upsert_verification(db, candidate_project_id=cp.id, document_id=doc.id, now=now)
    verification.status = "pending"
    verification.notes = ""
    verification.rejectionReason = None
    verification.resubmissionRequested = False
    verification.updatedAt = now
    db.flush()
    _append_verification_history(db, verification=verification, action="linked", auth=auth, notes="Existing document reused")

    aggregate = _recompute_document_status(db, cp=cp, auth=auth, reason="Document linked")
    return {"verification": serialize_verification(verification, doc), "subStatus": aggregate.value}


def complete_verification(db, *, candidate_project_id: str, auth: AuthContext, notes: str = "") -> dict[str, Any]:
    cp = lock_assignment(db, candidate_project_id=candidate_project_id)
    counts = _counts(db, cp)
    if counts["verifiedRequired"] < counts["required"]:
        raise ApiError("BAD_REQUEST", "Not all required documents are verified")
    if not cp.recruiterId:
        raise ApiError("BAD_REQUEST", "Recruiter ID is missing")

    apply_sub_status(
        db,
        candidate_project_id=cp.id,
        sub_status_name=SubStatusName.DOCUMENTS_VERIFIED,
        auth=auth,
        reason="Document verification completed",
        notes=notes,
        cp=cp,
    )
    queue_event(
        db,
        EVENT_CANDIDATE_DOCUMENTS_VERIFIED,
        _event_payload(cp, None, auth, totalRequired=counts["required"], totalVerified=counts["verifiedRequired"]),
    )
    return {"candidateProjectId": cp.id, "subStatus": SubStatusName.DOCUMENTS_VERIFIED.value}


def reject_verification(db, *, candidate_project_id: str, auth: AuthContext, reason: str = "") -> dict[str, Any]:
    cp = lock_assignment(db, candidate_project_id=candidate_project_id)
    why = str(reason or "").strip()
    apply_sub_status(
        db,
        candidate_project_id=cp.id,
        sub_status_name=SubStatusName.REJECTED_DOCUMENTS,
        auth=auth,
        reason="Document verification rejected",
        notes=why,
        cp=cp,
    )
    queue_event(db, EVENT_CANDIDATE_DOCUMENTS_REJECTED, _event_payload(cp, None, auth, reason=why))
    return {"candidateProjectId": cp.id, "subStatus": SubStatusName.REJECTED_DOCUMENTS.value}


def get_document_summary(db, *, candidate_project_id: str) -> dict[str, Any]:
    cp = db.get(CandidateProject, str(candidate_project_id or "").strip())
    if cp is None:
        raise ApiError("NOT_FOUND", "Candidate project assignment not found")
    c = _counts(db, cp)
    return {
        "candidateProjectId": cp.id,
        "totalRequired": c["required"],
        "totalSubmitted": c["submitted"],
        "totalVerified": c["verified"],
        "totalRejected": c["rejected"],
        "totalPending": c["pending"],
        "requiredDocTypes": sorted(c["requiredTypes"]),
        "allDocumentsVerified": _all_required_verified(c),
        "verifications": [serialize_verification(v, doc) for v, doc in c["rows"]],
    }


def list_verification_history(db, *, document_id: str, candidate_project_id: str) -> list[dict[str, Any]]:
    verification = db.execute(
        select(DocumentVerification)
        .where(DocumentVerification.candidateProjectId == candidate_project_id)
        .where(DocumentVerification.documentId == document_id)
    ).scalar_one_or_none()
    if verification is None:
        raise ApiError("NOT_FOUND", "Document verification not found")
    rows = (
        db.execute(
            select(DocumentVerificationHistory)
            .where(DocumentVerificationHistory.verificationId == verification.id)
            .order_by(DocumentVerificationHistory.id.desc())
        )
        .scalars()
        .all()
    )
    return [
        {
            "id": r.id,
            "action": r.action,
            "performedBy": r.performedBy,
            "performedByName": r.performedByName,
            "notes": r.notes,
            "reason": r.reason,
            "performedAt": r.performedAt,
        }
        for r in rows
    ]


def serialize_verification(v: DocumentVerification, doc: Document | None) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": v.id,
        "candidateProjectId": v.candidateProjectId,
        "documentId": v.documentId,
        "status": v.status,
        "notes": v.notes,
        "rejectionReason": v.rejectionReason,
        "resubmissionRequested": bool(v.resubmissionRequested),
        "isDeleted": bool(v.isDeleted),
        "updatedAt": v.updatedAt,
    }
    if doc is not None:
        out["document"] = {
            "id": doc.id,
            "docType": doc.docType,
            "fileName": doc.fileName,
            "fileUrl": doc.fileUrl,
            "status": doc.status,
            "verifiedAt": doc.verifiedAt,
            "rejectedAt": doc.rejectedAt,
        }
    return out
