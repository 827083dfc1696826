from __future__ import annotations

from typing import Any

from sqlalchemy import func, select

from actions.helpers import actor_display_name, actor_user_id
from actions.statuses import get_sub_status, status_labels
from models import CandidateProject, CandidateProjectStatusHistory
from utils import ApiError, AuthContext, iso_utc_now, pagination, parse_page


def lock_assignment(db, *, candidate_project_id: str) -> CandidateProject:
    cpid = str(candidate_project_id or "").strip()
    if not cpid:
        raise ApiError("BAD_REQUEST", "Missing candidateProjectId")

    cp = (
        db.execute(select(CandidateProject).where(CandidateProject.id == cpid).with_for_update(of=CandidateProject))
        .scalars()
        .first()
    )
    if not cp:
        raise ApiError("NOT_FOUND", "Candidate project assignment not found")
    return cp


def get_assignment(db, *, candidate_project_id: str) -> CandidateProject:
    cpid = str(candidate_project_id or "").strip()
    cp = db.get(CandidateProject, cpid) if cpid else None
    if not cp:
        raise ApiError("NOT_FOUND", "Candidate project assignment not found")
    return cp


def apply_sub_status(
    db,
    *,
    candidate_project_id: str,
    sub_status_name: Any,
    auth: AuthContext | None,
    reason: str = "",
    notes: str = "",
    cp: CandidateProject | None = None,
) -> CandidateProjectStatusHistory:
    """
    Moves an assignment to `sub_status_name` and appends the matching history row.

    Runs inside the caller's transaction; both writes commit or roll back together. No business
    validation happens here, callers decide whether the transition is legal.
    """
    sub = get_sub_status(db, sub_status_name)
    if cp is None or cp.id != candidate_project_id:
        cp = lock_assignment(db, candidate_project_id=candidate_project_id)

    now = iso_utc_now()
    cp.mainStatusId = sub["mainStatusId"]
    cp.subStatusId = sub["id"]
    cp.updatedAt = now

    row = CandidateProjectStatusHistory(
        candidateProjectId=cp.id,
        mainStatusId=sub["mainStatusId"],
        subStatusId=sub["id"],
        mainStatusSnapshot=sub["mainStatusLabel"],
        subStatusSnapshot=sub["label"],
        changedById=actor_user_id(auth),
        changedByName=actor_display_name(db, auth),
        reason=str(reason or ""),
        notes=str(notes or ""),
        statusChangedAt=now,
    )
    db.add(row)
    db.flush()
    return row


def serialize_history(row: CandidateProjectStatusHistory) -> dict[str, Any]:
    return {
        "id": row.id,
        "candidateProjectId": row.candidateProjectId,
        "mainStatusId": row.mainStatusId,
        "subStatusId": row.subStatusId,
        "mainStatusSnapshot": row.mainStatusSnapshot,
        "subStatusSnapshot": row.subStatusSnapshot,
        "changedById": row.changedById,
        "changedByName": row.changedByName,
        "reason": row.reason,
        "notes": row.notes,
        "statusChangedAt": row.statusChangedAt,
    }


def serialize_assignment(db, cp: CandidateProject) -> dict[str, Any]:
    out = {
        "id": cp.id,
        "candidateId": cp.candidateId,
        "projectId": cp.projectId,
        "roleNeededId": cp.roleNeededId,
        "recruiterId": cp.recruiterId,
        "mainStatusId": cp.mainStatusId,
        "subStatusId": cp.subStatusId,
        "notes": cp.notes,
        "assignedAt": cp.assignedAt,
        "createdAt": cp.createdAt,
        "updatedAt": cp.updatedAt,
    }
    out.update(status_labels(db, main_status_id=cp.mainStatusId, sub_status_id=cp.subStatusId))
    return out


def list_status_history(db, *, candidate_project_id: str, page: Any = 1, limit: Any = 20) -> dict[str, Any]:
    get_assignment(db, candidate_project_id=candidate_project_id)
    p, n = parse_page(page, limit)

    base = select(CandidateProjectStatusHistory).where(
        CandidateProjectStatusHistory.candidateProjectId == candidate_project_id
    )
    total = db.execute(select(func.count()).select_from(base.subquery())).scalar_one()
    rows = (
        db.execute(
            base.order_by(CandidateProjectStatusHistory.id.desc())
            .offset((p - 1) * n)
            .limit(n)
        )
        .scalars()
        .all()
    )
    return {"items": [serialize_history(r) for r in rows], "pagination": pagination(p, n, int(total or 0))}


def latest_transition_into(db, *, candidate_project_id: str, sub_status_name: Any) -> dict[str, Any] | None:
    sub = get_sub_status(db, sub_status_name)
    row = (
        db.execute(
            select(CandidateProjectStatusHistory)
            .where(CandidateProjectStatusHistory.candidateProjectId == candidate_project_id)
            .where(CandidateProjectStatusHistory.subStatusId == sub["id"])
            .order_by(CandidateProjectStatusHistory.id.desc())
            .limit(1)
        )
        .scalars()
        .first()
    )
    return serialize_history(row) if row else None
