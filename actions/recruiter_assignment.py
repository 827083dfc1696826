from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import exists, func, select, update

from db import session_scope
from models import Candidate, RecruiterAssignment, User, UserRole
from services.identity import ROLE_CRE, ROLE_RECRUITER, user_exists, user_has_role
from utils import ApiError, iso_utc_now, new_uuid, to_iso_utc


_log = logging.getLogger("workflow.recruiters")

CANDIDATE_STATUS_RNR = "rnr"

DEFAULT_RECRUITER_REASON = "Automatic assignment on candidate creation"
DEFAULT_CRE_REASON = "Automatic CRE assignment for RNR status"


def _require_candidate(db, candidate_id: str) -> Candidate:
    cid = str(candidate_id or "").strip()
    if not cid:
        raise ApiError("BAD_REQUEST", "Missing candidateId")
    cand = db.get(Candidate, cid)
    if cand is None:
        raise ApiError("NOT_FOUND", f"Candidate with ID {cid} not found")
    return cand


def _least_loaded(db, *, role_name: str, rnr_only: bool = False) -> str:
    """Active user in `role_name` with the fewest active assignments; ties go to the lowest userId."""
    load_q = (
        select(RecruiterAssignment.recruiterId.label("uid"), func.count(RecruiterAssignment.id).label("n"))
        .where(RecruiterAssignment.isActive.is_(True))
    )
    if rnr_only:
        load_q = load_q.join(Candidate, Candidate.candidateId == RecruiterAssignment.candidateId).where(
            Candidate.status == CANDIDATE_STATUS_RNR
        )
    load = load_q.group_by(RecruiterAssignment.recruiterId).subquery()

    workload = func.coalesce(load.c.n, 0)
    row = db.execute(
        select(User.userId, workload.label("workload"))
        .join(UserRole, UserRole.userId == User.userId)
        .outerjoin(load, load.c.uid == User.userId)
        .where(UserRole.roleName == role_name)
        .where(User.status == "ACTIVE")
        .order_by(workload.asc(), User.userId.asc())
        .limit(1)
    ).first()
    if not row:
        raise ApiError("NOT_FOUND", f"No users with the {role_name} role found")
    return str(row[0])


def _replace_active(db, *, candidate_id: str, owner_id: str, assigned_by: str, reason: str) -> RecruiterAssignment:
    now = iso_utc_now()
    # Deactivate first so the candidate never holds two active rows.
    db.execute(
        update(RecruiterAssignment)
        .where(RecruiterAssignment.candidateId == candidate_id)
        .where(RecruiterAssignment.isActive.is_(True))
        .values(isActive=False, unassignedAt=now, unassignedBy=assigned_by)
        .execution_options(synchronize_session="fetch")
    )
    row = RecruiterAssignment(
        id=new_uuid(),
        candidateId=candidate_id,
        recruiterId=owner_id,
        assignedBy=assigned_by,
        assignedAt=now,
        isActive=True,
        reason=reason,
    )
    db.add(row)
    db.flush()
    return row


def assign_recruiter(db, *, candidate_id: str, created_by: str, reason: str | None = None) -> dict[str, Any]:
    cand = _require_candidate(db, candidate_id)
    creator = str(created_by or "").strip()

    if creator and user_has_role(db, creator, ROLE_RECRUITER):
        recruiter_id = creator
    else:
        recruiter_id = _least_loaded(db, role_name=ROLE_RECRUITER)

    row = _replace_active(
        db,
        candidate_id=cand.candidateId,
        owner_id=recruiter_id,
        assigned_by=creator or recruiter_id,
        reason=reason or DEFAULT_RECRUITER_REASON,
    )
    _log.info("candidate %s assigned to recruiter %s", cand.candidateId, recruiter_id)
    return serialize_assignment(row)


def resolve_assigner(db, *, preferred_id: str | None, fallback_id: str, system_user_id: str = "system") -> str:
    pref = str(preferred_id or "").strip()
    if pref and user_exists(db, pref):
        return pref
    if system_user_id and system_user_id != pref and user_exists(db, system_user_id):
        _log.warning("assigner %r not found, using system user %s", pref, system_user_id)
        return system_user_id
    _log.warning("assigner %r not found, using assignee %s", pref, fallback_id)
    return fallback_id


def assign_cre(
    db,
    *,
    candidate_id: str,
    assigned_by: str | None,
    reason: str | None = None,
    system_user_id: str = "system",
) -> dict[str, Any]:
    cand = _require_candidate(db, candidate_id)
    cre_id = _least_loaded(db, role_name=ROLE_CRE, rnr_only=True)
    assigner = resolve_assigner(db, preferred_id=assigned_by, fallback_id=cre_id, system_user_id=system_user_id)

    row = _replace_active(
        db,
        candidate_id=cand.candidateId,
        owner_id=cre_id,
        assigned_by=assigner,
        reason=reason or DEFAULT_CRE_REASON,
    )
    _log.info("candidate %s assigned to CRE %s", cand.candidateId, cre_id)
    return serialize_assignment(row)


def has_active_cre(db, *, candidate_id: str) -> bool:
    hit = db.execute(
        select(RecruiterAssignment.id)
        .join(UserRole, UserRole.userId == RecruiterAssignment.recruiterId)
        .where(RecruiterAssignment.candidateId == candidate_id)
        .where(RecruiterAssignment.isActive.is_(True))
        .where(UserRole.roleName == ROLE_CRE)
    ).first()
    return hit is not None


def _rnr_cutoff(threshold_days: int, now: datetime | None) -> str:
    base = now or datetime.now(timezone.utc)
    return to_iso_utc(base - timedelta(days=int(threshold_days)))


def _rnr_overdue_query(cutoff: str):
    return (
        select(Candidate.candidateId)
        .where(Candidate.status == CANDIDATE_STATUS_RNR)
        .where(Candidate.updatedAt != "")
        .where(Candidate.updatedAt <= cutoff)
    )


def run_rnr_cre_sweep(*, threshold_days: int = 3, system_user_id: str = "system", now: datetime | None = None) -> dict[str, int]:
    """
    Hands candidates stuck in RNR for `threshold_days` or more to a CRE.

    Each candidate runs in its own transaction; failures are logged and counted without
    stopping the batch.
    """
    cutoff = _rnr_cutoff(threshold_days, now)
    with session_scope() as db:
        candidate_ids = list(db.execute(_rnr_overdue_query(cutoff).order_by(Candidate.candidateId.asc())).scalars().all())

    processed = assigned = skipped = errors = 0
    for cid in candidate_ids:
        processed += 1
        try:
            with session_scope() as db:
                if has_active_cre(db, candidate_id=cid):
                    skipped += 1
                    continue
                assign_cre(
                    db,
                    candidate_id=cid,
                    assigned_by=system_user_id,
                    reason=f"Automatic CRE assignment after {threshold_days} days in RNR status",
                    system_user_id=system_user_id,
                )
            assigned += 1
        except Exception:
            errors += 1
            _log.exception("rnr sweep failed for candidate %s", cid)

    _log.info("rnr sweep processed=%s assigned=%s skipped=%s errors=%s", processed, assigned, skipped, errors)
    return {"processed": processed, "assigned": assigned, "skipped": skipped, "errors": errors}


def get_rnr_statistics(db, *, threshold_days: int = 3, now: datetime | None = None) -> dict[str, int]:
    cutoff = _rnr_cutoff(threshold_days, now)
    active_cre = exists(
        select(RecruiterAssignment.id)
        .join(UserRole, UserRole.userId == RecruiterAssignment.recruiterId)
        .where(RecruiterAssignment.candidateId == Candidate.candidateId)
        .where(RecruiterAssignment.isActive.is_(True))
        .where(UserRole.roleName == ROLE_CRE)
    )

    def _count(q) -> int:
        return int(db.execute(select(func.count()).select_from(q.subquery())).scalar_one() or 0)

    rnr = select(Candidate.candidateId).where(Candidate.status == CANDIDATE_STATUS_RNR)
    overdue = _rnr_overdue_query(cutoff)
    return {
        "totalRnr": _count(rnr),
        "eligibleForCre": _count(overdue),
        "withCre": _count(rnr.where(active_cre)),
        "pendingAssignment": _count(overdue.where(~active_cre)),
    }


def get_active_assignment(db, *, candidate_id: str) -> dict[str, Any] | None:
    row = db.execute(
        select(RecruiterAssignment)
        .where(RecruiterAssignment.candidateId == str(candidate_id or ""))
        .where(RecruiterAssignment.isActive.is_(True))
    ).scalar_one_or_none()
    return serialize_assignment(row) if row else None


def list_assignment_history(db, *, candidate_id: str) -> list[dict[str, Any]]:
    _require_candidate(db, candidate_id)
    rows = (
        db.execute(
            select(RecruiterAssignment)
            .where(RecruiterAssignment.candidateId == str(candidate_id))
            .order_by(RecruiterAssignment.assignedAt.desc(), RecruiterAssignment.id.asc())
        )
        .scalars()
        .all()
    )
    return [serialize_assignment(r) for r in rows]


def serialize_assignment(row: RecruiterAssignment) -> dict[str, Any]:
    return {
        "id": row.id,
        "candidateId": row.candidateId,
        "recruiterId": row.recruiterId,
        "assignedBy": row.assignedBy,
        "assignedAt": row.assignedAt,
        "isActive": bool(row.isActive),
        "unassignedAt": row.unassignedAt,
        "unassignedBy": row.unassignedBy,
        "reason": row.reason,
    }
