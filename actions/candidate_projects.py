from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select

from actions.status_core import apply_sub_status, get_assignment, lock_assignment, serialize_assignment
from actions.statuses import SubStatusName
from models import Candidate, CandidateProject, Project, RoleNeeded
from services.identity import user_exists
from utils import ApiError, AuthContext, iso_utc_now, new_uuid


_log = logging.getLogger("workflow.candidate_projects")


def nominate_candidate(
    db,
    *,
    candidate_id: str,
    project_id: str,
    role_needed_id: str,
    auth: AuthContext,
    recruiter_id: str | None = None,
    notes: str = "",
) -> dict[str, Any]:
    cid = str(candidate_id or "").strip()
    pid = str(project_id or "").strip()
    rid = str(role_needed_id or "").strip()
    if not cid or not pid or not rid:
        raise ApiError("BAD_REQUEST", "candidateId, projectId and roleNeededId are required")

    if db.get(Candidate, cid) is None:
        raise ApiError("NOT_FOUND", f"Candidate with ID {cid} not found")
    if db.get(Project, pid) is None:
        raise ApiError("NOT_FOUND", f"Project with ID {pid} not found")
    role = db.get(RoleNeeded, rid)
    if role is None:
        raise ApiError("NOT_FOUND", f"Role with ID {rid} not found")
    if str(role.projectId or "") != pid:
        raise ApiError("BAD_REQUEST", "Role does not belong to the specified project")

    recruiter = str(recruiter_id or "").strip() or None
    if recruiter and not user_exists(db, recruiter):
        raise ApiError("NOT_FOUND", f"Recruiter with ID {recruiter} not found")

    dup = db.execute(
        select(CandidateProject.id)
        .where(CandidateProject.candidateId == cid)
        .where(CandidateProject.projectId == pid)
        .where(CandidateProject.roleNeededId == rid)
    ).first()
    if dup:
        raise ApiError("CONFLICT", "Candidate is already assigned to this project role")

    now = iso_utc_now()
    cp = CandidateProject(
        id=new_uuid(),
        candidateId=cid,
        projectId=pid,
        roleNeededId=rid,
        recruiterId=recruiter,
        notes=str(notes or ""),
        assignedAt=now,
        createdAt=now,
        updatedAt=now,
    )
    db.add(cp)
    db.flush()

    apply_sub_status(
        db,
        candidate_project_id=cp.id,
        sub_status_name=SubStatusName.NOMINATED_INITIAL,
        auth=auth,
        reason="Initial assignment to project",
        notes=str(notes or ""),
        cp=cp,
    )
    _log.info("candidate %s nominated to project=%s role=%s", cid, pid, rid)
    return serialize_assignment(db, cp)


def send_to_mock_interview(db, *, candidate_project_id: str, auth: AuthContext, notes: str = "") -> dict[str, Any]:
    cp = lock_assignment(db, candidate_project_id=candidate_project_id)
    apply_sub_status(
        db,
        candidate_project_id=cp.id,
        sub_status_name=SubStatusName.MOCK_INTERVIEW_ASSIGNED,
        auth=auth,
        reason="Sent for mock interview",
        notes=notes,
        cp=cp,
    )
    return serialize_assignment(db, cp)


def update_status(
    db,
    *,
    candidate_project_id: str,
    sub_status_name: str,
    auth: AuthContext,
    reason: str = "",
    notes: str = "",
) -> dict[str, Any]:
    if not str(sub_status_name or "").strip():
        raise ApiError("BAD_REQUEST", "Missing subStatusName")
    cp = lock_assignment(db, candidate_project_id=candidate_project_id)
    apply_sub_status(
        db,
        candidate_project_id=cp.id,
        sub_status_name=sub_status_name,
        auth=auth,
        reason=reason or "Status updated",
        notes=notes,
        cp=cp,
    )
    return serialize_assignment(db, cp)


def get_assignment_detail(db, *, candidate_project_id: str) -> dict[str, Any]:
    return serialize_assignment(db, get_assignment(db, candidate_project_id=candidate_project_id))
