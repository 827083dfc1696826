from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select

from actions.helpers import append_interview_history, serialize_interview_history
from actions.status_core import apply_sub_status, lock_assignment
from actions.statuses import SubStatusName
from models import (
    InterviewStatusHistory,
    MockInterview,
    MockInterviewChecklistItem,
    MockInterviewTemplate,
    MockInterviewTemplateItem,
    RoleNeeded,
)
from services.identity import ROLE_INTERVIEW_COORDINATOR, user_has_role
from utils import ApiError, AuthContext, iso_utc_now, new_uuid, normalize_iso, pagination, parse_page


_log = logging.getLogger("workflow.mock_interviews")

INTERVIEW_TYPE_MOCK = "mock"

MODES = {"video", "phone", "in_person"}

DECISION_SUB_STATUS: dict[str, SubStatusName] = {
    "approved": SubStatusName.MOCK_INTERVIEW_PASSED,
    "needs_training": SubStatusName.MOCK_INTERVIEW_FAILED,
    "rejected": SubStatusName.REJECTED_INTERVIEW,
}

_SCHEDULE_FIELDS = ("scheduledTime", "duration", "meetingLink", "mode")


def _lock_interview(db, interview_id: str) -> MockInterview:
    iid = str(interview_id or "").strip()
    if not iid:
        raise ApiError("BAD_REQUEST", "Missing mockInterviewId")
    mi = (
        db.execute(select(MockInterview).where(MockInterview.id == iid).with_for_update(of=MockInterview))
        .scalars()
        .first()
    )
    if not mi:
        raise ApiError("NOT_FOUND", f"Mock interview with ID {iid} not found")
    return mi


def _clean_mode(value: Any) -> str:
    mode = str(value or "video").strip().lower()
    if mode not in MODES:
        raise ApiError("BAD_REQUEST", f"Invalid mode: {mode}")
    return mode


def _clean_duration(value: Any) -> int:
    try:
        minutes = int(value if value not in (None, "") else 60)
    except (TypeError, ValueError):
        raise ApiError("BAD_REQUEST", "Invalid duration")
    if minutes <= 0:
        raise ApiError("BAD_REQUEST", "Invalid duration")
    return minutes


def _checklist_item(db, mock_interview_id: str, it: Any) -> MockInterviewChecklistItem:
    if not isinstance(it, dict):
        raise ApiError("BAD_REQUEST", "Invalid checklist item")
    rating = None
    if it.get("rating") not in (None, ""):
        try:
            rating = int(it["rating"])
        except (TypeError, ValueError):
            raise ApiError("BAD_REQUEST", "Invalid checklist item rating")
    template_item_id = str(it.get("templateItemId") or "").strip() or None
    if template_item_id and db.get(MockInterviewTemplateItem, template_item_id) is None:
        raise ApiError("NOT_FOUND", f"Template item with ID {template_item_id} not found")
    return MockInterviewChecklistItem(
        mockInterviewId=mock_interview_id,
        templateItemId=template_item_id,
        category=str(it.get("category") or ""),
        criterion=str(it.get("criterion") or ""),
        passed=bool(it.get("passed")),
        rating=rating,
        notes=str(it.get("notes") or ""),
    )


def _template_for_assignment(db, cp, template_id: Any) -> MockInterviewTemplate | None:
    tid = str(template_id or "").strip()
    if not tid:
        return None
    template = db.get(MockInterviewTemplate, tid)
    if template is None:
        raise ApiError("NOT_FOUND", f"Template with ID {tid} not found")
    role = db.get(RoleNeeded, cp.roleNeededId)
    designation = str(role.designation if role else "").strip().lower()
    if template.roleName.strip().lower() != designation:
        raise ApiError("BAD_REQUEST", "Template role does not match candidate role")
    return template


def create_mock_interview(
    db,
    *,
    candidate_project_id: str,
    coordinator_id: str,
    auth: AuthContext,
    scheduled_time: Any = None,
    duration: Any = 60,
    meeting_link: str = "",
    mode: str = "video",
    template_id: str | None = None,
) -> dict[str, Any]:
    cp = lock_assignment(db, candidate_project_id=candidate_project_id)

    open_id = db.execute(
        select(MockInterview.id)
        .where(MockInterview.candidateProjectId == cp.id)
        .where(MockInterview.decision.is_(None))
    ).first()
    if open_id:
        raise ApiError("CONFLICT", "This candidate already has a pending mock interview for this project")

    coordinator = str(coordinator_id or "").strip()
    if not user_has_role(db, coordinator, ROLE_INTERVIEW_COORDINATOR):
        raise ApiError("NOT_FOUND", f"Interview Coordinator with ID {coordinator} not found")

    template = _template_for_assignment(db, cp, template_id)

    now = iso_utc_now()
    mi = MockInterview(
        id=new_uuid(),
        candidateProjectId=cp.id,
        coordinatorId=coordinator,
        templateId=template.id if template else None,
        scheduledTime=normalize_iso(scheduled_time, field="scheduledTime"),
        duration=_clean_duration(duration),
        meetingLink=str(meeting_link or ""),
        mode=_clean_mode(mode),
        isAssignedTrainer=False,
        createdAt=now,
        updatedAt=now,
    )
    db.add(mi)
    db.flush()

    apply_sub_status(
        db,
        candidate_project_id=cp.id,
        sub_status_name=SubStatusName.MOCK_INTERVIEW_SCHEDULED,
        auth=auth,
        reason="Mock interview scheduled",
        cp=cp,
    )
    append_interview_history(
        db,
        interview_type=INTERVIEW_TYPE_MOCK,
        interview_id=mi.id,
        candidate_project_id=cp.id,
        previous_status=None,
        status="scheduled",
        status_snapshot="Mock Interview Scheduled",
        auth=auth,
        reason="Mock interview scheduled",
        at=now,
    )
    _log.info("mock interview %s scheduled candidateProject=%s", mi.id, cp.id)
    return serialize_mock_interview(mi)


def update_mock_interview(db, *, mock_interview_id: str, data: dict[str, Any], auth: AuthContext) -> dict[str, Any]:
    mi = _lock_interview(db, mock_interview_id)
    if mi.conductedAt:
        raise ApiError("BAD_REQUEST", "Cannot update a mock interview that has already been conducted")

    changes = {k: data[k] for k in _SCHEDULE_FIELDS if k in (data or {})}
    if not changes:
        raise ApiError("BAD_REQUEST", "Nothing to update")

    previous_time = mi.scheduledTime
    if "scheduledTime" in changes:
        mi.scheduledTime = normalize_iso(changes["scheduledTime"], field="scheduledTime")
    if "duration" in changes:
        mi.duration = _clean_duration(changes["duration"])
    if "meetingLink" in changes:
        mi.meetingLink = str(changes["meetingLink"] or "")
    if "mode" in changes:
        mi.mode = _clean_mode(changes["mode"])
    mi.updatedAt = iso_utc_now()

    if mi.scheduledTime is None:
        status, snapshot = "unscheduled", "Mock Interview Unscheduled"
    elif previous_time and mi.scheduledTime != previous_time:
        status, snapshot = "rescheduled", "Mock Interview Rescheduled"
    else:
        status, snapshot = "scheduled", "Mock Interview Scheduled"

    append_interview_history(
        db,
        interview_type=INTERVIEW_TYPE_MOCK,
        interview_id=mi.id,
        candidate_project_id=mi.candidateProjectId,
        previous_status="scheduled" if previous_time else "unscheduled",
        status=status,
        status_snapshot=snapshot,
        auth=auth,
        reason="Mock interview updated",
        at=mi.updatedAt,
    )
    return serialize_mock_interview(mi)


def complete_mock_interview(
    db,
    *,
    mock_interview_id: str,
    decision: str,
    auth: AuthContext | None,
    checklist_items: list[dict[str, Any]] | None = None,
    overall_rating: Any = None,
    remarks: str = "",
    strengths: str = "",
    areas_of_improvement: str = "",
) -> dict[str, Any]:
    mi = _lock_interview(db, mock_interview_id)
    if mi.conductedAt or mi.decision:
        raise ApiError("BAD_REQUEST", "Mock interview has already been completed")

    d = str(decision or "").strip().lower()
    target = DECISION_SUB_STATUS.get(d)
    if target is None:
        raise ApiError("BAD_REQUEST", "decision must be one of: approved, needs_training, rejected")

    rating = None
    if overall_rating not in (None, ""):
        try:
            rating = int(overall_rating)
        except (TypeError, ValueError):
            raise ApiError("BAD_REQUEST", "Invalid overallRating")
    items = [_checklist_item(db, mi.id, it) for it in (checklist_items or [])]

    now = iso_utc_now()
    mi.conductedAt = now
    mi.decision = d
    mi.overallRating = rating
    mi.remarks = str(remarks or "")
    mi.strengths = str(strengths or "")
    mi.areasOfImprovement = str(areas_of_improvement or "")
    mi.updatedAt = now

    db.add_all(items)

    apply_sub_status(
        db,
        candidate_project_id=mi.candidateProjectId,
        sub_status_name=target,
        auth=auth,
        reason=f"Mock interview {d}",
        notes=mi.remarks,
    )
    append_interview_history(
        db,
        interview_type=INTERVIEW_TYPE_MOCK,
        interview_id=mi.id,
        candidate_project_id=mi.candidateProjectId,
        previous_status="scheduled",
        status="completed",
        status_snapshot=f"Mock Interview Completed - {d}",
        auth=auth,
        reason=f"Mock interview {d}",
        at=now,
    )
    _log.info("mock interview %s completed decision=%s", mi.id, d)
    out = serialize_mock_interview(mi)
    out["checklistItemCount"] = len(items)
    return out


def remove_mock_interview(db, *, mock_interview_id: str, auth: AuthContext) -> dict[str, Any]:
    mi = _lock_interview(db, mock_interview_id)
    if mi.conductedAt or mi.decision:
        raise ApiError("BAD_REQUEST", "Cannot delete a completed mock interview")
    db.delete(mi)
    _log.info("mock interview %s removed by %s", mi.id, getattr(auth, "userId", ""))
    return {"id": mi.id, "deleted": True}


def get_mock_interview(db, *, mock_interview_id: str) -> dict[str, Any]:
    mi = db.get(MockInterview, str(mock_interview_id or "").strip())
    if mi is None:
        raise ApiError("NOT_FOUND", f"Mock interview with ID {mock_interview_id} not found")
    items = (
        db.execute(
            select(MockInterviewChecklistItem)
            .where(MockInterviewChecklistItem.mockInterviewId == mi.id)
            .order_by(MockInterviewChecklistItem.id.asc())
        )
        .scalars()
        .all()
    )
    out = serialize_mock_interview(mi)
    out["checklistItems"] = [
        {
            "id": it.id,
            "templateItemId": it.templateItemId,
            "category": it.category,
            "criterion": it.criterion,
            "passed": bool(it.passed),
            "rating": it.rating,
            "notes": it.notes,
        }
        for it in items
    ]
    return out


def list_mock_interviews(db, *, filters: dict[str, Any] | None = None, page: Any = 1, limit: Any = 10) -> dict[str, Any]:
    f = filters or {}
    p, n = parse_page(page, limit)

    q = select(MockInterview)
    if f.get("candidateProjectId"):
        q = q.where(MockInterview.candidateProjectId == str(f["candidateProjectId"]))
    if f.get("coordinatorId"):
        q = q.where(MockInterview.coordinatorId == str(f["coordinatorId"]))
    if f.get("decision"):
        q = q.where(MockInterview.decision == str(f["decision"]))
    if str(f.get("pending") or "").lower() in {"1", "true"}:
        q = q.where(MockInterview.decision.is_(None))

    total = db.execute(select(func.count()).select_from(q.subquery())).scalar_one()
    rows = (
        db.execute(q.order_by(MockInterview.createdAt.desc(), MockInterview.id.asc()).offset((p - 1) * n).limit(n))
        .scalars()
        .all()
    )
    return {"items": [serialize_mock_interview(r) for r in rows], "pagination": pagination(p, n, int(total or 0))}


def get_coordinator_stats(db, *, coordinator_id: str) -> dict[str, Any]:
    rows = db.execute(
        select(MockInterview.decision, func.count())
        .where(MockInterview.coordinatorId == str(coordinator_id or ""))
        .group_by(MockInterview.decision)
    ).all()

    by_decision = {k: 0 for k in DECISION_SUB_STATUS}
    pending = 0
    for decision, count in rows:
        if decision is None:
            pending += int(count)
        else:
            by_decision[str(decision)] = by_decision.get(str(decision), 0) + int(count)

    completed = sum(by_decision.values())
    total = completed + pending
    approval_rate = round(by_decision.get("approved", 0) / completed * 100, 2) if completed else 0.0
    return {
        "total": total,
        "completed": completed,
        "pending": pending,
        "byDecision": by_decision,
        "approvalRate": approval_rate,
    }


def list_interview_history(
    db,
    *,
    candidate_project_id: str,
    interview_type: str | None = None,
    page: Any = 1,
    limit: Any = 20,
) -> dict[str, Any]:
    p, n = parse_page(page, limit)
    q = select(InterviewStatusHistory).where(InterviewStatusHistory.candidateProjectId == str(candidate_project_id or ""))
    if interview_type:
        q = q.where(InterviewStatusHistory.interviewType == str(interview_type))

    total = db.execute(select(func.count()).select_from(q.subquery())).scalar_one()
    rows = (
        db.execute(q.order_by(InterviewStatusHistory.id.desc()).offset((p - 1) * n).limit(n))
        .scalars()
        .all()
    )
    return {"items": [serialize_interview_history(r) for r in rows], "pagination": pagination(p, n, int(total or 0))}


def serialize_mock_interview(mi: MockInterview) -> dict[str, Any]:
    return {
        "id": mi.id,
        "candidateProjectId": mi.candidateProjectId,
        "coordinatorId": mi.coordinatorId,
        "templateId": mi.templateId,
        "scheduledTime": mi.scheduledTime,
        "duration": mi.duration,
        "meetingLink": mi.meetingLink,
        "mode": mi.mode,
        "conductedAt": mi.conductedAt,
        "decision": mi.decision,
        "overallRating": mi.overallRating,
        "remarks": mi.remarks,
        "strengths": mi.strengths,
        "areasOfImprovement": mi.areasOfImprovement,
        "isAssignedTrainer": bool(mi.isAssignedTrainer),
        "createdAt": mi.createdAt,
        "updatedAt": mi.updatedAt,
    }
