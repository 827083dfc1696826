from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, func, select

from actions.helpers import append_interview_history, serialize_interview_history
from actions.status_core import apply_sub_status, lock_assignment
from actions.statuses import SubStatusName
from models import InterviewStatusHistory, MockInterview, TrainingAssignment, TrainingSession
from services.identity import user_exists
from utils import (
    ApiError,
    AuthContext,
    iso_utc_now,
    json_dumps_safe,
    json_loads_safe,
    new_uuid,
    normalize_iso,
    pagination,
    parse_page,
)


_log = logging.getLogger("workflow.training")

INTERVIEW_TYPE_TRAINING = "training"

PRIORITIES = {"low", "medium", "high"}
SESSION_TYPES = {"video", "phone", "in_person"}

# status -> (predecessor, sub-status, history label, reason)
_TRANSITIONS: dict[str, tuple[str, SubStatusName, str, str]] = {
    "in_progress": ("assigned", SubStatusName.TRAINING_IN_PROGRESS, "Training In Progress", "Training started"),
    "completed": ("in_progress", SubStatusName.TRAINING_COMPLETED, "Training Completed", "Training completed"),
    "ready_for_reassessment": (
        "completed",
        SubStatusName.READY_FOR_REASSESSMENT,
        "Ready For Reassessment",
        "Candidate ready for mock interview reassessment",
    ),
}

_EDITABLE_FIELDS = ("trainingType", "focusAreas", "priority", "targetCompletionDate", "notes", "improvementNotes")


def _lock_training(db, training_id: str) -> TrainingAssignment:
    tid = str(training_id or "").strip()
    if not tid:
        raise ApiError("BAD_REQUEST", "Missing trainingAssignmentId")
    ta = (
        db.execute(select(TrainingAssignment).where(TrainingAssignment.id == tid).with_for_update(of=TrainingAssignment))
        .scalars()
        .first()
    )
    if not ta:
        raise ApiError("NOT_FOUND", f"Training assignment with ID {tid} not found")
    return ta


def _clean_priority(value: Any) -> str:
    p = str(value or "medium").strip().lower()
    if p not in PRIORITIES:
        raise ApiError("BAD_REQUEST", f"Invalid priority: {p}")
    return p


def _focus_areas(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    return [str(s).strip() for s in value if str(s).strip()]


def create_training_assignment(
    db,
    *,
    candidate_project_id: str,
    assigned_by: str,
    auth: AuthContext,
    screening_id: str | None = None,
    training_type: str | None = None,
    focus_areas: Any = None,
    priority: str = "medium",
    target_completion_date: Any = None,
    notes: str = "",
) -> dict[str, Any]:
    cp = lock_assignment(db, candidate_project_id=candidate_project_id)

    assigner = str(assigned_by or "").strip()
    if not user_exists(db, assigner):
        raise ApiError("NOT_FOUND", f"User with ID {assigner} not found")

    screening = None
    sid = str(screening_id or "").strip() or None
    if sid:
        screening = db.get(MockInterview, sid)
        if screening is None:
            raise ApiError("NOT_FOUND", f"Screening with ID {sid} not found")
        if screening.candidateProjectId != cp.id:
            raise ApiError("BAD_REQUEST", "Screening does not belong to this candidate project")

    now = iso_utc_now()
    ta = TrainingAssignment(
        id=new_uuid(),
        candidateProjectId=cp.id,
        screeningId=sid,
        assignedBy=assigner,
        trainingType=str(training_type or ("interview_prep" if sid else "basic")).strip().lower(),
        focusAreasJson=json_dumps_safe(_focus_areas(focus_areas)),
        priority=_clean_priority(priority),
        targetCompletionDate=normalize_iso(target_completion_date, field="targetCompletionDate"),
        status="assigned",
        notes=str(notes or ""),
        improvementNotes="",
        createdAt=now,
        updatedAt=now,
    )
    db.add(ta)
    if screening is not None:
        screening.isAssignedTrainer = True
        screening.updatedAt = now
    db.flush()

    apply_sub_status(
        db,
        candidate_project_id=cp.id,
        sub_status_name=SubStatusName.TRAINING_ASSIGNED,
        auth=auth,
        reason="Training assigned after mock interview" if sid else "Basic training assigned",
        notes=str(notes or ""),
        cp=cp,
    )
    append_interview_history(
        db,
        interview_type=INTERVIEW_TYPE_TRAINING,
        interview_id=ta.id,
        candidate_project_id=cp.id,
        previous_status=None,
        status="assigned",
        status_snapshot="Training Assigned",
        auth=auth,
        reason="Training assigned",
        at=now,
    )
    _log.info("training %s assigned candidateProject=%s screening=%s", ta.id, cp.id, sid or "-")
    return serialize_training(ta)


def _transition(db, *, training_id: str, to_status: str, auth: AuthContext, notes: str = "") -> TrainingAssignment:
    predecessor, sub_status, label, reason = _TRANSITIONS[to_status]
    ta = _lock_training(db, training_id)
    current = str(ta.status or "")
    if current != predecessor:
        raise ApiError("BAD_REQUEST", f"Training cannot be moved to {to_status}. Current status: {current}")

    now = iso_utc_now()
    ta.status = to_status
    ta.updatedAt = now
    if to_status == "in_progress":
        ta.startedAt = now
    elif to_status == "completed":
        ta.completedAt = now

    apply_sub_status(
        db,
        candidate_project_id=ta.candidateProjectId,
        sub_status_name=sub_status,
        auth=auth,
        reason=reason,
        notes=notes,
    )
    append_interview_history(
        db,
        interview_type=INTERVIEW_TYPE_TRAINING,
        interview_id=ta.id,
        candidate_project_id=ta.candidateProjectId,
        previous_status=current,
        status=to_status,
        status_snapshot=label,
        auth=auth,
        reason=reason,
        at=now,
    )
    return ta


def start_training(db, *, training_id: str, auth: AuthContext, notes: str = "") -> dict[str, Any]:
    ta = _lock_training(db, training_id)
    if ta.status != "assigned":
        raise ApiError("BAD_REQUEST", f"Training cannot be started. Current status: {ta.status}")
    return serialize_training(_transition(db, training_id=ta.id, to_status="in_progress", auth=auth, notes=notes))


def complete_training(
    db,
    *,
    training_id: str,
    auth: AuthContext,
    overall_performance: str | None = None,
    improvement_notes: str = "",
) -> dict[str, Any]:
    ta = _lock_training(db, training_id)
    if ta.status != "in_progress":
        raise ApiError("BAD_REQUEST", f"Training cannot be completed. Current status: {ta.status}")
    if overall_performance is not None:
        ta.overallPerformance = str(overall_performance or "").strip() or None
    if improvement_notes:
        ta.improvementNotes = str(improvement_notes)
    return serialize_training(_transition(db, training_id=ta.id, to_status="completed", auth=auth, notes=improvement_notes))


def mark_ready_for_reassessment(db, *, training_id: str, auth: AuthContext, notes: str = "") -> dict[str, Any]:
    ta = _lock_training(db, training_id)
    if ta.status != "completed":
        raise ApiError(
            "BAD_REQUEST",
            f"Training must be completed before marking ready for reassessment. Current status: {ta.status}",
        )
    return serialize_training(_transition(db, training_id=ta.id, to_status="ready_for_reassessment", auth=auth, notes=notes))


def update_training_assignment(db, *, training_id: str, data: dict[str, Any]) -> dict[str, Any]:
    ta = _lock_training(db, training_id)
    changes = {k: data[k] for k in _EDITABLE_FIELDS if k in (data or {})}
    if not changes:
        raise ApiError("BAD_REQUEST", "Nothing to update")

    if "trainingType" in changes:
        ta.trainingType = str(changes["trainingType"] or "basic").strip().lower()
    if "focusAreas" in changes:
        ta.focusAreasJson = json_dumps_safe(_focus_areas(changes["focusAreas"]))
    if "priority" in changes:
        ta.priority = _clean_priority(changes["priority"])
    if "targetCompletionDate" in changes:
        ta.targetCompletionDate = normalize_iso(changes["targetCompletionDate"], field="targetCompletionDate")
    if "notes" in changes:
        ta.notes = str(changes["notes"] or "")
    if "improvementNotes" in changes:
        ta.improvementNotes = str(changes["improvementNotes"] or "")
    ta.updatedAt = iso_utc_now()
    return serialize_training(ta)


def remove_training_assignment(db, *, training_id: str) -> dict[str, Any]:
    ta = _lock_training(db, training_id)
    if ta.status != "assigned":
        raise ApiError("BAD_REQUEST", f"Only assigned trainings can be deleted. Current status: {ta.status}")
    db.execute(delete(TrainingSession).where(TrainingSession.trainingAssignmentId == ta.id))
    if ta.screeningId:
        screening = db.get(MockInterview, ta.screeningId)
        if screening is not None:
            screening.isAssignedTrainer = False
    db.delete(ta)
    return {"id": ta.id, "deleted": True}


def get_training_assignment(db, *, training_id: str) -> dict[str, Any]:
    ta = db.get(TrainingAssignment, str(training_id or "").strip())
    if ta is None:
        raise ApiError("NOT_FOUND", f"Training assignment with ID {training_id} not found")
    out = serialize_training(ta)
    out["sessions"] = list_sessions(db, training_id=ta.id)
    return out


def list_training_assignments(db, *, filters: dict[str, Any] | None = None, page: Any = 1, limit: Any = 10) -> dict[str, Any]:
    f = filters or {}
    p, n = parse_page(page, limit)

    q = select(TrainingAssignment)
    if f.get("candidateProjectId"):
        q = q.where(TrainingAssignment.candidateProjectId == str(f["candidateProjectId"]))
    if f.get("status"):
        q = q.where(TrainingAssignment.status == str(f["status"]))
    if f.get("trainingType"):
        q = q.where(TrainingAssignment.trainingType == str(f["trainingType"]))
    if f.get("assignedBy"):
        q = q.where(TrainingAssignment.assignedBy == str(f["assignedBy"]))
    if str(f.get("basicOnly") or "").lower() in {"1", "true"}:
        q = q.where(TrainingAssignment.screeningId.is_(None))

    total = db.execute(select(func.count()).select_from(q.subquery())).scalar_one()
    rows = (
        db.execute(q.order_by(TrainingAssignment.createdAt.desc(), TrainingAssignment.id.asc()).offset((p - 1) * n).limit(n))
        .scalars()
        .all()
    )
    return {"items": [serialize_training(r) for r in rows], "pagination": pagination(p, n, int(total or 0))}


def list_basic_trainings(db, *, page: Any = 1, limit: Any = 10) -> dict[str, Any]:
    return list_training_assignments(db, filters={"basicOnly": "true", "trainingType": "basic"}, page=page, limit=limit)


def get_training_history(db, *, candidate_project_id: str, page: Any = 1, limit: Any = 20) -> dict[str, Any]:
    p, n = parse_page(page, limit)
    q = (
        select(InterviewStatusHistory)
        .where(InterviewStatusHistory.candidateProjectId == str(candidate_project_id or ""))
        .where(InterviewStatusHistory.interviewType == INTERVIEW_TYPE_TRAINING)
    )
    total = db.execute(select(func.count()).select_from(q.subquery())).scalar_one()
    rows = db.execute(q.order_by(InterviewStatusHistory.id.desc()).offset((p - 1) * n).limit(n)).scalars().all()
    return {"items": [serialize_interview_history(r) for r in rows], "pagination": pagination(p, n, int(total or 0))}


# --- sessions ---


def _load_session(db, session_id: str) -> TrainingSession:
    s = db.get(TrainingSession, str(session_id or "").strip())
    if s is None:
        raise ApiError("NOT_FOUND", f"Training session with ID {session_id} not found")
    return s


def _clean_session_type(value: Any) -> str:
    st = str(value or "video").strip().lower()
    if st not in SESSION_TYPES:
        raise ApiError("BAD_REQUEST", f"Invalid sessionType: {st}")
    return st


def create_session(
    db,
    *,
    training_id: str,
    session_date: Any,
    session_type: str = "video",
    duration: Any = 60,
    topics_covered: Any = None,
    planned_activities: str = "",
    trainer: str | None = None,
    notes: str = "",
) -> dict[str, Any]:
    ta = _lock_training(db, training_id)
    when = normalize_iso(session_date, field="sessionDate")
    if not when:
        raise ApiError("BAD_REQUEST", "Missing sessionDate")
    try:
        minutes = int(duration if duration not in (None, "") else 60)
    except (TypeError, ValueError):
        raise ApiError("BAD_REQUEST", "Invalid duration")

    now = iso_utc_now()
    s = TrainingSession(
        id=new_uuid(),
        trainingAssignmentId=ta.id,
        sessionDate=when,
        sessionType=_clean_session_type(session_type),
        duration=minutes,
        topicsCoveredJson=json_dumps_safe(_focus_areas(topics_covered)),
        plannedActivities=str(planned_activities or ""),
        trainer=str(trainer or "").strip() or None,
        notes=str(notes or ""),
        feedback="",
        createdAt=now,
        updatedAt=now,
    )
    db.add(s)
    db.flush()
    return serialize_session(s)


def update_session(db, *, session_id: str, data: dict[str, Any]) -> dict[str, Any]:
    s = _load_session(db, session_id)
    d = data or {}
    if "sessionDate" in d:
        s.sessionDate = normalize_iso(d["sessionDate"], field="sessionDate") or s.sessionDate
    if "sessionType" in d:
        s.sessionType = _clean_session_type(d["sessionType"])
    if "duration" in d:
        try:
            s.duration = int(d["duration"])
        except (TypeError, ValueError):
            raise ApiError("BAD_REQUEST", "Invalid duration")
    if "topicsCovered" in d:
        s.topicsCoveredJson = json_dumps_safe(_focus_areas(d["topicsCovered"]))
    if "plannedActivities" in d:
        s.plannedActivities = str(d["plannedActivities"] or "")
    if "trainer" in d:
        s.trainer = str(d["trainer"] or "").strip() or None
    if "notes" in d:
        s.notes = str(d["notes"] or "")
    s.updatedAt = iso_utc_now()
    return serialize_session(s)


def complete_session(db, *, session_id: str, performance_rating: str | None = None, feedback: str = "") -> dict[str, Any]:
    s = _load_session(db, session_id)
    if s.completedAt:
        raise ApiError("BAD_REQUEST", "Session is already completed")
    now = iso_utc_now()
    s.completedAt = now
    s.performanceRating = str(performance_rating or "").strip() or None
    s.feedback = str(feedback or "")
    s.updatedAt = now
    return serialize_session(s)


def remove_session(db, *, session_id: str) -> dict[str, Any]:
    s = _load_session(db, session_id)
    db.delete(s)
    return {"id": s.id, "deleted": True}


def list_sessions(db, *, training_id: str) -> list[dict[str, Any]]:
    rows = (
        db.execute(
            select(TrainingSession)
            .where(TrainingSession.trainingAssignmentId == training_id)
            .order_by(TrainingSession.sessionDate.asc(), TrainingSession.id.asc())
        )
        .scalars()
        .all()
    )
    return [serialize_session(s) for s in rows]


def serialize_training(ta: TrainingAssignment) -> dict[str, Any]:
    return {
        "id": ta.id,
        "candidateProjectId": ta.candidateProjectId,
        "screeningId": ta.screeningId,
        "assignedBy": ta.assignedBy,
        "trainingType": ta.trainingType,
        "focusAreas": json_loads_safe(ta.focusAreasJson, []) or [],
        "priority": ta.priority,
        "targetCompletionDate": ta.targetCompletionDate,
        "status": ta.status,
        "startedAt": ta.startedAt,
        "completedAt": ta.completedAt,
        "overallPerformance": ta.overallPerformance,
        "notes": ta.notes,
        "improvementNotes": ta.improvementNotes,
        "createdAt": ta.createdAt,
        "updatedAt": ta.updatedAt,
    }


def serialize_session(s: TrainingSession) -> dict[str, Any]:
    return {
        "id": s.id,
        "trainingAssignmentId": s.trainingAssignmentId,
        "sessionDate": s.sessionDate,
        "sessionType": s.sessionType,
        "duration": s.duration,
        "topicsCovered": json_loads_safe(s.topicsCoveredJson, []) or [],
        "plannedActivities": s.plannedActivities,
        "trainer": s.trainer,
        "completedAt": s.completedAt,
        "performanceRating": s.performanceRating,
        "notes": s.notes,
        "feedback": s.feedback,
    }
