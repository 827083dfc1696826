from __future__ import annotations

from typing import Any

from models import InterviewStatusHistory
from services.identity import get_user_display_name
from utils import AuthContext, iso_utc_now


def actor_user_id(auth: AuthContext | None) -> str | None:
    uid = str(getattr(auth, "userId", "") or "").strip()
    return uid or None


def actor_display_name(db, auth: AuthContext | None) -> str:
    uid = actor_user_id(auth)
    if not uid:
        return "System"
    return get_user_display_name(db, uid) or ("System" if uid.lower() == "system" else "Unknown User")


def append_interview_history(
    db,
    *,
    interview_type: str,
    interview_id: str | None,
    candidate_project_id: str,
    previous_status: str | None,
    status: str,
    status_snapshot: str,
    auth: AuthContext | None,
    reason: str = "",
    at: str = "",
) -> InterviewStatusHistory:
    # The acting user is optional here; a missing id is recorded as a system change.
    row = InterviewStatusHistory(
        interviewType=str(interview_type),
        interviewId=interview_id,
        candidateProjectId=str(candidate_project_id),
        previousStatus=previous_status,
        status=str(status),
        statusSnapshot=str(status_snapshot or ""),
        statusAt=at or iso_utc_now(),
        changedById=actor_user_id(auth),
        changedByName=actor_display_name(db, auth),
        reason=str(reason or ""),
    )
    db.add(row)
    return row


def serialize_interview_history(row: InterviewStatusHistory) -> dict[str, Any]:
    return {
        "id": row.id,
        "interviewType": row.interviewType,
        "interviewId": row.interviewId,
        "candidateProjectId": row.candidateProjectId,
        "previousStatus": row.previousStatus,
        "status": row.status,
        "statusSnapshot": row.statusSnapshot,
        "statusAt": row.statusAt,
        "changedById": row.changedById,
        "changedByName": row.changedByName,
        "reason": row.reason,
    }
