from __future__ import annotations

from enum import Enum
from typing import Any

from sqlalchemy import select

from cache_layer import cache_get_or_set, make_cache_key
from models import MainStatus, SubStatus
from utils import ApiError


class SubStatusName(str, Enum):
    """Sub-statuses that workflow code transitions into; display-only statuses stay open-ended."""

    NOMINATED_INITIAL = "nominated_initial"
    PENDING_DOCUMENTS = "pending_documents"
    VERIFICATION_IN_PROGRESS = "verification_in_progress"
    DOCUMENTS_VERIFIED = "documents_verified"
    REJECTED_DOCUMENTS = "rejected_documents"
    MOCK_INTERVIEW_ASSIGNED = "mock_interview_assigned"
    MOCK_INTERVIEW_SCHEDULED = "mock_interview_scheduled"
    MOCK_INTERVIEW_PASSED = "mock_interview_passed"
    MOCK_INTERVIEW_FAILED = "mock_interview_failed"
    REJECTED_INTERVIEW = "rejected_interview"
    TRAINING_ASSIGNED = "training_assigned"
    TRAINING_IN_PROGRESS = "training_in_progress"
    TRAINING_COMPLETED = "training_completed"
    READY_FOR_REASSESSMENT = "ready_for_reassessment"


def _name(value: Any) -> str:
    if isinstance(value, SubStatusName):
        return value.value
    return str(value or "").strip()


def _load_sub_status(db, name: str) -> dict[str, Any] | None:
    row = db.execute(
        select(SubStatus, MainStatus)
        .join(MainStatus, MainStatus.id == SubStatus.mainStatusId)
        .where(SubStatus.name == name)
    ).first()
    if not row:
        return None
    sub, main = row
    return {
        "id": int(sub.id),
        "name": str(sub.name),
        "label": str(sub.label or ""),
        "mainStatusId": int(main.id),
        "mainStatusName": str(main.name),
        "mainStatusLabel": str(main.label or ""),
    }


def find_sub_status(db, name: Any) -> dict[str, Any] | None:
    n = _name(name)
    if not n:
        return None
    return cache_get_or_set(make_cache_key("STATUS", "SUB", n), lambda: _load_sub_status(db, n))


def get_sub_status(db, name: Any) -> dict[str, Any]:
    found = find_sub_status(db, name)
    if not found:
        raise ApiError("NOT_FOUND", f"Sub-status '{_name(name)}' not found")
    return found


def status_labels(db, *, main_status_id: int | None, sub_status_id: int | None) -> dict[str, Any]:
    main = db.get(MainStatus, main_status_id) if main_status_id is not None else None
    sub = db.get(SubStatus, sub_status_id) if sub_status_id is not None else None
    return {
        "mainStatus": {"id": main.id, "name": main.name, "label": main.label} if main else None,
        "subStatus": {"id": sub.id, "name": sub.name, "label": sub.label} if sub else None,
    }


def list_statuses(db) -> list[dict[str, Any]]:
    mains = db.execute(select(MainStatus).order_by(MainStatus.order.asc(), MainStatus.id.asc())).scalars().all()
    subs = db.execute(select(SubStatus).order_by(SubStatus.order.asc(), SubStatus.id.asc())).scalars().all()

    by_main: dict[int, list[dict[str, Any]]] = {}
    for s in subs:
        by_main.setdefault(int(s.mainStatusId), []).append(
            {"id": s.id, "name": s.name, "label": s.label, "order": s.order, "color": s.color, "icon": s.icon}
        )

    return [
        {
            "id": m.id,
            "name": m.name,
            "label": m.label,
            "order": m.order,
            "color": m.color,
            "icon": m.icon,
            "subStatuses": by_main.get(int(m.id), []),
        }
        for m in mains
    ]
