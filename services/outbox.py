from __future__ import annotations

import logging
from typing import Any, Callable

from sqlalchemy import event, select

from db import SessionLocal
from models import OutboxEvent
from utils import iso_utc_now, json_dumps_safe, json_loads_safe, new_uuid


_log = logging.getLogger("outbox")

_PENDING_KEY = "outbox_pending"

EVENT_DOCUMENT_VERIFIED = "DocumentVerified"
EVENT_DOCUMENT_REJECTED = "DocumentRejected"
EVENT_DOCUMENT_RESUBMISSION_REQUESTED = "DocumentResubmissionRequested"
EVENT_DOCUMENT_RESUBMITTED = "DocumentResubmitted"
EVENT_CANDIDATE_DOCUMENTS_VERIFIED = "CandidateDocumentsVerified"
EVENT_CANDIDATE_DOCUMENTS_REJECTED = "CandidateDocumentsRejected"


def queue_event(db, event_type: str, payload: dict[str, Any]) -> None:
    """Defers publication until the session's transaction commits; a rollback drops it."""
    db.info.setdefault(_PENDING_KEY, []).append((str(event_type), dict(payload or {})))


def pending_events(db) -> list[tuple[str, dict[str, Any]]]:
    return list(db.info.get(_PENDING_KEY) or [])


def publish_event(event_type: str, payload: dict[str, Any]) -> bool:
    """Writes one outbox row in its own session. Failures are logged and dropped."""
    try:
        with SessionLocal() as db:
            db.add(
                OutboxEvent(
                    id=new_uuid(),
                    type=str(event_type),
                    payloadJson=json_dumps_safe(payload or {}),
                    processed=False,
                    attempts=0,
                    lastError="",
                    createdAt=iso_utc_now(),
                )
            )
            db.commit()
        return True
    except Exception:
        _log.exception("publish failed type=%s", event_type)
        return False


@event.listens_for(SessionLocal, "after_commit")
def _publish_after_commit(session) -> None:
    events = session.info.pop(_PENDING_KEY, None) or []
    for event_type, payload in events:
        publish_event(event_type, payload)


@event.listens_for(SessionLocal, "after_transaction_end")
def _discard_uncommitted(session, transaction) -> None:
    # after_commit has already drained committed events; anything left was rolled back.
    if transaction.parent is None:
        session.info.pop(_PENDING_KEY, None)


def dispatch_pending(deliver: Callable[[str, dict[str, Any]], None], *, batch_size: int = 10, max_attempts: int = 3) -> dict[str, int]:
    """
    Hands unprocessed outbox rows (oldest first) to `deliver`.

    A row is marked processed on success. On failure its attempt counter grows and it is
    given up (marked processed) once attempts reach `max_attempts`.
    """
    delivered = 0
    failed = 0
    with SessionLocal() as db:
        rows = (
            db.execute(
                select(OutboxEvent)
                .where(OutboxEvent.processed.is_(False))
                .order_by(OutboxEvent.createdAt.asc(), OutboxEvent.id.asc())
                .limit(max(1, int(batch_size)))
            )
            .scalars()
            .all()
        )
        for row in rows:
            payload = json_loads_safe(row.payloadJson, {}) or {}
            try:
                deliver(str(row.type), payload)
            except Exception as e:
                failed += 1
                row.attempts = int(row.attempts or 0) + 1
                row.lastError = str(e)[:500]
                if row.attempts >= max_attempts:
                    row.processed = True
                    row.processedAt = iso_utc_now()
                    _log.error("event %s type=%s dropped after %s attempts", row.id, row.type, row.attempts)
                else:
                    _log.warning("event %s type=%s delivery failed attempt=%s", row.id, row.type, row.attempts)
            else:
                delivered += 1
                row.processed = True
                row.processedAt = iso_utc_now()
            db.commit()
    return {"fetched": len(rows), "delivered": delivered, "failed": failed}
