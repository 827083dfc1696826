from __future__ import annotations

import logging

from sqlalchemy import inspect, select, text
from sqlalchemy.orm import Session

from cache_layer import cache_invalidate_prefix
from db import Base
from models import MainStatus, SubStatus


_log = logging.getLogger("schema")


# (name, label, color, icon, sub statuses as (name, label, color))
STATUS_CATALOG: list[tuple[str, str, str, str, list[tuple[str, str, str]]]] = [
    ("nominated", "Nominated", "blue", "user-plus", [
        ("nominated_initial", "Nominated", "blue"),
    ]),
    ("documents", "Documents", "yellow", "file-text", [
        ("pending_documents", "Pending Documents", "yellow"),
        ("documents_submitted", "Documents Submitted", "blue"),
        ("verification_in_progress", "Verification In Progress", "orange"),
        ("documents_verified", "Verified Documents", "green"),
        ("documents_re_submission_requested", "Re-submission Requested", "orange"),
        ("rejected_documents", "Rejected Documents", "red"),
    ]),
    ("interview", "Interview", "purple", "message-square", [
        ("mock_interview_assigned", "Mock Interview Assigned", "purple"),
        ("mock_interview_scheduled", "Mock Interview Scheduled", "blue"),
        ("mock_interview_passed", "Mock Interview Passed", "green"),
        ("mock_interview_failed", "Mock Interview Failed", "red"),
        ("training_assigned", "Training Assigned", "purple"),
        ("training_in_progress", "Training In Progress", "orange"),
        ("training_completed", "Training Completed", "green"),
        ("ready_for_reassessment", "Ready For Reassessment", "blue"),
        ("interview_assigned", "Interview Assigned", "purple"),
        ("interview_scheduled", "Interview Scheduled", "blue"),
        ("interview_rescheduled", "Interview Rescheduled", "orange"),
        ("interview_completed", "Interview Completed", "green"),
        ("interview_passed", "Interview Passed", "green"),
        ("interview_failed", "Interview Failed", "red"),
        ("interview_selected", "Selected", "green"),
    ]),
    ("processing", "Processing", "orange", "settings", [
        ("transferred_to_processing", "Transferred To Processing", "blue"),
        ("processing_in_progress", "Processing In Progress", "orange"),
        ("processing_completed", "Processing Completed", "green"),
        ("processing_failed", "Processing Failed", "red"),
        ("ready_for_final", "Ready For Final", "purple"),
    ]),
    ("final", "Final", "green", "check-circle", [
        ("hired", "Hired", "green"),
    ]),
    ("rejected", "Rejected", "red", "x-circle", [
        ("rejected_interview", "Rejected - Interview", "red"),
        ("rejected_selection", "Rejected - Selection", "red"),
    ]),
    ("withdrawn", "Withdrawn", "gray", "log-out", [
        ("withdrawn", "Withdrawn", "gray"),
    ]),
    ("on_hold", "On Hold", "yellow", "pause-circle", [
        ("on_hold", "On Hold", "yellow"),
    ]),
]


def _quoted(name: str) -> str:
    return '"' + str(name).replace('"', '""') + '"'


def _ensure_column(engine, *, table: str, column: str, ddl_type: str, default_sql: str = "''") -> None:
    insp = inspect(engine)
    cols = {c.get("name") for c in insp.get_columns(table)}
    if column in cols:
        return
    ddl = f"ALTER TABLE {_quoted(table)} ADD COLUMN {_quoted(column)} {ddl_type} DEFAULT {default_sql}"
    with engine.begin() as conn:
        conn.execute(text(ddl))
    _log.info("added column %s.%s", table, column)


def init_schema(engine) -> None:
    """
    Creates missing tables and applies additive column changes (no Alembic).

    Safe to call on every startup.
    """
    import models  # noqa: F401  registers every table on Base.metadata

    Base.metadata.create_all(bind=engine)

    # Columns introduced after the first deployments.
    _ensure_column(engine, table="outbox_events", column="lastError", ddl_type="TEXT")
    _ensure_column(engine, table="training_assignments", column="overallPerformance", ddl_type="TEXT", default_sql="NULL")
    _ensure_column(engine, table="mock_interviews", column="templateId", ddl_type="VARCHAR", default_sql="NULL")


def seed_status_catalog(db: Session) -> int:
    """Inserts catalog rows that are missing by name. Existing rows are never modified."""
    inserted = 0
    mains = {m.name: m for m in db.execute(select(MainStatus)).scalars().all()}
    subs = set(db.execute(select(SubStatus.name)).scalars().all())

    for main_order, (name, label, color, icon, children) in enumerate(STATUS_CATALOG, start=1):
        main = mains.get(name)
        if main is None:
            main = MainStatus(name=name, label=label, order=main_order, color=color, icon=icon)
            db.add(main)
            db.flush()
            mains[name] = main
            inserted += 1

        for sub_order, (sub_name, sub_label, sub_color) in enumerate(children, start=1):
            if sub_name in subs:
                continue
            db.add(SubStatus(mainStatusId=main.id, name=sub_name, label=sub_label, order=sub_order, color=sub_color))
            subs.add(sub_name)
            inserted += 1

    if inserted:
        db.flush()
        _log.info("status catalog seeded rows=%s", inserted)
    cache_invalidate_prefix("STATUS")
    return inserted
