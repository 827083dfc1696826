from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import select

from actions.recruiter_assignment import (
    assign_cre,
    assign_recruiter,
    get_active_assignment,
    get_rnr_statistics,
    list_assignment_history,
    run_rnr_cre_sweep,
)
from db import SessionLocal, session_scope
from models import RecruiterAssignment
from utils import ApiError, to_iso_utc

from conftest import seed_candidate


def _days_ago(days: float) -> str:
    return to_iso_utc(datetime.now(timezone.utc) - timedelta(days=days))


def _active_rows(candidate_id: str) -> list[RecruiterAssignment]:
    with SessionLocal() as db:
        return list(
            db.execute(
                select(RecruiterAssignment)
                .where(RecruiterAssignment.candidateId == candidate_id)
                .where(RecruiterAssignment.isActive.is_(True))
            )
            .scalars()
            .all()
        )


@pytest.fixture()
def rnr_candidates(seeded):
    with session_scope() as db:
        seed_candidate(db, candidate_id="C-3", status="rnr", updated_at=_days_ago(4))
        seed_candidate(db, candidate_id="C-4", status="rnr", updated_at=_days_ago(1))
    return ["C-3", "C-4"]


def test_recruiter_creator_is_assigned_directly(seeded, run):
    out = run(assign_recruiter, candidate_id="C-1", created_by="USR-REC-2")
    assert out["recruiterId"] == "USR-REC-2"
    assert out["assignedBy"] == "USR-REC-2"
    assert out["reason"] == "Automatic assignment on candidate creation"


def test_least_loaded_recruiter_with_user_id_tie_break(seeded, run):
    first = run(assign_recruiter, candidate_id="C-1", created_by="USR-ADMIN")
    second = run(assign_recruiter, candidate_id="C-2", created_by="USR-ADMIN")
    assert first["recruiterId"] == "USR-REC-1"
    assert second["recruiterId"] == "USR-REC-2"


def test_reassignment_keeps_a_single_active_row(seeded, run):
    run(assign_recruiter, candidate_id="C-1", created_by="USR-REC-1")
    run(assign_recruiter, candidate_id="C-1", created_by="USR-REC-2", reason="Manual handover")

    active = _active_rows("C-1")
    assert len(active) == 1
    assert active[0].recruiterId == "USR-REC-2"

    history = run(list_assignment_history, candidate_id="C-1")
    assert len(history) == 2
    retired = next(h for h in history if not h["isActive"])
    assert retired["recruiterId"] == "USR-REC-1"
    assert retired["unassignedAt"]
    assert retired["unassignedBy"] == "USR-REC-2"

    current = run(get_active_assignment, candidate_id="C-1")
    assert current["reason"] == "Manual handover"


def test_unknown_candidate_is_not_found(seeded, run):
    with pytest.raises(ApiError) as exc:
        run(assign_recruiter, candidate_id="C-404", created_by="USR-REC-1")
    assert exc.value.code == "NOT_FOUND"


def test_cre_workload_counts_only_rnr_candidates(rnr_candidates, run):
    # C-1 is not in RNR, so this assignment must not weigh on USR-CRE-1.
    run(assign_cre, candidate_id="C-1", assigned_by="USR-ADMIN")
    assert _active_rows("C-1")[0].recruiterId == "USR-CRE-1"

    out = run(assign_cre, candidate_id="C-3", assigned_by="USR-ADMIN")
    assert out["recruiterId"] == "USR-CRE-1"

    out = run(assign_cre, candidate_id="C-4", assigned_by="USR-ADMIN")
    assert out["recruiterId"] == "USR-CRE-2"


def test_cre_assigner_falls_back_to_system_then_assignee(rnr_candidates, run):
    out = run(assign_cre, candidate_id="C-3", assigned_by="USR-GHOST")
    assert out["assignedBy"] == "system"
    assert out["reason"] == "Automatic CRE assignment for RNR status"

    out = run(assign_cre, candidate_id="C-4", assigned_by="USR-GHOST", system_user_id="no-such-system")
    assert out["assignedBy"] == out["recruiterId"]


def test_sweep_assigns_only_overdue_candidates(rnr_candidates):
    with patch("actions.recruiter_assignment.assign_cre") as mocked:
        out = run_rnr_cre_sweep(threshold_days=3)

    assert mocked.call_count == 1
    kwargs = mocked.call_args.kwargs
    assert kwargs["candidate_id"] == "C-3"
    assert kwargs["assigned_by"] == "system"
    assert kwargs["reason"] == "Automatic CRE assignment after 3 days in RNR status"
    assert out == {"processed": 1, "assigned": 1, "skipped": 0, "errors": 0}


def test_sweep_ignores_recent_and_undated_candidates(seeded):
    with session_scope() as db:
        seed_candidate(db, candidate_id="C-5", status="rnr", updated_at=_days_ago(1))
        seed_candidate(db, candidate_id="C-6", status="rnr", updated_at="")

    with patch("actions.recruiter_assignment.assign_cre") as mocked:
        out = run_rnr_cre_sweep(threshold_days=3)

    assert mocked.call_count == 0
    assert out["processed"] == 0


def test_sweep_skips_candidates_already_with_a_cre(rnr_candidates):
    first = run_rnr_cre_sweep(threshold_days=3)
    assert first == {"processed": 1, "assigned": 1, "skipped": 0, "errors": 0}
    assert _active_rows("C-3")[0].assignedBy == "system"

    second = run_rnr_cre_sweep(threshold_days=3)
    assert second == {"processed": 1, "assigned": 0, "skipped": 1, "errors": 0}
    assert len(_active_rows("C-3")) == 1


def test_sweep_counts_failures_and_continues(rnr_candidates):
    with session_scope() as db:
        seed_candidate(db, candidate_id="C-7", status="rnr", updated_at=_days_ago(10))

    with patch("actions.recruiter_assignment.assign_cre", side_effect=[RuntimeError("boom"), None]) as mocked:
        out = run_rnr_cre_sweep(threshold_days=3)

    assert mocked.call_count == 2
    assert out == {"processed": 2, "assigned": 1, "skipped": 0, "errors": 1}


def test_rnr_statistics(rnr_candidates, run):
    stats = run(get_rnr_statistics, threshold_days=3)
    assert stats == {"totalRnr": 2, "eligibleForCre": 1, "withCre": 0, "pendingAssignment": 1}

    run_rnr_cre_sweep(threshold_days=3)

    stats = run(get_rnr_statistics, threshold_days=3)
    assert stats == {"totalRnr": 2, "eligibleForCre": 1, "withCre": 1, "pendingAssignment": 0}
