from __future__ import annotations

from typing import Any, Callable

import pytest

from cache_layer import cache_clear
from db import session_scope
from models import Candidate, DocumentRequirement, Project, RoleNeeded, User, UserRole
from utils import AuthContext, iso_utc_now


@pytest.fixture()
def app_client(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'workflow_test.db'}")
    monkeypatch.setenv("AUTO_CREATE_SCHEMA", "1")
    monkeypatch.setenv("SYSTEM_USER_ID", "system")
    monkeypatch.setenv("NOTIFY_WEBHOOK_URL", "")
    cache_clear()

    from app import create_app

    app = create_app()
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield app, client
    cache_clear()


@pytest.fixture()
def run(app_client) -> Callable[..., Any]:
    """Runs an action in its own committed transaction, the way the HTTP layer does."""

    def _run(fn: Callable[..., Any], **kwargs: Any) -> Any:
        with session_scope() as db:
            return fn(db, **kwargs)

    return _run


@pytest.fixture()
def admin() -> AuthContext:
    return AuthContext(valid=True, userId="USR-ADMIN", email="admin@example.com", role="", expiresAt="")


def seed_user(db, *, user_id: str, name: str, roles: list[str] | None = None, status: str = "ACTIVE") -> None:
    now = iso_utc_now()
    db.add(User(userId=user_id, email=f"{user_id.lower()}@example.com", fullName=name, status=status, createdAt=now, updatedAt=now))
    for role in roles or []:
        db.add(UserRole(userId=user_id, roleName=role, createdAt=now))


def seed_candidate(db, *, candidate_id: str, status: str = "", updated_at: str | None = None) -> None:
    now = iso_utc_now()
    db.add(
        Candidate(
            candidateId=candidate_id,
            firstName="Test",
            lastName=candidate_id,
            email=f"{candidate_id.lower()}@example.com",
            mobile="9999999999",
            status=status,
            createdBy="TEST",
            createdAt=now,
            updatedAt=updated_at if updated_at is not None else now,
        )
    )


@pytest.fixture()
def seeded(app_client, admin) -> dict[str, Any]:
    from actions.candidate_projects import nominate_candidate

    now = iso_utc_now()
    with session_scope() as db:
        seed_user(db, user_id="USR-ADMIN", name="Ada Admin")
        seed_user(db, user_id="system", name="System")
        seed_user(db, user_id="USR-REC-1", name="Rita Recruiter", roles=["Recruiter"])
        seed_user(db, user_id="USR-REC-2", name="Ravi Recruiter", roles=["Recruiter"])
        seed_user(db, user_id="USR-CRE-1", name="Chen CRE", roles=["CRE"])
        seed_user(db, user_id="USR-CRE-2", name="Cara CRE", roles=["CRE"])
        seed_user(db, user_id="USR-COORD", name="Cody Coordinator", roles=["Interview Coordinator"])
        seed_user(db, user_id="USR-TRAINER", name="Tara Trainer")

        seed_candidate(db, candidate_id="C-1")
        seed_candidate(db, candidate_id="C-2")

        db.add(Project(projectId="P-1", title="ICU Nurses", status="active", createdAt=now, updatedAt=now))
        db.add(Project(projectId="P-2", title="Lab Technicians", status="active", createdAt=now, updatedAt=now))
        db.add(RoleNeeded(roleNeededId="R-1", projectId="P-1", designation="Staff Nurse", quantity=3, createdAt=now))
        db.add(RoleNeeded(roleNeededId="R-2", projectId="P-2", designation="Lab Tech", quantity=1, createdAt=now))
        for doc_type in ("passport", "degree", "offer_letter"):
            db.add(DocumentRequirement(projectId="P-1", docType=doc_type, mandatory=True))
        db.add(DocumentRequirement(projectId="P-1", docType="photo", mandatory=False))

    with session_scope() as db:
        cp = nominate_candidate(
            db,
            candidate_id="C-1",
            project_id="P-1",
            role_needed_id="R-1",
            recruiter_id="USR-REC-1",
            auth=admin,
        )

    return {"candidateProjectId": cp["id"], "candidateId": "C-1", "projectId": "P-1", "roleNeededId": "R-1"}
