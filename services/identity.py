from __future__ import annotations

from sqlalchemy import select

from models import User, UserRole


ROLE_RECRUITER = "Recruiter"
ROLE_CRE = "CRE"
ROLE_INTERVIEW_COORDINATOR = "Interview Coordinator"


def get_user(db, user_id: str | None) -> User | None:
    uid = str(user_id or "").strip()
    if not uid:
        return None
    return db.execute(select(User).where(User.userId == uid)).scalar_one_or_none()


def user_exists(db, user_id: str | None) -> bool:
    return get_user(db, user_id) is not None


def get_user_display_name(db, user_id: str | None) -> str | None:
    user = get_user(db, user_id)
    if user is None:
        return None
    return str(user.fullName or "").strip() or str(user.email or "").strip() or None


def user_has_role(db, user_id: str | None, role_name: str) -> bool:
    uid = str(user_id or "").strip()
    if not uid:
        return False
    hit = db.execute(
        select(UserRole.id)
        .join(User, User.userId == UserRole.userId)
        .where(UserRole.userId == uid)
        .where(UserRole.roleName == role_name)
        .where(User.status == "ACTIVE")
    ).first()
    return hit is not None


def list_users_with_role(db, role_name: str) -> list[User]:
    return list(
        db.execute(
            select(User)
            .join(UserRole, UserRole.userId == User.userId)
            .where(UserRole.roleName == role_name)
            .where(User.status == "ACTIVE")
            .order_by(User.userId.asc())
        )
        .scalars()
        .all()
    )
