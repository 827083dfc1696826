from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


_HTTP_STATUS = {
    "BAD_REQUEST": 400,
    "AUTH_INVALID": 401,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "CONFLICT": 409,
    "INTERNAL": 500,
}


class ApiError(Exception):
    def __init__(self, code: str, message: str, *, http_status: int | None = None):
        super().__init__(message)
        self.code = str(code or "INTERNAL").upper()
        self.message = str(message or "")
        self.http_status = int(http_status or _HTTP_STATUS.get(self.code, 500))

    def __repr__(self) -> str:
        return f"ApiError({self.code!r}, {self.message!r})"


@dataclass(frozen=True)
class AuthContext:
    valid: bool
    userId: str
    email: str
    role: str
    expiresAt: str


def ok(data: Any = None, message: str = "") -> tuple[dict, int]:
    return {"success": True, "data": data, "message": message or "OK"}, 200


def err(code: str, message: str, *, http_status: int = 500) -> tuple[dict, int]:
    return {"success": False, "error": {"code": code, "message": message}, "message": message}, http_status


def iso_utc_now() -> str:
    return to_iso_utc(datetime.now(timezone.utc))


def to_iso_utc(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_datetime_maybe(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    s = str(value).strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def normalize_iso(value: Any, *, field: str) -> str | None:
    """Accepts an ISO-8601 value and returns the canonical UTC string (None passes through)."""
    if value is None or value == "":
        return None
    dt = parse_datetime_maybe(value)
    if dt is None:
        raise ApiError("BAD_REQUEST", f"Invalid {field}")
    return to_iso_utc(dt)


def new_uuid() -> str:
    return str(uuid.uuid4())


def parse_page(page: Any, limit: Any, *, max_limit: int = 100) -> tuple[int, int]:
    try:
        p = int(page or 1)
    except (TypeError, ValueError):
        p = 1
    try:
        n = int(limit or 10)
    except (TypeError, ValueError):
        n = 10
    return max(1, p), max(1, min(max_limit, n))


def pagination(page: int, limit: int, total: int) -> dict[str, int]:
    pages = (total + limit - 1) // limit if limit else 0
    return {"page": page, "limit": limit, "total": total, "totalPages": pages}


def json_dumps_safe(value: Any) -> str:
    try:
        return json.dumps(value, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return json.dumps(str(value))


def json_loads_safe(raw: Any, default: Any = None) -> Any:
    s = str(raw or "").strip()
    if not s:
        return default
    try:
        return json.loads(s)
    except ValueError:
        return default
