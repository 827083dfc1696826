from __future__ import annotations

import os


def _env_str(name: str, default: str = "") -> str:
    return str(os.getenv(name, default) or default).strip()


def _env_int(name: str, default: int) -> int:
    raw = str(os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = str(os.getenv(name, "") or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


class Config:
    def __init__(self):
        self.ENV = _env_str("ENV", "development")
        self.APP_VERSION = _env_str("APP_VERSION", "0.1.0")
        self.LOG_LEVEL = _env_str("LOG_LEVEL", "INFO").upper()

        self.DATABASE_URL = _env_str("DATABASE_URL", "sqlite:///./workflow.db")
        self.AUTO_CREATE_SCHEMA = _env_bool("AUTO_CREATE_SCHEMA", True)

        origins = _env_str("ALLOWED_ORIGINS", "*")
        self.ALLOWED_ORIGINS = [o.strip() for o in origins.split(",") if o.strip()] or ["*"]

        self.REDIS_URL = _env_str("REDIS_URL", "redis://localhost:6379/0")

        self.SYSTEM_USER_ID = _env_str("SYSTEM_USER_ID", "system")

        # Candidates left in RNR for this many days are handed to a CRE.
        self.RNR_CRE_THRESHOLD_DAYS = _env_int("RNR_CRE_THRESHOLD_DAYS", 3)

        self.OUTBOX_POLL_SECONDS = _env_int("OUTBOX_POLL_SECONDS", 5)
        self.OUTBOX_BATCH_SIZE = _env_int("OUTBOX_BATCH_SIZE", 10)
        self.OUTBOX_MAX_ATTEMPTS = _env_int("OUTBOX_MAX_ATTEMPTS", 3)

        self.NOTIFY_WEBHOOK_URL = _env_str("NOTIFY_WEBHOOK_URL", "")
        self.NOTIFY_TIMEOUT_SECONDS = _env_int("NOTIFY_TIMEOUT_SECONDS", 5)

    def validate(self) -> None:
        if not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is required")
        if self.RNR_CRE_THRESHOLD_DAYS <= 0:
            raise RuntimeError("RNR_CRE_THRESHOLD_DAYS must be positive")
        if self.OUTBOX_BATCH_SIZE <= 0:
            raise RuntimeError("OUTBOX_BATCH_SIZE must be positive")
        if self.OUTBOX_MAX_ATTEMPTS <= 0:
            raise RuntimeError("OUTBOX_MAX_ATTEMPTS must be positive")


def get_config() -> Config:
    cfg = Config()
    cfg.validate()
    return cfg
