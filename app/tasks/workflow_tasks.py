"""
Periodic and asynchronous workflow jobs.
"""
from __future__ import annotations

import logging

from app.tasks import celery_app
from config import get_config
from db import init_engine, is_initialized


_log = logging.getLogger("workflow.tasks")


def _ensure_db():
    cfg = get_config()
    if not is_initialized():
        init_engine(cfg.DATABASE_URL)
    return cfg


@celery_app.task(bind=True)
def rnr_cre_sweep_task(self):
    """Hourly: hand candidates stuck in RNR over to a CRE."""
    from actions.recruiter_assignment import run_rnr_cre_sweep

    cfg = _ensure_db()
    out = run_rnr_cre_sweep(threshold_days=cfg.RNR_CRE_THRESHOLD_DAYS, system_user_id=cfg.SYSTEM_USER_ID)
    return {"task_id": self.request.id, **out}


@celery_app.task(bind=True)
def dispatch_outbox_task(self):
    """Drain a batch of outbox rows into delivery jobs."""
    from services.outbox import dispatch_pending

    cfg = _ensure_db()

    def _enqueue(event_type: str, payload: dict) -> None:
        deliver_event_task.apply_async(kwargs={"event_type": event_type, "payload": payload})

    out = dispatch_pending(_enqueue, batch_size=cfg.OUTBOX_BATCH_SIZE, max_attempts=cfg.OUTBOX_MAX_ATTEMPTS)
    if out["fetched"]:
        _log.info("outbox dispatch %s", out)
    return out


@celery_app.task(bind=True, max_retries=3, default_retry_delay=30)
def deliver_event_task(self, event_type: str, payload: dict | None = None):
    from services.notifier import NotificationDeliveryError, deliver_event

    cfg = get_config()
    try:
        sent = deliver_event(
            event_type,
            payload or {},
            webhook_url=cfg.NOTIFY_WEBHOOK_URL,
            timeout=cfg.NOTIFY_TIMEOUT_SECONDS,
        )
    except NotificationDeliveryError as e:
        raise self.retry(exc=e, countdown=30 * (2 ** self.request.retries))
    return {"task_id": self.request.id, "type": event_type, "sent": sent}
