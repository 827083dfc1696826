"""
Celery configuration and beat schedule.

Usage:
    celery -A app.tasks.celery_app worker --loglevel=INFO
    celery -A app.tasks.celery_app beat --loglevel=INFO
"""
from __future__ import annotations

import os

from celery import Celery
from celery.schedules import crontab


def make_celery() -> Celery:
    """
    Create and configure Celery app with Redis broker.

    Environment variables:
        REDIS_URL: Redis connection URL (default: redis://localhost:6379/0)
        CELERY_RESULT_BACKEND: Optional separate result backend
        OUTBOX_POLL_SECONDS: Outbox drain interval (default: 5)
    """
    redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    result_backend = os.getenv("CELERY_RESULT_BACKEND", redis_url)
    outbox_poll = max(1, int(os.getenv("OUTBOX_POLL_SECONDS", "5") or "5"))

    app = Celery(
        "workflow",
        broker=redis_url,
        backend=result_backend,
        include=["app.tasks.workflow_tasks"],
    )

    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        result_expires=86400,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        worker_concurrency=int(os.getenv("CELERY_CONCURRENCY", "4")),
        task_default_retry_delay=60,
        task_max_retries=3,
        beat_schedule={
            "rnr-cre-sweep-hourly": {
                "task": "app.tasks.workflow_tasks.rnr_cre_sweep_task",
                "schedule": crontab(minute=0),
                "options": {"expires": 3300},
            },
            "outbox-dispatch": {
                "task": "app.tasks.workflow_tasks.dispatch_outbox_task",
                "schedule": float(outbox_poll),
                "options": {"expires": float(outbox_poll)},
            },
        },
    )

    return app


celery_app = make_celery()
