"""
Outbound notification delivery for outbox events.

Events are POSTed as JSON to NOTIFY_WEBHOOK_URL:
    {"type": "DocumentVerified", "payload": {...}, "sentAt": "..."}

When no webhook is configured the event is only logged.
"""
from __future__ import annotations

import logging
from typing import Any

import requests

from utils import iso_utc_now


_log = logging.getLogger("notifier")


class NotificationDeliveryError(RuntimeError):
    pass


def deliver_event(event_type: str, payload: dict[str, Any], *, webhook_url: str = "", timeout: int = 5) -> bool:
    url = str(webhook_url or "").strip()
    if not url:
        _log.info("event %s (no webhook configured) payload=%s", event_type, payload)
        return False

    body = {"type": event_type, "payload": payload or {}, "sentAt": iso_utc_now()}
    try:
        resp = requests.post(url, json=body, headers={"Content-Type": "application/json"}, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise NotificationDeliveryError(f"Webhook delivery failed for {event_type}: {e}") from e
    return True
