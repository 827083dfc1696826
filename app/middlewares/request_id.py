from __future__ import annotations

import logging
import os
import time

from flask import Flask, g, request


_log = logging.getLogger("api")


def init_request_id(app: Flask) -> None:
    @app.before_request
    def _before():
        incoming = str(request.headers.get("X-Request-ID") or "").strip()
        g.request_id = incoming[:64] or os.urandom(8).hex()
        g.start_ts = time.monotonic()

    @app.after_request
    def _after(resp):
        resp.headers["X-Request-ID"] = str(getattr(g, "request_id", "") or "")
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("Cache-Control", "no-store")
        started = getattr(g, "start_ts", None)
        if started is not None:
            _log.info(
                "%s %s %s %.1fms rid=%s",
                request.method,
                request.path,
                resp.status_code,
                (time.monotonic() - started) * 1000,
                g.request_id,
            )
        return resp
