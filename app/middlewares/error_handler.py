from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from utils import ApiError, err


_log = logging.getLogger("api")


def init_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):
        body, status = err(e.code, e.message, http_status=e.http_status)
        return jsonify(body), status

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        code = "NOT_FOUND" if e.code == 404 else "BAD_REQUEST" if (e.code or 500) < 500 else "INTERNAL"
        body, status = err(code, e.description or e.name, http_status=e.code or 500)
        return jsonify(body), status

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        _log.exception("unhandled error")
        body, status = err("INTERNAL", "Unexpected error", http_status=500)
        return jsonify(body), status
