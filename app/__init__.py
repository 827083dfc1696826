from __future__ import annotations

import logging

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

from app.middlewares.error_handler import init_error_handlers
from app.middlewares.request_id import init_request_id
from app.routes.core import core_bp
from app.routes.workflow import workflow_bp
from app.utils.logging import setup_logging
from config import get_config
from db import init_engine, session_scope


def create_app() -> Flask:
    load_dotenv()

    cfg = get_config()
    setup_logging(cfg.LOG_LEVEL)

    engine = init_engine(cfg.DATABASE_URL)
    if cfg.AUTO_CREATE_SCHEMA:
        from schema import init_schema, seed_status_catalog

        init_schema(engine)
        with session_scope() as db:
            seed_status_catalog(db)

    app = Flask(__name__)
    app.config["CFG"] = cfg
    app.config["JSON_SORT_KEYS"] = False

    CORS(
        app,
        origins=cfg.ALLOWED_ORIGINS,
        supports_credentials=False,
        allow_headers=["Content-Type", "Authorization", "X-Request-ID", "X-User-Id"],
        expose_headers=["X-Request-ID"],
        methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    )

    init_request_id(app)
    init_error_handlers(app)

    app.register_blueprint(core_bp)
    app.register_blueprint(workflow_bp, url_prefix="/api/v1")

    logging.getLogger("api").info("app ready env=%s version=%s", cfg.ENV, cfg.APP_VERSION)
    return app
