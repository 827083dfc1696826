from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str = "INFO") -> None:
    lvl = getattr(logging, str(level or "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=lvl, format=_FORMAT)
    root.setLevel(lvl)
    # Request-level access lines are emitted by the api logger instead.
    logging.getLogger("werkzeug").setLevel(max(lvl, logging.WARNING))
