# Overview: Process-wide logging setup shared by the app, CLI and background workers.

from __future__ import annotations

import logging
import sys

from flask import Flask

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(app: Flask) -> None:
    """
    Attach a single stdout handler to the root logger.

    Service modules log through logging.getLogger(__name__), which works
    outside an app context (notification worker threads). Flask's own
    app.logger propagates to the same handler.
    """
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    if not any(getattr(h, "_stockroom_handler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        handler._stockroom_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    # Quiet noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
