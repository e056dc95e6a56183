# -*- coding: utf-8 -*-
"""
Uvicorn settings and log routing.
"""

import logging

from attempt_engine.config.logger import InterceptHandler
from attempt_engine.config.settings import settings

# logger name -> lowest level that is forwarded to loguru
BRIDGED_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    # requests are logged by the middleware in main.py
    "uvicorn.access": logging.WARNING,
    "fastapi": logging.INFO,
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
}


def setup_uvicorn_logging():
    """Point uvicorn, fastapi and sqlalchemy loggers at loguru."""
    handler = InterceptHandler()
    for name, level in BRIDGED_LOGGERS.items():
        bridged = logging.getLogger(name)
        bridged.handlers = [handler]
        bridged.propagate = False
        bridged.setLevel(level)


def get_uvicorn_config() -> dict:
    """Keyword arguments for ``uvicorn.run``."""
    return dict(
        app="attempt_engine.main:app",
        host=settings.app_host,
        port=settings.app_port,
        log_config=None,
        access_log=False,
        use_colors=True,
    )
