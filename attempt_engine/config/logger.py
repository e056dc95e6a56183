# -*- coding: utf-8 -*-
"""
Logging for the attempt engine, built on loguru.

Records from standard library loggers (uvicorn, sqlalchemy, httpx) are
forwarded into loguru, so the service, the sweeper and the client session all
write to the same stream. Importing this module installs the sinks once.
"""
import logging
import sys

from loguru import logger

from attempt_engine.config.settings import settings

# Libraries whose records are dropped before reaching loguru
QUIET_LIBRARIES = ("httpx", "httpcore", "asyncio", "aiosqlite", "redis")

ATTEMPT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
SYSTEM_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>SYSTEM</magenta> | "
    "<level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Forward standard logging records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.startswith(QUIET_LIBRARIES):
            return
        # uvicorn announces every start and reload at INFO
        if record.name.startswith("uvicorn") and record.levelno <= logging.INFO:
            return

        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.bind(module=record.name).opt(
            depth=depth, exception=record.exc_info
        ).log(level, record.getMessage())


def _is_system(record) -> bool:
    return record["extra"].get("system") is True


def setup_logging(level: str = settings.log_level) -> None:
    """(Re)install the loguru sinks and the stdlib bridge."""
    level = level.upper()
    logger.remove()
    logger.configure(extra={"module": "attempt_engine"})
    logger.add(
        sys.stdout,
        format=ATTEMPT_FORMAT,
        level=level,
        colorize=True,
        backtrace=False,
        diagnose=False,
        filter=lambda record: not _is_system(record),
    )
    logger.add(
        sys.stdout,
        format=SYSTEM_FORMAT,
        level=level,
        colorize=True,
        backtrace=False,
        diagnose=False,
        filter=_is_system,
    )
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)


setup_logging()


def configure_logger(name: str = "attempt_engine"):
    """
    Logger bound to a module name.

    Every module does ``logger = configure_logger(__name__)``; the name is
    shown in place of loguru's own ``{name}``.
    """
    return logger.bind(module=name)


def get_system_logger():
    """Logger for startup and shutdown messages, printed without a location."""
    return logger.bind(system=True)
