"""Logging setup built on loguru.

Standard library loggers (``urllib3``, ``requests``) are intercepted and
forwarded to loguru so everything ends up in the same sink.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"
VERBOSE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - {message}"
)


class InterceptHandler(logging.Handler):
    """Redirect standard logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    logger.remove()
    effective_level = "DEBUG" if verbose else level.upper()
    logger.add(
        sys.stderr,
        level=effective_level,
        format=VERBOSE_FORMAT if verbose else LOG_FORMAT,
        backtrace=verbose,
        diagnose=False,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("urllib3", "requests"):
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = [InterceptHandler()]
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
