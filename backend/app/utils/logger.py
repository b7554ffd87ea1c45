"""
FatigueWatch logging setup.
Everything under the ``fatiguewatch`` logger (core pipeline and backend) plus
uvicorn's own loggers share one console format; ``LOG_FILE`` adds a rotating
file copy for unattended runs.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# third-party loggers that flood DEBUG output with per-request lines
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "multipart")


def _has_handler(logger: logging.Logger, kind: type, target: Optional[str] = None) -> bool:
    for h in logger.handlers:
        if type(h) is kind and (target is None or getattr(h, "baseFilename", None) == target):
            return True
    return False


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Configure the fatiguewatch logger tree. Safe to call more than once."""
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    logger = logging.getLogger("fatiguewatch")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not _has_handler(logger, logging.StreamHandler):
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        logger.addHandler(console)

    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
        if not _has_handler(logger, RotatingFileHandler, file_handler.baseFilename):
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        else:
            file_handler.close()

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        for handler in logging.getLogger(name).handlers:
            handler.setFormatter(formatter)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
