import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)

_configured = False


def _default_extra(record):
    record["extra"].setdefault("generation_id", "-")


def setup_logger(log_level: str = "INFO", audit_file: Optional[Path] = None):
    """Configure loguru sinks for the reviser.

    Args:
        log_level: Level of the stderr sink.
        audit_file: Optional JSON-lines file receiving every record at DEBUG,
            including the ``generation_id`` bound by lineage operations.
    """
    global _configured

    if _configured and audit_file is None:
        return logger

    logger.remove()
    logger.configure(patcher=_default_extra)

    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=log_level, colorize=True)

    if audit_file:
        audit_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            audit_file,
            level="DEBUG",
            serialize=True,
            rotation="10 MB",
            retention="30 days",
        )

    _configured = True
    return logger


def generation_logger(generation_id: str):
    """Logger bound to one generation, for the audit trail."""
    return logger.bind(generation_id=generation_id)
