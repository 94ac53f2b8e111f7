"""Structured logging setup for RampForge."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime


class _JsonFormatter(logging.Formatter):
    """One-line JSON log formatter.

    Emits objects with keys: timestamp, level, logger, message, and
    ``exception`` when the record carries exception info.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Serialize *record* to a single JSON line.

        Args:
            record: Log record emitted by a ``rampforge.*`` logger.

        Returns:
            JSON text without a trailing newline.
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the root ``rampforge`` logger.

    Repeated calls only update the level of the existing handler, they never
    stack a second handler.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``). Defaults to INFO.
        json_format: Emit one JSON object per line instead of plain text.

    Returns:
        The configured ``rampforge`` logger.
    """
    logger = logging.getLogger("rampforge")
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Keep records out of the root logger's handlers
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``rampforge`` namespace.

    Args:
        name: Dotted suffix, e.g. ``"engine.pool"`` gives
            ``logging.getLogger("rampforge.engine.pool")``.

    Returns:
        The child logger.
    """
    return logging.getLogger(f"rampforge.{name}")
