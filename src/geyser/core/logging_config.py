"""
Structured JSON logging for geyser services.

Geyser modules log through ``logging.getLogger(__name__)`` and tag every
record with an event name, e.g. ``extra={"event": "geyser.stake_recorded"}``.
setup_logging() attaches a JSON formatter to a logger (normally the
``geyser`` package logger) so that those extra fields become top-level keys.

Usage:
    from geyser.core.logging_config import setup_logging

    setup_logging(log_file="/var/log/geyser/geyser.json", environment="staging")
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pythonjsonlogger import jsonlogger

from .config import LOG_LEVEL

RECORD_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"


class GeyserJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter for geyser records.

    Every record carries the service, environment and the geyser component
    that emitted it (``distribution.token_geyser`` for
    ``geyser.core.distribution.token_geyser``).
    """

    def __init__(self, environment: str = "production", service_name: str = "geyser"):
        super().__init__(fmt=RECORD_FORMAT)
        self.environment = environment
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record["level"] = record.levelname.lower()
        log_record["service"] = self.service_name
        log_record["environment"] = self.environment
        log_record["component"] = _component(record.name)
        log_record["location"] = f"{record.module}:{record.lineno}"


def _component(logger_name: str) -> str:
    for prefix in ("geyser.core.", "geyser."):
        if logger_name.startswith(prefix):
            return logger_name[len(prefix):]
    return logger_name


def _build_handlers(log_file: Optional[str], enable_console: bool, max_bytes: int, backup_count: int) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
        )
    return handlers


def setup_logging(
    name: str = "geyser",
    log_file: Optional[str] = None,
    level: str = LOG_LEVEL,
    environment: str = "production",
    enable_console: bool = True,
    max_bytes: int = 50 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Route `name` and its child loggers to JSON handlers.

    Args:
        name: Logger to configure; the default covers every geyser module
        log_file: Rotating JSON log file (optional)
        level: Logging level name, GEYSER_LOG_LEVEL by default
        environment: Deployment label added to each record
        enable_console: Also log to stdout
        max_bytes: Size at which the log file rotates
        backup_count: Rotated files to keep

    Returns:
        The configured logger
    """
    numeric_level = getattr(logging, level.upper())
    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)
    logger.handlers = []

    formatter = GeyserJsonFormatter(environment=environment, service_name=name.split(".")[0])
    for handler in _build_handlers(log_file, enable_console, max_bytes, backup_count):
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug(
        "Geyser logging configured",
        extra={"event": "logging.configured", "log_file": log_file, "environment": environment},
    )
    return logger
