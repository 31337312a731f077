"""
JSON logging for the vault and the CLI.

Vault modules log through plain `logging.getLogger(__name__)` loggers with an
`extra={"event": ...}` payload. `setup_logging` attaches python-json-logger
handlers to the `timelock` root so each record becomes one JSON object with
the event fields at top level:

    {"timestamp": "...", "level": "info", "name": "timelock.core.contracts.timelock_vault",
     "message": "Timelock deposit", "event": "timelock.deposit", "amount": 42, ...}
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from pythonjsonlogger import jsonlogger

LOG_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"
ROTATE_BYTES = 5 * 1024 * 1024
ROTATE_BACKUPS = 3


class VaultJsonFormatter(jsonlogger.JsonFormatter):
    """Adds service, environment and call-site fields to every record."""

    def __init__(self, service: str = "timelock", environment: str = "production"):
        super().__init__(fmt=LOG_FORMAT)
        self.service = service
        self.environment = environment

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = log_record.get("timestamp") or datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record["level"] = log_record.get("level") or record.levelname.lower()
        log_record["service"] = self.service
        log_record["environment"] = self.environment
        log_record["source"] = {
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }


def _build_handlers(log_file: Optional[str], stream: Optional[TextIO]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if not log_file:
        return handlers

    path = Path(log_file)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                path, maxBytes=ROTATE_BYTES, backupCount=ROTATE_BACKUPS, encoding="utf-8"
            )
        )
    except OSError as exc:
        # console logging still works; report the file problem through it
        logging.getLogger(__name__).warning(
            "Log file %s unavailable: %s", log_file, exc, extra={"event": "logging.file_unavailable"}
        )
    return handlers


def setup_logging(
    name: str = "timelock",
    log_file: Optional[str] = None,
    level: str = "INFO",
    environment: str = "production",
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Route `name` and its child loggers to JSON handlers.

    Calling it again replaces the previous handlers, so the CLI can run it
    once per invocation.

    Args:
        name: Root logger to configure
        log_file: Optional path of a rotating JSON log file
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        environment: Label stamped on every record
        stream: Console stream (stderr when omitted)
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    root = logging.getLogger(name)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = VaultJsonFormatter(service=name.split(".")[0], environment=environment)
    for handler in _build_handlers(log_file, stream):
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    root.setLevel(numeric_level)
    root.propagate = False
    return root
