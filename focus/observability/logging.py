"""
Log formatting for the focus daemon, CLI, and API.

Every line carries the id of the reconciliation pass it was emitted under,
when there is one. JSON goes to files and non-terminal stderr; people at a
terminal get one plain line per record.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .context import get_pass_id

# Attributes every LogRecord has; anything else came in through extra={...}
_STANDARD_FIELDS = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {
    "message",
    "asctime",
}


def _extra_fields(record: logging.LogRecord) -> dict:
    return {k: v for k, v in record.__dict__.items() if k not in _STANDARD_FIELDS}


class JSONFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message, pass_id, extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        pass_id = get_pass_id()
        if pass_id:
            entry["pass_id"] = pass_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(_extra_fields(record))
        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        pass_id = get_pass_id()
        prefix = f"[{pass_id}] " if pass_id else ""
        line = f"{stamp} [{record.levelname}] {record.name}: {prefix}{record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(level: str = "INFO", json_format: bool | None = None) -> None:
    """
    Replace the root handlers with a single stderr handler.

    json_format=None picks JSON unless stderr is a terminal.
    """
    if json_format is None:
        json_format = not sys.stderr.isatty()

    root = logging.getLogger()
    root.setLevel(level.upper())
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_format else HumanFormatter())
    root.addHandler(handler)


def configure_log_file(log_file: str | None, max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5) -> None:
    """Also write JSON lines to a rotating file. No-op without a path."""
    if not log_file:
        return

    path = Path(log_file).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count)
    except OSError as e:
        logging.getLogger(__name__).error(f"Could not open log file {path}: {e}")
        return

    handler.setFormatter(JSONFormatter())
    logging.getLogger().addHandler(handler)
