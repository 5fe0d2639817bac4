from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

# Attributes every LogRecord carries; anything else on a record came in via `extra`.
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}

# Paging extras shown by the plain formatter, in display order.
_PLAIN_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("page_number", "page"),
    ("item_count", "item_count"),
    ("has_next_page", "has_next_page"),
    ("num_results", "num_results"),
    ("pages", "pages"),
    ("items", "items"),
    ("duration_ms", "duration_ms"),
    ("error", "error"),
)

_QUIET_LOGGERS = ("urllib3", "requests", "oci")


@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    json_logs: bool = False


def _utc_timestamp(record: logging.LogRecord, timespec: str) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec=timespec) + "Z"


def _record_extras(record: logging.LogRecord) -> Iterator[Tuple[str, Any]]:
    for key, value in vars(record).items():
        if key not in _STANDARD_ATTRS and value is not None:
            yield key, value


def _render_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class JsonFormatter(logging.Formatter):
    """One JSON object per record; extras that cannot be encoded are left out."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": _utc_timestamp(record, "milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        for key, value in _record_extras(record):
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True)


class PlainFormatter(logging.Formatter):
    """
    `timestamp LEVEL name: [step:phase] message (page=.. item_count=.. duration_ms=..)`

    Only the extras listed in _PLAIN_FIELDS are rendered; JSON logs carry the rest.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        message = record.getMessage()
        step = getattr(record, "step", None)
        phase = getattr(record, "phase", None)
        if step or phase:
            message = f"[{step or 'unknown'}:{phase or 'unknown'}] {message}"

        fields = [
            f"{label}={_render_value(getattr(record, attr))}"
            for attr, label in _PLAIN_FIELDS
            if getattr(record, attr, None) is not None
        ]
        if fields:
            message = f"{message} ({' '.join(fields)})"

        line = f"{_utc_timestamp(record, 'seconds')} {record.levelname} {record.name}: {message}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _level_from_str(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(config: Optional[LogConfig] = None) -> None:
    """
    Configure the root logger once; later calls are no-ops.

    Records go to stderr because stdout carries JSONL items. Level and format
    come from LogConfig, which load_run_config fills from file, env and flags.
    """
    if getattr(setup_logging, "_configured", False):
        return
    config = config or LogConfig()
    level = _level_from_str(config.level)

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(JsonFormatter() if config.json_logs else PlainFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    setattr(setup_logging, "_configured", True)


def add_run_log_file(log_path: Path) -> None:
    """
    Mirror root records into log_path using the console's formatter.
    Adding the same path twice is a no-op.
    """
    root = logging.getLogger()
    target = os.path.abspath(log_path)
    if any(isinstance(h, logging.FileHandler) and h.baseFilename == target for h in root.handlers):
        return

    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setLevel(root.level)
    console_formatter = root.handlers[0].formatter if root.handlers else None
    handler.setFormatter(console_formatter or PlainFormatter())
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
