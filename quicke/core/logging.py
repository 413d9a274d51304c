"""Centralized logging configuration.

Dispatcher and provider log calls attach per-request context through
``extra=`` (model id, attempt number, provider, caller metadata); the JSON
formatter lifts those attributes into top-level fields.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from quicke.core.config import settings

# LogRecord attributes copied into JSON output when present
CONTEXT_FIELDS = ("model_id", "attempt", "provider", "job_metadata")

# Libraries that log every HTTP exchange or loop event at INFO/DEBUG
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with request context fields when set."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)
        if record.exc_info and record.exc_info[1]:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False, default=str)


class ContextFormatter(logging.Formatter):
    """Plain-text formatter that appends ``[model_id]`` when a record carries one."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        model_id = getattr(record, "model_id", None)
        if model_id:
            return f"{line} [{model_id}]"
        return line


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Install a single stdout handler on the root logger.

    Arguments default to LOG_LEVEL / LOG_JSON from settings. Safe to call
    more than once; previous handlers are replaced.
    """
    level_name = (level or settings.log_level).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)
    use_json = settings.log_json if json_output is None else json_output

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    if use_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            ContextFormatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
