"""Structured logging setup.

JSON lines in production, a readable single-line format for local work.
Called once from the app lifespan and from the CLI scripts.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from .config import settings

# Extra record attributes surfaced in JSON output when present
_EXTRA_FIELDS = (
    "category_id",
    "job_id",
    "topic_area",
    "user_id",
    "attempt",
    "chunk_count",
    "status_code",
)


class JSONFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str | None = None, fmt: str | None = None, log_file: str | None = None) -> None:
    """Configure the root logger.

    Args:
        level: Log level name, defaults to ``settings.logging.level``
        fmt: ``json`` or ``text``, defaults to ``settings.logging.format``
        log_file: Optional file path; logs go to stderr as well
    """
    level = level or settings.logging.level
    fmt = fmt or settings.logging.format
    log_file = log_file or settings.logging.file

    if fmt == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Quiet chatty client libraries
    for name in ("httpx", "openai", "pdfminer"):
        logging.getLogger(name).setLevel(logging.WARNING)
