"""
Structured logging for engagement sync.

Every record carries the correlation id of the mutation that produced it plus
the story/comment it concerns. Production renders one JSON object per line;
anything else renders a compact key=value line.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional
from uuid import uuid4

from storysync.core.config import settings

LOGGER_NAME = "storysync"

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Record attributes rendered by both formatters, in output order.
SYNC_FIELDS = ("request_id", "story_id", "comment_id", "event_type", "error_code")

# Server messages can echo comment bodies
_MAX_EXTRA_CHARS = 300


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    rid = request_id_ctx_var.get()
    return rid if rid is not None else default


@contextmanager
def bind_request_id(request_id: Optional[str] = None) -> Iterator[str]:
    """Bind one correlation id for a mutation: its logs and its HTTP call share it."""
    rid = request_id or str(uuid4())
    token = request_id_ctx_var.set(rid)
    try:
        yield rid
    finally:
        request_id_ctx_var.reset(token)


class SyncContextFilter(logging.Filter):
    """Give every record the sync fields, taking request_id from context when unset."""

    def filter(self, record: logging.LogRecord) -> bool:
        for field in SYNC_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, None)
        if record.request_id is None:
            record.request_id = get_request_id()
        return True


def _sync_fields(record: logging.LogRecord) -> Dict[str, object]:
    return {f: getattr(record, f) for f in SYNC_FIELDS if getattr(record, f, None) is not None}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "event": record.getMessage(),
        }
        payload.update(_sync_fields(record))
        return json.dumps(payload, default=str)


class KeyValueFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        pairs = " ".join(f"{k}={v}" for k, v in _sync_fields(record).items())
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        return f"{ts} {record.levelname:<7} {record.getMessage()} {pairs}".rstrip()


def configure_logging(env: str = "development", level: str = "INFO") -> None:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else KeyValueFormatter())
    handler.addFilter(SyncContextFilter())
    logger.handlers = [handler]

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _clip(value: object) -> str:
    text = str(value)
    if len(text) > _MAX_EXTRA_CHARS:
        return text[:_MAX_EXTRA_CHARS] + "..."
    return text


def log_event(
    level: str,
    event: str,
    *,
    request_id: Optional[str] = None,
    story_id: Optional[str] = None,
    comment_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
) -> None:
    """Log a sync event (e.g. "engagement.rolled_back") with its story/comment context."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        configure_logging(settings.ENV, settings.LOG_LEVEL)

    fields: Dict[str, object] = {
        "request_id": request_id or get_request_id(),
        "story_id": story_id,
        "comment_id": comment_id,
        "event_type": event_type,
        "error_code": error_code,
    }
    for key, value in (extra or {}).items():
        fields[key] = _clip(value)
    getattr(logger, level, logger.info)(event, extra=fields)
