"""JSON logging for the webhook API and workers.

Every record carries the GitHub delivery id and installation id of the event
being handled (bound with ``event_context``) plus the active trace ids, so a
single delivery can be followed from the API into the Celery worker.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

from opentelemetry import trace
from pythonjsonlogger import jsonlogger

_delivery_id: ContextVar[Optional[str]] = ContextVar("delivery_id", default=None)
_installation_id: ContextVar[Optional[int]] = ContextVar("installation_id", default=None)

EVENT_FIELDS = ("delivery_id", "installation_id")


@contextmanager
def event_context(
    delivery_id: Optional[str] = None, installation_id: Optional[int] = None
) -> Iterator[None]:
    """Bind the delivery being processed to every log record in this context."""
    tokens = []
    if delivery_id is not None:
        tokens.append((_delivery_id, _delivery_id.set(delivery_id)))
    if installation_id is not None:
        tokens.append((_installation_id, _installation_id.set(installation_id)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


class EventContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.delivery_id = _delivery_id.get()
        record.installation_id = _installation_id.get()
        return True


class EventJSONFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding trace/span ids and dropping unbound event fields."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        for name in EVENT_FIELDS:
            if log_record.get(name) is None:
                log_record.pop(name, None)

        ctx = trace.get_current_span().get_span_context()
        if ctx.is_valid:
            log_record["trace_id"] = trace.format_trace_id(ctx.trace_id)
            log_record["span_id"] = trace.format_span_id(ctx.span_id)

        log_record["level"] = record.levelname


def setup_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(EventContextFilter())
    handler.setFormatter(
        EventJSONFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    # Request lines come from RequestLoggingMiddleware instead
    logging.getLogger("uvicorn.access").disabled = True
    for noisy in ("urllib3", "httpx", "google", "openai"):
        logging.getLogger(noisy).setLevel("WARNING")
