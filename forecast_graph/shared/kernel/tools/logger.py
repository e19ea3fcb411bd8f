from __future__ import annotations

import contextvars
import json
import logging
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import TypedDict

from forecast_graph.config.logging_config import (
    APP_ENV,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_REDACT_KEYS,
    LOG_SERVICE,
)

_CONFIGURED = False

_CONTEXT_KEYS = (
    "request_id",
    "forecast_id",
    "metric_id",
    "node_id",
)

_RESERVED_EXTRA_KEYS = frozenset(
    {"service", "environment", "event", "error_code", "fields"}
)

_BASE_RECORD_KEYS = frozenset(logging.makeLogRecord({}).__dict__.keys()) | {
    "message",
    "asctime",
}


class LogContext(TypedDict, total=False):
    request_id: str
    forecast_id: str
    metric_id: str
    node_id: str


_LOG_CONTEXT: contextvars.ContextVar[LogContext | None] = contextvars.ContextVar(
    "forecast_log_context",
    default=None,
)


def _normalize_key_name(key: str) -> str:
    return key.strip().lower().replace("-", "_")


_REDACT_KEYS = frozenset(_normalize_key_name(key) for key in LOG_REDACT_KEYS)


def _is_sensitive_key(key: str | None) -> bool:
    if key is None:
        return False
    return _normalize_key_name(key) in _REDACT_KEYS


def sanitize_for_logging(value: object, *, key: str | None = None) -> object:
    if _is_sensitive_key(key):
        return "[REDACTED]"
    if isinstance(value, Mapping):
        return {
            str(raw_key): sanitize_for_logging(raw_value, key=str(raw_key))
            for raw_key, raw_value in value.items()
        }
    if isinstance(value, list | tuple):
        return [sanitize_for_logging(item) for item in value]
    return value


def _merge_context(base: LogContext, fields: Mapping[str, str | None]) -> LogContext:
    merged: LogContext = dict(base)  # type: ignore[assignment]
    for key, value in fields.items():
        if key not in _CONTEXT_KEYS or value is None:
            continue
        text = value.strip()
        if text:
            merged[key] = text  # type: ignore[literal-required]
    return merged


def get_log_context() -> LogContext:
    current = _LOG_CONTEXT.get()
    return dict(current) if current else {}  # type: ignore[return-value]


def bind_log_context(**fields: str | None) -> None:
    _LOG_CONTEXT.set(_merge_context(get_log_context(), fields))


def clear_log_context() -> None:
    _LOG_CONTEXT.set({})


@contextmanager
def log_context(**fields: str | None) -> Iterator[None]:
    """Bind request-scoped keys for the duration of the block."""
    token = _LOG_CONTEXT.set(_merge_context(get_log_context(), fields))
    try:
        yield
    finally:
        _LOG_CONTEXT.reset(token)


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, object]:
    fields: dict[str, object] = {}
    raw_fields = getattr(record, "fields", None)
    if isinstance(raw_fields, Mapping):
        fields.update({str(key): value for key, value in raw_fields.items()})
    elif raw_fields is not None:
        fields["fields"] = raw_fields

    for key, value in record.__dict__.items():
        if key in _BASE_RECORD_KEYS or key in _CONTEXT_KEYS:
            continue
        if key in _RESERVED_EXTRA_KEYS:
            continue
        fields[key] = value
    return fields


def _format_timestamp(created: float) -> str:
    return datetime.fromtimestamp(created, tz=timezone.utc).isoformat()


def _record_payload(record: logging.LogRecord) -> dict[str, object]:
    payload: dict[str, object] = {
        "timestamp": _format_timestamp(record.created),
        "level": record.levelname,
        "logger": record.name,
        "service": getattr(record, "service", LOG_SERVICE),
        "environment": getattr(record, "environment", APP_ENV),
        "message": record.getMessage(),
    }
    for key in ("event", "error_code", *_CONTEXT_KEYS):
        value = getattr(record, key, None)
        if isinstance(value, str) and value:
            payload[key] = value
    extra_fields = _extract_extra_fields(record)
    if extra_fields:
        payload["fields"] = sanitize_for_logging(extra_fields)
    return payload


def _dumps(value: object) -> str:
    return json.dumps(value, ensure_ascii=True, sort_keys=True, default=str)


class _JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = _record_payload(record)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return _dumps(payload)


class _TextLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = _record_payload(record)
        parts = [
            str(payload.pop("timestamp")),
            str(payload.pop("level")),
            str(payload.pop("logger")),
            str(payload.pop("message")),
        ]
        payload.pop("service", None)
        payload.pop("environment", None)
        fields = payload.pop("fields", None)
        parts.extend(f"{key}={value}" for key, value in payload.items())
        if fields:
            parts.append(f"fields={_dumps(fields)}")
        if record.exc_info:
            parts.append(f"exception={self.formatException(record.exc_info)}")
        return " ".join(parts)


class _LogContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        context = get_log_context()
        for key in _CONTEXT_KEYS:
            setattr(record, key, context.get(key))
        record.service = LOG_SERVICE
        record.environment = APP_ENV
        return True


def _resolve_log_level() -> int:
    resolved = getattr(logging, LOG_LEVEL.upper(), logging.INFO)
    return resolved if isinstance(resolved, int) else logging.INFO


def _resolve_formatter() -> logging.Formatter:
    if LOG_FORMAT.strip().lower() == "text":
        return _TextLogFormatter()
    return _JsonLogFormatter()


def configure_logging() -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    root = logging.getLogger()
    root.setLevel(_resolve_log_level())
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(_resolve_formatter())
        handler.addFilter(_LogContextFilter())
        root.addHandler(handler)
    else:
        for existing in root.handlers:
            existing.addFilter(_LogContextFilter())
    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


def log_event(
    logger: logging.Logger,
    *,
    event: str,
    message: str,
    level: int = logging.INFO,
    error_code: str | None = None,
    fields: Mapping[str, object] | None = None,
) -> None:
    if not logger.isEnabledFor(level):
        return
    extra: dict[str, object] = {"event": event}
    if error_code is not None:
        extra["error_code"] = error_code
    if fields is not None:
        extra["fields"] = sanitize_for_logging(fields)
    logger.log(level, message, extra=extra)
