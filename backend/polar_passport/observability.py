"""Structured JSON logging with request correlation and secret redaction.

Every log line is one JSON object. Extra fields passed through
``logger.info(..., extra={...})`` are redacted before they are written, so
bot tokens, API keys, chat ids and contact details never reach the log sink.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
import json
import logging
import re
from typing import Any, Iterator, Mapping
from uuid import uuid4

NO_REQUEST_ID = "-"
REDACTED = "[REDACTED]"

_request_id: ContextVar[str] = ContextVar("polar_passport_request_id", default=NO_REQUEST_ID)
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")
_handler: logging.Handler | None = None

SENSITIVE_KEY_NAMES = frozenset(
    {
        "authorization",
        "cookie",
        "chat_id",
        "telegram_default_chat_id",
        "email",
        "phone",
    }
)
SENSITIVE_KEY_FRAGMENTS = ("token", "api_key", "apikey", "secret", "password", "access_key")

# Ordered: the bot token pattern must run before the phone pattern eats its digits.
REDACTION_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bbot\d{5,}:[A-Za-z0-9_-]{20,}"), "bot[REDACTED]"),
    (re.compile(r"(?i)\bBearer\s+[A-Za-z0-9\-._~+/]+=*"), "Bearer [REDACTED]"),
    (re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b"), "[REDACTED_AWS_ACCESS_KEY]"),
    (re.compile(r"\bsk-[A-Za-z0-9_-]{16,}"), "[REDACTED_API_KEY]"),
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[REDACTED_EMAIL]"),
    (re.compile(r"(?<!\w)(?:\+7|8)[\s(-]*\d{3}[\s)-]*\d{3}[\s-]*\d{2}[\s-]*\d{2}\b"), "[REDACTED_PHONE]"),
)


def normalize_request_id(candidate: str | None) -> str:
    """Keep a caller-supplied id when it is short and header-safe, otherwise mint one."""
    trimmed = (candidate or "").strip()
    if _REQUEST_ID_PATTERN.fullmatch(trimmed):
        return trimmed
    return str(uuid4())


@contextmanager
def request_context(request_id: str) -> Iterator[str]:
    token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_id.reset(token)


def current_request_id() -> str:
    return _request_id.get()


def is_sensitive_key(key: str) -> bool:
    normalized = key.strip().lower().replace("-", "_")
    return normalized in SENSITIVE_KEY_NAMES or any(fragment in normalized for fragment in SENSITIVE_KEY_FRAGMENTS)


def redact_text(value: str, *, max_length: int = 240) -> str:
    for pattern, replacement in REDACTION_RULES:
        value = pattern.sub(replacement, value)
    if len(value) > max_length:
        return f"{value[:max_length]}...[truncated]"
    return value


def sanitize_for_logging(value: Any, *, max_string_length: int = 240) -> Any:
    if isinstance(value, Mapping):
        return {
            str(key): REDACTED
            if is_sensitive_key(str(key))
            else sanitize_for_logging(item, max_string_length=max_string_length)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [sanitize_for_logging(item, max_string_length=max_string_length) for item in value]
    if isinstance(value, str):
        return redact_text(value, max_length=max_string_length)
    return value


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = current_request_id()
        return True


class JsonFormatter(logging.Formatter):
    _RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "request_id"}

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None) or current_request_id(),
        }
        payload.update(sanitize_for_logging(self._extra_fields(record)))
        if record.exc_info:
            payload["exception"] = redact_text(self.formatException(record.exc_info), max_length=4000)
        return json.dumps(payload, ensure_ascii=False, default=str)

    def _extra_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        return {key: value for key, value in vars(record).items() if key not in self._RESERVED}


def configure_logging(level_name: str) -> logging.Handler:
    """Install the JSON handler on the root logger once; later calls only adjust the level."""
    global _handler
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name.upper(), logging.INFO))

    if _handler is None:
        _handler = logging.StreamHandler()
        _handler.setFormatter(JsonFormatter())
        _handler.addFilter(RequestIdFilter())
    if _handler not in root.handlers:
        root.addHandler(_handler)
    return _handler
