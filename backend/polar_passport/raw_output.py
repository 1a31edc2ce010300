from __future__ import annotations

from dataclasses import dataclass, field
import json
import math
import re

ANSWER_FIELDS: tuple[str, ...] = ("answer", "value", "text", "content", "description", "response")

_CODE_FENCE_PATTERN = re.compile(r"```[A-Za-z0-9_-]*")
_BULLET_PATTERN = re.compile(r"^[-*•–]+\s*")
_LIST_SEPARATOR_PATTERN = re.compile(r"[\n;]+")
# Characters python-docx refuses to write into a document.
_CONTROL_CHARACTER_PATTERN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_MAX_SANITIZE_DEPTH = 8
_MAX_DECODE_PASSES = 3


@dataclass(frozen=True)
class RawAbsent:
    pass


@dataclass(frozen=True)
class RawScalar:
    value: str | int | float | bool


@dataclass(frozen=True)
class RawSequence:
    items: tuple[object, ...]


@dataclass(frozen=True)
class RawMapping:
    entries: dict[str, object] = field(default_factory=dict)

    def get(self, key: str) -> "RawValue":
        if key not in self.entries:
            return ABSENT
        return classify(self.entries[key])

    def has_any(self, *keys: str) -> bool:
        return any(key in self.entries for key in keys)


RawValue = RawAbsent | RawScalar | RawSequence | RawMapping

ABSENT = RawAbsent()


def classify(value: object) -> RawValue:
    if value is None:
        return ABSENT
    if isinstance(value, (RawAbsent, RawScalar, RawSequence, RawMapping)):
        return value
    if isinstance(value, dict):
        return RawMapping({str(key): item for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return RawSequence(tuple(value))
    if isinstance(value, (str, int, float, bool)):
        return RawScalar(value)
    return RawScalar(str(value))


def strip_control_characters(text: str) -> str:
    return _CONTROL_CHARACTER_PATTERN.sub(" ", text)


def sanitize_text(value: object, _depth: int = 0) -> str:
    """Collapse an arbitrary JSON-ish value into a single clean line of text.

    Returns an empty string when nothing usable is found. Objects are searched
    for the first non-empty answer-like field in ANSWER_FIELDS order.
    """
    if _depth > _MAX_SANITIZE_DEPTH or value is None:
        return ""
    if isinstance(value, RawAbsent):
        return ""
    if isinstance(value, RawScalar):
        return sanitize_text(value.value, _depth)
    if isinstance(value, RawSequence):
        return sanitize_text(list(value.items), _depth)
    if isinstance(value, RawMapping):
        return sanitize_text(value.entries, _depth)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, str):
        return " ".join(strip_control_characters(value).split())
    if isinstance(value, (list, tuple)):
        parts = [sanitize_text(item, _depth + 1) for item in value]
        return " ".join(part for part in parts if part)
    if isinstance(value, dict):
        for key in ANSWER_FIELDS:
            if key not in value:
                continue
            text = sanitize_text(value[key], _depth + 1)
            if text:
                return text
        return ""
    return " ".join(strip_control_characters(str(value)).split())


def split_text_list(text: str) -> list[str]:
    items: list[str] = []
    for part in _LIST_SEPARATOR_PATTERN.split(text):
        cleaned = sanitize_text(_BULLET_PATTERN.sub("", part.strip()))
        if cleaned:
            items.append(cleaned)
    return items


def _strip_code_fences(text: str) -> str:
    return _CODE_FENCE_PATTERN.sub("", text)


def decode_json_text(text: str) -> object | None:
    candidate = _strip_code_fences(text).strip()
    if not candidate:
        return None
    try:
        return json.loads(candidate)
    except (ValueError, RecursionError):
        pass

    start = candidate.find("{")
    end = candidate.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        return json.loads(candidate[start : end + 1])
    except (ValueError, RecursionError):
        return None


def _join_text_parts(items: tuple[object, ...]) -> str:
    parts: list[str] = []
    for item in items:
        if isinstance(item, str):
            parts.append(item)
        elif isinstance(item, dict) and isinstance(item.get("text"), str):
            parts.append(item["text"])
    return "\n".join(parts)


def _unwrap_draft(mapping: RawMapping, depth: int) -> RawMapping:
    if mapping.has_any("header", "blocks") or "draft" not in mapping.entries or depth >= _MAX_DECODE_PASSES:
        return mapping
    inner = parse_raw_output(mapping.entries["draft"], _depth=depth + 1)
    if isinstance(inner, RawMapping):
        return inner
    return mapping


def parse_raw_output(raw: object, _depth: int = 0) -> RawMapping | RawAbsent:
    """Turn untrusted model output into a mapping, or ABSENT when nothing parses."""
    value = classify(raw)
    for _ in range(_MAX_DECODE_PASSES):
        if isinstance(value, RawMapping):
            return _unwrap_draft(value, _depth)
        if isinstance(value, RawSequence):
            text = _join_text_parts(value.items)
        elif isinstance(value, RawScalar) and isinstance(value.value, str):
            text = value.value
        else:
            return ABSENT

        decoded = decode_json_text(text)
        if decoded is None:
            return ABSENT
        value = classify(decoded)
    return ABSENT
