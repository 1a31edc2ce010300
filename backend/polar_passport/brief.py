from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from polar_passport.raw_output import strip_control_characters

_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "pain": ("pain", "painDraft", "pain_draft"),
    "innovation": ("innovation", "uniqueness", "unique"),
}


def _clean_optional(value: object) -> str | None:
    if value is None:
        return None
    text = " ".join(strip_control_characters(str(value)).split()).strip()
    return text or None


def _coerce_temperature(value: object) -> float | None:
    """Clamp to [0, 1]; anything unusable means "use the configured default"."""
    if value is None:
        return None
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(parsed):
        return None
    return max(0.0, min(1.0, parsed))


def _coerce_audience(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items: list[object] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = list(value)
    else:
        items = [value]
    cleaned: list[str] = []
    for item in items:
        text = _clean_optional(item)
        if text:
            cleaned.append(text)
    return cleaned


class PassportBrief(BaseModel):
    """User inputs for one passport generation.

    Blank values are tolerated here; the HTTP contract enforces a non-empty
    category before anything reaches the model or the normalizer.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    category: str = ""
    name: str | None = None
    audience: list[str] = Field(default_factory=list)
    pain: str | None = None
    innovation: str | None = None
    comment: str | None = None
    temperature: float | None = None

    @model_validator(mode="before")
    @classmethod
    def coerce_inputs(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        values = dict(data)

        for field_name, aliases in _FIELD_ALIASES.items():
            for alias in aliases:
                candidate = _clean_optional(values.get(alias))
                if candidate:
                    values[field_name] = candidate
                    break
            else:
                values[field_name] = None

        if values["pain"] is None and isinstance(values.get("pains"), (list, tuple)):
            joined = "; ".join(text for text in (_clean_optional(item) for item in values["pains"]) if text)
            values["pain"] = joined or None

        values["category"] = _clean_optional(values.get("category")) or ""
        values["name"] = _clean_optional(values.get("name"))
        values["comment"] = _clean_optional(values.get("comment"))
        values["audience"] = _coerce_audience(values.get("audience"))
        values["temperature"] = _coerce_temperature(values.get("temperature"))
        return values

    @property
    def audience_text(self) -> str:
        return ", ".join(self.audience)

    def prompt_payload(self) -> dict[str, object]:
        return {
            "category": self.category,
            "name": self.name,
            "audience": self.audience,
            "pain": self.pain,
            "innovation": self.innovation,
            "comment": self.comment,
        }
