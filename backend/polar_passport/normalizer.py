"""Merge untrusted model output over a deterministic fallback passport.

The normalizer is total: whatever the model returned (valid JSON, JSON in
markdown fences, double-encoded strings, partial objects or garbage), the
result is a complete ``NormalizedDraft`` whose shape matches the passport
schema. Model values win wherever they are usable; every other slot keeps the
fallback text built from the brief.
"""

from __future__ import annotations

from typing import Iterator

from polar_passport.brief import PassportBrief
from polar_passport.draft import AnswerRow, DraftHeader, NormalizedDraft
from polar_passport.fallback import build_fallback_draft
from polar_passport.raw_output import (
    ABSENT,
    RawAbsent,
    RawMapping,
    RawScalar,
    RawSequence,
    RawValue,
    classify,
    parse_raw_output,
    sanitize_text,
    split_text_list,
)
from polar_passport.schema import BLOCKS, HEADER_FIELDS, BlockDefinition, QuestionDefinition

HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "category": ("category",),
    "name": ("name", "title"),
    "audience": ("audience",),
    "pain": ("pain", "pains"),
    "innovation": ("innovation", "unique", "uniqueness"),
}
HEADER_LIST_SEPARATORS: dict[str, str] = {"audience": ", ", "pain": "; "}

CODE_FIELDS: tuple[str, ...] = ("code", "no", "number", "num", "id")
ROW_CONTAINER_KEYS: tuple[str, ...] = ("rows", "items", "answers", "questions")
BLOCK_NAME_FIELDS: tuple[str, ...] = ("key", "block", "name")
TECH_NOTES_KEYS: tuple[str, ...] = ("techNotes", "tech_notes")
STAR_NOTES_KEYS: tuple[str, ...] = ("starNotes", "star_notes")
CONCLUSION_KEYS: tuple[str, ...] = ("conclusion", "summary")

MIN_FUZZY_KEY_CHARS = 4


def _empty_report() -> dict[str, object]:
    return {
        "parsed": False,
        "header_from_model": 0,
        "rows_from_model": 0,
        "rows_fallback": 0,
        "notes_from_model": 0,
        "conclusion_from_model": False,
    }


def _coerce_brief(brief: object) -> PassportBrief:
    if isinstance(brief, PassportBrief):
        return brief
    if isinstance(brief, dict):
        return PassportBrief.model_validate(brief)
    return PassportBrief()


def _header_text(field_name: str, value: RawValue) -> str:
    separator = HEADER_LIST_SEPARATORS.get(field_name)
    if separator and isinstance(value, RawSequence):
        parts = [sanitize_text(item) for item in value.items]
        return separator.join(part for part in parts if part)
    return sanitize_text(value)


def _merge_header(parsed: RawMapping, fallback: DraftHeader, report: dict[str, object]) -> DraftHeader:
    nested = parsed.get("header")
    sources = [nested, parsed] if isinstance(nested, RawMapping) else [parsed]

    values: dict[str, str] = {}
    for field_name in HEADER_FIELDS:
        chosen = ""
        for source in sources:
            for alias in HEADER_ALIASES[field_name]:
                chosen = _header_text(field_name, source.get(alias))
                if chosen:
                    break
            if chosen:
                break
        if chosen:
            report["header_from_model"] = int(report["header_from_model"]) + 1
            values[field_name] = chosen
        else:
            values[field_name] = getattr(fallback, field_name)
    return DraftHeader(**values)


def _block_from_list(blocks: RawSequence, key: str) -> RawValue:
    for entry in blocks.items:
        if not isinstance(entry, dict):
            continue
        names = {sanitize_text(entry.get(field_name)).lower() for field_name in BLOCK_NAME_FIELDS}
        if key not in names:
            continue
        for container in ROW_CONTAINER_KEYS:
            if container in entry:
                return classify(entry[container])
    return ABSENT


def _locate_block(parsed: RawMapping, key: str) -> RawValue:
    blocks = parsed.get("blocks")
    if isinstance(blocks, RawMapping):
        value = blocks.get(key)
        if not isinstance(value, RawAbsent):
            return value
    elif isinstance(blocks, RawSequence):
        value = _block_from_list(blocks, key)
        if not isinstance(value, RawAbsent):
            return value
    return parsed.get(key)


def _unwrap_rows(value: RawValue) -> RawValue:
    if isinstance(value, RawMapping):
        for container in ROW_CONTAINER_KEYS:
            inner = value.get(container)
            if isinstance(inner, RawSequence):
                return inner
    if isinstance(value, RawScalar) and isinstance(value.value, str):
        lines = [line for line in value.value.splitlines() if line.strip()]
        return RawSequence(tuple(lines))
    return value


def _entry_code(entry: object) -> str:
    if not isinstance(entry, dict):
        return ""
    for field_name in CODE_FIELDS:
        if field_name not in entry:
            continue
        code = sanitize_text(entry[field_name]).rstrip(".")
        if code:
            return code
    return ""


def _code_matches(code: str, question: QuestionDefinition) -> bool:
    return code in (question.code, question.item_number)


def _sequence_candidates(
    items: tuple[object, ...],
    block: BlockDefinition,
    index: int,
) -> Iterator[object]:
    question = block.questions[index]
    for entry in items:
        code = _entry_code(entry)
        if code and _code_matches(code, question):
            yield entry

    if index >= len(items):
        return
    positional = items[index]
    code = _entry_code(positional)
    # A positional entry that names another row of this block belongs to that row.
    claims_other_row = bool(code) and any(
        _code_matches(code, other) for other in block.questions if other.code != question.code
    )
    if not claims_other_row:
        yield positional


def _mapping_candidates(entries: dict[str, object], question: QuestionDefinition) -> Iterator[object]:
    for exact_key in (question.code, question.text, question.item_number):
        if exact_key in entries:
            yield entries[exact_key]

    code = question.code.lower()
    text = question.text.lower()
    for key, value in entries.items():
        normalized_key = " ".join(key.lower().split())
        if not normalized_key:
            continue
        if code in normalized_key or text in normalized_key:
            yield value
        elif len(normalized_key) >= MIN_FUZZY_KEY_CHARS and normalized_key in text:
            yield value


def _first_usable(candidates: Iterator[object]) -> str:
    for candidate in candidates:
        text = sanitize_text(candidate)
        if text:
            return text
    return ""


def _merge_block(
    block: BlockDefinition,
    value: RawValue,
    fallback_rows: list[AnswerRow],
    report: dict[str, object],
) -> list[AnswerRow]:
    value = _unwrap_rows(value)
    rows: list[AnswerRow] = []
    for index, question in enumerate(block.questions):
        if isinstance(value, RawSequence):
            answer = _first_usable(_sequence_candidates(value.items, block, index))
        elif isinstance(value, RawMapping):
            answer = _first_usable(_mapping_candidates(value.entries, question))
        else:
            answer = ""

        if answer:
            report["rows_from_model"] = int(report["rows_from_model"]) + 1
        else:
            report["rows_fallback"] = int(report["rows_fallback"]) + 1
            answer = fallback_rows[index].answer
        rows.append(AnswerRow(code=question.code, question=question.text, answer=answer))
    return rows


def _text_items(value: RawValue) -> list[str]:
    if isinstance(value, RawSequence):
        items = [sanitize_text(item) for item in value.items]
        return [item for item in items if item]
    if isinstance(value, RawScalar):
        if isinstance(value.value, str):
            return split_text_list(value.value)
        text = sanitize_text(value)
        return [text] if text else []
    return []


def _merge_notes(
    parsed: RawMapping,
    keys: tuple[str, ...],
    fallback: list[str],
    report: dict[str, object],
) -> list[str]:
    for key in keys:
        items = _text_items(parsed.get(key))
        if items:
            report["notes_from_model"] = int(report["notes_from_model"]) + 1
            return items
    return list(fallback)


def _merge_conclusion(parsed: RawMapping, fallback: str, report: dict[str, object]) -> str:
    for key in CONCLUSION_KEYS:
        text = sanitize_text(parsed.get(key))
        if text:
            report["conclusion_from_model"] = True
            return text
    return fallback


def normalize_with_report(raw: object, brief: object) -> tuple[NormalizedDraft, dict[str, object]]:
    """Normalize ``raw`` against the schema and report where each part came from.

    ``raw`` may be a string, an already-parsed JSON value, or ``None``. The
    report counts header fields, rows and notes taken from the model so callers
    can log how much of the draft was synthesized.
    """
    passport_brief = _coerce_brief(brief)
    fallback = build_fallback_draft(passport_brief)
    report = _empty_report()

    parsed = parse_raw_output(raw)
    if not isinstance(parsed, RawMapping):
        report["rows_fallback"] = sum(len(block.questions) for block in BLOCKS)
        return fallback, report
    report["parsed"] = True

    header = _merge_header(parsed, fallback.header, report)
    blocks = {
        block.key: _merge_block(block, _locate_block(parsed, block.key), fallback.rows(block.key), report)
        for block in BLOCKS
    }
    draft = NormalizedDraft(
        header=header,
        blocks=blocks,
        tech_notes=_merge_notes(parsed, TECH_NOTES_KEYS, fallback.tech_notes, report),
        star_notes=_merge_notes(parsed, STAR_NOTES_KEYS, fallback.star_notes, report),
        conclusion=_merge_conclusion(parsed, fallback.conclusion, report),
    )
    return draft, report


def normalize_draft(raw: object, brief: object) -> NormalizedDraft:
    draft, _ = normalize_with_report(raw, brief)
    return draft
