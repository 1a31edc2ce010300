from __future__ import annotations

import re
from urllib.parse import quote

from polar_passport.draft import NormalizedDraft

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DEFAULT_ASCII_FILENAME = "passport.docx"

_FORBIDDEN_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]+')
_NON_ASCII_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def passport_filename(draft: NormalizedDraft) -> str:
    stem = _FORBIDDEN_FILENAME_CHARS.sub("_", draft.header.name or draft.header.category).strip()
    return f"Паспорт_{stem or 'passport'}.docx"


def ascii_filename(filename: str) -> str:
    candidate = _NON_ASCII_FILENAME_CHARS.sub("_", filename).strip("_")
    stem = candidate.rsplit(".", 1)[0]
    if not re.search(r"[A-Za-z0-9]", stem):
        return DEFAULT_ASCII_FILENAME
    return candidate


def content_disposition(filename: str) -> str:
    return f"attachment; filename=\"{ascii_filename(filename)}\"; filename*=UTF-8''{quote(filename)}"
