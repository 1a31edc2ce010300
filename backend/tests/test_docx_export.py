from __future__ import annotations

from datetime import date
import io
from urllib.parse import quote

from docx import Document

from polar_passport.brief import PassportBrief
from polar_passport.export.docx_renderer import RECOMMENDATIONS, format_russian_date, render_passport_docx
from polar_passport.export.naming import ascii_filename, content_disposition, passport_filename
from polar_passport.normalizer import normalize_draft
from polar_passport.schema import BLOCKS, HEADER_FIELDS, HEADER_LABELS
from polar_passport.version import APP_VERSION

DRAFT = normalize_draft(
    {
        "header": {"name": "Норд-Фреш"},
        "techNotes": ["Холодный отжим", "Без консервантов"],
        "starNotes": ["Яркий вкус"],
        "conclusion": "Готов к запуску",
    },
    PassportBrief(category="Сок", audience=["студенты"], pain="мало витаминов"),
)


def _read_back(data: bytes):
    return Document(io.BytesIO(data))


def _texts_with_style(document, style_name: str) -> list[str]:
    return [paragraph.text for paragraph in document.paragraphs if paragraph.style.name == style_name]


def test_document_headings_and_sections() -> None:
    document = _read_back(render_passport_docx(DRAFT, generated_on=date(2026, 10, 19)))

    assert _texts_with_style(document, "Heading 1") == ["Норд-Фреш"]
    assert _texts_with_style(document, "Heading 2") == [
        "Сок",
        *[block.title for block in BLOCKS],
        "Технология и состав",
        "Звёздные акценты",
        "Вывод",
        "Рекомендации",
    ]
    assert _texts_with_style(document, "Heading 3") == ["Краткий паспорт продукта"]
    assert _texts_with_style(document, "List Bullet") == ["Холодный отжим", "Без консервантов", "Яркий вкус"]
    assert _texts_with_style(document, "List Number") == list(RECOMMENDATIONS)
    assert "Готов к запуску" in [paragraph.text for paragraph in document.paragraphs]


def test_summary_table_holds_header_fields() -> None:
    document = _read_back(render_passport_docx(DRAFT))
    summary = document.tables[0]

    assert [row.cells[0].text for row in summary.rows] == [HEADER_LABELS[name] for name in HEADER_FIELDS]
    assert [row.cells[1].text for row in summary.rows] == [getattr(DRAFT.header, name) for name in HEADER_FIELDS]


def test_block_tables_map_rows_one_to_one() -> None:
    document = _read_back(render_passport_docx(DRAFT))
    block_tables = document.tables[1:]

    assert len(block_tables) == len(BLOCKS)
    for table, block in zip(block_tables, BLOCKS, strict=True):
        header_cells = table.rows[0].cells
        assert [cell.text for cell in header_cells] == ["№", "Вопрос", "Ответ"]
        assert header_cells[0].paragraphs[0].runs[0].bold is True
        body = [[cell.text for cell in row.cells] for row in table.rows[1:]]
        assert body == [[row.code, row.question, row.answer] for row in DRAFT.rows(block.key)]


def test_footer_carries_version_and_russian_date() -> None:
    document = _read_back(render_passport_docx(DRAFT, generated_on=date(2026, 10, 19)))

    footer = document.sections[0].footer.paragraphs[0]
    assert footer.text == f"Polar Star Passport · версия {APP_VERSION} · 19 октября 2026 г."
    assert footer.runs[0].italic is True


def test_format_russian_date() -> None:
    assert format_russian_date(date(2025, 3, 1)) == "1 марта 2025 г."


def test_passport_filename_replaces_forbidden_characters() -> None:
    draft = normalize_draft(None, PassportBrief(category="Сок", name='Норд/Фреш:"X"'))

    assert passport_filename(draft) == "Паспорт_Норд_Фреш_X_.docx"


def test_content_disposition_has_ascii_and_utf8_names() -> None:
    filename = "Паспорт_Сок.docx"

    header = content_disposition(filename)

    assert header.startswith('attachment; filename="passport.docx"')
    assert f"filename*=UTF-8''{quote(filename)}" in header
    header.encode("latin-1")


def test_ascii_filename_keeps_latin_parts() -> None:
    assert ascii_filename("Паспорт_Nord.docx") == "Nord.docx"
