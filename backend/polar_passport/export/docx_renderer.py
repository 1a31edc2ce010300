from __future__ import annotations

from datetime import date
import io

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.table import Table

from polar_passport.draft import NormalizedDraft
from polar_passport.schema import BLOCKS, HEADER_FIELDS, HEADER_LABELS
from polar_passport.version import APP_VERSION

SUMMARY_HEADING = "Краткий паспорт продукта"
TECH_NOTES_HEADING = "Технология и состав"
STAR_NOTES_HEADING = "Звёздные акценты"
CONCLUSION_HEADING = "Вывод"
RECOMMENDATIONS_HEADING = "Рекомендации"
ROW_TABLE_COLUMNS = ("№", "Вопрос", "Ответ")

RECOMMENDATIONS: tuple[str, ...] = (
    "Проверьте ключевой инсайт и обещание бренда на фокус-группе целевой аудитории.",
    "Согласуйте сенсорные характеристики с технологами до запуска опытной партии.",
    "Проверьте название и слоган на юридическую чистоту и свободу товарного знака.",
    "Подготовьте макет упаковки и протестируйте его заметность на полке.",
    "Зафиксируйте метрики успеха запуска и сроки их первой оценки.",
)

RUSSIAN_MONTHS_GENITIVE: tuple[str, ...] = (
    "января",
    "февраля",
    "марта",
    "апреля",
    "мая",
    "июня",
    "июля",
    "августа",
    "сентября",
    "октября",
    "ноября",
    "декабря",
)

_TABLE_STYLE = "Table Grid"


def format_russian_date(value: date) -> str:
    return f"{value.day} {RUSSIAN_MONTHS_GENITIVE[value.month - 1]} {value.year} г."


def footer_text(generated_on: date) -> str:
    return f"Polar Star Passport · версия {APP_VERSION} · {format_russian_date(generated_on)}"


def _bold_row(table: Table, row_index: int) -> None:
    for cell in table.rows[row_index].cells:
        for paragraph in cell.paragraphs:
            for run in paragraph.runs:
                run.bold = True


def _add_summary_table(document, draft: NormalizedDraft) -> None:
    table = document.add_table(rows=0, cols=2)
    table.style = _TABLE_STYLE
    for field_name in HEADER_FIELDS:
        cells = table.add_row().cells
        cells[0].text = HEADER_LABELS[field_name]
        cells[1].text = getattr(draft.header, field_name)
        for run in cells[0].paragraphs[0].runs:
            run.bold = True


def _add_block_table(document, draft: NormalizedDraft, block_key: str) -> None:
    table = document.add_table(rows=1, cols=len(ROW_TABLE_COLUMNS))
    table.style = _TABLE_STYLE
    for cell, title in zip(table.rows[0].cells, ROW_TABLE_COLUMNS, strict=True):
        cell.text = title
    _bold_row(table, 0)
    for row in draft.rows(block_key):
        cells = table.add_row().cells
        cells[0].text = row.code
        cells[1].text = row.question
        cells[2].text = row.answer


def render_passport_docx(draft: NormalizedDraft, *, generated_on: date | None = None) -> bytes:
    """Render a normalized passport into a .docx document and return its bytes."""
    document = Document()
    document.add_heading(draft.header.name, level=1)
    document.add_heading(draft.header.category, level=2)

    document.add_heading(SUMMARY_HEADING, level=3)
    _add_summary_table(document, draft)

    for block in BLOCKS:
        document.add_heading(block.title, level=2)
        _add_block_table(document, draft, block.key)

    document.add_heading(TECH_NOTES_HEADING, level=2)
    for note in draft.tech_notes:
        document.add_paragraph(note, style="List Bullet")

    document.add_heading(STAR_NOTES_HEADING, level=2)
    for note in draft.star_notes:
        document.add_paragraph(note, style="List Bullet")

    document.add_heading(CONCLUSION_HEADING, level=2)
    document.add_paragraph(draft.conclusion)

    document.add_heading(RECOMMENDATIONS_HEADING, level=2)
    for item in RECOMMENDATIONS:
        document.add_paragraph(item, style="List Number")

    footer = document.sections[0].footer.paragraphs[0]
    footer.alignment = WD_ALIGN_PARAGRAPH.CENTER
    footer_run = footer.add_run(footer_text(generated_on or date.today()))
    footer_run.italic = True

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()
