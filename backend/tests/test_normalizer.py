from __future__ import annotations

import json

import pytest

from polar_passport.brief import PassportBrief
from polar_passport.draft import NormalizedDraft
from polar_passport.fallback import build_fallback_draft, fallback_product_name
from polar_passport.normalizer import normalize_draft, normalize_with_report
from polar_passport.schema import BLOCKS, HEADER_FIELDS

BRIEF = PassportBrief(category="Йогурт", pain="боятся сахара", audience=["дети"])


def _assert_complete(draft: NormalizedDraft) -> None:
    assert list(draft.blocks) == [block.key for block in BLOCKS]
    for block in BLOCKS:
        rows = draft.blocks[block.key]
        assert len(rows) == 5
        for row, question in zip(rows, block.questions, strict=True):
            assert row.code == question.code
            assert row.question == question.text
            assert row.answer.strip()
    for field_name in HEADER_FIELDS:
        assert getattr(draft.header, field_name).strip()
    assert draft.tech_notes and all(item.strip() for item in draft.tech_notes)
    assert draft.star_notes and all(item.strip() for item in draft.star_notes)
    assert draft.conclusion.strip()


@pytest.mark.parametrize(
    "raw",
    [
        None,
        {},
        "not json at all",
        "```json\n{broken",
        [{"foo": 1}, {"bar": 2}],
        42,
        {"blocks": "nonsense"},
        {"blocks": {"cognitive": {"unrelated": None}}},
        {"header": [], "blocks": [1, 2, 3], "techNotes": {}, "conclusion": None},
    ],
)
def test_any_raw_output_yields_complete_draft(raw: object) -> None:
    _assert_complete(normalize_draft(raw, BRIEF))


def test_code_and_question_always_come_from_schema() -> None:
    raw = {
        "blocks": {
            "cognitive": [
                {"code": "1.1", "question": "Wrong question", "answer": "A1"},
                {"code": "9.9", "question": "Другой вопрос", "answer": "A2"},
            ]
        }
    }

    rows = normalize_draft(raw, BRIEF).rows("cognitive")

    assert (rows[0].code, rows[0].question, rows[0].answer) == ("1.1", "Ключевой инсайт потребителя", "A1")
    assert (rows[1].code, rows[1].question, rows[1].answer) == ("1.2", "Рациональная выгода", "A2")


def test_code_match_wins_over_position() -> None:
    raw = {"blocks": {"sensory": [{"no": "2.3", "answer": "X"}, "Y", "Z"]}}
    fallback_rows = build_fallback_draft(BRIEF).rows("sensory")

    rows = normalize_draft(raw, BRIEF).rows("sensory")

    assert rows[2].question == "Сильный обонятельный образ"
    assert rows[2].answer == "X"
    assert rows[0].answer == fallback_rows[0].answer
    assert rows[1].answer == "Y"
    assert rows[3].answer == fallback_rows[3].answer
    assert rows[4].answer == fallback_rows[4].answer


def test_swapped_code_entries_land_on_their_rows() -> None:
    raw = {"blocks": {"sensory": [{"no": "2.2", "answer": "B"}, {"no": "2.1", "answer": "A"}]}}

    rows = normalize_draft(raw, BRIEF).rows("sensory")

    assert [rows[0].answer, rows[1].answer] == ["A", "B"]


def test_item_number_matches_row_within_block() -> None:
    raw = {"blocks": {"marketing": [{"num": 5, "answer": "Повторные покупки"}]}}
    fallback_rows = build_fallback_draft(BRIEF).rows("marketing")

    rows = normalize_draft(raw, BRIEF).rows("marketing")

    assert rows[4].answer == "Повторные покупки"
    assert rows[0].answer == fallback_rows[0].answer


def test_mapping_block_lookup_order() -> None:
    raw = {
        "blocks": {
            "branding": {
                "3.1": "Смысл",
                "Характер бренда": "Дерзкий",
                "q3.3 обещание": "Обещаем",
                "слоган": "Вперёд",
            }
        }
    }
    fallback_rows = build_fallback_draft(BRIEF).rows("branding")

    rows = normalize_draft(raw, BRIEF).rows("branding")

    assert [row.answer for row in rows] == [
        "Смысл",
        "Дерзкий",
        "Обещаем",
        fallback_rows[3].answer,
        "Вперёд",
    ]


def test_flat_block_keys_and_text_blocks_are_accepted() -> None:
    raw = {
        "cognitive": ["a", "b", "c", "d", "e"],
        "blocks": {"sensory": "первый\nвторой"},
    }

    draft = normalize_draft(raw, BRIEF)

    assert [row.answer for row in draft.rows("cognitive")] == ["a", "b", "c", "d", "e"]
    assert [row.answer for row in draft.rows("sensory")][:2] == ["первый", "второй"]


def test_block_list_and_row_containers_are_unwrapped() -> None:
    raw = {
        "blocks": [
            {"key": "sensory", "rows": [{"code": "2.1", "answer": "Синий"}]},
            {"block": "cognitive", "items": [{"code": "1.2", "answer": "R"}]},
        ]
    }
    fallback_rows = build_fallback_draft(BRIEF).rows("cognitive")

    draft = normalize_draft(raw, BRIEF)

    assert draft.rows("sensory")[0].answer == "Синий"
    assert draft.rows("cognitive")[1].answer == "R"
    assert draft.rows("cognitive")[0].answer == fallback_rows[0].answer


def test_header_prefers_nested_values_and_aliases() -> None:
    raw = {
        "header": {"name": "Nested", "unique": "Без сахара", "audience": ["дети", " подростки "]},
        "name": "Flat",
        "category": "Йогурт питьевой",
        "pains": ["нет времени", "много сахара"],
    }

    header = normalize_draft(raw, BRIEF).header

    assert header.name == "Nested"
    assert header.innovation == "Без сахара"
    assert header.audience == "дети, подростки"
    assert header.category == "Йогурт питьевой"
    assert header.pain == "нет времени; много сахара"


def test_title_alias_feeds_name() -> None:
    assert normalize_draft({"title": "Титул"}, BRIEF).header.name == "Титул"


def test_nested_answer_is_unwrapped_and_whitespace_collapsed() -> None:
    raw = {"header": {"category": {"answer": "  Колбаса   варёная  "}}}

    assert normalize_draft(raw, BRIEF).header.category == "Колбаса варёная"


def test_scalar_header_values_are_stringified() -> None:
    header = normalize_draft({"header": {"name": 2024, "pain": 3.0, "innovation": True}}, BRIEF).header

    assert (header.name, header.pain, header.innovation) == ("2024", "3", "true")


def test_excessively_nested_values_fall_back() -> None:
    nested: object = "глубоко"
    for _ in range(20):
        nested = {"answer": nested}

    header = normalize_draft({"header": {"name": nested}}, BRIEF).header

    assert header.name == fallback_product_name("Йогурт")


def test_total_absence_uses_inputs_for_fallback() -> None:
    draft = normalize_draft(None, {"category": "Йогурт", "pain": "боятся сахара", "audience": "дети"})

    _assert_complete(draft)
    assert draft.header.pain == "боятся сахара"
    assert draft.header.audience == "дети"
    assert draft.header.name == fallback_product_name("Йогурт")
    for block in BLOCKS:
        for row in draft.rows(block.key):
            assert row.answer != "—"


def test_normalization_is_deterministic() -> None:
    raw = '{"header": {"name": "Норд"}, "blocks": {"cognitive": ["x"]}}'

    first = normalize_draft(raw, BRIEF)
    second = normalize_draft(raw, BRIEF)

    assert first == second
    assert first.model_dump_json() == second.model_dump_json()


def test_only_cognitive_block_from_model() -> None:
    brief = PassportBrief(category="Паштет")
    raw = json.dumps(
        {"blocks": {"cognitive": [{"code": f"1.{index}", "answer": f"  Ответ   {index} "} for index in range(1, 6)]}},
        ensure_ascii=False,
    )
    fallback = build_fallback_draft(brief)

    draft, report = normalize_with_report(raw, brief)

    _assert_complete(draft)
    assert [row.answer for row in draft.rows("cognitive")] == [f"Ответ {index}" for index in range(1, 6)]
    for key in ("sensory", "branding", "marketing"):
        assert draft.rows(key) == fallback.rows(key)
    assert draft.header == fallback.header
    assert report["parsed"] is True
    assert report["header_from_model"] == 0
    assert report["rows_from_model"] == 5
    assert report["rows_fallback"] == 15


def test_report_for_unparseable_output() -> None:
    draft, report = normalize_with_report("garbage", BRIEF)

    assert draft == build_fallback_draft(BRIEF)
    assert report["parsed"] is False
    assert report["rows_fallback"] == 20
    assert report["conclusion_from_model"] is False


def test_notes_and_conclusion_overrides() -> None:
    raw = {
        "techNotes": "- Первое\n- Второе; Третье",
        "star_notes": ["A", "", {"text": "B"}],
        "summary": " Итог ",
    }

    draft, report = normalize_with_report(raw, BRIEF)

    assert draft.tech_notes == ["Первое", "Второе", "Третье"]
    assert draft.star_notes == ["A", "B"]
    assert draft.conclusion == "Итог"
    assert report["notes_from_model"] == 2
    assert report["conclusion_from_model"] is True


def test_conclusion_preferred_over_summary() -> None:
    draft = normalize_draft({"conclusion": "Главное", "summary": "Второстепенное"}, BRIEF)

    assert draft.conclusion == "Главное"


def test_fenced_double_encoded_and_wrapped_outputs() -> None:
    fenced = 'Вот паспорт:\n```json\n{"header": {"name": "Фреш"}}\n```'
    double_encoded = json.dumps(json.dumps({"header": {"name": "Двойной"}}))
    wrapped = {"draft": json.dumps({"header": {"name": "Обёртка"}})}
    chunks = [{"type": "text", "text": '{"header":'}, {"type": "text", "text": '{"name": "Чанк"}}'}]

    assert normalize_draft(fenced, BRIEF).header.name == "Фреш"
    assert normalize_draft(double_encoded, BRIEF).header.name == "Двойной"
    assert normalize_draft(wrapped, BRIEF).header.name == "Обёртка"
    assert normalize_draft(chunks, BRIEF).header.name == "Чанк"


def test_renormalizing_serialized_draft_is_stable() -> None:
    raw = {
        "header": {"name": "Норд", "audience": "семьи"},
        "blocks": {"branding": [{"code": "3.5", "answer": "Слоган"}]},
        "techNotes": ["Технология"],
        "conclusion": "Вывод",
    }
    draft = normalize_draft(raw, BRIEF)

    again = normalize_draft(draft.to_payload(), PassportBrief(category="Другая категория"))

    assert again == draft


def test_control_characters_never_reach_the_draft() -> None:
    raw = json.dumps(
        {
            "header": {"name": "Норд\u0001Фреш"},
            "blocks": {"cognitive": [{"code": "1.1", "answer": "Ответ\u0000\u0002 готов"}]},
            "techNotes": ["\u0003"],
        }
    )
    brief = PassportBrief(category="Сок\u0000", comment="без\u0007 сахара")

    draft = normalize_draft(raw, brief)

    assert draft.header.name == "Норд Фреш"
    assert draft.header.category == "Сок"
    assert draft.rows("cognitive")[0].answer == "Ответ готов"
    assert draft.tech_notes == build_fallback_draft(brief).tech_notes
    assert "без сахара" in draft.rows("marketing")[3].answer


@pytest.mark.parametrize(
    ("value", "expected"),
    [(10**400, None), (-(10**400), None), ("inf", 1.0), ("-inf", 0.0), ("nan", None), ("abc", None), (1.7, 1.0), (0.3, 0.3)],
)
def test_brief_temperature_is_clamped_or_left_to_configuration(value: object, expected: float | None) -> None:
    assert PassportBrief.model_validate({"category": "Сок", "temperature": value}).temperature == expected


def test_oversized_temperature_does_not_break_normalization() -> None:
    draft = normalize_draft(None, {"category": "Сок", "temperature": 10**400})

    assert draft.header.category == "Сок"
