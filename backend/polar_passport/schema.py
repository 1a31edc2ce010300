from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class QuestionDefinition:
    code: str
    text: str

    @property
    def item_number(self) -> str:
        return self.code.split(".", 1)[1]


@dataclass(frozen=True)
class BlockDefinition:
    key: str
    title: str
    questions: tuple[QuestionDefinition, ...]


def _block(index: int, key: str, title: str, texts: tuple[str, ...]) -> BlockDefinition:
    return BlockDefinition(
        key=key,
        title=title,
        questions=tuple(
            QuestionDefinition(code=f"{index}.{position}", text=text)
            for position, text in enumerate(texts, start=1)
        ),
    )


BLOCKS: tuple[BlockDefinition, ...] = (
    _block(
        1,
        "cognitive",
        "Когнитивный блок",
        (
            "Ключевой инсайт потребителя",
            "Рациональная выгода",
            "Эмоциональная выгода",
            "Причина верить продукту",
            "Ситуация потребления",
        ),
    ),
    _block(
        2,
        "sensory",
        "Сенсорный блок",
        (
            "Визуальный образ продукта",
            "Вкусовой профиль",
            "Сильный обонятельный образ",
            "Текстура и тактильные ощущения",
            "Звуковой образ",
        ),
    ),
    _block(
        3,
        "branding",
        "Брендинговый блок",
        (
            "Смысл названия",
            "Характер бренда",
            "Обещание бренда",
            "Упаковка и визуальная идентичность",
            "Слоган",
        ),
    ),
    _block(
        4,
        "marketing",
        "Маркетинговый блок",
        (
            "Позиционирование на полке",
            "Каналы продвижения",
            "Ценовое позиционирование",
            "Ключевое сообщение коммуникации",
            "Метрики успеха запуска",
        ),
    ),
)

HEADER_FIELDS: tuple[str, ...] = ("category", "name", "audience", "pain", "innovation")

HEADER_LABELS: dict[str, str] = {
    "category": "Категория",
    "name": "Название",
    "audience": "Целевая аудитория",
    "pain": "Потребительская боль",
    "innovation": "Уникальность",
}

_QUESTIONS_BY_CODE = {question.code: question for block in BLOCKS for question in block.questions}

assert len({block.key for block in BLOCKS}) == 4, "passport schema must define exactly four blocks"
assert all(len(block.questions) == 5 for block in BLOCKS), "every block must define exactly five questions"
assert len(_QUESTIONS_BY_CODE) == 20, "question codes must be unique"


def block_keys() -> tuple[str, ...]:
    return tuple(block.key for block in BLOCKS)
