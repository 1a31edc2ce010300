from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Literal, Protocol

from polar_passport.brief import PassportBrief
from polar_passport.model_runtime import ModelRuntimeError, clean_pain_list

logger = logging.getLogger("polar_passport.pains")

PainsSource = Literal["llm", "hints"]

CATEGORY_HINTS: dict[str, tuple[str, ...]] = {
    "йогурт": (
        "Покупатели боятся, что в йогурте слишком много сахара",
        "Сложно найти йогурт с коротким и понятным составом",
        "Йогурт быстро портится, если забыть его в сумке",
    ),
    "колбас": (
        "Люди не уверены, из чего на самом деле сделана колбаса",
        "Покупатели боятся консервантов и лишней соли",
        "Нарезка быстро заветривается после вскрытия упаковки",
    ),
    "паштет": (
        "Паштет воспринимается как тяжёлый и жирный продукт",
        "Непонятно, сколько в паштете настоящей печени",
        "Открытую банку паштета неудобно хранить",
    ),
    "напит": (
        "Сладкие напитки вызывают чувство вины за лишние калории",
        "Полезные напитки часто невкусные",
        "Бутылку неудобно брать с собой в дорогу",
    ),
    "завтрак": (
        "Утром не хватает времени на полноценный завтрак",
        "Готовые завтраки часто оказываются слишком сладкими",
        "Дети отказываются есть полезный завтрак",
    ),
    "снек": (
        "Перекусы на ходу обычно вредные и калорийные",
        "После снека быстро снова хочется есть",
        "Полезные снеки стоят слишком дорого",
    ),
}

AUDIENCE_HINTS: dict[str, tuple[str, ...]] = {
    "дет": (
        "Родители переживают, что ребёнок ест слишком много сахара",
        "Детям не нравится вкус полезных продуктов",
    ),
    "родител": ("У родителей нет времени готовить полезный перекус",),
    "студент": ("Студентам нужен недорогой продукт, который быстро насыщает",),
    "спорт": ("Людям, которые занимаются спортом, не хватает белка в привычных продуктах",),
    "пожил": ("Пожилым людям сложно читать мелкий шрифт на упаковке",),
    "офис": ("Офисным работникам некогда нормально поесть в течение дня",),
}

DEFAULT_HINTS: tuple[str, ...] = (
    "Покупатели не доверяют составу продуктов массового рынка",
    "Сложно найти продукт, который одновременно вкусный и полезный",
    "Люди не хотят переплачивать за красивую упаковку",
    "Покупателям не хватает понятной информации о пользе продукта",
    "Продукт неудобно брать с собой и есть на ходу",
)


class PainsModel(Protocol):
    @property
    def is_configured(self) -> bool: ...

    def generate_pains(self, brief: PassportBrief) -> list[str]: ...


@dataclass(frozen=True)
class PainsResult:
    pains: list[str]
    source: PainsSource


def hint_pains(brief: PassportBrief) -> list[str]:
    category = brief.category.lower()
    audience = brief.audience_text.lower()

    candidates: list[str] = []
    for fragment, hints in CATEGORY_HINTS.items():
        if fragment in category:
            candidates.extend(hints)
    for fragment, hints in AUDIENCE_HINTS.items():
        if fragment in audience:
            candidates.extend(hints)
    candidates.extend(DEFAULT_HINTS)
    return clean_pain_list(candidates)


def suggest_pains(brief: PassportBrief, model_client: PainsModel) -> PainsResult:
    if model_client.is_configured:
        try:
            return PainsResult(pains=model_client.generate_pains(brief), source="llm")
        except ModelRuntimeError as exc:
            logger.warning(
                "pains_generation_degraded",
                extra={"event": "pains_generation_degraded", "error": str(exc)},
            )
    return PainsResult(pains=hint_pains(brief), source="hints")
