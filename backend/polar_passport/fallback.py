from __future__ import annotations

from polar_passport.brief import PassportBrief
from polar_passport.draft import AnswerRow, DraftHeader, NormalizedDraft
from polar_passport.schema import BLOCKS

DEFAULT_CATEGORY = "Новый продукт"

NAME_PREFIXES: tuple[str, ...] = ("Норд", "Поляр", "Астра", "Вега", "Аврора", "Север", "Луна", "Сияние")
NAME_SUFFIXES: tuple[str, ...] = ("Фреш", "Стар", "Вкус", "Лайт", "Мир", "Ритм", "Дом", "Бит")

_HASH_MODULUS = 2**32

ROW_TEMPLATES: dict[str, str] = {
    "1.1": "Для аудитории «{audience}» главный барьер в категории «{category}» звучит так: {pain}.",
    "1.2": "«{name}» даёт понятную пользу: продукт категории «{category}» без компромиссов по качеству и составу.",
    "1.3": "Покупатель чувствует заботу и уверенность в выборе, потому что «{name}» снимает тревогу: {pain}.",
    "1.4": "Причина верить: {innovation}.",
    "1.5": "«{name}» естественно встраивается в повседневные ситуации аудитории «{audience}»: дома, в дороге и на перекусе.",
    "2.1": "Визуальный образ «{name}» строится вокруг идеи: {innovation}.",
    "2.2": "Вкусовой профиль «{name}» делает категорию «{category}» яркой и узнаваемой с первой пробы.",
    "2.3": "Запах «{name}» должен сразу напоминать о свежести и натуральности продукта категории «{category}».",
    "2.4": "Текстура и упаковка «{name}» приятны на ощупь и удобны для аудитории «{audience}».",
    "2.5": "Звук открытия упаковки «{name}» становится маленьким ритуалом и частью бренда.",
    "3.1": "Название «{name}» подчёркивает характер продукта и выделяет его в категории «{category}».",
    "3.2": "Характер бренда «{name}»: честный, тёплый и заботливый, говорит с аудиторией «{audience}» на её языке.",
    "3.3": "Обещание бренда «{name}»: продукт, который решает проблему — {pain}.",
    "3.4": "Упаковка «{name}» выделяется на полке категории «{category}» и сразу объясняет уникальность: {innovation}.",
    "3.5": "«{name}» — {category} с характером.",
    "4.1": "На полке «{name}» позиционируется как понятная альтернатива привычным продуктам категории «{category}».",
    "4.2": "Продвижение «{name}» строится на каналах, где аудитория «{audience}» принимает решение о покупке.",
    "4.3": "Цена «{name}» отражает ценность решения проблемы: {pain}.",
    "4.4": "Ключевое сообщение: «{name}» — {innovation}.",
    "4.5": "Успех запуска «{name}» измеряется повторными покупками аудитории «{audience}» и узнаваемостью в категории «{category}».",
}

assert set(ROW_TEMPLATES) == {question.code for block in BLOCKS for question in block.questions}


def stable_hash(text: str) -> int:
    value = 0
    for char in text:
        value = (value * 31 + ord(char)) % _HASH_MODULUS
    return value


def fallback_product_name(category: str) -> str:
    key = " ".join(category.split()).lower()
    digest = stable_hash(key)
    prefix = NAME_PREFIXES[digest % len(NAME_PREFIXES)]
    suffix = NAME_SUFFIXES[(digest // len(NAME_PREFIXES)) % len(NAME_SUFFIXES)]
    return f"{prefix}-{suffix}"


def _strip_trailing_period(text: str) -> str:
    return text.rstrip(" .")


def build_fallback_header(brief: PassportBrief) -> DraftHeader:
    category = brief.category or DEFAULT_CATEGORY
    pain = brief.pain or f"Покупателям категории «{category}» не хватает продукта, которому можно доверять"
    return DraftHeader(
        category=category,
        name=brief.name or fallback_product_name(category),
        audience=brief.audience_text or f"Покупатели категории «{category}»",
        pain=pain,
        innovation=brief.innovation or f"Новый взгляд на категорию «{category}», который снимает главную боль покупателя",
    )


def build_fallback_draft(brief: PassportBrief) -> NormalizedDraft:
    header = build_fallback_header(brief)
    values = {
        "category": header.category,
        "name": header.name,
        "audience": header.audience,
        "pain": _strip_trailing_period(header.pain),
        "innovation": _strip_trailing_period(header.innovation),
    }

    blocks: dict[str, list[AnswerRow]] = {}
    for block in BLOCKS:
        rows: list[AnswerRow] = []
        for question in block.questions:
            answer = ROW_TEMPLATES[question.code].format(**values)
            if question.code == "4.4" and brief.comment:
                answer = f"{answer} Пожелание к продукту: {_strip_trailing_period(brief.comment)}."
            rows.append(AnswerRow(code=question.code, question=question.text, answer=answer))
        blocks[block.key] = rows

    return NormalizedDraft(
        header=header,
        blocks=blocks,
        tech_notes=[
            f"Рецептура и технология для категории «{values['category']}» подбираются так, "
            f"чтобы снять главную боль: {values['pain']}."
        ],
        star_notes=[f"«{values['name']}» — звезда категории «{values['category']}» для аудитории: {values['audience']}."],
        conclusion=(
            f"«{values['name']}» ({values['category']}) закрывает ключевую боль потребителя: {values['pain']}. "
            f"Уникальность: {values['innovation']}."
        ),
    )
