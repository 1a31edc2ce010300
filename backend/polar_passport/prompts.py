from __future__ import annotations

import json

from polar_passport.brief import PassportBrief
from polar_passport.schema import BLOCKS

MAX_PAINS = 10


def _schema_outline() -> str:
    lines: list[str] = []
    for block in BLOCKS:
        lines.append(f'"{block.key}" ({block.title}):')
        for question in block.questions:
            lines.append(f"  {question.code} {question.text}")
    return "\n".join(lines)


def passport_system_prompt() -> str:
    return "\n".join(
        [
            "Ты — стратег по продуктам и эксперт по когнитивно-сенсорному маркетингу.",
            "Твоя задача — составить паспорт продукта по брифу пользователя.",
            "ВСЕГДА отвечай строго на русском языке.",
            "",
            "Формат ответа — только один JSON-объект без markdown и пояснений:",
            "{",
            '  "header": {"category": "...", "name": "...", "audience": "...", "pain": "...", "innovation": "..."},',
            '  "blocks": {',
            '    "cognitive": [{"code": "1.1", "question": "...", "answer": "..."}, ...],',
            '    "sensory": [...], "branding": [...], "marketing": [...]',
            "  },",
            '  "techNotes": ["..."],',
            '  "starNotes": ["..."],',
            '  "conclusion": "..."',
            "}",
            "",
            "В каждом блоке ровно пять ответов, коды и вопросы строго из списка:",
            _schema_outline(),
            "",
            "Если название не задано, придумай короткое запоминающееся название.",
            "Каждый ответ — одно-два конкретных предложения без общих слов.",
        ]
    )


def passport_user_prompt(brief: PassportBrief) -> str:
    return "Бриф продукта:\n" + json.dumps(brief.prompt_payload(), ensure_ascii=False, indent=2)


def pains_system_prompt() -> str:
    return "\n".join(
        [
            "Ты — стратег по продуктам и маркетолог.",
            "Сформулируй список возможных потребительских болей на основе категории продукта и аудитории.",
            "ВСЕГДА отвечай строго на русском языке.",
            "",
            'Формат ответа — только один JSON-объект вида {"pains": ["...", "..."]}.',
            f"Не больше {MAX_PAINS} формулировок, без повторов, каждая — одно-два предложения.",
            "Не используй слово «боль» внутри формулировки; говори обычным языком.",
        ]
    )


def pains_user_prompt(brief: PassportBrief) -> str:
    payload = {
        "category": brief.category or "-",
        "audience": brief.audience_text or "-",
        "pain": brief.pain or "-",
        "innovation": brief.innovation or "-",
        "comment": brief.comment or "-",
    }
    return "Исходные данные:\n" + json.dumps(payload, ensure_ascii=False, indent=2)
