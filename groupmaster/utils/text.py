"""Почему: общий набор утилит для текстовой модерации и шаблонов."""

from __future__ import annotations

import re

from aiogram.utils.text_decorations import html_decoration

LINK_PATTERN = re.compile(r"https?://\S+", re.IGNORECASE)


def contains_link(text: str) -> bool:
    """Возвращает True, если найдена http/https ссылка."""

    return bool(LINK_PATTERN.search(text))


def normalize_text(text: str | None) -> str:
    return (text or "").strip().lower()


def find_bad_word(text: str, words: tuple[str, ...]) -> str | None:
    """Ищет первое запрещенное слово как подстроку (без учета регистра)."""

    lowered = text.lower()
    for word in words:
        if word and word in lowered:
            return word
    return None


def escape_html(value: object) -> str:
    return html_decoration.quote(str(value))


def fill_placeholders(template: str, values: dict[str, str]) -> str:
    """Подставляет {key} из словаря, значения экранируются для HTML."""

    result = template
    for key, value in values.items():
        result = result.replace("{" + key + "}", escape_html(value))
    return result
