"""Почему: выносим загрузку списка запрещенных слов в отдельный модуль."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

_WORDS_ADAPTER = TypeAdapter(list[str])


def parse_bad_words(raw: object) -> tuple[str, ...]:
    """Приводит список к нижнему регистру, убирает пустые и дубликаты, порядок сохраняется."""

    words = _WORDS_ADAPTER.validate_python(raw)
    seen: dict[str, None] = {}
    for word in words:
        cleaned = word.strip().lower()
        if cleaned and not cleaned.startswith("#"):
            seen.setdefault(cleaned, None)
    return tuple(seen)


def load_bad_words(path: Path) -> tuple[str, ...]:
    """Загружает список запрещенных слов из JSON, при ошибке возвращает пустой список."""

    if not path.exists():
        logger.warning("Файл запрещенных слов не найден: %s", path)
        return ()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return parse_bad_words(raw)
    except (OSError, ValueError, ValidationError) as exc:
        logger.warning("Не удалось загрузить запрещенные слова из %s: %s", path, exc)
        return ()
