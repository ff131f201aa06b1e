"""Почему: автоответы по ключевым словам собраны в одном месте с предсказуемым порядком.

Таблица читается из JSON вида ``{"hi|hello": ["Hi {name}!"], ...}``. Ключ может
содержать несколько вариантов через ``|``. Порядок ключей в файле важен:
побеждает первый совпавший паттерн, более конкретные паттерны ниже по файлу
не перекрывают общие выше.
"""

from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from groupmaster.utils.text import fill_placeholders, normalize_text

logger = logging.getLogger(__name__)

PATTERN_DELIMITER = "|"
MIN_TEXT_LENGTH = 2

_TABLE_ADAPTER = TypeAdapter(dict[str, list[str] | str])


@dataclass(frozen=True)
class ReplyPattern:
    key: str
    alternatives: tuple[str, ...]
    candidates: tuple[str, ...]

    def matches(self, text: str) -> bool:
        return any(text == alt or alt in text for alt in self.alternatives)


@dataclass(frozen=True)
class ReplyTable:
    patterns: tuple[ReplyPattern, ...] = ()

    def __len__(self) -> int:
        return len(self.patterns)


@dataclass(frozen=True)
class ReplyMatch:
    pattern: ReplyPattern
    candidate: str


@dataclass(frozen=True)
class Sender:
    """Данные отправителя для подстановки в шаблон."""

    first_name: str
    username: str | None = None


def build_reply_table(raw: object) -> ReplyTable:
    """Проверяет структуру и строит таблицу, пустые паттерны и ответы отбрасываются."""

    data = _TABLE_ADAPTER.validate_python(raw)
    patterns: list[ReplyPattern] = []
    for key, value in data.items():
        candidates = (value,) if isinstance(value, str) else tuple(value)
        candidates = tuple(c for c in candidates if c.strip())
        alternatives = tuple(
            alt for alt in (part.strip().lower() for part in key.split(PATTERN_DELIMITER)) if alt
        )
        if not alternatives or not candidates:
            logger.warning("Пропущен пустой паттерн автоответа: %r", key)
            continue
        patterns.append(ReplyPattern(key=key, alternatives=alternatives, candidates=candidates))
    return ReplyTable(patterns=tuple(patterns))


def load_reply_table(path: Path) -> ReplyTable:
    """Читает таблицу автоответов; при любой ошибке пустая таблица и предупреждение."""

    if not path.exists():
        logger.warning("Файл автоответов не найден: %s", path)
        return ReplyTable()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        table = build_reply_table(raw)
    except (OSError, ValueError, ValidationError) as exc:
        logger.warning("Не удалось загрузить автоответы из %s: %s", path, exc)
        return ReplyTable()
    logger.info("Загружено %s паттернов автоответа", len(table))
    return table


class ReplyMatcher:
    def __init__(self, table: ReplyTable, rng: random.Random | None = None) -> None:
        self._table = table
        self._rng = rng or random.Random()

    @property
    def table(self) -> ReplyTable:
        return self._table

    def reload(self, table: ReplyTable) -> None:
        self._table = table

    def match(self, text: str | None) -> ReplyMatch | None:
        normalized = normalize_text(text)
        if len(normalized) < MIN_TEXT_LENGTH:
            return None
        for pattern in self._table.patterns:
            if pattern.matches(normalized):
                return ReplyMatch(pattern=pattern, candidate=self._rng.choice(pattern.candidates))
        return None

    def render(self, candidate: str, sender: Sender, now: datetime) -> str:
        username = f"@{sender.username}" if sender.username else sender.first_name
        return fill_placeholders(
            candidate,
            {
                "name": sender.first_name,
                "username": username,
                "time": now.strftime("%H:%M:%S"),
                "date": now.strftime("%d.%m.%Y"),
            },
        )
