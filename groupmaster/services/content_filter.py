"""Почему: проверки текста чистые, побочные действия делает конвейер."""

from __future__ import annotations

from collections.abc import Iterable

from groupmaster.utils.text import contains_link, find_bad_word


class ContentFilter:
    def __init__(self, bad_words: Iterable[str] = ()) -> None:
        self.bad_words: tuple[str, ...] = tuple(
            word.strip().lower() for word in bad_words if word.strip()
        )

    def check_bad_words(self, text: str | None) -> str | None:
        if not text:
            return None
        return find_bad_word(text, self.bad_words)

    def contains_url(self, text: str | None) -> bool:
        if not text:
            return False
        return contains_link(text)

    def reload(self, bad_words: Iterable[str]) -> None:
        self.bad_words = tuple(word.strip().lower() for word in bad_words if word.strip())
