"""Почему: прочие апдейты отвечают пользователю и не доходят до конвейера."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

from groupmaster.handlers.events import (
    HELP_HINT,
    on_help_callback,
    on_inline_query,
    on_other_callback,
)


def test_help_callback_shows_hint() -> None:
    callback = AsyncMock()

    asyncio.run(on_help_callback(callback))

    callback.answer.assert_awaited_once_with(HELP_HINT, show_alert=True)


def test_other_callback_echoes_choice() -> None:
    callback = AsyncMock()
    callback.data = "option_2"

    asyncio.run(on_other_callback(callback))

    callback.answer.assert_awaited_once_with("You selected: option_2")


def test_inline_help_returns_single_article() -> None:
    query = AsyncMock()
    query.query = "  Help "

    asyncio.run(on_inline_query(query))

    results = query.answer.await_args.args[0]
    assert [result.id for result in results] == ["help"]


def test_inline_unknown_query_returns_nothing() -> None:
    query = AsyncMock()
    query.query = "weather"

    asyncio.run(on_inline_query(query))

    assert query.answer.await_args.args[0] == []
