"""Почему: журнал модерации пишется в БД и не ломает модерацию при сбоях."""

from __future__ import annotations

import asyncio
from pathlib import Path

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from groupmaster.db import init_db
from groupmaster.services.moderation_log import (
    EVENT_BAD_WORD,
    EVENT_LINK,
    EVENT_SPAM,
    ModerationLog,
    ModerationRecord,
)


def test_record_and_summary_per_chat(tmp_path: Path) -> None:
    async def _run() -> dict[str, int]:
        url = f"sqlite+aiosqlite:///{tmp_path / 'bot.db'}"
        engine = create_async_engine(url)
        session_factory = async_sessionmaker(engine, expire_on_commit=False)

        async def _session():
            async with session_factory() as session:
                yield session

        try:
            await init_db(engine, url)
            log = ModerationLog(_session)
            await log.record(ModerationRecord(chat_id=-1, user_id=5, event_type=EVENT_SPAM))
            await log.record(ModerationRecord(chat_id=-1, user_id=6, event_type=EVENT_SPAM))
            await log.record(
                ModerationRecord(chat_id=-1, user_id=5, event_type=EVENT_BAD_WORD, reason="idiot")
            )
            await log.record(ModerationRecord(chat_id=-2, user_id=5, event_type=EVENT_LINK))
            return await log.summary(-1)
        finally:
            await engine.dispose()

    summary = asyncio.run(_run())

    assert summary == {EVENT_SPAM: 2, EVENT_BAD_WORD: 1}


def test_database_errors_are_swallowed() -> None:
    async def _broken_session():
        raise RuntimeError("db is down")
        yield  # pragma: no cover

    async def _run() -> dict[str, int]:
        log = ModerationLog(_broken_session)
        await log.record(ModerationRecord(chat_id=-1, user_id=5, event_type=EVENT_SPAM))
        return await log.summary(-1)

    assert asyncio.run(_run()) == {}
