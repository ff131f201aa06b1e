"""Почему: инкапсулируем запись и чтение журнала модерации для повторного использования."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from groupmaster.models import ModerationEvent

logger = logging.getLogger(__name__)

EVENT_SPAM = "spam_mute"
EVENT_BAD_WORD = "bad_word"
EVENT_LINK = "link"
EVENT_WARN = "warn"
EVENT_MUTE = "mute"
EVENT_UNMUTE = "unmute"
EVENT_BAN = "ban"
EVENT_UNBAN = "unban"


@dataclass(frozen=True)
class ModerationRecord:
    chat_id: int
    user_id: int
    event_type: str
    message_id: int | None = None
    reason: str | None = None
    actor_id: int | None = None


async def add_event(session: AsyncSession, record: ModerationRecord) -> None:
    session.add(
        ModerationEvent(
            chat_id=record.chat_id,
            user_id=record.user_id,
            event_type=record.event_type,
            message_id=record.message_id,
            reason=record.reason,
            actor_id=record.actor_id,
        )
    )
    await session.flush()


async def count_events(session: AsyncSession, chat_id: int) -> dict[str, int]:
    """Возвращает количество событий по типам для чата."""

    rows = await session.execute(
        select(ModerationEvent.event_type, func.count())
        .where(ModerationEvent.chat_id == chat_id)
        .group_by(ModerationEvent.event_type)
    )
    return {event_type: int(count) for event_type, count in rows.all()}


class ModerationLog:
    """Пишет события в БД. Ошибки БД логируются и не прерывают модерацию."""

    def __init__(self, session_provider: Callable[[], AsyncIterator[AsyncSession]]) -> None:
        self._session_provider = session_provider

    async def record(self, record: ModerationRecord) -> None:
        try:
            async for session in self._session_provider():
                await add_event(session, record)
                await session.commit()
        except Exception:  # noqa: BLE001 - журнал не должен ломать модерацию
            logger.exception("Не удалось записать событие модерации %s", record.event_type)

    async def summary(self, chat_id: int) -> dict[str, int]:
        counts: dict[str, int] = {}
        try:
            async for session in self._session_provider():
                counts = await count_events(session, chat_id)
        except Exception:  # noqa: BLE001
            logger.exception("Не удалось прочитать журнал модерации")
        return counts
