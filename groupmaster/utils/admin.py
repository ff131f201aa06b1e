"""Почему: общая логика проверки прав администратора для модерации и команд."""

from __future__ import annotations

import logging

from groupmaster.services.actions import ChatActions
from groupmaster.services.incoming import GROUP_CHAT_TYPES, Member
from groupmaster.utils.time import Clock

logger = logging.getLogger(__name__)


class AdminChecker:
    """Проверяет, является ли пользователь админом чата.

    По умолчанию (ttl_seconds=0) список админов запрашивается заново на каждое
    сообщение. Положительный ttl включает кеш: снятый или назначенный админ
    будет виден только после истечения ttl.
    """

    def __init__(self, actions: ChatActions, clock: Clock, ttl_seconds: int = 0) -> None:
        self.actions = actions
        self.clock = clock
        self.ttl_ms = ttl_seconds * 1000
        self._cache: dict[int, tuple[int, frozenset[int]]] = {}

    async def fetch_admins(self, chat_id: int) -> list[Member]:
        return await self.actions.fetch_admins(chat_id)

    async def is_admin(self, chat_id: int, user_id: int, chat_type: str = "supergroup") -> bool:
        if chat_type not in GROUP_CHAT_TYPES:
            return False
        try:
            admin_ids = await self._admin_ids(chat_id)
        except Exception:  # noqa: BLE001 - не выдаём права при ошибке проверки
            logger.exception("Не удалось проверить права администратора.")
            return False
        return user_id in admin_ids

    def invalidate(self, chat_id: int | None = None) -> None:
        if chat_id is None:
            self._cache.clear()
        else:
            self._cache.pop(chat_id, None)

    async def _admin_ids(self, chat_id: int) -> frozenset[int]:
        now = self.clock.now_ms()
        if self.ttl_ms > 0:
            cached = self._cache.get(chat_id)
            if cached and now - cached[0] < self.ttl_ms:
                return cached[1]
        admins = await self.actions.fetch_admins(chat_id)
        ids = frozenset(admin.user_id for admin in admins)
        if self.ttl_ms > 0:
            self._cache[chat_id] = (now, ids)
        return ids
