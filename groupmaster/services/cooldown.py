"""Почему: дебаунс и блок-лист живут в экземпляре сервиса, а не в глобальных словарях."""

from __future__ import annotations

from collections.abc import Iterable


class RateLimiter:
    """Пропускает не чаще одного сообщения пользователя за cooldown_ms."""

    def __init__(
        self,
        cooldown_ms: int = 500,
        retention_ms: int = 60_000,
        blocked_users: Iterable[int] = (),
    ) -> None:
        self.cooldown_ms = cooldown_ms
        self.retention_ms = retention_ms
        self._blocked = set(blocked_users)
        self._last_processed: dict[tuple[int, int], int] = {}

    def is_blocked(self, user_id: int) -> bool:
        return user_id in self._blocked

    def block(self, user_id: int) -> None:
        self._blocked.add(user_id)

    def unblock(self, user_id: int) -> None:
        self._blocked.discard(user_id)

    def hit(self, user_id: int, chat_id: int, now_ms: int) -> bool:
        """True: сообщение можно обрабатывать, False: пользователь на кулдауне."""

        key = (user_id, chat_id)
        last = self._last_processed.get(key)
        if last is not None and now_ms - last < self.cooldown_ms:
            return False
        self._last_processed[key] = now_ms
        return True

    def sweep(self, now_ms: int) -> int:
        expired = [
            key
            for key, last in self._last_processed.items()
            if now_ms - last > self.retention_ms
        ]
        for key in expired:
            del self._last_processed[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._last_processed)
