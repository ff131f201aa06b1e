"""Почему: храним только последние N сообщений бота в каждом чате."""

from __future__ import annotations

from collections import deque


class BoundedQueue:
    """FIFO фиксированной емкости на каждый чат."""

    def __init__(self, capacity: int = 10) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._queues: dict[int, deque[int]] = {}

    def push(self, chat_id: int, message_id: int) -> int | None:
        """Добавляет id, при переполнении возвращает вытесненный самый старый id."""

        queue = self._queues.setdefault(chat_id, deque())
        queue.append(message_id)
        if len(queue) > self.capacity:
            return queue.popleft()
        return None

    def remove(self, chat_id: int, message_id: int) -> bool:
        queue = self._queues.get(chat_id)
        if not queue or message_id not in queue:
            return False
        queue.remove(message_id)
        return True

    def get(self, chat_id: int) -> list[int]:
        return list(self._queues.get(chat_id, ()))

    def size(self, chat_id: int) -> int:
        return len(self._queues.get(chat_id, ()))

    def clear(self, chat_id: int) -> None:
        self._queues.pop(chat_id, None)
