"""Почему: антифлуд должен работать быстро, в памяти процесса, без запросов в БД."""

from __future__ import annotations

import enum
from collections import deque
from dataclasses import dataclass

Key = tuple[int, int]


class SpamDecision(enum.Enum):
    OK = "ok"
    SPAM = "spam"


@dataclass(frozen=True)
class SpamState:
    """Срез окна: сообщений за короткое окно, за длинное и всего в памяти."""

    within_short: int
    within_long: int
    retained: int


class RateWindow:
    """Скользящее окно отметок времени (мс) на пару (user_id, chat_id)."""

    def __init__(self, horizon_ms: int) -> None:
        self.horizon_ms = horizon_ms
        self._messages: dict[Key, deque[int]] = {}

    def register(self, user_id: int, chat_id: int, now_ms: int) -> int:
        key = (user_id, chat_id)
        if key not in self._messages:
            self._messages[key] = deque()
        bucket = self._messages[key]
        bucket.append(now_ms)
        self._prune(bucket, now_ms)
        return len(bucket)

    def state(self, user_id: int, chat_id: int, now_ms: int, short_ms: int) -> SpamState:
        bucket = self._messages.get((user_id, chat_id))
        if not bucket:
            return SpamState(0, 0, 0)
        self._prune(bucket, now_ms)
        within_short = sum(1 for ts in bucket if now_ms - ts <= short_ms)
        within_long = sum(1 for ts in bucket if now_ms - ts <= self.horizon_ms)
        return SpamState(within_short, within_long, len(bucket))

    def sweep(self, now_ms: int) -> int:
        """Удаляет устаревшие отметки и пустые ключи, возвращает число удаленных ключей."""

        removed = 0
        for key in list(self._messages):
            bucket = self._messages[key]
            self._prune(bucket, now_ms)
            if not bucket:
                del self._messages[key]
                removed += 1
        return removed

    def __len__(self) -> int:
        return len(self._messages)

    def _prune(self, bucket: deque[int], now_ms: int) -> None:
        cutoff = now_ms - self.horizon_ms
        while bucket and bucket[0] < cutoff:
            bucket.popleft()


@dataclass
class SpamRecord:
    count: int
    first_seen: int
    last_seen: int


class SpamDetector:
    """Счетчик сообщений: limit сообщений за window_ms считаются спамом, после reset_ms окно сбрасывается.

    Сам детектор ничего не мутит: решение SPAM отдается вызывающему коду,
    запись при этом уже удалена.
    """

    def __init__(
        self,
        limit: int = 10,
        window_ms: int = 5000,
        reset_ms: int = 10000,
    ) -> None:
        self.limit = limit
        self.window_ms = window_ms
        self.reset_ms = reset_ms
        self._records: dict[Key, SpamRecord] = {}
        self._window = RateWindow(horizon_ms=reset_ms)

    def record(self, user_id: int, chat_id: int, now_ms: int) -> SpamDecision:
        key = (user_id, chat_id)
        self._window.register(user_id, chat_id, now_ms)
        record = self._records.get(key)

        # Ленивое истечение: после паузы длиннее reset_ms окно начинается заново
        if record is not None and now_ms - record.last_seen > self.reset_ms:
            del self._records[key]
            record = None

        if record is None:
            self._records[key] = SpamRecord(count=1, first_seen=now_ms, last_seen=now_ms)
            return SpamDecision.OK

        record.count += 1
        record.last_seen = now_ms
        elapsed = now_ms - record.first_seen

        # Окно спама проверяется раньше окна сброса
        if record.count >= self.limit and elapsed <= self.window_ms:
            del self._records[key]
            return SpamDecision.SPAM

        if elapsed > self.reset_ms:
            del self._records[key]

        return SpamDecision.OK

    def state(self, user_id: int, chat_id: int, now_ms: int) -> SpamState:
        return self._window.state(user_id, chat_id, now_ms, self.window_ms)

    def pending_count(self, user_id: int, chat_id: int) -> int:
        record = self._records.get((user_id, chat_id))
        return record.count if record else 0

    def sweep(self, now_ms: int) -> int:
        expired = [
            key
            for key, record in self._records.items()
            if now_ms - record.last_seen > self.reset_ms
        ]
        for key in expired:
            del self._records[key]
        self._window.sweep(now_ms)
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)
