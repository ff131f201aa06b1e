"""Почему: единое место для работы с временем, таймзоной и задержками."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import Protocol
from zoneinfo import ZoneInfo

from groupmaster.config import settings


def now_tz() -> datetime:
    return datetime.now(tz=ZoneInfo(settings.timezone))


class Clock(Protocol):
    """Источник времени и задержек, подменяется в тестах."""

    def now_ms(self) -> int: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Монотонные миллисекунды и настоящий asyncio.sleep."""

    def now_ms(self) -> int:
        return int(time.monotonic() * 1000)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


def format_uptime(seconds: float) -> str:
    """Форматирует аптайм как 1d 2h 3m / 2h 3m / 3m 4s."""

    total = int(seconds)
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m {secs}s"
