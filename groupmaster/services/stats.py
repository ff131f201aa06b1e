"""Почему: счетчики для /stats живут в памяти и сбрасываются при рестарте."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from groupmaster.utils.time import format_uptime


@dataclass
class BotStats:
    messages: int = 0
    commands: int = 0
    errors: int = 0
    moderated: int = 0
    started_at: float = field(default_factory=time.monotonic)

    def uptime(self) -> str:
        return format_uptime(time.monotonic() - self.started_at)
