"""Почему: конвейер работает с нормализованным сообщением, а не с объектами Telegram."""

from __future__ import annotations

from dataclasses import dataclass, field

GROUP_CHAT_TYPES = frozenset({"group", "supergroup"})


@dataclass(frozen=True)
class Member:
    user_id: int
    first_name: str
    username: str | None = None
    is_bot: bool = False

    @property
    def mention_name(self) -> str:
        return f"@{self.username}" if self.username else self.first_name


@dataclass(frozen=True)
class IncomingMessage:
    message_id: int
    chat_id: int
    user_id: int
    first_name: str = ""
    username: str | None = None
    sender_is_bot: bool = False
    chat_type: str = "private"
    chat_title: str | None = None
    text: str | None = None
    date: int = 0
    new_members: tuple[Member, ...] = field(default_factory=tuple)
    left_member: Member | None = None
    media_kind: str | None = None
    document_name: str | None = None
    reply_to: Member | None = None
    language_code: str | None = None

    @property
    def is_group(self) -> bool:
        return self.chat_type in GROUP_CHAT_TYPES

    @property
    def sender(self) -> Member:
        return Member(
            user_id=self.user_id,
            first_name=self.first_name,
            username=self.username,
            is_bot=self.sender_is_bot,
        )
