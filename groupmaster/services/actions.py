"""Почему: все вызовы Telegram API собраны за одним интерфейсом, конвейер их не знает."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol

from aiogram import Bot
from aiogram.types import ChatPermissions, ReplyParameters

from groupmaster.services.incoming import Member

MUTED = ChatPermissions(can_send_messages=False)
UNMUTED = ChatPermissions(
    can_send_messages=True,
    can_send_audios=True,
    can_send_documents=True,
    can_send_photos=True,
    can_send_videos=True,
    can_send_video_notes=True,
    can_send_voice_notes=True,
    can_send_polls=True,
    can_send_other_messages=True,
    can_add_web_page_previews=True,
)


class ChatActions(Protocol):
    """Исходящие действия в чате. Любой метод может бросить исключение."""

    async def send_text(self, chat_id: int, text: str, reply_to: int | None = None) -> int | None: ...

    async def delete_message(self, chat_id: int, message_id: int) -> None: ...

    async def restrict_member(self, chat_id: int, user_id: int, until: datetime | None) -> None: ...

    async def lift_restrictions(self, chat_id: int, user_id: int) -> None: ...

    async def ban_member(self, chat_id: int, user_id: int) -> None: ...

    async def unban_member(self, chat_id: int, user_id: int) -> None: ...

    async def fetch_admins(self, chat_id: int) -> list[Member]: ...

    async def send_chat_action(self, chat_id: int, action: str) -> None: ...


def mute_until(seconds: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=seconds)


class BotChatActions:
    """Реализация ChatActions поверх aiogram.Bot."""

    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    async def send_text(self, chat_id: int, text: str, reply_to: int | None = None) -> int | None:
        reply_parameters = None
        if reply_to is not None:
            reply_parameters = ReplyParameters(message_id=reply_to, allow_sending_without_reply=True)
        sent = await self.bot.send_message(
            chat_id,
            text,
            parse_mode="HTML",
            reply_parameters=reply_parameters,
        )
        return sent.message_id

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        await self.bot.delete_message(chat_id, message_id)

    async def restrict_member(self, chat_id: int, user_id: int, until: datetime | None) -> None:
        await self.bot.restrict_chat_member(
            chat_id,
            user_id,
            permissions=MUTED,
            until_date=until,
        )

    async def lift_restrictions(self, chat_id: int, user_id: int) -> None:
        await self.bot.restrict_chat_member(chat_id, user_id, permissions=UNMUTED)

    async def ban_member(self, chat_id: int, user_id: int) -> None:
        await self.bot.ban_chat_member(chat_id, user_id)

    async def unban_member(self, chat_id: int, user_id: int) -> None:
        await self.bot.unban_chat_member(chat_id, user_id, only_if_banned=True)

    async def fetch_admins(self, chat_id: int) -> list[Member]:
        admins = await self.bot.get_chat_administrators(chat_id)
        return [
            Member(
                user_id=admin.user.id,
                first_name=admin.user.first_name,
                username=admin.user.username,
                is_bot=admin.user.is_bot,
            )
            for admin in admins
        ]

    async def send_chat_action(self, chat_id: int, action: str) -> None:
        await self.bot.send_chat_action(chat_id, action)
