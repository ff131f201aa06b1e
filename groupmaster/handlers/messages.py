"""Почему: тонкий слой между aiogram и конвейером, вся логика в MessagePipeline."""

from __future__ import annotations

from aiogram import Router
from aiogram.types import Message, User

from groupmaster.services.incoming import IncomingMessage, Member
from groupmaster.services.pipeline import MessagePipeline

router = Router()

# animation проверяется раньше document: у GIF заполнены оба поля
MEDIA_ATTRIBUTES = ("photo", "video", "animation", "document", "voice", "sticker", "poll")


def _member(user: User) -> Member:
    return Member(
        user_id=user.id,
        first_name=user.first_name,
        username=user.username,
        is_bot=user.is_bot,
    )


def _media_kind(message: Message) -> str | None:
    for attribute in MEDIA_ATTRIBUTES:
        if getattr(message, attribute, None):
            return attribute
    return None


def to_incoming(message: Message) -> IncomingMessage:
    """Нормализует сообщение Telegram для конвейера."""

    user = message.from_user
    if user is not None:
        user_id, first_name, username, is_bot = user.id, user.first_name, user.username, user.is_bot
        language_code = user.language_code
    elif message.sender_chat is not None:
        # Анонимный админ или канал пишет от имени чата
        user_id = message.sender_chat.id
        first_name = message.sender_chat.title or str(message.sender_chat.id)
        username, is_bot, language_code = message.sender_chat.username, False, None
    else:
        user_id, first_name, username, is_bot, language_code = 0, "", None, False, None

    reply_to = None
    if message.reply_to_message and message.reply_to_message.from_user:
        reply_to = _member(message.reply_to_message.from_user)

    return IncomingMessage(
        message_id=message.message_id,
        chat_id=message.chat.id,
        user_id=user_id,
        first_name=first_name,
        username=username,
        sender_is_bot=is_bot,
        chat_type=message.chat.type,
        chat_title=message.chat.title,
        text=message.text or message.caption,
        date=int(message.date.timestamp()) if message.date else 0,
        new_members=tuple(_member(user) for user in message.new_chat_members or ()),
        left_member=_member(message.left_chat_member) if message.left_chat_member else None,
        media_kind=_media_kind(message),
        document_name=message.document.file_name if message.document else None,
        reply_to=reply_to,
        language_code=language_code,
    )


@router.message()
async def on_message(message: Message, pipeline: MessagePipeline) -> None:
    await pipeline.handle(to_incoming(message))
