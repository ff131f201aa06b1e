"""Почему: прочие типы апдейтов обрабатываются отдельно от конвейера сообщений."""

from __future__ import annotations

import logging

from aiogram import F, Router
from aiogram.types import (
    CallbackQuery,
    ChatMemberUpdated,
    InlineQuery,
    InlineQueryResultArticle,
    InputTextMessageContent,
    Message,
)

logger = logging.getLogger(__name__)
router = Router()

HELP_HINT = "Need help? Use /help command."


@router.edited_message()
async def on_edited_message(message: Message) -> None:
    user = message.from_user
    logger.info(
        "Сообщение %s изменено пользователем %s в чате %s",
        message.message_id,
        user.id if user else "unknown",
        message.chat.id,
    )


@router.callback_query(F.data == "help")
async def on_help_callback(callback: CallbackQuery) -> None:
    await callback.answer(HELP_HINT, show_alert=True)


@router.callback_query()
async def on_other_callback(callback: CallbackQuery) -> None:
    await callback.answer(f"You selected: {callback.data}")


@router.inline_query()
async def on_inline_query(query: InlineQuery) -> None:
    results = []
    if query.query.strip().lower() == "help":
        results.append(
            InlineQueryResultArticle(
                id="help",
                title="Help Center",
                description="Get help with bot commands",
                input_message_content=InputTextMessageContent(
                    message_text="📚 <b>Bot Help</b>\nUse /help for detailed information.",
                    parse_mode="HTML",
                ),
            )
        )
    await query.answer(results, cache_time=1)


@router.my_chat_member()
async def on_my_chat_member(update: ChatMemberUpdated) -> None:
    status = update.new_chat_member.status
    title = update.chat.title or update.chat.id
    if status == "administrator":
        logger.info("Бот назначен админом в %s", title)
    elif status in {"left", "kicked"}:
        logger.info("Бот удален из %s", title)
    else:
        logger.info("Статус бота в %s: %s", title, status)
