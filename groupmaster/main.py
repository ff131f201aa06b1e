"""Почему: главный модуль собирает роутеры, конвейер, БД и планировщик в одном месте."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiogram import BaseMiddleware, Bot, Dispatcher
from aiogram.exceptions import TelegramAPIError
from aiogram.types import BotCommand, ErrorEvent, TelegramObject, Update, User
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from groupmaster.config import settings
from groupmaster.db import engine, get_session, init_db
from groupmaster.handlers import events, messages
from groupmaster.services.actions import BotChatActions
from groupmaster.services.moderation_log import ModerationLog
from groupmaster.services.pipeline import MessagePipeline, build_pipeline

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

STARTUP_RETRIES = 3
STARTUP_RETRY_DELAY = 2.0
SHUTDOWN_TIMEOUT = 10.0

BOT_COMMANDS = [
    BotCommand(command="help", description="Show available commands"),
    BotCommand(command="rules", description="Show group rules"),
    BotCommand(command="report", description="Report a problem to admins"),
    BotCommand(command="admin", description="Mention group admins"),
    BotCommand(command="me", description="Your information"),
    BotCommand(command="stats", description="Bot statistics"),
]


class LoggingMiddleware(BaseMiddleware):
    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        if isinstance(event, Update) and event.message:
            msg = event.message
            user = msg.from_user
            user_info = f"{user.full_name} (id={user.id})" if user else "unknown"
            text = msg.text or msg.caption or "[no text]"
            logger.info(f"IN: chat={msg.chat.id} user={user_info} text={text[:100]!r}")
        return await handler(event, data)


async def _get_identity(bot: Bot) -> User | None:
    """Запрашивает профиль бота с повторами; без сети бот стартует без identity."""

    for attempt in range(1, STARTUP_RETRIES + 1):
        try:
            return await bot.get_me()
        except TelegramAPIError as exc:
            logger.warning("getMe: попытка %s/%s не удалась: %s", attempt, STARTUP_RETRIES, exc)
            if attempt < STARTUP_RETRIES:
                await asyncio.sleep(STARTUP_RETRY_DELAY)
    logger.error("Telegram недоступен, бот стартует без данных о себе")
    return None


async def on_startup(bot: Bot) -> User | None:
    identity = await _get_identity(bot)
    await init_db(engine)
    if identity is None:
        return None
    try:
        await bot.set_my_commands(BOT_COMMANDS)
    except TelegramAPIError:
        logger.exception("Не удалось обновить список команд")
    if settings.admin_log_chat_id is not None:
        try:
            await bot.send_message(
                settings.admin_log_chat_id,
                f"🟢 Бот запущен\nВерсия: {settings.build_version}",
            )
        except TelegramAPIError:
            logger.exception("Не удалось отправить уведомление о запуске")
    logger.info("Бот @%s (id=%s) готов", identity.username, identity.id)
    return identity


def create_pipeline(bot: Bot, identity: User | None) -> MessagePipeline:
    return build_pipeline(
        BotChatActions(bot),
        settings,
        bot_id=identity.id if identity else None,
        bot_username=identity.username if identity else None,
        moderation_log=ModerationLog(get_session),
    )


def schedule_jobs(pipeline: MessagePipeline) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone=settings.timezone)
    scheduler.add_job(
        pipeline.sweep,
        "interval",
        seconds=settings.maintenance_interval_seconds,
    )
    scheduler.start()
    return scheduler


async def error_handler(event: ErrorEvent) -> bool:
    """Глобальный обработчик ошибок: логирует и отправляет в админ-чат."""
    logger.exception(f"Ошибка: {event.exception}")

    if settings.admin_log_chat_id is None:
        return True

    error_text = (
        f"🔴 Ошибка в боте\n"
        f"Тип: {type(event.exception).__name__}\n"
        f"Сообщение: {event.exception}"
    )
    if event.update and event.update.message:
        msg = event.update.message
        error_text += "\n\nКонтекст:\n"
        error_text += f"Chat: {msg.chat.id}\n"
        error_text += f"User: {msg.from_user.id if msg.from_user else 'N/A'}\n"
        error_text += f"Text: {(msg.text or '')[:100]}"

    try:
        await event.update.bot.send_message(settings.admin_log_chat_id, error_text)
    except Exception:  # noqa: BLE001
        logger.warning("Не удалось отправить ошибку в админ-чат")

    return True


async def main() -> None:
    bot = Bot(token=settings.bot_token)
    dp = Dispatcher()
    dp.update.outer_middleware(LoggingMiddleware())
    dp.errors.register(error_handler)

    # events раньше messages: у messages catch-all на все сообщения
    dp.include_router(events.router)
    dp.include_router(messages.router)

    identity = await on_startup(bot)
    pipeline = create_pipeline(bot, identity)
    scheduler = schedule_jobs(pipeline)
    try:
        await dp.start_polling(bot, pipeline=pipeline)
    finally:
        await pipeline.shutdown(SHUTDOWN_TIMEOUT)
        scheduler.shutdown()
        await engine.dispose()
        await bot.session.close()


if __name__ == "__main__":
    asyncio.run(main())
