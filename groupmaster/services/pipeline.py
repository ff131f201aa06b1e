"""Почему: вся классификация входящего сообщения идет по одному конвейеру.

Порядок стадий фиксирован, каждая может завершить обработку:

1. сообщения ботов игнорируются;
2. заблокированные пользователи и кулдаун;
3. вход/выход участников;
4. команды;
5. модерация в группах: флуд, запрещенные слова, ссылки;
6. автоответ по ключевым словам;
7. ответ на медиа без текста.

Сообщения одной пары (user_id, chat_id) обрабатываются строго по очереди,
разные пары параллельно. Исключения стадий не выходят наружу.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import random
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path

from groupmaster.services.actions import ChatActions, mute_until
from groupmaster.services.commands import CommandOptions, CommandRouter
from groupmaster.services.content_filter import ContentFilter
from groupmaster.services.cooldown import RateLimiter
from groupmaster.services.flood import SpamDecision, SpamDetector
from groupmaster.services.incoming import IncomingMessage, Member
from groupmaster.services.message_queue import BoundedQueue
from groupmaster.services.moderation_log import (
    EVENT_BAD_WORD,
    EVENT_LINK,
    EVENT_SPAM,
    ModerationLog,
    ModerationRecord,
)
from groupmaster.services.replies import ReplyMatcher, ReplyTable, Sender, load_reply_table
from groupmaster.services.stats import BotStats
from groupmaster.services.welcome import WelcomeComposer, WelcomeTemplates, load_welcome_templates
from groupmaster.utils.admin import AdminChecker
from groupmaster.utils.profanity import load_bad_words
from groupmaster.utils.text import escape_html
from groupmaster.utils.time import Clock, SystemClock, now_tz

logger = logging.getLogger(__name__)

WELCOME_DELAY_SECONDS = 1.0

MEDIA_REPLIES = {
    "photo": "📸 Nice photo!",
    "video": "🎥 Great video!",
    "document": "📄 Document: {name}",
    "voice": "🎤 Voice message received!",
    "sticker": "😄 Nice sticker!",
    "animation": "🎬 Cool animation!",
    "poll": "📊 Interesting poll!",
}
ERROR_NOTICE = "⚠️ Sorry, something went wrong while processing your message."


class Outcome(enum.Enum):
    IGNORED = "ignored"
    IGNORED_BOT = "ignored_bot"
    BLOCKED = "blocked"
    COOLDOWN = "cooldown"
    MEMBERSHIP = "membership"
    COMMAND = "command"
    SPAM = "spam"
    BAD_WORD = "bad_word"
    LINK = "link"
    AUTO_REPLY = "auto_reply"
    MEDIA = "media"
    FAILED = "failed"
    SHUTDOWN = "shutdown"


@dataclass(frozen=True)
class PipelineOptions:
    mute_seconds: int = 120
    reply_delay_min_ms: int = 500
    reply_delay_max_ms: int = 2000
    welcome: bool = True
    goodbye: bool = False
    auto_reply: bool = True
    moderation: bool = True
    media_replies: bool = True
    cleanup_old_replies: bool = False
    replies_path: Path | None = None
    bad_words_path: Path | None = None
    welcome_path: Path | None = None
    commands: CommandOptions = field(default_factory=CommandOptions)

    @classmethod
    def from_settings(cls, settings) -> PipelineOptions:
        features = {
            "Welcome System": settings.feature_welcome,
            "Goodbye Messages": settings.feature_goodbye,
            "Auto Reply": settings.feature_auto_reply,
            "Moderation": settings.feature_moderation,
            "Media Replies": settings.feature_media_replies,
        }
        return cls(
            mute_seconds=settings.spam_mute_seconds,
            reply_delay_min_ms=settings.reply_delay_min_ms,
            reply_delay_max_ms=settings.reply_delay_max_ms,
            welcome=settings.feature_welcome,
            goodbye=settings.feature_goodbye,
            auto_reply=settings.feature_auto_reply,
            moderation=settings.feature_moderation,
            media_replies=settings.feature_media_replies,
            cleanup_old_replies=settings.cleanup_old_replies,
            replies_path=settings.replies_path,
            bad_words_path=settings.bad_words_path,
            welcome_path=settings.welcome_path,
            commands=CommandOptions(
                version=settings.build_version,
                admin_log_chat_id=settings.admin_log_chat_id,
                developer_ids=settings.developer_ids,
                features=features,
            ),
        )


class KeyedLocks:
    """asyncio.Lock на ключ; лок удаляется, когда его никто не ждет."""

    def __init__(self) -> None:
        self._locks: dict[tuple[int, int], asyncio.Lock] = {}
        self._users: dict[tuple[int, int], int] = {}

    @asynccontextmanager
    async def hold(self, key: tuple[int, int]) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class MessagePipeline:
    def __init__(
        self,
        *,
        actions: ChatActions,
        spam_detector: SpamDetector,
        rate_limiter: RateLimiter,
        content_filter: ContentFilter,
        matcher: ReplyMatcher,
        welcome: WelcomeComposer,
        message_queue: BoundedQueue,
        admins: AdminChecker,
        clock: Clock,
        rng: random.Random,
        options: PipelineOptions | None = None,
        stats: BotStats | None = None,
        moderation_log: ModerationLog | None = None,
        bot_id: int | None = None,
        bot_username: str | None = None,
    ) -> None:
        self.actions = actions
        self.spam_detector = spam_detector
        self.rate_limiter = rate_limiter
        self.content_filter = content_filter
        self.matcher = matcher
        self.welcome = welcome
        self.message_queue = message_queue
        self.admins = admins
        self.clock = clock
        self.rng = rng
        self.options = options or PipelineOptions()
        self.stats = stats or BotStats()
        self.moderation_log = moderation_log
        self.bot_id = bot_id
        self.commands = CommandRouter(
            send=self.send,
            actions=actions,
            admins=admins,
            stats=self.stats,
            reload=self.reload_tables,
            options=self.options.commands,
            moderation_log=moderation_log,
            bot_username=bot_username,
        )
        self._locks = KeyedLocks()
        self._inflight: set[asyncio.Task] = set()
        self._closing = False

    @property
    def closing(self) -> bool:
        return self._closing

    async def handle(self, message: IncomingMessage) -> Outcome:
        """Обрабатывает одно сообщение. Никогда не бросает исключений, кроме отмены."""

        if self._closing:
            return Outcome.SHUTDOWN
        # Время прихода фиксируется до очереди: флуд и кулдаун считаются по нему
        arrived_ms = self.clock.now_ms()
        task = asyncio.current_task()
        if task is not None:
            self._inflight.add(task)
        try:
            async with self._locks.hold((message.user_id, message.chat_id)):
                # Пока ждали очередь, мог начаться shutdown
                if self._closing:
                    return Outcome.SHUTDOWN
                return await self._process(message, arrived_ms)
        finally:
            if task is not None:
                self._inflight.discard(task)

    async def _process(self, message: IncomingMessage, arrived_ms: int) -> Outcome:
        self.stats.messages += 1
        try:
            return await self._run_stages(message, arrived_ms)
        except Exception:  # noqa: BLE001 - конвейер не отдает ошибки в цикл событий
            self.stats.errors += 1
            logger.exception(
                "Ошибка обработки сообщения %s в чате %s", message.message_id, message.chat_id
            )
            await self.send(message.chat_id, ERROR_NOTICE, message.message_id)
            return Outcome.FAILED

    async def _run_stages(self, message: IncomingMessage, now: int) -> Outcome:
        if message.sender_is_bot:
            return Outcome.IGNORED_BOT
        if self.rate_limiter.is_blocked(message.user_id):
            return Outcome.BLOCKED

        if not self.rate_limiter.hit(message.user_id, message.chat_id, now):
            # Кулдаун глушит ответы бота, но флуд все равно считается
            if self._counts_for_spam(message) and self._is_spam(message, now):
                await self._punish_spammer(message)
                return Outcome.SPAM
            return Outcome.COOLDOWN

        if message.new_members or message.left_member is not None:
            await self._handle_membership(message)
            return Outcome.MEMBERSHIP

        if _is_command(message):
            self.stats.commands += 1
            handled = await self.commands.dispatch(message)
            return Outcome.COMMAND if handled else Outcome.IGNORED

        if self._counts_for_spam(message):
            outcome = await self._moderate(message, now)
            if outcome is not None:
                return outcome

        if self.options.auto_reply and message.text:
            if await self._auto_reply(message):
                return Outcome.AUTO_REPLY

        if self.options.media_replies and message.media_kind and not message.text:
            if await self._media_reply(message):
                return Outcome.MEDIA

        return Outcome.IGNORED

    def _counts_for_spam(self, message: IncomingMessage) -> bool:
        if not (self.options.moderation and message.is_group):
            return False
        if message.new_members or message.left_member is not None:
            return False
        return not _is_command(message)

    def _is_spam(self, message: IncomingMessage, now: int) -> bool:
        decision = self.spam_detector.record(message.user_id, message.chat_id, now)
        return decision is SpamDecision.SPAM

    async def _moderate(self, message: IncomingMessage, now: int) -> Outcome | None:
        if self._is_spam(message, now):
            await self._punish_spammer(message)
            return Outcome.SPAM

        bad_word = self.content_filter.check_bad_words(message.text)
        if bad_word is not None:
            name = escape_html(message.first_name or "User")
            await self._remove_with_warning(
                message,
                (
                    "<b>⚠️ Bad Word Warning!</b>\n\n"
                    f"<i>{name}, please avoid using inappropriate language.</i>\n\n"
                    "<code>Next time will result in a mute</code>"
                ),
                EVENT_BAD_WORD,
                reason=bad_word,
            )
            return Outcome.BAD_WORD

        if self.content_filter.contains_url(message.text):
            if await self.admins.is_admin(message.chat_id, message.user_id, message.chat_type):
                return None
            name = escape_html(message.first_name or "User")
            await self._remove_with_warning(
                message,
                (
                    "<b>🔗 URL Detected!</b>\n\n"
                    f"<i>{name}, only admins can post links in this group.</i>\n\n"
                    "<code>URL removed</code>"
                ),
                EVENT_LINK,
            )
            return Outcome.LINK
        return None

    async def _punish_spammer(self, message: IncomingMessage) -> None:
        seconds = self.options.mute_seconds
        logger.info(
            "Флуд: user=%s chat=%s, мут на %s с", message.user_id, message.chat_id, seconds
        )
        self.stats.moderated += 1
        try:
            await self.actions.restrict_member(message.chat_id, message.user_id, mute_until(seconds))
        except Exception:  # noqa: BLE001 - запись детектора уже сброшена
            logger.exception("Не удалось замьютить user=%s в чате %s", message.user_id, message.chat_id)
        name = escape_html(message.first_name or "User")
        await self.send(
            message.chat_id,
            (
                "<b>🚫 Spam Detected!</b>\n\n"
                f"<i>{name}, you are sending messages too fast.</i>\n\n"
                f"<code>You have been muted for {_format_duration(seconds)}</code>"
            ),
            message.message_id,
        )
        await self._log_event(message, EVENT_SPAM, reason=f"{seconds}s")

    async def _remove_with_warning(
        self,
        message: IncomingMessage,
        warning: str,
        event_type: str,
        reason: str | None = None,
    ) -> None:
        logger.info(
            "Удаление сообщения %s (%s) user=%s chat=%s",
            message.message_id,
            event_type,
            message.user_id,
            message.chat_id,
        )
        self.stats.moderated += 1
        try:
            await self.actions.delete_message(message.chat_id, message.message_id)
        except Exception:  # noqa: BLE001 - предупреждение отправляем в любом случае
            logger.exception("Не удалось удалить сообщение %s", message.message_id)
        await self.send(message.chat_id, warning)
        await self._log_event(message, event_type, reason=reason)

    async def _auto_reply(self, message: IncomingMessage) -> bool:
        match = self.matcher.match(message.text)
        if match is None:
            return False
        await self._typing(message.chat_id)
        delay_ms = self.rng.randint(self.options.reply_delay_min_ms, self.options.reply_delay_max_ms)
        await self.clock.sleep(delay_ms / 1000)
        text = self.matcher.render(
            match.candidate,
            Sender(first_name=message.first_name or "friend", username=message.username),
            now_tz(),
        )
        await self.send(message.chat_id, text, message.message_id)
        return True

    async def _media_reply(self, message: IncomingMessage) -> bool:
        template = MEDIA_REPLIES.get(message.media_kind or "")
        if template is None:
            return False
        text = template.replace("{name}", escape_html(message.document_name or "file"))
        await self.send(message.chat_id, text, message.message_id)
        return True

    async def _handle_membership(self, message: IncomingMessage) -> None:
        for member in message.new_members:
            if self.bot_id is not None and member.user_id == self.bot_id:
                logger.info("Бот добавлен в чат %s", message.chat_id)
                admins = await self._fetch_admins_quietly(message.chat_id)
                await self.send(message.chat_id, self.welcome.bot_added(message.chat_title, admins))
                continue
            if member.is_bot or not self.options.welcome:
                continue
            await self._typing(message.chat_id)
            await self.clock.sleep(WELCOME_DELAY_SECONDS)
            text = self.welcome.welcome(member, message.chat_title, private=not message.is_group)
            await self.send(message.chat_id, text)

        left = message.left_member
        if left is None:
            return
        if self.bot_id is not None and left.user_id == self.bot_id:
            logger.info("Бот удален из чата %s", message.chat_id)
            self.message_queue.clear(message.chat_id)
            return
        if self.options.goodbye and not left.is_bot:
            await self.send(message.chat_id, self.welcome.goodbye(left, message.chat_title))

    async def send(self, chat_id: int, text: str, reply_to: int | None = None) -> int | None:
        """Отправляет сообщение; ошибки логируются, id запоминается в очереди чата."""

        try:
            message_id = await self.actions.send_text(chat_id, text, reply_to)
        except Exception:  # noqa: BLE001
            logger.exception("Не удалось отправить сообщение в чат %s", chat_id)
            return None
        if message_id is None:
            return None
        evicted = self.message_queue.push(chat_id, message_id)
        if evicted is not None and self.options.cleanup_old_replies:
            try:
                await self.actions.delete_message(chat_id, evicted)
            except Exception:  # noqa: BLE001
                logger.warning("Не удалось удалить старое сообщение бота %s", evicted)
        return message_id

    async def _typing(self, chat_id: int) -> None:
        try:
            await self.actions.send_chat_action(chat_id, "typing")
        except Exception:  # noqa: BLE001
            logger.warning("Не удалось отправить typing в чат %s", chat_id)

    async def _fetch_admins_quietly(self, chat_id: int) -> list[Member]:
        try:
            return await self.admins.fetch_admins(chat_id)
        except Exception:  # noqa: BLE001
            logger.warning("Не удалось получить админов чата %s", chat_id)
            return []

    async def _log_event(self, message: IncomingMessage, event_type: str, reason: str | None = None) -> None:
        if self.moderation_log is None:
            return
        await self.moderation_log.record(
            ModerationRecord(
                chat_id=message.chat_id,
                user_id=message.user_id,
                event_type=event_type,
                message_id=message.message_id,
                reason=reason,
            )
        )

    def reload_tables(self) -> dict[str, int]:
        """Перечитывает автоответы, запрещенные слова и шаблоны с диска."""

        counts: dict[str, int] = {}
        if self.options.replies_path is not None:
            self.matcher.reload(load_reply_table(self.options.replies_path))
            counts["replies"] = len(self.matcher.table)
        if self.options.bad_words_path is not None:
            self.content_filter.reload(load_bad_words(self.options.bad_words_path))
            counts["bad_words"] = len(self.content_filter.bad_words)
        if self.options.welcome_path is not None:
            self.welcome.templates = load_welcome_templates(self.options.welcome_path)
            counts["welcome"] = len(self.welcome.templates.group)
        logger.info("Таблицы перечитаны: %s", counts)
        return counts

    def sweep(self, now_ms: int | None = None) -> None:
        """Периодическая чистка кулдаунов и окон флуда."""

        now = self.clock.now_ms() if now_ms is None else now_ms
        cooldowns = self.rate_limiter.sweep(now)
        records = self.spam_detector.sweep(now)
        if cooldowns or records:
            logger.debug("Очистка: кулдаунов %s, записей флуда %s", cooldowns, records)

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Перестает принимать сообщения, ждет текущие, остальные отменяет."""

        self._closing = True
        current = asyncio.current_task()
        pending = {task for task in self._inflight if task is not current and not task.done()}
        if not pending:
            return
        logger.info("Ожидание %s сообщений в обработке", len(pending))
        _done, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning("Отменено %s сообщений при остановке", len(still_running))


def _is_command(message: IncomingMessage) -> bool:
    return bool(message.text) and message.text.startswith("/")


def _format_duration(seconds: int) -> str:
    if seconds % 60 == 0:
        minutes = seconds // 60
        return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
    return f"{seconds} seconds"


def build_pipeline(
    actions: ChatActions,
    settings,
    *,
    bot_id: int | None = None,
    bot_username: str | None = None,
    moderation_log: ModerationLog | None = None,
    clock: Clock | None = None,
    rng: random.Random | None = None,
    reply_table: ReplyTable | None = None,
    bad_words: tuple[str, ...] | None = None,
    welcome_templates: WelcomeTemplates | None = None,
) -> MessagePipeline:
    """Собирает конвейер из настроек; таблицы читаются с диска, если не переданы."""

    clock = clock or SystemClock()
    rng = rng or random.Random()
    if reply_table is None:
        reply_table = load_reply_table(settings.replies_path)
    if bad_words is None:
        bad_words = load_bad_words(settings.bad_words_path)
    if welcome_templates is None:
        welcome_templates = load_welcome_templates(settings.welcome_path)
    return MessagePipeline(
        actions=actions,
        spam_detector=SpamDetector(
            limit=settings.spam_message_limit,
            window_ms=settings.spam_window_ms,
            reset_ms=settings.spam_reset_ms,
        ),
        rate_limiter=RateLimiter(
            cooldown_ms=settings.cooldown_ms,
            retention_ms=settings.cooldown_retention_seconds * 1000,
            blocked_users=settings.blocked_user_ids,
        ),
        content_filter=ContentFilter(bad_words),
        matcher=ReplyMatcher(reply_table, rng=rng),
        welcome=WelcomeComposer(welcome_templates, rng=rng),
        message_queue=BoundedQueue(settings.message_queue_size),
        admins=AdminChecker(actions, clock, ttl_seconds=settings.admin_cache_ttl_seconds),
        clock=clock,
        rng=rng,
        options=PipelineOptions.from_settings(settings),
        moderation_log=moderation_log,
        bot_id=bot_id,
        bot_username=bot_username,
    )
