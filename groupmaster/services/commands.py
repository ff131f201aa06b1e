"""Почему: таблица команд отделена от конвейера, чтобы маршрутизация была в одном месте."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from groupmaster.services.actions import ChatActions, mute_until
from groupmaster.services.incoming import IncomingMessage, Member
from groupmaster.services.moderation_log import (
    EVENT_BAN,
    EVENT_MUTE,
    EVENT_UNBAN,
    EVENT_UNMUTE,
    EVENT_WARN,
    ModerationLog,
    ModerationRecord,
)
from groupmaster.services.stats import BotStats
from groupmaster.utils.admin import AdminChecker
from groupmaster.utils.text import escape_html
from groupmaster.utils.time import now_tz

logger = logging.getLogger(__name__)

SendFn = Callable[[int, str, int | None], Awaitable[int | None]]
ReloadFn = Callable[[], dict[str, int]]
Handler = Callable[[IncomingMessage, list[str]], Awaitable[None]]

PUBLIC_COMMANDS = (
    "start",
    "help",
    "about",
    "ping",
    "id",
    "rules",
    "report",
    "admin",
    "me",
    "info",
    "stats",
    "settings",
)
ADMIN_COMMANDS = ("warn", "mute", "unmute", "ban", "unban", "reload")
SUGGESTION_ALIASES = {
    "status": "stats",
    "commands": "help",
    "admins": "admin",
    "whoami": "me",
}
DEFAULT_MUTE_MINUTES = 60
# Telegram считает ограничение короче 30 с или длиннее 366 дней вечным
MAX_MUTE_MINUTES = 366 * 24 * 60

RULES_TEXT = (
    "<b>📜 Group Rules</b>\n\n"
    "1. Be respectful to everyone\n"
    "2. No spam or self-promotion\n"
    "3. No NSFW content\n"
    "4. No political/religious debates\n"
    "5. Use appropriate language\n"
    "6. Follow admin instructions\n\n"
    "⚠️ Violation may result in mute/ban"
)
GROUP_HELP_TEXT = (
    "<b>📚 Group Commands:</b>\n"
    "/help - Show this message\n"
    "/rules - Show group rules\n"
    "/report [reason] - Report a problem to admins\n"
    "/admin - Mention all admins\n"
    "/info - Group information\n"
    "/me - Your information\n"
    "/id - Chat and user IDs\n"
    "/ping - Check bot status"
)
PRIVATE_HELP_TEXT = (
    "<b>📚 Private Chat Commands:</b>\n"
    "/start - Start the bot\n"
    "/help - Show this message\n"
    "/about - About the bot\n"
    "/stats - Bot statistics\n"
    "/settings - Enabled features\n\n"
    "Add me to your group and make me admin for moderation features."
)
ADMIN_HELP_TEXT = (
    "<b>🛡 Admin Commands:</b>\n"
    "/warn - Warn a user (reply)\n"
    "/mute [minutes] - Mute a user (reply)\n"
    "/unmute - Unmute a user (reply)\n"
    "/ban - Ban a user (reply or id)\n"
    "/unban - Unban a user (reply or id)\n"
    "/reload - Reload replies and word lists"
)


@dataclass(frozen=True)
class CommandOptions:
    version: str = "dev"
    admin_log_chat_id: int | None = None
    developer_ids: frozenset[int] = frozenset()
    features: dict[str, bool] = field(default_factory=dict)


def parse_command(text: str) -> tuple[str, str | None, list[str]]:
    """Разбирает '/Cmd@bot a b' в ('cmd', 'bot', ['a', 'b'])."""

    token, *args = text.split()
    name, _, target = token[1:].partition("@")
    return name.lower(), (target.lower() or None), args


def suggest_command(name: str) -> str | None:
    if name in SUGGESTION_ALIASES:
        return SUGGESTION_ALIASES[name]
    if not name:
        return None
    for candidate in PUBLIC_COMMANDS:
        if name in candidate or candidate in name:
            return candidate
    return None


class CommandRouter:
    def __init__(
        self,
        *,
        send: SendFn,
        actions: ChatActions,
        admins: AdminChecker,
        stats: BotStats,
        reload: ReloadFn,
        options: CommandOptions,
        moderation_log: ModerationLog | None = None,
        bot_username: str | None = None,
    ) -> None:
        self._send = send
        self.actions = actions
        self.admins = admins
        self.stats = stats
        self._reload = reload
        self.options = options
        self.moderation_log = moderation_log
        self.bot_username = bot_username.lower() if bot_username else None
        self._public: dict[str, Handler] = {
            "start": self.cmd_start,
            "help": self.cmd_help,
            "about": self.cmd_about,
            "ping": self.cmd_ping,
            "id": self.cmd_id,
            "rules": self.cmd_rules,
            "report": self.cmd_report,
            "admin": self.cmd_admin,
            "me": self.cmd_me,
            "info": self.cmd_info,
            "stats": self.cmd_stats,
            "settings": self.cmd_settings,
        }
        self._admin: dict[str, Handler] = {
            "warn": self.cmd_warn,
            "mute": self.cmd_mute,
            "unmute": self.cmd_unmute,
            "ban": self.cmd_ban,
            "unban": self.cmd_unban,
            "reload": self.cmd_reload,
        }

    async def dispatch(self, message: IncomingMessage) -> bool:
        """Выполняет команду. False, если команда адресована другому боту."""

        name, target, args = parse_command(message.text or "")
        if target and self.bot_username and target != self.bot_username:
            return False
        logger.info(
            "Команда /%s от user=%s chat=%s (%s)",
            name,
            message.user_id,
            message.chat_id,
            message.chat_type,
        )
        handler = self._public.get(name)
        if handler is None and name in self._admin and await self._is_privileged(message):
            handler = self._admin[name]
        if handler is None:
            await self.unknown_command(message, name)
            return True
        await handler(message, args)
        return True

    async def unknown_command(self, message: IncomingMessage, name: str) -> None:
        lines = [
            f"❌ <b>Unknown Command:</b> <code>/{escape_html(name)}</code>",
            "",
            "✅ <b>Available Commands:</b>",
            "• /start - Start bot",
            "• /help - All commands",
            "• /about - Bot info",
            "• /ping - Check bot status",
            "• /id - Get user/chat ID",
            "",
        ]
        suggestion = suggest_command(name)
        if suggestion:
            lines.append(f"💡 <b>Did you mean:</b> /{suggestion} ?")
        else:
            lines.append("📚 Use /help for complete command list")
        await self._send(message.chat_id, "\n".join(lines), message.message_id)

    async def _is_privileged(self, message: IncomingMessage) -> bool:
        if message.user_id in self.options.developer_ids:
            return True
        return await self.admins.is_admin(message.chat_id, message.user_id, message.chat_type)

    async def _reply(self, message: IncomingMessage, text: str) -> None:
        await self._send(message.chat_id, text, message.message_id)

    async def _log(self, message: IncomingMessage, event_type: str, target: Member, reason: str | None = None) -> None:
        if self.moderation_log is None:
            return
        await self.moderation_log.record(
            ModerationRecord(
                chat_id=message.chat_id,
                user_id=target.user_id,
                event_type=event_type,
                message_id=message.message_id,
                reason=reason,
                actor_id=message.user_id,
            )
        )

    async def cmd_start(self, message: IncomingMessage, _args: list[str]) -> None:
        name = escape_html(message.first_name or "there")
        if message.is_group:
            text = (
                "<b>👋 Hello everyone!</b> I'm here to help manage this group.\n\n"
                "Use /help for available commands."
            )
        else:
            text = (
                f"<b>👋 Assalamualaikum {name}!</b>\n\n"
                "<b>📌 Features:</b>\n"
                "• Auto Welcome Messages\n"
                "• Auto Reply System\n"
                "• Spam Protection\n"
                "• Bad Word Filter\n\n"
                "<code>Type /help for commands</code>"
            )
        await self._send(message.chat_id, text, None)

    async def cmd_help(self, message: IncomingMessage, _args: list[str]) -> None:
        if not message.is_group:
            await self._send(message.chat_id, PRIVATE_HELP_TEXT, None)
            return
        text = GROUP_HELP_TEXT
        if await self._is_privileged(message):
            text += "\n\n" + ADMIN_HELP_TEXT
        await self._send(message.chat_id, text, None)

    async def cmd_about(self, message: IncomingMessage, _args: list[str]) -> None:
        text = (
            "<b>🤖 About Group Master Bot</b>\n\n"
            f"<b>Version:</b> {escape_html(self.options.version)}\n"
            "Group management: welcome messages, keyword auto-replies, "
            "spam protection, bad word and link filtering."
        )
        await self._send(message.chat_id, text, None)

    async def cmd_ping(self, message: IncomingMessage, _args: list[str]) -> None:
        text = (
            "🏓 <b>Pong!</b>\n\n"
            f"<b>Server Time:</b> {now_tz().strftime('%H:%M:%S')}\n"
            f"<b>Uptime:</b> {self.stats.uptime()}\n"
            "<b>Status:</b> ✅ Operational"
        )
        await self._reply(message, text)

    async def cmd_id(self, message: IncomingMessage, _args: list[str]) -> None:
        lines = ["🆔 <b>ID Information</b>", ""]
        if message.is_group:
            lines += [
                f"<b>Chat ID:</b> <code>{message.chat_id}</code>",
                f"<b>Chat Title:</b> {escape_html(message.chat_title or '')}",
                f"<b>Chat Type:</b> {message.chat_type}",
                "",
            ]
        lines.append(f"<b>Your ID:</b> <code>{message.user_id}</code>")
        if message.reply_to is not None:
            lines.append(f"<b>Replied user ID:</b> <code>{message.reply_to.user_id}</code>")
        await self._reply(message, "\n".join(lines))

    async def cmd_rules(self, message: IncomingMessage, _args: list[str]) -> None:
        await self._send(message.chat_id, RULES_TEXT, None)

    async def cmd_report(self, message: IncomingMessage, args: list[str]) -> None:
        if not args:
            await self._reply(
                message,
                "⚠️ <b>Usage:</b> /report [reason]\nExample: /report @username spamming",
            )
            return
        reason = escape_html(" ".join(args))
        await self._reply(
            message,
            f"✅ <b>Report Submitted</b>\n\nYour report has been sent to admins.\nReason: {reason}",
        )
        if self.options.admin_log_chat_id is not None:
            await self._send(
                self.options.admin_log_chat_id,
                (
                    "🚨 <b>New report</b>\n"
                    f"Chat: {escape_html(message.chat_title or message.chat_id)} (<code>{message.chat_id}</code>)\n"
                    f"From: {escape_html(message.sender.mention_name)} (<code>{message.user_id}</code>)\n"
                    f"Reason: {reason}"
                ),
                None,
            )

    async def cmd_admin(self, message: IncomingMessage, _args: list[str]) -> None:
        if not message.is_group:
            await self._reply(message, "<i>❌ This command only works in groups</i>")
            return
        try:
            admins = await self.admins.fetch_admins(message.chat_id)
        except Exception:  # noqa: BLE001
            logger.exception("Не удалось получить список админов чата %s", message.chat_id)
            await self._reply(
                message, "❌ Could not fetch admins list.\nMake sure I'm admin in this group."
            )
            return
        lines = ["🚨 <b>Attention Admins!</b>", ""]
        lines += [f"• {escape_html(admin.mention_name)}" for admin in admins if not admin.is_bot]
        lines += ["", f"User {escape_html(message.first_name)} needs assistance!"]
        await self._send(message.chat_id, "\n".join(lines), None)

    async def cmd_me(self, message: IncomingMessage, _args: list[str]) -> None:
        username = f"@{message.username}" if message.username else "Not set"
        text = (
            "👤 <b>Your Information</b>\n\n"
            f"🆔 ID: <code>{message.user_id}</code>\n"
            f"👤 Name: {escape_html(message.first_name)}\n"
            f"📛 Username: {escape_html(username)}\n"
            f"🌐 Language: {escape_html(message.language_code or 'Unknown')}"
        )
        await self._reply(message, text)

    async def cmd_info(self, message: IncomingMessage, _args: list[str]) -> None:
        if not message.is_group:
            await self._reply(message, "This is a private chat. Use /me for your info.")
            return
        text = (
            "💬 <b>Chat Information</b>\n\n"
            f"🆔 ID: <code>{message.chat_id}</code>\n"
            f"📛 Title: {escape_html(message.chat_title or 'Unknown')}\n"
            f"📝 Type: {message.chat_type}"
        )
        await self._send(message.chat_id, text, None)

    async def cmd_stats(self, message: IncomingMessage, _args: list[str]) -> None:
        lines = [
            "📊 <b>Bot Statistics</b>",
            "",
            f"<b>Uptime:</b> {self.stats.uptime()}",
            f"<b>Messages Processed:</b> {self.stats.messages}",
            f"<b>Commands Executed:</b> {self.stats.commands}",
            f"<b>Moderation Actions:</b> {self.stats.moderated}",
            f"<b>Errors:</b> {self.stats.errors}",
            f"<b>Version:</b> {escape_html(self.options.version)}",
        ]
        if message.is_group and self.moderation_log is not None:
            summary = await self.moderation_log.summary(message.chat_id)
            if summary:
                lines += ["", "<b>This chat:</b>"]
                lines += [f"• {event}: {count}" for event, count in sorted(summary.items())]
        await self._send(message.chat_id, "\n".join(lines), None)

    async def cmd_settings(self, message: IncomingMessage, _args: list[str]) -> None:
        lines = ["⚙️ <b>Bot Settings</b>", ""]
        for name, enabled in self.options.features.items():
            lines.append(f"<b>{escape_html(name)}:</b> {'✅ On' if enabled else '❌ Off'}")
        lines += ["", "Contact admin to change settings."]
        await self._send(message.chat_id, "\n".join(lines), None)

    async def cmd_warn(self, message: IncomingMessage, args: list[str]) -> None:
        target = self._target(message, args)
        if target is None:
            await self._reply(message, "Usage: reply to a message with /warn [reason]")
            return
        reason = " ".join(args) or "No reason specified"
        await self._send(
            message.chat_id,
            (
                "⚠️ <b>Warning Issued</b>\n\n"
                f"User: {escape_html(target.mention_name)}\n"
                f"Reason: {escape_html(reason)}\n"
                f"By: {escape_html(message.first_name)}"
            ),
            None,
        )
        await self._log(message, EVENT_WARN, target, reason)

    async def cmd_mute(self, message: IncomingMessage, args: list[str]) -> None:
        target = self._target(message, [])
        if target is None:
            await self._reply(message, "Usage: reply to a message with /mute [minutes]")
            return
        minutes = DEFAULT_MUTE_MINUTES
        if args:
            try:
                minutes = int(args[0])
            except ValueError:
                await self._reply(message, "Minutes must be a number.")
                return
            if minutes < 1:
                await self._reply(message, "Usage: reply to a message with /mute [minutes], minutes >= 1")
                return
            minutes = min(minutes, MAX_MUTE_MINUTES)
        await self.actions.restrict_member(message.chat_id, target.user_id, mute_until(minutes * 60))
        await self._send(
            message.chat_id,
            f"🔇 <b>User Muted</b>\n\nUser: {escape_html(target.mention_name)}\nDuration: {minutes} min",
            None,
        )
        await self._log(message, EVENT_MUTE, target, f"{minutes} min")

    async def cmd_unmute(self, message: IncomingMessage, _args: list[str]) -> None:
        target = self._target(message, [])
        if target is None:
            await self._reply(message, "Usage: reply to a message with /unmute")
            return
        await self.actions.lift_restrictions(message.chat_id, target.user_id)
        await self._reply(message, f"🔊 {escape_html(target.mention_name)} can write again.")
        await self._log(message, EVENT_UNMUTE, target)

    async def cmd_ban(self, message: IncomingMessage, args: list[str]) -> None:
        target = self._target(message, args)
        if target is None:
            await self._reply(message, "Usage: reply to a message with /ban or /ban <user_id>")
            return
        await self.actions.ban_member(message.chat_id, target.user_id)
        await self._send(
            message.chat_id,
            f"🚫 <b>User Banned</b>\n\nUser: {escape_html(target.mention_name)}",
            None,
        )
        await self._log(message, EVENT_BAN, target)

    async def cmd_unban(self, message: IncomingMessage, args: list[str]) -> None:
        target = self._target(message, args)
        if target is None:
            await self._reply(message, "Usage: /unban <user_id> or reply to a message")
            return
        await self.actions.unban_member(message.chat_id, target.user_id)
        await self._reply(message, f"✅ {escape_html(target.mention_name)} unbanned.")
        await self._log(message, EVENT_UNBAN, target)

    async def cmd_reload(self, message: IncomingMessage, _args: list[str]) -> None:
        counts = self._reload()
        summary = ", ".join(f"{name}: {count}" for name, count in counts.items())
        await self._reply(message, f"🔄 Reloaded ({escape_html(summary)})")

    def _target(self, message: IncomingMessage, args: list[str]) -> Member | None:
        """Цель: автор реплая, иначе числовой id первым аргументом (он снимается из args)."""

        if message.reply_to is not None:
            return message.reply_to
        if args and args[0].lstrip("-").isdigit():
            user_id = int(args.pop(0))
            return Member(user_id=user_id, first_name=str(user_id))
        return None
