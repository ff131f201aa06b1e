"""Почему: команды проверяются отдельно от конвейера, без сети и БД."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from groupmaster.services.commands import (
    MAX_MUTE_MINUTES,
    CommandOptions,
    CommandRouter,
    parse_command,
    suggest_command,
)
from groupmaster.services.incoming import IncomingMessage, Member
from groupmaster.services.stats import BotStats
from groupmaster.utils.admin import AdminChecker

GROUP_ID = -100
ADMIN_ID = 7
LOG_CHAT_ID = -555


class _Clock:
    def now_ms(self) -> int:
        return 0

    async def sleep(self, seconds: float) -> None:
        return None


class _Sent(list):
    async def __call__(self, chat_id, text, reply_to=None):
        self.append((chat_id, text, reply_to))
        return len(self)


def _router(**options):
    sent = _Sent()
    actions = AsyncMock()
    actions.fetch_admins.return_value = [
        Member(user_id=ADMIN_ID, first_name="Boss", username="boss"),
        Member(user_id=1000, first_name="HelperBot", is_bot=True),
    ]
    moderation_log = AsyncMock()
    moderation_log.summary.return_value = {"spam_mute": 2}
    router = CommandRouter(
        send=sent,
        actions=actions,
        admins=AdminChecker(actions, _Clock()),
        stats=BotStats(messages=5, commands=2),
        reload=lambda: {"replies": 3, "bad_words": 4},
        options=CommandOptions(
            version="3.0.0",
            admin_log_chat_id=options.get("admin_log_chat_id"),
            developer_ids=frozenset(options.get("developers", ())),
            features={"Auto Reply": True, "Goodbye Messages": False},
        ),
        moderation_log=moderation_log,
        bot_username="group_master_bot",
    )
    return router, sent, actions, moderation_log


def _msg(text: str, user_id: int = 42, chat_type: str = "supergroup", **kwargs) -> IncomingMessage:
    chat_id = GROUP_ID if chat_type != "private" else user_id
    return IncomingMessage(
        message_id=10,
        chat_id=chat_id,
        user_id=user_id,
        first_name="Sam",
        chat_type=chat_type,
        chat_title="Test group",
        text=text,
        **kwargs,
    )


def test_parse_command() -> None:
    assert parse_command("/Mute@Group_Master_Bot 15 spam") == ("mute", "group_master_bot", ["15", "spam"])
    assert parse_command("/help") == ("help", None, [])


def test_suggest_command() -> None:
    assert suggest_command("whoami") == "me"
    assert suggest_command("rule") == "rules"
    assert suggest_command("xyz") is None
    assert suggest_command("") is None


def test_start_differs_between_private_and_group() -> None:
    router, sent, _actions, _log = _router()

    asyncio.run(router.dispatch(_msg("/start", chat_type="private")))
    asyncio.run(router.dispatch(_msg("/start")))

    assert "Assalamualaikum Sam" in sent[0][1]
    assert "Hello everyone" in sent[1][1]


def test_help_shows_admin_section_only_for_admins() -> None:
    router, sent, _actions, _log = _router()

    asyncio.run(router.dispatch(_msg("/help")))
    asyncio.run(router.dispatch(_msg("/help", user_id=ADMIN_ID)))

    assert "Admin Commands" not in sent[0][1]
    assert "Admin Commands" in sent[1][1]


def test_developer_is_privileged_without_admin_rights() -> None:
    router, sent, actions, _log = _router(developers=[42])

    asyncio.run(router.dispatch(_msg("/unban 55")))

    actions.unban_member.assert_awaited_once_with(GROUP_ID, 55)
    assert "55 unbanned" in sent[0][1]


def test_report_is_forwarded_to_admin_log() -> None:
    router, sent, _actions, _log = _router(admin_log_chat_id=LOG_CHAT_ID)

    asyncio.run(router.dispatch(_msg("/report <spam> in chat")))

    assert "Report Submitted" in sent[0][1]
    assert "&lt;spam&gt; in chat" in sent[0][1]
    assert sent[1][0] == LOG_CHAT_ID


def test_report_without_reason_shows_usage() -> None:
    router, sent, _actions, _log = _router(admin_log_chat_id=LOG_CHAT_ID)

    asyncio.run(router.dispatch(_msg("/report")))

    assert len(sent) == 1
    assert "Usage" in sent[0][1]


def test_admin_mention_skips_bots() -> None:
    router, sent, _actions, _log = _router()

    asyncio.run(router.dispatch(_msg("/admin")))

    assert "@boss" in sent[0][1]
    assert "HelperBot" not in sent[0][1]


def test_mute_uses_minutes_argument_and_logs() -> None:
    router, sent, actions, moderation_log = _router()
    target = Member(user_id=55, first_name="Troll")

    asyncio.run(router.dispatch(_msg("/mute 15", user_id=ADMIN_ID, reply_to=target)))

    chat_id, user_id, _until = actions.restrict_member.await_args.args
    assert (chat_id, user_id) == (GROUP_ID, 55)
    assert "Duration: 15 min" in sent[0][1]
    record = moderation_log.record.await_args.args[0]
    assert (record.event_type, record.user_id, record.actor_id) == ("mute", 55, ADMIN_ID)


def test_mute_rejects_non_numeric_minutes() -> None:
    router, sent, actions, _log = _router()
    target = Member(user_id=55, first_name="Troll")

    asyncio.run(router.dispatch(_msg("/mute soon", user_id=ADMIN_ID, reply_to=target)))

    actions.restrict_member.assert_not_called()
    assert "must be a number" in sent[0][1]


def test_warn_without_target_shows_usage() -> None:
    router, sent, _actions, moderation_log = _router()

    asyncio.run(router.dispatch(_msg("/warn", user_id=ADMIN_ID)))

    assert "Usage" in sent[0][1]
    moderation_log.record.assert_not_called()


def test_reload_reports_counts() -> None:
    router, sent, _actions, _log = _router()

    asyncio.run(router.dispatch(_msg("/reload", user_id=ADMIN_ID)))

    assert "replies: 3, bad_words: 4" in sent[0][1]


def test_stats_include_chat_moderation_summary() -> None:
    router, sent, _actions, moderation_log = _router()

    asyncio.run(router.dispatch(_msg("/stats")))

    text = sent[0][1]
    assert "Messages Processed:</b> 5" in text
    assert "spam_mute: 2" in text
    moderation_log.summary.assert_awaited_once_with(GROUP_ID)


def test_settings_lists_features() -> None:
    router, sent, _actions, _log = _router()

    asyncio.run(router.dispatch(_msg("/settings", chat_type="private")))

    assert "Auto Reply:</b> ✅ On" in sent[0][1]
    assert "Goodbye Messages:</b> ❌ Off" in sent[0][1]


def test_id_shows_replied_user() -> None:
    router, sent, _actions, _log = _router()

    asyncio.run(router.dispatch(_msg("/id", reply_to=Member(user_id=77, first_name="Ann"))))

    assert f"<code>{GROUP_ID}</code>" in sent[0][1]
    assert "Replied user ID:</b> <code>77</code>" in sent[0][1]


def test_admin_only_command_in_private_chat_is_unknown() -> None:
    router, sent, actions, _log = _router()

    asyncio.run(router.dispatch(_msg("/ban 5", user_id=ADMIN_ID, chat_type="private")))

    actions.ban_member.assert_not_called()
    assert "Unknown Command" in sent[0][1]


def test_mute_rejects_zero_and_negative_minutes() -> None:
    router, sent, actions, moderation_log = _router()
    target = Member(user_id=55, first_name="Troll")

    asyncio.run(router.dispatch(_msg("/mute 0", user_id=ADMIN_ID, reply_to=target)))
    asyncio.run(router.dispatch(_msg("/mute -5", user_id=ADMIN_ID, reply_to=target)))

    actions.restrict_member.assert_not_called()
    moderation_log.record.assert_not_called()
    assert all("Usage" in text for _chat, text, _reply in sent)


def test_mute_is_capped_at_366_days() -> None:
    router, sent, actions, _log = _router()
    target = Member(user_id=55, first_name="Troll")

    asyncio.run(router.dispatch(_msg("/mute 99999999", user_id=ADMIN_ID, reply_to=target)))

    _chat_id, _user_id, until = actions.restrict_member.await_args.args
    assert until - datetime.now(timezone.utc) <= timedelta(days=366)
    assert f"Duration: {MAX_MUTE_MINUTES} min" in sent[0][1]
