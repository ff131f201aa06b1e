"""Почему: приветствия и прощания берутся из шаблонов, а не из кода обработчиков."""

from __future__ import annotations

import json
import logging
import random
from pathlib import Path

from pydantic import BaseModel, ValidationError

from groupmaster.services.incoming import Member
from groupmaster.utils.text import escape_html, fill_placeholders

logger = logging.getLogger(__name__)

DEFAULT_GROUP_TEMPLATES = (
    "<b>🎉 Welcome to {group}, {name}!</b>\n\n"
    "<i>Assalamualaikum and welcome aboard!</i>\n\n"
    "<code>Please read the group rules: /rules</code>",
)
DEFAULT_PRIVATE_TEMPLATES = (
    "<b>👋 Welcome {name}!</b>\n\n"
    "<i>Thank you for starting me!</i>\n\n"
    "<b>🆔 Your ID:</b> <code>{id}</code>\n\n"
    "<code>Type /help for commands</code>",
)
DEFAULT_GOODBYE_TEMPLATES = ("👋 {name} has left {group}. Goodbye!",)


class WelcomeTemplates(BaseModel):
    group: list[str] = list(DEFAULT_GROUP_TEMPLATES)
    private: list[str] = list(DEFAULT_PRIVATE_TEMPLATES)
    goodbye: list[str] = list(DEFAULT_GOODBYE_TEMPLATES)


def load_welcome_templates(path: Path) -> WelcomeTemplates:
    """Читает шаблоны; при ошибке возвращает встроенные тексты."""

    if not path.exists():
        return WelcomeTemplates()
    try:
        templates = WelcomeTemplates.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError, ValidationError) as exc:
        logger.warning("Не удалось загрузить шаблоны приветствий из %s: %s", path, exc)
        return WelcomeTemplates()
    if not templates.group:
        templates.group = list(DEFAULT_GROUP_TEMPLATES)
    if not templates.private:
        templates.private = list(DEFAULT_PRIVATE_TEMPLATES)
    if not templates.goodbye:
        templates.goodbye = list(DEFAULT_GOODBYE_TEMPLATES)
    return templates


class WelcomeComposer:
    def __init__(self, templates: WelcomeTemplates, rng: random.Random | None = None) -> None:
        self.templates = templates
        self._rng = rng or random.Random()

    def welcome(self, member: Member, chat_title: str | None, private: bool = False) -> str:
        pool = self.templates.private if private else self.templates.group
        return self._render(self._rng.choice(pool), member, chat_title)

    def goodbye(self, member: Member, chat_title: str | None) -> str:
        return self._render(self._rng.choice(self.templates.goodbye), member, chat_title)

    def bot_added(self, chat_title: str | None, admins: list[Member]) -> str:
        title = escape_html(chat_title or "this group")
        lines = [
            "<b>🤖 Bot Added Successfully!</b>",
            "",
            f"Thank you for adding me to <b>{title}</b>!",
            "",
            "To get started:",
            "1. Make me an admin with delete and restrict permissions",
            "2. Use /settings to see what is enabled",
            "3. Use /help to see available commands",
        ]
        mentions = [escape_html(admin.mention_name) for admin in admins if not admin.is_bot]
        if mentions:
            lines += ["", "<b>Group Admins:</b> " + ", ".join(mentions)]
        return "\n".join(lines)

    def _render(self, template: str, member: Member, chat_title: str | None) -> str:
        return fill_placeholders(
            template,
            {
                "name": member.first_name or "New Member",
                "username": member.mention_name,
                "group": chat_title or "the group",
                "id": str(member.user_id),
            },
        )
