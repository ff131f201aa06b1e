"""Почему: централизуем конфигурацию из окружения для удобства деплоя и тестов."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = Path(__file__).resolve().parent / "data"


class Settings(BaseSettings):
    """Настройки приложения, читаются из переменных окружения."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_ignore_empty=True,
    )

    bot_token: str
    admin_log_chat_id: int | None = None
    database_url: str = "sqlite+aiosqlite:///data/bot.db"
    timezone: str = "Asia/Dhaka"
    build_version: str = "dev"

    replies_path: Path = DATA_DIR / "replies.json"
    bad_words_path: Path = DATA_DIR / "bad_words.json"
    welcome_path: Path = DATA_DIR / "welcome.json"

    spam_message_limit: int = 10
    spam_window_ms: int = 5000
    spam_reset_ms: int = 10000
    spam_mute_seconds: int = 120
    cooldown_ms: int = 500
    cooldown_retention_seconds: int = 60
    message_queue_size: int = 10
    admin_cache_ttl_seconds: int = 0
    reply_delay_min_ms: int = 500
    reply_delay_max_ms: int = 2000
    maintenance_interval_seconds: int = 60

    blocked_users: str = ""
    developers: str = ""

    feature_welcome: bool = True
    feature_goodbye: bool = False
    feature_auto_reply: bool = True
    feature_moderation: bool = True
    feature_media_replies: bool = True
    cleanup_old_replies: bool = False

    @field_validator("admin_log_chat_id", mode="before")
    @classmethod
    def _empty_to_none(cls, value: object) -> object:
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("bot_token", mode="before")
    @classmethod
    def _validate_bot_token(cls, value: object) -> object:
        if isinstance(value, str):
            cleaned = value.strip()
            if cleaned:
                return cleaned
        raise ValueError("BOT_TOKEN не задан или пуст")

    @field_validator("reply_delay_max_ms")
    @classmethod
    def _validate_delay_range(cls, value: int, info: ValidationInfo) -> int:
        minimum = info.data.get("reply_delay_min_ms", 0)
        if value < minimum:
            raise ValueError("REPLY_DELAY_MAX_MS меньше REPLY_DELAY_MIN_MS")
        return value

    @property
    def blocked_user_ids(self) -> frozenset[int]:
        return _parse_ids(self.blocked_users)

    @property
    def developer_ids(self) -> frozenset[int]:
        return _parse_ids(self.developers)


def _parse_ids(raw: str) -> frozenset[int]:
    """Разбирает список id через запятую, мусор пропускает."""

    ids: set[int] = set()
    for chunk in raw.replace(";", ",").split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        try:
            ids.add(int(chunk))
        except ValueError:
            logging.getLogger(__name__).warning("Некорректный id в конфиге: %r", chunk)
    return frozenset(ids)


def _load_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        logging.basicConfig(
            level=logging.ERROR,
            format="%(asctime)s | %(levelname)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logger = logging.getLogger(__name__)
        missing = []
        for err in exc.errors():
            if err.get("type") != "missing":
                continue
            loc = err.get("loc", [])
            field_name = ".".join(map(str, loc))
            missing.append(field_name.upper())
        if missing:
            logger.error(
                "Не заданы обязательные переменные окружения: %s",
                ", ".join(missing),
            )
        logger.error("Ошибка конфигурации: %s", exc)
        raise SystemExit(1) from exc


settings = _load_settings()
