"""Почему: валидируем критичные ошибки конфигурации заранее, до старта бота."""

from __future__ import annotations

from pydantic import ValidationError

from groupmaster.config import Settings


BASE_ENV: dict[str, str] = {
    "bot_token": "test-token",
}


def test_settings_ignores_empty_optional_values() -> None:
    settings = Settings(
        **BASE_ENV,
        _env_file=None,
        admin_log_chat_id="",
    )

    assert settings.admin_log_chat_id is None


def test_settings_defaults_match_moderation_thresholds() -> None:
    settings = Settings(**BASE_ENV, _env_file=None)

    assert settings.spam_message_limit == 10
    assert settings.spam_window_ms == 5000
    assert settings.spam_reset_ms == 10000
    assert settings.spam_mute_seconds == 120
    assert settings.cooldown_ms == 500
    assert settings.message_queue_size == 10


def test_settings_rejects_empty_bot_token(monkeypatch) -> None:
    monkeypatch.delenv("BOT_TOKEN", raising=False)

    try:
        Settings(_env_file=None, bot_token="   ")
    except ValidationError as exc:
        assert "BOT_TOKEN не задан или пуст" in str(exc)
    else:
        raise AssertionError("Expected ValidationError for empty BOT_TOKEN")


def test_settings_rejects_inverted_reply_delay() -> None:
    try:
        Settings(**BASE_ENV, _env_file=None, reply_delay_min_ms=3000, reply_delay_max_ms=1000)
    except ValidationError as exc:
        assert "REPLY_DELAY_MAX_MS" in str(exc)
    else:
        raise AssertionError("Expected ValidationError for inverted delay range")


def test_settings_parses_id_lists_and_skips_garbage() -> None:
    settings = Settings(
        **BASE_ENV,
        _env_file=None,
        blocked_users="12, 34;abc,,56",
        developers="7",
    )

    assert settings.blocked_user_ids == frozenset({12, 34, 56})
    assert settings.developer_ids == frozenset({7})


def test_settings_reads_feature_flags_from_env(monkeypatch) -> None:
    monkeypatch.setenv("FEATURE_GOODBYE", "true")
    monkeypatch.setenv("FEATURE_MODERATION", "false")

    settings = Settings(**BASE_ENV, _env_file=None)

    assert settings.feature_goodbye is True
    assert settings.feature_moderation is False
