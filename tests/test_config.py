"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from notice_digest.core.config import load_app_settings


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    """Ensure each test sees a fresh settings instance."""

    load_app_settings.cache_clear()


def test_defaults_loaded_without_env_file() -> None:
    """Default values should be returned when no overrides are present."""

    settings = load_app_settings(include_environment=False)
    assert settings.storage.db_path == Path("./data/notice_digest.sqlite")
    assert settings.digest.visibility_window_hours == 48
    assert settings.retry.max_attempts == 3
    assert settings.schedule.interval_minutes == 30
    assert [category.key for category in settings.digest.categories] == [
        "support",
        "maintenance",
        "tasks",
        "member_messages",
        "others",
    ]


def test_env_file_overrides(tmp_path: Path) -> None:
    """Values defined in an env file should override defaults."""

    env_file = tmp_path / "test.env"
    env_file.write_text(
        "\n".join(
            [
                "NOTICE_DIGEST_LLM__MODEL=mistral",
                "NOTICE_DIGEST_DIGEST__ENABLE_DELIVERY=true",
                "NOTICE_DIGEST_DIGEST__RECIPIENT=",
                "NOTICE_DIGEST_SOURCES__RESOLVER_SELECTORS=main, .body",
                "NOTICE_DIGEST_SCHEDULE__STAGE_TIMEOUT_SECONDS=12.5",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_app_settings(env_file=env_file, include_environment=False)
    assert settings.llm.model == "mistral"
    assert settings.digest.enable_delivery is True
    assert settings.digest.recipient is None
    assert settings.sources.resolver_selectors == ["main", ".body"]
    assert settings.schedule.stage_timeout_seconds == 12.5


def test_environment_wins_over_env_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / "test.env"
    env_file.write_text("NOTICE_DIGEST_RETRY__MAX_ATTEMPTS=5\n", encoding="utf-8")
    monkeypatch.setenv("NOTICE_DIGEST_RETRY__MAX_ATTEMPTS", "2")

    settings = load_app_settings(env_file=env_file)
    assert settings.retry.max_attempts == 2


def test_missing_env_file_is_ignored(tmp_path: Path) -> None:
    settings = load_app_settings(
        env_file=tmp_path / "absent.env", include_environment=False
    )
    assert settings.llm.enabled is True
