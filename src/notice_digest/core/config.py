"""Application configuration models and loader utilities."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field


class StorageSettings(BaseModel):
    """Settings for local persistence."""

    db_path: Path = Field(
        default=Path("./data/notice_digest.sqlite"), description="SQLite database path"
    )


class LlmSettings(BaseModel):
    """Settings for the classification model provider."""

    enabled: bool = Field(default=True, description="Allow Tier-2 model calls")
    base_url: str = Field(
        default="http://localhost:11434", description="Ollama server URL"
    )
    model: str = Field(default="llama3.1:8b", description="Model identifier")
    timeout_seconds: int = Field(
        default=30, description="Request timeout for model calls"
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for completions",
    )
    max_output_tokens: int | None = Field(
        default=200,
        ge=32,
        description="Maximum tokens to request from the provider",
    )


class RetrySettings(BaseModel):
    """Backoff parameters shared by every external call."""

    max_attempts: int = Field(default=3, ge=1)
    base_delay_seconds: float = Field(default=1.0, ge=0.0)
    max_delay_seconds: float = Field(default=30.0, ge=0.0)


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle JSON structured logging"
    )


class CategorySettings(BaseModel):
    """One report section and the sender patterns routed to it."""

    key: str
    label: str
    senders: list[str] = Field(default_factory=list)


def _default_categories() -> list[CategorySettings]:
    return [
        CategorySettings(key="support", label="Support", senders=["support"]),
        CategorySettings(
            key="maintenance", label="Maintenance", senders=["maintenance"]
        ),
        CategorySettings(key="tasks", label="Tasks", senders=["task"]),
        CategorySettings(key="member_messages", label="Member Messages"),
        CategorySettings(key="others", label="Others"),
    ]


class DigestSettings(BaseModel):
    """Settings controlling report content and delivery."""

    visibility_window_hours: int | None = Field(
        default=48, description="Trailing window of items eligible for a digest"
    )
    output_dir: Path = Field(default=Path("out"), description="Local report folder")
    title: str = Field(default="Notice Digest")
    timezone: str = Field(default="UTC", description="Zone used for display times")
    recipient: str | None = Field(default=None, description="Delivery address")
    enable_delivery: bool = Field(
        default=False, description="Persisted opt-in for digest delivery"
    )
    max_report_files: int = Field(default=500, ge=1)
    default_category: str = Field(
        default="member_messages",
        description="Category for named senders matching no pattern",
    )
    catch_all_category: str = Field(default="others")
    categories: list[CategorySettings] = Field(default_factory=_default_categories)


class SourceSettings(BaseModel):
    """Endpoints for the upstream adapters."""

    messages_url: str | None = Field(default=None, description="Message feed URL")
    messages_key: str = Field(
        default="messages", description="JSON key holding the message list"
    )
    tickets_url: str | None = Field(default=None, description="Task feed URL")
    auth_token: str | None = Field(default=None, description="Bearer token")
    expect_messages: bool = Field(
        default=False, description="Treat an empty feed as an integrity failure"
    )
    resolver_enabled: bool = Field(default=False)
    resolver_selectors: list[str] = Field(
        default_factory=lambda: ["[data-message-body]", "article", "main"]
    )
    readings_url: str | None = Field(default=None, description="Sensor feed URL")
    request_timeout_seconds: float = Field(default=30.0, gt=0)


class ScheduleSettings(BaseModel):
    """Settings controlling run cadence and stage ceilings."""

    interval_minutes: int = Field(default=30, ge=1)
    stage_timeout_seconds: float = Field(default=60.0, gt=0)


class PublishSettings(BaseModel):
    """Settings for the artifact publisher."""

    enabled: bool = Field(default=True)
    public_dir: Path = Field(default=Path("public"))
    max_archive_files: int = Field(default=500, ge=1)


class SmtpSettings(BaseModel):
    """SMTP connection settings for digest delivery."""

    host: str | None = Field(default=None, description="SMTP hostname")
    port: int = Field(default=587, description="SMTP port")
    username: str | None = Field(default=None)
    password: str | None = Field(default=None)
    use_tls: bool = Field(default=True, description="STARTTLS instead of SSL")
    from_name: str | None = Field(default=None)


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    storage: StorageSettings = Field(default_factory=StorageSettings)
    llm: LlmSettings = Field(default_factory=LlmSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    digest: DigestSettings = Field(default_factory=DigestSettings)
    sources: SourceSettings = Field(default_factory=SourceSettings)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    publish: PublishSettings = Field(default_factory=PublishSettings)
    smtp: SmtpSettings = Field(default_factory=SmtpSettings)


ENV_PREFIX = "NOTICE_DIGEST_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _collect_env_values(
    env_file: Path | str | None, *, include_environment: bool = True
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    combined: dict[str, Any] = {**file_values, **env_values}

    for key, value in combined.items():
        path = _normalize_key(key)
        if not path:
            continue
        normalized_value: Any = value
        if isinstance(value, str) and value == "":
            normalized_value = None
        elif isinstance(value, str):
            lowercase_value = value.lower()
            if lowercase_value == "true":
                normalized_value = True
            elif lowercase_value == "false":
                normalized_value = False
            elif path[-1] in _LIST_FIELDS:
                normalized_value = [
                    part.strip() for part in value.split(",") if part.strip()
                ]
        _merge_into_tree(collected, path, normalized_value)

    return collected


# Plain string lists that may be supplied as comma separated env values.
_LIST_FIELDS = frozenset({"resolver_selectors"})


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    *,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides."""
    collected = _collect_env_values(env_file, include_environment=include_environment)
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AppSettings",
    "CategorySettings",
    "DigestSettings",
    "LlmSettings",
    "LoggingSettings",
    "PublishSettings",
    "RetrySettings",
    "ScheduleSettings",
    "SmtpSettings",
    "SourceSettings",
    "StorageSettings",
    "load_app_settings",
]
