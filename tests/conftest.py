"""Shared fixtures for the test-suite."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from notice_digest.core.config import DigestSettings, StorageSettings
from notice_digest.core.models import Classification, NewItem, Urgency
from notice_digest.storage import SqliteItemRepository

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


def make_item(
    external_id: str,
    *,
    subject: str = "Hello",
    body: str | None = None,
    source: str = "member_messages",
    minutes_ago: int = 10,
    link_url: str | None = None,
) -> NewItem:
    """Return a ``NewItem`` received ``minutes_ago`` before ``NOW``."""
    return NewItem(
        external_id=external_id,
        source=source,
        received_at=NOW - timedelta(minutes=minutes_ago),
        sender="Jamie",
        subject=subject,
        body_raw=body,
        link_url=link_url,
    )


def make_classification(
    urgency: Urgency = Urgency.MEDIUM, intent: str = "informational"
) -> Classification:
    """Return a simple classification with the given urgency."""
    return Classification(
        intent=intent,
        confidence=0.8,
        is_high_risk=urgency is Urgency.HIGH,
        urgency=urgency,
        reason="test",
    )


@pytest.fixture()
def repository(tmp_path: Path) -> Iterator[SqliteItemRepository]:
    """Yield a repository backed by a temporary database."""
    repo = SqliteItemRepository(StorageSettings(db_path=tmp_path / "store.sqlite"))
    yield repo
    repo.close()


@pytest.fixture()
def digest_settings(tmp_path: Path) -> DigestSettings:
    """Digest settings writing reports below ``tmp_path``."""
    return DigestSettings(output_dir=tmp_path / "out", visibility_window_hours=None)
