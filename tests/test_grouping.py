"""Tests for category routing and grouping."""

from __future__ import annotations

from conftest import NOW
from notice_digest.core.config import CategorySettings, DigestSettings
from notice_digest.core.models import Item, ItemStatus, Urgency
from notice_digest.digest import group_by_category, resolve_source_category


def _item(item_id: int, source: str, urgency: Urgency = Urgency.MEDIUM) -> Item:
    return Item(
        id=item_id,
        external_id=f"e{item_id}",
        source=source,
        sender=None,
        subject="s",
        body_raw=None,
        body_resolved=None,
        link_url=None,
        received_at=NOW,
        fetched_at=NOW,
        status=ItemStatus.CLASSIFIED,
        intent="informational",
        urgency=urgency,
    )


def test_resolve_source_category_uses_patterns_then_fallbacks() -> None:
    settings = DigestSettings()

    assert resolve_source_category("Acme Support Team", settings) == "support"
    assert resolve_source_category("Maintenance Bot", settings) == "maintenance"
    assert resolve_source_category("Jamie Doe", settings) == "member_messages"
    assert resolve_source_category("  ", settings) == "others"
    assert resolve_source_category(None, settings) == "others"


def test_group_by_category_keeps_configured_order() -> None:
    settings = DigestSettings()
    items = [
        _item(1, "tasks", Urgency.HIGH),
        _item(2, "support"),
        _item(3, "mystery"),
        _item(4, "tasks"),
    ]

    groups = group_by_category(items, settings)

    assert [group.key for group in groups] == [
        "support",
        "maintenance",
        "tasks",
        "member_messages",
        "others",
    ]
    by_key = {group.key: group for group in groups}
    assert [item.id for item in by_key["tasks"].items] == [1, 4]
    assert by_key["tasks"].urgent_count == 1
    assert [item.id for item in by_key["others"].items] == [3]
    assert by_key["maintenance"].items == []


def test_catch_all_bucket_is_appended_when_not_configured() -> None:
    settings = DigestSettings(
        categories=[CategorySettings(key="support", label="Support")]
    )

    groups = group_by_category([_item(1, "unknown-source")], settings)

    assert [group.key for group in groups] == ["support", "others"]
    assert groups[1].label == "Others"
    assert [item.id for item in groups[1].items] == [1]
