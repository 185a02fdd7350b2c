"""End-to-end scenario: ingest, classify via rules, build one digest."""

from __future__ import annotations

import pytest

from conftest import make_item
from notice_digest.core.config import DigestSettings
from notice_digest.core.models import ItemStatus, Urgency
from notice_digest.digest import DigestBuilder
from notice_digest.intelligence import ClassificationEngine
from notice_digest.storage import SqliteItemRepository


class ForbiddenClient:
    """Completion client that must never be reached in this scenario."""

    provider_id = "forbidden"

    async def complete(self, text: str) -> str:
        raise AssertionError(f"model consulted for {text!r}")


@pytest.mark.asyncio
async def test_emergency_and_gratitude_end_to_end(
    repository: SqliteItemRepository, digest_settings: DigestSettings
) -> None:
    engine = ClassificationEngine(ForbiddenClient())
    emergency = repository.insert(
        make_item("e1", subject="Emergency gas leak in kitchen", minutes_ago=20)
    )
    thanks = repository.insert(
        make_item("e2", subject="Thank you so much for your help!", minutes_ago=10)
    )
    assert emergency is not None and thanks is not None

    report = await engine.classify_pending(repository)
    assert report.classified == 2

    first = repository.get_item(emergency)
    second = repository.get_item(thanks)
    assert first is not None and second is not None
    assert (first.intent, first.is_high_risk, first.urgency) == (
        "maintenance",
        True,
        Urgency.HIGH,
    )
    assert (second.intent, second.urgency) == ("gratitude", Urgency.LOW)

    outcome = DigestBuilder(repository, digest_settings).build(new_items=2)

    assert outcome.item_count == 2
    assert outcome.urgent_count == 1
    digest = repository.latest_digest()
    assert digest is not None and digest.id == outcome.digest_id
    for item_id in (emergency, thanks):
        item = repository.get_item(item_id)
        assert item is not None
        assert item.status is ItemStatus.SENT
        assert item.digest_id == digest.id
