"""Tests for the two-tier classification engine."""

from __future__ import annotations

import pytest

from conftest import make_item
from notice_digest.core.config import RetrySettings
from notice_digest.core.errors import AuthError, TransientExternalError
from notice_digest.core.models import ItemStatus, Urgency
from notice_digest.intelligence import ClassificationEngine, parse_model_output
from notice_digest.storage import SqliteItemRepository

NO_DELAY = RetrySettings(max_attempts=3, base_delay_seconds=0.0, max_delay_seconds=0.0)


class StubCompletionClient:
    """Completion client returning queued responses or raising queued errors."""

    def __init__(self, *responses: str | Exception) -> None:
        self._responses = list(responses)
        self.calls: list[str] = []

    @property
    def provider_id(self) -> str:
        return "stub:model"

    async def complete(self, text: str) -> str:
        self.calls.append(text)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.mark.asyncio
async def test_authoritative_rules_skip_model() -> None:
    client = StubCompletionClient()
    engine = ClassificationEngine(client, retry=NO_DELAY)

    result = await engine.classify("Emergency gas leak in kitchen")

    assert result.is_high_risk is True
    assert result.urgency is Urgency.HIGH
    assert client.calls == []


@pytest.mark.asyncio
async def test_model_consulted_when_rules_unsure() -> None:
    client = StubCompletionClient(
        '{"intent": "move_out", "confidence": 0.82, "reason": "mentions leaving"}'
    )
    engine = ClassificationEngine(client, retry=NO_DELAY)

    result = await engine.classify("Heading off at the end of the month")

    assert client.calls == ["Heading off at the end of the month"]
    assert result.intent == "move_out"
    assert result.confidence == pytest.approx(0.82)
    assert result.urgency is Urgency.MEDIUM
    assert result.method == "stub:model"


@pytest.mark.asyncio
async def test_malformed_model_output_degrades_to_unknown() -> None:
    engine = ClassificationEngine(StubCompletionClient("not json"), retry=NO_DELAY)

    result = await engine.classify("Something vague")

    assert result.intent == "unknown"
    assert result.confidence == pytest.approx(0.3)
    assert result.reason == "parse failure"
    assert result.urgency is Urgency.MEDIUM


@pytest.mark.asyncio
async def test_transient_failures_are_retried() -> None:
    client = StubCompletionClient(
        TransientExternalError("boom"),
        '{"intent": "informational", "confidence": 0.9, "reason": "fyi"}',
    )
    engine = ClassificationEngine(client, retry=NO_DELAY)

    result = await engine.classify("Something vague")

    assert len(client.calls) == 2
    assert result.intent == "informational"


@pytest.mark.asyncio
async def test_exhausted_retries_fall_back_to_rules() -> None:
    client = StubCompletionClient(*(TransientExternalError("down") for _ in range(3)))
    engine = ClassificationEngine(client, retry=NO_DELAY)

    result = await engine.classify("Something vague")

    assert len(client.calls) == 3
    assert result.intent == "unknown"
    assert result.method == "rules-fallback"
    assert "rules fallback" in result.reason


@pytest.mark.asyncio
async def test_auth_errors_are_not_retried() -> None:
    client = StubCompletionClient(AuthError("bad key"), "{}")
    engine = ClassificationEngine(client, retry=NO_DELAY)

    result = await engine.classify("Something vague")

    assert len(client.calls) == 1
    assert result.method == "rules-fallback"


@pytest.mark.asyncio
async def test_high_risk_without_model() -> None:
    engine = ClassificationEngine(None)

    result = await engine.classify("The tenant threatened to sue")

    assert result.is_high_risk is True
    assert result.urgency is Urgency.HIGH


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('{"intent": "money", "confidence": 1.7, "reason": "rent"}', ("money", 1.0)),
        ('{"intent": "MONEY", "confidence": -2}', ("money", 0.0)),
        ('{"intent": "weather", "confidence": 0.9}', ("unknown", 0.9)),
        ('{"intent": "money"}', ("unknown", 0.3)),
        ('{"intent": "money", "confidence": "high"}', ("unknown", 0.3)),
        ("[1, 2]", ("unknown", 0.3)),
        ('```json\n{"intent": "gratitude", "confidence": 0.8}\n```', ("gratitude", 0.8)),
    ],
)
def test_parse_model_output(raw: str, expected: tuple[str, float]) -> None:
    intent, confidence, _reason = parse_model_output(raw)
    assert (intent, confidence) == (expected[0], pytest.approx(expected[1]))


@pytest.mark.asyncio
async def test_classify_pending_skips_empty_items(
    repository: SqliteItemRepository,
) -> None:
    filled = repository.insert(make_item("a", subject="Thanks, great stay!"))
    empty = repository.insert(make_item("b", subject="   ", body=None))
    assert filled is not None and empty is not None
    engine = ClassificationEngine(None)

    report = await engine.classify_pending(repository)

    assert (report.classified, report.skipped, report.failed) == (1, 1, 0)
    filled_item = repository.get_item(filled)
    empty_item = repository.get_item(empty)
    assert filled_item is not None and empty_item is not None
    assert filled_item.status is ItemStatus.CLASSIFIED
    assert filled_item.intent == "gratitude"
    assert empty_item.status is ItemStatus.PENDING


@pytest.mark.asyncio
async def test_classify_pending_continues_after_item_failure(
    repository: SqliteItemRepository,
) -> None:
    class ExplodingEngine(ClassificationEngine):
        async def classify(self, text: str):  # type: ignore[override]
            if "boom" in text:
                raise RuntimeError("engine crashed")
            return await super().classify(text)

    repository.insert(make_item("a", subject="boom", minutes_ago=20))
    repository.insert(make_item("b", subject="Thank you, thanks!", minutes_ago=10))

    report = await ExplodingEngine(None).classify_pending(repository)

    assert (report.classified, report.failed) == (1, 1)
    assert [item.external_id for item in repository.pending_items()] == ["a"]
