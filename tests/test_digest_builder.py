"""Tests for the digest builder."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import NOW, make_classification, make_item
from notice_digest.core.config import DigestSettings
from notice_digest.core.errors import DataIntegrityError
from notice_digest.core.models import (
    DigestRecord,
    DigestStatus,
    ItemStatus,
    SensorReading,
    Urgency,
)
from notice_digest.digest import DigestBuilder, compute_fingerprint
from notice_digest.storage import SqliteItemRepository


class RecordingDelivery:
    """Delivery collaborator capturing what would be sent."""

    def __init__(self, error: Exception | None = None) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self._error = error

    def send(self, recipient: str, subject: str, body: str) -> None:
        if self._error is not None:
            raise self._error
        self.sent.append((recipient, subject, body))


def _classified(
    repository: SqliteItemRepository, external_id: str, urgency: Urgency
) -> int:
    item_id = repository.insert(make_item(external_id, source="support"))
    assert item_id is not None
    repository.update_classification(item_id, make_classification(urgency))
    return item_id


def _builder(
    repository: SqliteItemRepository, settings: DigestSettings, **kwargs: object
) -> DigestBuilder:
    return DigestBuilder(
        repository, settings, clock=lambda: NOW, **kwargs  # type: ignore[arg-type]
    )


def test_fingerprint_depends_on_order() -> None:
    assert compute_fingerprint([1, 2]) == compute_fingerprint([1, 2])
    assert compute_fingerprint([1, 2]) != compute_fingerprint([2, 1])


def test_build_writes_report_and_marks_items(
    repository: SqliteItemRepository, digest_settings: DigestSettings
) -> None:
    high = _classified(repository, "a", Urgency.HIGH)
    low = _classified(repository, "b", Urgency.LOW)

    outcome = _builder(repository, digest_settings).build(
        new_items=2,
        readings=[SensorReading("Hall", 68.0, 70.0, "heat")],
    )

    assert outcome.built is True
    assert outcome.item_count == 2
    assert outcome.urgent_count == 1
    assert outcome.fingerprint == compute_fingerprint([high, low])
    assert outcome.category_counts["support"] == 2
    assert outcome.report_path is not None and outcome.report_path.is_file()
    html = outcome.report_path.read_text(encoding="utf-8")
    assert "Support (2)" in html
    assert "Hall" in html

    digest = repository.latest_digest()
    assert digest is not None
    assert digest.id == outcome.digest_id
    assert digest.status is DigestStatus.GENERATED
    assert digest.report_path == str(outcome.report_path)
    for item_id in (high, low):
        item = repository.get_item(item_id)
        assert item is not None
        assert item.status is ItemStatus.SENT
        assert item.digest_id == digest.id
    assert not list(Path(digest_settings.output_dir).glob(".pending-*"))


def test_second_build_without_changes_is_noop(
    repository: SqliteItemRepository, digest_settings: DigestSettings
) -> None:
    _classified(repository, "a", Urgency.MEDIUM)
    builder = _builder(repository, digest_settings)

    first = builder.build(new_items=1)
    second = builder.build(new_items=0)

    assert first.built is True
    assert second.built is False
    assert second.skipped_reason is not None
    assert len(list(Path(digest_settings.output_dir).glob("digest-*.html"))) == 1
    digest = repository.latest_digest()
    assert digest is not None and digest.id == first.digest_id


def test_builds_in_the_same_second_keep_separate_reports(
    repository: SqliteItemRepository, digest_settings: DigestSettings
) -> None:
    builder = _builder(repository, digest_settings)
    _classified(repository, "a", Urgency.MEDIUM)
    first = builder.build(new_items=1)
    _classified(repository, "b", Urgency.HIGH)
    second = builder.build(new_items=1)

    assert first.report_path is not None and second.report_path is not None
    assert first.report_path != second.report_path
    assert second.report_path.name == "digest-20250301-120000_002.html"
    assert "0 urgent" in first.report_path.read_text(encoding="utf-8")
    assert "1 urgent" in second.report_path.read_text(encoding="utf-8")
    assert sorted(Path(digest_settings.output_dir).glob("digest-*.html")) == [
        first.report_path,
        second.report_path,
    ]


def test_unchanged_fingerprint_without_new_items_is_noop(
    repository: SqliteItemRepository, digest_settings: DigestSettings
) -> None:
    item_id = _classified(repository, "a", Urgency.MEDIUM)
    repository.create_digest(
        DigestRecord(
            id=None,
            sent_at=NOW,
            item_count=1,
            urgent_count=0,
            recipient="local-report",
            fingerprint=compute_fingerprint([item_id]),
            status=DigestStatus.GENERATED,
        )
    )

    outcome = _builder(repository, digest_settings).build(new_items=0)

    assert outcome.built is False
    assert outcome.skipped_reason == "visible items unchanged"
    item = repository.get_item(item_id)
    assert item is not None and item.status is ItemStatus.CLASSIFIED


def test_failed_commit_leaves_no_artifact(
    repository: SqliteItemRepository,
    digest_settings: DigestSettings,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    item_id = _classified(repository, "a", Urgency.MEDIUM)

    def failing_commit(record: DigestRecord, ids: list[int]) -> DigestRecord:
        raise DataIntegrityError("item set changed")

    monkeypatch.setattr(repository, "commit_digest", failing_commit)

    with pytest.raises(DataIntegrityError):
        _builder(repository, digest_settings).build(new_items=1)

    output_dir = Path(digest_settings.output_dir)
    assert list(output_dir.iterdir()) == []
    item = repository.get_item(item_id)
    assert item is not None and item.status is ItemStatus.CLASSIFIED


def test_delivery_requires_both_opt_ins(
    repository: SqliteItemRepository, tmp_path: Path
) -> None:
    _classified(repository, "a", Urgency.HIGH)
    delivery = RecordingDelivery()
    settings = DigestSettings(
        output_dir=tmp_path / "out",
        recipient="ops@example.com",
        enable_delivery=True,
    )

    outcome = _builder(repository, settings, delivery=delivery).build(
        new_items=1, send_requested=False
    )

    assert outcome.delivered is False
    assert delivery.sent == []
    digest = repository.latest_digest()
    assert digest is not None and digest.status is DigestStatus.GENERATED


def test_delivery_sends_summary_when_enabled(
    repository: SqliteItemRepository, tmp_path: Path
) -> None:
    _classified(repository, "a", Urgency.HIGH)
    delivery = RecordingDelivery()
    settings = DigestSettings(
        output_dir=tmp_path / "out",
        recipient="ops@example.com",
        enable_delivery=True,
    )

    outcome = _builder(repository, settings, delivery=delivery).build(
        new_items=1, send_requested=True
    )

    assert outcome.delivered is True
    recipient, subject, body = delivery.sent[0]
    assert recipient == "ops@example.com"
    assert subject.startswith("Notice Digest")
    assert "Support: 1 (1 urgent)" in body
    assert str(outcome.report_path) in body
    digest = repository.latest_digest()
    assert digest is not None and digest.status is DigestStatus.SENT


def test_delivery_failure_keeps_digest_committed(
    repository: SqliteItemRepository, tmp_path: Path
) -> None:
    item_id = _classified(repository, "a", Urgency.HIGH)
    settings = DigestSettings(
        output_dir=tmp_path / "out",
        recipient="ops@example.com",
        enable_delivery=True,
    )
    delivery = RecordingDelivery(error=RuntimeError("smtp down"))

    outcome = _builder(repository, settings, delivery=delivery).build(
        new_items=1, send_requested=True
    )

    assert outcome.built is True
    assert outcome.delivered is False
    item = repository.get_item(item_id)
    assert item is not None and item.status is ItemStatus.SENT


def test_old_reports_are_pruned(
    repository: SqliteItemRepository, tmp_path: Path
) -> None:
    output_dir = tmp_path / "out"
    output_dir.mkdir()
    for stamp in ("20240101-000000", "20240102-000000"):
        (output_dir / f"digest-{stamp}.html").write_text("old", encoding="utf-8")
    _classified(repository, "a", Urgency.LOW)
    settings = DigestSettings(output_dir=output_dir, max_report_files=2)

    outcome = _builder(repository, settings).build(new_items=1)

    remaining = sorted(path.name for path in output_dir.glob("digest-*.html"))
    assert len(remaining) == 2
    assert "digest-20240101-000000.html" not in remaining
    assert outcome.report_path is not None and outcome.report_path.name in remaining
