"""Protocol interfaces for decoupling components."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Protocol

from .models import (
    Classification,
    DigestRecord,
    IncomingMessage,
    Item,
    ItemStatus,
    NewItem,
    PublishResult,
    SensorReading,
)


class ItemRepository(Protocol):
    """Durable store owning every item and digest state transition."""

    def exists(self, external_id: str) -> bool:
        """Return ``True`` when an item with ``external_id`` was ever stored."""
        raise NotImplementedError

    def insert(self, item: NewItem) -> int | None:
        """Store a pending item; return ``None`` when it already exists."""
        raise NotImplementedError

    def get_item(self, item_id: int) -> Item | None:
        """Return a stored item by primary key."""
        raise NotImplementedError

    def pending_items(self) -> list[Item]:
        """Return pending items, oldest first."""
        raise NotImplementedError

    def visible_classified_items(
        self, window_hours: int | None = None, *, now: datetime | None = None
    ) -> list[Item]:
        """Return classified items in digest order, optionally windowed."""
        raise NotImplementedError

    def update_classification(
        self,
        item_id: int,
        classification: Classification,
        *,
        classified_at: datetime | None = None,
    ) -> bool:
        """Persist a classification and move the item to ``classified``."""
        raise NotImplementedError

    def update_resolved_body(self, item_id: int, text: str) -> None:
        """Store the resolved body without changing status."""
        raise NotImplementedError

    def create_digest(self, record: DigestRecord) -> int:
        """Append a digest row and return its identifier."""
        raise NotImplementedError

    def mark_sent(
        self, ids: Sequence[int], digest_id: int, *, sent_at: datetime | None = None
    ) -> int:
        """Atomically mark classified items as sent; return rows updated."""
        raise NotImplementedError

    def commit_digest(self, record: DigestRecord, ids: Sequence[int]) -> DigestRecord:
        """Create a digest and mark its items sent in a single transaction."""
        raise NotImplementedError

    def last_digest_fingerprint(self) -> str | None:
        """Return the fingerprint of the most recent digest."""
        raise NotImplementedError

    def latest_digest(self) -> DigestRecord | None:
        """Return the most recent digest row."""
        raise NotImplementedError

    def count_by_status(self) -> dict[ItemStatus, int]:
        """Return item totals per status."""
        raise NotImplementedError

    def last_received_at(self) -> datetime | None:
        """Return the newest item arrival time."""
        raise NotImplementedError

    def close(self) -> None:
        """Close database connections if necessary."""
        raise NotImplementedError


class MessageSource(Protocol):
    """Upstream feed of notification-like messages."""

    name: str

    async def fetch_messages(self) -> list[IncomingMessage]:
        """Return current messages or raise ``SchemaMismatchError``."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release any network resources."""
        raise NotImplementedError


class LinkResolver(Protocol):
    """Fetches the full text behind a message link."""

    async def resolve(self, url: str) -> str | None:
        """Return resolved body text or ``None`` when nothing was found."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release the held session."""
        raise NotImplementedError


class ReadingSource(Protocol):
    """Secondary data (for example thermostat readings) shown in the report."""

    async def fetch_readings(self) -> list[SensorReading]:
        """Return current readings."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release the held session."""
        raise NotImplementedError


class CompletionClient(Protocol):
    """Probabilistic model returning a raw JSON classification string."""

    @property
    def provider_id(self) -> str:
        """Identifier describing the backing model/provider."""
        raise NotImplementedError

    async def complete(self, text: str) -> str:
        """Return the raw completion for ``text``."""
        raise NotImplementedError


class ReportRenderer(Protocol):
    """Turns grouped items into a report document."""

    def render(self, context: dict[str, object]) -> str:
        """Return the rendered report."""
        raise NotImplementedError


class ReportPublisher(Protocol):
    """Makes a written report available to readers."""

    def publish(self, report_path: Path) -> PublishResult:
        """Publish ``report_path`` and return the written locations."""
        raise NotImplementedError


class DigestDelivery(Protocol):
    """Pushes a digest summary to a human recipient."""

    def send(self, recipient: str, subject: str, body: str) -> None:
        """Deliver the summary or raise on failure."""
        raise NotImplementedError


__all__ = [
    "CompletionClient",
    "DigestDelivery",
    "ItemRepository",
    "LinkResolver",
    "MessageSource",
    "ReadingSource",
    "ReportPublisher",
    "ReportRenderer",
]
