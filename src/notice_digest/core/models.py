"""Core domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class ItemStatus(str, Enum):
    """Lifecycle state of an ingested item."""

    PENDING = "pending"
    CLASSIFIED = "classified"
    SENT = "sent"
    ERROR = "error"


class Urgency(str, Enum):
    """Urgency bucket derived from a classification."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DigestStatus(str, Enum):
    """Whether a digest was only generated or also delivered."""

    GENERATED = "generated"
    SENT = "sent"


@dataclass(slots=True)
class IncomingMessage:
    """Normalized record returned by a message-source adapter."""

    external_id: str
    sender_name: str
    subject: str
    body: str
    url: str | None
    timestamp: datetime


@dataclass(slots=True)
class NewItem:
    """Fields supplied when an item is first ingested."""

    external_id: str
    source: str
    received_at: datetime
    sender: str | None = None
    subject: str | None = None
    body_raw: str | None = None
    link_url: str | None = None


@dataclass(slots=True)
class Classification:
    """Outcome of classifying one item."""

    intent: str
    confidence: float
    is_high_risk: bool
    urgency: Urgency
    reason: str
    method: str = "rules"


# pylint: disable=too-many-instance-attributes
@dataclass(slots=True)
class Item:
    """A stored item together with its classification and digest linkage."""

    id: int
    external_id: str
    source: str
    sender: str | None
    subject: str | None
    body_raw: str | None
    body_resolved: str | None
    link_url: str | None
    received_at: datetime
    fetched_at: datetime | None
    status: ItemStatus
    intent: str | None = None
    confidence: float | None = None
    is_high_risk: bool = False
    urgency: Urgency | None = None
    reason: str | None = None
    classified_at: datetime | None = None
    digest_id: int | None = None
    digest_sent_at: datetime | None = None

    def classification_text(self) -> str:
        """Return the text the classifier sees: subject plus best body."""
        parts = (self.subject, self.body_resolved or self.body_raw)
        return "\n".join(part.strip() for part in parts if part and part.strip())


@dataclass(slots=True)
class DigestRecord:
    """One generated report cycle."""

    id: int | None
    sent_at: datetime
    item_count: int
    urgent_count: int
    recipient: str
    fingerprint: str
    status: DigestStatus
    report_path: str | None = None


@dataclass(slots=True)
class SensorReading:
    """Secondary reading rendered alongside the digest."""

    name: str
    current_reading: float
    target_reading: float | None
    mode: str
    last_updated: str | None = None


@dataclass(slots=True)
class PublishResult:
    """Locations written by the artifact publisher."""

    primary_location: Path
    archive_location: Path


@dataclass(slots=True)
class ClassificationReport:
    """Counts produced by one batch classification pass."""

    classified: int = 0
    skipped: int = 0
    failed: int = 0


@dataclass(slots=True)
class DigestOutcome:
    """Result of a digest build, including no-op builds."""

    built: bool
    item_count: int
    urgent_count: int
    fingerprint: str
    digest_id: int | None = None
    report_path: Path | None = None
    delivered: bool = False
    skipped_reason: str | None = None
    category_counts: dict[str, int] = field(default_factory=dict)


__all__ = [
    "Classification",
    "ClassificationReport",
    "DigestOutcome",
    "DigestRecord",
    "DigestStatus",
    "IncomingMessage",
    "Item",
    "ItemStatus",
    "NewItem",
    "PublishResult",
    "SensorReading",
    "Urgency",
]
