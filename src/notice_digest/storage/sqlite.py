"""SQLite-backed item repository implementation."""

from __future__ import annotations

import logging
import re
import sqlite3
from collections.abc import Sequence
from datetime import datetime, timedelta
from pathlib import Path
from types import TracebackType
from typing import cast

from ..core.config import StorageSettings
from ..core.datetime_utils import parse_datetime, serialize_datetime, utc_now
from ..core.errors import DataIntegrityError, StoreInitializationError
from ..core.interfaces import ItemRepository
from ..core.models import (
    Classification,
    DigestRecord,
    DigestStatus,
    Item,
    ItemStatus,
    NewItem,
    Urgency,
)

LOGGER = logging.getLogger(__name__)

_ADD_COLUMN = re.compile(
    r"^ALTER\s+TABLE\s+(\w+)\s+ADD\s+COLUMN\s+(\w+)", re.IGNORECASE
)

_ITEM_COLUMNS = """
    id, external_id, source, sender, subject, body_raw, body_resolved,
    link_url, received_at, fetched_at, intent, confidence, is_high_risk,
    urgency, classification_reason, classified_at, digest_id,
    digest_sent_at, status
"""

_DIGEST_COLUMNS = """
    id, sent_at, item_count, urgent_count, recipient, fingerprint, status,
    report_path
"""

# Part of the fingerprint contract: changing it changes what "unchanged" means.
_DIGEST_ORDER = """
    ORDER BY CASE urgency
        WHEN 'high' THEN 0
        WHEN 'medium' THEN 1
        WHEN 'low' THEN 2
        ELSE 3
    END, received_at ASC, id ASC
"""

_MARK_SENT_SQL = """
    UPDATE items
    SET digest_id = ?, digest_sent_at = ?, status = 'sent'
    WHERE id = ? AND status = 'classified'
"""


class SqliteItemRepository(ItemRepository):
    """Persist items and digests using SQLite."""

    def __init__(self, settings: StorageSettings) -> None:
        """Open the database and apply migrations."""
        self._settings = settings
        db_path = Path(settings.db_path)
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(db_path)
            self._connection.row_factory = sqlite3.Row
            self._configure_connection()
            self._apply_migrations()
        except (OSError, sqlite3.Error) as exc:
            raise StoreInitializationError(
                f"Unable to initialise store at {db_path}: {exc}"
            ) from exc

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> SqliteItemRepository:
        """Enter context manager scope."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Ensure the connection is closed when exiting context manager."""
        self.close()

    # Items ------------------------------------------------------------------
    def exists(self, external_id: str) -> bool:
        """Return ``True`` when ``external_id`` has been stored before."""
        cur = self._connection.execute(
            "SELECT 1 FROM items WHERE external_id = ?", (external_id,)
        )
        return cur.fetchone() is not None

    def insert(self, item: NewItem) -> int | None:
        """Insert a pending item; duplicates are ignored and return ``None``."""
        if not item.external_id:
            raise ValueError("Item external_id is required")
        if not item.source:
            raise ValueError("Item source is required")

        with self._connection:
            cur = self._connection.execute(
                """
                INSERT INTO items (
                    external_id,
                    source,
                    sender,
                    subject,
                    body_raw,
                    link_url,
                    received_at,
                    fetched_at,
                    status
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'pending')
                ON CONFLICT(external_id) DO NOTHING
                """,
                (
                    item.external_id,
                    item.source,
                    item.sender,
                    item.subject,
                    item.body_raw,
                    item.link_url,
                    serialize_datetime(item.received_at),
                    serialize_datetime(utc_now()),
                ),
            )
        if cur.rowcount == 0:
            LOGGER.debug("Item %s already stored, skipping", item.external_id)
            return None
        LOGGER.debug("Inserted item %s as id %s", item.external_id, cur.lastrowid)
        return cur.lastrowid

    def get_item(self, item_id: int) -> Item | None:
        """Fetch a single item by primary key."""
        cur = self._connection.execute(
            f"SELECT {_ITEM_COLUMNS} FROM items WHERE id = ?", (item_id,)
        )
        row = cur.fetchone()
        return _row_to_item(row) if row is not None else None

    def pending_items(self) -> list[Item]:
        """Return all pending items ordered by arrival."""
        cur = self._connection.execute(
            f"""
            SELECT {_ITEM_COLUMNS} FROM items
            WHERE status = 'pending'
            ORDER BY received_at ASC, id ASC
            """
        )
        return [_row_to_item(row) for row in cur.fetchall()]

    def visible_classified_items(
        self, window_hours: int | None = None, *, now: datetime | None = None
    ) -> list[Item]:
        """Return classified items, most urgent first, then oldest first."""
        if window_hours is None or window_hours <= 0:
            cur = self._connection.execute(
                f"""
                SELECT {_ITEM_COLUMNS} FROM items
                WHERE status = 'classified'
                {_DIGEST_ORDER}
                """
            )
        else:
            cutoff = (now or utc_now()) - timedelta(hours=window_hours)
            cur = self._connection.execute(
                f"""
                SELECT {_ITEM_COLUMNS} FROM items
                WHERE status = 'classified' AND received_at >= ?
                {_DIGEST_ORDER}
                """,
                (serialize_datetime(cutoff),),
            )
        return [_row_to_item(row) for row in cur.fetchall()]

    def update_classification(
        self,
        item_id: int,
        classification: Classification,
        *,
        classified_at: datetime | None = None,
    ) -> bool:
        """Store classification fields; sent items are left untouched."""
        with self._connection:
            cur = self._connection.execute(
                """
                UPDATE items
                SET intent = ?,
                    confidence = ?,
                    is_high_risk = ?,
                    urgency = ?,
                    classification_reason = ?,
                    classified_at = ?,
                    status = 'classified'
                WHERE id = ? AND status != 'sent'
                """,
                (
                    classification.intent,
                    classification.confidence,
                    1 if classification.is_high_risk else 0,
                    classification.urgency.value,
                    classification.reason,
                    serialize_datetime(classified_at or utc_now()),
                    item_id,
                ),
            )
        updated = cur.rowcount > 0
        if not updated:
            LOGGER.warning(
                "Classification for item %s not stored (missing or already sent)",
                item_id,
            )
        return updated

    def update_resolved_body(self, item_id: int, text: str) -> None:
        """Store the resolved body text for an item."""
        with self._connection:
            self._connection.execute(
                "UPDATE items SET body_resolved = ? WHERE id = ?", (text, item_id)
            )

    def count_by_status(self) -> dict[ItemStatus, int]:
        """Return the number of items per status, including empty statuses."""
        counts = {status: 0 for status in ItemStatus}
        cur = self._connection.execute(
            "SELECT status, COUNT(*) AS total FROM items GROUP BY status"
        )
        for row in cur.fetchall():
            counts[ItemStatus(row["status"])] = row["total"]
        return counts

    def last_received_at(self) -> datetime | None:
        """Return the newest ``received_at`` across all items."""
        cur = self._connection.execute("SELECT MAX(received_at) FROM items")
        row = cur.fetchone()
        return parse_datetime(row[0]) if row is not None else None

    # Digests ----------------------------------------------------------------
    def create_digest(self, record: DigestRecord) -> int:
        """Append a digest row."""
        with self._connection:
            digest_id = self._insert_digest(record)
        return digest_id

    def mark_sent(
        self, ids: Sequence[int], digest_id: int, *, sent_at: datetime | None = None
    ) -> int:
        """Mark classified items as sent inside one transaction."""
        if not ids:
            return 0
        stamp = serialize_datetime(sent_at or utc_now())
        with self._connection:
            cur = self._connection.executemany(
                _MARK_SENT_SQL, [(digest_id, stamp, item_id) for item_id in ids]
            )
        return cur.rowcount

    def commit_digest(self, record: DigestRecord, ids: Sequence[int]) -> DigestRecord:
        """Create a digest and mark every id sent, or change nothing at all."""
        stamp = serialize_datetime(record.sent_at)
        try:
            with self._connection:
                digest_id = self._insert_digest(record)
                if ids:
                    cur = self._connection.executemany(
                        _MARK_SENT_SQL, [(digest_id, stamp, item_id) for item_id in ids]
                    )
                    marked = cur.rowcount
                else:
                    marked = 0
                if marked != len(ids) or marked != record.item_count:
                    raise DataIntegrityError(
                        f"Digest expected {record.item_count} items, "
                        f"{len(ids)} ids supplied, {marked} marked"
                    )
        except DataIntegrityError:
            LOGGER.error("Digest commit rolled back: item set changed mid-build")
            raise

        LOGGER.info("Committed digest %s with %s items", digest_id, marked)
        return DigestRecord(
            id=digest_id,
            sent_at=record.sent_at,
            item_count=record.item_count,
            urgent_count=record.urgent_count,
            recipient=record.recipient,
            fingerprint=record.fingerprint,
            status=record.status,
            report_path=record.report_path,
        )

    def last_digest_fingerprint(self) -> str | None:
        """Return the fingerprint of the newest digest, if any."""
        cur = self._connection.execute(
            "SELECT fingerprint FROM digests ORDER BY id DESC LIMIT 1"
        )
        row = cur.fetchone()
        return row["fingerprint"] if row is not None else None

    def latest_digest(self) -> DigestRecord | None:
        """Return the newest digest row."""
        cur = self._connection.execute(
            f"SELECT {_DIGEST_COLUMNS} FROM digests ORDER BY id DESC LIMIT 1"
        )
        row = cur.fetchone()
        return _row_to_digest(row) if row is not None else None

    def close(self) -> None:
        """Close the underlying SQLite connection."""
        self._connection.close()

    # Internal helpers --------------------------------------------------------
    def _insert_digest(self, record: DigestRecord) -> int:
        cur = self._connection.execute(
            """
            INSERT INTO digests (
                sent_at,
                item_count,
                urgent_count,
                recipient,
                fingerprint,
                status,
                report_path
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                serialize_datetime(record.sent_at),
                record.item_count,
                record.urgent_count,
                record.recipient,
                record.fingerprint,
                record.status.value,
                record.report_path,
            ),
        )
        return cast(int, cur.lastrowid)

    def _configure_connection(self) -> None:
        with self._connection:
            self._connection.execute("PRAGMA foreign_keys = ON")
        self._connection.execute("PRAGMA journal_mode = WAL")

    def _apply_migrations(self) -> None:
        schema_dir = Path(__file__).resolve().parent / "schema"
        for migration in sorted(schema_dir.glob("*.sql")):
            LOGGER.debug("Applying migration %s", migration.name)
            script = migration.read_text(encoding="utf-8")
            for statement in _split_statements(script):
                self._apply_statement(statement)

    def _apply_statement(self, statement: str) -> None:
        """Execute one migration statement, skipping columns that already exist."""
        match = _ADD_COLUMN.match(statement)
        if match and self._has_column(match.group(1), match.group(2)):
            LOGGER.debug(
                "Column %s.%s already exists, skipping", match.group(1), match.group(2)
            )
            return
        with self._connection:
            self._connection.execute(statement)

    def _has_column(self, table: str, column: str) -> bool:
        cur = self._connection.execute(f"PRAGMA table_info({table})")
        return any(row["name"] == column for row in cur.fetchall())


def _split_statements(script: str) -> list[str]:
    lines = [
        line
        for line in script.splitlines()
        if line.strip() and not line.strip().startswith("--")
    ]
    return [part.strip() for part in "\n".join(lines).split(";") if part.strip()]


def _row_to_item(row: sqlite3.Row) -> Item:
    urgency = row["urgency"]
    return Item(
        id=row["id"],
        external_id=row["external_id"],
        source=row["source"],
        sender=row["sender"],
        subject=row["subject"],
        body_raw=row["body_raw"],
        body_resolved=row["body_resolved"],
        link_url=row["link_url"],
        received_at=cast(datetime, parse_datetime(row["received_at"])),
        fetched_at=parse_datetime(row["fetched_at"]),
        status=ItemStatus(row["status"]),
        intent=row["intent"],
        confidence=row["confidence"],
        is_high_risk=bool(row["is_high_risk"]),
        urgency=Urgency(urgency) if urgency else None,
        reason=row["classification_reason"],
        classified_at=parse_datetime(row["classified_at"]),
        digest_id=row["digest_id"],
        digest_sent_at=parse_datetime(row["digest_sent_at"]),
    )


def _row_to_digest(row: sqlite3.Row) -> DigestRecord:
    return DigestRecord(
        id=row["id"],
        sent_at=cast(datetime, parse_datetime(row["sent_at"])),
        item_count=row["item_count"],
        urgent_count=row["urgent_count"],
        recipient=row["recipient"],
        fingerprint=row["fingerprint"],
        status=DigestStatus(row["status"]),
        report_path=row["report_path"],
    )


__all__ = ["SqliteItemRepository"]
