"""Digest builder: fingerprint, render, commit and deliver one report cycle."""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Callable, Sequence
from datetime import datetime
from pathlib import Path

from notice_digest.core.config import DigestSettings
from notice_digest.core.datetime_utils import display_datetime, utc_now
from notice_digest.core.interfaces import DigestDelivery, ItemRepository, ReportRenderer
from notice_digest.core.models import (
    DigestOutcome,
    DigestRecord,
    DigestStatus,
    Item,
    SensorReading,
    Urgency,
)

from .grouping import CategoryGroup, group_by_category
from .render import (
    JinjaReportRenderer,
    finalize_report,
    prune_reports,
    unique_report_path,
    write_temporary_report,
)

LOGGER = logging.getLogger(__name__)

LOCAL_RECIPIENT = "local-report"


def compute_fingerprint(item_ids: Sequence[int]) -> str:
    """Return the sha256 hex digest of the JSON-encoded ordered id list."""
    encoded = json.dumps(list(item_ids))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def build_summary_text(groups: Sequence[CategoryGroup], report_path: Path) -> str:
    """Return the plain-text summary sent to the digest recipient."""
    lines = ["Digest summary", ""]
    for group in groups:
        line = f"{group.label}: {len(group.items)}"
        if group.urgent_count:
            line += f" ({group.urgent_count} urgent)"
        lines.append(line)
    lines.extend(["", f"Full report: {report_path}"])
    return "\n".join(lines)


class DigestBuilder:
    """Build at most one report per distinct visible item set."""

    def __init__(
        self,
        repository: ItemRepository,
        settings: DigestSettings,
        *,
        renderer: ReportRenderer | None = None,
        delivery: DigestDelivery | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repository = repository
        self._settings = settings
        self._renderer = renderer or JinjaReportRenderer(timezone=settings.timezone)
        self._delivery = delivery
        self._clock = clock

    def build(
        self,
        *,
        new_items: int = 0,
        readings: Sequence[SensorReading] | None = None,
        send_requested: bool = False,
    ) -> DigestOutcome:
        """Build a digest unless the visible set is unchanged since the last one.

        ``new_items`` is the number of items ingested during this cycle. When it
        is zero and either nothing is visible or the fingerprint matches the most
        recent digest, nothing is written and a no-op outcome is returned.
        """
        now = self._clock()
        items = self._repository.visible_classified_items(
            self._settings.visibility_window_hours, now=now
        )
        item_ids = [item.id for item in items]
        fingerprint = compute_fingerprint(item_ids)
        urgent_count = sum(1 for item in items if item.urgency is Urgency.HIGH)

        if new_items == 0:
            skip_reason = None
            if not items:
                skip_reason = "no visible items"
            elif fingerprint == self._repository.last_digest_fingerprint():
                skip_reason = "visible items unchanged"
            if skip_reason is not None:
                LOGGER.info("Digest build skipped: %s", skip_reason)
                return DigestOutcome(
                    built=False,
                    item_count=len(items),
                    urgent_count=urgent_count,
                    fingerprint=fingerprint,
                    skipped_reason=skip_reason,
                )

        groups = group_by_category(items, self._settings)
        deliver = self._delivery_enabled(send_requested)
        content = self._renderer.render(
            self._render_context(groups, items, urgent_count, readings, now)
        )

        output_dir = Path(self._settings.output_dir)
        final_path = unique_report_path(output_dir, now)
        temp_path = write_temporary_report(content, output_dir)
        record = DigestRecord(
            id=None,
            sent_at=now,
            item_count=len(items),
            urgent_count=urgent_count,
            recipient=self._settings.recipient or LOCAL_RECIPIENT,
            fingerprint=fingerprint,
            status=DigestStatus.SENT if deliver else DigestStatus.GENERATED,
            report_path=str(final_path),
        )
        try:
            stored = self._repository.commit_digest(record, item_ids)
        except Exception:
            temp_path.unlink(missing_ok=True)
            raise
        finalize_report(temp_path, final_path)

        LOGGER.info(
            "Digest %s written to %s (%s items, %s urgent)",
            stored.id,
            final_path,
            len(items),
            urgent_count,
        )

        delivered = self._deliver(groups, final_path, now) if deliver else False
        if not deliver:
            LOGGER.info(
                "Digest delivery skipped (enabled=%s, requested=%s, recipient=%s)",
                self._settings.enable_delivery,
                send_requested,
                bool(self._settings.recipient),
            )

        prune_reports(output_dir, self._settings.max_report_files)

        return DigestOutcome(
            built=True,
            item_count=len(items),
            urgent_count=urgent_count,
            fingerprint=fingerprint,
            digest_id=stored.id,
            report_path=final_path,
            delivered=delivered,
            category_counts={group.key: len(group.items) for group in groups},
        )

    def _delivery_enabled(self, send_requested: bool) -> bool:
        return bool(
            self._settings.enable_delivery
            and send_requested
            and self._settings.recipient
            and self._delivery is not None
        )

    def _render_context(
        self,
        groups: Sequence[CategoryGroup],
        items: Sequence[Item],
        urgent_count: int,
        readings: Sequence[SensorReading] | None,
        now: datetime,
    ) -> dict[str, object]:
        return {
            "title": self._settings.title,
            "generated_at": display_datetime(now, self._settings.timezone),
            "timezone": self._settings.timezone,
            "groups": list(groups),
            "item_count": len(items),
            "urgent_count": urgent_count,
            "readings": list(readings) if readings is not None else None,
        }

    def _deliver(
        self, groups: Sequence[CategoryGroup], report_path: Path, now: datetime
    ) -> bool:
        assert self._delivery is not None
        assert self._settings.recipient is not None
        subject = (
            f"{self._settings.title} - "
            f"{display_datetime(now, self._settings.timezone)}"
        )
        try:
            self._delivery.send(
                self._settings.recipient,
                subject,
                build_summary_text(groups, report_path),
            )
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error("Digest delivery failed: %s", exc)
            return False
        LOGGER.info("Digest delivered to %s", self._settings.recipient)
        return True


__all__ = ["DigestBuilder", "build_summary_text", "compute_fingerprint"]
