"""Pipeline stages returning tagged results instead of raising."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from notice_digest.core.config import DigestSettings
from notice_digest.core.errors import DataIntegrityError, StageTimeoutError
from notice_digest.core.models import IncomingMessage, NewItem
from notice_digest.core.resilience import (
    NON_RETRYABLE,
    retry_with_settings,
    with_timeout,
)
from notice_digest.digest.grouping import resolve_source_category

from .context import PipelineContext

LOGGER = logging.getLogger(__name__)

# Source errors that end the source's turn for this cycle on first occurrence.
_SOURCE_GIVE_UP = (*NON_RETRYABLE, DataIntegrityError)


class StageStatus(str, Enum):
    """Outcome tag of a pipeline stage."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True)
class StageResult:
    """Tagged result of one stage."""

    status: StageStatus
    reason: str | None = None
    value: Any = None
    stage: str = ""
    duration_seconds: float = 0.0

    @classmethod
    def success(cls, value: Any = None, reason: str | None = None) -> StageResult:
        """Return a ``success`` result."""
        return cls(StageStatus.SUCCESS, reason=reason, value=value)

    @classmethod
    def skipped(cls, reason: str) -> StageResult:
        """Return a ``skipped`` result."""
        return cls(StageStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, reason: str, value: Any = None) -> StageResult:
        """Return a ``failed`` result."""
        return cls(StageStatus.FAILED, reason=reason, value=value)

    @property
    def ok(self) -> bool:
        """Return ``True`` unless the stage failed."""
        return self.status is not StageStatus.FAILED


Stage = Callable[[PipelineContext], Awaitable[StageResult]]


async def run_stage(name: str, stage: Stage, context: PipelineContext) -> StageResult:
    """Run ``stage``, turning any escaped exception into a ``failed`` result."""
    started = time.monotonic()
    try:
        result = await stage(context)
    except Exception as exc:  # pylint: disable=broad-except
        LOGGER.exception("Stage %s raised unexpectedly", name)
        result = StageResult.failed(f"{type(exc).__name__}: {exc}")
    result.stage = name
    result.duration_seconds = time.monotonic() - started

    if result.status is StageStatus.FAILED:
        LOGGER.error("Stage %s failed: %s", name, result.reason)
    elif result.status is StageStatus.SKIPPED:
        LOGGER.info("Stage %s skipped: %s", name, result.reason)
    else:
        LOGGER.info(
            "Stage %s completed in %.2fs%s",
            name,
            result.duration_seconds,
            f" ({result.reason})" if result.reason else "",
        )
    return result


def _to_new_item(
    message: IncomingMessage, source_name: str, settings: DigestSettings
) -> NewItem:
    category_keys = {category.key for category in settings.categories}
    if source_name in category_keys:
        category = source_name
    else:
        category = resolve_source_category(message.sender_name, settings)
    return NewItem(
        external_id=message.external_id,
        source=category,
        received_at=message.timestamp,
        sender=message.sender_name or None,
        subject=message.subject or None,
        body_raw=message.body or None,
        link_url=message.url,
    )


async def ingest_stage(context: PipelineContext) -> StageResult:
    """Fetch every source and insert unseen messages as pending items."""
    if not context.sources:
        return StageResult.skipped("no sources configured")

    settings = context.settings
    failures: list[str] = []
    inserted = 0
    for source in context.sources:
        try:
            messages = await retry_with_settings(
                source.fetch_messages,
                settings.retry,
                label=f"source {source.name}",
                give_up_on=_SOURCE_GIVE_UP,
            )
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error(
                "Source %s contributed nothing this cycle (%s): %s",
                source.name,
                type(exc).__name__,
                exc,
            )
            failures.append(f"{source.name}: {type(exc).__name__}")
            continue

        source_new = 0
        for message in messages:
            new_item = _to_new_item(message, source.name, settings.digest)
            if context.repository.insert(new_item) is not None:
                source_new += 1
        LOGGER.info(
            "Source %s: %s messages, %s new", source.name, len(messages), source_new
        )
        inserted += source_new

    context.state.inserted = inserted
    if len(failures) == len(context.sources):
        return StageResult.failed("; ".join(failures), value=inserted)
    reason = f"failed sources: {'; '.join(failures)}" if failures else None
    return StageResult.success(inserted, reason=reason)


async def resolve_stage(context: PipelineContext) -> StageResult:
    """Fill in resolved bodies for pending items carrying a link."""
    resolver = context.resolver
    if resolver is None:
        return StageResult.skipped("link resolver disabled")

    candidates = [
        item
        for item in context.repository.pending_items()
        if item.link_url and not item.body_resolved
    ]
    if not candidates:
        return StageResult.skipped("no links to resolve")

    async def _resolve_all() -> int:
        resolved = 0
        for item in candidates:
            assert item.link_url is not None
            try:
                text = await resolver.resolve(item.link_url)
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.warning("Failed to resolve item %s link: %s", item.id, exc)
                continue
            if text:
                context.repository.update_resolved_body(item.id, text)
                resolved += 1
        return resolved

    try:
        resolved = await with_timeout(
            _resolve_all,
            context.settings.schedule.stage_timeout_seconds,
            label="link resolution",
        )
    except StageTimeoutError as exc:
        await resolver.aclose()
        return StageResult.failed(str(exc))

    context.state.resolved = resolved
    summary = f"{resolved}/{len(candidates)} resolved"
    return StageResult.success(resolved, reason=summary)


async def classify_stage(context: PipelineContext) -> StageResult:
    """Classify every pending item."""
    report = await context.engine.classify_pending(context.repository)
    context.state.classification = report
    reason = None
    if report.failed:
        reason = f"{report.failed} items failed"
    return StageResult.success(report, reason=reason)


async def enrich_stage(context: PipelineContext) -> StageResult:
    """Fetch secondary readings for the report."""
    reading_source = context.reading_source
    if reading_source is None:
        return StageResult.skipped("no reading source configured")

    # An empty list renders an empty section when the source fails.
    context.state.readings = []
    settings = context.settings
    try:
        readings = await with_timeout(
            lambda: retry_with_settings(
                reading_source.fetch_readings, settings.retry, label="readings"
            ),
            settings.schedule.stage_timeout_seconds,
            label="secondary enrichment",
        )
    except StageTimeoutError as exc:
        await reading_source.aclose()
        return StageResult.failed(str(exc))

    context.state.readings = readings
    return StageResult.success(readings, reason=f"{len(readings)} readings")


async def build_stage(context: PipelineContext) -> StageResult:
    """Build the digest unless the visible set is unchanged."""
    state = context.state
    outcome = context.builder.build(
        new_items=state.inserted,
        readings=state.readings,
        send_requested=context.send_requested,
    )
    state.digest = outcome
    if not outcome.built:
        return StageResult.skipped(outcome.skipped_reason or "no-op")
    return StageResult.success(
        outcome, reason=f"digest {outcome.digest_id} with {outcome.item_count} items"
    )


async def publish_stage(context: PipelineContext) -> StageResult:
    """Publish the freshly built report."""
    publisher = context.publisher
    if publisher is None:
        return StageResult.skipped("publishing disabled")
    outcome = context.state.digest
    if outcome is None or not outcome.built or outcome.report_path is None:
        return StageResult.skipped("no new report to publish")

    result = publisher.publish(outcome.report_path)
    context.state.publish = result
    return StageResult.success(result)


STAGES: tuple[tuple[str, Stage], ...] = (
    ("ingest", ingest_stage),
    ("resolve", resolve_stage),
    ("classify", classify_stage),
    ("enrich", enrich_stage),
    ("build", build_stage),
    ("publish", publish_stage),
)


__all__ = [
    "STAGES",
    "Stage",
    "StageResult",
    "StageStatus",
    "build_stage",
    "classify_stage",
    "enrich_stage",
    "ingest_stage",
    "publish_stage",
    "resolve_stage",
    "run_stage",
]
