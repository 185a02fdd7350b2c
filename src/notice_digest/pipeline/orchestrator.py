"""Sequential, stage-isolated pipeline runner."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime

from notice_digest.core.datetime_utils import utc_now
from notice_digest.core.models import DigestOutcome, PublishResult

from .context import PipelineContext
from .stages import STAGES, Stage, StageResult, StageStatus, run_stage

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PipelineReport:
    """Summary of one pipeline run."""

    started_at: datetime
    stages: list[StageResult] = field(default_factory=list)
    inserted: int = 0
    digest: DigestOutcome | None = None
    publish: PublishResult | None = None
    duration_seconds: float = 0.0

    def stage(self, name: str) -> StageResult | None:
        """Return the result for stage ``name`` if it ran."""
        return next((result for result in self.stages if result.stage == name), None)

    @property
    def failed_stages(self) -> list[str]:
        """Names of the stages that failed."""
        return [
            result.stage for result in self.stages if result.status is StageStatus.FAILED
        ]


class PipelineRunner:
    """Run the pipeline stages in order with an in-progress guard.

    A trigger that arrives while a run is active is dropped, never queued.
    """

    def __init__(
        self,
        context: PipelineContext,
        *,
        stages: tuple[tuple[str, Stage], ...] = STAGES,
    ) -> None:
        self._context = context
        self._stages = stages
        self._running = False
        self.last_report: PipelineReport | None = None

    @property
    def context(self) -> PipelineContext:
        """Collaborators the runner drives."""
        return self._context

    @property
    def is_running(self) -> bool:
        """Return ``True`` while a run is in progress."""
        return self._running

    async def trigger(self) -> PipelineReport | None:
        """Start a run unless one is already active; return its report."""
        if self._running:
            LOGGER.warning("Pipeline already running, dropping trigger")
            return None
        return await self.run_once()

    async def run_once(self) -> PipelineReport | None:
        """Run every stage once, continuing past failed stages."""
        if self._running:
            LOGGER.warning("Pipeline already running, dropping trigger")
            return None

        self._running = True
        started = time.monotonic()
        report = PipelineReport(started_at=utc_now())
        try:
            state = self._context.reset()
            LOGGER.info("Pipeline run started")
            for name, stage in self._stages:
                report.stages.append(await run_stage(name, stage, self._context))
            report.inserted = state.inserted
            report.digest = state.digest
            report.publish = state.publish
        finally:
            self._running = False
        report.duration_seconds = time.monotonic() - started
        self.last_report = report

        LOGGER.info(
            "Pipeline run finished in %.2fs: %s new items, digest %s, %s",
            report.duration_seconds,
            report.inserted,
            _describe_digest(report.digest),
            (
                f"failed stages: {', '.join(report.failed_stages)}"
                if report.failed_stages
                else "no failed stages"
            ),
        )
        return report

    async def aclose(self) -> None:
        """Release every collaborator held by the context."""
        await self._context.aclose()


def _describe_digest(outcome: DigestOutcome | None) -> str:
    if outcome is None:
        return "not attempted"
    if not outcome.built:
        return f"skipped ({outcome.skipped_reason})"
    return f"#{outcome.digest_id} ({outcome.item_count} items)"


__all__ = ["PipelineReport", "PipelineRunner"]
