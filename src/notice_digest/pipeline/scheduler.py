"""Fixed-interval scheduling of pipeline runs."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

LOGGER = logging.getLogger(__name__)


class Triggerable(Protocol):
    """Anything that can be asked to start a run."""

    async def trigger(self) -> object:
        """Start a run, or drop the request when one is active."""
        raise NotImplementedError


async def run_periodically(
    runner: Triggerable, interval_seconds: float, stop_event: asyncio.Event
) -> None:
    """Trigger ``runner`` immediately and then every ``interval_seconds``.

    Each trigger runs as its own task so a slow run does not delay the clock;
    overlapping triggers are dropped by the runner's guard. Returns once
    ``stop_event`` is set and in-flight runs have finished.
    """
    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be positive")

    tasks: set[asyncio.Task[object]] = set()
    while not stop_event.is_set():
        task = asyncio.create_task(runner.trigger())
        tasks.add(task)
        task.add_done_callback(tasks.discard)
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue

    if tasks:
        LOGGER.info("Waiting for %s in-flight run(s) to finish", len(tasks))
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                LOGGER.error("Scheduled run ended with an error: %s", result)
    LOGGER.info("Scheduler stopped")


__all__ = ["Triggerable", "run_periodically"]
