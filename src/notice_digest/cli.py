"""Command-line entry point for notice-digest."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from collections.abc import Callable
from pathlib import Path

from notice_digest.core import AppSettings, configure_logging, load_app_settings
from notice_digest.core.datetime_utils import display_datetime
from notice_digest.core.errors import StoreInitializationError
from notice_digest.pipeline import (
    PipelineReport,
    PipelineRunner,
    build_context,
    run_periodically,
)
from notice_digest.storage import SqliteItemRepository

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STORE_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="notice-digest",
        description="Ingest, classify and summarise notifications.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="run",
        choices=["run", "status"],
        help="Operation to execute (default: run).",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run the pipeline a single time instead of on a schedule.",
    )
    parser.add_argument(
        "--send-email",
        dest="send_email",
        action="store_true",
        help="Deliver the digest summary (also requires digest.enable_delivery).",
    )
    parser.add_argument(
        "--no-publish",
        dest="publish",
        action="store_false",
        help="Skip copying the report into the public directory.",
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> int:
    """Execute the requested CLI command and return the exit code."""
    if args.command == "status":
        return _show_status(settings)
    return asyncio.run(
        _run_pipeline(
            settings,
            once=args.once,
            send_requested=args.send_email,
            publish=args.publish,
        )
    )


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    return execute(args, settings)


async def _run_pipeline(
    settings: AppSettings, *, once: bool, send_requested: bool, publish: bool
) -> int:
    try:
        context = build_context(
            settings, send_requested=send_requested, publish=publish
        )
    except StoreInitializationError as exc:
        LOGGER.critical("Cannot start: %s", exc)
        return EXIT_STORE_FAILURE

    runner = PipelineRunner(context)
    stop_event = asyncio.Event()
    try:
        if once:
            run_task = asyncio.create_task(runner.run_once())
            _install_signal_handlers(stop_event, on_stop=run_task.cancel)
            try:
                report = await run_task
            except asyncio.CancelledError:
                if not run_task.cancelled():
                    raise
                LOGGER.warning("Run interrupted before completion")
                return EXIT_INTERRUPTED
            if report is not None:
                _print_report(report)
        else:
            _install_signal_handlers(stop_event)
            interval = settings.schedule.interval_minutes * 60
            LOGGER.info(
                "Scheduler started, running every %s minutes",
                settings.schedule.interval_minutes,
            )
            await run_periodically(runner, interval, stop_event)
    finally:
        await runner.aclose()
        LOGGER.info("Resources released")
    return EXIT_OK


def _install_signal_handlers(
    stop_event: asyncio.Event, on_stop: Callable[[], object] | None = None
) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, _request_stop, stop_event, signum, on_stop)
        except NotImplementedError:
            # Windows event loops do not support signal handlers.
            signal.signal(
                signum,
                lambda received, _frame: loop.call_soon_threadsafe(
                    _request_stop, stop_event, received, on_stop
                ),
            )


def _request_stop(
    stop_event: asyncio.Event,
    signum: int,
    on_stop: Callable[[], object] | None = None,
) -> None:
    LOGGER.info("Received %s, shutting down", signal.Signals(signum).name)
    stop_event.set()
    if on_stop is not None:
        on_stop()


def _print_report(report: PipelineReport) -> None:
    for result in report.stages:
        detail = f" - {result.reason}" if result.reason else ""
        print(f"{result.stage:<10} {result.status.value:<8}{detail}")
    digest = report.digest
    if digest is not None and digest.built:
        print(
            f"Digest {digest.digest_id}: {digest.item_count} items "
            f"({digest.urgent_count} urgent) -> {digest.report_path}"
        )
    print(f"New items: {report.inserted}. Took {report.duration_seconds:.1f}s.")


def _show_status(settings: AppSettings) -> int:
    try:
        repository = SqliteItemRepository(settings.storage)
    except StoreInitializationError as exc:
        print(f"Store unavailable: {exc}")
        return EXIT_STORE_FAILURE

    with repository:
        counts = repository.count_by_status()
        latest = repository.latest_digest()
        last_received = repository.last_received_at()

    print(f"Database path: {settings.storage.db_path}")
    for status, total in counts.items():
        print(f"{status.value:<11} {total:>6}")
    print(
        "Last item received: "
        f"{display_datetime(last_received, settings.digest.timezone)}"
    )
    if latest is None:
        print("No digests generated yet.")
    else:
        print(
            f"Latest digest #{latest.id} ({latest.status.value}) "
            f"{display_datetime(latest.sent_at, settings.digest.timezone)}: "
            f"{latest.item_count} items, {latest.urgent_count} urgent"
        )
        if latest.report_path:
            print(f"Report: {latest.report_path}")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
