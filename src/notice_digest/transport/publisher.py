"""Filesystem publisher for rendered reports."""

from __future__ import annotations

import json
import logging
import re
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from notice_digest.core.config import PublishSettings
from notice_digest.core.datetime_utils import serialize_datetime, utc_now
from notice_digest.core.models import PublishResult
from notice_digest.digest.render import TEMPLATE_DIR

LOGGER = logging.getLogger(__name__)

_ARCHIVE_NAME = re.compile(r"^digest-(\d{8})-(\d{6})(?:_\d+)?\.html$")
HISTORY_TEMPLATE = "history.html"


@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    """One archived report listed on the history page."""

    filename: str
    label: str


class FilesystemPublisher:
    """Copy reports into a static public directory with a history page."""

    def __init__(
        self, settings: PublishSettings, *, title: str = "Notice Digest"
    ) -> None:
        self._public_dir = Path(settings.public_dir)
        self._archives_dir = self._public_dir / "archives"
        self._max_archive_files = settings.max_archive_files
        self._title = title
        self._environment = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(["html"]),
        )

    def publish(self, report_path: Path) -> PublishResult:
        """Publish ``report_path`` as the latest report and archive a copy."""
        if not report_path.is_file():
            raise FileNotFoundError(f"Digest report not found: {report_path}")

        self._archives_dir.mkdir(parents=True, exist_ok=True)
        latest_path = self._public_dir / "index.html"
        archive_path = self._archives_dir / report_path.name
        shutil.copyfile(report_path, latest_path)
        shutil.copyfile(report_path, archive_path)
        LOGGER.info("Published %s to %s", report_path, self._public_dir)

        self.write_history_page()
        self._write_publish_meta()
        return PublishResult(
            primary_location=latest_path, archive_location=archive_path
        )

    def write_history_page(self) -> Path:
        """Prune old archives and regenerate the history page."""
        self._archives_dir.mkdir(parents=True, exist_ok=True)
        archives = sorted(
            (
                path.name
                for path in self._archives_dir.iterdir()
                if _ARCHIVE_NAME.match(path.name)
            ),
            reverse=True,
        )
        kept = archives[: self._max_archive_files]
        stale = archives[self._max_archive_files :]
        for filename in stale:
            (self._archives_dir / filename).unlink(missing_ok=True)
        if stale:
            LOGGER.info("Pruned %s old archives", len(stale))

        template = self._environment.get_template(HISTORY_TEMPLATE)
        content = template.render(
            title=self._title,
            archives=[ArchiveEntry(name, _archive_label(name)) for name in kept],
        )
        history_path = self._public_dir / "history.html"
        history_path.write_text(content, encoding="utf-8")
        LOGGER.debug("History page lists %s archives", len(kept))
        return history_path

    def _write_publish_meta(self) -> None:
        meta_path = self._public_dir / "publish-meta.json"
        meta_path.write_text(
            json.dumps({"published_at": serialize_datetime(utc_now())}, indent=2),
            encoding="utf-8",
        )


def _archive_label(filename: str) -> str:
    match = _ARCHIVE_NAME.match(filename)
    if not match:
        return filename
    stamp = datetime.strptime(match.group(1) + match.group(2), "%Y%m%d%H%M%S")
    return stamp.strftime("%b %d, %Y %I:%M:%S %p")


__all__ = ["ArchiveEntry", "FilesystemPublisher"]
