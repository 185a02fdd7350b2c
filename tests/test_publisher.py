"""Tests for the filesystem publisher."""

from __future__ import annotations

from pathlib import Path

import pytest

from notice_digest.core.config import PublishSettings
from notice_digest.transport import FilesystemPublisher


def _report(directory: Path, stamp: str, content: str = "<html>r</html>") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"digest-{stamp}.html"
    path.write_text(content, encoding="utf-8")
    return path


def test_publish_copies_latest_and_archive(tmp_path: Path) -> None:
    public_dir = tmp_path / "public"
    publisher = FilesystemPublisher(PublishSettings(public_dir=public_dir))
    report = _report(tmp_path / "out", "20250301-120000", "<html>latest</html>")

    result = publisher.publish(report)

    assert result.primary_location == public_dir / "index.html"
    assert result.archive_location == public_dir / "archives" / report.name
    assert result.primary_location.read_text(encoding="utf-8") == "<html>latest</html>"
    history = (public_dir / "history.html").read_text(encoding="utf-8")
    assert "archives/digest-20250301-120000.html" in history
    assert "Mar 01, 2025" in history
    assert (public_dir / "publish-meta.json").is_file()


def test_same_second_reports_keep_readable_labels(tmp_path: Path) -> None:
    public_dir = tmp_path / "public"
    publisher = FilesystemPublisher(PublishSettings(public_dir=public_dir))

    publisher.publish(_report(tmp_path / "out", "20250301-120000_002"))

    history = (public_dir / "history.html").read_text(encoding="utf-8")
    assert "archives/digest-20250301-120000_002.html" in history
    assert "Mar 01, 2025 12:00:00 PM" in history


def test_history_prunes_oldest_archives(tmp_path: Path) -> None:
    public_dir = tmp_path / "public"
    publisher = FilesystemPublisher(
        PublishSettings(public_dir=public_dir, max_archive_files=2)
    )
    out_dir = tmp_path / "out"
    for stamp in ("20250101-000000", "20250201-000000", "20250301-000000"):
        publisher.publish(_report(out_dir, stamp))

    archives = sorted(path.name for path in (public_dir / "archives").iterdir())
    assert archives == ["digest-20250201-000000.html", "digest-20250301-000000.html"]


def test_publish_missing_report_raises(tmp_path: Path) -> None:
    publisher = FilesystemPublisher(PublishSettings(public_dir=tmp_path / "public"))

    with pytest.raises(FileNotFoundError):
        publisher.publish(tmp_path / "missing.html")
