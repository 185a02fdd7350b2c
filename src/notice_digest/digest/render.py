"""HTML report rendering and atomic report files."""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from notice_digest.core.datetime_utils import display_datetime

LOGGER = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
REPORT_TEMPLATE = "report.html"
REPORT_PREFIX = "digest-"


class JinjaReportRenderer:
    """Render grouped items into an HTML document."""

    def __init__(
        self, *, timezone: str = "UTC", template_dir: Path = TEMPLATE_DIR
    ) -> None:
        self._environment = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._environment.filters["localtime"] = lambda value: display_datetime(
            value, timezone
        )

    def render(self, context: dict[str, object]) -> str:
        """Return the rendered report for ``context``."""
        template = self._environment.get_template(REPORT_TEMPLATE)
        return template.render(**context)


def report_filename(generated_at: datetime) -> str:
    """Return the timestamped file name used for a report."""
    return f"{REPORT_PREFIX}{generated_at.strftime('%Y%m%d-%H%M%S')}.html"


def unique_report_path(output_dir: Path, generated_at: datetime) -> Path:
    """Return a report path in ``output_dir`` that no existing report uses.

    Reports generated within the same second get a ``_002``, ``_003`` ...
    suffix, which keeps name order equal to generation order.
    """
    base = Path(report_filename(generated_at))
    candidate = output_dir / base.name
    sequence = 1
    while candidate.exists():
        sequence += 1
        candidate = output_dir / f"{base.stem}_{sequence:03d}{base.suffix}"
    return candidate



def write_temporary_report(content: str, output_dir: Path) -> Path:
    """Write ``content`` to a temporary file inside ``output_dir``."""
    output_dir.mkdir(parents=True, exist_ok=True)
    handle, raw_path = tempfile.mkstemp(
        prefix=".pending-", suffix=".html", dir=output_dir
    )
    with os.fdopen(handle, "w", encoding="utf-8") as stream:
        stream.write(content)
    return Path(raw_path)


def finalize_report(temp_path: Path, final_path: Path) -> Path:
    """Move a temporary report into its final location."""
    os.replace(temp_path, final_path)
    LOGGER.debug("Report moved into place at %s", final_path)
    return final_path


def prune_reports(output_dir: Path, keep: int) -> list[Path]:
    """Delete the oldest reports beyond ``keep``; return what was removed."""
    reports = sorted(output_dir.glob(f"{REPORT_PREFIX}*.html"))
    stale = reports[:-keep] if keep > 0 else reports
    for path in stale:
        path.unlink(missing_ok=True)
    if stale:
        LOGGER.info("Pruned %s old reports from %s", len(stale), output_dir)
    return stale


__all__ = [
    "JinjaReportRenderer",
    "finalize_report",
    "prune_reports",
    "report_filename",
    "unique_report_path",
    "write_temporary_report",
]
