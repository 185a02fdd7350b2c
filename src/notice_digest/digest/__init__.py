"""Digest grouping, rendering and building."""

from .builder import DigestBuilder, build_summary_text, compute_fingerprint
from .grouping import CategoryGroup, group_by_category, resolve_source_category
from .render import JinjaReportRenderer

__all__ = [
    "CategoryGroup",
    "DigestBuilder",
    "JinjaReportRenderer",
    "build_summary_text",
    "compute_fingerprint",
    "group_by_category",
    "resolve_source_category",
]
