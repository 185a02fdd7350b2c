"""Route items into configured report categories."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from notice_digest.core.config import CategorySettings, DigestSettings
from notice_digest.core.models import Item, Urgency


@dataclass(slots=True)
class CategoryGroup:
    """One report section and the items routed to it."""

    key: str
    label: str
    items: list[Item] = field(default_factory=list)

    @property
    def urgent_count(self) -> int:
        """Return how many items in the group are high urgency."""
        return sum(1 for item in self.items if item.urgency is Urgency.HIGH)


def resolve_source_category(sender_name: str | None, settings: DigestSettings) -> str:
    """Map a sender name onto a category key using configured patterns."""
    normalized = (sender_name or "").strip().lower()
    fallback_keys = {settings.default_category, settings.catch_all_category}
    if normalized:
        for category in settings.categories:
            if category.key in fallback_keys:
                continue
            if any(pattern.lower() in normalized for pattern in category.senders):
                return category.key
        return settings.default_category
    return settings.catch_all_category


def _ordered_categories(settings: DigestSettings) -> list[CategorySettings]:
    categories = list(settings.categories)
    if all(category.key != settings.catch_all_category for category in categories):
        categories.append(
            CategorySettings(
                key=settings.catch_all_category,
                label=settings.catch_all_category.replace("_", " ").title(),
            )
        )
    return categories


def group_by_category(
    items: Sequence[Item], settings: DigestSettings
) -> list[CategoryGroup]:
    """Group ``items`` by source key in configured order, keeping item order."""
    groups = {
        category.key: CategoryGroup(key=category.key, label=category.label)
        for category in _ordered_categories(settings)
    }
    for item in items:
        key = item.source if item.source in groups else settings.catch_all_category
        groups[key].items.append(item)
    return list(groups.values())


__all__ = ["CategoryGroup", "group_by_category", "resolve_source_category"]
