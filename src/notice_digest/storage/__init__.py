"""Persistence layer for items and digests."""

from .sqlite import SqliteItemRepository

__all__ = ["SqliteItemRepository"]
