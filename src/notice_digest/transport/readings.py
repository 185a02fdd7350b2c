"""Secondary sensor readings rendered beside the digest."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from notice_digest.core.config import SourceSettings
from notice_digest.core.errors import SchemaMismatchError
from notice_digest.core.models import SensorReading

from .http_support import build_async_client, get_json

LOGGER = logging.getLogger(__name__)


class HttpReadingSource:
    """Fetch sensor readings from a JSON endpoint."""

    def __init__(
        self,
        url: str,
        settings: SourceSettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._settings = settings
        self._client = client

    async def fetch_readings(self) -> list[SensorReading]:
        """Return readings listed under ``readings`` (or a bare list)."""
        payload = await get_json(self._session(), self._url)
        if isinstance(payload, Mapping):
            payload = payload.get("readings")
        if not isinstance(payload, list):
            raise SchemaMismatchError("Readings payload has no readings list")
        readings = [_to_reading(entry) for entry in payload]
        LOGGER.info("Fetched %s sensor readings", len(readings))
        return readings

    async def aclose(self) -> None:
        """Release the underlying HTTP client; a later call opens a new one."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _session(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = build_async_client(self._settings)
        return self._client


def _to_reading(entry: Any) -> SensorReading:
    if not isinstance(entry, Mapping):
        raise SchemaMismatchError("Reading entry is not an object")
    name = entry.get("name")
    current = entry.get("current_reading", entry.get("current"))
    if not isinstance(name, str) or not _is_number(current):
        raise SchemaMismatchError("Reading entry lacks name or current value")
    target = entry.get("target_reading", entry.get("target"))
    updated = entry.get("last_updated")
    return SensorReading(
        name=name,
        current_reading=float(current),
        target_reading=float(target) if _is_number(target) else None,
        mode=str(entry.get("mode") or "unknown"),
        last_updated=str(updated) if updated else None,
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


__all__ = ["HttpReadingSource"]
