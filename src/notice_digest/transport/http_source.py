"""JSON-over-HTTP message source."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

import httpx

from notice_digest.core.config import SourceSettings
from notice_digest.core.datetime_utils import parse_datetime, utc_now
from notice_digest.core.errors import DataIntegrityError, SchemaMismatchError
from notice_digest.core.models import IncomingMessage

from .http_support import build_async_client, get_json

LOGGER = logging.getLogger(__name__)

# Accepted spellings for each record field, first match wins.
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "external_id": ("id", "external_id", "message_id", "messageId"),
    "sender_name": (
        "sender_name",
        "senderName",
        "sender",
        "assigned_to",
        "assignedTo",
    ),
    "subject": ("subject", "title"),
    "body": ("body", "description", "text"),
    "url": ("url", "message_url", "messageUrl", "link"),
    "timestamp": ("timestamp", "created_at", "createdAt", "received_at"),
}

TICKET_COLLECTION_KEYS = ("results", "tickets", "items")


class HttpMessageSource:
    """Fetch message records from a JSON endpoint."""

    def __init__(
        self,
        name: str,
        url: str,
        settings: SourceSettings,
        *,
        collection_keys: Sequence[str] = ("messages",),
        expect_results: bool = False,
        id_prefix: str = "",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.name = name
        self._url = url
        self._collection_keys = tuple(collection_keys)
        self._expect_results = expect_results
        self._id_prefix = id_prefix
        self._settings = settings
        self._client = client

    async def fetch_messages(self) -> list[IncomingMessage]:
        """Return current messages from the endpoint."""
        payload = await get_json(self._session(), self._url)
        records = self._locate_records(payload)
        messages = [self._normalize(record) for record in records]
        if not messages and self._expect_results:
            raise DataIntegrityError(
                f"Source {self.name} returned no messages where some were expected"
            )
        LOGGER.info("Source %s returned %s messages", self.name, len(messages))
        return messages

    async def aclose(self) -> None:
        """Release the underlying HTTP client; a later call opens a new one."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _session(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = build_async_client(self._settings)
        return self._client

    def _locate_records(self, payload: Any) -> list[Any]:
        if isinstance(payload, list):
            return payload
        if not isinstance(payload, Mapping):
            raise SchemaMismatchError(f"Source {self.name} payload is not an object")

        containers: list[Mapping[str, Any]] = [payload]
        nested = payload.get("data")
        if isinstance(nested, Mapping):
            containers.append(nested)
        for container in containers:
            for key in self._collection_keys:
                value = container.get(key)
                if isinstance(value, list):
                    return value
        expected = ", ".join(self._collection_keys)
        raise SchemaMismatchError(
            f"Source {self.name} payload has none of the keys: {expected}"
        )

    def _normalize(self, record: Any) -> IncomingMessage:
        if not isinstance(record, Mapping):
            raise SchemaMismatchError(f"Source {self.name} entry is not an object")
        external_id = _pick(record, "external_id")
        if not external_id:
            raise SchemaMismatchError(f"Source {self.name} entry has no identifier")

        url = _pick(record, "url") or None
        return IncomingMessage(
            external_id=f"{self._id_prefix}{external_id}",
            sender_name=_pick(record, "sender_name"),
            subject=_pick(record, "subject"),
            body=_pick(record, "body"),
            url=url,
            timestamp=_coerce_timestamp(_pick(record, "timestamp")),
        )


def _pick(record: Mapping[str, Any], field: str) -> str:
    for alias in _FIELD_ALIASES[field]:
        value = record.get(alias)
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            text = str(value).strip()
            if text:
                return text
    return ""


def _coerce_timestamp(value: str) -> datetime:
    try:
        parsed = parse_datetime(value)
    except ValueError:
        LOGGER.debug("Unparseable timestamp %r, using current time", value)
        parsed = None
    return parsed or utc_now()


__all__ = ["HttpMessageSource", "TICKET_COLLECTION_KEYS"]
