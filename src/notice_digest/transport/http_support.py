"""Shared helpers for httpx based adapters."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from notice_digest.core.config import SourceSettings
from notice_digest.core.errors import (
    AuthError,
    SchemaMismatchError,
    TransientExternalError,
)

LOGGER = logging.getLogger(__name__)

USER_AGENT = "notice-digest/0.1"


def build_async_client(settings: SourceSettings) -> httpx.AsyncClient:
    """Return an ``httpx.AsyncClient`` carrying the configured credentials."""
    headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    if settings.auth_token:
        headers["Authorization"] = f"Bearer {settings.auth_token}"
    return httpx.AsyncClient(
        headers=headers,
        timeout=settings.request_timeout_seconds,
        follow_redirects=True,
    )


async def get_response(client: httpx.AsyncClient, url: str) -> httpx.Response:
    """GET ``url`` and translate failures into the error taxonomy."""
    try:
        response = await client.get(url)
    except httpx.TransportError as exc:
        raise TransientExternalError(f"GET {url} failed: {exc}") from exc

    status = response.status_code
    if status in (401, 403):
        raise AuthError(f"GET {url} rejected with {status}")
    if status == 429 or status >= 500:
        raise TransientExternalError(f"GET {url} returned {status}")
    if response.is_error:
        raise SchemaMismatchError(f"GET {url} returned unexpected status {status}")
    return response


async def get_json(client: httpx.AsyncClient, url: str) -> Any:
    """GET ``url`` and decode the JSON body."""
    response = await get_response(client, url)
    try:
        return response.json()
    except ValueError as exc:
        snippet = response.text[:200]
        raise SchemaMismatchError(f"GET {url} did not return JSON: {snippet}") from exc


__all__ = ["USER_AGENT", "build_async_client", "get_json", "get_response"]
