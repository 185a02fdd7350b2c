"""Resolve message links into full body text."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

import httpx
from bs4 import BeautifulSoup

from notice_digest.core.config import SourceSettings

from .http_support import build_async_client, get_response

LOGGER = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class HttpLinkResolver:
    """Fetch a linked page and extract the message body with CSS selectors."""

    def __init__(
        self,
        settings: SourceSettings,
        *,
        selectors: Sequence[str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._selectors = tuple(selectors or settings.resolver_selectors)
        self._settings = settings
        self._client = client

    async def resolve(self, url: str) -> str | None:
        """Return the body text behind ``url`` or ``None`` when none is found."""
        response = await get_response(self._session(), url)
        return extract_body_text(response.text, self._selectors)

    async def aclose(self) -> None:
        """Release the underlying HTTP client; a later call opens a new one."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _session(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = build_async_client(self._settings)
        return self._client


def extract_body_text(html: str, selectors: Sequence[str]) -> str | None:
    """Return normalised text of the first selector that yields content."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    for selector in selectors:
        for node in soup.select(selector):
            text = _WHITESPACE.sub(" ", node.get_text(" ")).strip()
            if text:
                return text
    LOGGER.debug("No selector matched content (%s)", ", ".join(selectors))
    return None


__all__ = ["HttpLinkResolver", "extract_body_text"]
