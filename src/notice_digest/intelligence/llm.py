"""Model client used for Tier-2 classification."""

from __future__ import annotations

import json
import logging
from urllib.parse import urljoin

import httpx

from notice_digest.core.config import LlmSettings
from notice_digest.core.errors import AuthError, TransientExternalError

from .prompts import build_classification_prompt

LOGGER = logging.getLogger(__name__)


class LLMError(TransientExternalError):
    """Raised when the model provider fails to respond as expected."""


class OllamaClient:
    """Async client for the Ollama HTTP API returning raw JSON strings."""

    def __init__(
        self, settings: LlmSettings, *, client: httpx.AsyncClient | None = None
    ) -> None:
        self._settings = settings
        self._client = client

    @property
    def provider_id(self) -> str:
        """Return a human readable identifier for the configured model."""
        return f"ollama:{self._settings.model}"

    async def complete(self, text: str) -> str:
        """Send ``text`` wrapped in the classification prompt to the server."""
        options: dict[str, object] = {"temperature": self._settings.temperature}
        if self._settings.max_output_tokens is not None:
            options["num_predict"] = self._settings.max_output_tokens
        payload: dict[str, object] = {
            "model": self._settings.model,
            "prompt": build_classification_prompt(text),
            "stream": False,
            "format": "json",
            "options": options,
        }

        endpoint = _resolve_endpoint(self._settings.base_url)
        try:
            response = await self._session().post(endpoint, json=payload)
        except httpx.TransportError as exc:
            raise LLMError(f"Model request failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise AuthError(
                f"Model provider rejected credentials ({response.status_code})"
            )
        if response.status_code == 429 or response.status_code >= 500:
            raise LLMError(f"Model provider returned {response.status_code}")
        if response.is_error:
            raise LLMError(f"Unexpected model response {response.status_code}")

        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise LLMError("Model returned invalid JSON") from exc

        result = data.get("response") if isinstance(data, dict) else None
        if not isinstance(result, str):
            raise LLMError("Model response missing 'response' field")
        return result

    async def aclose(self) -> None:
        """Release the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _session(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout_seconds)
        return self._client


def _resolve_endpoint(base_url: str) -> str:
    trimmed = base_url.rstrip("/") + "/"
    return urljoin(trimmed, "api/generate")


__all__ = ["LLMError", "OllamaClient"]
