"""Two-tier classification: keyword rules first, model second."""

from __future__ import annotations

import json
import logging

from notice_digest.core.config import RetrySettings
from notice_digest.core.interfaces import CompletionClient, ItemRepository
from notice_digest.core.models import Classification, ClassificationReport
from notice_digest.core.resilience import retry_with_settings

from .rules import (
    INTENTS,
    UNKNOWN_INTENT,
    classify_with_rules,
    determine_urgency,
    is_authoritative,
)

LOGGER = logging.getLogger(__name__)

PARSE_FAILURE_CONFIDENCE = 0.3


def parse_model_output(raw: str) -> tuple[str, float, str]:
    """Parse a model response into ``(intent, confidence, reason)``.

    Never raises: anything unusable becomes ``unknown`` with low confidence.
    """
    try:
        payload = json.loads(_strip_code_fence(raw))
    except (json.JSONDecodeError, TypeError):
        return UNKNOWN_INTENT, PARSE_FAILURE_CONFIDENCE, "parse failure"
    if not isinstance(payload, dict):
        return UNKNOWN_INTENT, PARSE_FAILURE_CONFIDENCE, "parse failure"

    intent = payload.get("intent")
    confidence = payload.get("confidence")
    if not isinstance(intent, str) or isinstance(confidence, bool):
        return UNKNOWN_INTENT, PARSE_FAILURE_CONFIDENCE, "parse failure"
    try:
        confidence_value = float(confidence)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return UNKNOWN_INTENT, PARSE_FAILURE_CONFIDENCE, "parse failure"
    if confidence_value != confidence_value:  # NaN
        return UNKNOWN_INTENT, PARSE_FAILURE_CONFIDENCE, "parse failure"

    normalized = intent.strip().lower()
    if normalized not in INTENTS:
        normalized = UNKNOWN_INTENT
    reason = payload.get("reason")
    if not isinstance(reason, str) or not reason.strip():
        reason = "model classification"
    return normalized, max(0.0, min(confidence_value, 1.0)), reason.strip()


def _strip_code_fence(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    return text.strip()


class ClassificationEngine:
    """Classify item text with rules, consulting the model only when unsure."""

    def __init__(
        self,
        completion_client: CompletionClient | None,
        *,
        retry: RetrySettings | None = None,
    ) -> None:
        self._client = completion_client
        self._retry = retry or RetrySettings()

    async def classify(self, text: str) -> Classification:
        """Return the classification for ``text``."""
        rules_result = classify_with_rules(text)
        if is_authoritative(rules_result):
            return rules_result
        if self._client is None:
            return _as_fallback(rules_result, "no model configured")

        client = self._client
        try:
            raw = await retry_with_settings(
                lambda: client.complete(text), self._retry, label="model classification"
            )
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("Model classification unavailable, using rules: %s", exc)
            return _as_fallback(rules_result, "model unavailable")

        intent, confidence, reason = parse_model_output(raw)
        return Classification(
            intent=intent,
            confidence=confidence,
            is_high_risk=False,
            urgency=determine_urgency(intent, confidence, False),
            reason=reason,
            method=client.provider_id,
        )

    async def classify_pending(self, repository: ItemRepository) -> ClassificationReport:
        """Classify every pending item in arrival order."""
        report = ClassificationReport()
        for item in repository.pending_items():
            text = item.classification_text()
            if not text:
                LOGGER.info("Item %s has no content yet, leaving pending", item.id)
                report.skipped += 1
                continue
            try:
                result = await self.classify(text)
                if repository.update_classification(item.id, result):
                    report.classified += 1
                else:
                    report.skipped += 1
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.exception("Failed to classify item %s: %s", item.id, exc)
                report.failed += 1
                continue
            LOGGER.debug(
                "Item %s classified as %s (%s, %.2f) via %s",
                item.id,
                result.intent,
                result.urgency.value,
                result.confidence,
                result.method,
            )

        LOGGER.info(
            "Classification pass finished: %s classified, %s skipped, %s failed",
            report.classified,
            report.skipped,
            report.failed,
        )
        return report


def _as_fallback(result: Classification, cause: str) -> Classification:
    return Classification(
        intent=result.intent,
        confidence=result.confidence,
        is_high_risk=result.is_high_risk,
        urgency=result.urgency,
        reason=f"{result.reason} (rules fallback: {cause})",
        method="rules-fallback",
    )


__all__ = ["ClassificationEngine", "parse_model_output"]
