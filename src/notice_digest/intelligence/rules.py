"""Deterministic Tier-1 classification rules."""

from __future__ import annotations

import re
from dataclasses import dataclass

from notice_digest.core.models import Classification, Urgency

UNKNOWN_INTENT = "unknown"
HIGH_RISK_CONFIDENCE = 0.95
UNMATCHED_CONFIDENCE = 0.3
AUTHORITATIVE_CONFIDENCE = 0.7
_MAX_KEYWORD_CONFIDENCE = 0.85

_HIGH_RISK_KEYWORDS = (
    "lawyer",
    "attorney",
    "sue",
    "lawsuit",
    "legal",
    "threat",
    "police",
    "urgent",
    "emergency",
    "fire",
    "smoke",
    "flood",
    "flooding",
    "gas leak",
    "carbon monoxide",
    "dangerous",
    "unsafe",
)


@dataclass(frozen=True)
class _IntentRule:
    key: str
    keywords: tuple[str, ...]


# Order matters: ties go to the earlier intent.
_INTENT_RULES: tuple[_IntentRule, ...] = (
    _IntentRule(
        key="maintenance",
        keywords=(
            "leak",
            "leaking",
            "broken",
            "repair",
            "fix",
            "not working",
            "damage",
            "water",
            "heater",
            "heating",
            "ac",
            "hvac",
            "plumbing",
            "electric",
            "appliance",
            "washer",
            "dryer",
            "dishwasher",
            "fridge",
            "refrigerator",
            "toilet",
            "sink",
            "shower",
            "faucet",
            "pipe",
            "clog",
            "clogged",
            "roof",
            "window",
            "door",
            "lock",
            "key",
        ),
    ),
    _IntentRule(
        key="money",
        keywords=(
            "rent",
            "payment",
            "pay",
            "fee",
            "deposit",
            "refund",
            "charge",
            "bill",
            "invoice",
            "owe",
            "money",
            "late",
            "balance",
            "account",
        ),
    ),
    _IntentRule(
        key="move_in",
        keywords=(
            "move in",
            "moving in",
            "check in",
            "arrival",
            "arriving",
            "keys",
            "access",
            "welcome",
            "new member",
            "first day",
        ),
    ),
    _IntentRule(
        key="move_out",
        keywords=(
            "move out",
            "moving out",
            "leaving",
            "vacate",
            "checkout",
            "last day",
            "departure",
            "terminate",
            "end lease",
            "notice",
        ),
    ),
    _IntentRule(
        key="gratitude",
        keywords=(
            "thank",
            "thanks",
            "thank you",
            "appreciate",
            "grateful",
            "awesome",
            "great",
            "perfect",
            "excellent",
            "wonderful",
        ),
    ),
    _IntentRule(
        key="informational",
        keywords=(
            "fyi",
            "update",
            "info",
            "information",
            "announcement",
            "reminder",
            "question",
            "wondering",
        ),
    ),
)

INTENTS: tuple[str, ...] = tuple(rule.key for rule in _INTENT_RULES) + (
    UNKNOWN_INTENT,
)


def _compile(keyword: str, *, inflected: bool = False) -> re.Pattern[str]:
    """Compile ``keyword`` anchored at a word start.

    With ``inflected`` the last word may carry a suffix (lawyers, flooded),
    otherwise the whole word must match.
    """
    words = (re.escape(word) for word in keyword.split())
    ending = r"\w*" if inflected else r"\b"
    return re.compile(r"\b" + r"\s+".join(words) + ending, re.IGNORECASE)


_HIGH_RISK_PATTERNS = tuple(
    _compile(keyword, inflected=True) for keyword in _HIGH_RISK_KEYWORDS
)
_INTENT_PATTERNS: tuple[tuple[str, tuple[re.Pattern[str], ...]], ...] = tuple(
    (rule.key, tuple(_compile(keyword) for keyword in rule.keywords))
    for rule in _INTENT_RULES
)


def find_high_risk_terms(text: str) -> list[str]:
    """Return every high-risk term present in ``text``."""
    return [
        keyword
        for keyword, pattern in zip(_HIGH_RISK_KEYWORDS, _HIGH_RISK_PATTERNS)
        if pattern.search(text)
    ]


def detect_intent(text: str) -> tuple[str, float]:
    """Return the best keyword intent and its confidence."""
    best_key = UNKNOWN_INTENT
    best_hits = 0
    for key, patterns in _INTENT_PATTERNS:
        hits = sum(1 for pattern in patterns if pattern.search(text))
        if hits > best_hits:
            best_key, best_hits = key, hits

    if best_hits == 0:
        return UNKNOWN_INTENT, UNMATCHED_CONFIDENCE
    return best_key, min(round(0.5 + 0.1 * best_hits, 2), _MAX_KEYWORD_CONFIDENCE)


def determine_urgency(intent: str, confidence: float, is_high_risk: bool) -> Urgency:
    """Derive urgency; the first matching rule wins."""
    if is_high_risk:
        return Urgency.HIGH
    if intent == "maintenance":
        return Urgency.HIGH
    if intent == "money":
        return Urgency.MEDIUM
    if confidence < AUTHORITATIVE_CONFIDENCE:
        return Urgency.MEDIUM
    if intent == "gratitude":
        return Urgency.LOW
    return Urgency.MEDIUM


def classify_with_rules(text: str) -> Classification:
    """Classify ``text`` using keyword rules only."""
    intent, confidence = detect_intent(text)
    risk_terms = find_high_risk_terms(text)

    if risk_terms:
        if intent == UNKNOWN_INTENT:
            intent = "maintenance"
        return Classification(
            intent=intent,
            confidence=HIGH_RISK_CONFIDENCE,
            is_high_risk=True,
            urgency=Urgency.HIGH,
            reason=f"high-risk terms: {', '.join(risk_terms)}",
            method="rules",
        )

    if intent == UNKNOWN_INTENT:
        reason = "no keyword matched"
    else:
        reason = f"keyword match for {intent}"
    return Classification(
        intent=intent,
        confidence=confidence,
        is_high_risk=False,
        urgency=determine_urgency(intent, confidence, False),
        reason=reason,
        method="rules",
    )


def is_authoritative(result: Classification) -> bool:
    """Return ``True`` when a rules result does not need a model opinion."""
    if result.is_high_risk:
        return True
    return (
        result.intent != UNKNOWN_INTENT
        and result.confidence >= AUTHORITATIVE_CONFIDENCE
    )


__all__ = [
    "AUTHORITATIVE_CONFIDENCE",
    "INTENTS",
    "UNKNOWN_INTENT",
    "classify_with_rules",
    "detect_intent",
    "determine_urgency",
    "find_high_risk_terms",
    "is_authoritative",
]
