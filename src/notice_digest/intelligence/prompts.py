"""Prompt templates for model-assisted classification."""

from __future__ import annotations

from textwrap import dedent

from .rules import INTENTS

_INTENT_HINTS = {
    "maintenance": "repairs, leaks, broken appliances, building issues",
    "money": "rent, fees, deposits, refunds, billing questions",
    "move_in": "arrivals, keys, access, onboarding",
    "move_out": "departures, notices to vacate, checkout",
    "gratitude": "thanks and compliments with no request",
    "informational": "updates, announcements, general questions",
    "unknown": "anything that fits none of the above",
}


def build_classification_prompt(text: str) -> str:
    """Compose a JSON-only prompt asking the model to label ``text``."""
    taxonomy = "\n".join(
        f"- {intent}: {_INTENT_HINTS.get(intent, '')}" for intent in INTENTS
    )
    body = text.strip() or "(empty message)"

    prompt = """
    You triage short messages sent to a property operations team.
    Pick exactly one intent from this list:
    {taxonomy}

    Respond strictly with JSON using this schema:
    {{
      "intent": string,      # one of the intents above
      "confidence": number,  # between 0 and 1
      "reason": string       # one short sentence
    }}

    Do not include any additional keys or prose outside the JSON object.

    Message:
    {body}
    """

    return dedent(prompt).strip().format(taxonomy=taxonomy, body=body)


__all__ = ["build_classification_prompt"]
