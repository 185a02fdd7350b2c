"""Classification engine: keyword rules with a model second opinion."""

from .classifier import ClassificationEngine, parse_model_output
from .llm import LLMError, OllamaClient
from .rules import classify_with_rules, determine_urgency

__all__ = [
    "ClassificationEngine",
    "LLMError",
    "OllamaClient",
    "classify_with_rules",
    "determine_urgency",
    "parse_model_output",
]
