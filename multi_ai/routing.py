"""Specialist routing: classify a prompt, then pick the models best suited to it."""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from multi_ai.models import SpecialistChoice

logger = logging.getLogger(__name__)

Category = Literal["coding", "debugging", "architecture", "planning", "analysis", "creative"]
Complexity = Literal["low", "medium", "high"]

SPECIALIST_MAP: dict[str, list[str]] = {
    "coding": ["anthropic/claude-opus-4", "deepseek/deepseek-r1", "mistralai/codestral-2501"],
    "debugging": ["deepseek/deepseek-r1", "anthropic/claude-3.5-sonnet", "openai/gpt-4o"],
    "architecture": ["anthropic/claude-opus-4", "openai/gpt-4o", "google/gemini-2.5-pro-preview"],
    "planning": ["openai/gpt-4o", "anthropic/claude-3.5-sonnet", "google/gemini-2.5-pro-preview"],
    "analysis": ["google/gemini-2.5-pro-preview", "anthropic/claude-3.5-sonnet", "deepseek/deepseek-r1"],
    "creative": ["anthropic/claude-3.5-sonnet", "openai/gpt-4o", "google/gemini-2.5-pro-preview"],
}

# Used when the primary category has no entry in SPECIALIST_MAP.
UNMAPPED_PRIMARY = ["openai/gpt-4o"]

MODELS_PER_COMPLEXITY: dict[str, int] = {"low": 1, "medium": 2, "high": 3}

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class Classification(BaseModel):
    """Strict shape of the classifier's JSON answer."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    primary: Category
    secondary: Category | Literal["general"]
    complexity: Complexity


DEFAULT_CLASSIFICATION = Classification(primary="coding", secondary="general", complexity="medium")


@dataclass(frozen=True)
class ClassificationOutcome:
    """A classification plus where it came from.

    ``source`` is "model" when the classifier's answer validated, "fallback"
    when DEFAULT_CLASSIFICATION was substituted; ``error`` then says why.
    """

    classification: Classification
    source: Literal["model", "fallback"]
    error: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.source == "fallback"


def parse_classification(text: str) -> ClassificationOutcome:
    """Decode the classifier's reply. Never raises."""
    body = text.strip()
    fenced = _CODE_FENCE.match(body)
    if fenced:
        body = fenced.group(1)
    try:
        classification = Classification.model_validate_json(body)
    except ValidationError as exc:
        logger.warning("Classification reply rejected, using default: %s", exc.errors()[0]["msg"])
        return ClassificationOutcome(DEFAULT_CLASSIFICATION, "fallback", str(exc))
    return ClassificationOutcome(classification, "model")


def select_specialists(
    classification: Classification,
    available_models: Sequence[str],
) -> list[SpecialistChoice]:
    """Pick up to N models (N by complexity) from the lookup table.

    A mapped model is only chosen if it is also in ``available_models``.
    Primary-category candidates come first, then unused secondary ones; if
    nothing matched, the first available model is used.
    """
    available = set(available_models)
    slots = MODELS_PER_COMPLEXITY[classification.complexity]
    chosen: list[SpecialistChoice] = []

    for model in SPECIALIST_MAP.get(classification.primary, UNMAPPED_PRIMARY):
        if len(chosen) >= slots:
            break
        if model in available:
            chosen.append(SpecialistChoice(model, f"Selected for {classification.primary} tasks"))

    for model in SPECIALIST_MAP.get(classification.secondary, []):
        if len(chosen) >= slots:
            break
        if model in available and all(c.model != model for c in chosen):
            chosen.append(SpecialistChoice(model, f"Secondary specialist for {classification.secondary}"))

    if not chosen and available_models:
        chosen.append(SpecialistChoice(available_models[0], "Default model"))

    return chosen
