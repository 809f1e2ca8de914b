"""Tests for multi_ai/routing.py and the specialist strategy."""

import json

import pytest

from multi_ai.models import OrchestrationRequest, Strategy
from multi_ai.providers.base import ProviderError
from multi_ai.providers.scripted import ScriptedProvider
from multi_ai.routing import (
    DEFAULT_CLASSIFICATION,
    Classification,
    parse_classification,
    select_specialists,
)

ALL_MAPPED = [
    "anthropic/claude-opus-4",
    "deepseek/deepseek-r1",
    "mistralai/codestral-2501",
    "anthropic/claude-3.5-sonnet",
    "openai/gpt-4o",
    "google/gemini-2.5-pro-preview",
]


def _reply(primary="debugging", secondary="analysis", complexity="high") -> str:
    return json.dumps({"primary": primary, "secondary": secondary, "complexity": complexity})


# --- parse_classification ---

def test_parse_valid_classification():
    outcome = parse_classification(_reply())
    assert outcome.source == "model"
    assert outcome.error is None
    assert outcome.classification == Classification(primary="debugging", secondary="analysis", complexity="high")


def test_parse_tolerates_code_fence():
    outcome = parse_classification(f"```json\n{_reply()}\n```")
    assert outcome.source == "model"
    assert outcome.classification.primary == "debugging"


def test_parse_accepts_general_secondary():
    outcome = parse_classification(_reply(secondary="general"))
    assert not outcome.is_fallback


@pytest.mark.parametrize(
    "reply",
    [
        "I think this is a coding question.",
        "",
        _reply(primary="cooking"),
        _reply(complexity="extreme"),
        json.dumps({"primary": "coding", "complexity": "low"}),
        json.dumps({"primary": "coding", "secondary": "analysis", "complexity": "low", "confidence": 0.9}),
        "[1, 2, 3]",
    ],
)
def test_parse_falls_back_on_anything_else(reply):
    outcome = parse_classification(reply)
    assert outcome.is_fallback
    assert outcome.classification == DEFAULT_CLASSIFICATION
    assert outcome.error


def test_default_classification_values():
    assert DEFAULT_CLASSIFICATION.primary == "coding"
    assert DEFAULT_CLASSIFICATION.secondary == "general"
    assert DEFAULT_CLASSIFICATION.complexity == "medium"


# --- select_specialists ---

@pytest.mark.parametrize("complexity,expected", [("low", 1), ("medium", 2), ("high", 3)])
def test_slots_follow_complexity(complexity, expected):
    classification = Classification(primary="coding", secondary="planning", complexity=complexity)
    assert len(select_specialists(classification, ALL_MAPPED)) == expected


def test_primary_candidates_ranked_first():
    classification = Classification(primary="debugging", secondary="creative", complexity="high")
    chosen = select_specialists(classification, ALL_MAPPED)
    assert [c.model for c in chosen] == [
        "deepseek/deepseek-r1",
        "anthropic/claude-3.5-sonnet",
        "openai/gpt-4o",
    ]
    assert all(c.reason == "Selected for debugging tasks" for c in chosen)


def test_availability_filters_mapped_models():
    classification = Classification(primary="coding", secondary="planning", complexity="high")
    chosen = select_specialists(classification, ["deepseek/deepseek-r1", "openai/gpt-4o", "other/model"])
    assert [c.model for c in chosen] == ["deepseek/deepseek-r1", "openai/gpt-4o"]
    assert chosen[1].reason == "Secondary specialist for planning"


def test_secondary_skips_models_already_chosen():
    classification = Classification(primary="debugging", secondary="analysis", complexity="high")
    chosen = select_specialists(classification, ["deepseek/deepseek-r1", "anthropic/claude-3.5-sonnet"])
    assert [c.model for c in chosen] == ["deepseek/deepseek-r1", "anthropic/claude-3.5-sonnet"]


def test_nothing_matched_uses_first_available():
    classification = Classification(primary="creative", secondary="general", complexity="high")
    chosen = select_specialists(classification, ["x/first", "x/second"])
    assert len(chosen) == 1
    assert chosen[0].model == "x/first"
    assert chosen[0].reason == "Default model"


def test_no_available_models_selects_nothing():
    assert select_specialists(DEFAULT_CLASSIFICATION, []) == []


# --- specialist strategy ---

def _specialist_request(models, use_context=False) -> OrchestrationRequest:
    return OrchestrationRequest(
        prompt="Why does my asyncio task never finish?",
        strategy=Strategy.SPECIALIST,
        models=tuple(models),
        use_context=use_context,
    )


async def test_specialist_classifier_call(make_engine):
    provider = ScriptedProvider({"classify/model": _reply(complexity="low")})
    engine = make_engine(provider)

    await engine.orchestrate(_specialist_request(ALL_MAPPED))

    call = provider.calls[0]
    assert call.model == "classify/model"
    assert call.options.temperature == 0.3
    assert "Why does my asyncio task never finish?" in call.text


async def test_specialist_routes_and_calls_each_once(make_engine):
    provider = ScriptedProvider({"classify/model": _reply(primary="debugging", complexity="medium")})
    engine = make_engine(provider)

    result = await engine.orchestrate(_specialist_request(ALL_MAPPED))

    assert result.models == ["deepseek/deepseek-r1", "anthropic/claude-3.5-sonnet"]
    assert [r.model for r in result.responses] == result.models
    for model in result.models:
        calls = provider.calls_for(model)
        assert len(calls) == 1
        assert calls[0].prompt == "Why does my asyncio task never finish?"
    assert not result.classification.is_fallback


async def test_specialist_invalid_json_falls_back_without_raising(make_engine):
    provider = ScriptedProvider({"classify/model": "not json at all"})
    engine = make_engine(provider)

    result = await engine.orchestrate(_specialist_request(["x/first", "x/second"]))

    assert result.classification.is_fallback
    assert result.models == ["x/first"]
    assert result.specialists[0].reason == "Default model"


async def test_specialist_persists_reason(make_engine, store, conversation):
    provider = ScriptedProvider({"classify/model": _reply(primary="analysis", complexity="low")})
    engine = make_engine(provider)

    await engine.orchestrate(_specialist_request(ALL_MAPPED, use_context=True), conversation)

    history = await store.get_conversation_history(conversation)
    specialist = history[-1]
    assert specialist.model == "google/gemini-2.5-pro-preview"
    assert specialist.metadata == {"reason": "Selected for analysis tasks"}


async def test_specialist_classifier_failure_is_fatal(make_engine):
    provider = ScriptedProvider({"classify/model": ProviderError("classify/model", "401")})
    engine = make_engine(provider)

    with pytest.raises(ProviderError):
        await engine.orchestrate(_specialist_request(ALL_MAPPED))
