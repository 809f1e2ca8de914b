"""Unit tests for multi_ai/synthesis.py. No real API calls."""

from datetime import datetime, timezone

import pytest

from multi_ai.models import DebateRound, ProviderResponse
from multi_ai.providers.base import ProviderError
from multi_ai.providers.scripted import ScriptedProvider
from multi_ai.synthesis import (
    conclude_debate,
    find_consensus,
    format_debate_history,
    format_responses,
    synthesize_responses,
)


def _resp(model: str, text: str) -> ProviderResponse:
    return ProviderResponse(model=model, response=text, timestamp=datetime.now(timezone.utc))


def test_format_responses_labels_each_model():
    text = format_responses([_resp("a", "alpha"), _resp("b", "beta")])
    assert text == "a:\nalpha\n\n---\n\nb:\nbeta"


def test_format_debate_history_groups_by_round():
    rounds = [DebateRound(1, [_resp("a", "x"), _resp("b", "y")]), DebateRound(2, [_resp("a", "z")])]
    text = format_debate_history(rounds)
    assert text.startswith("Round 1:\na: x\n\nb: y")
    assert "Round 2:\na: z" in text


async def test_synthesis_uses_synthesizer_model(sample_prompts_config, sample_defaults_config):
    provider = ScriptedProvider({"synth/model": "merged"})

    text = await synthesize_responses(
        provider, [_resp("a", "alpha"), _resp("b", "beta")], "Q?", sample_prompts_config, sample_defaults_config
    )

    assert text == "merged"
    [call] = provider.calls
    assert call.options.model == "synth/model"
    assert call.options.temperature == 0.3
    assert "Question: Q?" in call.prompt
    assert "a:\nalpha" in call.prompt
    assert "b:\nbeta" in call.prompt


async def test_conclusion_sees_every_round(sample_prompts_config, sample_defaults_config):
    provider = ScriptedProvider({"conclude/model": "verdict"})
    rounds = [DebateRound(1, [_resp("a", "opening")]), DebateRound(2, [_resp("a", "closing")])]

    assert await conclude_debate(provider, rounds, "Topic", sample_prompts_config, sample_defaults_config) == "verdict"
    prompt = provider.calls[0].prompt
    assert "opening" in prompt
    assert "closing" in prompt


async def test_consensus_uses_consensus_model(sample_prompts_config, sample_defaults_config):
    provider = ScriptedProvider()

    await find_consensus(provider, [_resp("a", "alpha")], "Q?", sample_prompts_config, sample_defaults_config)

    assert provider.calls[0].options.model == "consensus/model"
    assert provider.calls[0].prompt.endswith("Find consensus:")


async def test_synthesis_failure_propagates(sample_prompts_config, sample_defaults_config):
    provider = ScriptedProvider({"synth/model": ProviderError("synth/model", "overloaded")})
    with pytest.raises(ProviderError, match="overloaded"):
        await synthesize_responses(provider, [_resp("a", "x")], "Q?", sample_prompts_config, sample_defaults_config)
