"""Shared pytest fixtures."""

from pathlib import Path

import pytest

from config.config_loader import DefaultsConfig, PromptsConfig
from multi_ai.context.store import ContextStore
from multi_ai.engine import OrchestrationEngine
from multi_ai.models import ConversationHandle
from multi_ai.providers.scripted import ScriptedProvider


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        refine="Original prompt: {prompt}\n\nPrevious {model} response:\n{response}\n\nPlease improve:",
        synthesis="Question: {prompt}\n\nResponses:\n{responses}\n\nSynthesize:",
        debate_followup="{prompt}\n\nPrevious responses in the debate:\n{history}\n\nRespond:",
        debate_conclusion="Topic: {prompt}\n\nDebate history:\n{history}\n\nConclude:",
        consensus="Question: {prompt}\n\nResponses:\n{responses}\n\nFind consensus:",
        classification="Classify this prompt: {prompt}",
        reasoning="Explain your reasoning step by step.",
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        models=["rank/one", "rank/two", "rank/three", "rank/four"],
        panel_size=3,
        max_rounds=3,
        ask_model="ask/model",
        synthesizer="synth/model",
        concluder="conclude/model",
        consensus_model="consensus/model",
        classifier="classify/model",
        derived_temperature=0.3,
        output_dir=tmp_path / "output",
    )


@pytest.fixture
def store(tmp_path: Path) -> ContextStore:
    return ContextStore(tmp_path / "context.sqlite3")


@pytest.fixture
async def conversation(store: ContextStore) -> ConversationHandle:
    return await store.initialize()


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def engine(
    provider: ScriptedProvider,
    store: ContextStore,
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
) -> OrchestrationEngine:
    return OrchestrationEngine(provider, store, sample_defaults_config, sample_prompts_config)


@pytest.fixture
def make_engine(store, sample_defaults_config, sample_prompts_config):
    """Build an engine around a provider scripted by the test."""

    def _make(provider) -> OrchestrationEngine:
        return OrchestrationEngine(provider, store, sample_defaults_config, sample_prompts_config)

    return _make
