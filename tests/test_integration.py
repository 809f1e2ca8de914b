"""Integration tests: real OpenRouter calls, no mocks. Requires OPENROUTER_API_KEY in .env."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

load_dotenv()

pytestmark = pytest.mark.integration

if not os.environ.get("OPENROUTER_API_KEY", "").strip():
    pytestmark = pytest.mark.skip(reason="OPENROUTER_API_KEY not set")

_CHEAP_MODELS = ("openai/gpt-4o-mini", "mistralai/mistral-small")


async def test_parallel_round_trip(tmp_path: Path):
    """Run a real two-model parallel orchestration, verify responses and persistence."""
    from config.config_loader import load_config
    from multi_ai.context.store import ContextStore
    from multi_ai.engine import OrchestrationEngine
    from multi_ai.models import OrchestrationRequest, Strategy
    from multi_ai.providers.openrouter import OpenRouterProvider

    config = load_config()
    store = ContextStore(tmp_path / "it.sqlite3")
    conversation = await store.initialize()
    engine = OrchestrationEngine(OpenRouterProvider(config.provider), store, config.defaults, config.prompts)

    result = await engine.orchestrate(
        OrchestrationRequest(prompt="Name one prime number. One word.", strategy=Strategy.PARALLEL, models=_CHEAP_MODELS),
        conversation,
    )

    assert result.responses
    assert all(r.response.strip() for r in result.responses)
    history = await store.get_conversation_history(conversation)
    assert history[0].role == "user"
