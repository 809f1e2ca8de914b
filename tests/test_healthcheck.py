"""Unit tests for multi_ai/healthcheck.py. No real API calls."""

import asyncio

import multi_ai.healthcheck as hc
from multi_ai.healthcheck import run_health_checks
from multi_ai.providers.base import ProviderError
from multi_ai.providers.scripted import ScriptedProvider


async def test_all_models_pass():
    provider = ScriptedProvider({"a": "OK", "b": "OK"})

    results = await run_health_checks(provider, ["a", "b"])

    assert results == {"a": (True, ""), "b": (True, "")}
    assert all(c.options.max_tokens == 5 for c in provider.calls)


async def test_one_model_fails():
    provider = ScriptedProvider({"a": "OK", "grok": ProviderError("grok", "403 Forbidden")})

    results = await run_health_checks(provider, ["a", "grok"])

    assert results["a"] == (True, "")
    ok, err = results["grok"]
    assert ok is False
    assert "403" in err


async def test_empty_model_list():
    assert await run_health_checks(ScriptedProvider(), []) == {}


async def test_timeout_counts_as_failure(monkeypatch):
    provider = ScriptedProvider()

    async def hang(*args, **kwargs):
        await asyncio.sleep(9999)

    monkeypatch.setattr(provider, "complete", hang)
    monkeypatch.setattr(hc, "_TIMEOUT_SEC", 0.05)

    results = await run_health_checks(provider, ["slow"])

    ok, err = results["slow"]
    assert ok is False
    assert err == "TimeoutError"
