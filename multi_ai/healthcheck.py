"""Model health checks: ping each model before relying on it."""

import asyncio
import logging

from multi_ai.providers.base import AIProvider, CompletionOptions

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(provider: AIProvider, model: str) -> tuple[str, bool, str]:
    """Ping a single model. Returns (model, ok, error_message)."""
    try:
        await asyncio.wait_for(
            provider.complete(_PING_PROMPT, CompletionOptions(model=model, max_tokens=5)),
            timeout=_TIMEOUT_SEC,
        )
        return model, True, ""
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", model, exc)
        return model, False, str(exc) or type(exc).__name__


async def run_health_checks(
    provider: AIProvider,
    models: list[str],
) -> dict[str, tuple[bool, str]]:
    """Ping all models in parallel.

    Returns:
        Dict mapping model -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(provider, m) for m in models))
    return {model: (ok, err) for model, ok, err in results}
