"""OpenRouter provider using the openai SDK (OpenAI-compatible API)."""

import asyncio
import logging
import os
import time
from collections.abc import Sequence
from typing import Any

from openai import AsyncOpenAI

from config.config_loader import ProviderConfig
from multi_ai.models import ContextMessage
from multi_ai.providers.base import AIProvider, CompletionOptions, ProviderError

logger = logging.getLogger(__name__)

_DEFAULT_SITE_URL = "http://localhost"
_DEFAULT_SITE_NAME = "Multi-AI-Pro"


class OpenRouterProvider(AIProvider):
    """Any OpenRouter-hosted model via the OpenAI-compatible chat completions API."""

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError("openrouter", f"Missing API key: {config.api_key_env}")
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=config.base_url,
            max_retries=0,
            timeout=config.timeout_sec,
            default_headers={
                "HTTP-Referer": os.environ.get(config.site_url_env, _DEFAULT_SITE_URL),
                "X-Title": os.environ.get(config.site_name_env, _DEFAULT_SITE_NAME),
            },
        )

    def name(self) -> str:
        return "openrouter"

    async def complete(self, prompt: str, options: CompletionOptions | None = None) -> str:
        return await self._create([{"role": "user", "content": prompt}], options or CompletionOptions())

    async def complete_with_context(
        self,
        messages: Sequence[ContextMessage],
        options: CompletionOptions | None = None,
    ) -> str:
        payload = [{"role": m.role, "content": m.content} for m in messages]
        return await self._create(payload, options or CompletionOptions())

    async def list_models(self) -> list[dict[str, Any]]:
        """Return the OpenRouter model catalogue."""
        try:
            page = await self._client.models.list()
        except Exception as exc:
            raise ProviderError("openrouter", f"Model listing failed: {exc}") from exc
        return [m.model_dump() for m in page.data]

    async def _create(self, messages: list[dict[str, str]], options: CompletionOptions) -> str:
        kwargs: dict[str, Any] = {
            "model": options.model,
            "messages": messages,
            "temperature": options.temperature,
            "stream": False,
        }
        if options.max_tokens is not None:
            kwargs["max_tokens"] = options.max_tokens
        if options.top_p is not None:
            kwargs["top_p"] = options.top_p
        if options.frequency_penalty is not None:
            kwargs["frequency_penalty"] = options.frequency_penalty
        if options.presence_penalty is not None:
            kwargs["presence_penalty"] = options.presence_penalty
        if options.stop_sequences:
            kwargs["stop"] = list(options.stop_sequences)

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(**kwargs),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(options.model, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(options.model, f"OpenRouter completion failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(options.model, "Empty response content")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info(
            "OpenRouter %s: %.2fs, %s tokens",
            options.model,
            latency,
            token_count,
        )
        return choice.message.content
