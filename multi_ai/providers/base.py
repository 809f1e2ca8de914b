"""Abstract base for completion providers."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, replace

from multi_ai.models import ContextMessage

DEFAULT_MODEL = "openai/gpt-4o"
DEFAULT_TEMPERATURE = 0.7


class ProviderError(Exception):
    """Raised when a completion call fails."""

    def __init__(self, model: str, message: str) -> None:
        self.model = model
        super().__init__(f"[{model}] {message}")


@dataclass(frozen=True)
class CompletionOptions:
    model: str = DEFAULT_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    stop_sequences: tuple[str, ...] | None = None

    def with_model(self, model: str) -> "CompletionOptions":
        return replace(self, model=model)


class AIProvider(ABC):
    """A completion backend: turns a prompt or a message list into model text."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'openrouter')."""
        ...

    @abstractmethod
    async def complete(self, prompt: str, options: CompletionOptions | None = None) -> str:
        """Complete a single user prompt.

        Raises:
            ProviderError: On transport failure, non-2xx, or malformed/empty response.
        """
        ...

    @abstractmethod
    async def complete_with_context(
        self,
        messages: Sequence[ContextMessage],
        options: CompletionOptions | None = None,
    ) -> str:
        """Complete an ordered conversation (oldest first).

        Raises:
            ProviderError: On transport failure, non-2xx, or malformed/empty response.
        """
        ...
