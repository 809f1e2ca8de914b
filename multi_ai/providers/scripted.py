"""Deterministic provider: canned replies per model, every call recorded."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from multi_ai.models import ContextMessage
from multi_ai.providers.base import AIProvider, CompletionOptions, ProviderError

# A reply is text, an exception to raise, or a sequence of either consumed call by call.
Reply = str | Exception | Sequence[str | Exception]


@dataclass(frozen=True)
class RecordedCall:
    kind: str                          # "complete" or "complete_with_context"
    model: str
    prompt: str | None
    messages: tuple[ContextMessage, ...] | None
    options: CompletionOptions

    @property
    def text(self) -> str:
        """Everything the model was shown, joined for easy assertions."""
        if self.prompt is not None:
            return self.prompt
        return "\n".join(m.content for m in self.messages or ())


class ScriptedProvider(AIProvider):
    """Offline AIProvider for tests and dry runs.

    Unscripted models answer with ``default_reply`` formatted with ``model``.
    """

    def __init__(
        self,
        replies: Mapping[str, Reply] | None = None,
        default_reply: str = "{model} response",
    ) -> None:
        self._replies: dict[str, Reply] = dict(replies or {})
        self._cursor: dict[str, int] = {}
        self._default_reply = default_reply
        self.calls: list[RecordedCall] = []

    def name(self) -> str:
        return "scripted"

    def calls_for(self, model: str) -> list[RecordedCall]:
        return [c for c in self.calls if c.model == model]

    async def complete(self, prompt: str, options: CompletionOptions | None = None) -> str:
        opts = options or CompletionOptions()
        self.calls.append(RecordedCall("complete", opts.model, prompt, None, opts))
        return self._next_reply(opts.model)

    async def complete_with_context(
        self,
        messages: Sequence[ContextMessage],
        options: CompletionOptions | None = None,
    ) -> str:
        opts = options or CompletionOptions()
        self.calls.append(RecordedCall("complete_with_context", opts.model, None, tuple(messages), opts))
        return self._next_reply(opts.model)

    def _next_reply(self, model: str) -> str:
        reply = self._replies.get(model)
        if reply is None:
            return self._default_reply.format(model=model)
        if isinstance(reply, (str, Exception)):
            item: str | Exception = reply
        else:
            index = self._cursor.get(model, 0)
            if index >= len(reply):
                raise ProviderError(model, "Scripted replies exhausted")
            self._cursor[model] = index + 1
            item = reply[index]
        if isinstance(item, Exception):
            raise item
        return item
