"""Tool invocation layer: validate named tool calls and render their results as text."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from config.config_loader import DefaultsConfig
from multi_ai.context.store import ContextStore
from multi_ai.engine import OrchestrationEngine
from multi_ai.models import (
    ContextMessage,
    ConversationHandle,
    OrchestrationOptions,
    OrchestrationRequest,
    Strategy,
)
from multi_ai.output import render_comparison, render_history, render_result, render_summary
from multi_ai.providers.base import AIProvider, CompletionOptions

logger = logging.getLogger(__name__)


class _Args(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class AskArgs(_Args):
    prompt: str = Field(min_length=1, description="The question or prompt to send to the AI model")
    model: str | None = Field(None, description="Specific model to use (e.g. 'deepseek/deepseek-r1')")
    temperature: float = Field(0.7, ge=0, le=2, description="Temperature for response generation")
    use_context: bool = Field(True, alias="useContext", description="Whether to use conversation context")


class OrchestrateOptionsArgs(_Args):
    max_rounds: int = Field(3, ge=1, alias="maxRounds", description="Number of rounds for debate mode")
    temperature: float = Field(0.7, ge=0, le=2, description="Temperature setting")
    include_reasoning: bool = Field(False, alias="includeReasoning", description="Ask models to show their reasoning")


class OrchestrateArgs(_Args):
    prompt: str = Field(min_length=1, description="The prompt to orchestrate across multiple AI models")
    strategy: Strategy = Field(
        description="sequential (refine), parallel (synthesize), debate (discuss), "
        "consensus (agree), specialist (route to best model)",
    )
    models: list[str] | None = Field(None, description="Specific models to use (defaults to top-ranked models)")
    use_context: bool = Field(True, alias="useContext", description="Whether to use conversation context")
    options: OrchestrateOptionsArgs | None = None


class CompareArgs(_Args):
    prompt: str = Field(min_length=1, description="The prompt to compare responses across models")
    models: list[str] | None = Field(None, description="Models to compare (defaults to top-ranked models)")
    use_context: bool = Field(True, alias="useContext", description="Whether to use conversation context")


class NewConversationArgs(_Args):
    title: str | None = Field(None, description="Title for the new conversation")


class HistoryArgs(_Args):
    limit: int = Field(50, ge=1, description="Maximum number of messages to retrieve")


class SummaryArgs(_Args):
    pass


_TOOL_SPECS: list[tuple[str, str, type[BaseModel]]] = [
    ("ask", "Ask a question to a specific AI model with persistent context", AskArgs),
    ("orchestrate", "Orchestrate a task across multiple AI models using one of five strategies", OrchestrateArgs),
    ("compare", "Compare responses from multiple AI models side by side", CompareArgs),
    ("new_conversation", "Start a new conversation with a clean context", NewConversationArgs),
    ("history", "Get conversation history from the current session", HistoryArgs),
    ("summary", "Get a summary of context usage and statistics", SummaryArgs),
]

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {"name": name, "description": description, "inputSchema": schema.model_json_schema(by_alias=True)}
    for name, description, schema in _TOOL_SPECS
]


class UnknownToolError(LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")


def to_request(args: OrchestrateArgs) -> OrchestrationRequest:
    """Map validated orchestrate arguments 1:1 onto an engine request."""
    opts = args.options or OrchestrateOptionsArgs()
    return OrchestrationRequest(
        prompt=args.prompt,
        strategy=args.strategy,
        models=tuple(args.models) if args.models else None,
        options=OrchestrationOptions(
            max_rounds=opts.max_rounds,
            temperature=opts.temperature,
            include_reasoning=opts.include_reasoning,
        ),
        use_context=args.use_context,
    )


class ToolHandler:
    """Serves tool calls for one session, which owns its conversation handle."""

    def __init__(
        self,
        engine: OrchestrationEngine,
        store: ContextStore,
        provider: AIProvider,
        defaults: DefaultsConfig,
        history_limit: int = 50,
    ) -> None:
        self._engine = engine
        self._store = store
        self._provider = provider
        self._defaults = defaults
        self._history_limit = history_limit
        self._conversation: ConversationHandle | None = None
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[str]]] = {
            "ask": self._ask,
            "orchestrate": self._orchestrate,
            "compare": self._compare,
            "new_conversation": self._new_conversation,
            "history": self._history,
            "summary": self._summary,
        }

    @property
    def conversation(self) -> ConversationHandle | None:
        return self._conversation

    async def start(self) -> ConversationHandle:
        self._conversation = await self._store.initialize()
        return self._conversation

    async def _session(self) -> ConversationHandle:
        """The session's conversation, resumed or created on first use."""
        if self._conversation is None:
            return await self.start()
        return self._conversation

    async def call(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        """Run one tool call. Any failure comes back as a single "Error: ..." text."""
        try:
            handler = self._handlers.get(name)
            if handler is None:
                raise UnknownToolError(name)
            return await handler(arguments or {})
        except Exception as exc:
            logger.error("Tool %s failed: %s", name, exc)
            return f"Error: {exc}"

    async def _ask(self, arguments: dict[str, Any]) -> str:
        args = AskArgs.model_validate(arguments)
        model = args.model or self._defaults.ask_model

        messages: list[ContextMessage] = []
        if args.use_context:
            conversation = await self._session()
            await self._store.add_message(conversation, "user", args.prompt)
            history = await self._store.get_conversation_history(conversation, self._history_limit)
            messages = [ContextMessage(role=m.role, content=m.content) for m in history]
        messages.append(ContextMessage(role="user", content=args.prompt))

        response = await self._provider.complete_with_context(
            messages, CompletionOptions(model=model, temperature=args.temperature),
        )

        if args.use_context:
            await self._store.add_message(conversation, "assistant", response, model=model)
        return response

    async def _orchestrate(self, arguments: dict[str, Any]) -> str:
        args = OrchestrateArgs.model_validate(arguments)
        conversation = await self._session() if args.use_context else None
        result = await self._engine.orchestrate(to_request(args), conversation)
        return render_result(result)

    async def _compare(self, arguments: dict[str, Any]) -> str:
        args = CompareArgs.model_validate(arguments)
        request = OrchestrationRequest(
            prompt=args.prompt,
            strategy=Strategy.PARALLEL,
            models=tuple(args.models) if args.models else tuple(self._defaults.default_panel()),
            use_context=args.use_context,
        )
        conversation = await self._session() if args.use_context else None
        result = await self._engine.orchestrate(request, conversation)
        return render_comparison(args.prompt, result)

    async def _new_conversation(self, arguments: dict[str, Any]) -> str:
        args = NewConversationArgs.model_validate(arguments)
        self._conversation = await self._store.start_new_conversation(args.title)
        return f"Started new conversation: {args.title or 'Untitled'}\nID: {self._conversation.id}"

    async def _history(self, arguments: dict[str, Any]) -> str:
        args = HistoryArgs.model_validate(arguments)
        messages = await self._store.get_conversation_history(await self._session(), args.limit)
        return render_history(messages)

    async def _summary(self, arguments: dict[str, Any]) -> str:
        SummaryArgs.model_validate(arguments)
        return render_summary(await self._store.get_summary(await self._session()))
