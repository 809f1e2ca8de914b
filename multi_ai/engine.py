"""Orchestration engine: dispatch a request to one of five multi-model strategies."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from config.config_loader import DefaultsConfig, PromptsConfig
from multi_ai.context.store import ContextStore
from multi_ai.debate import run_debate
from multi_ai.models import (
    CallOutcome,
    ContextMessage,
    ConversationHandle,
    DebateRound,
    FailedCall,
    OrchestrationRequest,
    OrchestrationResult,
    ProviderResponse,
    Strategy,
)
from multi_ai.providers.base import AIProvider, CompletionOptions, ProviderError
from multi_ai.routing import parse_classification, select_specialists
from multi_ai.synthesis import conclude_debate, find_consensus, synthesize_responses

logger = logging.getLogger(__name__)


class InvalidRequestError(ValueError):
    """Raised for a malformed request, before any provider call is made."""


class UnsupportedStrategyError(InvalidRequestError):
    def __init__(self, strategy: object) -> None:
        self.strategy = strategy
        valid = ", ".join(s.value for s in Strategy)
        super().__init__(f"Unsupported strategy: {strategy!r} (expected one of: {valid})")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class OrchestrationEngine:
    """Stateless coordinator over a completion provider and a context store.

    The active conversation is passed in per call; the engine itself holds no
    conversation state, so concurrent calls on different handles do not mix.
    """

    def __init__(
        self,
        provider: AIProvider,
        store: ContextStore,
        defaults: DefaultsConfig,
        prompts: PromptsConfig,
        history_limit: int = 50,
    ) -> None:
        self._provider = provider
        self._store = store
        self._defaults = defaults
        self._prompts = prompts
        self._history_limit = history_limit

    async def orchestrate(
        self,
        request: OrchestrationRequest,
        conversation: ConversationHandle | None = None,
        on_round_complete: Callable[[DebateRound], None] | None = None,
    ) -> OrchestrationResult:
        """Run ``request`` and return its result.

        ``on_round_complete`` is called after each Debate round; other
        strategies ignore it.

        Raises:
            InvalidRequestError: Bad strategy, empty prompt, or a Debate with max_rounds < 1.
            ProviderError: A call the strategy cannot do without failed.
            StorageError: The context store failed.
        """
        strategy = self._validate(request)
        models = list(request.models) if request.models else self._defaults.default_panel()

        if request.use_context:
            if conversation is None:
                conversation = await self._store.start_new_conversation("Auto-created conversation")
            await self._store.add_message(conversation, "user", request.prompt)

        logger.info("Orchestrating %s across %s", strategy.value, ", ".join(models))

        if strategy is Strategy.SEQUENTIAL:
            result = await self._sequential(request, models, conversation)
        elif strategy is Strategy.PARALLEL:
            result = await self._parallel(request, models, conversation)
        elif strategy is Strategy.DEBATE:
            result = await self._debate(request, models, conversation, on_round_complete)
        elif strategy is Strategy.CONSENSUS:
            result = await self._consensus(request, models, conversation)
        else:
            result = await self._specialist(request, models, conversation)

        summary = await self._store.get_summary(conversation)
        result.conversation_id = summary.current_conversation_id
        logger.info("Orchestration %s complete", strategy.value)
        return result

    def _validate(self, request: OrchestrationRequest) -> Strategy:
        try:
            strategy = Strategy(request.strategy)
        except ValueError:
            raise UnsupportedStrategyError(request.strategy) from None
        if not request.prompt or not request.prompt.strip():
            raise InvalidRequestError("Prompt must not be empty")
        if strategy is Strategy.DEBATE and request.options.max_rounds < 1:
            raise InvalidRequestError(f"max_rounds must be a positive integer, got {request.options.max_rounds}")
        return strategy

    def _base_options(self, request: OrchestrationRequest) -> CompletionOptions:
        if request.options.temperature is None:
            return CompletionOptions()
        return CompletionOptions(temperature=request.options.temperature)

    def _suffix(self, request: OrchestrationRequest) -> str:
        if request.options.include_reasoning and self._prompts.reasoning:
            return "\n\n" + self._prompts.reasoning
        return ""

    async def _history(
        self,
        request: OrchestrationRequest,
        conversation: ConversationHandle | None,
    ) -> list[ContextMessage]:
        if not request.use_context or conversation is None:
            return []
        messages = await self._store.get_conversation_history(conversation, self._history_limit)
        return [ContextMessage(role=m.role, content=m.content) for m in messages]

    async def _sequential(
        self,
        request: OrchestrationRequest,
        models: list[str],
        conversation: ConversationHandle | None,
    ) -> OrchestrationResult:
        base = self._base_options(request)
        suffix = self._suffix(request)
        responses: list[ProviderResponse] = []
        current_prompt = request.prompt

        for model in models:
            # Re-read per step: the previous model's answer is already persisted.
            messages = await self._history(request, conversation)
            messages.append(ContextMessage(role="user", content=current_prompt + suffix))

            text = await self._provider.complete_with_context(messages, base.with_model(model))
            responses.append(ProviderResponse(model=model, response=text, timestamp=_now()))

            if request.use_context and conversation is not None:
                await self._store.add_message(conversation, "assistant", text, model=model)

            current_prompt = self._prompts.refine.format(prompt=request.prompt, model=model, response=text)

        return OrchestrationResult(strategy=Strategy.SEQUENTIAL, models=models, responses=responses)

    async def _fan_out(
        self,
        request: OrchestrationRequest,
        models: list[str],
        conversation: ConversationHandle | None,
    ) -> list[CallOutcome]:
        """Call every model concurrently; failures are captured, never raised."""
        base = self._base_options(request)
        messages = await self._history(request, conversation)
        messages.append(ContextMessage(role="user", content=request.prompt + self._suffix(request)))

        async def _call(model: str) -> CallOutcome:
            try:
                text = await self._provider.complete_with_context(list(messages), base.with_model(model))
            except Exception as exc:
                logger.warning("Model %s failed in parallel fan-out: %s", model, exc)
                return CallOutcome(model=model, error=str(exc))
            return CallOutcome(model=model, response=ProviderResponse(model=model, response=text, timestamp=_now()))

        return list(await asyncio.gather(*(_call(m) for m in models)))

    async def _parallel(
        self,
        request: OrchestrationRequest,
        models: list[str],
        conversation: ConversationHandle | None,
    ) -> OrchestrationResult:
        outcomes = await self._fan_out(request, models, conversation)
        responses = [o.response for o in outcomes if o.response is not None]
        failures = [FailedCall(model=o.model, error=o.error or "unknown error") for o in outcomes if not o.ok]
        logger.info("Parallel fan-out: %d/%d models succeeded", len(responses), len(models))

        synthesis: str | None = None
        if responses:
            try:
                synthesis = await synthesize_responses(
                    self._provider, responses, request.prompt, self._prompts, self._defaults,
                ) or None
            except ProviderError as exc:
                logger.warning("Synthesis failed, returning responses without it: %s", exc)
        else:
            logger.warning("No model responded; skipping synthesis")

        if request.use_context and conversation is not None and synthesis:
            await self._store.add_message(
                conversation,
                "assistant",
                synthesis,
                model="synthesis",
                metadata={"models": [r.model for r in responses]},
            )

        return OrchestrationResult(
            strategy=Strategy.PARALLEL,
            models=models,
            responses=responses,
            synthesis=synthesis,
            failures=failures,
        )

    async def _debate(
        self,
        request: OrchestrationRequest,
        models: list[str],
        conversation: ConversationHandle | None,
        on_round_complete: Callable[[DebateRound], None] | None = None,
    ) -> OrchestrationResult:
        rounds = await run_debate(
            provider=self._provider,
            prompt=request.prompt,
            models=models,
            prompts=self._prompts,
            num_rounds=request.options.max_rounds,
            options=self._base_options(request),
            suffix=self._suffix(request),
            on_round_complete=on_round_complete,
        )
        conclusion = await conclude_debate(self._provider, rounds, request.prompt, self._prompts, self._defaults)

        if request.use_context and conversation is not None:
            await self._store.add_message(
                conversation,
                "assistant",
                conclusion,
                model="debate-conclusion",
                metadata={"models": models, "rounds": request.options.max_rounds},
            )

        return OrchestrationResult(strategy=Strategy.DEBATE, models=models, rounds=rounds, conclusion=conclusion)

    async def _consensus(
        self,
        request: OrchestrationRequest,
        models: list[str],
        conversation: ConversationHandle | None,
    ) -> OrchestrationResult:
        parallel = await self._parallel(request, models, conversation)
        responses = parallel.responses or []

        consensus = await find_consensus(self._provider, responses, request.prompt, self._prompts, self._defaults)

        if request.use_context and conversation is not None:
            await self._store.add_message(
                conversation,
                "assistant",
                consensus,
                model="consensus",
                metadata={"models": [r.model for r in responses]},
            )

        return OrchestrationResult(
            strategy=Strategy.CONSENSUS,
            models=models,
            responses=responses,
            synthesis=parallel.synthesis,
            consensus=consensus,
            failures=parallel.failures,
        )

    async def _specialist(
        self,
        request: OrchestrationRequest,
        models: list[str],
        conversation: ConversationHandle | None,
    ) -> OrchestrationResult:
        classification_reply = await self._provider.complete(
            self._prompts.classification.format(prompt=request.prompt),
            CompletionOptions(model=self._defaults.classifier, temperature=self._defaults.derived_temperature),
        )
        outcome = parse_classification(classification_reply)
        specialists = select_specialists(outcome.classification, models)
        logger.info(
            "Specialist routing (%s, %s classification): %s",
            outcome.classification.primary,
            outcome.source,
            ", ".join(s.model for s in specialists),
        )

        base = self._base_options(request)
        prompt = request.prompt + self._suffix(request)
        responses: list[ProviderResponse] = []
        for specialist in specialists:
            text = await self._provider.complete(prompt, base.with_model(specialist.model))
            responses.append(ProviderResponse(model=specialist.model, response=text, timestamp=_now()))

            if request.use_context and conversation is not None:
                await self._store.add_message(
                    conversation,
                    "assistant",
                    text,
                    model=specialist.model,
                    metadata={"reason": specialist.reason},
                )

        return OrchestrationResult(
            strategy=Strategy.SPECIALIST,
            models=[s.model for s in specialists],
            responses=responses,
            classification=outcome,
            specialists=specialists,
        )
