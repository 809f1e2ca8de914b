"""Debate rounds: every model answers, then answers again having read the transcript."""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from config.config_loader import PromptsConfig
from multi_ai.models import DebateRound, ProviderResponse
from multi_ai.providers.base import AIProvider, CompletionOptions
from multi_ai.synthesis import format_debate_history

logger = logging.getLogger(__name__)


def build_round_prompt(prompt: str, rounds: list[DebateRound], prompts: PromptsConfig) -> str:
    """The prompt every model receives in the next round."""
    if not rounds:
        return prompt
    return prompts.debate_followup.format(prompt=prompt, history=format_debate_history(rounds))


async def run_debate(
    provider: AIProvider,
    prompt: str,
    models: list[str],
    prompts: PromptsConfig,
    num_rounds: int,
    options: CompletionOptions,
    suffix: str = "",
    on_round_complete: Callable[[DebateRound], None] | None = None,
) -> list[DebateRound]:
    """Run the full debate across all rounds.

    Models are called one after another, in list order, with the same prompt
    for a given round. The first round sees the bare prompt; later rounds see
    every prior round's transcript.

    Args:
        provider: The completion provider.
        prompt: The original prompt.
        models: Participating model ids.
        prompts: Prompt templates from config.
        num_rounds: Total number of rounds (>= 1).
        options: Base completion options; the model is set per call.
        suffix: Extra instruction appended to each round's prompt.
        on_round_complete: Optional callback invoked after each round completes.

    Returns:
        List of DebateRound objects, one per round.

    Raises:
        ProviderError: On any failed call; the debate is abandoned.
    """
    rounds: list[DebateRound] = []

    for round_index in range(num_rounds):
        round_prompt = build_round_prompt(prompt, rounds, prompts) + suffix
        logger.info("Starting debate round %d with %d models", round_index + 1, len(models))

        responses: list[ProviderResponse] = []
        for model in models:
            text = await provider.complete(round_prompt, options.with_model(model))
            responses.append(ProviderResponse(model=model, response=text, timestamp=datetime.now(timezone.utc)))

        current_round = DebateRound(round=round_index + 1, responses=responses)
        rounds.append(current_round)
        logger.info("Debate round %d complete", current_round.round)

        if on_round_complete:
            on_round_complete(current_round)

    return rounds
