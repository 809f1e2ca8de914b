"""Derived calls: fold already-collected responses into one synthesized text."""

import logging

from config.config_loader import DefaultsConfig, PromptsConfig
from multi_ai.models import DebateRound, ProviderResponse
from multi_ai.providers.base import AIProvider, CompletionOptions

logger = logging.getLogger(__name__)


def format_responses(responses: list[ProviderResponse]) -> str:
    """List every response verbatim, labelled by model."""
    return "\n\n---\n\n".join(f"{r.model}:\n{r.response}" for r in responses)


def format_debate_history(rounds: list[DebateRound]) -> str:
    """Render all rounds as a transcript, labelled by round number and model."""
    parts: list[str] = []
    for rnd in rounds:
        body = "\n\n".join(f"{r.model}: {r.response}" for r in rnd.responses)
        parts.append(f"Round {rnd.round}:\n{body}")
    return "\n\n---\n\n".join(parts)


async def synthesize_responses(
    provider: AIProvider,
    responses: list[ProviderResponse],
    prompt: str,
    prompts: PromptsConfig,
    defaults: DefaultsConfig,
) -> str:
    """Merge parallel responses via the synthesizer model.

    Raises:
        ProviderError: If the synthesizer call fails.
    """
    synthesis_prompt = prompts.synthesis.format(prompt=prompt, responses=format_responses(responses))
    logger.info("Running synthesis via %s over %d responses", defaults.synthesizer, len(responses))
    return await provider.complete(
        synthesis_prompt,
        CompletionOptions(model=defaults.synthesizer, temperature=defaults.derived_temperature),
    )


async def conclude_debate(
    provider: AIProvider,
    rounds: list[DebateRound],
    prompt: str,
    prompts: PromptsConfig,
    defaults: DefaultsConfig,
) -> str:
    """Summarize a finished debate via the concluder model.

    Raises:
        ProviderError: If the concluder call fails.
    """
    conclusion_prompt = prompts.debate_conclusion.format(
        prompt=prompt,
        history=format_debate_history(rounds),
    )
    logger.info("Running debate conclusion via %s", defaults.concluder)
    return await provider.complete(
        conclusion_prompt,
        CompletionOptions(model=defaults.concluder, temperature=defaults.derived_temperature),
    )


async def find_consensus(
    provider: AIProvider,
    responses: list[ProviderResponse],
    prompt: str,
    prompts: PromptsConfig,
    defaults: DefaultsConfig,
) -> str:
    """Ask the consensus model for common ground across responses.

    Raises:
        ProviderError: If the consensus call fails.
    """
    consensus_prompt = prompts.consensus.format(prompt=prompt, responses=format_responses(responses))
    logger.info("Running consensus via %s over %d responses", defaults.consensus_model, len(responses))
    return await provider.complete(
        consensus_prompt,
        CompletionOptions(model=defaults.consensus_model, temperature=defaults.derived_temperature),
    )
