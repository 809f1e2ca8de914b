"""Markdown rendering of orchestration results, Rich console output, and file save."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown

from multi_ai.models import ContextSummary, Message, OrchestrationResult, Strategy

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _header(result: OrchestrationResult) -> list[str]:
    lines = [
        "# Orchestration Result",
        "",
        f"**Strategy:** {result.strategy.value}",
        f"**Models Used:** {', '.join(result.models)}",
    ]
    if result.conversation_id:
        lines.append(f"**Conversation ID:** {result.conversation_id}")
    lines.append("")
    return lines


def render_result(result: OrchestrationResult) -> str:
    """Render a result as markdown, grouped the way its strategy produced it."""
    lines = _header(result)
    responses = result.responses or []

    if result.strategy is Strategy.SEQUENTIAL:
        lines += ["## Sequential Refinement", ""]
        for i, r in enumerate(responses, start=1):
            lines += [f"### Step {i}: {r.model}", r.response, ""]

    elif result.strategy in (Strategy.PARALLEL, Strategy.CONSENSUS):
        title = "Parallel Responses" if result.strategy is Strategy.PARALLEL else "Individual Perspectives"
        lines += [f"## {title}", ""]
        for r in responses:
            lines += [f"### {r.model}", r.response, ""]
        if result.strategy is Strategy.PARALLEL and result.synthesis:
            lines += ["## Synthesis", result.synthesis, ""]
        if result.consensus:
            lines += ["## Consensus", result.consensus, ""]

    elif result.strategy is Strategy.DEBATE:
        lines += ["## Debate Rounds", ""]
        for rnd in result.rounds or []:
            lines.append(f"### Round {rnd.round}")
            for r in rnd.responses:
                lines += [f"**{r.model}:** {r.response}", ""]
        if result.conclusion:
            lines += ["## Conclusion", result.conclusion, ""]

    elif result.strategy is Strategy.SPECIALIST:
        if result.classification is not None:
            c = result.classification.classification
            note = " (default, classifier reply unusable)" if result.classification.is_fallback else ""
            lines += [
                f"**Classification:** {c.primary} / {c.secondary}, complexity {c.complexity}{note}",
                "",
            ]
        lines += ["## Specialist Responses", ""]
        reasons = {s.model: s.reason for s in result.specialists}
        for r in responses:
            lines.append(f"### {r.model}")
            if r.model in reasons:
                lines.append(f"*{reasons[r.model]}*")
            lines += [r.response, ""]

    if result.failures:
        lines += ["## Failed Models", ""]
        lines += [f"- {f.model}: {f.error}" for f in result.failures]
        lines.append("")

    return "\n".join(lines)


def render_comparison(prompt: str, result: OrchestrationResult) -> str:
    comparison = "\n---\n\n".join(f"**{r.model}:**\n{r.response}\n" for r in result.responses or [])
    return (
        f"# Model Comparison\n\n**Prompt:** {prompt}\n\n{comparison}\n\n"
        f"## Synthesis\n{result.synthesis or 'No synthesis available'}"
    )


def render_history(messages: list[Message]) -> str:
    if not messages:
        return "No conversation history yet."
    return "\n\n---\n\n".join(
        f"[{m.timestamp.isoformat()}] {m.role.upper()}{f' ({m.model})' if m.model else ''}:\n{m.content}"
        for m in messages
    )


def render_summary(summary: ContextSummary) -> str:
    usage = "\n".join(f"- {u.model}: {u.count} messages" for u in summary.model_usage)
    return (
        "# Context Summary\n\n"
        f"**Total Conversations:** {summary.total_conversations}\n"
        f"**Total Messages:** {summary.total_messages}\n"
        f"**Current Conversation ID:** {summary.current_conversation_id}\n\n"
        f"**Model Usage:**\n{usage or '- none yet'}"
    )


def print_markdown(text: str) -> None:
    """Print markdown text to the console using Rich."""
    console.print(Markdown(text))


def save_to_file(result: OrchestrationResult, prompt: str, output_dir: Path) -> Path:
    """Save the rendered result as a timestamped markdown file.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"{timestamp}_{result.strategy.value}_{_slug(prompt)}.md"
    filepath = output_dir / filename

    lines = [
        f"**Prompt:** {prompt}",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "---",
        "",
        render_result(result),
    ]
    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Result saved to: %s", filepath)
    return filepath
