"""Click CLI: config loading, provider setup, and one command per tool."""

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from multi_ai.context.store import ContextStore
from multi_ai.engine import OrchestrationEngine
from multi_ai.healthcheck import run_health_checks
from multi_ai.models import DebateRound, OrchestrationResult, Strategy
from multi_ai.output import print_markdown, render_result, save_to_file
from multi_ai.providers.base import AIProvider, ProviderError
from multi_ai.providers.openrouter import OpenRouterProvider
from multi_ai.providers.scripted import ScriptedProvider
from multi_ai.tools import OrchestrateArgs, ToolHandler, to_request

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


@dataclass
class _Runtime:
    config: AppConfig
    offline: bool

    def provider(self) -> AIProvider:
        if self.offline:
            return ScriptedProvider(default_reply="[offline] {model} response")
        return self.openrouter()

    def openrouter(self) -> OpenRouterProvider:
        if not self.config.provider_available:
            console.print(
                f"[bold red]Error:[/bold red] Missing API key: set {self.config.provider.api_key_env} "
                "in .env or use --offline."
            )
            sys.exit(1)
        return OpenRouterProvider(self.config.provider)

    def store(self) -> ContextStore:
        return ContextStore(self.config.storage.database_path, self.config.storage.cache_ttl_sec)

    def engine(self, provider: AIProvider, store: ContextStore) -> OrchestrationEngine:
        return OrchestrationEngine(
            provider, store, self.config.defaults, self.config.prompts, self.config.storage.history_limit,
        )


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _split_models(models: str | None) -> list[str] | None:
    if not models:
        return None
    return [m.strip() for m in models.split(",") if m.strip()]


async def _call_tool(runtime: _Runtime, provider: AIProvider, name: str, arguments: dict[str, Any]) -> str:
    store = runtime.store()
    handler = ToolHandler(
        runtime.engine(provider, store), store, provider, runtime.config.defaults, runtime.config.storage.history_limit,
    )
    try:
        return await handler.call(name, arguments)
    finally:
        await store.close()


def _run_tool(ctx: click.Context, name: str, arguments: dict[str, Any], needs_provider: bool = True) -> None:
    runtime: _Runtime = ctx.obj
    provider = runtime.provider() if needs_provider else ScriptedProvider()
    text = asyncio.run(_call_tool(runtime, provider, name, arguments))
    if text.startswith("Error:"):
        console.print(f"[bold red]{escape(text)}[/bold red]")
        sys.exit(1)
    print_markdown(text)


async def _orchestrate(runtime: _Runtime, provider: AIProvider, args: OrchestrateArgs) -> OrchestrationResult:
    request = to_request(args)
    store = runtime.store()
    try:
        conversation = await store.initialize() if request.use_context else None
        engine = runtime.engine(provider, store)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task(f"Running {args.strategy.value} orchestration...", total=None)

            def _round_done(rnd: DebateRound) -> None:
                progress.update(
                    task, description=f"Debate round {rnd.round}/{request.options.max_rounds} complete..."
                )

            return await engine.orchestrate(request, conversation, on_round_complete=_round_done)
    finally:
        await store.close()


@click.group()
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--offline", is_flag=True, help="Use canned replies instead of calling OpenRouter")
@click.pass_context
def main(ctx: click.Context, verbose: bool, offline: bool) -> None:
    """Multi-AI Pro -- fan one prompt out to several models and combine the answers.

    \b
    Examples:
      multi-ai ask "How do I profile asyncio code?"
      multi-ai orchestrate "Design a rate limiter" --strategy parallel
      multi-ai orchestrate "Tabs or spaces?" --strategy debate --rounds 2 --models a/x,b/y
      multi-ai history --limit 10
      multi-ai tool orchestrate --args '{"prompt": "Hi", "strategy": "specialist"}'
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    ctx.obj = _Runtime(config=config, offline=offline)


@main.command()
@click.argument("prompt")
@click.option("--model", default=None, help="Model id (default: from config)")
@click.option("--temperature", default=0.7, type=float, show_default=True)
@click.option("--no-context", is_flag=True, help="Do not read or write conversation context")
@click.pass_context
def ask(ctx: click.Context, prompt: str, model: str | None, temperature: float, no_context: bool) -> None:
    """Ask a single model, with conversation context."""
    arguments: dict[str, Any] = {"prompt": prompt, "temperature": temperature, "use_context": not no_context}
    if model:
        arguments["model"] = model
    _run_tool(ctx, "ask", arguments)


@main.command()
@click.argument("prompt")
@click.option(
    "--strategy",
    required=True,
    type=click.Choice([s.value for s in Strategy]),
    help="How to combine the models",
)
@click.option("--models", default=None, help="Comma-separated model ids (default: top-ranked from config)")
@click.option("--rounds", default=None, type=int, help="Debate rounds (default: from config)")
@click.option("--temperature", default=0.7, type=float, show_default=True)
@click.option("--include-reasoning", is_flag=True, help="Ask models to show their reasoning")
@click.option("--no-context", is_flag=True, help="Do not read or write conversation context")
@click.option("--save", "save_dir", default=None, type=click.Path(file_okay=False), help="Also save the result as markdown")
@click.pass_context
def orchestrate(
    ctx: click.Context,
    prompt: str,
    strategy: str,
    models: str | None,
    rounds: int | None,
    temperature: float,
    include_reasoning: bool,
    no_context: bool,
    save_dir: str | None,
) -> None:
    """Run PROMPT through one of the orchestration strategies."""
    runtime: _Runtime = ctx.obj
    try:
        args = OrchestrateArgs.model_validate(
            {
                "prompt": prompt,
                "strategy": strategy,
                "models": _split_models(models),
                "use_context": not no_context,
                "options": {
                    "max_rounds": rounds if rounds is not None else runtime.config.defaults.max_rounds,
                    "temperature": temperature,
                    "include_reasoning": include_reasoning,
                },
            }
        )
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    provider = runtime.provider()
    try:
        result = asyncio.run(_orchestrate(runtime, provider, args))
    except Exception as exc:
        logger.debug("Orchestration failed", exc_info=True)
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    print_markdown(render_result(result))
    if save_dir:
        saved = save_to_file(result, prompt, Path(save_dir))
        console.print(f"\n[dim]Saved to: {saved}[/dim]")


@main.command()
@click.argument("prompt")
@click.option("--models", default=None, help="Comma-separated model ids (default: top-ranked from config)")
@click.option("--no-context", is_flag=True, help="Do not read or write conversation context")
@click.pass_context
def compare(ctx: click.Context, prompt: str, models: str | None, no_context: bool) -> None:
    """Compare several models side by side, with a synthesis."""
    _run_tool(ctx, "compare", {"prompt": prompt, "models": _split_models(models), "use_context": not no_context})


@main.command("new-conversation")
@click.option("--title", default=None, help="Title for the new conversation")
@click.pass_context
def new_conversation(ctx: click.Context, title: str | None) -> None:
    """Start a new conversation with a clean context."""
    _run_tool(ctx, "new_conversation", {"title": title}, needs_provider=False)


@main.command()
@click.option("--limit", default=50, type=int, show_default=True)
@click.pass_context
def history(ctx: click.Context, limit: int) -> None:
    """Show the current conversation."""
    _run_tool(ctx, "history", {"limit": limit}, needs_provider=False)


@main.command()
@click.pass_context
def summary(ctx: click.Context) -> None:
    """Show context usage statistics."""
    _run_tool(ctx, "summary", {}, needs_provider=False)


@main.command()
@click.option("--models", default=None, help="Comma-separated model ids (default: top-ranked from config)")
@click.pass_context
def check(ctx: click.Context, models: str | None) -> None:
    """Ping each model and report which ones respond."""
    runtime: _Runtime = ctx.obj
    targets = _split_models(models) or runtime.config.defaults.default_panel()
    provider = runtime.provider()

    console.print("\n[bold]Checking models...[/bold]")
    results = asyncio.run(run_health_checks(provider, targets))

    failed = 0
    for model in targets:
        ok, err = results[model]
        if ok:
            console.print(f"  [green]OK  [/green] {model}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {model}: {escape(short_err)}")
            failed += 1

    if failed:
        sys.exit(1)


@main.command("models")
@click.option("--filter", "needle", default=None, help="Only list model ids containing this text")
@click.pass_context
def list_models(ctx: click.Context, needle: str | None) -> None:
    """List the model ids OpenRouter currently serves."""
    runtime: _Runtime = ctx.obj
    if runtime.offline:
        console.print("[bold red]Error:[/bold red] Listing models needs OpenRouter; drop --offline.")
        sys.exit(1)

    try:
        catalogue = asyncio.run(runtime.openrouter().list_models())
    except ProviderError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    ids = sorted(str(m["id"]) for m in catalogue if not needle or needle in str(m["id"]))
    for model_id in ids:
        console.print(model_id, highlight=False)
    console.print(f"\n[dim]{len(ids)} models[/dim]")


@main.command()
@click.argument("name")
@click.option("--args", "raw_args", default="{}", help="Tool arguments as a JSON object")
@click.pass_context
def tool(ctx: click.Context, name: str, raw_args: str) -> None:
    """Invoke tool NAME with raw JSON arguments, as a host would."""
    try:
        arguments = json.loads(raw_args)
    except json.JSONDecodeError as exc:
        console.print(f"[bold red]Error:[/bold red] --args is not valid JSON: {escape(str(exc))}")
        sys.exit(1)
    if not isinstance(arguments, dict):
        console.print("[bold red]Error:[/bold red] --args must be a JSON object")
        sys.exit(1)
    _run_tool(ctx, name, arguments, needs_provider=name in ("ask", "orchestrate", "compare"))


if __name__ == "__main__":
    main()
