"""Command-line entry point for PoeBridge."""

import asyncio
import sys
from typing import Optional

import click
import openai
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from poebridge import __version__
from poebridge.core.config import PoeSettings, get_settings, save_settings
from poebridge.core.fetchers.poe import get_poe_models
from poebridge.core.model_info import ModelCatalog
from poebridge.core.providers.poe import (
    ApiStreamReasoningChunk,
    ApiStreamTextChunk,
    ApiStreamUsageChunk,
    PoeHandler,
)
from poebridge.core.service_url import to_poe_service_url
from poebridge.utils.log import enable_file_logging, get_logger
from poebridge.utils.session_usage import SessionUsage, get_session_usage

console = Console()
logger = get_logger()


def _price(value: Optional[float]) -> str:
    return "-" if value is None else f"${value:g}"


def build_models_table(models: ModelCatalog) -> Table:
    table = Table(title=f"Poe models ({len(models)})")
    table.add_column("Model", style="cyan", no_wrap=True)
    table.add_column("Context", justify="right")
    table.add_column("Max out", justify="right")
    table.add_column("Input/1M", justify="right")
    table.add_column("Output/1M", justify="right")
    table.add_column("Features")
    for model_id in sorted(models, key=str.lower):
        info = models[model_id]
        features = []
        if info.supports_images:
            features.append("images")
        if info.supports_prompt_cache:
            features.append("cache")
        if info.supports_reasoning_budget:
            features.append("reasoning-budget")
        if info.supports_reasoning_effort:
            features.append("reasoning-effort")
        table.add_row(
            model_id,
            str(info.context_window or "-"),
            str(info.max_tokens or "-"),
            _price(info.input_price),
            _price(info.output_price),
            ", ".join(features) or "-",
        )
    return table


async def stream_chat(handler: PoeHandler, prompt: str, system_prompt: str) -> None:
    messages = [{"role": "user", "content": prompt}]
    async for event in handler.create_message(system_prompt, messages):
        if isinstance(event, ApiStreamReasoningChunk):
            console.print(escape(event.text), style="dim", end="")
        elif isinstance(event, ApiStreamTextChunk):
            console.print(escape(event.text), end="")
        elif isinstance(event, ApiStreamUsageChunk):
            console.print()
            console.print(
                f"[dim]tokens in={event.input_tokens} out={event.output_tokens} "
                f"cache_write={event.cache_write_tokens} cache_read={event.cache_read_tokens} "
                f"cost=${event.total_cost:.6f}[/dim]"
            )


def format_session_usage(usage: SessionUsage) -> Optional[str]:
    """One summary line per model plus a total, or None when nothing was recorded."""
    if not usage.total_requests:
        return None
    lines = [
        f"{model}: {stats.requests} request(s), in={stats.input_tokens} "
        f"out={stats.output_tokens} cache_read={stats.cache_read_tokens} "
        f"cache_write={stats.cache_write_tokens} ${stats.cost_usd:.6f}"
        for model, stats in sorted(usage.models.items())
    ]
    lines.append(
        f"session total: {usage.total_requests} request(s), "
        f"in={usage.total_input_tokens} out={usage.total_output_tokens} "
        f"${usage.total_cost_usd:.6f}"
    )
    return "\n".join(lines)


def _settings_with_flags(api_key: Optional[str], base_url: Optional[str]) -> PoeSettings:
    settings = get_settings()
    updates = {}
    if api_key:
        updates["poe_api_key"] = api_key
    if base_url:
        updates["poe_base_url"] = base_url
    return settings.model_copy(update=updates) if updates else settings


@click.group()
@click.version_option(version=__version__)
@click.option("--debug-log", is_flag=True, help="Also write debug logs to ~/.poebridge/logs")
def cli(debug_log: bool) -> None:
    """PoeBridge - Poe provider adapter"""
    if debug_log:
        log_file = enable_file_logging()
        console.print(f"[dim]Logging to {escape(str(log_file))}[/dim]")


@cli.command(name="models")
@click.option("--api-key", type=str, help="Poe API key (defaults to stored settings)")
@click.option("--base-url", type=str, help="Override the Poe API base URL")
def models_cmd(api_key: Optional[str], base_url: Optional[str]) -> None:
    """List the models Poe currently exposes"""
    settings = _settings_with_flags(api_key, base_url)
    models = asyncio.run(get_poe_models(settings.poe_api_key, settings.poe_base_url))
    if not models:
        console.print("[yellow]No models returned. Check your API key and base URL.[/yellow]")
        return
    console.print(build_models_table(models))


@cli.command(name="chat")
@click.argument("prompt")
@click.option("--system", "system_prompt", default="You are a helpful assistant.", show_default=True)
@click.option("--model", "model_id", type=str, help="Poe model id")
def chat_cmd(prompt: str, system_prompt: str, model_id: Optional[str]) -> None:
    """Send PROMPT to Poe and stream the reply"""
    settings = get_settings()
    if model_id:
        settings = settings.model_copy(update={"poe_model_id": model_id})
    handler = PoeHandler(settings)
    logger.info(
        "[cli] Starting chat",
        extra={"model": settings.poe_model_id, "prompt_length": len(prompt)},
    )
    try:
        asyncio.run(stream_chat(handler, prompt, system_prompt))
    except openai.OpenAIError as exc:
        raise click.ClickException(f"Poe request failed: {exc}") from exc
    summary = format_session_usage(get_session_usage())
    if summary:
        console.print(f"[dim]{escape(summary)}[/dim]")


@cli.command(name="settings")
def settings_cmd() -> None:
    """Edit the Poe API key, base URL and model"""
    from poebridge.cli.ui.poe_settings_tui.textual_app import run_poe_settings_tui

    settings = get_settings()
    models = asyncio.run(get_poe_models(settings.poe_api_key, settings.poe_base_url))
    updated = run_poe_settings_tui(settings, models)
    if updated is None:
        console.print("[dim]Settings unchanged.[/dim]")
        return
    save_settings(updated)
    console.print(f"[green]Saved.[/green] Using {escape(to_poe_service_url(updated.poe_base_url))}")


@cli.command(name="version")
def version_cmd() -> None:
    """Show version information"""
    console.print(f"PoeBridge version {__version__}")


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except SystemExit:
        raise
    except (RuntimeError, ValueError, TypeError, OSError, ConnectionError) as e:
        console.print(f"[red]Fatal error: {escape(str(e))}[/red]")
        logger.warning(
            "[cli] Fatal error in main CLI entrypoint: %s: %s",
            type(e).__name__,
            e,
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
