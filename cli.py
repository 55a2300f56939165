"""st-narrative: command line runner.

Commands:
    run       Fetch every source, derive and aggregate, synthesize and
              validate narratives and ideas. Live panels per source while
              fetching, result tables when done.
    signals   Fetch, derive and aggregate only. Prints JSON to stdout. No LLM.

Exit codes:
    0  success
    1  LLM synthesis failed after retries
    2  configuration error
    130  cancelled

Usage:
    st-narrative run --config config.toml --output run.json
    st-narrative signals > signals.json
"""

import argparse
import asyncio
import json
import logging
import pathlib
import signal
import sys

from rich.console import Console
from rich.table import Table

from config import RunConfig, load_config
from core.errors import ConfigError, RunCancelled, SynthesisFailed
from core.runtime import NarrativeRuntime
from display.live import LiveDisplay
from fetchers import default_fetchers
from llm.factory import create_llm_client
from schemas.result import RunResult
from synthesis.llm_synthesizer import LLMSynthesizer
from synthesis.transport import SynthesisTransport
from utils.log import setup_logging

logger = logging.getLogger(__name__)

console = Console()

EXIT_OK = 0
EXIT_SYNTHESIS_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="st-narrative",
        description="Detect grounded Solana ecosystem narratives and build ideas.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Full pipeline: fetch, aggregate, synthesize, validate.")
    run.add_argument("--config", type=pathlib.Path, default=None, help="TOML config file.")
    run.add_argument("--output", type=pathlib.Path, default=None, help="Write the run result as JSON.")
    run.add_argument("--provider", choices=["anthropic", "openrouter", "openai"], default=None)
    run.add_argument("--model", default=None, help="Override the configured model id.")

    signals = sub.add_parser("signals", help="Fetch and aggregate only; print JSON.")
    signals.add_argument("--config", type=pathlib.Path, default=None, help="TOML config file.")

    return parser


def build_runtime(config: RunConfig, transport: SynthesisTransport | None = None) -> NarrativeRuntime:
    """Runtime with the default fetchers registered."""
    runtime = NarrativeRuntime(config, transport)
    for fetcher in default_fetchers():
        runtime.register(fetcher)
    return runtime


def apply_overrides(config: RunConfig, provider: str | None, model: str | None) -> RunConfig:
    """Return a copy of config with the CLI's LLM overrides applied."""
    updates = {}
    if provider:
        updates["provider"] = provider
    if model:
        updates["model"] = model
    if not updates:
        return config
    return config.model_copy(update={"llm": config.llm.model_copy(update=updates)})


# ── Results tables ────────────────────────────────────────────────────────────

def _print_results(result: RunResult) -> None:
    """Render source status, narratives, ideas and rejections."""
    sources = Table(title="Sources", border_style="bright_black")
    sources.add_column("Source", style="bold")
    sources.add_column("Status", justify="center")
    sources.add_column("Signals", justify="right")
    sources.add_column("Time", justify="right", style="dim")
    for status in result.source_status:
        mark = "[green]ok[/green]" if status.ok else f"[red]{status.error}[/red]"
        sources.add_row(status.source, mark, str(status.signal_count), f"{status.elapsed_ms / 1000:.2f}s")
    console.print()
    console.print(sources)

    if result.narratives:
        table = Table(title="Narratives", show_lines=True, border_style="bright_black")
        table.add_column("#",          style="dim", width=3, justify="right")
        table.add_column("Title",      style="bold", min_width=28)
        table.add_column("Confidence", width=12, justify="center")
        table.add_column("Trend",      width=13, justify="center")
        table.add_column("Sources",    style="dim", min_width=16)
        table.add_column("Cites",      style="dim")

        for n in result.narratives:
            color = "green" if n.confidence >= 75 else "yellow" if n.confidence >= 50 else "red"
            confidence = f"[{color}]{n.confidence:.0f}[/{color}]"
            if n.confidence_adjusted_from is not None:
                confidence += f" [dim](was {n.confidence_adjusted_from:.0f})[/dim]"
            table.add_row(
                str(n.id),
                n.title,
                confidence,
                n.trend.value,
                ", ".join(s.value for s in n.raw_sources),
                ", ".join(str(i) for i in n.cited_signal_indices),
            )
        console.print()
        console.print(table)
    else:
        console.print("\n[yellow]No narratives accepted.[/yellow]")

    if result.ideas:
        ideas = Table(title="Build Ideas", show_lines=True, border_style="bright_black")
        ideas.add_column("#", style="dim", width=3, justify="right")
        ideas.add_column("Idea", style="bold", min_width=24)
        ideas.add_column("Narrative", width=9, justify="center")
        ideas.add_column("Target user", min_width=20)
        ideas.add_column("MVP scope", style="dim", min_width=30)
        for idea in result.ideas:
            ideas.add_row(str(idea.id), idea.title, str(idea.narrative_id), idea.target_user, idea.mvp_scope)
        console.print()
        console.print(ideas)

    if result.rejections:
        rejected = Table(title="Rejected", border_style="bright_black")
        rejected.add_column("Stage", style="dim")
        rejected.add_column("Title")
        rejected.add_column("Reason", style="red")
        rejected.add_column("Detail", style="dim")
        for r in result.rejections:
            rejected.add_row(r.stage, r.title, r.reason.value, r.detail)
        console.print()
        console.print(rejected)

    for note in result.notes:
        console.print(f"[dim]• {note}[/dim]")
    console.print(f"[dim]run: {result.run_id}[/dim]\n")


# ── Commands ──────────────────────────────────────────────────────────────────

async def _run(runtime: NarrativeRuntime, cancel_event: asyncio.Event) -> RunResult:
    _install_cancel_handler(cancel_event)

    display = LiveDisplay(runtime.source_names)
    event_queue: asyncio.Queue = asyncio.Queue()

    console.rule("[bold]st-narrative[/bold]")
    console.print(f"  sources   [cyan]{len(runtime.source_names)} registered[/cyan]")
    console.print(f"  provider  [cyan]{runtime.config.llm.provider} / {runtime.config.llm.model}[/cyan]")
    console.print()

    with display.make_live() as live:
        pipeline = asyncio.create_task(runtime.execute(event_queue, cancel_event))
        consumer = asyncio.create_task(display.consume(event_queue, live))
        try:
            result = await pipeline
        finally:
            await event_queue.put(None)   # sentinel: tell consumer to stop
            await consumer

    return result


async def _collect(runtime: NarrativeRuntime, cancel_event: asyncio.Event) -> dict:
    _install_cancel_handler(cancel_event)
    collection = await runtime.collect(cancel_event=cancel_event)
    return {
        "signals": [s.model_dump(mode="json") for s in collection.store.all()],
        "aggregates": [a.model_dump(mode="json") for a in collection.aggregates],
        "source_status": [s.model_dump(mode="json") for s in collection.source_status],
        "notes": collection.notes,
    }


def _install_cancel_handler(cancel_event: asyncio.Event) -> None:
    """Turn Ctrl-C into a cooperative cancel at the next phase boundary."""
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers unavailable; Ctrl-C will interrupt immediately.")


def cmd_run(args: argparse.Namespace) -> int:
    config = apply_overrides(load_config(args.config), args.provider, args.model)
    transport = LLMSynthesizer(create_llm_client(config.llm))
    runtime = build_runtime(config, transport)

    try:
        result = asyncio.run(_run(runtime, asyncio.Event()))
    except SynthesisFailed as exc:
        console.print(f"\n[bold red]Synthesis failed:[/bold red] {exc}")
        return EXIT_SYNTHESIS_FAILED

    _print_results(result)
    if args.output:
        args.output.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"[dim]wrote {args.output}[/dim]")
    return EXIT_OK


def cmd_signals(args: argparse.Namespace) -> int:
    runtime = build_runtime(load_config(args.config))
    payload = asyncio.run(_collect(runtime, asyncio.Event()))
    sys.stdout.write(json.dumps(payload, indent=2) + "\n")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        if args.command == "run":
            return cmd_run(args)
        return cmd_signals(args)
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        return EXIT_CONFIG_ERROR
    except (RunCancelled, KeyboardInterrupt):
        console.print("[yellow]Cancelled.[/yellow]")
        return EXIT_CANCELLED


if __name__ == "__main__":
    sys.exit(main())
