"""Top-level run orchestration: wires services together and reports to the console.

Builds one registry, one rate limiter and one inference client per process
invocation and threads them through the engine or the step reasoner.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape

from ..errors import ConfigurationError, RunAbortedError
from ..providers.base import BaseProvider, get_provider
from ..utils.sanitize import mask_secret, sanitize_error
from .config import get_effective_config
from .credentials import CredentialStore, resolve_api_key
from .engine import IterativeEngine
from .inference import InferenceClient
from .rate_limiter import RateLimiter
from .reasoner import StepReasoner
from .registry import ModelRegistry
from .report import export_run_json, generate_run_report

console = Console()

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_CONFIG_ERROR = 13


@dataclass
class Services:
    config: dict
    registry: ModelRegistry
    rate_limiter: RateLimiter
    provider: BaseProvider
    client: InferenceClient


def console_sink(message: str) -> None:
    """Log sink that prints engine milestones through the rich console."""
    console.print(f"  [dim]{escape(message)}[/dim]", highlight=False)


def build_services(
    config: dict,
    dry_run: bool = False,
    store: Optional[CredentialStore] = None,
) -> Services:
    """Construct the shared registry, limiter, provider and client.

    Raises :class:`ConfigurationError` when no credential is available.
    """
    registry = ModelRegistry.from_config(config)
    limits = config.get("rate_limit", {})
    rate_limiter = RateLimiter(
        calls_per_minute=int(limits.get("calls_per_minute", 20)),
        safety_margin=float(limits.get("safety_margin_seconds", 1.0)),
    )

    if dry_run:
        provider = get_provider(config, provider_override="scripted")
    else:
        api_key = resolve_api_key(config, store or CredentialStore())
        provider = get_provider(config, api_key=api_key)

    client = InferenceClient(provider, rate_limiter)
    return Services(config, registry, rate_limiter, provider, client)


def _load(
    config_path: Optional[Path],
    calls_per_minute: Optional[int],
    dry_run: bool,
) -> Optional[Services]:
    cli_overrides: dict = {}
    if calls_per_minute:
        cli_overrides.setdefault("rate_limit", {})["calls_per_minute"] = calls_per_minute

    config = get_effective_config(config_path, cli_overrides=cli_overrides or None)
    try:
        services = build_services(config, dry_run=dry_run)
    except ConfigurationError as e:
        console.print(f"  [red]ERROR[/red] {escape(str(e))}")
        return None

    console.print(f"  [green]OK[/green] Provider: {services.provider.name}")
    return services


def _print_history(history: list) -> None:
    for record in history:
        console.print(
            f"  Round {record.round}: quality {record.quality:.2f}, "
            f"{record.call_count} calls"
        )


async def run_task(
    task: str,
    threshold: Optional[int] = None,
    dry_run: bool = False,
    config_path: Optional[Path] = None,
    calls_per_minute: Optional[int] = None,
    output: Optional[Path] = None,
    json_output: Optional[Path] = None,
) -> int:
    """Run the iterative engine on ``task``. Returns exit code."""
    start_time = time.time()

    console.print()
    console.print("  [bold cyan]DIMSTAR[/bold cyan] iterative multi-agent refinement")
    if dry_run:
        console.print("  Mode:    [yellow]DRY RUN[/yellow]")

    services = _load(config_path, calls_per_minute, dry_run)
    if services is None:
        return EXIT_CONFIG_ERROR

    if threshold is None:
        threshold = int(services.config.get("engine", {}).get("threshold", 50))

    engine = IterativeEngine(services.registry, services.client)
    engine.set_log_sink(console_sink)

    try:
        result = await engine.run(task, threshold=threshold)
    except RunAbortedError as e:
        console.print(f"\n  [red]FAILED[/red] {escape(e.reason)}")
        if e.history:
            console.print("  [dim]Partial history:[/dim]")
            _print_history(e.history)
        return EXIT_RUN_FAILED

    duration = time.time() - start_time

    console.print("\n  [bold]Final answer[/bold]\n")
    console.print(escape(result.result), highlight=False)
    console.print()
    _print_history(result.history)
    console.print(
        f"\n  [green]Done[/green] {result.rounds} round(s), {result.call_count} calls, "
        f"quality {result.quality:.2f} in {round(duration, 1)}s"
    )
    status = services.rate_limiter.status()
    console.print(
        f"  [dim]Rate limit: {status.used_this_minute} used, "
        f"{status.remaining} remaining this minute[/dim]"
    )

    if output:
        report = generate_run_report(
            result,
            task=task,
            provider=services.provider.name,
            duration_seconds=duration,
            dry_run=dry_run,
        )
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(report, encoding="utf-8")
        console.print(f"  Report: {output}")
    if json_output:
        export_run_json(result, json_output, task=task)
        console.print(f"  JSON: {json_output}")

    return EXIT_OK


async def run_reasoning(
    question: str,
    dry_run: bool = False,
    config_path: Optional[Path] = None,
    calls_per_minute: Optional[int] = None,
) -> int:
    """Run the step-wise reasoner on ``question``. Returns exit code."""
    services = _load(config_path, calls_per_minute, dry_run)
    if services is None:
        return EXIT_CONFIG_ERROR

    settings = services.config.get("reasoner", {})
    reasoner = StepReasoner(
        services.registry,
        services.client,
        max_retries=int(settings.get("max_retries", 3)),
        max_steps=int(settings.get("max_steps", 10)),
        log=console_sink,
    )
    services.client.log = console_sink

    try:
        result = await reasoner.run(question)
    except Exception as e:
        console.print(f"\n  [red]FAILED[/red] {escape(sanitize_error(str(e)))}")
        return EXIT_RUN_FAILED

    console.print()
    for i, step in enumerate(result.steps, 1):
        console.print(f"  [cyan]Step {i}[/cyan] {escape(step)}", highlight=False)
    console.print("\n  [bold]Final answer[/bold]\n")
    console.print(escape(result.final_answer), highlight=False)
    return EXIT_OK


def show_key(store: Optional[CredentialStore] = None) -> Optional[str]:
    config = get_effective_config()
    key = resolve_api_key(config, store or CredentialStore())
    return mask_secret(key) if key else None
