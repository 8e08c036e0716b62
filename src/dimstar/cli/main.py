"""DimStar CLI - iterative multi-agent refinement from the terminal."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__)
def dimstar_cli() -> None:
    """DimStar - multi-agent iterative refinement."""


@dimstar_cli.command()
@click.argument("task")
@click.option("--threshold", "-t", type=click.IntRange(min=1), default=None, help="Call-budget threshold (default 50)")
@click.option("--dry-run", is_flag=True, help="Use scripted responses (no API calls)")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="Config YAML")
@click.option("--calls-per-minute", type=click.IntRange(min=1), help="Rate limit override")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write a Markdown report")
@click.option("--json", "json_output", type=click.Path(dir_okay=False), help="Write the result as JSON")
def run(
    task: str,
    threshold: int | None,
    dry_run: bool,
    config_path: str | None,
    calls_per_minute: int | None,
    output: str | None,
    json_output: str | None,
) -> None:
    """Refine TASK over rounds until quality converges."""
    from ..core.orchestrator import run_task

    exit_code = asyncio.run(
        run_task(
            task=task,
            threshold=threshold,
            dry_run=dry_run,
            config_path=Path(config_path) if config_path else None,
            calls_per_minute=calls_per_minute,
            output=Path(output) if output else None,
            json_output=Path(json_output) if json_output else None,
        )
    )
    sys.exit(exit_code)


@dimstar_cli.command()
@click.argument("question")
@click.option("--dry-run", is_flag=True, help="Use scripted responses (no API calls)")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="Config YAML")
@click.option("--calls-per-minute", type=click.IntRange(min=1), help="Rate limit override")
def reason(question: str, dry_run: bool, config_path: str | None, calls_per_minute: int | None) -> None:
    """Answer QUESTION with step-by-step, self-evaluated reasoning."""
    from ..core.orchestrator import run_reasoning

    exit_code = asyncio.run(
        run_reasoning(
            question=question,
            dry_run=dry_run,
            config_path=Path(config_path) if config_path else None,
            calls_per_minute=calls_per_minute,
        )
    )
    sys.exit(exit_code)


@dimstar_cli.group()
def key() -> None:
    """Manage the inference API key."""


@key.command(name="set")
@click.argument("api_key")
def set_key(api_key: str) -> None:
    """Store API_KEY for future runs."""
    from ..core.credentials import CredentialStore

    path = CredentialStore().set(api_key.strip())
    click.echo(f"API key saved to {path}")


@key.command(name="show")
def show_key() -> None:
    """Show the active API key (masked)."""
    from ..core.orchestrator import EXIT_CONFIG_ERROR
    from ..core.orchestrator import show_key as masked_key

    masked = masked_key()
    if not masked:
        click.echo("No API key configured.", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
    click.echo(masked)


@dimstar_cli.command()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="Config YAML")
def models(config_path: str | None) -> None:
    """List the model catalog."""
    from ..core.config import get_effective_config
    from ..core.registry import ModelRegistry

    config = get_effective_config(Path(config_path) if config_path else None)
    for model in ModelRegistry.from_config(config).models:
        tags = ", ".join(sorted(model.tags))
        thinking = " (thinking)" if model.thinking else ""
        click.echo(f"{model.id}  {model.name}  [{tags}]{thinking}")


def main() -> None:
    dimstar_cli()


if __name__ == "__main__":
    main()
