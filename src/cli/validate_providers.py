#!/usr/bin/env python3
"""CLI for validating image generation provider credentials.

Makes one small generation request per configured provider and reports which ones
work. Exits with status 1 when no provider succeeds.

Usage:
    # Validate every provider
    python -m cli.validate_providers

    # Validate a subset, loading keys from a .env file
    python -m cli.validate_providers --provider OPENAI --provider BFL --env-file .env
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from rich.console import Console
from rich.table import Table

from models.image_generation import ValidationResult, ValidationSummary
from services.provider_registry import ProviderRegistry
from services.provider_validation import ALL_PROVIDERS, validate_providers
from utils.config import load_config, validate_config
from utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)


def print_result(result: ValidationResult) -> None:
    """Print one provider's outcome as soon as it is known."""
    if result.success:
        console.print(f"  [green]✓ {result.provider}[/green] [dim]({result.response_time_ms}ms)[/dim]")
    elif not result.configured:
        console.print(f"  [yellow]⚠ {result.provider} not configured[/yellow]")
    else:
        console.print(f"  [red]✗ {result.provider} failed:[/red] {result.error}")


def print_summary(summary: ValidationSummary) -> None:
    table = Table(title="Validation Summary")
    table.add_column("Provider", style="bold")
    table.add_column("Status")
    table.add_column("Time", justify="right")
    table.add_column("Details", style="dim")

    for result in summary.results:
        if result.success:
            status = "[green]working[/green]"
        elif not result.configured:
            status = "[yellow]not configured[/yellow]"
        else:
            status = "[red]failed[/red]"
        elapsed = f"{result.response_time_ms}ms" if result.response_time_ms is not None else "-"
        table.add_row(result.provider, status, elapsed, result.error or "")

    console.print()
    console.print(table)
    console.print(
        f"Total: {len(summary.results)}  Configured: {len(summary.configured)}  "
        f"[green]Working: {len(summary.successful)}[/green]  "
        f"[red]Failed: {len(summary.failed)}[/red]  "
        f"[yellow]Not configured: {len(summary.not_configured)}[/yellow]"
    )


async def run(provider_names: list[str], config: dict) -> ValidationSummary:
    async with ProviderRegistry.from_config(config) as registry:
        return await validate_providers(registry, provider_names, on_result=print_result)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Validate image generation providers with a test request"
    )
    parser.add_argument(
        "--provider",
        action="append",
        choices=ALL_PROVIDERS,
        type=str.upper,
        help="Provider to validate (repeatable, default: all)",
    )
    parser.add_argument("--env-file", help="Load API keys from this .env file first")
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
    args = parser.parse_args(argv)

    config = load_config(env_file=args.env_file)
    setup_logging(args.log_level or config["log_level"], json_output=config["log_json"])

    for error in validate_config(config):
        logger.warning("config_problem", detail=error)

    provider_names = args.provider or list(ALL_PROVIDERS)
    console.print("\n[bold blue]Image provider validation[/bold blue]")
    console.print(f"[dim]Testing {len(provider_names)} provider(s) with a simple generation request...[/dim]\n")

    summary = asyncio.run(run(provider_names, config))
    print_summary(summary)

    if not summary.ok:
        console.print("\n[bold red]No providers are working! Please check your API keys.[/bold red]")
        return 1

    console.print(f"\n[bold green]Validation complete! {len(summary.successful)} provider(s) working.[/bold green]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
