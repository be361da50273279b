"""CLI main entry point."""

from __future__ import annotations

import json
import sys
from dataclasses import asdict

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import HarnessConfig, load_config
from .errors import ConfigError
from .health import AtcPoller
from .prerequisites import BrowserDetector, FlyDetector
from .shared.logging import configure_logging

console = Console()


@click.group()
@click.option("-c", "--config", "config_path", type=click.Path(), help="Config file path")
@click.option("-v", "--verbose", count=True, help="Increase verbosity")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.version_option(__version__, prog_name="wats")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: int, json_output: bool) -> None:
    """Web acceptance tests for the CI dashboard."""
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(e.message) from e

    level = {0: config.log_level, 1: "info"}.get(verbose, "debug")
    configure_logging(level)

    ctx.obj["config"] = config
    ctx.obj["json_output"] = json_output


@cli.command()
@click.option("--attempts", default=1, type=int, help="Readiness attempts before giving up")
@click.pass_context
def check(ctx: click.Context, attempts: int) -> None:
    """Check fly, the browser and the target server are ready."""
    config: HarnessConfig = ctx.obj["config"]

    fly = FlyDetector(config.fly_binary).detect()
    browser = BrowserDetector().detect()
    server = AtcPoller(max_attempts=attempts, interval_seconds=2.0).wait_for_ready_sync(
        config.atc_url, cli_version=fly.version
    )

    ok = fly.available and browser.available and server.healthy

    if ctx.obj["json_output"]:
        report = {
            "ok": ok,
            "fly": asdict(fly),
            "browser": asdict(browser),
            "server": {"url": config.atc_url, **asdict(server)},
            "version_mismatch": server.version_mismatch,
        }
        click.echo(json.dumps(report, indent=2))
    else:
        if fly.available:
            console.print(f"[green]✓[/green] fly {fly.version or '(unknown version)'} at {fly.path}")
        else:
            console.print(f"[red]✗[/red] fly: {fly.error}")

        if browser.available:
            console.print(f"[green]✓[/green] chromium at {browser.executable}")
        else:
            console.print(f"[red]✗[/red] chromium: {browser.error}")

        if server.healthy:
            console.print(f"[green]✓[/green] {config.atc_url} (version {server.version})")
        else:
            console.print(f"[red]✗[/red] {server.error}")

        if server.version_mismatch:
            console.print(
                f"[yellow]⚠[/yellow] fly {fly.version} does not match server {server.version}; "
                f"run: fly -t <target> sync"
            )

    if not ok:
        sys.exit(1)


@cli.group()
def config() -> None:
    """Harness configuration."""


@config.command("show")
@click.option("--reveal", is_flag=True, help="Show passwords")
@click.pass_context
def config_show(ctx: click.Context, reveal: bool) -> None:
    """Show the effective configuration and where each value came from."""
    harness_config: HarnessConfig = ctx.obj["config"]
    values = harness_config.values(reveal_secrets=reveal)

    if ctx.obj["json_output"]:
        sources = {key: harness_config.get_source(key) for key in values}
        click.echo(json.dumps({"values": values, "sources": sources}, indent=2))
        return

    table = Table(title="wats configuration")
    table.add_column("Key")
    table.add_column("Value")
    table.add_column("Source", style="dim")
    for key, value in values.items():
        table.add_row(key, str(value), harness_config.get_source(key))
    console.print(table)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
