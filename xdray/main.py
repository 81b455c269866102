"""CLI entry point for xdray."""

from __future__ import annotations

import sys

import click
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.markup import escape

from xdray.commands.capture.cmd import proxy, replay
from xdray.commands.connect.cmd import connect
from xdray.commands.rules.cmd import rules
from xdray.config import Settings
from xdray.helpers.console import console, setup_logging

load_dotenv()


@click.group()
@click.version_option(version="0.1.0", prog_name="xdray")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Turn portal API traffic into reproducible PowerShell snippets."""
    setup_logging(verbose)
    try:
        ctx.obj = Settings.from_env()
    except ValidationError as e:
        console.print(f"[red]Invalid XDRAY_* environment settings: {escape(str(e))}[/red]")
        sys.exit(1)


cli.add_command(proxy)
cli.add_command(replay)
cli.add_command(rules)
cli.add_command(connect)


if __name__ == "__main__":
    cli()
