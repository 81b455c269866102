"""CLI commands for capture: live MITM proxy and HAR replay."""

from __future__ import annotations

import asyncio
from pathlib import Path
import sys
from typing import TYPE_CHECKING, Any

import click

from xdray.commands.options import (
    load_rules_or_exit,
    prefix_option,
    rules_option,
    with_overrides,
)
from xdray.config import Settings
from xdray.helpers.console import console

if TYPE_CHECKING:
    from xdray.formats.capture_record import CapturedRequestRecord, CommandMappingRule


@click.command()
@click.option("-p", "--port", default=8080, help="Proxy listen port")
@click.option(
    "-o", "--output", default="XDRay-Script.ps1.txt", help="Script written when the proxy stops"
)
@click.option(
    "-d",
    "--domain",
    "domains",
    multiple=True,
    help="Only intercept these domains (regex). Can be repeated. Defaults to the prefix host.",
)
@rules_option
@prefix_option
@click.pass_obj
def proxy(
    settings: Settings,
    port: int,
    output: str,
    domains: tuple[str, ...],
    rules_path: Path | None,
    url_prefix: str | None,
) -> None:
    """Start a MITM proxy and turn portal API calls into PowerShell.

    Point the browser at the proxy, use the portal, then press Ctrl+C to
    write all snippets to a single script.
    """
    from xdray.capture.proxy import run_proxy
    from xdray.capture.session import CaptureSession
    from xdray.commands.capture.inspect import print_record
    from xdray.generate.script import write_script

    settings = with_overrides(settings, rules_path=rules_path, url_prefix=url_prefix)
    table_rules = load_rules_or_exit(settings.rules_path)
    session = CaptureSession(table_rules, settings, on_record=print_record)

    console.print(f"[bold]Starting MITM proxy on port {port}[/bold]")
    console.print(f"  Prefix:  {settings.url_prefix}")
    console.print(f"  Rules:   {len(table_rules)} from {settings.rules_path}")
    console.print(f"  Output:  {output}")
    click.echo("\n  Capturing... press Ctrl+C to stop.\n")

    try:
        duration = run_proxy(port, session, allow_hosts=list(domains) or None)
    except ImportError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    path = write_script(session.records, output)
    console.print()
    console.print(f"[green]Script written to {path}[/green]")
    console.print(f"  {len(session.records)} requests in {duration:.0f}s")


@click.command()
@click.argument("har_path", type=click.Path(exists=True, dir_okay=False))
@click.option("-o", "--output", default=None, help="Write the script here instead of stdout")
@rules_option
@prefix_option
@click.pass_obj
def replay(
    settings: Settings,
    har_path: str,
    output: str | None,
    rules_path: Path | None,
    url_prefix: str | None,
) -> None:
    """Replay a HAR recording exported from the browser's network panel."""
    from xdray.capture.har import HarError, load_har_entries
    from xdray.commands.capture.inspect import print_summary
    from xdray.generate.script import build_script, write_script

    settings = with_overrides(settings, rules_path=rules_path, url_prefix=url_prefix)
    table_rules = load_rules_or_exit(settings.rules_path)

    try:
        entries = load_har_entries(har_path)
    except HarError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    records = asyncio.run(_replay(entries, table_rules, settings))

    if output is None:
        click.echo(build_script(records), nl=False)
        return

    path = write_script(records, output)
    print_summary(records)
    console.print(f"[green]Script written to {path}[/green]")


async def _replay(
    entries: list[dict[str, Any]],
    table_rules: list[CommandMappingRule],
    settings: Settings,
) -> list[CapturedRequestRecord]:
    from xdray.capture.har import replay_entries
    from xdray.capture.session import CaptureSession

    async with CaptureSession(table_rules, settings) as session:
        return await replay_entries(entries, session)
