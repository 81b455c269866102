"""CLI commands for the cmdlet rule table: list rules, classify URLs."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
import sys

import click
from rich.table import Table

from xdray.commands.options import load_rules_or_exit, rules_option, with_overrides
from xdray.config import Settings
from xdray.formats.capture_record import CapturedRequestRecord, CommandMappingRule
from xdray.helpers.console import console


@click.group()
def rules() -> None:
    """Inspect the cmdlet rule table."""


@rules.command("list")
@rules_option
@click.pass_obj
def list_rules(settings: Settings, rules_path: Path | None) -> None:
    """List the rules in match order."""
    settings = with_overrides(settings, rules_path=rules_path)
    table_rules = load_rules_or_exit(settings.rules_path)

    table = Table(title=f"Rules ({settings.rules_path.name})")
    table.add_column("#", justify="right")
    table.add_column("Cmdlet", style="cyan")
    table.add_column("API URI")
    table.add_column("Parameters")
    for i, rule in enumerate(table_rules, 1):
        if rule.parameter_specs is None:
            params = "[dim](inferred)[/dim]"
        else:
            params = ", ".join(f"{k}={v}" for k, v in rule.parameter_specs.items())
        table.add_row(str(i), rule.command_name, rule.uri_template, params)
    console.print(table)


@rules.command()
@click.argument("url")
@click.option("-X", "--method", default="GET", help="HTTP method of the request")
@click.option("-d", "--data", "body", default=None, help="Request body (JSON or raw text)")
@click.option(
    "-H", "--header", "headers", multiple=True, help="Request header 'Name: value'. Can be repeated."
)
@rules_option
@click.pass_obj
def match(
    settings: Settings,
    url: str,
    method: str,
    body: str | None,
    headers: tuple[str, ...],
    rules_path: Path | None,
) -> None:
    """Show the cmdlet and snippet a single request maps to."""
    from xdray.generate.powershell import render

    settings = with_overrides(settings, rules_path=rules_path)
    table_rules = load_rules_or_exit(settings.rules_path)

    header_pairs: list[tuple[str, str]] = []
    for raw in headers:
        name, sep, value = raw.partition(":")
        if not sep:
            console.print(f"[red]Invalid header format: {raw} (expected 'Name: value')[/red]")
            sys.exit(1)
        header_pairs.append((name.strip(), value.strip()))

    record = asyncio.run(
        classify_request(table_rules, url, method.upper(), body, header_pairs)
    )

    if record.is_fallback:
        console.print("[yellow]No matching rule; using the generic fallback[/yellow]")
    else:
        console.print(f"[bold]Cmdlet:[/bold] {record.command_name}")
        console.print_json(json.dumps(record.resolved_arguments, default=str))
    click.echo(render(record))


async def classify_request(
    table_rules: list[CommandMappingRule],
    url: str,
    method: str,
    body: str | None,
    headers: list[tuple[str, str]],
) -> CapturedRequestRecord:
    """Run one request through a throwaway store and correlator."""
    from xdray.capture.channel import LocalBodySource
    from xdray.capture.store import CaptureStore
    from xdray.correlate.correlator import Correlator
    from xdray.formats.capture_record import FinishedRequest, Header
    from xdray.mapping.matcher import PatternMatcher

    store = CaptureStore()
    try:
        if body is not None:
            store.put(url, body, method)
        correlator = Correlator(LocalBodySource(store), PatternMatcher(table_rules), url_prefix="")
        event = FinishedRequest(
            url=url,
            method=method,
            headers=[Header(name=n, value=v) for n, v in headers],
        )
        return await correlator.correlate(event)
    finally:
        store.close()
