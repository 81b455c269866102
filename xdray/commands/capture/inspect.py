"""Console rendering of captured requests."""

from __future__ import annotations

import json

from rich.table import Table

from xdray.formats.capture_record import CapturedRequestRecord
from xdray.generate.powershell import render
from xdray.helpers.console import console

_METHOD_STYLES = {
    "GET": "green",
    "POST": "yellow",
    "PUT": "blue",
    "PATCH": "blue",
    "DELETE": "red",
}


def short_url(url: str) -> str:
    """The part of the URL after ``apiproxy``, or the whole URL."""
    _, sep, tail = url.partition("apiproxy")
    return tail if sep else url


def print_record(record: CapturedRequestRecord) -> None:
    """Print a summary line, the snippet and the raw request details."""
    style = _METHOD_STYLES.get(record.method.upper(), "white")
    console.print(
        f"[{style}]{record.method}[/{style}] [cyan]{record.command_name}[/cyan] "
        f"{short_url(record.url)}",
        highlight=False,
    )
    console.print(render(record), style="bright_blue", highlight=False, markup=False)
    console.print(f"# Full URL: {record.url}", style="dim", highlight=False, markup=False)
    if record.body:
        console.print(
            f"# Request Payload: {json.dumps(record.body, indent=2, ensure_ascii=False)}",
            style="dim",
            highlight=False,
            markup=False,
        )
    if record.body_error:
        console.print(f"[red]  Body unavailable: {record.body_error}[/red]")
    console.print()


def print_summary(records: list[CapturedRequestRecord]) -> None:
    """Print a table of all captured requests."""
    table = Table(title=f"Captured requests ({len(records)})")
    table.add_column("Method")
    table.add_column("Cmdlet", style="cyan")
    table.add_column("URL", max_width=70, overflow="ellipsis", no_wrap=True)
    table.add_column("Args", justify="right")
    for record in records:
        args = "-" if record.resolved_arguments is None else str(len(record.resolved_arguments))
        table.add_row(
            record.method,
            record.command_name,
            short_url(record.url),
            args,
        )
    console.print(table)
