"""CLI command printing the XDRInternals connection setup."""

from __future__ import annotations

import sys

import click

from xdray.helpers.console import console


@click.command()
@click.option(
    "--har",
    "har_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Also show the sccauth / XSRF-TOKEN cookies found in this HAR recording",
)
def connect(har_path: str | None) -> None:
    """Print the snippet that connects XDRInternals with portal cookies."""
    from xdray.generate.script import connection_snippet

    click.echo(connection_snippet())

    if har_path is None:
        return

    from xdray.capture.har import SESSION_COOKIES, HarError, find_session_cookies, load_har_entries

    try:
        cookies = find_session_cookies(load_har_entries(har_path))
    except HarError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    console.print()
    for name in SESSION_COOKIES:
        value = cookies.get(name)
        if value is None:
            console.print(f"[yellow]{name} cookie not found.[/yellow]")
            continue
        console.print(f"[bold red]WARNING: sensitive {name} value below. Do not share it.[/bold red]")
        click.echo(f"{name}={value}")
