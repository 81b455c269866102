"""Options and helpers shared by the CLI commands."""

from __future__ import annotations

from pathlib import Path
import sys
from typing import Any

import click

from xdray.config import Settings
from xdray.formats.capture_record import CommandMappingRule
from xdray.helpers.console import console

rules_option = click.option(
    "--rules",
    "rules_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Rule table (.json/.yaml); defaults to $XDRAY_RULES or the bundled table",
)

prefix_option = click.option(
    "--prefix",
    "url_prefix",
    default=None,
    help="Only process URLs starting with this prefix (default: $XDRAY_URL_PREFIX)",
)


def load_rules_or_exit(path: Path) -> list[CommandMappingRule]:
    """Load the rule table, exiting with an error message on failure."""
    from xdray.mapping.rules import RuleTableError, load_rule_table

    try:
        return load_rule_table(path)
    except RuleTableError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


def with_overrides(settings: Settings, **overrides: Any) -> Settings:
    """Apply CLI options that were actually given on top of *settings*."""
    update = {k: v for k, v in overrides.items() if v is not None}
    return settings.model_copy(update=update)
