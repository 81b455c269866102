"""Load the static cmdlet rule table.

The table is an array of ``{"ApiUri": ..., "Cmdlet": ..., "Parameters": {...}}``
objects, stored as JSON (``.json``) or YAML (``.yaml``/``.yml``). Order is
significant: the matcher stops at the first rule that fits.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError
import yaml

from xdray.formats.capture_record import CommandMappingRule

_RULES_ADAPTER = TypeAdapter(list[CommandMappingRule])


class RuleTableError(Exception):
    """Raised when a rule table cannot be read or does not validate."""


def parse_rule_table(data: Any) -> list[CommandMappingRule]:
    """Validate already-decoded rule table data."""
    if not isinstance(data, list):
        raise RuleTableError(
            f"Rule table must be an array of rules, got {type(data).__name__}"
        )
    try:
        return _RULES_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise RuleTableError(f"Invalid rule table: {e}") from e


def load_rule_table(path: str | Path) -> list[CommandMappingRule]:
    """Read and validate a rule table file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise RuleTableError(f"Cannot read rule table {path}: {e}") from e

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise RuleTableError(f"Cannot parse rule table {path}: {e}") from e

    return parse_rule_table(data)
