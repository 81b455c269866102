"""Render captured requests as PowerShell snippets."""

from __future__ import annotations

import json
from typing import Any

from xdray.formats.capture_record import CapturedRequestRecord


_MAX_PLAIN_INTEGER = 1e21


def _whole_floats_to_int(value: Any) -> Any:
    # 1.0 is written as 1, like JSON.stringify; 1e21 and up keep exponent form.
    if isinstance(value, float) and value.is_integer() and abs(value) < _MAX_PLAIN_INTEGER:
        return int(value)
    if isinstance(value, dict):
        return {k: _whole_floats_to_int(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_whole_floats_to_int(v) for v in value]
    return value


def to_json(value: Any) -> str:
    return json.dumps(_whole_floats_to_int(value), indent=2, ensure_ascii=False)


def escape_quotes(text: str) -> str:
    # Only double quotes are escaped; backslashes pass through as-is.
    return text.replace('"', '`"')


def format_scalar(value: Any) -> str:
    """Format a JSON scalar the way it appears in JSON text (``true``, ``42``)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return json.dumps(_whole_floats_to_int(value))
    return str(value)


def escape_value(value: Any) -> str:
    """Prepare an argument value for a double-quoted PowerShell string."""
    if isinstance(value, str):
        return escape_quotes(value)
    if isinstance(value, (dict, list)):
        return escape_quotes(to_json(value))
    return format_scalar(value)


def is_truthy(value: Any) -> bool:
    """JavaScript truthiness: empty objects and arrays count as present."""
    if value is None or value is False:
        return False
    if isinstance(value, (dict, list)):
        return True
    if isinstance(value, (int, float)):
        return value != 0
    return bool(value)


def render_fallback(record: CapturedRequestRecord) -> str:
    code = f'Invoke-XdrRestMethod -Uri "{record.url}" -Method "{record.method}"'
    if is_truthy(record.body):
        code += f' -Body "{escape_quotes(to_json(record.body))}"'
    return code


def render_command(record: CapturedRequestRecord) -> str:
    code = record.command_name
    for name, value in (record.resolved_arguments or {}).items():
        if value is None:
            continue
        code += f' -{name} "{escape_value(value)}"'
    return code


def render(record: CapturedRequestRecord) -> str:
    """Render *record* as a single PowerShell command.

    Requests without a matching cmdlet fall back to ``Invoke-XdrRestMethod``
    with the raw URL, method and JSON body.
    """
    if record.is_fallback:
        return render_fallback(record)
    return render_command(record)
