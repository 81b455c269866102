"""HTTP header utilities."""

from __future__ import annotations

from xdray.formats.capture_record import Header


def lower_header_map(headers: list[Header]) -> dict[str, str]:
    """Flatten headers to a dict keyed by lower-cased name (last one wins)."""
    return {h.name.lower(): h.value for h in headers}
