"""Resolve cmdlet arguments from a composed request.

A rule's ``Parameters`` map argument names to source expressions:

- ``fixed:<value>``  the literal value
- ``header:<name>``  a request header, looked up case-insensitively
- ``a.b.c``          a dotted path into the composed request
                     (``method``, ``url``, ``headers``, ``body``)

A source that points at nothing yields no argument. When a rule has no
``Parameters`` entry, query-string parameters and top-level scalar fields of a
JSON object body are turned into arguments instead.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qsl, urlparse

from xdray.formats.capture_record import CommandMappingRule

FIXED_PREFIX = "fixed:"
HEADER_PREFIX = "header:"


def compose_request(
    method: str, url: str, headers: Mapping[str, str], body: Any
) -> dict[str, Any]:
    """Build the structure dotted-path sources are evaluated against."""
    return {
        "method": method,
        "url": url,
        "headers": {k.lower(): v for k, v in headers.items()},
        "body": body,
    }


def resolve_source(source: str, request: Mapping[str, Any]) -> Any:
    """Evaluate one source expression. Returns None when nothing is found."""
    if source.startswith(FIXED_PREFIX):
        return source[len(FIXED_PREFIX) :]

    if source.startswith(HEADER_PREFIX):
        headers = request.get("headers")
        if not headers:
            return None
        return headers.get(source[len(HEADER_PREFIX) :].lower())

    current: Any = request
    for part in source.split("."):
        current = _step(current, part)
        if current is None:
            return None
    return current


def _step(current: Any, part: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(part)
    if isinstance(current, list) and part.isdigit():
        index = int(part)
        return current[index] if index < len(current) else None
    return None


def argument_name(key: str) -> str:
    """``deviceId`` -> ``DeviceId``."""
    return key[:1].upper() + key[1:]


def _is_scalar(value: Any) -> bool:
    return value is not None and not isinstance(value, (dict, list))


def infer_arguments(request: Mapping[str, Any]) -> dict[str, Any]:
    """Guess arguments from the query string and a flat JSON body."""
    arguments: dict[str, Any] = {}

    query = urlparse(request.get("url") or "").query
    for key, value in parse_qsl(query, keep_blank_values=True):
        arguments[argument_name(key)] = value

    body = request.get("body")
    if isinstance(body, dict):
        for key, value in body.items():
            if _is_scalar(value):
                arguments[argument_name(key)] = value

    return arguments


def resolve_arguments(
    rule: CommandMappingRule, request: Mapping[str, Any]
) -> dict[str, Any]:
    """Resolve every argument of *rule*, dropping the ones with no value.

    Falls back to ``infer_arguments`` only when the rule has no
    ``Parameters`` at all; an empty mapping resolves to no arguments.
    """
    if rule.parameter_specs is None:
        return infer_arguments(request)

    arguments: dict[str, Any] = {}
    for name, source in rule.parameter_specs.items():
        value = resolve_source(source, request)
        if value is not None:
            arguments[name] = value
    return arguments
