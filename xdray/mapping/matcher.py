"""Classify URL paths against the cmdlet rule table."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import re
from urllib.parse import urlparse

from xdray.formats.capture_record import CommandMappingRule


def template_to_regex(template_path: str) -> re.Pattern[str]:
    """Convert a path template like /api/devices/{id}/tags to a regex.

    Each ``{name}`` placeholder matches exactly one path segment. Matching is
    anchored and case-insensitive.
    """
    parts = re.split(r"\{[^}]+\}", template_path)
    placeholders = re.findall(r"\{[^}]+\}", template_path)

    regex = ""
    for i, part in enumerate(parts):
        regex += re.escape(part)
        if i < len(placeholders):
            regex += r"[^/]+"

    return re.compile(f"^{regex}$", re.IGNORECASE)


@dataclass(frozen=True)
class CompiledRule:
    rule: CommandMappingRule
    path: str
    regex: re.Pattern[str]

    def accepts(self, url_path: str) -> bool:
        return bool(self.regex.match(url_path)) or url_path.lower() == self.path.lower()


class PatternMatcher:
    """First-match-wins lookup over an ordered rule table.

    Rules are tried in table order and are not ranked by specificity, so
    more specific templates must come before more general ones.
    """

    def __init__(self, rules: Iterable[CommandMappingRule]) -> None:
        self._compiled = [_compile(rule) for rule in rules]

    def __len__(self) -> int:
        return len(self._compiled)

    @property
    def rules(self) -> list[CommandMappingRule]:
        return [c.rule for c in self._compiled]

    def match(self, url_path: str) -> CommandMappingRule | None:
        """Return the first rule accepting *url_path*, or None."""
        for compiled in self._compiled:
            if compiled.accepts(url_path):
                return compiled.rule
        return None

    def match_url(self, url: str) -> CommandMappingRule | None:
        """Like ``match`` but takes a full URL; query and fragment are ignored."""
        return self.match(urlparse(url).path)


def _compile(rule: CommandMappingRule) -> CompiledRule:
    path = urlparse(rule.uri_template).path
    return CompiledRule(rule=rule, path=path, regex=template_to_regex(path))
