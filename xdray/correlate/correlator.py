"""Join request-finished events with their captured bodies and cmdlet rules."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
import json
import logging
from typing import Any

from xdray.capture.channel import NOT_FOUND_ERROR, BodySource
from xdray.config import DEFAULT_URL_PREFIX
from xdray.formats.capture_record import (
    FALLBACK_COMMAND,
    BodyResponse,
    CapturedRequestRecord,
    FinishedRequest,
)
from xdray.helpers.http import lower_header_map
from xdray.mapping.matcher import PatternMatcher
from xdray.mapping.resolver import compose_request, resolve_arguments

logger = logging.getLogger(__name__)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def parse_body(text: str | None) -> Any:
    """Parse a captured body as JSON, keeping the raw text if it isn't JSON.

    ``NaN`` and ``Infinity`` are rejected, and bodies nested too deeply to
    decode are kept as text as well.
    """
    if not text:
        return None
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return text


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Correlator:
    """Builds one CapturedRequestRecord per finished request.

    Bodies are looked up by URL, so two in-flight requests to the same URL
    both resolve to the most recently captured body.
    """

    def __init__(
        self,
        body_source: BodySource,
        matcher: PatternMatcher,
        url_prefix: str = DEFAULT_URL_PREFIX,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._body_source = body_source
        self._matcher = matcher
        self.url_prefix = url_prefix
        self._now = now

    def accepts(self, url: str) -> bool:
        return url.startswith(self.url_prefix)

    async def correlate(self, event: FinishedRequest) -> CapturedRequestRecord:
        headers = lower_header_map(event.headers)
        rule = self._matcher.match_url(event.url)

        response = await self._body_source.fetch(event.url)
        body = parse_body(response.body) if response.success else None
        body_error = _channel_error(response)
        if body_error:
            logger.warning("Could not fetch body for %s: %s", event.url, body_error)

        arguments: dict[str, Any] | None = None
        if rule is not None:
            arguments = resolve_arguments(
                rule, compose_request(event.method, event.url, headers, body)
            )
            logger.debug("%s %s -> %s", event.method, event.url, rule.command_name)
        else:
            logger.debug("%s %s -> no matching rule", event.method, event.url)

        return CapturedRequestRecord(
            method=event.method,
            url=event.url,
            headers=headers,
            command_name=rule.command_name if rule else FALLBACK_COMMAND,
            resolved_arguments=arguments,
            body=body,
            observed_at=self._now().isoformat(),
            body_error=body_error,
        )


def _channel_error(response: BodyResponse) -> str | None:
    # Not-found is an empty body, not a failure.
    if response.success or response.error == NOT_FOUND_ERROR:
        return None
    return response.error or "unknown error"
