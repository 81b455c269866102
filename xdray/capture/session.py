"""A capture run: store, body channel and correlator wired together."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
import logging

from xdray.capture.channel import BodyChannel, store_responder
from xdray.capture.store import CaptureStore, decode_request_body
from xdray.config import Settings
from xdray.correlate.correlator import Correlator
from xdray.formats.capture_record import (
    CapturedRequestRecord,
    CommandMappingRule,
    FinishedRequest,
)
from xdray.mapping.matcher import PatternMatcher

logger = logging.getLogger(__name__)

RecordCallback = Callable[[CapturedRequestRecord], None]


class CaptureSession:
    """Owns the state of one capture run and exposes the two host hooks.

    ``capture()`` is the pre-send hook and ``finish()`` the request-finished
    hook. ``start()`` must be called from inside the event loop before the
    first ``finish()``; it launches the body channel and the store sweeper.
    """

    def __init__(
        self,
        rules: Sequence[CommandMappingRule],
        settings: Settings | None = None,
        on_record: RecordCallback | None = None,
    ) -> None:
        settings = settings or Settings()
        self.store = CaptureStore(
            grace_seconds=settings.grace_seconds,
            max_age_seconds=settings.max_age_seconds,
            sweep_interval_seconds=settings.sweep_interval_seconds,
        )
        self.matcher = PatternMatcher(rules)
        self.channel = BodyChannel(
            store_responder(self.store), timeout=settings.channel_timeout_seconds
        )
        self.correlator = Correlator(self.channel, self.matcher, settings.url_prefix)
        self.records: list[CapturedRequestRecord] = []
        self._on_record = on_record
        self._tasks: list[asyncio.Task[None]] = []

    async def __aenter__(self) -> CaptureSession:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self.channel.serve()),
            asyncio.create_task(self.store.run_sweeper()),
        ]

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self.store.close()

    def capture(
        self,
        url: str,
        method: str,
        raw_parts: Sequence[bytes] | None = None,
        form_data: Mapping[str, list[str]] | None = None,
    ) -> bool:
        """Record an outgoing request body. Returns False for ignored URLs."""
        if not self.correlator.accepts(url):
            return False
        body = decode_request_body(raw_parts, form_data)
        self.store.put(url, body, method)
        logger.debug("Captured %s %s (%d chars)", method, url, len(body or ""))
        return True

    async def finish(self, event: FinishedRequest) -> CapturedRequestRecord | None:
        """Correlate a finished request. Returns None for ignored URLs."""
        if not self.correlator.accepts(event.url):
            return None
        record = await self.correlator.correlate(event)
        self.records.append(record)
        if self._on_record is not None:
            self._on_record(record)
        return record

    def clear(self) -> None:
        self.records.clear()
