"""Short-lived store for request bodies captured before send.

Bodies are keyed by URL only. A second capture of the same URL replaces the
first (last write wins), so two concurrent requests to the same URL cannot
be told apart: a completion will pick up whichever body was captured last.

Two timers bound the lifetime of an entry:

- the first ``take()`` schedules deletion of the URL key after a short grace
  window, so a duplicate read shortly afterwards still succeeds;
- ``run_sweeper()`` drops every entry older than the maximum age, whether
  it was ever read or not.

Timers run on the asyncio event loop; the store must only be touched from
the loop's thread.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
import itertools
import json
import logging
import time

from xdray.formats.capture_record import PendingBody

logger = logging.getLogger(__name__)

GRACE_SECONDS = 5.0
MAX_AGE_SECONDS = 5 * 60.0
SWEEP_INTERVAL_SECONDS = 60.0


def decode_request_body(
    raw_parts: Sequence[bytes] | None = None,
    form_data: Mapping[str, list[str]] | None = None,
) -> str | None:
    """Turn a pre-send body capture into text.

    Raw byte parts are decoded as UTF-8 and concatenated; otherwise a
    form-field map is JSON-stringified. Returns None when neither is present.
    """
    if raw_parts is not None:
        return "".join(part.decode("utf-8", errors="replace") for part in raw_parts)
    if form_data is not None:
        return json.dumps(dict(form_data), separators=(",", ":"), ensure_ascii=False)
    return None


class CaptureStore:
    def __init__(
        self,
        grace_seconds: float = GRACE_SECONDS,
        max_age_seconds: float = MAX_AGE_SECONDS,
        sweep_interval_seconds: float = SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.grace_seconds = grace_seconds
        self.max_age_seconds = max_age_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._entries: dict[str, PendingBody] = {}
        self._timers: dict[int, asyncio.TimerHandle] = {}
        self._timer_ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: object) -> bool:
        return url in self._entries

    def put(self, url: str, body: str | None, method: str) -> PendingBody:
        """Record the body for *url*, replacing any earlier capture."""
        entry = PendingBody(url=url, body=body, method=method, captured_at=self._clock())
        if url in self._entries:
            logger.debug("Overwriting pending body for %s", url)
        self._entries[url] = entry
        return entry

    def take(self, url: str) -> PendingBody | None:
        """Return the pending body for *url*, or None if nothing was captured.

        The first successful read schedules removal of the URL after the grace
        window; reads inside the window keep returning the same entry.
        """
        entry = self._entries.get(url)
        if entry is None:
            return None

        if not entry.retrieved:
            entry.retrieved = True
            self._schedule_delete(url)
        return entry

    def sweep(self) -> int:
        """Drop entries older than the maximum age. Returns how many went."""
        cutoff = self._clock() - self.max_age_seconds
        stale = [url for url, entry in self._entries.items() if entry.captured_at < cutoff]
        for url in stale:
            del self._entries[url]
        if stale:
            logger.debug("Swept %d stale pending bodies", len(stale))
        return len(stale)

    async def run_sweeper(self) -> None:
        """Sweep on a fixed interval until cancelled."""
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            self.sweep()

    def close(self) -> None:
        """Cancel outstanding grace-window timers."""
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def _schedule_delete(self, url: str) -> None:
        loop = asyncio.get_running_loop()
        timer_id = next(self._timer_ids)
        self._timers[timer_id] = loop.call_later(
            self.grace_seconds, self._expire, url, timer_id
        )

    def _expire(self, url: str, timer_id: int) -> None:
        self._timers.pop(timer_id, None)
        # Deletes whatever is stored under the URL now, even a newer capture.
        if self._entries.pop(url, None) is not None:
            logger.debug("Grace window elapsed for %s", url)
