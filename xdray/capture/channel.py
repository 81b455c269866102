"""Request/response channel for fetching pending bodies across tasks.

The capture side and the correlation side may run as separate tasks. The
correlator sends a ``BodyRequest`` carrying a correlation id and awaits the
matching ``BodyResponse``; the serving side answers from the CaptureStore.
A timeout or a failing responder yields an unsuccessful response, never an
exception.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
from typing import Protocol
import uuid

from xdray.capture.store import CaptureStore
from xdray.formats.capture_record import BodyRequest, BodyResponse

logger = logging.getLogger(__name__)

NOT_FOUND_ERROR = "No body found for this URL"

Responder = Callable[[BodyRequest], BodyResponse]


class BodySource(Protocol):
    async def fetch(self, url: str) -> BodyResponse: ...


def store_responder(store: CaptureStore) -> Responder:
    """Answer GET_REQUEST_BODY messages from *store*."""

    def respond(request: BodyRequest) -> BodyResponse:
        entry = store.take(request.url)
        if entry is None:
            return BodyResponse(id=request.id, success=False, error=NOT_FOUND_ERROR)
        return BodyResponse(
            id=request.id, success=True, body=entry.body, method=entry.method
        )

    return respond


def _new_request(url: str) -> BodyRequest:
    return BodyRequest(id=uuid.uuid4().hex, url=url)


class LocalBodySource:
    """Body source for when capture and correlation share one task."""

    def __init__(self, store: CaptureStore) -> None:
        self._respond = store_responder(store)

    async def fetch(self, url: str) -> BodyResponse:
        return self._respond(_new_request(url))


class BodyChannel:
    """Queue-backed channel with per-request futures."""

    def __init__(self, responder: Responder, timeout: float = 5.0) -> None:
        self._responder = responder
        self.timeout = timeout
        self._requests: asyncio.Queue[BodyRequest] = asyncio.Queue()
        self._pending: dict[str, asyncio.Future[BodyResponse]] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def fetch(self, url: str) -> BodyResponse:
        """Send a body request for *url* and wait for its reply."""
        request = _new_request(url)
        future: asyncio.Future[BodyResponse] = asyncio.get_running_loop().create_future()
        self._pending[request.id] = future
        await self._requests.put(request)
        try:
            return await asyncio.wait_for(future, self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for the body of %s", url)
            return BodyResponse(
                id=request.id, success=False, error="Timed out waiting for request body"
            )
        finally:
            self._pending.pop(request.id, None)

    async def serve(self) -> None:
        """Answer queued requests until cancelled."""
        while True:
            request = await self._requests.get()
            try:
                response = self._responder(request)
            except Exception as e:
                logger.exception("Body responder failed for %s", request.url)
                response = BodyResponse(id=request.id, success=False, error=str(e))
            self._deliver(response)
            self._requests.task_done()

    def _deliver(self, response: BodyResponse) -> None:
        future = self._pending.get(response.id)
        if future is None or future.done():
            logger.debug("Dropping late reply %s", response.id)
            return
        future.set_result(response)
