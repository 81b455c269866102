"""mitmproxy host for a capture session.

mitmproxy's ``request`` hook fires before a request is forwarded upstream and
plays the pre-send capture point; ``response`` and ``error`` fire once the
transaction is over and play the request-finished signal.
"""

from __future__ import annotations

import asyncio
import re
import signal
import threading
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

if TYPE_CHECKING:
    from mitmproxy.http import HTTPFlow, Request

from xdray.capture.session import CaptureSession
from xdray.formats.capture_record import FinishedRequest, Header


def _form_map(items: list[tuple[str, str]]) -> dict[str, list[str]]:
    form: dict[str, list[str]] = {}
    for name, value in items:
        form.setdefault(name, []).append(value)
    return form


def request_body_parts(
    req: Request,
) -> tuple[list[bytes] | None, dict[str, list[str]] | None]:
    """Split a request body into raw parts or form fields, like a browser does.

    Form-encoded bodies are reported as a field map; anything else with
    content as a single raw part.
    """
    content_type = str(req.headers.get("content-type", "") or "").lower()  # pyright: ignore[reportUnknownMemberType, reportUnknownArgumentType]

    if "application/x-www-form-urlencoded" in content_type:
        items = list(req.urlencoded_form.items(multi=True))  # pyright: ignore[reportUnknownMemberType, reportUnknownArgumentType]
        return None, _form_map(items)

    if "multipart/form-data" in content_type:
        items = [
            (k.decode("utf-8", errors="replace"), v.decode("utf-8", errors="replace"))
            for k, v in req.multipart_form.items(multi=True)  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
        ]
        return None, _form_map(items)

    try:
        content = req.get_content(strict=False)
    except ValueError:
        content = req.raw_content
    if content:
        return [content], None
    return None, None


def flow_to_event(flow: HTTPFlow) -> FinishedRequest:
    """Convert a completed mitmproxy HTTPFlow to a request-finished event."""
    req = flow.request
    pairs: list[tuple[str, str]] = list(req.headers.items(multi=True))  # pyright: ignore[reportUnknownMemberType, reportUnknownArgumentType]
    return FinishedRequest(
        url=req.pretty_url,
        method=req.method,
        headers=[Header(name=k, value=v) for k, v in pairs],
    )


class CaptureAddon:
    """mitmproxy addon feeding flows into a CaptureSession."""

    def __init__(self, session: CaptureSession) -> None:
        self.session = session

    async def running(self) -> None:
        self.session.start()

    async def done(self) -> None:
        await self.session.stop()

    def request(self, flow: HTTPFlow) -> None:
        if flow.websocket:
            return
        raw_parts, form_data = request_body_parts(flow.request)
        self.session.capture(
            flow.request.pretty_url, flow.request.method, raw_parts, form_data
        )

    async def response(self, flow: HTTPFlow) -> None:
        if flow.websocket:
            return
        await self.session.finish(flow_to_event(flow))

    async def error(self, flow: HTTPFlow) -> None:
        """Failed transactions finish too; their request is still worth scripting."""
        if flow.websocket or flow.response is not None:
            return
        await self.session.finish(flow_to_event(flow))


def prefix_to_host_regex(url_prefix: str) -> str:
    """Regex for mitmproxy's allow_hosts covering the host of *url_prefix*."""
    host = urlparse(url_prefix).hostname or url_prefix
    return re.escape(host)



def _load_dump_master() -> tuple[Any, Any]:
    """Import mitmproxy's Options and DumpMaster, with an install hint if missing."""
    try:
        from mitmproxy.options import Options
        from mitmproxy.tools.dump import DumpMaster
    except ImportError as e:
        raise ImportError(
            "mitmproxy is required for proxy capture.\n"
            "Install it with: pip install 'xdray[proxy]'"
        ) from e
    return Options, DumpMaster


def run_proxy(
    port: int,
    session: CaptureSession,
    allow_hosts: list[str] | None = None,
) -> float:
    """Run a MITM proxy feeding *session* until Ctrl+C.

    Only hosts matching *allow_hosts* (regexes) are intercepted; by default
    that is the host of the session's URL prefix. The proxy runs on its own
    event loop in a worker thread so the main thread can take SIGINT.

    Returns:
        Capture duration in seconds.
    """
    Options, DumpMaster = _load_dump_master()

    if allow_hosts is None:
        allow_hosts = [prefix_to_host_regex(session.correlator.url_prefix)]

    loop = asyncio.new_event_loop()
    options = Options(listen_port=port, mode=["regular"])
    if allow_hosts:
        options.update(allow_hosts=allow_hosts)
    master = DumpMaster(options, loop=loop, with_dumper=False)
    master.addons.add(CaptureAddon(session))

    worker = threading.Thread(
        target=loop.run_until_complete,
        args=(master.run(),),
        name="xdray-proxy",
        daemon=True,
    )
    started = time.monotonic()
    worker.start()
    previous_handler = signal.signal(
        signal.SIGINT, lambda *_: loop.call_soon_threadsafe(master.shutdown)  # pyright: ignore[reportUnknownLambdaType]
    )
    try:
        while worker.is_alive():
            worker.join(timeout=1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        loop.close()
    return time.monotonic() - started
