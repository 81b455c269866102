"""Replay HAR (HTTP Archive) recordings through a capture session.

A HAR exported from the browser's network panel carries both halves the
live hooks deliver separately: the request body (``postData``) and the
finished request's metadata. Each entry is fed as a pre-send capture
immediately followed by its request-finished event.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from xdray.capture.session import CaptureSession
from xdray.formats.capture_record import CapturedRequestRecord, FinishedRequest, Header

SESSION_COOKIES = ("sccauth", "XSRF-TOKEN")


class HarError(Exception):
    """Raised when a file is not a readable HAR recording."""


def load_har_entries(har_path: str | Path) -> list[dict[str, Any]]:
    """Read the entries of a HAR file, ordered by start time."""
    try:
        with open(har_path, encoding="utf-8-sig") as f:
            har = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise HarError(f"Cannot read HAR file {har_path}: {e}") from e

    if not isinstance(har, dict):
        raise HarError(f"{har_path} is not a HAR file")
    log = har.get("log", har)
    entries = log.get("entries", [])
    if not isinstance(entries, list):
        raise HarError(f"{har_path} has no entries array")
    return sorted(entries, key=lambda e: e.get("startedDateTime", ""))


def entry_body_parts(
    entry: dict[str, Any],
) -> tuple[list[bytes] | None, dict[str, list[str]] | None]:
    """Extract the pre-send body of a HAR entry as raw parts or form fields."""
    post_data = entry.get("request", {}).get("postData")
    if not post_data:
        return None, None

    text = post_data.get("text")
    if text:
        return [text.encode("utf-8")], None

    params = post_data.get("params")
    if params:
        form: dict[str, list[str]] = {}
        for p in params:
            form.setdefault(p.get("name", ""), []).append(p.get("value", ""))
        return None, form
    return None, None


def entry_to_event(entry: dict[str, Any]) -> FinishedRequest:
    req = entry.get("request", {})
    return FinishedRequest(
        url=req.get("url", ""),
        method=req.get("method", "GET"),
        headers=[Header(name=h["name"], value=h["value"]) for h in req.get("headers", [])],
    )


async def replay_entries(
    entries: list[dict[str, Any]], session: CaptureSession
) -> list[CapturedRequestRecord]:
    """Feed HAR entries through *session*; returns the records produced."""
    records: list[CapturedRequestRecord] = []
    for entry in entries:
        event = entry_to_event(entry)
        raw_parts, form_data = entry_body_parts(entry)
        session.capture(event.url, event.method, raw_parts, form_data)
        record = await session.finish(event)
        if record is not None:
            records.append(record)
    return records


def find_session_cookies(
    entries: list[dict[str, Any]], names: tuple[str, ...] = SESSION_COOKIES
) -> dict[str, str]:
    """Find the latest value of each named cookie sent in the recording."""
    found: dict[str, str] = {}
    for entry in entries:
        req = entry.get("request", {})
        for cookie in req.get("cookies", []):
            if cookie.get("name") in names:
                found[cookie["name"]] = cookie.get("value", "")
        for h in req.get("headers", []):
            if h.get("name", "").lower() != "cookie":
                continue
            for pair in h.get("value", "").split(";"):
                name, sep, value = pair.strip().partition("=")
                if sep and name in names:
                    found[name] = value
    return found
