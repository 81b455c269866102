"""Tests for the pending-body capture store."""

from __future__ import annotations

import asyncio

import pytest

from xdray.capture.store import CaptureStore, decode_request_body
from tests.conftest import PORTAL, FakeClock

URL = f"{PORTAL}/mtp/devices/42"


class TestDecodeRequestBody:
    def test_raw_parts_are_concatenated(self) -> None:
        assert decode_request_body([b'{"id":', b"42}"]) == '{"id":42}'

    def test_invalid_utf8_is_replaced(self) -> None:
        assert decode_request_body([b"ok\xff"]) == "ok\ufffd"

    def test_empty_raw_parts_give_empty_string(self) -> None:
        assert decode_request_body([]) == ""

    def test_form_data_is_stringified(self) -> None:
        body = decode_request_body(form_data={"name": ["a", "b"], "x": ["1"]})
        assert body == '{"name":["a","b"],"x":["1"]}'

    def test_raw_wins_over_form(self) -> None:
        assert decode_request_body([b"raw"], {"a": ["1"]}) == "raw"

    def test_nothing_captured(self) -> None:
        assert decode_request_body() is None


class TestPutAndTake:
    @pytest.mark.asyncio
    async def test_take_returns_captured_body(self) -> None:
        store = CaptureStore()
        store.put(URL, '{"id":42}', "PUT")

        entry = store.take(URL)

        assert entry is not None
        assert entry.body == '{"id":42}'
        assert entry.method == "PUT"
        assert entry.retrieved is True
        store.close()

    def test_take_missing_url_returns_none(self) -> None:
        store = CaptureStore()
        assert store.take(URL) is None

    @pytest.mark.asyncio
    async def test_second_take_within_grace_returns_same_entry(self) -> None:
        store = CaptureStore(grace_seconds=5)
        store.put(URL, "body", "POST")

        first = store.take(URL)
        second = store.take(URL)

        assert first is second
        store.close()

    @pytest.mark.asyncio
    async def test_take_after_grace_window_returns_none(self) -> None:
        store = CaptureStore(grace_seconds=0.05)
        store.put(URL, "body", "POST")

        assert store.take(URL) is not None
        assert store.take(URL) is not None
        await asyncio.sleep(0.15)

        assert store.take(URL) is None
        assert URL not in store

    @pytest.mark.asyncio
    async def test_untaken_entry_is_not_expired_by_grace(self) -> None:
        store = CaptureStore(grace_seconds=0.01)
        store.put(URL, "body", "POST")
        await asyncio.sleep(0.05)

        assert URL in store

    @pytest.mark.asyncio
    async def test_last_write_wins(self) -> None:
        store = CaptureStore()
        store.put(URL, "first", "PUT")
        store.put(URL, "second", "PATCH")

        entry = store.take(URL)

        assert entry is not None
        assert entry.body == "second"
        assert entry.method == "PATCH"
        assert len(store) == 1
        store.close()

    @pytest.mark.asyncio
    async def test_grace_timer_removes_newer_capture_of_same_url(self) -> None:
        store = CaptureStore(grace_seconds=0.05)
        store.put(URL, "first", "PUT")
        store.take(URL)
        store.put(URL, "second", "PUT")

        await asyncio.sleep(0.15)

        assert store.take(URL) is None

    @pytest.mark.asyncio
    async def test_close_cancels_grace_timers(self) -> None:
        store = CaptureStore(grace_seconds=0.02)
        store.put(URL, "body", "POST")
        store.take(URL)

        store.close()
        await asyncio.sleep(0.08)

        assert URL in store


class TestSweep:
    def test_sweep_drops_entries_older_than_max_age(self) -> None:
        clock = FakeClock()
        store = CaptureStore(max_age_seconds=300, clock=clock)
        store.put(URL, "old", "PUT")
        clock.advance(200)
        store.put(f"{PORTAL}/fresh", "fresh", "PUT")
        clock.advance(101)

        removed = store.sweep()

        assert removed == 1
        assert URL not in store
        assert f"{PORTAL}/fresh" in store

    @pytest.mark.asyncio
    async def test_sweep_ignores_retrieval_state(self) -> None:
        clock = FakeClock()
        store = CaptureStore(grace_seconds=60, max_age_seconds=300, clock=clock)
        store.put(URL, "body", "PUT")
        store.take(URL)
        clock.advance(301)

        store.sweep()

        assert URL not in store
        store.close()

    def test_sweep_keeps_entries_at_exact_max_age(self) -> None:
        clock = FakeClock()
        store = CaptureStore(max_age_seconds=300, clock=clock)
        store.put(URL, "body", "PUT")
        clock.advance(300)

        assert store.sweep() == 0
        assert URL in store

    @pytest.mark.asyncio
    async def test_run_sweeper_sweeps_periodically(self) -> None:
        clock = FakeClock()
        store = CaptureStore(max_age_seconds=300, sweep_interval_seconds=0.01, clock=clock)
        store.put(URL, "body", "PUT")
        clock.advance(301)

        task = asyncio.create_task(store.run_sweeper())
        await asyncio.sleep(0.05)
        task.cancel()

        assert URL not in store
