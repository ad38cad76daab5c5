"""Tests for the expiry reaper loop."""

import asyncio
import threading
from datetime import timedelta

import pytest

from dispatch.order.engine import ClaimEngine
from dispatch.order.order import OrderStatus, utc_now
from dispatch.reaper import ExpiryReaper, get_reaper, reset_reaper, sweep_expired_claims


def _expired_claim():
    engine = ClaimEngine()
    order = engine.create_order(buyer_id="buyer-001", location="12 Baker Street", total=450.0)
    engine.claim_order(str(order.id), "pilot-a", now=utc_now() - timedelta(minutes=5))
    return order


class TestRunOnce:
    def test_releases_expired_claims(self, order_store, pilot_socket):
        order = _expired_claim()
        pilot_socket.reset()

        released = asyncio.run(ExpiryReaper(interval_seconds=30).run_once())

        assert [str(o.id) for o in released] == [str(order.id)]
        assert order_store.find(str(order.id)).status == OrderStatus.PENDING.value
        assert pilot_socket.events() == ["orderReleased"]

    def test_second_run_releases_nothing(self):
        _expired_claim()
        reaper = ExpiryReaper(interval_seconds=30)

        async def twice():
            return await reaper.run_once(), await reaper.run_once()

        first, second = asyncio.run(twice())
        assert len(first) == 1
        assert second == []

    def test_failing_sweep_is_logged_and_survived(self):
        calls = []

        def broken():
            calls.append(1)
            raise RuntimeError("database unreachable")

        reaper = ExpiryReaper(interval_seconds=30, sweep=broken)

        async def twice():
            return await reaper.run_once(), await reaper.run_once()

        assert asyncio.run(twice()) == (None, None)
        assert len(calls) == 2

    def test_propagate_reraises_sweep_failure(self):
        def broken():
            raise RuntimeError("database unreachable")

        with pytest.raises(RuntimeError):
            asyncio.run(ExpiryReaper(interval_seconds=30, sweep=broken).run_once(propagate=True))

    def test_overlapping_tick_is_skipped(self):
        started = threading.Event()
        release = threading.Event()

        def slow_sweep():
            started.set()
            release.wait(timeout=5)
            return []

        reaper = ExpiryReaper(interval_seconds=30, sweep=slow_sweep)

        async def overlap():
            first = asyncio.create_task(reaper.run_once())
            await asyncio.to_thread(started.wait, 5)
            skipped = await reaper.run_once()
            release.set()
            return await first, skipped

        assert asyncio.run(overlap()) == ([], None)

    def test_default_sweep_runs_in_its_own_domain_context(self):
        _expired_claim()
        assert len(sweep_expired_claims()) == 1


class TestLoop:
    def test_start_and_stop(self):
        ticks = []
        reaper = ExpiryReaper(interval_seconds=0.01, sweep=lambda: ticks.append(1) or [])

        async def lifecycle():
            reaper.start()
            assert reaper.running
            while len(ticks) < 2:
                await asyncio.sleep(0.01)
            await reaper.stop()
            return reaper.running

        assert asyncio.run(lifecycle()) is False
        assert len(ticks) >= 2

    def test_stop_without_start_is_harmless(self):
        asyncio.run(ExpiryReaper(interval_seconds=1).stop())


class TestSharedReaper:
    def test_one_reaper_per_process(self):
        assert get_reaper() is get_reaper()

    def test_reset_gives_a_fresh_reaper(self):
        first = get_reaper()
        reset_reaper()
        assert get_reaper() is not first
