"""Reaper scheduling and failure isolation."""

from __future__ import annotations

import asyncio

from batepapo.errors import StoreError
from batepapo.models import LEFT_TEXT
from batepapo.presence import PresenceTracker
from batepapo.reaper import REAP_INTERVAL_SECONDS, STALE_THRESHOLD_MS, Reaper


class TestReaperConstants:

    def test_reference_deployment_values(self):
        assert REAP_INTERVAL_SECONDS == 15
        assert STALE_THRESHOLD_MS == 10_000


class TestRunOnce:

    def test_sweeps_with_threshold_and_clock(self, store, clock):
        store.participants["Dave"] = {"name": "Dave", "lastStatus": clock.now - 11000}
        store.participants["Erin"] = {"name": "Erin", "lastStatus": clock.now - 5000}

        async def scenario():
            reaper = Reaper(PresenceTracker(store, clock), clock=clock)
            return await reaper.run_once()

        report = asyncio.run(scenario())

        assert report.removed == ["Dave"]
        assert set(store.participants) == {"Erin"}
        assert [m["from"] for m in store.status_messages(LEFT_TEXT)] == ["Dave"]

    def test_store_failure_is_swallowed(self, store, clock):
        store.fail_on.add("find_stale_participants")

        async def scenario():
            reaper = Reaper(PresenceTracker(store, clock), clock=clock)
            return await reaper.run_once()

        assert asyncio.run(scenario()) is None

    def test_unit_failures_reported(self, store, clock):
        store.participants["A"] = {"name": "A", "lastStatus": clock.now - 20000}
        store.participants["B"] = {"name": "B", "lastStatus": clock.now - 20000}
        store.fail_delete_for.add("A")

        async def scenario():
            reaper = Reaper(PresenceTracker(store, clock), clock=clock)
            return await reaper.run_once()

        report = asyncio.run(scenario())
        assert report.failed == ["A"]
        assert report.removed == ["B"]

    def test_concurrent_calls_do_not_overlap(self, store, clock):
        active = 0
        peak = 0
        original = store.find_stale_participants

        async def slow_scan(cutoff):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return await original(cutoff)

        store.find_stale_participants = slow_scan

        async def scenario():
            reaper = Reaper(PresenceTracker(store, clock), clock=clock)
            await asyncio.gather(reaper.run_once(), reaper.run_once(), reaper.run_once())

        asyncio.run(scenario())
        assert peak == 1


class TestLifecycle:

    def test_background_loop_reaps_and_survives_failures(self, store, clock):
        store.participants["Dave"] = {"name": "Dave", "lastStatus": clock.now - 11000}
        calls = 0
        original = store.find_stale_participants

        async def flaky_scan(cutoff):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise StoreError("store unavailable")
            return await original(cutoff)

        store.find_stale_participants = flaky_scan

        async def scenario():
            reaper = Reaper(PresenceTracker(store, clock), interval_s=0.01, clock=clock)
            await reaper.start()
            assert reaper.running
            for _ in range(100):
                if "Dave" not in store.participants:
                    break
                await asyncio.sleep(0.01)
            await reaper.stop()
            return reaper.running

        assert asyncio.run(scenario()) is False
        assert calls >= 2
        assert "Dave" not in store.participants

    def test_stop_without_start(self, store, clock):
        async def scenario():
            await Reaper(PresenceTracker(store, clock)).stop()

        asyncio.run(scenario())
