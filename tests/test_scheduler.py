"""Tests for the polling scheduler and poll cycles."""

import asyncio

import pytest

from src.services.scheduler import PollCycle, PollingScheduler


class FakePoller:
    """Poller double returning a fixed event count, optionally failing or blocking."""

    def __init__(self, name, events=0, error=None, gate=None):
        self.name = name
        self.events = events
        self.error = error
        self.gate = gate
        self.calls = 0

    async def poll(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return self.events


class FakeChecker(FakePoller):
    async def check(self):
        return await self.poll()


class CountingCycle:
    def __init__(self, gate=None):
        self.runs = 0
        self.finished = 0
        self.gate = gate

    async def run(self):
        self.runs += 1
        if self.gate is not None:
            await self.gate.wait()
        self.finished += 1
        return {}


class TestPollCycle:
    """Tests for one concurrent poll cycle."""

    @pytest.mark.asyncio
    async def test_collects_counts_per_task(self):
        cycle = PollCycle(
            [FakePoller("sonarr", 2), FakePoller("radarr", 1)], FakeChecker("upcoming", 3)
        )

        assert await cycle.run() == {"sonarr": 2, "radarr": 1, "upcoming": 3}

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self):
        broken = FakePoller("sonarr", error=RuntimeError("boom"))
        healthy = FakePoller("qbittorrent", 4)
        checker = FakeChecker("upcoming", error=ValueError("bad calendar"))
        cycle = PollCycle([broken, healthy], checker)

        stats = await cycle.run()

        assert stats == {"sonarr": 0, "qbittorrent": 4, "upcoming": 0}
        assert healthy.calls == 1

    @pytest.mark.asyncio
    async def test_busy_task_is_skipped(self):
        gate = asyncio.Event()
        slow = FakePoller("jellyfin", 1, gate=gate)
        fast = FakePoller("sonarr", 1)
        cycle = PollCycle([slow, fast], FakeChecker("upcoming"))

        first = asyncio.create_task(cycle.run())
        await asyncio.sleep(0.01)
        second = await cycle.run()
        gate.set()
        first_stats = await first

        assert slow.calls == 1
        assert fast.calls == 2
        assert second["jellyfin"] == 0
        assert first_stats["jellyfin"] == 1

        # Released again once the previous run finished
        assert (await cycle.run())["jellyfin"] == 1


class TestPollingScheduler:
    """Tests for the single repeating timer."""

    @pytest.mark.asyncio
    async def test_start_ticks_immediately(self):
        cycle = CountingCycle()
        scheduler = PollingScheduler(cycle_factory=lambda: cycle)

        scheduler.start(60)
        await asyncio.sleep(0.01)

        assert scheduler.is_running
        assert scheduler.interval == 60
        assert cycle.runs == 1
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_ticks_repeat_on_interval(self):
        cycle = CountingCycle()
        scheduler = PollingScheduler(cycle_factory=lambda: cycle)

        scheduler.start(0.01)
        await asyncio.sleep(0.055)
        scheduler.stop()
        await scheduler.wait_idle()

        assert cycle.runs >= 3

    @pytest.mark.asyncio
    async def test_at_most_one_timer(self):
        scheduler = PollingScheduler(cycle_factory=CountingCycle)

        scheduler.start(30)
        timer = scheduler._timer
        scheduler.start(30)

        assert scheduler._timer is timer
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_new_interval_replaces_timer(self):
        created = []

        def factory():
            created.append(CountingCycle())
            return created[-1]

        scheduler = PollingScheduler(cycle_factory=factory)
        scheduler.start(30)
        old_timer = scheduler._timer

        scheduler.restart(10)
        await asyncio.sleep(0)

        assert scheduler.interval == 10
        assert scheduler._timer is not old_timer
        assert old_timer.cancelled() or old_timer.cancelling()
        # The cycle (and its in-flight guard) survives restarts
        assert len(created) == 1
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        scheduler = PollingScheduler(cycle_factory=CountingCycle)

        scheduler.stop()
        scheduler.start(5)
        scheduler.stop()
        scheduler.stop()

        assert not scheduler.is_running
        assert scheduler.interval is None

    @pytest.mark.asyncio
    async def test_stop_lets_running_cycle_finish(self):
        gate = asyncio.Event()
        cycle = CountingCycle(gate=gate)
        scheduler = PollingScheduler(cycle_factory=lambda: cycle)

        scheduler.start(60)
        await asyncio.sleep(0.01)
        scheduler.stop()
        gate.set()
        await scheduler.wait_idle()

        assert cycle.runs == 1
        assert cycle.finished == 1

    @pytest.mark.asyncio
    async def test_rejects_non_positive_interval(self):
        scheduler = PollingScheduler(cycle_factory=CountingCycle)

        with pytest.raises(ValueError):
            scheduler.start(0)
        assert not scheduler.is_running
