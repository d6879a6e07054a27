"""Polling scheduler: one repeating timer driving concurrent poll cycles."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from src.services.notification_service import get_notification_service
from src.services.pollers import ServicePoller, default_pollers
from src.services.upcoming import UpcomingReleaseChecker

logger = logging.getLogger(__name__)


class PollCycle:
    """Runs every poller and the upcoming checker concurrently.

    Each task has its own failure boundary, so one failing service neither
    cancels nor delays the others and nothing escapes the join. A task whose
    previous run is still in flight is skipped, so two runs for the same
    service never overlap.
    """

    def __init__(
        self,
        pollers: Sequence[ServicePoller] | None = None,
        checker: UpcomingReleaseChecker | None = None,
    ) -> None:
        if pollers is None or checker is None:
            notification_service = get_notification_service()
            pollers = pollers if pollers is not None else default_pollers(notification_service)
            checker = checker or UpcomingReleaseChecker(notification_service)
        self.tasks: list[tuple[str, Callable[[], Awaitable[int]]]] = [
            (p.name, p.poll) for p in pollers
        ]
        self.tasks.append((checker.name, checker.check))
        self._in_flight: set[str] = set()

    async def _run_task(self, name: str, task: Callable[[], Awaitable[int]]) -> int:
        if name in self._in_flight:
            logger.warning(f"Previous {name} poll still running, skipping this tick")
            return 0
        self._in_flight.add(name)
        try:
            return await task()
        except Exception as e:
            logger.error(f"Poll task {name} failed: {e}", exc_info=True)
            return 0
        finally:
            self._in_flight.discard(name)

    async def run(self) -> dict[str, int]:
        """Run one cycle. Returns events emitted per task."""
        results = await asyncio.gather(
            *(self._run_task(name, task) for name, task in self.tasks),
            return_exceptions=True,
        )
        stats = {}
        for (name, _), result in zip(self.tasks, results):
            if isinstance(result, BaseException):
                logger.error(f"Poll task {name} raised past its boundary: {result!r}")
                result = 0
            stats[name] = result
        logger.debug(f"Poll cycle complete: {stats}")
        return stats


class PollingScheduler:
    """Single repeating timer for poll cycles.

    ``start`` ticks immediately and then every ``interval`` seconds. At most
    one timer is alive at any time. ``stop`` only affects future ticks; cycles
    already started run to completion.
    """

    def __init__(self, cycle_factory: Callable[[], PollCycle] = PollCycle) -> None:
        self.cycle_factory = cycle_factory
        self._cycle: PollCycle | None = None
        self._timer: asyncio.Task | None = None
        self._interval: float | None = None
        self._running_cycles: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._timer is not None

    @property
    def interval(self) -> float | None:
        return self._interval

    def start(self, interval: float) -> None:
        """Start ticking. A no-op when already running with the same interval."""
        if interval <= 0:
            raise ValueError("Polling interval must be positive")
        if self._timer is not None:
            if self._interval != interval:
                self.restart(interval)
            return

        if self._cycle is None:
            self._cycle = self.cycle_factory()
        logger.info(f"Polling started with interval {interval}s")
        self._interval = interval
        self._timer = asyncio.get_running_loop().create_task(self._tick_forever(interval))

    def restart(self, interval: float) -> None:
        self.stop()
        self.start(interval)

    def stop(self) -> None:
        """Cancel the timer. Safe to call when not running."""
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        self._interval = None
        logger.info("Polling stopped")

    async def _tick_forever(self, interval: float) -> None:
        while True:
            self._spawn_cycle()
            await asyncio.sleep(interval)

    def _spawn_cycle(self) -> None:
        task = asyncio.get_running_loop().create_task(self._cycle.run())
        self._running_cycles.add(task)
        task.add_done_callback(self._running_cycles.discard)

    async def wait_idle(self) -> None:
        """Wait for cycles that were already started to finish."""
        if self._running_cycles:
            await asyncio.gather(*self._running_cycles, return_exceptions=True)


scheduler = PollingScheduler()
