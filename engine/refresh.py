import asyncio
from typing import Awaitable, Callable, Optional

from engine.events import DATA_CHANGED, Event, EventBus
from engine.log import get_logger
from engine.services import MONTH_VIEW, DashboardReport, DashboardService, Snapshot

log = get_logger(__name__)

SnapshotLoader = Callable[[], Awaitable[Snapshot]]


class RefreshCoordinator:
    """Re-runs the dashboard pipeline whenever data changes.

    Every refresh takes a new generation number. A result is kept only if no
    newer refresh started while it was being computed, so a slow recompute
    can never overwrite a fresher one.
    """

    def __init__(
        self,
        load_snapshot: SnapshotLoader,
        year: int,
        month: int,
        view: str = MONTH_VIEW,
        service: Optional[DashboardService] = None,
    ):
        self._load_snapshot = load_snapshot
        self.year = year
        self.month = month
        self.view = view
        self.service = service or DashboardService()
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()
        self.latest: Optional[DashboardReport] = None
        self.latest_generation = 0
        self.last_error: Optional[BaseException] = None

    @property
    def generation(self) -> int:
        return self._generation

    def begin(self) -> int:
        self._generation += 1
        return self._generation

    def complete(self, generation: int, report: DashboardReport) -> bool:
        if generation != self._generation:
            log.info("stale_refresh_discarded", generation=generation, current=self._generation)
            return False
        self.latest = report
        self.latest_generation = generation
        return True

    async def refresh(self) -> Optional[DashboardReport]:
        return await self._run(self.begin())

    async def _run(self, generation: int) -> Optional[DashboardReport]:
        snapshot = await self._load_snapshot()
        report = self.service.build_report(snapshot, self.year, self.month, self.view)
        return report if self.complete(generation, report) else None

    def on_data_changed(self, event: Event) -> asyncio.Task:
        generation = self.begin()
        task = asyncio.get_running_loop().create_task(self._run(generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda t: self._report_failure(t, generation))
        return task

    def _report_failure(self, task: asyncio.Task, generation: int) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        self.last_error = exc
        log.error("refresh_failed", generation=generation, exc_info=exc)

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(DATA_CHANGED, self.on_data_changed)

    def detach(self, bus: EventBus) -> None:
        bus.unsubscribe(DATA_CHANGED, self.on_data_changed)

    async def wait_idle(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks))
