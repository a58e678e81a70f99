"""Auto-refresh scheduling for the dashboard session."""
import asyncio
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from smart_city_dashboard.logging_config import get_logger
from smart_city_dashboard.models import DashboardSnapshot, SessionState


class RefreshScheduler:
    """
    Drives refresh cycles for the city the user last searched.

    Cycles never overlap: they are serialized through a lock, and a timer
    tick that fires while a cycle is in flight is skipped. Each cycle keeps
    the generation token it started with; a new search bumps the generation
    and turning auto-refresh off bumps the timer epoch, so results of
    superseded cycles are discarded instead of overwriting the session.
    """

    JOB_ID = "dashboard_refresh"

    def __init__(
        self,
        service,
        interval_seconds: int = 60,
        default_city: str = "Delhi",
        auto_refresh: bool = True,
        on_snapshot: Optional[Callable[[DashboardSnapshot], None]] = None,
        scheduler: Optional[AsyncIOScheduler] = None
    ):
        """
        Initialize scheduler.

        Args:
            service: Object exposing ``load_city`` (DashboardService)
            interval_seconds: Auto-refresh interval
            default_city: City refreshed before any search succeeded
            auto_refresh: Whether the timer runs after a search
            on_snapshot: Callback receiving every accepted snapshot
            scheduler: APScheduler instance (created when omitted)
        """
        self.service = service
        self.interval_seconds = interval_seconds
        self.auto_refresh = auto_refresh
        self.on_snapshot = on_snapshot
        self.scheduler = scheduler or AsyncIOScheduler()
        self.logger = get_logger("ingestion.scheduler")

        self.state: Optional[SessionState] = None
        self.latest: Optional[DashboardSnapshot] = None
        self._requested_city = default_city
        self._generation = 0
        self._timer_epoch = 0
        self._cycle_lock = asyncio.Lock()

    @property
    def current_city(self) -> str:
        """Last known good city, else the last requested one."""
        return self.state.city if self.state is not None else self._requested_city

    def start(self):
        """Start the scheduler."""
        if not self.scheduler.running:
            self.scheduler.start()
            self.logger.info("Refresh scheduler started")

    async def stop(self):
        """Stop the scheduler and wait until it has shut down."""
        self._cancel_timer()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            # AsyncIOScheduler may defer the shutdown to the event loop
            while self.scheduler.running:
                await asyncio.sleep(0)
            self.logger.info("Refresh scheduler stopped")

    async def search(self, city: str) -> Optional[DashboardSnapshot]:
        """
        Load a newly searched city and restart the refresh timer.

        Any cycle still in flight for a previous search is invalidated.

        Args:
            city: City name entered by the user

        Returns:
            The accepted snapshot, or None if a newer search superseded it
        """
        self._generation += 1
        self._requested_city = city
        self._cancel_timer()

        snapshot = await self._run_cycle(city, self._generation, None)

        if self.auto_refresh and snapshot is not None:
            self._schedule_timer()
        return snapshot

    async def set_auto_refresh(self, enabled: bool) -> Optional[DashboardSnapshot]:
        """
        Toggle auto-refresh.

        Turning it off cancels the timer and invalidates an in-flight timer
        cycle; turning it on refreshes the current city right away and
        restarts the timer.

        Args:
            enabled: New toggle state

        Returns:
            Snapshot of the immediate refresh when enabling, else None
        """
        self.auto_refresh = enabled
        if not enabled:
            self._cancel_timer()
            self.logger.info("Auto-refresh disabled")
            return None

        self._schedule_timer()
        self.logger.info(f"Auto-refresh enabled ({self.interval_seconds}s interval)")
        return await self.refresh()

    async def refresh(self) -> Optional[DashboardSnapshot]:
        """
        Refresh the current city now, regardless of the auto-refresh toggle.

        Skipped when a cycle is already in flight.
        """
        return await self._refresh(timer_epoch=None)

    async def _tick(self) -> Optional[DashboardSnapshot]:
        # Only timer cycles are bound to the epoch; disabling auto-refresh voids them
        return await self._refresh(timer_epoch=self._timer_epoch)

    async def _refresh(self, timer_epoch: Optional[int]) -> Optional[DashboardSnapshot]:
        if self._cycle_lock.locked():
            self.logger.info("Refresh skipped, previous cycle still in flight")
            return None
        return await self._run_cycle(self.current_city, self._generation, timer_epoch)

    async def _run_cycle(
        self,
        city: str,
        generation: int,
        timer_epoch: Optional[int]
    ) -> Optional[DashboardSnapshot]:
        async with self._cycle_lock:
            if not self._is_current(generation, timer_epoch):
                self.logger.info(f"Skipping superseded refresh for {city}")
                return None

            snapshot = await self.service.load_city(
                city,
                previous=self.latest,
                auto_refresh=self.auto_refresh
            )

            if not self._is_current(generation, timer_epoch):
                self.logger.info(f"Discarding stale result for {city}")
                return None

            self.latest = snapshot
            if snapshot.session is not None:
                self.state = snapshot.session

            if self.on_snapshot is not None:
                self.on_snapshot(snapshot)
            return snapshot

    def _is_current(self, generation: int, timer_epoch: Optional[int]) -> bool:
        if generation != self._generation:
            return False
        if timer_epoch is not None and (timer_epoch != self._timer_epoch or not self.auto_refresh):
            return False
        return True

    def _schedule_timer(self):
        self._cancel_timer()
        self.scheduler.add_job(
            self._tick,
            "interval",
            seconds=self.interval_seconds,
            id=self.JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

    def _cancel_timer(self):
        self._timer_epoch += 1
        if self.scheduler.get_job(self.JOB_ID) is not None:
            self.scheduler.remove_job(self.JOB_ID)
