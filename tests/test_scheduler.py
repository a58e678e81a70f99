"""Tests for refresh scheduling and cycle supersession."""
import asyncio
from datetime import datetime

import pytest

from smart_city_dashboard.ingestion.scheduler import RefreshScheduler
from smart_city_dashboard.models import Coordinates, DashboardSnapshot, SessionState


class FakeService:
    """Dashboard service stub; a city with a gate blocks until it is set."""

    def __init__(self, unknown=()):
        self.calls = []
        self.gates = {}
        self.unknown = set(unknown)

    async def load_city(self, city, previous=None, auto_refresh=False):
        self.calls.append(city)
        gate = self.gates.get(city)
        if gate is not None:
            await gate.wait()

        now = datetime.now()
        if city in self.unknown:
            if previous is None:
                return DashboardSnapshot(error="not found", generated_at=now)
            return previous.model_copy(update={"error": "not found", "generated_at": now})

        return DashboardSnapshot(
            session=SessionState(city=city, coords=Coordinates(lat=1.0, lon=2.0)),
            generated_at=now,
        )


class TestRefreshScheduler:
    """Test search, refresh and toggle behaviour."""

    @pytest.mark.asyncio
    async def test_search_updates_state(self):
        received = []
        scheduler = RefreshScheduler(FakeService(), auto_refresh=False, on_snapshot=received.append)

        snapshot = await scheduler.search("London")

        assert snapshot.session.city == "London"
        assert scheduler.state.city == "London"
        assert scheduler.latest is snapshot
        assert received == [snapshot]
        assert scheduler.scheduler.get_job(RefreshScheduler.JOB_ID) is None

    @pytest.mark.asyncio
    async def test_refresh_before_search_uses_default_city(self):
        service = FakeService()
        scheduler = RefreshScheduler(service, default_city="Delhi", auto_refresh=False)

        await scheduler.refresh()

        assert service.calls == ["Delhi"]

    @pytest.mark.asyncio
    async def test_newer_search_supersedes_in_flight_cycle(self):
        service = FakeService()
        service.gates["London"] = asyncio.Event()
        scheduler = RefreshScheduler(service, auto_refresh=False)

        first = asyncio.create_task(scheduler.search("London"))
        await asyncio.sleep(0)
        second = asyncio.create_task(scheduler.search("Paris"))
        await asyncio.sleep(0)
        service.gates["London"].set()

        assert await first is None
        assert (await second).session.city == "Paris"
        assert scheduler.state.city == "Paris"
        assert service.calls == ["London", "Paris"]

    @pytest.mark.asyncio
    async def test_tick_skipped_while_cycle_in_flight(self):
        service = FakeService()
        service.gates["London"] = asyncio.Event()
        scheduler = RefreshScheduler(service, auto_refresh=True)

        search = asyncio.create_task(scheduler.search("London"))
        await asyncio.sleep(0)

        assert await scheduler._tick() is None
        assert await scheduler.refresh() is None

        service.gates["London"].set()
        await search
        assert service.calls == ["London"]

    @pytest.mark.asyncio
    async def test_manual_refresh_runs_with_auto_refresh_off(self):
        received = []
        service = FakeService()
        scheduler = RefreshScheduler(service, auto_refresh=False, on_snapshot=received.append)
        await scheduler.search("Delhi")

        snapshot = await scheduler.refresh()

        assert snapshot is not None
        assert scheduler.latest is snapshot
        assert received[-1] is snapshot
        assert service.calls == ["Delhi", "Delhi"]

    @pytest.mark.asyncio
    async def test_tick_ignored_with_auto_refresh_off(self):
        service = FakeService()
        scheduler = RefreshScheduler(service, auto_refresh=False)
        first = await scheduler.search("Delhi")

        assert await scheduler._tick() is None
        assert scheduler.latest is first

    @pytest.mark.asyncio
    async def test_disabling_auto_refresh_discards_timer_cycle(self):
        service = FakeService()
        scheduler = RefreshScheduler(service, auto_refresh=True)
        first = await scheduler.search("Delhi")

        service.gates["Delhi"] = asyncio.Event()
        tick = asyncio.create_task(scheduler._tick())
        await asyncio.sleep(0)
        await scheduler.set_auto_refresh(False)
        service.gates["Delhi"].set()

        assert await tick is None
        assert scheduler.latest is first
        assert scheduler.scheduler.get_job(RefreshScheduler.JOB_ID) is None

    @pytest.mark.asyncio
    async def test_failed_search_keeps_last_good_city(self):
        service = FakeService(unknown={"Atlantis"})
        scheduler = RefreshScheduler(service, auto_refresh=False)

        await scheduler.search("Delhi")
        failed = await scheduler.search("Atlantis")
        await scheduler.refresh()

        assert failed.error == "not found"
        assert failed.session.city == "Delhi"
        assert scheduler.state.city == "Delhi"
        assert service.calls == ["Delhi", "Atlantis", "Delhi"]

    @pytest.mark.asyncio
    async def test_search_schedules_interval_job(self):
        scheduler = RefreshScheduler(FakeService(), interval_seconds=30, auto_refresh=True)

        await scheduler.search("Delhi")

        job = scheduler.scheduler.get_job(RefreshScheduler.JOB_ID)
        assert job is not None
        assert job.trigger.interval.total_seconds() == 30

    @pytest.mark.asyncio
    async def test_enabling_auto_refresh_refreshes_immediately(self):
        service = FakeService()
        scheduler = RefreshScheduler(service, auto_refresh=False)
        await scheduler.search("Delhi")

        snapshot = await scheduler.set_auto_refresh(True)

        assert snapshot.session.city == "Delhi"
        assert service.calls == ["Delhi", "Delhi"]
        assert scheduler.scheduler.get_job(RefreshScheduler.JOB_ID) is not None

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        scheduler = RefreshScheduler(FakeService(), auto_refresh=True)

        scheduler.start()
        await scheduler.search("Delhi")
        assert scheduler.scheduler.running

        await scheduler.stop()
        assert not scheduler.scheduler.running
        assert scheduler.scheduler.get_job(RefreshScheduler.JOB_ID) is None

    @pytest.mark.asyncio
    async def test_restart_after_stop(self):
        scheduler = RefreshScheduler(FakeService(), auto_refresh=True)

        scheduler.start()
        await scheduler.stop()
        scheduler.start()

        assert scheduler.scheduler.running
        await scheduler.stop()
        assert not scheduler.scheduler.running

    @pytest.mark.asyncio
    async def test_timer_job_runs_tick(self):
        scheduler = RefreshScheduler(FakeService(), auto_refresh=True)

        await scheduler.search("Delhi")

        job = scheduler.scheduler.get_job(RefreshScheduler.JOB_ID)
        assert job.func == scheduler._tick
