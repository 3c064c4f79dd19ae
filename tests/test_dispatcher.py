"""Tests for the background auto-dispatch worker."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ridehail.domain.enums import DriverStatus, RideStatus
from ridehail.workers import dispatcher
from tests.conftest import (
    AIRPORT,
    CITY_CENTRE,
    KIMIHURURA,
    TestDriverModel,
    TestDriverRepository,
    TestPassengerModel,
    TestRideModel,
    TestRideRepository,
    make_driver,
)


async def _pending_ride(session, pickup=CITY_CENTRE) -> TestRideModel:
    return await TestRideRepository(session).create_ride(
        passenger_id=1,
        category_id=None,
        pickup_lat=pickup[0],
        pickup_lng=pickup[1],
        dropoff_lat=KIMIHURURA[0],
        dropoff_lng=KIMIHURURA[1],
        estimated_fare=5.0,
    )


@pytest.fixture
def test_repositories():
    with (
        patch.object(dispatcher, "RideRepository", TestRideRepository),
        patch.object(dispatcher, "DriverRepository", TestDriverRepository),
    ):
        yield


class TestDispatchPendingRides:
    @pytest.mark.asyncio
    async def test_no_pending_rides(self, db_session, test_repositories):
        assert await dispatcher.dispatch_pending_rides(db_session) == []

    @pytest.mark.asyncio
    async def test_assigns_best_eligible_driver(self, db_session, test_repositories):
        db_session.add(TestPassengerModel(name="Aline", email="aline@example.com"))
        # Closest, but below the minimum rating
        db_session.add(make_driver("Alexis", -1.9442, 30.0620, rating=3.2))
        db_session.add(make_driver("Sandrine", -1.9400, 30.0580, rating=4.9))
        await db_session.flush()
        ride = await _pending_ride(db_session)

        assigned = await dispatcher.dispatch_pending_rides(db_session)

        assert assigned == [ride]
        await db_session.refresh(ride)
        assert ride.status == RideStatus.ACCEPTED
        assert ride.driver_id == 2
        assert ride.accepted_at is not None
        driver = await db_session.get(TestDriverModel, 2)
        assert driver.status == DriverStatus.BUSY

    @pytest.mark.asyncio
    async def test_driver_gets_one_ride_per_cycle(self, db_session, test_repositories):
        db_session.add(TestPassengerModel(name="Aline", email="aline@example.com"))
        db_session.add(make_driver("Claude", -1.9450, 30.0600))
        await db_session.flush()
        first = await _pending_ride(db_session)
        second = await _pending_ride(db_session)

        assert len(await dispatcher.dispatch_pending_rides(db_session)) == 1

        await db_session.refresh(first)
        await db_session.refresh(second)
        assert {first.status, second.status} == {RideStatus.ACCEPTED, RideStatus.PENDING}

    @pytest.mark.asyncio
    async def test_ignores_stale_and_distant_drivers(self, db_session, test_repositories):
        db_session.add(TestPassengerModel(name="Aline", email="aline@example.com"))
        db_session.add(
            make_driver(
                "Stale", -1.9445, 30.0615,
                last_activity_at=datetime.now(timezone.utc) - timedelta(minutes=30),
            )
        )
        db_session.add(make_driver("Offline", -1.9445, 30.0615, status=DriverStatus.OFFLINE))
        # Nairobi
        db_session.add(make_driver("Far", -1.2921, 36.8219))
        await db_session.flush()
        await _pending_ride(db_session, pickup=AIRPORT)

        assert await dispatcher.dispatch_pending_rides(db_session) == []


class TestDispatchCycle:
    @pytest.mark.asyncio
    async def test_skips_when_lock_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        with (
            patch.object(dispatcher, "get_redis", AsyncMock(return_value=mock_redis)),
            patch.object(dispatcher, "dispatch_pending_rides", AsyncMock()) as dispatch,
        ):
            assert await dispatcher.run_dispatch_cycle() == 0
            dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_disabled_loop_does_not_start(self):
        with patch.object(dispatcher.settings, "auto_dispatch_enabled", False):
            await dispatcher.start_dispatch_loop()
        assert dispatcher._task is None

    @pytest.mark.asyncio
    async def test_falls_back_when_best_driver_was_claimed(self):
        ranked = [SimpleNamespace(driver_id=1), SimpleNamespace(driver_id=2)]
        driver_repo = AsyncMock()
        driver_repo.claim = AsyncMock(side_effect=[False, True])

        assert await dispatcher._claim_best_driver(driver_repo, ranked, None) == 2


def _session_factory(calls: list, fail_commit: bool = False) -> MagicMock:
    session = AsyncMock()
    session.__aenter__.return_value = session

    async def commit():
        calls.append("commit")
        if fail_commit:
            raise RuntimeError("commit failed")

    session.commit = commit
    return MagicMock(return_value=session)


class TestDispatchCyclePublishing:
    @pytest.mark.asyncio
    async def test_publishes_only_after_commit(self):
        calls: list[str] = []
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.publish = AsyncMock(side_effect=lambda *args: calls.append("publish") or 1)
        ride = SimpleNamespace(id=7, status=RideStatus.ACCEPTED, driver_id=2, final_fare=None)

        with (
            patch.object(dispatcher, "get_redis", AsyncMock(return_value=mock_redis)),
            patch.object(dispatcher, "async_session_factory", _session_factory(calls)),
            patch.object(dispatcher, "dispatch_pending_rides", AsyncMock(return_value=[ride])),
        ):
            assert await dispatcher.run_dispatch_cycle() == 1

        assert calls == ["commit", "publish"]
        mock_redis.eval.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_commit_publishes_nothing(self):
        calls: list[str] = []
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        ride = SimpleNamespace(id=7, status=RideStatus.ACCEPTED, driver_id=2, final_fare=None)

        with (
            patch.object(dispatcher, "get_redis", AsyncMock(return_value=mock_redis)),
            patch.object(
                dispatcher, "async_session_factory", _session_factory(calls, fail_commit=True)
            ),
            patch.object(dispatcher, "dispatch_pending_rides", AsyncMock(return_value=[ride])),
        ):
            assert await dispatcher.run_dispatch_cycle() == 0

        assert calls == ["commit"]
        mock_redis.publish.assert_not_awaited()
        mock_redis.eval.assert_awaited_once()
