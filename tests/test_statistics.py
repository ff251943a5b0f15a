from datetime import datetime, timedelta, timezone

import pytest

from driveless.errors import PersistenceError
from driveless.models.domain import OptimizedRouteResult, OriginalRouteInputs, Stop
from driveless.persistence.collections import InMemoryCollection
from driveless.persistence.route_store import RouteStore
from driveless.services.statistics.activity import ActivityRecorder
from driveless.services.statistics.aggregator import StatisticsAggregator
from driveless.services.statistics.metrics import growth_rate, local_windows, success_rate, system_health

UTC = timezone.utc
NOW = datetime(2026, 3, 18, 15, 30, tzinfo=UTC)


def _iso(moment: datetime) -> str:
    return moment.isoformat()


def _store_with_routes(*ages: timedelta) -> RouteStore:
    stop = Stop(display_name="A", address="A Street", latitude=1.0, longitude=1.0)
    result = OptimizedRouteResult(optimized_stops=(stop,), legs=(), total_distance="0 mi", estimated_time="0 min")
    moments = iter([NOW - age for age in ages])
    store = RouteStore(InMemoryCollection("saved_routes"), clock=lambda: next(moments), max_saved_routes=0)
    for _ in ages:
        store.save(result, OriginalRouteInputs(stops=(stop,)))
    return store


def test_growth_rate() -> None:
    assert growth_rate(0, 5) == 0.0
    assert growth_rate(10, 15) == 50.0
    assert growth_rate(10, 5) == -50.0


def test_success_rate() -> None:
    assert success_rate(0, 0) == 100.0
    assert success_rate(8, 2) == 80.0


def test_system_health_threshold() -> None:
    assert system_health(9, 10) == "Healthy"
    assert system_health(10, 10) == "Warning"


def test_windows_follow_calendar_days() -> None:
    windows = local_windows(NOW, UTC)

    assert windows.today_start == datetime(2026, 3, 18, tzinfo=UTC)
    assert windows.week_start == datetime(2026, 3, 12, tzinfo=UTC)
    assert windows.last_week_start == datetime(2026, 3, 5, tzinfo=UTC)
    assert windows.month_start == datetime(2026, 2, 17, tzinfo=UTC)


def test_snapshot_combines_all_groups() -> None:
    store = _store_with_routes(timedelta(hours=1), timedelta(hours=2), timedelta(days=2), timedelta(days=9))
    users = InMemoryCollection(
        "users",
        [
            {"id": "u1", "createdAt": _iso(NOW - timedelta(days=1)), "lastActiveAt": _iso(NOW - timedelta(hours=3))},
            {"id": "u2", "createdAt": _iso(NOW - timedelta(days=2)), "lastActiveAt": _iso(NOW - timedelta(days=2))},
            {"id": "u3", "createdAt": _iso(NOW - timedelta(days=10)), "lastActiveAt": None},
        ],
    )
    errors = InMemoryCollection(
        "errors",
        [
            {"id": "e1", "timestamp": _iso(NOW - timedelta(hours=1)), "resolved": False},
            {"id": "e2", "timestamp": _iso(NOW - timedelta(days=3)), "resolved": False},
        ],
    )
    analytics = InMemoryCollection(
        "analytics",
        [
            {"id": "a1", "timestamp": _iso(NOW - timedelta(days=1))},
            {"id": "a2", "timestamp": _iso(NOW - timedelta(days=40))},
        ],
    )

    snapshot = StatisticsAggregator(store, users, errors, analytics, health_error_threshold=10).snapshot(NOW, UTC)

    assert snapshot.total_users == 3
    assert snapshot.new_users_this_week == 2
    assert snapshot.active_users_today == 1
    assert snapshot.user_growth_rate == pytest.approx(100.0)
    assert snapshot.total_routes == 4
    assert snapshot.today_routes == 2
    assert snapshot.week_routes == 3
    assert snapshot.month_routes == 4
    assert snapshot.error_count == 1
    assert snapshot.unresolved_errors == 1
    assert snapshot.success_rate == pytest.approx(200 / 3)
    assert snapshot.total_events == 1
    assert snapshot.system_health == "Healthy"
    assert snapshot.degraded_groups == ()


def test_failed_group_falls_back_without_blanking_others() -> None:
    store = _store_with_routes(timedelta(hours=1))

    class BrokenCollection(InMemoryCollection):
        def count(self) -> int:
            raise RuntimeError("users backend offline")

        def range(self, field, start=None, end=None):
            raise RuntimeError("users backend offline")

    aggregator = StatisticsAggregator(
        store,
        BrokenCollection("users"),
        InMemoryCollection("errors"),
        InMemoryCollection("analytics"),
    )

    snapshot = aggregator.snapshot(NOW, UTC)

    assert snapshot.degraded_groups == ("users",)
    assert snapshot.total_users == 0
    assert snapshot.total_routes == 1
    assert snapshot.today_routes == 1
    assert snapshot.success_rate == 100.0
    assert snapshot.system_health == "Healthy"


def test_failed_system_group_reports_unknown_health() -> None:
    store = _store_with_routes(timedelta(hours=1))

    class BrokenErrors(InMemoryCollection):
        def range(self, field, start=None, end=None):
            raise RuntimeError("errors backend offline")

    snapshot = StatisticsAggregator(
        store, InMemoryCollection("users"), BrokenErrors("errors"), InMemoryCollection("analytics")
    ).snapshot(NOW, UTC)

    assert snapshot.degraded_groups == ("system",)
    assert snapshot.system_health == "Unknown"
    assert snapshot.success_rate == 100.0
    assert snapshot.error_count == 0
    assert snapshot.total_routes == 1


def test_recorded_errors_land_in_both_collections_with_timestamp() -> None:
    errors, analytics = InMemoryCollection("errors"), InMemoryCollection("analytics")
    recorder = ActivityRecorder(errors, analytics, clock=lambda: NOW)

    recorder.error(ValueError("bad stop"), user_id="driver-1", location="route_planner")

    [error] = errors.all()
    [event] = analytics.all()
    assert error["errorType"] == event["errorType"] == "ValueError"
    assert error["timestamp"] == NOW.isoformat()
    assert error["resolved"] is False
    assert error["id"] != event["id"]


def test_recorder_write_failures_do_not_reach_the_caller() -> None:
    class OfflineCollection(InMemoryCollection):
        def insert(self, document):
            raise PersistenceError("analytics backend offline")

    recorder = ActivityRecorder(OfflineCollection("errors"), OfflineCollection("analytics"))

    recorder.error(RuntimeError("boom"))
