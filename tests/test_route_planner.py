import pytest

from driveless.errors import OptimizationError, RoutingError, RoutingReason
from driveless.models.domain import Leg, Measure, OriginalRouteInputs, Stop
from driveless.persistence.collections import InMemoryCollection
from driveless.persistence.route_store import RouteStore, StoreEvent
from driveless.services.outputs.formatting import format_distance, format_duration
from driveless.services.routing.optimizer import RouteOptimizer
from driveless.services.routing.service import ANONYMOUS, LatestResultSlot, RoutePlanner
from driveless.services.statistics.activity import ActivityRecorder
from driveless.services.statistics.aggregator import StatisticsAggregator


def _stop(name: str, position: float) -> Stop:
    return Stop(display_name=name, address=f"{name} Boulevard", latitude=0.0, longitude=position)


class DummyOSRM:
    """Stops on a straight road, one kilometre per unit of longitude."""

    def __init__(self) -> None:
        self.table_calls = 0
        self.route_calls = 0

    def table(self, coordinates):
        self.table_calls += 1
        distances = [[abs(a[1] - b[1]) * 1000 for b in coordinates] for a in coordinates]
        durations = [[value / 10 for value in row] for row in distances]
        return {"durations": durations, "distances": distances}

    def route(self, ordered_stops, traffic_enabled):
        self.route_calls += 1
        legs = []
        for current, following in zip(ordered_stops, ordered_stops[1:]):
            meters = abs(current.longitude - following.longitude) * 1000
            seconds = meters / 10
            legs.append(
                Leg(
                    distance=Measure(meters, format_distance(meters, "metric")),
                    duration=Measure(seconds, format_duration(seconds)),
                )
            )
        return legs


class UnavailableMatrix:
    def table(self, coordinates):
        raise RoutingError("OSRM table request timed out.", RoutingReason.UNAVAILABLE)


def _planner(osrm=None, matrix=None, store=None, **overrides) -> RoutePlanner:
    osrm = osrm or DummyOSRM()
    options = {
        "units": "metric",
        "max_waypoints": 10,
        "auto_save": False,
        "haversine_fallback": True,
        "fallback_speed_kmh": 40.0,
    }
    options.update(overrides)
    optimizer = RouteOptimizer(max_stops=10, max_swap_passes=20, cache_size=0)
    return RoutePlanner(optimizer, osrm, matrix or osrm, store, **options)


def _inputs(*stops: Stop, **flags) -> OriginalRouteInputs:
    return OriginalRouteInputs(stops=tuple(stops), **flags)


def test_plan_keeps_pinned_endpoints() -> None:
    stops = [_stop("A", 0), _stop("B", 3), _stop("C", 1), _stop("D", 2), _stop("E", 4)]

    planned = _planner().plan(_inputs(*stops))

    names = [stop.display_name for stop in planned.result.optimized_stops]
    assert names == ["A", "C", "D", "B", "E"]
    assert len(planned.result.legs) == 4
    assert planned.result.total_distance == "4.0 km"
    assert planned.matrix_source == "osrm"


def test_single_stop_needs_no_provider_calls() -> None:
    osrm = DummyOSRM()

    planned = _planner(osrm).plan(_inputs(_stop("A", 0)))

    assert planned.result.legs == ()
    assert [stop.display_name for stop in planned.result.optimized_stops] == ["A"]
    assert osrm.table_calls == 0
    assert osrm.route_calls == 0


def test_round_trip_returns_to_origin() -> None:
    stops = [_stop("A", 0), _stop("B", 2), _stop("C", 1)]

    planned = _planner().plan(_inputs(*stops, round_trip=True))

    result = planned.result
    assert result.optimized_stops[0] == result.optimized_stops[-1] == stops[0]
    assert len(result.legs) == len(stops)
    assert result.total_distance == "4.0 km"


def test_matrix_failure_falls_back_to_haversine() -> None:
    stops = [_stop("A", 0), _stop("B", 0.02), _stop("C", 0.01), _stop("D", 0.03)]

    planned = _planner(matrix=UnavailableMatrix()).plan(_inputs(*stops))

    assert planned.matrix_source == "haversine"
    assert [stop.display_name for stop in planned.result.optimized_stops] == ["A", "C", "B", "D"]


def test_matrix_failure_without_fallback_is_an_optimization_error() -> None:
    stops = [_stop("A", 0), _stop("B", 2), _stop("C", 1), _stop("D", 3)]

    with pytest.raises(OptimizationError):
        _planner(matrix=UnavailableMatrix(), haversine_fallback=False).plan(_inputs(*stops))


def test_directions_errors_propagate() -> None:
    class NoRoute(DummyOSRM):
        def route(self, ordered_stops, traffic_enabled):
            raise RoutingError("No route found", RoutingReason.NO_ROUTE)

    with pytest.raises(RoutingError) as excinfo:
        _planner(NoRoute()).plan(_inputs(_stop("A", 0), _stop("B", 1)))

    assert excinfo.value.reason == RoutingReason.NO_ROUTE


def test_invalid_inputs_are_rejected() -> None:
    planner = _planner(max_waypoints=3)

    with pytest.raises(ValueError):
        planner.plan(_inputs())
    with pytest.raises(ValueError):
        planner.plan(_inputs(*[_stop(f"S{i}", i) for i in range(4)]))


def test_newer_request_supersedes_older_result() -> None:
    planner_box = {}
    later = _inputs(_stop("X", 0), _stop("Y", 1))

    class InterleavingOSRM(DummyOSRM):
        def route(self, ordered_stops, traffic_enabled):
            if self.route_calls == 0:
                self.route_calls += 1
                planner_box["newer"] = planner_box["planner"].plan(later)
                return super().route(ordered_stops, traffic_enabled)
            return super().route(ordered_stops, traffic_enabled)

    store = RouteStore(InMemoryCollection("saved_routes"), max_saved_routes=0)
    planner = _planner(InterleavingOSRM(), store=store, auto_save=True)
    planner_box["planner"] = planner

    stale = planner.plan(_inputs(_stop("A", 0), _stop("B", 1)))

    assert stale is None
    assert planner_box["newer"] is not None
    assert planner.slot_for(ANONYMOUS).value is planner_box["newer"]
    assert [route.name for route in store.list_all()] == ["X → Y"]


def test_requests_from_different_users_do_not_supersede_each_other() -> None:
    planner_box = {}
    other_user = _inputs(_stop("X", 0), _stop("Y", 1))

    class InterleavingOSRM(DummyOSRM):
        def route(self, ordered_stops, traffic_enabled):
            if self.route_calls == 0:
                self.route_calls += 1
                planner_box["other"] = planner_box["planner"].plan(other_user, requester="driver-2")
                return super().route(ordered_stops, traffic_enabled)
            return super().route(ordered_stops, traffic_enabled)

    planner = _planner(InterleavingOSRM())
    planner_box["planner"] = planner

    first = planner.plan(_inputs(_stop("A", 0), _stop("B", 1)), requester="driver-1")

    assert first is not None
    assert planner_box["other"] is not None
    assert planner.slot_for("driver-1").value is first
    assert planner.slot_for("driver-2").value is planner_box["other"]


def test_saved_routes_were_all_returned_to_their_caller() -> None:
    store = RouteStore(InMemoryCollection("saved_routes"), max_saved_routes=0)
    planner = _planner(store=store, auto_save=True)
    later = _inputs(_stop("X", 0), _stop("Y", 1))
    returned = []
    seen = []

    def plan_again_on_first_save(event: StoreEvent) -> None:
        if event.kind == "saved" and not seen:
            seen.append(event)
            returned.append(planner.plan(later))

    store.subscribe(plan_again_on_first_save)

    first = planner.plan(_inputs(_stop("A", 0), _stop("B", 1)))

    assert first is not None
    assert returned[0] is not None
    surfaced = {first.saved_route.id, returned[0].saved_route.id}
    assert {route.id for route in store.list_all()} == surfaced


def test_failed_plan_is_recorded_as_an_error() -> None:
    errors, analytics = InMemoryCollection("errors"), InMemoryCollection("analytics")
    store = RouteStore(InMemoryCollection("saved_routes"), max_saved_routes=0)
    recorder = ActivityRecorder(errors, analytics)

    class NoRoute(DummyOSRM):
        def route(self, ordered_stops, traffic_enabled):
            raise RoutingError("No route found", RoutingReason.NO_ROUTE)

    aggregator = StatisticsAggregator(store, InMemoryCollection("users"), errors, analytics)
    assert aggregator.snapshot().error_count == 0

    with pytest.raises(RoutingError):
        _planner(NoRoute(), recorder=recorder).plan(_inputs(_stop("A", 0), _stop("B", 1)), requester="driver-1")

    snapshot = aggregator.snapshot()
    assert snapshot.error_count == 1
    assert snapshot.unresolved_errors == 1
    assert snapshot.total_events == 2
    [error] = errors.all()
    assert error["errorType"] == "routing_no_route"
    assert error["userId"] == "driver-1"
    [calculation] = analytics.where("type", "route_calculation")
    assert calculation["success"] is False


def test_successful_plan_is_recorded_as_a_calculation() -> None:
    errors, analytics = InMemoryCollection("errors"), InMemoryCollection("analytics")
    planner = _planner(recorder=ActivityRecorder(errors, analytics))

    planner.plan(_inputs(_stop("A", 0), _stop("B", 1)), requester="driver-1")

    [event] = analytics.all()
    assert event["type"] == "route_calculation"
    assert event["stops"] == ["A", "B"]
    assert event["success"] is True
    assert event["totalDistance"] == "1.0 km"
    assert errors.count() == 0


def test_latest_result_slot_rejects_old_tickets() -> None:
    slot: LatestResultSlot[str] = LatestResultSlot()
    first = slot.issue()
    second = slot.issue()

    assert slot.publish(first, "old") is False
    assert slot.publish(second, "new") is True
    assert slot.value == "new"


def test_auto_save_deduplicates_and_inherits_favorite() -> None:
    store = RouteStore(InMemoryCollection("saved_routes"), max_saved_routes=0)
    planner = _planner(store=store, auto_save=True)
    stops = [_stop("A", 0), _stop("B", 3), _stop("C", 1), _stop("D", 4)]

    first = planner.plan(_inputs(*stops), favorite=True)
    second = planner.plan(_inputs(stops[0], stops[2], stops[1], stops[3]))
    unsaved = planner.plan(_inputs(*stops), save=False)

    assert len(store.list_all()) == 1
    assert second.saved_route.id == first.saved_route.id
    assert second.is_favorite is True
    assert unsaved.saved_route is None
    assert unsaved.is_favorite is True
