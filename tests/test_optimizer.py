import pytest

from driveless.errors import OptimizationError
from driveless.models.domain import Stop
from driveless.services.routing.models import CostMatrix, RouteConstraints
from driveless.services.routing.optimizer import RouteOptimizer, needs_matrix, route_cost


def _stop(name: str, position: float) -> Stop:
    return Stop(display_name=name, address=f"{name} Avenue", latitude=0.0, longitude=position)


def _line_matrix(stops: list[Stop]) -> CostMatrix:
    """Stops on a straight road: cost is the gap between positions."""
    distances = [[abs(a.longitude - b.longitude) * 1000 for b in stops] for a in stops]
    durations = [[value / 10 for value in row] for row in distances]
    return CostMatrix(distances=distances, durations=durations)


def _optimizer(**overrides) -> RouteOptimizer:
    options = {"max_stops": 25, "max_swap_passes": 50, "cache_size": 0}
    options.update(overrides)
    return RouteOptimizer(**options)


def test_fixed_endpoints_are_kept_and_interior_reordered() -> None:
    stops = [_stop("A", 0), _stop("B", 3), _stop("C", 1), _stop("D", 2), _stop("E", 4)]

    ordering = _optimizer().order(stops, RouteConstraints(), _line_matrix(stops))

    assert ordering == (0, 2, 3, 1, 4)


@pytest.mark.parametrize("interior", [(1, 2, 3), (3, 2, 1), (2, 3, 1), (1, 3, 2)])
def test_pinned_start_and_end_hold_for_any_interior_order(interior) -> None:
    positions = {1: 2.5, 2: 0.5, 3: 1.5}
    stops = [_stop("A", 0)] + [_stop(f"S{i}", positions[i]) for i in interior] + [_stop("E", 4)]

    ordering = _optimizer().order(stops, RouteConstraints(), _line_matrix(stops))

    assert ordering[0] == 0
    assert ordering[-1] == len(stops) - 1
    assert sorted(ordering) == list(range(len(stops)))


def test_free_start_may_move_the_first_stop() -> None:
    stops = [_stop("C", 1), _stop("A", 0), _stop("B", 3), _stop("D", 2)]
    constraints = RouteConstraints(fixed_start=False, fixed_end=False)

    ordering = _optimizer().order(stops, constraints, _line_matrix(stops))

    assert ordering == (1, 0, 3, 2)


def test_equal_costs_keep_input_order() -> None:
    stops = [_stop(name, 0) for name in "ABCDE"]

    ordering = _optimizer().order(stops, RouteConstraints(), _line_matrix(stops))

    assert ordering == (0, 1, 2, 3, 4)


def test_zero_and_one_stop_do_not_need_a_matrix() -> None:
    def fail():
        raise AssertionError("matrix should not be requested")

    optimizer = _optimizer()

    assert optimizer.order([], RouteConstraints(), fail) == ()
    assert optimizer.order([_stop("A", 0)], RouteConstraints(), fail) == (0,)
    assert optimizer.order([_stop("A", 0), _stop("B", 1)], RouteConstraints(), fail) == (0, 1)
    assert not needs_matrix(3, RouteConstraints())


def test_unreachable_pairs_are_penalised() -> None:
    stops = [_stop(name, 0) for name in "ABCD"]
    distances = [
        [0, 1, 1, 1],
        [1, 0, None, 1],
        [1, 1, 0, 1],
        [1, 1, 1, 0],
    ]
    matrix = CostMatrix(distances=distances, durations=distances)

    ordering = _optimizer().order(stops, RouteConstraints(), matrix)

    assert ordering == (0, 2, 1, 3)
    assert route_cost(ordering, [[0 if v is None else v for v in row] for row in distances]) == 3


def test_matrix_without_usable_entries_fails() -> None:
    stops = [_stop(name, 0) for name in "ABCD"]
    empty = [[None] * 4 for _ in range(4)]

    with pytest.raises(OptimizationError):
        _optimizer().order(stops, RouteConstraints(), CostMatrix(distances=empty, durations=empty))


def test_mis_sized_matrix_fails() -> None:
    stops = [_stop(name, i) for i, name in enumerate("ABCD")]
    small = _line_matrix(stops[:3])

    with pytest.raises(OptimizationError):
        _optimizer().order(stops, RouteConstraints(), small)


def test_too_many_stops_fails() -> None:
    stops = [_stop(f"S{i}", i) for i in range(6)]

    with pytest.raises(OptimizationError):
        _optimizer(max_stops=5).order(stops, RouteConstraints(), _line_matrix(stops))


def test_round_trip_ignores_fixed_end() -> None:
    stops = [_stop(name, 0) for name in "ABCD"]
    distances = [
        [0, 1, 1, 10],
        [1, 0, 10, 1],
        [1, 10, 0, 1],
        [10, 1, 1, 0],
    ]
    matrix = CostMatrix(distances=distances, durations=distances)
    constraints = RouteConstraints(fixed_start=True, fixed_end=True, round_trip=True)

    ordering = _optimizer().order(stops, constraints, matrix)

    assert ordering == (0, 1, 3, 2)


def test_traffic_flag_optimizes_on_duration() -> None:
    stops = [_stop(name, 0) for name in "ABCD"]
    distances = [[0, 1, 9, 9], [1, 0, 9, 1], [9, 9, 0, 1], [9, 1, 1, 0]]
    durations = [[0, 9, 1, 9], [9, 0, 1, 1], [1, 1, 0, 9], [9, 1, 9, 0]]
    matrix = CostMatrix(distances=distances, durations=durations)
    constraints = RouteConstraints(fixed_end=False)

    by_distance = _optimizer().order(stops, constraints, matrix)
    by_duration = _optimizer().order(stops, RouteConstraints(fixed_end=False, include_traffic=True), matrix)

    assert by_distance == (0, 1, 3, 2)
    assert by_duration == (0, 2, 1, 3)


def test_memoized_order_skips_matrix_for_same_stop_set() -> None:
    stops = [_stop("A", 0), _stop("B", 3), _stop("C", 1), _stop("D", 2), _stop("E", 4)]
    calls = []

    def matrix():
        calls.append(1)
        return _line_matrix(stops)

    optimizer = _optimizer(cache_size=4)
    first = optimizer.order(stops, RouteConstraints(), matrix)
    shuffled = [stops[0], stops[3], stops[1], stops[2], stops[4]]
    second = optimizer.order(shuffled, RouteConstraints(), lambda: pytest.fail("cache miss"))

    assert len(calls) == 1
    assert [stops[i].display_name for i in first] == [shuffled[i].display_name for i in second]
