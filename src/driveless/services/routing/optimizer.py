"""Stop ordering heuristic: nearest-neighbour construction plus pairwise swaps.

Practical trips are small, so the optimizer favours a predictable heuristic
over exact search. Results are deterministic for identical input: when two
orderings cost the same, the one closer to the input order wins.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import OrderedDict
from typing import Callable, Optional, Sequence, Union

from ...config import settings
from ...errors import OptimizationError
from ...models.domain import Stop
from .fingerprint import fingerprint, stop_identifier
from .models import CostMatrix, RouteConstraints

# Unreachable pairs still need a finite cost so the heuristic can compare orderings.
LARGE_PENALTY = 999999999.0
COST_EPSILON = 1e-9

logger = logging.getLogger(__name__)

MatrixSource = Union[CostMatrix, Callable[[], CostMatrix]]


def _pins(count: int, constraints: RouteConstraints) -> tuple[Optional[int], Optional[int]]:
    start = 0 if constraints.fixed_start and count >= 1 else None
    end = None
    if constraints.fixed_end and not constraints.round_trip and count >= 2:
        end = count - 1
    return start, end


def needs_matrix(count: int, constraints: RouteConstraints) -> bool:
    """True when more than one ordering satisfies the constraints."""
    if count <= 1:
        return False
    start, end = _pins(count, constraints)
    movable = count - (start is not None) - (end is not None)
    return movable >= 2 or (movable == 1 and start is None and end is None)


def _prepare_costs(matrix: CostMatrix, count: int, include_traffic: bool) -> list[list[float]]:
    raw = matrix.costs(include_traffic)
    if not raw or len(raw) != count or any(len(row) != count for row in raw):
        raise OptimizationError(
            f"Cost matrix does not match the stop count (expected {count}x{count})."
        )

    usable = 0
    costs: list[list[float]] = []
    for i, row in enumerate(raw):
        prepared_row: list[float] = []
        for j, value in enumerate(row):
            if i == j:
                prepared_row.append(0.0)
                continue
            if value is None or not math.isfinite(float(value)):
                prepared_row.append(LARGE_PENALTY)
                continue
            usable += 1
            prepared_row.append(float(value))
        costs.append(prepared_row)

    if usable == 0:
        raise OptimizationError("No reachable stop pairs in the cost matrix.")
    return costs


def route_cost(order: Sequence[int], costs: Sequence[Sequence[float]], round_trip: bool = False) -> float:
    total = 0.0
    for current, following in zip(order, order[1:]):
        total += costs[current][following]
    if round_trip and len(order) > 1:
        total += costs[order[-1]][order[0]]
    return total


def _better(cost_a: float, order_a: tuple[int, ...], cost_b: float, order_b: tuple[int, ...]) -> bool:
    if cost_a < cost_b - COST_EPSILON:
        return True
    if abs(cost_a - cost_b) <= COST_EPSILON:
        return order_a < order_b
    return False


class RouteOptimizer:
    """Orders a stop sequence under fixed-endpoint constraints."""

    def __init__(
        self,
        *,
        max_stops: int | None = None,
        max_swap_passes: int | None = None,
        cache_size: int | None = None,
    ) -> None:
        self.max_stops = max_stops if max_stops is not None else settings.optimizer_max_stops
        self.max_swap_passes = (
            max_swap_passes if max_swap_passes is not None else settings.optimizer_max_swap_passes
        )
        self.cache_size = cache_size if cache_size is not None else settings.optimizer_cache_size
        self._cache: OrderedDict[tuple, tuple[str, ...]] = OrderedDict()
        self._cache_lock = threading.Lock()

    def order(
        self,
        stops: Sequence[Stop],
        constraints: RouteConstraints,
        matrix: MatrixSource,
    ) -> tuple[int, ...]:
        """Return a permutation of ``range(len(stops))``.

        ``matrix`` may be a callable; it is only invoked when more than one
        ordering is possible and no memoized answer exists.
        """
        count = len(stops)
        if count > self.max_stops:
            raise OptimizationError(
                f"Too many stops: {count} (maximum {self.max_stops})."
            )
        if not needs_matrix(count, constraints):
            return tuple(range(count))

        key = self._cache_key(stops, constraints)
        cached = self._cached_order(key, stops, constraints)
        if cached is not None:
            logger.debug(f"Reusing memoized ordering for {count} stops")
            return cached

        cost_matrix = matrix() if callable(matrix) else matrix
        costs = _prepare_costs(cost_matrix, count, constraints.include_traffic)
        ordering = self._solve(costs, constraints)

        logger.info(
            f"Optimized {count} stops: cost {route_cost(ordering, costs, constraints.round_trip):.1f} "
            f"(input order {route_cost(tuple(range(count)), costs, constraints.round_trip):.1f}, "
            f"matrix source {cost_matrix.source})"
        )
        self._remember(key, stops, ordering)
        return ordering

    def _solve(self, costs: list[list[float]], constraints: RouteConstraints) -> tuple[int, ...]:
        count = len(costs)
        start, end = _pins(count, constraints)
        pinned = {index for index in (start, end) if index is not None}
        free = [index for index in range(count) if index not in pinned]

        candidates: list[tuple[int, ...]] = [tuple(range(count))]
        starts = [start] if start is not None else list(free)
        for first in starts:
            candidates.append(self._nearest_neighbour(first, free, end, costs))

        best = candidates[0]
        best_cost = route_cost(best, costs, constraints.round_trip)
        for candidate in candidates[1:]:
            candidate_cost = route_cost(candidate, costs, constraints.round_trip)
            if _better(candidate_cost, candidate, best_cost, best):
                best, best_cost = candidate, candidate_cost

        return self._improve(best, best_cost, costs, constraints, start is not None, end is not None)

    @staticmethod
    def _nearest_neighbour(
        first: int,
        free: Sequence[int],
        end: Optional[int],
        costs: Sequence[Sequence[float]],
    ) -> tuple[int, ...]:
        path = [first]
        remaining = [index for index in free if index != first]
        while remaining:
            last = path[-1]
            following = min(remaining, key=lambda index: (costs[last][index], index))
            path.append(following)
            remaining.remove(following)
        if end is not None:
            path.append(end)
        return tuple(path)

    def _improve(
        self,
        ordering: tuple[int, ...],
        current_cost: float,
        costs: Sequence[Sequence[float]],
        constraints: RouteConstraints,
        start_pinned: bool,
        end_pinned: bool,
    ) -> tuple[int, ...]:
        first_movable = 1 if start_pinned else 0
        last_movable = len(ordering) - (2 if end_pinned else 1)
        positions = range(first_movable, last_movable + 1)

        current = list(ordering)
        for _ in range(self.max_swap_passes):
            improved = False
            for i in positions:
                for j in positions:
                    if j <= i:
                        continue
                    current[i], current[j] = current[j], current[i]
                    swapped_cost = route_cost(current, costs, constraints.round_trip)
                    if _better(swapped_cost, tuple(current), current_cost, ordering):
                        ordering, current_cost = tuple(current), swapped_cost
                        improved = True
                    else:
                        current[i], current[j] = current[j], current[i]
            if not improved:
                break
        return ordering

    # Memoization keyed on the stop set, not the input order.

    def _cache_key(self, stops: Sequence[Stop], constraints: RouteConstraints) -> tuple:
        start, end = _pins(len(stops), constraints)
        return (
            fingerprint(stops),
            len(stops),
            stop_identifier(stops[start]) if start is not None else None,
            stop_identifier(stops[end]) if end is not None else None,
            constraints,
        )

    def _cached_order(
        self, key: tuple, stops: Sequence[Stop], constraints: RouteConstraints
    ) -> Optional[tuple[int, ...]]:
        if self.cache_size <= 0:
            return None
        with self._cache_lock:
            identifiers = self._cache.get(key)
            if identifiers is None:
                return None
            self._cache.move_to_end(key)

        unused: dict[str, list[int]] = {}
        for index, stop in enumerate(stops):
            unused.setdefault(stop_identifier(stop), []).append(index)
        ordering = []
        for identifier in identifiers:
            slots = unused.get(identifier)
            if not slots:
                return None
            ordering.append(slots.pop(0))

        start, end = _pins(len(stops), constraints)
        if start is not None and ordering[0] != start:
            return None
        if end is not None and ordering[-1] != end:
            return None
        return tuple(ordering)

    def _remember(self, key: tuple, stops: Sequence[Stop], ordering: tuple[int, ...]) -> None:
        if self.cache_size <= 0:
            return
        with self._cache_lock:
            self._cache[key] = tuple(stop_identifier(stops[index]) for index in ordering)
            self._cache.move_to_end(key)
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)
