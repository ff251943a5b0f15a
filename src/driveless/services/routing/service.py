"""Route planning orchestration: ordering, directions, assembly and saving."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Generic, Optional, Sequence, TypeVar

from ...config import settings
from ...errors import OptimizationError, RoutingError
from ...models.domain import OptimizedRouteResult, OriginalRouteInputs, SavedRoute, Stop
from ...persistence.route_store import RouteStore
from ..geospatial import haversine_table
from ..statistics.activity import ActivityRecorder
from .assembler import assemble_route
from .models import CostMatrix, RouteConstraints
from .optimizer import RouteOptimizer
from .osrm_client import DirectionsProvider, MatrixProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

ANONYMOUS = "anonymous"


class LatestResultSlot(Generic[T]):
    """Holds the result of the newest request.

    Every request takes a ticket; a result may only be published while its
    ticket is still the newest one issued.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._issued = 0
        self._value: Optional[T] = None

    def issue(self) -> int:
        with self._lock:
            self._issued += 1
            return self._issued

    def publish(self, ticket: int, value: T) -> bool:
        with self._lock:
            if ticket != self._issued:
                return False
            self._value = value
            return True

    @property
    def value(self) -> Optional[T]:
        with self._lock:
            return self._value


@dataclass(frozen=True, slots=True)
class PlannedRoute:
    result: OptimizedRouteResult
    inputs: OriginalRouteInputs
    is_favorite: bool = False
    saved_route: Optional[SavedRoute] = None
    matrix_source: Optional[str] = None


def constraints_for(inputs: OriginalRouteInputs) -> RouteConstraints:
    return RouteConstraints(
        fixed_start=inputs.fixed_start,
        fixed_end=inputs.fixed_end,
        round_trip=inputs.round_trip,
        include_traffic=inputs.include_traffic,
    )


def _mostly_unreachable(table: dict) -> bool:
    """True when more than half of the origin's outgoing pairs are unreachable."""
    durations = table.get("durations") or []
    if not durations:
        return True
    first_row = durations[0]
    others = len(first_row) - 1
    if others <= 0:
        return False
    unreachable = sum(1 for index in range(1, len(first_row)) if first_row[index] is None)
    return unreachable / others > 0.5


class RoutePlanner:
    """Turn a user's stop list into an optimized, assembled and optionally saved route."""

    def __init__(
        self,
        optimizer: RouteOptimizer,
        directions: DirectionsProvider,
        matrix_provider: MatrixProvider | None = None,
        store: RouteStore | None = None,
        *,
        units: str | None = None,
        max_waypoints: int | None = None,
        auto_save: bool | None = None,
        haversine_fallback: bool | None = None,
        fallback_speed_kmh: float | None = None,
        recorder: ActivityRecorder | None = None,
    ) -> None:
        self.optimizer = optimizer
        self.directions = directions
        self.matrix_provider = matrix_provider
        self.store = store
        self.units = units or settings.units
        self.max_waypoints = settings.max_waypoints if max_waypoints is None else max_waypoints
        self.auto_save = settings.auto_save_routes if auto_save is None else auto_save
        self.haversine_fallback = (
            settings.matrix_haversine_fallback if haversine_fallback is None else haversine_fallback
        )
        self.fallback_speed_kmh = (
            settings.fallback_average_speed_kmh if fallback_speed_kmh is None else fallback_speed_kmh
        )
        self.recorder = recorder
        self._slots: dict[str, LatestResultSlot[PlannedRoute]] = {}
        self._slots_lock = threading.Lock()

    def _validate(self, inputs: OriginalRouteInputs) -> None:
        if not inputs.stops:
            raise ValueError("At least one stop is required.")
        if len(inputs.stops) > self.max_waypoints:
            raise ValueError(
                f"Too many stops: {len(inputs.stops)} (maximum {self.max_waypoints})."
            )

    def _fallback_matrix(self, coordinates: list[tuple[float, float]]) -> CostMatrix:
        table = haversine_table(coordinates, self.fallback_speed_kmh)
        return CostMatrix.from_table(table, source="haversine")

    def build_cost_matrix(self, stops: Sequence[Stop]) -> CostMatrix:
        coordinates = [stop.coordinates for stop in stops]
        if self.matrix_provider is None:
            if self.haversine_fallback:
                return self._fallback_matrix(coordinates)
            raise OptimizationError("No travel-time matrix provider is configured.")

        try:
            table = self.matrix_provider.table(coordinates)
        except (RoutingError, ValueError) as e:
            if not self.haversine_fallback:
                raise OptimizationError(f"Travel-time matrix unavailable: {e}") from e
            logger.warning(f"Matrix request failed ({e}). Using haversine fallback for {len(stops)} stops.")
            return self._fallback_matrix(coordinates)

        if self.haversine_fallback and _mostly_unreachable(table):
            logger.warning(
                f"Too many unreachable pairs from the first stop. Using haversine fallback for {len(stops)} stops."
            )
            return self._fallback_matrix(coordinates)
        try:
            return CostMatrix.from_table(table)
        except ValueError as e:
            raise OptimizationError(str(e)) from e

    def slot_for(self, requester: str) -> LatestResultSlot[PlannedRoute]:
        """The supersession slot of one requester; other requesters never interfere."""
        with self._slots_lock:
            slot = self._slots.get(requester)
            if slot is None:
                slot = LatestResultSlot()
                self._slots[requester] = slot
            return slot

    def _record_failure(
        self, inputs: OriginalRouteInputs, error: Exception, requester: Optional[str]
    ) -> None:
        if self.recorder is None:
            return
        self.recorder.route_calculated(inputs, user_id=requester, error=error)
        self.recorder.error(
            error,
            user_id=requester,
            location="route_planner",
            additional_data={"stopCount": len(inputs.stops)},
        )

    def plan(
        self,
        inputs: OriginalRouteInputs,
        *,
        save: bool | None = None,
        name: str | None = None,
        favorite: bool = False,
        requester: str | None = None,
    ) -> Optional[PlannedRoute]:
        """Plan ``inputs`` for ``requester``.

        Returns ``None`` when the same requester issued a newer request before
        this one finished; the superseded result is neither saved nor recorded.
        """
        self._validate(inputs)
        slot = self.slot_for(requester or ANONYMOUS)
        ticket = slot.issue()

        stops = list(inputs.stops)
        constraints = constraints_for(inputs)
        matrix_sources: list[str] = []

        def cost_matrix() -> CostMatrix:
            matrix = self.build_cost_matrix(stops)
            matrix_sources.append(matrix.source)
            return matrix

        try:
            ordering = self.optimizer.order(stops, constraints, cost_matrix)
            ordered = [stops[index] for index in ordering]
            if inputs.round_trip and len(ordered) > 1:
                ordered.append(ordered[0])

            legs = self.directions.route(ordered, inputs.include_traffic) if len(ordered) > 1 else []
            result = assemble_route(ordered, legs, self.units)
        except (OptimizationError, RoutingError) as e:
            logger.error(f"Route calculation failed for {len(stops)} stops: {e}")
            self._record_failure(inputs, e, requester)
            raise

        should_save = self.store is not None and (self.auto_save if save is None else save)
        is_favorite = favorite
        if self.store is not None and not should_save:
            is_favorite = favorite or self.store.favorite_state_for(result, owner=requester)

        planned = PlannedRoute(
            result=result,
            inputs=inputs,
            is_favorite=is_favorite,
            matrix_source=matrix_sources[0] if matrix_sources else None,
        )
        # Only a published result may be saved.
        if not slot.publish(ticket, planned):
            logger.info(f"Discarding superseded route result (request {ticket} from {requester or ANONYMOUS})")
            return None

        if should_save:
            saved_route = self.store.save_or_update(
                result, inputs, name=name, is_favorite=favorite, owner=requester
            )
            planned = replace(planned, is_favorite=saved_route.is_favorite, saved_route=saved_route)
            slot.publish(ticket, planned)

        if self.recorder is not None:
            self.recorder.route_calculated(inputs, result, user_id=requester)
        logger.info(
            f"Planned route with {len(result.optimized_stops)} stops: "
            f"{result.total_distance}, {result.estimated_time}"
        )
        return planned
