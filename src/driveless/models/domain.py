"""Domain models for stops, optimized routes and saved routes."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True, slots=True)
class Stop:
    """A single waypoint entered by the user."""

    display_name: str
    address: str
    latitude: float
    longitude: float
    place_id: Optional[str] = None

    @property
    def coordinates(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class Measure:
    value: float
    text: str


@dataclass(frozen=True, slots=True)
class Leg:
    """Distance (meters) and duration (seconds) between two consecutive stops."""

    distance: Measure
    duration: Measure


@dataclass(frozen=True, slots=True)
class OptimizedRouteResult:
    """Ordered stops with one leg per consecutive pair.

    Build through ``assemble_route`` so that the totals always reflect the legs.
    """

    optimized_stops: tuple[Stop, ...]
    legs: tuple[Leg, ...]
    total_distance: str
    estimated_time: str


@dataclass(frozen=True, slots=True)
class OriginalRouteInputs:
    """The request as the user entered it, before any reordering."""

    stops: tuple[Stop, ...]
    fixed_start: bool = True
    fixed_end: bool = True
    round_trip: bool = False
    include_traffic: bool = False


@dataclass(frozen=True, slots=True)
class SavedRoute:
    id: str
    name: str
    route_result: OptimizedRouteResult
    original_inputs: OriginalRouteInputs
    saved_at: datetime
    is_favorite: bool = False
    fingerprint: str = field(default="", compare=False)
    user_id: Optional[str] = None

    @property
    def summary(self) -> str:
        stop_count = len(self.route_result.optimized_stops)
        return f"{stop_count} stops • {self.route_result.total_distance} • {self.route_result.estimated_time}"
