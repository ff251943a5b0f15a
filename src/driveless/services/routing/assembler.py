"""Combine an ordering with its legs into an OptimizedRouteResult."""

from __future__ import annotations

from typing import Sequence

from ...config import settings
from ...errors import RoutingError
from ...models.domain import Leg, OptimizedRouteResult, Stop
from ..outputs.formatting import format_distance, format_duration


def assemble_route(
    ordered_stops: Sequence[Stop],
    legs: Sequence[Leg],
    units: str | None = None,
) -> OptimizedRouteResult:
    """Build the result; totals are always the formatted sums of the legs."""
    expected = max(len(ordered_stops) - 1, 0)
    if len(legs) != expected:
        raise RoutingError(
            f"Directions returned {len(legs)} legs for {len(ordered_stops)} stops (expected {expected})."
        )

    total_meters = sum(leg.distance.value for leg in legs)
    total_seconds = sum(leg.duration.value for leg in legs)
    return OptimizedRouteResult(
        optimized_stops=tuple(ordered_stops),
        legs=tuple(legs),
        total_distance=format_distance(total_meters, units or settings.units),
        estimated_time=format_duration(total_seconds),
    )
