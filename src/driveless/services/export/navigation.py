"""Hand-off links that open an optimized route in a navigation app."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Sequence

from ...models.domain import OptimizedRouteResult, Stop


class NavigationApp(str, Enum):
    GOOGLE_MAPS = "google_maps"
    WAZE = "waze"
    APPLE_MAPS = "apple_maps"


def _location(stop: Stop) -> str:
    return f"{stop.latitude},{stop.longitude}"


def google_maps_url(stops: Sequence[Stop]) -> str:
    """Directions URL visiting every stop in order.

    Args:
        stops: Stops in visiting order.

    Returns:
        ``https://www.google.com/maps/dir/origin/waypoint/.../destination``
    """
    if not stops:
        return "https://maps.google.com/"
    if len(stops) == 1:
        return f"https://www.google.com/maps/search/?api=1&query={_location(stops[0])}"
    return "https://www.google.com/maps/dir/" + "/".join(_location(stop) for stop in stops)


def waze_url(stops: Sequence[Stop]) -> str:
    """Waze only navigates to a single point, so target the first stop after the origin."""
    if not stops:
        return "https://waze.com/"
    target = stops[0] if len(stops) == 1 else stops[1]
    return f"https://waze.com/ul?ll={_location(target)}&navigate=yes"


def apple_maps_url(stops: Sequence[Stop]) -> str:
    if not stops:
        return "maps://"
    if len(stops) == 1:
        return f"maps://?daddr={_location(stops[0])}&dirflg=d"
    url = f"maps://?saddr={_location(stops[0])}&daddr={_location(stops[-1])}"
    for waypoint in stops[1:-1]:
        url += f"+to:{_location(waypoint)}"
    return url + "&dirflg=d"


def navigation_links(result: OptimizedRouteResult) -> Dict[str, str]:
    stops = result.optimized_stops
    return {
        NavigationApp.GOOGLE_MAPS.value: google_maps_url(stops),
        NavigationApp.WAZE.value: waze_url(stops),
        NavigationApp.APPLE_MAPS.value: apple_maps_url(stops),
    }
