"""Serializers between route domain objects and persisted records."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional

from ...models.domain import (
    Leg,
    Measure,
    OptimizedRouteResult,
    OriginalRouteInputs,
    SavedRoute,
    Stop,
)
from ..routing.fingerprint import fingerprint
from ...persistence.collections import as_datetime

_AFTER_COMMA = re.compile(r"\s*,.*$")
_COMPANY_SUFFIX = re.compile(r"\s*(Inc|LLC|Corp|Ltd)\.?$", re.IGNORECASE)


def stop_to_json(stop: Stop) -> dict:
    return {
        "displayName": stop.display_name,
        "address": stop.address,
        "lat": stop.latitude,
        "lng": stop.longitude,
        "placeId": stop.place_id,
    }


def stop_from_json(data: dict) -> Stop:
    latitude = data.get("lat", data.get("latitude", 0.0))
    longitude = data.get("lng", data.get("longitude", 0.0))
    return Stop(
        display_name=data.get("displayName") or "",
        address=data.get("address") or "",
        latitude=float(latitude or 0.0),
        longitude=float(longitude or 0.0),
        place_id=data.get("placeId"),
    )


def _measure_from_json(data: Optional[dict]) -> Measure:
    data = data or {}
    return Measure(value=float(data.get("value") or 0.0), text=data.get("text") or "")


def leg_to_json(leg: Leg) -> dict:
    return {
        "distance": {"value": leg.distance.value, "text": leg.distance.text},
        "duration": {"value": leg.duration.value, "text": leg.duration.text},
    }


def leg_from_json(data: dict) -> Leg:
    return Leg(
        distance=_measure_from_json(data.get("distance")),
        duration=_measure_from_json(data.get("duration")),
    )


def result_to_json(result: OptimizedRouteResult) -> dict:
    return {
        "optimizedStops": [stop_to_json(stop) for stop in result.optimized_stops],
        "legs": [leg_to_json(leg) for leg in result.legs],
        "totalDistance": result.total_distance,
        "estimatedTime": result.estimated_time,
    }


def result_from_json(data: dict) -> OptimizedRouteResult:
    """Rebuild a stored result verbatim; stored totals are not recomputed."""
    return OptimizedRouteResult(
        optimized_stops=tuple(stop_from_json(stop) for stop in data.get("optimizedStops") or []),
        legs=tuple(leg_from_json(leg) for leg in data.get("legs") or []),
        total_distance=data.get("totalDistance") or "",
        estimated_time=data.get("estimatedTime") or "",
    )


def inputs_to_json(inputs: OriginalRouteInputs) -> dict:
    return {
        "stops": [stop_to_json(stop) for stop in inputs.stops],
        "fixedStart": inputs.fixed_start,
        "fixedEnd": inputs.fixed_end,
        "roundTrip": inputs.round_trip,
        "includeTraffic": inputs.include_traffic,
    }


def inputs_from_json(data: dict) -> OriginalRouteInputs:
    return OriginalRouteInputs(
        stops=tuple(stop_from_json(stop) for stop in data.get("stops") or []),
        fixed_start=bool(data.get("fixedStart", True)),
        fixed_end=bool(data.get("fixedEnd", True)),
        round_trip=bool(data.get("roundTrip", False)),
        include_traffic=bool(data.get("includeTraffic", False)),
    )


def saved_route_to_record(route: SavedRoute) -> dict[str, Any]:
    return {
        "id": route.id,
        "name": route.name,
        "savedAt": route.saved_at.isoformat(),
        "isFavorite": route.is_favorite,
        "userId": route.user_id,
        "fingerprint": route.fingerprint or fingerprint(route.route_result.optimized_stops),
        "routeResult": result_to_json(route.route_result),
        "originalInputs": inputs_to_json(route.original_inputs),
    }


def saved_route_from_record(record: dict[str, Any]) -> SavedRoute:
    route_result = result_from_json(record.get("routeResult") or {})
    saved_at = as_datetime(record.get("savedAt")) or datetime.now(timezone.utc)
    return SavedRoute(
        id=record.get("id") or "",
        name=record.get("name") or "",
        route_result=route_result,
        original_inputs=inputs_from_json(record.get("originalInputs") or {}),
        saved_at=saved_at,
        is_favorite=bool(record.get("isFavorite", False)),
        fingerprint=record.get("fingerprint") or fingerprint(route_result.optimized_stops),
        user_id=record.get("userId"),
    )


def _short_name(full_name: str) -> str:
    name = _AFTER_COMMA.sub("", full_name)
    name = _COMPANY_SUFFIX.sub("", name).strip()
    if len(name) > 15:
        name = f"{name[:12]}..."
    return name or "Unknown"


def generate_route_name(result: OptimizedRouteResult, now: Optional[datetime] = None) -> str:
    """Name a route after its endpoints, e.g. ``"Home + 2 stops → Office"``."""
    stops = result.optimized_stops
    if not stops:
        moment = now or datetime.now()
        return f"Route {moment.month}/{moment.day}"
    first = _short_name(stops[0].display_name or stops[0].address)
    if len(stops) == 1:
        return f"To {first}"
    last = _short_name(stops[-1].display_name or stops[-1].address)
    if len(stops) == 2:
        return f"{first} → {last}"
    return f"{first} + {len(stops) - 2} stops → {last}"
