"""HTTP client for interacting with OSRM services."""

from __future__ import annotations

import logging
import time
from typing import Protocol, Sequence

import httpx

from ...config import settings
from ...errors import RoutingError, RoutingReason
from ...models.domain import Leg, Measure, Stop
from ..outputs.formatting import format_distance, format_duration

NO_ROUTE_CODES = {"NoRoute", "NoSegment", "NoMatch", "NoTrips"}

logger = logging.getLogger(__name__)


class DirectionsProvider(Protocol):
    def route(self, ordered_stops: Sequence[Stop], traffic_enabled: bool) -> list[Leg]:
        ...


class MatrixProvider(Protocol):
    def table(self, coordinates: Sequence[tuple[float, float]]) -> dict:
        ...


class OSRMClient:
    """Directions and matrix lookups against an OSRM server.

    OSRM has no live traffic feed, so ``traffic_enabled`` is accepted and the
    profile's typical duration is used as the estimate.
    """

    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        units: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.osrm_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.directions_max_retries
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.directions_backoff_seconds
        )
        self.units = units or settings.units
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self._transport,
        )

    def _get_json(self, url: str, params: dict, operation: str) -> dict:
        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    return self._request_once(client, url, params, operation)
                except RoutingError as error:
                    attempt += 1
                    if error.reason == RoutingReason.NO_ROUTE or attempt > self.max_retries:
                        raise
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(
                        f"OSRM {operation} failed ({error.reason.value}), retrying in {wait_time:.1f}s "
                        f"(attempt {attempt}/{self.max_retries})"
                    )
                    time.sleep(wait_time)
        finally:
            client.close()

    def _request_once(self, client: httpx.Client, url: str, params: dict, operation: str) -> dict:
        try:
            response = client.get(url, params=params)
        except httpx.TimeoutException as e:
            logger.warning(f"OSRM {operation} request timed out: {e}")
            raise RoutingError(f"OSRM {operation} request timed out.", RoutingReason.UNAVAILABLE) from e
        except (httpx.ConnectError, httpx.NetworkError) as e:
            raise RoutingError(
                f"Failed to connect to OSRM service at {self.base_url}: {e}",
                RoutingReason.UNAVAILABLE,
            ) from e
        except httpx.HTTPError as e:
            raise RoutingError(f"OSRM {operation} request failed: {e}", RoutingReason.UNAVAILABLE) from e

        if response.status_code == 429:
            raise RoutingError("OSRM rate limit exceeded.", RoutingReason.RATE_LIMITED)

        try:
            data = response.json()
        except ValueError:
            data = None

        code = data.get("code") if isinstance(data, dict) else None
        if code in NO_ROUTE_CODES:
            message = data.get("message") or "No route could be calculated for the provided addresses."
            raise RoutingError(message, RoutingReason.NO_ROUTE)
        if response.status_code >= 400:
            raise RoutingError(
                f"OSRM {operation} request failed with HTTP {response.status_code}.",
                RoutingReason.UNAVAILABLE,
            )
        if not isinstance(data, dict) or code != "Ok":
            message = data.get("message") if isinstance(data, dict) else "invalid response"
            raise RoutingError(f"OSRM {operation} request failed: {message}", RoutingReason.UNAVAILABLE)
        return data

    def table(self, coordinates: Sequence[tuple[float, float]]) -> dict:
        """Get the distance/duration matrix for (lat, lon) coordinates."""
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM table.")

        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in coordinates)
        url = f"{self.base_url}/table/v1/{self.profile}/{coordinate_str}"
        data = self._get_json(url, {"annotations": "duration,distance"}, "table")
        if "durations" not in data or "distances" not in data:
            raise RoutingError("OSRM response missing durations/distances.", RoutingReason.UNAVAILABLE)
        return {"durations": data["durations"], "distances": data["distances"]}

    def route(self, ordered_stops: Sequence[Stop], traffic_enabled: bool = False) -> list[Leg]:
        """Return one leg per consecutive pair of ``ordered_stops``."""
        if len(ordered_stops) < 2:
            return []

        # OSRM route endpoint expects coordinates as "lon,lat;lon,lat;..."
        coordinate_str = ";".join(f"{stop.longitude},{stop.latitude}" for stop in ordered_stops)
        params = {
            "overview": "false",
            "steps": "false",
        }
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}"
        data = self._get_json(url, params, "route")

        routes = data.get("routes") or []
        if not routes:
            raise RoutingError(
                "No route could be calculated for the provided addresses.", RoutingReason.NO_ROUTE
            )
        raw_legs = routes[0].get("legs") or []
        if len(raw_legs) != len(ordered_stops) - 1:
            raise RoutingError(
                f"OSRM returned {len(raw_legs)} legs for {len(ordered_stops)} stops.",
                RoutingReason.UNAVAILABLE,
            )

        legs = []
        for raw in raw_legs:
            meters = float(raw.get("distance") or 0.0)
            seconds = float(raw.get("duration") or 0.0)
            legs.append(
                Leg(
                    distance=Measure(value=meters, text=format_distance(meters, self.units)),
                    duration=Measure(value=seconds, text=format_duration(seconds)),
                )
            )
        logger.debug(f"OSRM route returned {len(legs)} legs (traffic requested: {traffic_enabled})")
        return legs


def check_health(base_url: str | None = None) -> bool:
    """Check OSRM service health by making a simple table request.

    Public OSRM endpoints may not have a /health endpoint, so we test
    connectivity by making a minimal table request with two coordinates.
    """
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        test_coords = "13.388860,52.517037;13.385983,52.496891"
        url = f"{base.rstrip('/')}/table/v1/{settings.osrm_profile}/{test_coords}"
        response = httpx.get(url, params={"annotations": "duration"}, timeout=5.0)
        response.raise_for_status()
        data = response.json()
        return "durations" in data and isinstance(data.get("durations"), list)
    except (httpx.HTTPError, ValueError):
        return False
