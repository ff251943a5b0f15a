"""Order-independent stop-set identity and saved-route similarity."""

from __future__ import annotations

import hashlib
import re
from typing import Iterable, Optional, Sequence

from ...config import settings
from ...models.domain import SavedRoute, Stop

_WHITESPACE = re.compile(r"\s+")
_TRAILING_PUNCTUATION = re.compile(r"[\s.,;]+$")


def normalize_address(address: str) -> str:
    collapsed = _WHITESPACE.sub(" ", address.strip().casefold())
    return _TRAILING_PUNCTUATION.sub("", collapsed)


def stop_identifier(stop: Stop, precision: int | None = None) -> str:
    """Return the most stable identifier available for a stop.

    Place ids win over addresses, which win over rounded coordinates. The
    display name is never used since users edit it freely.
    """
    if stop.place_id and stop.place_id.strip():
        return f"place:{stop.place_id.strip()}"
    address = normalize_address(stop.address or "")
    if address:
        return f"addr:{address}"
    digits = settings.dedup_coordinate_precision if precision is None else precision
    return f"geo:{stop.latitude:.{digits}f},{stop.longitude:.{digits}f}"


def fingerprint(stops: Iterable[Stop]) -> str:
    identifiers = sorted({stop_identifier(stop) for stop in stops})
    digest = hashlib.sha256("\n".join(identifiers).encode("utf-8"))
    return digest.hexdigest()


def overlap_ratio(candidate: Sequence[Stop], stored: Sequence[Stop]) -> float:
    """Share of interior stops two routes have in common.

    Returns 0.0 unless both routes start and end at the same place.
    """
    if not candidate or not stored:
        return 0.0
    if stop_identifier(candidate[0]) != stop_identifier(stored[0]):
        return 0.0
    if stop_identifier(candidate[-1]) != stop_identifier(stored[-1]):
        return 0.0

    interior_a = {stop_identifier(stop) for stop in candidate[1:-1]}
    interior_b = {stop_identifier(stop) for stop in stored[1:-1]}
    largest = max(len(interior_a), len(interior_b))
    if largest == 0:
        return 1.0
    return len(interior_a & interior_b) / largest


def find_similar_route(
    candidate: Sequence[Stop],
    saved_routes: Iterable[SavedRoute],
    threshold: float | None = None,
) -> Optional[SavedRoute]:
    """Find a saved route equivalent to ``candidate``.

    An exact fingerprint match is preferred (most recent first). Otherwise the
    saved route with the highest interior overlap above ``threshold`` wins.
    """
    limit = settings.dedup_similarity_threshold if threshold is None else threshold
    candidate_print = fingerprint(candidate)

    exact: list[SavedRoute] = []
    scored: list[tuple[float, SavedRoute]] = []
    for route in saved_routes:
        stored_stops = route.route_result.optimized_stops
        stored_print = route.fingerprint or fingerprint(stored_stops)
        if stored_print == candidate_print:
            exact.append(route)
            continue
        ratio = overlap_ratio(candidate, stored_stops)
        if ratio > limit:
            scored.append((ratio, route))

    if exact:
        return max(exact, key=lambda route: route.saved_at)
    if scored:
        return max(scored, key=lambda item: (item[0], item[1].saved_at))[1]
    return None
