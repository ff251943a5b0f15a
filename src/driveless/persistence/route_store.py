"""Saved-route storage with deduplication, favorites and windowed counts."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone, tzinfo
from typing import Callable, Iterable, Optional

from ..config import settings
from ..errors import PersistenceError
from ..models.domain import OptimizedRouteResult, OriginalRouteInputs, SavedRoute
from ..services.outputs.route_formatter import (
    generate_route_name,
    saved_route_from_record,
    saved_route_to_record,
)
from ..services.routing import fingerprint as fingerprints
from ..services.statistics.metrics import growth_rate, local_windows
from ..services.statistics.models import RouteStatistics
from .collections import DocumentCollection

logger = logging.getLogger(__name__)

SAVED = "saved"
UPDATED = "updated"
DELETED = "deleted"
CLEARED = "cleared"


@dataclass(frozen=True, slots=True)
class StoreEvent:
    kind: str
    route_id: Optional[str] = None


StoreListener = Callable[[StoreEvent], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def sort_recent(routes: Iterable[SavedRoute]) -> list[SavedRoute]:
    return sorted(routes, key=lambda route: route.saved_at, reverse=True)


def favorites_only(routes: Iterable[SavedRoute]) -> list[SavedRoute]:
    return [route for route in routes if route.is_favorite]


class RouteStore:
    """Owns every saved route; callers only ever receive copies.

    Read-modify-write operations on a single route are serialized by a
    per-id lock. Inserts, dedup saves and ``clear_all`` take the store-wide
    lock. Listeners are notified after the per-id lock is released.

    Routes carry the id of the user who saved them. Passing ``owner`` limits
    a call to that user's routes; ``None`` addresses every route.
    """

    def __init__(
        self,
        collection: DocumentCollection,
        *,
        clock: Callable[[], datetime] | None = None,
        max_saved_routes: int | None = None,
        similarity_threshold: float | None = None,
    ) -> None:
        self.collection = collection
        self._clock = clock or _utc_now
        self.max_saved_routes = (
            settings.max_saved_routes if max_saved_routes is None else max_saved_routes
        )
        self.similarity_threshold = (
            settings.dedup_similarity_threshold if similarity_threshold is None else similarity_threshold
        )
        self._store_lock = threading.RLock()
        self._registry_lock = threading.Lock()
        self._id_locks: dict[str, threading.Lock] = {}
        self._listeners: list[StoreListener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def subscribe(self, listener: StoreListener) -> None:
        with self._registry_lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def unsubscribe(self, listener: StoreListener) -> None:
        with self._registry_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _emit(self, kind: str, route_id: Optional[str] = None) -> None:
        with self._registry_lock:
            listeners = list(self._listeners)
        event = StoreEvent(kind=kind, route_id=route_id)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(f"Route store listener failed for {kind} event on {route_id}")

    def _lock_for(self, route_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._id_locks.get(route_id)
            if lock is None:
                lock = threading.Lock()
                self._id_locks[route_id] = lock
            return lock

    def _forget_lock(self, route_id: str) -> None:
        with self._registry_lock:
            self._id_locks.pop(route_id, None)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, route_id: str, owner: str | None = None) -> Optional[SavedRoute]:
        """Return the route, or ``None`` when it is missing or belongs to another owner."""
        record = self.collection.get(route_id)
        if not record:
            return None
        if owner is not None and record.get("userId") != owner:
            return None
        return saved_route_from_record(record)

    def list_all(self, owner: str | None = None) -> list[SavedRoute]:
        records = self.collection.all() if owner is None else self.collection.where("userId", owner)
        return [saved_route_from_record(record) for record in records]

    def _require(self, route_id: str, owner: str | None = None) -> SavedRoute:
        route = self.get(route_id, owner)
        if route is None:
            raise PersistenceError(f"Saved route '{route_id}' not found.")
        return route

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def save(
        self,
        result: OptimizedRouteResult,
        inputs: OriginalRouteInputs,
        name: str | None = None,
        is_favorite: bool = False,
        owner: str | None = None,
    ) -> SavedRoute:
        """Insert a new saved route; no duplicate check is made."""
        now = self._clock()
        route = SavedRoute(
            id=str(uuid.uuid4()),
            name=name or generate_route_name(result, now),
            route_result=result,
            original_inputs=inputs,
            saved_at=now,
            is_favorite=is_favorite,
            fingerprint=fingerprints.fingerprint(result.optimized_stops),
            user_id=owner,
        )
        with self._store_lock:
            self.collection.insert(saved_route_to_record(route))
            logger.info(f"Saved route {route.id} ({route.name})")
            self._enforce_retention(owner)
        self._emit(SAVED, route.id)
        return route

    def update(self, route: SavedRoute) -> SavedRoute:
        with self._lock_for(route.id):
            updated = self._replace(route)
        self._emit(UPDATED, updated.id)
        return updated

    def _replace(self, route: SavedRoute) -> SavedRoute:
        route = replace(route, fingerprint=fingerprints.fingerprint(route.route_result.optimized_stops))
        if not self.collection.replace(route.id, saved_route_to_record(route)):
            raise PersistenceError(f"Saved route '{route.id}' not found.")
        return route

    def rename(self, route_id: str, name: str, owner: str | None = None) -> SavedRoute:
        name = name.strip()
        if not name:
            raise ValueError("Route name must not be empty.")
        with self._lock_for(route_id):
            route = self._replace(replace(self._require(route_id, owner), name=name))
        self._emit(UPDATED, route_id)
        return route

    def toggle_favorite(self, route_id: str, owner: str | None = None) -> SavedRoute:
        with self._lock_for(route_id):
            route = self._require(route_id, owner)
            route = self._replace(replace(route, is_favorite=not route.is_favorite))
        self._emit(UPDATED, route_id)
        return route

    def set_favorite(self, route_id: str, value: bool, owner: str | None = None) -> SavedRoute:
        with self._lock_for(route_id):
            route = self._require(route_id, owner)
            if route.is_favorite == value:
                return route
            route = self._replace(replace(route, is_favorite=value))
        self._emit(UPDATED, route_id)
        return route

    def delete(self, route_id: str, owner: str | None = None) -> bool:
        with self._lock_for(route_id):
            try:
                if owner is not None and self.get(route_id, owner) is None:
                    return False
                removed = self.collection.delete(route_id)
            except PersistenceError as e:
                logger.error(f"Failed to delete saved route {route_id}: {e}")
                return False
        if removed:
            self._forget_lock(route_id)
            self._emit(DELETED, route_id)
        return removed

    def clear_all(self, owner: str | None = None) -> bool:
        """Remove every saved route, or only those of ``owner`` when given."""
        with self._store_lock:
            try:
                if owner is None:
                    removed = self.collection.delete_all()
                    with self._registry_lock:
                        self._id_locks.clear()
                else:
                    removed = 0
                    for record in self.collection.where("userId", owner):
                        if self.collection.delete(record["id"]):
                            removed += 1
                            self._forget_lock(record["id"])
            except PersistenceError as e:
                logger.error(f"Failed to clear saved routes: {e}")
                return False
        if removed == 0:
            return False
        logger.info(f"Cleared {removed} saved routes")
        self._emit(CLEARED)
        return True

    def _enforce_retention(self, owner: str | None = None) -> None:
        if self.max_saved_routes <= 0:
            return
        routes = self.list_all(owner)
        excess = len(routes) - self.max_saved_routes
        if excess <= 0:
            return
        candidates = sorted(
            (route for route in routes if not route.is_favorite), key=lambda route: route.saved_at
        )
        for route in candidates[:excess]:
            if self.delete(route.id):
                logger.debug(f"Removed saved route {route.id} beyond the {self.max_saved_routes} route limit")

    # ------------------------------------------------------------------
    # Deduplication
    # ------------------------------------------------------------------
    def find_similar_route(
        self, result: OptimizedRouteResult, owner: str | None = None
    ) -> Optional[SavedRoute]:
        return fingerprints.find_similar_route(
            result.optimized_stops, self.list_all(owner), threshold=self.similarity_threshold
        )

    def favorite_state_for(self, result: OptimizedRouteResult, owner: str | None = None) -> bool:
        match = self.find_similar_route(result, owner)
        return bool(match and match.is_favorite)

    def save_or_update(
        self,
        result: OptimizedRouteResult,
        inputs: OriginalRouteInputs,
        name: str | None = None,
        is_favorite: bool = False,
        owner: str | None = None,
    ) -> SavedRoute:
        """Save ``result`` unless an equivalent route is already stored for ``owner``.

        A match is refreshed in place: same id, new result, inputs and
        timestamp. Its favorite flag is kept, or set when ``is_favorite``.
        """
        with self._store_lock:
            match = self.find_similar_route(result, owner)
            if match is None:
                return self.save(result, inputs, name=name, is_favorite=is_favorite, owner=owner)
            with self._lock_for(match.id):
                refreshed = self._replace(
                    replace(
                        match,
                        name=name or match.name,
                        route_result=result,
                        original_inputs=inputs,
                        saved_at=self._clock(),
                        is_favorite=match.is_favorite or is_favorite,
                    )
                )
                logger.info(f"Refreshed existing saved route {match.id} instead of saving a duplicate")
        self._emit(UPDATED, refreshed.id)
        return refreshed

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------
    def get_statistics(
        self, now: datetime | None = None, tz: tzinfo | None = None, owner: str | None = None
    ) -> RouteStatistics:
        windows = local_windows(now or self._clock(), tz)
        today = week = last_week = month = favorites = total = 0
        for route in self.list_all(owner):
            total += 1
            if route.is_favorite:
                favorites += 1
            saved_at = route.saved_at
            if saved_at >= windows.today_start:
                today += 1
            if saved_at >= windows.week_start:
                week += 1
            elif saved_at >= windows.last_week_start:
                last_week += 1
            if saved_at >= windows.month_start:
                month += 1
        return RouteStatistics(
            total_routes=total,
            today_routes=today,
            week_routes=week,
            last_week_routes=last_week,
            month_routes=month,
            favorite_routes=favorites,
            growth_rate=growth_rate(last_week, week),
        )
