"""Construction of the long-lived services shared by the API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import Settings, settings as default_settings
from .db.supabase import get_supabase_client
from .errors import RoutingError, RoutingReason
from .persistence.collections import (
    DocumentCollection,
    InMemoryCollection,
    JsonFileCollection,
    SupabaseCollection,
)
from .persistence.filesystem import FileStorage
from .persistence.route_store import RouteStore
from .services.routing.optimizer import RouteOptimizer
from .services.routing.osrm_client import DirectionsProvider, MatrixProvider, OSRMClient
from .services.routing.service import RoutePlanner
from .services.statistics.activity import ActivityRecorder
from .services.statistics.aggregator import StatisticsAggregator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Collections:
    saved_routes: DocumentCollection
    users: DocumentCollection
    errors: DocumentCollection
    analytics: DocumentCollection
    admins: DocumentCollection


@dataclass(slots=True)
class Container:
    settings: Settings
    collections: Collections
    route_store: RouteStore
    planner: RoutePlanner
    aggregator: StatisticsAggregator
    recorder: ActivityRecorder


def build_collections(config: Settings) -> Collections:
    names = (
        config.saved_routes_table,
        config.users_table,
        config.errors_table,
        config.analytics_table,
        config.admins_table,
    )
    if config.storage_backend == "supabase":
        client = get_supabase_client()
        opened = [SupabaseCollection(client, name) for name in names]
    elif config.storage_backend == "file":
        storage = FileStorage(root=config.data_root)
        opened = [JsonFileCollection(name, storage) for name in names]
    else:
        opened = [InMemoryCollection(name) for name in names]
    logger.info(f"Opened {len(opened)} collections on the {config.storage_backend} backend")
    return Collections(*opened)


class _UnconfiguredDirections:
    """Directions stand-in used when no OSRM base URL is configured."""

    def route(self, ordered_stops, traffic_enabled):
        raise RoutingError("OSRM service is not configured.", RoutingReason.UNAVAILABLE)


def build_container(
    config: Settings | None = None,
    *,
    collections: Optional[Collections] = None,
    directions: DirectionsProvider | None = None,
    matrix_provider: MatrixProvider | None = None,
) -> Container:
    config = config or default_settings
    collections = collections or build_collections(config)

    if directions is None or matrix_provider is None:
        try:
            client = OSRMClient(
                base_url=config.osrm_base_url,
                profile=config.osrm_profile,
                timeout=config.osrm_timeout_seconds,
                max_retries=config.directions_max_retries,
                backoff_seconds=config.directions_backoff_seconds,
                units=config.units,
            )
        except ValueError as e:
            logger.warning(f"OSRM client unavailable: {e}")
            client = None
        directions = directions or client or _UnconfiguredDirections()
        matrix_provider = matrix_provider or client

    route_store = RouteStore(
        collections.saved_routes,
        max_saved_routes=config.max_saved_routes,
        similarity_threshold=config.dedup_similarity_threshold,
    )
    recorder = ActivityRecorder(collections.errors, collections.analytics)
    optimizer = RouteOptimizer(
        max_stops=config.optimizer_max_stops,
        max_swap_passes=config.optimizer_max_swap_passes,
        cache_size=config.optimizer_cache_size,
    )
    planner = RoutePlanner(
        optimizer,
        directions,
        matrix_provider,
        route_store,
        units=config.units,
        max_waypoints=config.max_waypoints,
        auto_save=config.auto_save_routes,
        haversine_fallback=config.matrix_haversine_fallback,
        fallback_speed_kmh=config.fallback_average_speed_kmh,
        recorder=recorder,
    )
    aggregator = StatisticsAggregator(
        route_store,
        collections.users,
        collections.errors,
        collections.analytics,
        health_error_threshold=config.health_error_threshold,
    )
    return Container(
        settings=config,
        collections=collections,
        route_store=route_store,
        planner=planner,
        aggregator=aggregator,
        recorder=recorder,
    )
