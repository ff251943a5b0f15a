"""Admin dashboard statistics aggregated from routes, users, errors and analytics."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from datetime import datetime, tzinfo
from typing import TYPE_CHECKING, Callable

from ...config import settings
from ...persistence.collections import DocumentCollection
from .metrics import growth_rate, local_windows, success_rate, system_health, Windows
from .models import DashboardSnapshot, RouteStatistics, SystemStatistics, UserStatistics

if TYPE_CHECKING:
    from ...persistence.route_store import RouteStore

logger = logging.getLogger(__name__)

ROUTES = "routes"
USERS = "users"
SYSTEM = "system"


class StatisticsAggregator:
    """Compute a :class:`DashboardSnapshot` from independent statistic groups.

    The route, user and system groups are queried concurrently. A group that
    fails is logged and replaced by its defaults so the other groups still
    reach the dashboard.
    """

    def __init__(
        self,
        route_store: "RouteStore",
        users: DocumentCollection,
        errors: DocumentCollection,
        analytics: DocumentCollection,
        *,
        health_error_threshold: int | None = None,
        max_workers: int = 3,
    ) -> None:
        self.route_store = route_store
        self.users = users
        self.errors = errors
        self.analytics = analytics
        self.health_error_threshold = (
            settings.health_error_threshold if health_error_threshold is None else health_error_threshold
        )
        self.max_workers = max_workers

    def route_statistics(self, windows: Windows) -> RouteStatistics:
        return self.route_store.get_statistics(now=windows.now, tz=windows.now.tzinfo)

    def user_statistics(self, windows: Windows) -> UserStatistics:
        total = self.users.count()
        this_week = len(self.users.range("createdAt", start=windows.week_start))
        last_week = len(self.users.range("createdAt", start=windows.last_week_start, end=windows.week_start))
        active_today = len(self.users.range("lastActiveAt", start=windows.today_start))
        return UserStatistics(
            total_users=total,
            new_users_this_week=this_week,
            new_users_last_week=last_week,
            active_users_today=active_today,
            user_growth_rate=growth_rate(last_week, this_week),
        )

    def system_statistics(self, windows: Windows) -> SystemStatistics:
        todays_errors = self.errors.range("timestamp", start=windows.today_start)
        unresolved = sum(1 for error in todays_errors if not error.get("resolved", False))
        events = len(self.analytics.range("timestamp", start=windows.month_start))
        error_count = len(todays_errors)
        return SystemStatistics(
            error_count=error_count,
            unresolved_errors=unresolved,
            total_events=events,
            system_health=system_health(error_count, self.health_error_threshold),
        )

    def snapshot(self, now: datetime | None = None, tz: tzinfo | None = None) -> DashboardSnapshot:
        windows = local_windows(now, tz)
        groups: dict[str, tuple[Callable[[Windows], object], object]] = {
            ROUTES: (self.route_statistics, RouteStatistics()),
            USERS: (self.user_statistics, UserStatistics()),
            SYSTEM: (self.system_statistics, SystemStatistics()),
        }

        results: dict[str, object] = {}
        degraded: list[str] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_group = {
                executor.submit(compute, windows): name for name, (compute, _) in groups.items()
            }
            for future in as_completed(future_to_group):
                name = future_to_group[future]
                try:
                    results[name] = future.result()
                except Exception as e:
                    logger.error(f"Failed to compute {name} statistics, using defaults: {e}")
                    results[name] = groups[name][1]
                    degraded.append(name)

        routes: RouteStatistics = results[ROUTES]  # type: ignore[assignment]
        users: UserStatistics = results[USERS]  # type: ignore[assignment]
        system: SystemStatistics = results[SYSTEM]  # type: ignore[assignment]
        if SYSTEM not in degraded:
            system = replace(system, success_rate=success_rate(routes.today_routes, system.error_count))

        return DashboardSnapshot(
            total_users=users.total_users,
            new_users_this_week=users.new_users_this_week,
            active_users_today=users.active_users_today,
            user_growth_rate=users.user_growth_rate,
            total_routes=routes.total_routes,
            today_routes=routes.today_routes,
            week_routes=routes.week_routes,
            month_routes=routes.month_routes,
            error_count=system.error_count,
            unresolved_errors=system.unresolved_errors,
            success_rate=system.success_rate,
            total_events=system.total_events,
            system_health=system.system_health,
            degraded_groups=tuple(sorted(degraded)),
        )

