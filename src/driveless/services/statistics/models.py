"""Statistics domain models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RouteStatistics:
    total_routes: int = 0
    today_routes: int = 0
    week_routes: int = 0
    last_week_routes: int = 0
    month_routes: int = 0
    favorite_routes: int = 0
    growth_rate: float = 0.0


@dataclass(frozen=True, slots=True)
class UserStatistics:
    total_users: int = 0
    new_users_this_week: int = 0
    new_users_last_week: int = 0
    active_users_today: int = 0
    user_growth_rate: float = 0.0


@dataclass(frozen=True, slots=True)
class SystemStatistics:
    error_count: int = 0
    unresolved_errors: int = 0
    success_rate: float = 100.0
    total_events: int = 0
    system_health: str = "Unknown"


@dataclass(frozen=True, slots=True)
class DashboardSnapshot:
    """Admin dashboard figures; recomputed on every request and never stored."""

    total_users: int
    new_users_this_week: int
    active_users_today: int
    user_growth_rate: float
    total_routes: int
    today_routes: int
    week_routes: int
    month_routes: int
    error_count: int
    success_rate: float
    total_events: int
    system_health: str
    unresolved_errors: int = 0
    degraded_groups: tuple[str, ...] = ()
