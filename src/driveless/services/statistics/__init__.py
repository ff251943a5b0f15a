"""Dashboard statistics exports."""

from .activity import ActivityRecorder
from .aggregator import StatisticsAggregator
from .metrics import growth_rate, success_rate, system_health
from .models import DashboardSnapshot, RouteStatistics

__all__ = [
    "ActivityRecorder",
    "StatisticsAggregator",
    "DashboardSnapshot",
    "RouteStatistics",
    "growth_rate",
    "success_rate",
    "system_health",
]
