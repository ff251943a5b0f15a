"""Admin dashboard endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ...container import Container
from ...errors import AuthError
from ...schemas.routes import DashboardModel
from ...services.admin.gate import AdminAccessGate, AdminDirectory, load_dashboard
from ..deps import get_container, get_current_user, to_http_error

router = APIRouter(prefix="/admin", tags=["admin"])


def build_gate(container: Container, user_id: str) -> AdminAccessGate:
    config = container.settings
    return AdminAccessGate(
        AdminDirectory(container.collections.admins, user_id),
        max_attempts=config.admin_max_attempts,
        delay_seconds=config.admin_retry_delay_seconds,
    )


@router.get("/dashboard", response_model=DashboardModel)
def dashboard(
    user_id: str = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> DashboardModel:
    gate = build_gate(container, user_id)
    try:
        loaded = load_dashboard(gate, container.aggregator)
    except AuthError as exc:
        raise to_http_error(exc) from exc
    snapshot = loaded.snapshot
    return DashboardModel(
        total_users=snapshot.total_users,
        new_users_this_week=snapshot.new_users_this_week,
        active_users_today=snapshot.active_users_today,
        user_growth_rate=snapshot.user_growth_rate,
        total_routes=snapshot.total_routes,
        today_routes=snapshot.today_routes,
        week_routes=snapshot.week_routes,
        month_routes=snapshot.month_routes,
        error_count=snapshot.error_count,
        unresolved_errors=snapshot.unresolved_errors,
        success_rate=snapshot.success_rate,
        total_events=snapshot.total_events,
        system_health=snapshot.system_health,
        degraded_groups=list(snapshot.degraded_groups),
        attempts=loaded.attempts,
    )
