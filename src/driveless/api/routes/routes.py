"""Route planning and saved-route endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...container import Container
from ...persistence.route_store import favorites_only, sort_recent
from ...services.export.navigation import navigation_links
from ...schemas.routes import (
    FavoriteRequest,
    OptimizeRequest,
    OptimizeResponse,
    RenameRouteRequest,
    RouteResultModel,
    RouteStatisticsModel,
    SavedRouteModel,
    SaveRouteRequest,
)
from ..deps import get_container, get_current_user, to_http_error

router = APIRouter(prefix="/routes", tags=["routes"])

# Every endpoint acts on behalf of the bearer-token user; saved routes are
# scoped to that user.


@router.post("/optimize", response_model=OptimizeResponse, status_code=status.HTTP_200_OK)
def optimize(
    payload: OptimizeRequest,
    user_id: str = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> OptimizeResponse:
    try:
        planned = container.planner.plan(
            payload.to_domain(),
            save=payload.save,
            name=payload.name,
            favorite=payload.favorite,
            requester=user_id,
        )
    except Exception as exc:
        raise to_http_error(exc) from exc
    if planned is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Superseded by a newer optimization request.",
        )
    return OptimizeResponse(
        result=RouteResultModel.from_domain(planned.result),
        is_favorite=planned.is_favorite,
        saved_route=SavedRouteModel.from_domain(planned.saved_route) if planned.saved_route else None,
        matrix_source=planned.matrix_source,
        navigation=navigation_links(planned.result),
    )


@router.get("/saved", response_model=List[SavedRouteModel])
def list_saved_routes(
    favorites: bool = Query(False, alias="favorites_only"),
    user_id: str = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> List[SavedRouteModel]:
    try:
        routes = container.route_store.list_all(owner=user_id)
    except Exception as exc:
        raise to_http_error(exc) from exc
    if favorites:
        routes = favorites_only(routes)
    return [SavedRouteModel.from_domain(route) for route in sort_recent(routes)]


@router.post("/saved", response_model=SavedRouteModel, status_code=status.HTTP_201_CREATED)
def save_route(
    payload: SaveRouteRequest,
    user_id: str = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> SavedRouteModel:
    store = container.route_store
    try:
        result = payload.route_result.to_domain()
        inputs = payload.original_inputs.to_domain()
        if payload.deduplicate:
            saved = store.save_or_update(
                result, inputs, name=payload.name, is_favorite=payload.is_favorite, owner=user_id
            )
        else:
            saved = store.save(
                result, inputs, name=payload.name, is_favorite=payload.is_favorite, owner=user_id
            )
    except Exception as exc:
        raise to_http_error(exc) from exc
    return SavedRouteModel.from_domain(saved)


@router.get("/saved/statistics", response_model=RouteStatisticsModel)
def saved_route_statistics(
    user_id: str = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> RouteStatisticsModel:
    try:
        stats = container.route_store.get_statistics(owner=user_id)
    except Exception as exc:
        raise to_http_error(exc) from exc
    return RouteStatisticsModel(
        total_routes=stats.total_routes,
        today_routes=stats.today_routes,
        week_routes=stats.week_routes,
        last_week_routes=stats.last_week_routes,
        month_routes=stats.month_routes,
        favorite_routes=stats.favorite_routes,
        growth_rate=stats.growth_rate,
    )


@router.get("/saved/{route_id}", response_model=SavedRouteModel)
def get_saved_route(
    route_id: str,
    user_id: str = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> SavedRouteModel:
    route = container.route_store.get(route_id, owner=user_id)
    if route is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Saved route '{route_id}' not found.")
    return SavedRouteModel.from_domain(route)


@router.get("/saved/{route_id}/navigation")
def saved_route_navigation(
    route_id: str,
    user_id: str = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> dict:
    """Links that open the saved route in Google Maps, Waze or Apple Maps."""
    route = container.route_store.get(route_id, owner=user_id)
    if route is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Saved route '{route_id}' not found.")
    return navigation_links(route.route_result)


@router.patch("/saved/{route_id}", response_model=SavedRouteModel)
def rename_saved_route(
    route_id: str,
    payload: RenameRouteRequest,
    user_id: str = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> SavedRouteModel:
    try:
        route = container.route_store.rename(route_id, payload.name, owner=user_id)
    except Exception as exc:
        raise to_http_error(exc) from exc
    return SavedRouteModel.from_domain(route)


@router.post("/saved/{route_id}/favorite", response_model=SavedRouteModel)
def favorite_saved_route(
    route_id: str,
    payload: FavoriteRequest | None = None,
    user_id: str = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> SavedRouteModel:
    store = container.route_store
    try:
        if payload is None or payload.is_favorite is None:
            route = store.toggle_favorite(route_id, owner=user_id)
        else:
            route = store.set_favorite(route_id, payload.is_favorite, owner=user_id)
    except Exception as exc:
        raise to_http_error(exc) from exc
    return SavedRouteModel.from_domain(route)


@router.delete("/saved/{route_id}", status_code=status.HTTP_200_OK)
def delete_saved_route(
    route_id: str,
    user_id: str = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> dict:
    deleted = container.route_store.delete(route_id, owner=user_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Saved route '{route_id}' not found.")
    return {"success": True, "message": f"Saved route {route_id} deleted"}


@router.delete("/saved", status_code=status.HTTP_200_OK)
def clear_saved_routes(
    user_id: str = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> dict:
    cleared = container.route_store.clear_all(owner=user_id)
    return {"success": cleared, "message": "Saved routes cleared" if cleared else "No saved routes to clear"}
