"""Route planning and saved-route request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..models.domain import (
    Leg,
    Measure,
    OptimizedRouteResult,
    OriginalRouteInputs,
    SavedRoute,
    Stop,
)
from ..services.routing.assembler import assemble_route


class StopModel(BaseModel):
    display_name: str = ""
    address: str = ""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    place_id: Optional[str] = None

    def to_domain(self) -> Stop:
        return Stop(
            display_name=self.display_name or self.address,
            address=self.address,
            latitude=self.latitude,
            longitude=self.longitude,
            place_id=self.place_id,
        )

    @classmethod
    def from_domain(cls, stop: Stop) -> "StopModel":
        return cls(
            display_name=stop.display_name,
            address=stop.address,
            latitude=stop.latitude,
            longitude=stop.longitude,
            place_id=stop.place_id,
        )


class MeasureModel(BaseModel):
    value: float
    text: str


class LegModel(BaseModel):
    distance: MeasureModel
    duration: MeasureModel

    @classmethod
    def from_domain(cls, leg: Leg) -> "LegModel":
        return cls(
            distance=MeasureModel(value=leg.distance.value, text=leg.distance.text),
            duration=MeasureModel(value=leg.duration.value, text=leg.duration.text),
        )


class RouteInputsModel(BaseModel):
    stops: List[StopModel] = Field(..., min_length=1)
    fixed_start: bool = True
    fixed_end: bool = True
    round_trip: bool = False
    include_traffic: bool = False

    def to_domain(self) -> OriginalRouteInputs:
        return OriginalRouteInputs(
            stops=tuple(stop.to_domain() for stop in self.stops),
            fixed_start=self.fixed_start,
            fixed_end=self.fixed_end,
            round_trip=self.round_trip,
            include_traffic=self.include_traffic,
        )

    @classmethod
    def from_domain(cls, inputs: OriginalRouteInputs) -> "RouteInputsModel":
        return cls(
            stops=[StopModel.from_domain(stop) for stop in inputs.stops],
            fixed_start=inputs.fixed_start,
            fixed_end=inputs.fixed_end,
            round_trip=inputs.round_trip,
            include_traffic=inputs.include_traffic,
        )


class OptimizeRequest(RouteInputsModel):
    save: Optional[bool] = Field(
        default=None,
        description="Save the result. Defaults to the server's auto-save setting.",
    )
    favorite: bool = False
    name: Optional[str] = Field(default=None, max_length=120)


class RouteResultModel(BaseModel):
    optimized_stops: List[StopModel]
    legs: List[LegModel]
    total_distance: str
    estimated_time: str

    @classmethod
    def from_domain(cls, result: OptimizedRouteResult) -> "RouteResultModel":
        return cls(
            optimized_stops=[StopModel.from_domain(stop) for stop in result.optimized_stops],
            legs=[LegModel.from_domain(leg) for leg in result.legs],
            total_distance=result.total_distance,
            estimated_time=result.estimated_time,
        )

    def to_domain(self) -> OptimizedRouteResult:
        legs = [
            Leg(
                distance=Measure(value=leg.distance.value, text=leg.distance.text),
                duration=Measure(value=leg.duration.value, text=leg.duration.text),
            )
            for leg in self.legs
        ]
        return assemble_route([stop.to_domain() for stop in self.optimized_stops], legs)


class SavedRouteModel(BaseModel):
    id: str
    name: str
    saved_at: datetime
    is_favorite: bool
    summary: str
    route_result: RouteResultModel
    original_inputs: RouteInputsModel

    @classmethod
    def from_domain(cls, route: SavedRoute) -> "SavedRouteModel":
        return cls(
            id=route.id,
            name=route.name,
            saved_at=route.saved_at,
            is_favorite=route.is_favorite,
            summary=route.summary,
            route_result=RouteResultModel.from_domain(route.route_result),
            original_inputs=RouteInputsModel.from_domain(route.original_inputs),
        )


class OptimizeResponse(BaseModel):
    result: RouteResultModel
    is_favorite: bool
    saved_route: Optional[SavedRouteModel] = None
    matrix_source: Optional[str] = None
    navigation: Dict[str, str] = Field(default_factory=dict)


class SaveRouteRequest(BaseModel):
    route_result: RouteResultModel
    original_inputs: RouteInputsModel
    name: Optional[str] = Field(default=None, max_length=120)
    is_favorite: bool = False
    deduplicate: bool = True


class RenameRouteRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)


class FavoriteRequest(BaseModel):
    is_favorite: Optional[bool] = Field(
        default=None,
        description="Explicit favorite state. Omit to toggle.",
    )


class RouteStatisticsModel(BaseModel):
    total_routes: int
    today_routes: int
    week_routes: int
    last_week_routes: int
    month_routes: int
    favorite_routes: int
    growth_rate: float


class DashboardModel(BaseModel):
    total_users: int
    new_users_this_week: int
    active_users_today: int
    user_growth_rate: float
    total_routes: int
    today_routes: int
    week_routes: int
    month_routes: int
    error_count: int
    unresolved_errors: int = 0
    success_rate: float
    total_events: int
    system_health: str
    degraded_groups: List[str] = Field(default_factory=list)
    attempts: int = 1
