from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from synq.models.route import Constraints, Coordinate, TimeWindow, Waypoint, WaypointRole


class Location(BaseModel):
    lat: float = Field(..., description="Latitude", ge=-90, le=90)
    lng: float = Field(..., description="Longitude", ge=-180, le=180)


class TimeWindowIn(BaseModel):
    """Preferred pickup window in seconds since midnight."""
    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_order(self):
        if self.end < self.start:
            raise ValueError("time window end must not be before start")
        return self


class WaypointIn(BaseModel):
    """A geocoded stop supplied by the caller."""
    id: str = Field(..., min_length=1, description="Driver, passenger or destination identifier")
    role: WaypointRole
    location: Location
    display_name: str = Field(default="", max_length=255)
    time_window: Optional[TimeWindowIn] = None

    def to_waypoint(self) -> Waypoint:
        return Waypoint(
            id=self.id,
            role=self.role,
            coordinate=Coordinate(self.location.lat, self.location.lng),
            display_name=self.display_name,
            time_window=TimeWindow(self.time_window.start, self.time_window.end) if self.time_window else None
        )


class ConstraintsIn(BaseModel):
    """Optimization limits; omitted values use the service defaults."""
    max_passengers_per_vehicle: Optional[int] = Field(None, ge=1)
    max_route_distance_meters: Optional[float] = Field(None, gt=0)
    max_route_duration_seconds: Optional[float] = Field(None, gt=0)
    traffic_mode: bool = Field(default=False, description="Weight edges by traffic severity")

    def to_constraints(self) -> Constraints:
        return Constraints(
            max_passengers_per_vehicle=self.max_passengers_per_vehicle,
            max_route_distance_meters=self.max_route_distance_meters,
            max_route_duration_seconds=self.max_route_duration_seconds,
            traffic_mode=self.traffic_mode
        )


class RouteOptimizationRequest(BaseModel):
    """
    Shared-ride optimization request.

    Example:
        ```json
        {
            "waypoints": [
                {"id": "driver-1", "role": "origin", "location": {"lat": 32.7767, "lng": -96.7970}},
                {"id": "rider-1", "role": "pickup", "location": {"lat": 32.7801, "lng": -96.8003}},
                {"id": "venue", "role": "destination", "location": {"lat": 32.7905, "lng": -96.8103}}
            ],
            "constraints": {"max_passengers_per_vehicle": 4}
        }
        ```
    """
    waypoints: List[WaypointIn]
    constraints: ConstraintsIn = Field(default_factory=ConstraintsIn)


class VehicleRoute(BaseModel):
    """One vehicle's optimized route."""
    driver_id: str
    passenger_ids: List[str]
    stop_ids: List[str] = Field(..., description="Visiting order, origin first and destination last")
    polyline: List[List[float]] = Field(..., description="[[lat, lng], ...]")
    encoded_polyline: str
    distance_meters: float
    duration_seconds: float
    provider: str
    synthesized: bool


class RouteOptimizationResult(BaseModel):
    """Normalized result for both the direct and the multi-vehicle path."""
    vehicles: List[VehicleRoute]
    total_distance_meters: float
    total_duration_seconds: float
    total_distance_km: float
    total_duration_minutes: float
    degraded: bool = Field(..., description="True when any path is a straight-line approximation")
    warnings: List[str] = Field(default_factory=list)
