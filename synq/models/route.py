"""
Domain types for the route optimization engine.

These live only for the duration of a request (and, for Route, an optional
stay in the route cache). Distances are meters and durations seconds.
"""

import enum
import math
from typing import Any, Dict, List, NamedTuple, Optional

from synq.core.config import settings


SYNTHESIZED_PROVIDER = "synthesized"


class WaypointRole(str, enum.Enum):
    """Role of a stop in a shared ride."""
    ORIGIN = "origin"
    PICKUP = "pickup"
    DESTINATION = "destination"


class Coordinate(NamedTuple):
    """(latitude, longitude) in decimal degrees."""
    lat: float
    lng: float

    def is_valid(self) -> bool:
        return (
            math.isfinite(self.lat)
            and math.isfinite(self.lng)
            and -90.0 <= self.lat <= 90.0
            and -180.0 <= self.lng <= 180.0
        )


class TimeWindow(NamedTuple):
    """Preferred pickup window, seconds since midnight. Carried, not enforced."""
    start: int
    end: int


class Waypoint(NamedTuple):
    """A stop in a shared ride. Immutable once created for a request."""
    id: str
    role: WaypointRole
    coordinate: Coordinate
    display_name: str = ""
    time_window: Optional[TimeWindow] = None


class Route:
    """Ordered path through waypoints with its road geometry."""

    def __init__(
        self,
        waypoints: List[Waypoint],
        polyline: List[Coordinate],
        total_distance_meters: float,
        total_duration_seconds: float,
        provider_used: str
    ):
        self.waypoints = list(waypoints)
        self.polyline = list(polyline)
        self.total_distance_meters = max(0.0, float(total_distance_meters))
        self.total_duration_seconds = max(0.0, float(total_duration_seconds))
        self.provider_used = provider_used

    @property
    def synthesized(self) -> bool:
        return self.provider_used == SYNTHESIZED_PROVIDER

    def with_waypoints(self, waypoints: List[Waypoint]) -> "Route":
        """Same path, re-bound to another request's waypoints."""
        return Route(
            waypoints=waypoints,
            polyline=self.polyline,
            total_distance_meters=self.total_distance_meters,
            total_duration_seconds=self.total_duration_seconds,
            provider_used=self.provider_used
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "waypoints": [
                {
                    "id": wp.id,
                    "role": wp.role.value,
                    "lat": wp.coordinate.lat,
                    "lng": wp.coordinate.lng,
                    "display_name": wp.display_name,
                    "time_window": list(wp.time_window) if wp.time_window else None,
                }
                for wp in self.waypoints
            ],
            "polyline": [[point.lat, point.lng] for point in self.polyline],
            "total_distance_meters": self.total_distance_meters,
            "total_duration_seconds": self.total_duration_seconds,
            "provider_used": self.provider_used,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Route":
        waypoints = []
        for item in data.get("waypoints", []):
            window = item.get("time_window")
            waypoints.append(Waypoint(
                id=item["id"],
                role=WaypointRole(item["role"]),
                coordinate=Coordinate(item["lat"], item["lng"]),
                display_name=item.get("display_name", ""),
                time_window=TimeWindow(*window) if window else None,
            ))
        return cls(
            waypoints=waypoints,
            polyline=[Coordinate(lat, lng) for lat, lng in data.get("polyline", [])],
            total_distance_meters=data["total_distance_meters"],
            total_duration_seconds=data["total_duration_seconds"],
            provider_used=data["provider_used"]
        )

    def __repr__(self) -> str:
        return (
            f"Route(stops={len(self.waypoints)}, points={len(self.polyline)}, "
            f"distance={self.total_distance_meters:.0f}m, provider={self.provider_used})"
        )


class VehicleAssignment:
    """One vehicle's pickups and the route serving them."""

    def __init__(self, origin: Waypoint, pickups: List[Waypoint], route: Route):
        self.origin = origin
        self.pickups = list(pickups)
        self.route = route

    @property
    def pickup_ids(self) -> List[str]:
        return [pickup.id for pickup in self.pickups]


class Constraints:
    """Per-request optimization limits. Missing values fall back to settings."""

    def __init__(
        self,
        max_passengers_per_vehicle: Optional[int] = None,
        max_route_distance_meters: Optional[float] = None,
        max_route_duration_seconds: Optional[float] = None,
        traffic_mode: bool = False
    ):
        self.max_passengers_per_vehicle = (
            max_passengers_per_vehicle
            if max_passengers_per_vehicle is not None
            else settings.DEFAULT_MAX_PASSENGERS_PER_VEHICLE
        )
        self.max_route_distance_meters = (
            max_route_distance_meters
            if max_route_distance_meters is not None
            else settings.DEFAULT_MAX_ROUTE_DISTANCE_METERS
        )
        self.max_route_duration_seconds = (
            max_route_duration_seconds
            if max_route_duration_seconds is not None
            else settings.DEFAULT_MAX_ROUTE_DURATION_SECONDS
        )
        self.traffic_mode = traffic_mode


class CacheEntry:
    """A cached route with its expiry."""

    def __init__(self, key: str, route: Route, created_at: float, expires_at: float):
        self.key = key
        self.route = route
        self.created_at = created_at
        self.expires_at = expires_at

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "route": self.route.to_dict(),
            "created_at": self.created_at,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        return cls(
            key=data["key"],
            route=Route.from_dict(data["route"]),
            created_at=data["created_at"],
            expires_at=data["expires_at"]
        )
