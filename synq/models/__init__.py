from .route import (
    CacheEntry,
    Constraints,
    Coordinate,
    Route,
    TimeWindow,
    VehicleAssignment,
    Waypoint,
    WaypointRole,
)
