from fastapi import APIRouter, Depends, Header, HTTPException, status
from typing import Optional
from synq.schemas.route import RouteOptimizationRequest, RouteOptimizationResult
from synq.services.optimization import OptimizationService, get_optimization_service
from synq.services.optimization_engine.errors import RequestSupersededError, RouteValidationError
from synq.core.logging_config import logger

router = APIRouter()


@router.post("/optimize", response_model=RouteOptimizationResult)
async def optimize_route(
    request_data: RouteOptimizationRequest,
    x_route_session: Optional[str] = Header(default=None),
    service: OptimizationService = Depends(get_optimization_service)
):
    """
    Optimize a shared ride.

    Returns a visiting order and road polyline per driver. When every road
    provider is down the paths are straight-line approximations and
    `degraded` is true.

    Args:
        request_data: Waypoints (origins, pickups, one destination) and constraints
        x_route_session: Optional session key; a newer request with the same key
            supersedes this one
        service: Optimization service

    Returns:
        Normalized optimization result

    Raises:
        HTTPException 422: If the waypoints are structurally invalid
        HTTPException 409: If a newer request for the same session superseded this one

    Example:
        ```json
        {
            "waypoints": [
                {"id": "driver-1", "role": "origin", "location": {"lat": 32.7767, "lng": -96.7970}},
                {"id": "venue", "role": "destination", "location": {"lat": 32.7905, "lng": -96.8103}}
            ]
        }
        ```
    """
    logger.info(
        f"Optimization request: {len(request_data.waypoints)} waypoints, "
        f"session={x_route_session}"
    )
    try:
        return await service.optimize(request_data, session_key=x_route_session)
    except RouteValidationError as e:
        logger.warning(f"Rejected optimization request: {e}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )
    except RequestSupersededError as e:
        logger.info(str(e))
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Superseded by a newer request for the same session"
        )
