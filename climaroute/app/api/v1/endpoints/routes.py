"""
Route Optimization API Endpoints.

Any authenticated caller may request ranked route alternatives.
"""

from fastapi import APIRouter, Depends, Body

from climaroute.app.core.dependencies import get_current_user
from climaroute.app.schemas.route import OptimizeRouteRequest, RouteOptimizationResult
from climaroute.app.services.engine import Engine, get_engine

router = APIRouter(prefix="/routes", tags=["Routes"])


@router.post("/optimize", response_model=RouteOptimizationResult)
async def optimize_route(
    request: OptimizeRouteRequest = Body(...),
    current_user: dict = Depends(get_current_user),
    engine: Engine = Depends(get_engine)
):
    """
    Rank route alternatives between two places by weather risk.

    Geometry enrichment failures do not fail the request: the result
    then carries geometry_source="approximate" and degraded_error.
    """
    return await engine.route_optimizer.optimize(request.origin, request.destination)
