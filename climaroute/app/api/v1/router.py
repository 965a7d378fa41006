"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from climaroute.app.api.v1.endpoints import routes, trips, sos

router = APIRouter()

# Route optimization
router.include_router(routes.router)

# Trip lifecycle and live telemetry
router.include_router(trips.router)

# SOS alerts and idle detection
router.include_router(sos.router)
