"""API routes."""

from litestar import Router

from training_load_server.api.activities import activities_router
from training_load_server.api.baselines import baselines_router
from training_load_server.api.health import health_router
from training_load_server.api.load import load_router
from training_load_server.api.plans import plans_router
from training_load_server.core.config import settings

# Versioned API routers (athlete data endpoints)
_v1_routers = [
    activities_router,
    baselines_router,
    load_router,
    plans_router,
]

api_v1_router = Router(path=settings.api_prefix, route_handlers=_v1_routers)

# health_router: /health, no version prefix
api_routers = [health_router, api_v1_router]

__all__ = ["api_routers"]
