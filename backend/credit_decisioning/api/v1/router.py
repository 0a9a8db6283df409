"""API v1 router configuration."""

from fastapi import APIRouter

from credit_decisioning.api.v1.endpoints import decisions, health, rules, simulations, workflows

api_router = APIRouter()

# Include endpoint routers
api_router.include_router(
    health.router,
    tags=["health"],
)

api_router.include_router(
    workflows.router,
    prefix="/workflows",
    tags=["workflows"],
)

api_router.include_router(
    rules.router,
    prefix="/rules",
    tags=["rules"],
)

api_router.include_router(
    decisions.router,
    prefix="/decisions",
    tags=["decisions"],
)

api_router.include_router(
    simulations.router,
    prefix="/simulations",
    tags=["simulations"],
)
