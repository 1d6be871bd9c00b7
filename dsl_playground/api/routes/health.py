"""
Health Routes
=============

FastAPI routes for health check endpoints.
"""

from fastapi import APIRouter, Depends

from dsl_playground.api.dependencies import PlaygroundServices, get_services
from dsl_playground.models.schemas import HealthStatus

router = APIRouter(prefix="/api/v1", tags=["Health"])


def check_system_health(services: PlaygroundServices) -> HealthStatus:
    """
    Health of the registry and evaluation pool.
    Used by route handlers and tests.
    """
    pool = services.pool
    if not pool.running or len(services.registry) == 0:
        status = "unhealthy"
    elif pool.active >= pool.capacity:
        status = "degraded"
    else:
        status = "healthy"

    return HealthStatus(
        status=status,
        version=services.settings.app_version,
        registry_elements=len(services.registry),
        active_evaluations=pool.active,
        pool_capacity=pool.capacity,
    )


@router.get("/health", response_model=HealthStatus)
async def health_check(services: PlaygroundServices = Depends(get_services)) -> HealthStatus:
    """Basic health check endpoint."""
    return check_system_health(services)
