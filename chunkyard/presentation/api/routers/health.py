"""
Health check API endpoints.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from ....application.container import Container
from ....core.interfaces.lifecycle import IHealthCheckable
from ....core.interfaces.upload import IExpiryScheduler, ISessionStore, IUploadOrchestrator
from ....infrastructure.config.models import ApplicationConfig
from ..dependencies import get_config, get_container

router = APIRouter()

ESSENTIAL_SERVICES = (ISessionStore, IExpiryScheduler, IUploadOrchestrator)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("")
async def health_check(config: ApplicationConfig = Depends(get_config)) -> Dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": _now(),
        "application": {
            "name": config.name,
            "version": config.version,
            "environment": config.environment
        }
    }


@router.get("/detailed")
async def detailed_health_check(
    container: Container = Depends(get_container),
    config: ApplicationConfig = Depends(get_config)
) -> Dict[str, Any]:
    """Health status of every registered component."""
    components_health: Dict[str, Any] = {}
    overall_healthy = True

    for service_type in container.get_registrations():
        component_name = service_type.__name__

        try:
            component = container.resolve(service_type)

            if isinstance(component, IHealthCheckable):
                health_info = await component.check_health()
                components_health[component_name] = health_info

                if not health_info.get("healthy", True):
                    overall_healthy = False
            else:
                components_health[component_name] = {
                    "healthy": True,
                    "status": "available",
                    "details": {"type": type(component).__name__}
                }

        except Exception as e:
            components_health[component_name] = {
                "healthy": False,
                "status": "error",
                "details": {"error": str(e)}
            }
            overall_healthy = False

    return {
        "status": "healthy" if overall_healthy else "degraded",
        "timestamp": _now(),
        "application": {
            "name": config.name,
            "version": config.version,
            "environment": config.environment
        },
        "components": components_health
    }


@router.get("/ready")
async def readiness_check(container: Container = Depends(get_container)) -> Dict[str, Any]:
    """Ready once the upload services are registered."""
    missing_services: List[str] = [
        service.__name__ for service in ESSENTIAL_SERVICES
        if not container.is_registered(service)
    ]

    return {
        "ready": not missing_services,
        "timestamp": _now(),
        "missing_services": missing_services
    }


@router.get("/live")
async def liveness_check() -> Dict[str, Any]:
    return {
        "alive": True,
        "timestamp": _now()
    }
