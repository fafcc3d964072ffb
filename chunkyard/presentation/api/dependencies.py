"""
FastAPI dependency injection utilities.

Route handlers reach application components through the container stored
on ``app.state``.
"""

from typing import Any, Optional, Type, TypeVar

from fastapi import Depends, HTTPException, Request, WebSocket, status

from ...application.container import Container
from ...core.interfaces.upload import IUploadOrchestrator
from ...infrastructure.config.models import ApplicationConfig

T = TypeVar('T')


def get_container(request: Request) -> Container:
    """
    Get the dependency injection container from the request.

    Raises:
        HTTPException: If container is not available
    """
    if not hasattr(request.app.state, "container"):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application container not available"
        )

    return request.app.state.container  # type: ignore[no-any-return]


def get_websocket_container(websocket: WebSocket) -> Container:
    """Container lookup for WebSocket routes, which have no Request."""
    return websocket.app.state.container  # type: ignore[no-any-return]


def get_config(request: Request) -> ApplicationConfig:
    """
    Get the application configuration from the request.

    Raises:
        HTTPException: If configuration is not available
    """
    if not hasattr(request.app.state, "config"):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application configuration not available"
        )

    return request.app.state.config  # type: ignore[no-any-return]


def get_component(service_type: Type[T]) -> Any:
    """
    Create a dependency function to get a specific component type.

    Args:
        service_type: Type of service to resolve

    Returns:
        Dependency function that resolves the service
    """
    def _get_component(container: Container = Depends(get_container)) -> T:
        try:
            return container.resolve(service_type)
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=f"Service {service_type.__name__} not available: {str(e)}"
            )

    return _get_component


get_orchestrator = get_component(IUploadOrchestrator)


def get_caller_identity(
    request: Request,
    config: ApplicationConfig = Depends(get_config)
) -> Optional[str]:
    """
    Opaque caller identity forwarded by the fronting identity provider.

    Missing or blank values are passed through unchanged; the orchestrator
    rejects them.
    """
    return request.headers.get(config.security.identity_header)
