"""
FastAPI application, middleware and dependencies.
"""

from .app import HTTP_STATUS_BY_CODE, create_app
from .dependencies import get_caller_identity, get_component, get_config, get_container

__all__ = [
    "HTTP_STATUS_BY_CODE",
    "create_app",
    "get_caller_identity",
    "get_component",
    "get_config",
    "get_container",
]
