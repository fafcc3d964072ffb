"""
Application layer: dependency injection and component lifecycle.
"""

from .container import (
    Container, ServiceLifetime, ServiceRegistration,
    ServiceNotRegisteredException, ServiceResolutionException, CircularDependencyException
)
from .startup import ApplicationStartup

__all__ = [
    "Container",
    "ServiceLifetime",
    "ServiceRegistration",
    "ServiceNotRegisteredException",
    "ServiceResolutionException",
    "CircularDependencyException",
    "ApplicationStartup",
]
