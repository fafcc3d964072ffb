"""
Dependency injection container for the service's components.

Services are registered against an interface (or concrete type) with a
class, a factory taking the container, or a ready-made instance.
"""

import inspect
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar, Union

from loguru import logger

T = TypeVar('T')

Factory = Callable[['Container'], Any]


class ServiceLifetime(Enum):
    """Service lifetime management options."""
    SINGLETON = auto()  # one shared instance
    TRANSIENT = auto()  # new instance per resolve


class ServiceRegistration:
    """Registration information for a service."""

    def __init__(self,
                 service_type: Type[Any],
                 implementation: Union[Type[Any], Factory, Any],
                 lifetime: ServiceLifetime = ServiceLifetime.SINGLETON):
        self.service_type = service_type
        self.implementation = implementation
        self.lifetime = lifetime
        self.instance: Optional[Any] = None

        if not (inspect.isclass(implementation) or callable(implementation)):
            self.instance = implementation
            self.lifetime = ServiceLifetime.SINGLETON

    @property
    def is_resolved(self) -> bool:
        return self.instance is not None


class ServiceNotRegisteredException(Exception):
    """Raised when trying to resolve an unregistered service."""
    pass


class ServiceResolutionException(Exception):
    """Raised when service resolution fails."""
    pass


class CircularDependencyException(Exception):
    """Raised when circular dependencies are detected."""
    pass


class Container:
    """
    Lightweight dependency injection container.

    Classes are instantiated without arguments; anything with constructor
    dependencies is registered through a factory that resolves them from
    the container.
    """

    def __init__(self) -> None:
        self._services: Dict[Type[Any], ServiceRegistration] = {}
        self._resolution_stack: List[Type[Any]] = []

    def register(self,
                 service_type: Type[T],
                 implementation: Union[Type[T], Callable[['Container'], T], T],
                 lifetime: ServiceLifetime = ServiceLifetime.SINGLETON) -> None:
        """Register a service with the container."""
        registration = ServiceRegistration(service_type, implementation, lifetime)
        self._services[service_type] = registration
        logger.debug(f"Registered {service_type.__name__} with {registration.lifetime.name} lifetime")

    def register_instance(self, service_type: Type[T], instance: T) -> None:
        """Register a specific instance as a singleton."""
        self.register(service_type, instance, ServiceLifetime.SINGLETON)

    def resolve(self, service_type: Type[T]) -> T:
        """
        Resolve a service instance.

        Raises:
            ServiceNotRegisteredException: If service not registered
            CircularDependencyException: If factories resolve each other
            ServiceResolutionException: If the factory or constructor fails
        """
        if service_type in self._resolution_stack:
            cycle = " -> ".join([t.__name__ for t in self._resolution_stack] +
                                [service_type.__name__])
            raise CircularDependencyException(f"Circular dependency detected: {cycle}")

        registration = self._services.get(service_type)
        if registration is None:
            raise ServiceNotRegisteredException(f"Service {service_type.__name__} is not registered")

        if registration.lifetime == ServiceLifetime.SINGLETON and registration.instance is not None:
            return registration.instance  # type: ignore[no-any-return]

        self._resolution_stack.append(service_type)
        try:
            instance = self._create_instance(registration)
        except (CircularDependencyException, ServiceNotRegisteredException):
            raise
        except Exception as e:
            raise ServiceResolutionException(
                f"Failed to resolve {service_type.__name__}: {e}") from e
        finally:
            self._resolution_stack.pop()

        if registration.lifetime == ServiceLifetime.SINGLETON:
            registration.instance = instance

        return instance  # type: ignore[no-any-return]

    def try_resolve(self, service_type: Type[T]) -> Optional[T]:
        """Resolve a service, returning None instead of raising."""
        try:
            return self.resolve(service_type)
        except (ServiceNotRegisteredException, ServiceResolutionException, CircularDependencyException):
            return None

    def is_registered(self, service_type: Type[Any]) -> bool:
        return service_type in self._services

    def get_registrations(self) -> Dict[Type[Any], ServiceRegistration]:
        """Get all service registrations."""
        return self._services.copy()

    def _create_instance(self, registration: ServiceRegistration) -> Any:
        implementation = registration.implementation

        if inspect.isclass(implementation):
            return implementation()

        if callable(implementation):
            return implementation(self)

        return implementation
