"""
Application startup and configuration logic.

Registers every component with the DI container and manages the startup
and shutdown sequence.
"""

from dataclasses import asdict
from typing import Any, List, Tuple, Type

from loguru import logger

from .container import Container, ServiceLifetime
from ..core.interfaces.lifecycle import IComponent, IStartable, IStoppable
from ..core.interfaces.messaging import IEventBus
from ..core.interfaces.upload import IAssetStore, IExpiryScheduler, ISessionStore, IUploadOrchestrator
from ..infrastructure.config.models import ApplicationConfig
from ..infrastructure.logging.setup import LoggingManager


class ApplicationStartup:
    """
    Manages application startup and service configuration.

    Components start in dependency order and stop in reverse. A failure
    while starting stops whatever was already started before re-raising.
    """

    def __init__(self, container: Container) -> None:
        self._container = container
        self._started_components: List[IStartable] = []
        self._startup_order: List[Tuple[str, Type[Any]]] = [
            ('logging_manager', LoggingManager),
            ('event_bus', IEventBus),
            ('expiry_scheduler', IExpiryScheduler),
            ('upload_orchestrator', IUploadOrchestrator),
        ]

    @property
    def started_components(self) -> List[IStartable]:
        return list(self._started_components)

    async def configure_services(self, config: ApplicationConfig) -> None:
        """
        Configure and register all application services.

        Args:
            config: Application configuration
        """
        logger.info("Configuring application services...")

        self._container.register_instance(ApplicationConfig, config)

        self._register_core_services(config)
        self._register_infrastructure_services(config)
        self._register_upload_services(config)

        logger.info("Service configuration completed")

    async def start_application(self) -> None:
        """Start all application components in order."""
        logger.info("Starting application components...")

        for component_name, service_type in self._startup_order:
            try:
                component = self._container.resolve(service_type)
                if not isinstance(component, IStartable):
                    continue

                logger.debug(f"Starting component: {component_name}")
                await component.start()
                self._started_components.append(component)
                logger.info(f"Started component: {component_name}")

            except Exception as e:
                logger.error(f"Failed to start component {component_name}: {e}")
                await self._stop_started_components()
                raise

        logger.info("Application startup completed successfully")

    async def stop_application(self) -> None:
        """Stop all started components in reverse order."""
        logger.info("Stopping application components...")
        await self._stop_started_components()
        logger.info("Application shutdown completed")

    def _register_core_services(self, config: ApplicationConfig) -> None:
        from ..core.services.event_bus import EventBus

        self._container.register(IEventBus, EventBus, ServiceLifetime.SINGLETON)  # type: ignore[type-abstract]

        logging_manager = LoggingManager(asdict(config.logging))
        self._container.register_instance(LoggingManager, logging_manager)

        logger.debug("Registered core services")

    def _register_infrastructure_services(self, config: ApplicationConfig) -> None:
        from ..infrastructure.assets.local import LocalAssetStore
        from ..infrastructure.storage.file import FileSessionStore
        from ..infrastructure.storage.memory import InMemorySessionStore

        storage = config.storage

        def session_store_factory(container: Container) -> ISessionStore:
            if storage.backend == "file":
                return FileSessionStore(storage.directory)
            return InMemorySessionStore()

        self._container.register(ISessionStore, session_store_factory)  # type: ignore[type-abstract]
        self._container.register(
            IAssetStore, lambda container: LocalAssetStore(storage.asset_directory))  # type: ignore[type-abstract]

        logger.debug(f"Registered infrastructure services (storage backend: {storage.backend})")

    def _register_upload_services(self, config: ApplicationConfig) -> None:
        from ..infrastructure.services.upload.expiry import ExpiryScheduler
        from ..infrastructure.services.upload.orchestrator import UploadOrchestrator

        def expiry_factory(container: Container) -> IExpiryScheduler:
            return ExpiryScheduler(
                session_store=container.resolve(ISessionStore),  # type: ignore[type-abstract]
                retention_seconds=config.upload.completed_retention_seconds,
                config=config.expiry,
                event_bus=container.try_resolve(IEventBus),  # type: ignore[type-abstract]
            )

        def orchestrator_factory(container: Container) -> IUploadOrchestrator:
            return UploadOrchestrator(
                session_store=container.resolve(ISessionStore),  # type: ignore[type-abstract]
                asset_store=container.resolve(IAssetStore),  # type: ignore[type-abstract]
                expiry_scheduler=container.resolve(IExpiryScheduler),  # type: ignore[type-abstract]
                config=config.upload,
                event_bus=container.try_resolve(IEventBus),  # type: ignore[type-abstract]
            )

        self._container.register(IExpiryScheduler, expiry_factory)  # type: ignore[type-abstract]
        self._container.register(IUploadOrchestrator, orchestrator_factory)  # type: ignore[type-abstract]

        logger.debug("Registered upload services")

    async def _stop_started_components(self) -> None:
        for component in reversed(self._started_components):
            name = component.name if isinstance(component, IComponent) else type(component).__name__
            try:
                if isinstance(component, IStoppable):
                    logger.debug(f"Stopping component: {name}")
                    await component.stop()
                    logger.info(f"Stopped component: {name}")
            except Exception as e:
                logger.error(f"Error stopping component {name}: {e}")

        self._started_components.clear()
