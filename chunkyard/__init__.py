"""
Chunkyard - resumable chunked upload service.

Large files arrive as independently transmitted chunks, are tracked per
upload session, reassembled in logical order with integrity checks and
handed to an asset store.
"""

__version__ = "0.1.0"

from .core.interfaces.lifecycle import IStartable, IStoppable, IHealthCheckable, IComponent
from .core.interfaces.messaging import IEventBus
from .core.interfaces.upload import ISessionStore, IAssetStore, IExpiryScheduler, IUploadOrchestrator
from .application.container import Container

__all__ = [
    "IStartable",
    "IStoppable",
    "IHealthCheckable",
    "IComponent",
    "IEventBus",
    "ISessionStore",
    "IAssetStore",
    "IExpiryScheduler",
    "IUploadOrchestrator",
    "Container",
]
