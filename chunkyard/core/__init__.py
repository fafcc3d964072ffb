"""
Core module containing the upload domain model and service interfaces.

Independent of web frameworks and storage backends.
"""

from .interfaces.lifecycle import IStartable, IStoppable, IHealthCheckable, IComponent
from .interfaces.messaging import IEventBus
from .interfaces.upload import ISessionStore, IAssetStore, IExpiryScheduler, IUploadOrchestrator
from .domain.events import Event, EventPriority, UploadEvents
from .domain.sessions import UploadSession, SessionDescriptor, AssetDescriptor, AssetUpload

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
    "Event",
    "EventPriority",
    "UploadEvents",
    "UploadSession",
    "SessionDescriptor",
    "AssetDescriptor",
    "AssetUpload",
]
