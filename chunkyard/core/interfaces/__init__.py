"""
Core interfaces defining the contracts between upload components.
"""

from .lifecycle import IStartable, IStoppable, IHealthCheckable, IConfigurable, IComponent
from .messaging import IEventBus
from .upload import ISessionStore, IAssetStore, IExpiryScheduler, IUploadOrchestrator

__all__ = [
    "IStartable",
    "IStoppable",
    "IHealthCheckable",
    "IConfigurable",
    "IComponent",
    "IEventBus",
    "ISessionStore",
    "IAssetStore",
    "IExpiryScheduler",
    "IUploadOrchestrator",
]
