"""
Infrastructure services.
"""

from .upload import ExpiryScheduler, UploadOrchestrator

__all__ = [
    "ExpiryScheduler",
    "UploadOrchestrator",
]
