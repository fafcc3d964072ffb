"""
Upload services: the protocol orchestrator and the expiry scheduler.
"""

from .expiry import ExpiryScheduler
from .orchestrator import UploadOrchestrator

__all__ = [
    "ExpiryScheduler",
    "UploadOrchestrator",
]
