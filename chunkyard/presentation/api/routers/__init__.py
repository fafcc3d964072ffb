"""
API routers: health checks, upload endpoints and the progress stream.
"""

from . import health, progress, uploads

__all__ = [
    "health",
    "progress",
    "uploads",
]
