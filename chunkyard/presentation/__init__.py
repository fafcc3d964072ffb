"""
Presentation layer: HTTP API and WebSocket progress stream.
"""

from .api.app import create_app

__all__ = [
    "create_app",
]
