"""
Asset store implementations.
"""

from .local import LocalAssetStore

__all__ = [
    "LocalAssetStore",
]
