"""
Session store implementations.
"""

from .file import FileSessionStore
from .memory import InMemorySessionStore

__all__ = [
    "FileSessionStore",
    "InMemorySessionStore",
]
