"""
Logging infrastructure for the application.
"""

from .setup import setup_logging, audit_access_denied, InterceptHandler, LoggingManager

__all__ = [
    "setup_logging",
    "audit_access_denied",
    "InterceptHandler",
    "LoggingManager",
]
