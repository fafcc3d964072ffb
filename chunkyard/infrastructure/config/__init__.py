"""
Configuration loading and validation.
"""

from .loader import ConfigLoader
from .models import (
    ApplicationConfig, ExpiryConfig, LoggingConfig, SecurityConfig,
    ServerConfig, StorageConfig, UploadConfig
)

__all__ = [
    "ConfigLoader",
    "ApplicationConfig",
    "ExpiryConfig",
    "LoggingConfig",
    "SecurityConfig",
    "ServerConfig",
    "StorageConfig",
    "UploadConfig",
]
