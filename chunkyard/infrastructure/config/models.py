"""
Configuration models and data structures.

Typed, validated configuration for the upload service. Every limit the
orchestrator enforces is an explicit value here rather than a platform
constant.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

MIB = 1024 * 1024
GIB = 1024 * MIB


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8000


@dataclass
class UploadConfig:
    """Limits and retention for chunked uploads."""
    max_merge_size: int = 2 ** 31 - 1
    max_image_size: int = 50 * MIB
    max_video_size: int = 2 * GIB
    max_chunk_bytes: int = 10 * MIB
    completed_retention_seconds: float = 300.0


@dataclass
class ExpiryConfig:
    """Reclamation of completed and abandoned sessions."""
    abandoned_session_ttl_seconds: float = 1800.0  # 0 disables
    sweep_interval_seconds: float = 300.0
    retry_delay_seconds: float = 30.0


@dataclass
class StorageConfig:
    """Session and asset storage."""
    backend: str = "memory"  # memory | file
    directory: str = "data/sessions"
    asset_directory: str = "data/assets"


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_directory: str = "logs"
    max_file_size: str = "10 MB"
    backup_count: int = 5
    console_enabled: bool = True
    file_enabled: bool = True
    security_log_enabled: bool = True


@dataclass
class SecurityConfig:
    """Caller identity and CORS configuration."""
    identity_header: str = "X-User-ID"
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])


STORAGE_BACKENDS = ("memory", "file")


@dataclass
class ApplicationConfig:
    """Main application configuration."""

    name: str = "Chunkyard"
    version: str = "0.1.0"
    debug: bool = False
    environment: str = "production"

    server: ServerConfig = field(default_factory=ServerConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    expiry: ExpiryConfig = field(default_factory=ExpiryConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)

    config_file_path: str = ""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate_port()
        self._validate_limits()
        self._validate_intervals()
        self._validate_storage()

    def _validate_port(self) -> None:
        if not (1 <= self.server.port <= 65535):
            raise ValueError(f"Server port must be between 1 and 65535, got {self.server.port}")

    def _validate_limits(self) -> None:
        limits = [
            ("max_merge_size", self.upload.max_merge_size),
            ("max_image_size", self.upload.max_image_size),
            ("max_video_size", self.upload.max_video_size),
            ("max_chunk_bytes", self.upload.max_chunk_bytes),
        ]

        for name, value in limits:
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

    def _validate_intervals(self) -> None:
        intervals = [
            ("completed_retention_seconds", self.upload.completed_retention_seconds),
            ("abandoned_session_ttl_seconds", self.expiry.abandoned_session_ttl_seconds),
        ]
        for name, value in intervals:
            if value < 0:
                raise ValueError(f"{name} must not be negative, got {value}")

        positive = [
            ("sweep_interval_seconds", self.expiry.sweep_interval_seconds),
            ("retry_delay_seconds", self.expiry.retry_delay_seconds),
        ]
        for name, value in positive:
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

    def _validate_storage(self) -> None:
        if self.storage.backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"Unknown storage backend '{self.storage.backend}', "
                f"expected one of {', '.join(STORAGE_BACKENDS)}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApplicationConfig':
        """Create configuration from dictionary."""
        return cls(
            name=data.get('name', 'Chunkyard'),
            version=data.get('version', '0.1.0'),
            debug=data.get('debug', False),
            environment=data.get('environment', 'production'),
            server=ServerConfig(**data.get('server', {})),
            upload=UploadConfig(**data.get('upload', {})),
            expiry=ExpiryConfig(**data.get('expiry', {})),
            storage=StorageConfig(**data.get('storage', {})),
            logging=LoggingConfig(**data.get('logging', {})),
            security=SecurityConfig(**data.get('security', {})),
            config_file_path=data.get('config_file_path') or "",
        )
