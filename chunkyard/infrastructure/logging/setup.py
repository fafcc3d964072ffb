"""
Logging setup and configuration utilities.

Centralized loguru configuration with file rotation, a separate security
audit channel for access-control events, and routing of standard-library
logging (uvicorn, asyncio) into the same sinks.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from ..config.models import LoggingConfig
from ...core.interfaces.lifecycle import IComponent

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"
SECURITY_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[operation]} | {message}"


class InterceptHandler(logging.Handler):
    """Forward standard-library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: Any = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _is_security_event(record: Dict[str, Any]) -> bool:
    return bool(record["extra"].get("security_event"))


def setup_logging(config: LoggingConfig) -> None:
    """
    Setup application logging with the given configuration.

    Args:
        config: Logging configuration
    """
    logger.remove()

    if config.console_enabled:
        logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT,
            level=config.level,
            colorize=True,
            backtrace=True,
            diagnose=False
        )

    if config.file_enabled or config.security_log_enabled:
        log_dir = Path(config.log_directory)
        log_dir.mkdir(parents=True, exist_ok=True)

        if config.file_enabled:
            logger.add(
                log_dir / "app.log",
                format=FILE_FORMAT,
                level=config.level,
                rotation=config.max_file_size,
                retention=config.backup_count,
                compression="zip",
                backtrace=True,
                diagnose=False
            )

        if config.security_log_enabled:
            logger.add(
                log_dir / "security.log",
                format=SECURITY_FORMAT,
                level="INFO",
                filter=_is_security_event,
                rotation=config.max_file_size,
                retention=config.backup_count,
                compression="zip"
            )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)


def audit_access_denied(
    operation: str,
    session_id: str,
    caller: Optional[str],
    owner: str
) -> None:
    """
    Record an access-control violation on the security channel.

    These records are kept apart from ordinary validation failures so that
    they can be reviewed and alerted on separately.
    """
    logger.bind(
        security_event=True,
        operation=operation,
        session_id=session_id,
        caller=caller,
        owner=owner,
    ).warning(
        f"Access denied: caller {caller!r} attempted {operation} on session "
        f"{session_id} owned by {owner!r}"
    )


class LoggingManager(IComponent):
    """Lifecycle component applying the logging configuration."""

    def __init__(self, config: Dict[str, Any]) -> None:
        self._config = LoggingConfig(**config)
        self._started = False

    @property
    def name(self) -> str:
        return "LoggingManager"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def config(self) -> LoggingConfig:
        return self._config

    async def start(self) -> None:
        if self._started:
            return

        setup_logging(self._config)
        self._started = True

        logger.info(f"Logging started (level={self._config.level}, "
                    f"directory={self._config.log_directory})")

    async def stop(self) -> None:
        if not self._started:
            return

        logger.info("Logging manager stopped")
        self._started = False

    async def configure(self, config: Dict[str, Any]) -> None:
        self._config = LoggingConfig(**config)
        if self._started:
            setup_logging(self._config)
            logger.info("Logging configuration updated")

    async def check_health(self) -> Dict[str, Any]:
        log_dir = Path(self._config.log_directory)

        return {
            'healthy': True,
            'status': 'running' if self._started else 'stopped',
            'details': {
                'log_level': self._config.level,
                'log_directory': str(log_dir),
                'log_directory_exists': log_dir.exists(),
                'console_enabled': self._config.console_enabled,
                'file_enabled': self._config.file_enabled,
                'security_log_enabled': self._config.security_log_enabled,
            }
        }
