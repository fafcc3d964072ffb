"""
Main entry point for Chunkyard.

Command-line interface for running the upload service and managing its
configuration.
"""

import asyncio
import sys
from typing import Optional

import aiohttp
import typer
import uvicorn
from loguru import logger

from .application.container import Container
from .application.startup import ApplicationStartup
from .infrastructure.config.loader import ConfigLoader
from .infrastructure.config.models import ApplicationConfig
from .infrastructure.logging.setup import setup_logging
from .presentation.api.app import create_app

cli = typer.Typer(
    name="chunkyard",
    help="Resumable chunked upload service"
)


@cli.command()
def start(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    host: Optional[str] = typer.Option(
        None, "--host", help="Server host address"
    ),
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Server port"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level"
    ),
    storage: Optional[str] = typer.Option(
        None, "--storage", help="Session storage backend (memory/file)"
    ),
    debug: bool = typer.Option(
        False, "--debug", help="Enable debug mode"
    )
) -> None:
    """Start the Chunkyard server."""
    try:
        config = ConfigLoader().load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(1)

    if host:
        config.server.host = host
    if port:
        config.server.port = port
    if log_level:
        config.logging.level = log_level.upper()
    if storage:
        config.storage.backend = storage
    if debug:
        config.debug = True
        config.logging.level = "DEBUG"

    setup_logging(config.logging)

    logger.info(f"Starting {config.name} v{config.version}")
    logger.info(f"Environment: {config.environment}")
    logger.info(f"Session storage: {config.storage.backend}")

    try:
        asyncio.run(run_application(config))
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
    except Exception as e:
        logger.error(f"Application failed to start: {e}")
        sys.exit(1)


@cli.command()
def init_config(
    output: str = typer.Option(
        "config.yaml", "--output", "-o", help="Output configuration file"
    ),
    format: str = typer.Option(
        "yaml", "--format", "-f", help="Configuration format (yaml/json)"
    )
) -> None:
    """Generate a default configuration file."""
    try:
        ConfigLoader().save_config(ApplicationConfig(), output, format)
        typer.echo(f"Default configuration saved to {output}")
    except Exception as e:
        typer.echo(f"Error saving configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
def validate_config(
    config_file: str = typer.Argument(..., help="Configuration file to validate")
) -> None:
    """Validate a configuration file."""
    try:
        config = ConfigLoader().load_config(config_file)
        typer.echo(f"Configuration file {config_file} is valid")
        typer.echo(f"Application: {config.name} v{config.version}")
        typer.echo(f"Environment: {config.environment}")
        typer.echo(f"Storage backend: {config.storage.backend}")
        typer.echo(f"Max merge size: {config.upload.max_merge_size} bytes")
    except Exception as e:
        typer.echo(f"Configuration validation failed: {e}", err=True)
        sys.exit(1)


@cli.command()
def health_check(
    host: str = typer.Option("localhost", "--host", help="Server host"),
    port: int = typer.Option(8000, "--port", help="Server port"),
    timeout: float = typer.Option(10.0, "--timeout", help="Request timeout")
) -> None:
    """Check the health of a running server."""

    async def check_health() -> bool:
        url = f"http://{host}:{port}/health"
        timeout_config = aiohttp.ClientTimeout(total=timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout_config) as session:
                async with session.get(url) as response:
                    if response.status == 200:
                        data = await response.json()
                        typer.echo(f"Server is healthy: {data.get('status', 'unknown')}")
                        return True

                    typer.echo(f"Server returned status {response.status}")
                    return False
        except Exception as e:
            typer.echo(f"Health check failed: {e}")
            return False

    if not asyncio.run(check_health()):
        sys.exit(1)


async def run_application(config: ApplicationConfig) -> None:
    """
    Run the server until it is asked to stop.

    Components are configured and started by the application lifespan, so
    uvicorn's own signal handling drives a clean shutdown.
    """
    container = Container()
    startup = ApplicationStartup(container)
    app = create_app(container, config, startup)

    server_config = uvicorn.Config(
        app=app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
        access_log=config.debug,
        log_config=None,
    )

    await uvicorn.Server(server_config).serve()


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
