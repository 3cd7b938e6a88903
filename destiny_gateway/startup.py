"""
Command line entry point

Runs the gateway over stdio (the default) or as a WebSocket server.
"""

import asyncio
import logging
import sys
from typing import Optional

import click

from . import __version__
from .core.config import ConfigLoader
from .core.container import Container, set_container, shutdown_container
from .core.exceptions import ConfigurationError
from .presentation.mcp.server import run_stdio_server, run_websocket_server
from .utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)


def _bootstrap(env_file: Optional[str]) -> Container:
    """Load configuration, configure logging and build the container."""
    try:
        settings = ConfigLoader.load_config(env_file=env_file)
    except ConfigurationError as e:
        click.echo(click.style(f"Configuration error: {e.message}", fg="red"), err=True)
        sys.exit(1)

    setup_logging(settings.server.log_level)
    ConfigLoader.validate_config()

    container = Container()
    set_container(container)
    return container


def _run(container: Container, runner) -> None:
    """Run a server coroutine, releasing container resources afterwards."""
    async def serve():
        try:
            await runner
        finally:
            await shutdown_container(container)

    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except ConfigurationError as e:
        logger.error(f"Server error: {e.message}")
        sys.exit(1)


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name="bungie-destiny-mcp-server")
@click.option(
    "--env-file",
    default=None,
    type=click.Path(dir_okay=False),
    help="Optional .env file to load before reading the environment.",
)
@click.pass_context
def main(ctx: click.Context, env_file: Optional[str]) -> None:
    """Bungie Destiny MCP Server - provides AI access to the Destiny 2 API.

    Runs in stdio mode when no command is given.
    """
    ctx.ensure_object(dict)
    ctx.obj["env_file"] = env_file

    if ctx.invoked_subcommand is None:
        ctx.invoke(stdio)


@main.command("stdio")
@click.pass_context
def stdio(ctx: click.Context) -> None:
    """Run server in stdio mode (default)."""
    container = _bootstrap(ctx.obj.get("env_file") if ctx.obj else None)
    _run(container, run_stdio_server(container))


@main.command("websocket")
@click.option(
    "--port",
    "-p",
    default=None,
    type=click.IntRange(1, 65535),
    help="Port to listen on (defaults to PORT, then 3000).",
)
@click.option(
    "--host",
    default=None,
    help="Address to bind (defaults to HOST, then 0.0.0.0).",
)
@click.pass_context
def websocket(ctx: click.Context, port: Optional[int], host: Optional[str]) -> None:
    """Run server as WebSocket server for remote connections."""
    container = _bootstrap(ctx.obj.get("env_file") if ctx.obj else None)
    _run(container, run_websocket_server(container, host=host, port=port))


if __name__ == "__main__":
    main()
