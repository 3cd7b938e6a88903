"""
Dependency Injection Container

Central container for managing application dependencies.
"""

import logging
from typing import Optional

from dependency_injector import containers, providers

from .config import ConfigLoader
from ..infrastructure.api.bungie import (
    BungieAPIClient,
    BungieOAuthService,
    SlidingWindowRateLimiter,
)
from ..presentation.mcp.admin_tools import GatewayAdminOperations
from ..presentation.mcp.catalog import ADMIN_TARGET, API_TARGET, build_default_catalog
from ..presentation.mcp.dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)


class Container(containers.DeclarativeContainer):
    """Main DI container for the application."""

    # Load settings
    settings = providers.Singleton(
        ConfigLoader.load_config
    )

    # Outbound HTTP transport; None uses the real network
    http_transport = providers.Object(None)

    # One limiter for the whole process, shared by every connection
    rate_limiter = providers.Singleton(
        SlidingWindowRateLimiter,
        max_requests=settings.provided.rate_limit.max_requests,
        window_ms=settings.provided.rate_limit.window_ms
    )

    oauth_service = providers.Singleton(
        BungieOAuthService,
        client_id=settings.provided.oauth.client_id,
        client_secret=settings.provided.oauth.client_secret,
        api_key=settings.provided.api.api_key,
        authorize_url=settings.provided.oauth.authorize_url,
        token_url=settings.provided.oauth.token_url,
        transport=http_transport
    )

    api_client = providers.Singleton(
        BungieAPIClient,
        api_key=settings.provided.api.api_key,
        rate_limiter=rate_limiter,
        oauth_service=oauth_service,
        base_url=settings.provided.api.base_url,
        timeout=settings.provided.api.timeout,
        max_attempts=settings.provided.api.max_attempts,
        transport=http_transport
    )

    admin_operations = providers.Singleton(
        GatewayAdminOperations,
        oauth_service=oauth_service,
        rate_limiter=rate_limiter
    )

    # Presentation
    catalog = providers.Singleton(build_default_catalog)

    dispatcher = providers.Singleton(
        ToolDispatcher,
        catalog=catalog,
        targets=providers.Dict({
            API_TARGET: api_client,
            ADMIN_TARGET: admin_operations,
        })
    )


# Global container instance
_container: Optional[Container] = None


def get_container() -> Container:
    """Get the global container instance."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def set_container(container: Optional[Container]) -> None:
    """Set (or clear) the global container instance."""
    global _container
    _container = container


async def shutdown_container(container: Container) -> None:
    """Release resources held by container singletons."""
    client = container.api_client()
    await client.close()
    logger.info("Container resources released")
