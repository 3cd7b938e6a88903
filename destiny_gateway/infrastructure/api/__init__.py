"""
API Infrastructure

Base API client implementations.
"""

from .base_client import BaseAPIClient
from .bungie import (
    BungieAPIClient,
    BungieOAuthService,
    SlidingWindowRateLimiter,
)

__all__ = [
    "BaseAPIClient",
    "BungieAPIClient",
    "BungieOAuthService",
    "SlidingWindowRateLimiter",
]
