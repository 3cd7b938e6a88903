"""
Configuration Management

Centralized configuration for the gateway.
"""

from .settings import (
    Settings,
    APIConfig,
    OAuthConfig,
    RateLimitConfig,
    ServerConfig,
)
from .loader import ConfigLoader, get_settings

__all__ = [
    "Settings",
    "APIConfig",
    "OAuthConfig",
    "RateLimitConfig",
    "ServerConfig",
    "ConfigLoader",
    "get_settings",
]
