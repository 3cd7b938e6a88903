"""
Destiny MCP Gateway

Model Context Protocol server exposing the Bungie Destiny 2 API with shared
rate limiting and OAuth2 credential management.
"""

__version__ = "1.0.0"

# Public API exports
from .core.config import Settings
from .core.exceptions import GatewayError

__all__ = [
    "Settings",
    "GatewayError",
]
