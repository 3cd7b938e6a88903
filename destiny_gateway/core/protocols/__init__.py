"""
Core Protocol Definitions

This module defines the interfaces that all implementations must follow.
"""

from .api_client_protocol import APIClientProtocol
from .oauth_protocol import OAuthProtocol
from .rate_limiter_protocol import RateLimiterProtocol

__all__ = [
    "APIClientProtocol",
    "OAuthProtocol",
    "RateLimiterProtocol",
]
