"""
Bungie API Infrastructure

Governed client, OAuth2 credential manager and rate limiter for the
Bungie Destiny 2 API.
"""

from .client import BungieAPIClient
from .oauth import BungieOAuthService
from .rate_limiter import SlidingWindowRateLimiter
from .models import GovernedRequest, OAuthCredential, TokenResponse

__all__ = [
    # Client
    "BungieAPIClient",

    # OAuth
    "BungieOAuthService",

    # Rate limiting
    "SlidingWindowRateLimiter",

    # Models
    "GovernedRequest",
    "OAuthCredential",
    "TokenResponse",
]
