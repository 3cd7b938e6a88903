"""
Operator tools for OAuth and rate-limit management

Refresh is never automatic: when an authenticated call reports an expired
credential, the operator (or agent) calls refresh_access_token and retries.
"""

from typing import Any, Dict, Optional

from ...infrastructure.api.bungie import BungieOAuthService, SlidingWindowRateLimiter
from ...utils.datetime_utils import utc_now_iso
from ...utils.logging_utils import get_logger

logger = get_logger(__name__)


class GatewayAdminOperations:
    """Operations behind the admin tools"""

    def __init__(self, oauth_service: BungieOAuthService, rate_limiter: SlidingWindowRateLimiter):
        self.oauth_service = oauth_service
        self.rate_limiter = rate_limiter

    async def get_authorization_url(self, state: Optional[str] = None) -> Dict[str, Any]:
        return {
            "authorization_url": self.oauth_service.build_authorization_url(state),
            "state_supplied": state is not None
        }

    async def exchange_authorization_code(self, code: str) -> Dict[str, Any]:
        logger.info("Exchanging authorization code for tokens")
        await self.oauth_service.exchange_code(code)
        return self.oauth_service.get_status()

    async def refresh_access_token(self) -> Dict[str, Any]:
        logger.info("Refreshing access token on request")
        await self.oauth_service.refresh()
        return self.oauth_service.get_status()

    async def get_auth_status(self) -> Dict[str, Any]:
        return {**self.oauth_service.get_status(), "checked_at": utc_now_iso()}

    async def get_rate_limit_status(self) -> Dict[str, Any]:
        return self.rate_limiter.get_status()
