"""
OAuth Protocol Definition

Protocol for OAuth2 credential managers.
"""

from typing import Protocol, Optional, Any, runtime_checkable


@runtime_checkable
class OAuthProtocol(Protocol):
    """Protocol for OAuth2 authentication."""

    def build_authorization_url(self, state: Optional[str] = None) -> str:
        """
        Build the user-facing authorization URL.

        Args:
            state: Anti-forgery state value

        Returns:
            Authorization URL
        """
        ...

    async def exchange_code(self, code: str) -> Any:
        """
        Exchange an authorization code for a credential.

        Args:
            code: Authorization code

        Returns:
            New credential
        """
        ...

    async def refresh(self) -> Any:
        """
        Refresh the stored credential.

        Returns:
            New credential
        """
        ...

    def current_access_token(self) -> Optional[str]:
        """
        Get the stored access token.

        Returns:
            Access token or None
        """
        ...

    def is_expired(self) -> bool:
        """
        Check whether the credential is absent or expired.

        Returns:
            True if no usable credential
        """
        ...
