"""
API Client Protocol Definition

Defines the interface for governed API client implementations.
"""

from typing import Protocol, Dict, Any, Optional


class APIClientProtocol(Protocol):
    """Protocol for API client implementations."""

    async def call(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        requires_auth: bool = False
    ) -> Dict[str, Any]:
        """
        Perform one governed GET request.

        Args:
            path: API path relative to the base URL
            params: Query parameters
            requires_auth: Attach the bearer token

        Returns:
            Decoded JSON body
        """
        ...

    async def close(self) -> None:
        """Release the HTTP client."""
        ...
