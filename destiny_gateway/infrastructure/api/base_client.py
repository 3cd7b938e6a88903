"""
Base API Client

Base implementation for API clients with common functionality.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Dict

import httpx

logger = logging.getLogger(__name__)


class BaseAPIClient(ABC):
    """Base API client owning the httpx connection pool."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize base API client.

        Args:
            base_url: Base URL for API
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Enter async context."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context."""
        await self.close()

    async def initialize(self) -> None:
        """Initialize HTTP client."""
        if not self._client:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=self._get_default_headers(),
                transport=self._transport
            )
            logger.info(f"API client initialized for {self.base_url}")

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("API client closed")

    @abstractmethod
    def _get_default_headers(self) -> Dict[str, str]:
        """Get default headers for requests."""
        pass

    def _build_url(self, endpoint: str) -> str:
        """Resolve an endpoint against the base URL."""
        if endpoint.startswith('http'):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def _execute_request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> httpx.Response:
        """
        Execute the actual HTTP request.

        Args:
            method: HTTP method
            endpoint: API endpoint
            **kwargs: Additional request arguments

        Returns:
            HTTP response

        Raises:
            httpx.HTTPStatusError: On non-2xx responses
            httpx.TransportError: On network failures
        """
        if not self._client:
            await self.initialize()

        url = self._build_url(endpoint)

        logger.debug(f"{method} {url}")

        response = await self._client.request(
            method=method,
            url=url,
            **kwargs
        )

        response.raise_for_status()
        return response

