"""
Core Exceptions

Exception hierarchy for the gateway.
"""

from .base import (
    ErrorType,
    GatewayError,
    AdmissionTimeoutError,
    CredentialError,
    CredentialMissingError,
    CredentialExpiredError,
    TokenExchangeError,
    TokenRefreshError,
    ProviderError,
    ProviderApplicationError,
    AuthenticationRejectedError,
    RateLimitedError,
    ProviderUnavailableError,
    TransportFailureError,
    UnknownToolError,
    MalformedInvocationError,
    MalformedFrameError,
    ConnectionClosedError,
    ConfigurationError,
)

__all__ = [
    "ErrorType",
    "GatewayError",
    "AdmissionTimeoutError",
    "CredentialError",
    "CredentialMissingError",
    "CredentialExpiredError",
    "TokenExchangeError",
    "TokenRefreshError",
    "ProviderError",
    "ProviderApplicationError",
    "AuthenticationRejectedError",
    "RateLimitedError",
    "ProviderUnavailableError",
    "TransportFailureError",
    "UnknownToolError",
    "MalformedInvocationError",
    "MalformedFrameError",
    "ConnectionClosedError",
    "ConfigurationError",
]
