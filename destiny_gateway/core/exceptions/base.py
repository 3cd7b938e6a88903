"""
Base Exception Classes

Error taxonomy for the gateway. Every failure that can reach a tool caller
is a GatewayError subclass carrying an ErrorType, so the dispatcher can
report auth, rate-limit, provider and input problems distinctly.
"""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorType(Enum):
    """Error type enumeration"""
    ADMISSION_TIMEOUT = "admission_timeout"
    CREDENTIAL_MISSING = "credential_missing"
    CREDENTIAL_EXPIRED = "credential_expired"
    TOKEN_EXCHANGE_FAILED = "token_exchange_failed"
    TOKEN_REFRESH_FAILED = "token_refresh_failed"
    PROVIDER_APPLICATION_ERROR = "provider_application_error"
    AUTHENTICATION_REJECTED = "authentication_rejected"
    RATE_LIMITED = "rate_limited"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    TRANSPORT_FAILURE = "transport_failure"
    UNKNOWN_TOOL = "unknown_tool"
    MALFORMED_INVOCATION = "malformed_invocation"
    MALFORMED_FRAME = "malformed_frame"
    CONNECTION_CLOSED = "connection_closed"
    CONFIGURATION_ERROR = "configuration_error"
    INTERNAL_ERROR = "internal_error"


class GatewayError(Exception):
    """Base exception for all application errors."""

    error_type: ErrorType = ErrorType.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.details = details or {}
        self.original_exception = original_exception
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error": self.__class__.__name__,
            "error_type": self.error_type.value,
            "message": self.message,
            "details": self.details
        }

    @classmethod
    def from_exception(cls, exc: Exception) -> "GatewayError":
        """Wrap an arbitrary exception, keeping it as the cause."""
        return cls(message=str(exc) or exc.__class__.__name__, original_exception=exc)


# Admission control

class AdmissionTimeoutError(GatewayError):
    """Admission could not be granted before the caller's deadline."""

    error_type = ErrorType.ADMISSION_TIMEOUT

    def __init__(self, message: str, wait_ms: Optional[float] = None):
        super().__init__(message, details={"wait_ms": wait_ms})
        self.wait_ms = wait_ms


# Credentials

class CredentialError(GatewayError):
    """Credential lifecycle errors."""


class CredentialMissingError(CredentialError):
    """No usable credential (or refresh token) is stored."""

    error_type = ErrorType.CREDENTIAL_MISSING


class CredentialExpiredError(CredentialError):
    """The stored access token is past its expiry."""

    error_type = ErrorType.CREDENTIAL_EXPIRED


class TokenExchangeError(CredentialError):
    """Authorization-code exchange failed."""

    error_type = ErrorType.TOKEN_EXCHANGE_FAILED


class TokenRefreshError(CredentialError):
    """Refresh-token grant failed."""

    error_type = ErrorType.TOKEN_REFRESH_FAILED


# Upstream API

class ProviderError(GatewayError):
    """Errors reported by, or about, the upstream API."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message, details, original_exception)
        self.status_code = status_code
        self.endpoint = endpoint

        self.details["status_code"] = status_code
        self.details["endpoint"] = endpoint


class ProviderApplicationError(ProviderError):
    """The API answered but reported a logical failure."""

    error_type = ErrorType.PROVIDER_APPLICATION_ERROR

    def __init__(
        self,
        message: str,
        error_code: Optional[int] = None,
        error_status: Optional[str] = None,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None
    ):
        super().__init__(message, status_code=status_code, endpoint=endpoint)
        self.error_code = error_code
        self.error_status = error_status

        self.details["error_code"] = error_code
        self.details["error_status"] = error_status


class AuthenticationRejectedError(ProviderError):
    """HTTP 401 from the API."""

    error_type = ErrorType.AUTHENTICATION_REJECTED


class RateLimitedError(ProviderError):
    """HTTP 429 from the API (remote throttling, not local admission)."""

    error_type = ErrorType.RATE_LIMITED

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        endpoint: Optional[str] = None
    ):
        super().__init__(message, status_code=429, endpoint=endpoint)
        self.retry_after = retry_after
        self.details["retry_after"] = retry_after


class ProviderUnavailableError(ProviderError):
    """HTTP 5xx from the API."""

    error_type = ErrorType.PROVIDER_UNAVAILABLE


class TransportFailureError(ProviderError):
    """Network or connection level failure talking to the API."""

    error_type = ErrorType.TRANSPORT_FAILURE


# Tool invocation

class UnknownToolError(GatewayError):
    """Invocation named a tool that is not in the catalog."""

    error_type = ErrorType.UNKNOWN_TOOL

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}", details={"tool": tool_name})
        self.tool_name = tool_name


class MalformedInvocationError(GatewayError):
    """Missing or invalid tool arguments."""

    error_type = ErrorType.MALFORMED_INVOCATION

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None
    ):
        super().__init__(message, details={"field": field, "value": value})
        self.field = field
        self.value = value


# Peer transport

class MalformedFrameError(GatewayError):
    """An inbound frame could not be parsed as a protocol message."""

    error_type = ErrorType.MALFORMED_FRAME


class ConnectionClosedError(GatewayError):
    """Outbound send on a connection that is closed or not ready."""

    error_type = ErrorType.CONNECTION_CLOSED


class ConfigurationError(GatewayError):
    """Configuration-related errors."""

    error_type = ErrorType.CONFIGURATION_ERROR

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.config_key = config_key

        self.details["config_key"] = config_key
