"""
Standardized response envelopes for MCP tool calls

Every tool invocation produces exactly one ToolEnvelope, success or failure.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

from mcp import types

from ..core.exceptions import ErrorType, GatewayError


@dataclass
class ToolEnvelope:
    """Uniform success/failure wrapper returned for every invocation"""
    is_error: bool
    payload: Any = None
    error_type: Optional[ErrorType] = None
    message: Optional[str] = None

    @property
    def text(self) -> str:
        """Text rendering placed in the MCP content block."""
        if self.is_error:
            return format_error_text(self.error_type or ErrorType.INTERNAL_ERROR, self.message or "")
        return json.dumps(self.payload, indent=2)

    def to_result(self) -> types.CallToolResult:
        """Render as an MCP CallToolResult."""
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=self.text)],
            isError=self.is_error
        )


def success_envelope(payload: Any) -> ToolEnvelope:
    """
    Create a success envelope

    Args:
        payload: Upstream body, relayed verbatim

    Returns:
        Success envelope
    """
    return ToolEnvelope(is_error=False, payload=payload)


def error_envelope(error: GatewayError) -> ToolEnvelope:
    """
    Create a failure envelope from a gateway error

    Args:
        error: Classified error raised somewhere below the dispatcher

    Returns:
        Failure envelope carrying the error type and message
    """
    return ToolEnvelope(
        is_error=True,
        payload=error.to_dict(),
        error_type=error.error_type,
        message=error.message
    )


def get_error_suggestion(error_type: ErrorType) -> str:
    """Get a one-line hint telling the caller what to do next"""
    suggestions = {
        ErrorType.ADMISSION_TIMEOUT: "The local rate limiter is saturated. Retry later.",
        ErrorType.CREDENTIAL_MISSING: "Authenticate first: open the authorization URL and exchange the returned code.",
        ErrorType.CREDENTIAL_EXPIRED: "The access token expired. Call refresh_access_token, then retry.",
        ErrorType.TOKEN_EXCHANGE_FAILED: "Request a new authorization code and exchange it again.",
        ErrorType.TOKEN_REFRESH_FAILED: "Refresh failed. Re-authenticate with a new authorization code.",
        ErrorType.PROVIDER_APPLICATION_ERROR: "Bungie rejected the request. Check the identifiers and parameters.",
        ErrorType.AUTHENTICATION_REJECTED: "Bungie rejected the credentials. Refresh or re-authenticate.",
        ErrorType.RATE_LIMITED: "Bungie is throttling requests. Wait before retrying.",
        ErrorType.PROVIDER_UNAVAILABLE: "Bungie API server error. Try again later.",
        ErrorType.TRANSPORT_FAILURE: "Network problem reaching Bungie. Retry shortly.",
        ErrorType.UNKNOWN_TOOL: "Call tools/list to see the available tools.",
        ErrorType.MALFORMED_INVOCATION: "Fix the tool arguments to match the tool's input schema.",
        ErrorType.MALFORMED_FRAME: "Send well-formed JSON-RPC messages.",
        ErrorType.CONNECTION_CLOSED: "Reconnect and retry.",
        ErrorType.CONFIGURATION_ERROR: "Check the gateway configuration.",
        ErrorType.INTERNAL_ERROR: "Unexpected gateway error. Retry or report it.",
    }

    return suggestions.get(error_type, suggestions[ErrorType.INTERNAL_ERROR])


def format_error_text(error_type: ErrorType, message: str) -> str:
    """Format an error for the calling agent"""
    return f"Error [{error_type.value}]: {message}\nHint: {get_error_suggestion(error_type)}"
