"""
Tool dispatcher

Validates tool invocations against the catalog, runs the bound operation and
turns every outcome into exactly one ToolEnvelope. No exception raised by an
operation gets past this boundary.
"""

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from mcp import types

from ...core.exceptions import GatewayError, MalformedInvocationError, UnknownToolError
from ...utils.logging_utils import get_logger
from ...utils.response_utils import ToolEnvelope, error_envelope, success_envelope
from .catalog import ToolCatalog

logger = get_logger(__name__)


@dataclass(frozen=True)
class ToolInvocation:
    """Named, argument-carrying request for one tool"""
    name: str
    arguments: Optional[Mapping[str, Any]] = None


class ToolDispatcher:
    """Maps tool invocations onto gateway operations"""

    def __init__(self, catalog: ToolCatalog, targets: Mapping[str, Any]):
        """
        Initialize the dispatcher and bind the catalog.

        Args:
            catalog: Tool declarations
            targets: Objects providing the operations, keyed by target name

        Raises:
            ConfigurationError: If a declared tool cannot be bound
        """
        self.catalog = catalog
        self._tools = catalog.bind(targets)

    def list_tools(self) -> List[types.Tool]:
        """The static tool catalog as MCP Tool definitions."""
        return self.catalog.list_tools()

    async def invoke(self, invocation: ToolInvocation) -> ToolEnvelope:
        """
        Run one tool invocation.

        Args:
            invocation: Tool name and arguments as received

        Returns:
            Success envelope with the operation result, or a failure envelope
        """
        try:
            result = await self._dispatch(invocation)
        except GatewayError as e:
            logger.warning(f"Tool {invocation.name} failed: {e.error_type.value}: {e.message}")
            return error_envelope(e)
        except Exception as e:
            logger.error(f"Unexpected error in tool {invocation.name}: {e}", exc_info=True)
            return error_envelope(GatewayError.from_exception(e))

        return success_envelope(result)

    async def _dispatch(self, invocation: ToolInvocation) -> Any:
        if invocation.arguments is None:
            raise MalformedInvocationError("Missing arguments for tool call", field="arguments")
        if not isinstance(invocation.arguments, Mapping):
            raise MalformedInvocationError(
                "Tool arguments must be an object",
                field="arguments",
                value=invocation.arguments
            )

        tool = self._tools.get(invocation.name)
        if tool is None:
            raise UnknownToolError(invocation.name)

        tool.validate(invocation.arguments)

        logger.info(f"Invoking tool {invocation.name}")
        return await tool(invocation.arguments)
