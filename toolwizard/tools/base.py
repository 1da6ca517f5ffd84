"""
Base classes for tool adapters.

Provides the capability interface every tool provider exposes to the
orchestration engine: ``list_tools()`` and ``call(name, arguments)``.
"""

from abc import ABC, abstractmethod
from typing import Any


class ToolExecutionError(RuntimeError):
    """
    Raised when a tool provider cannot execute a call.

    The dispatcher never lets this escape: the stringified error becomes the
    tool's result so the model can react to it in the next round.
    """


class ToolAdapter(ABC):
    """
    Abstract base class for tool adapters.

    Tool adapters provide a uniform interface for calling external tools,
    whether they're MCP servers, REST APIs, or other integrations.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """
        Initialize the tool adapter.

        This may involve starting subprocesses, establishing connections,
        or performing handshakes with external services.

        Raises:
            ConnectionError: If initialization fails
        """
        pass

    @abstractmethod
    async def shutdown(self) -> None:
        """
        Cleanly shut down the tool adapter.

        This should close connections, terminate subprocesses,
        and release any resources.
        """
        pass

    @abstractmethod
    async def call(self, tool_name: str, arguments: dict[str, Any]) -> Any:
        """
        Call a tool with the given arguments.

        Args:
            tool_name: Name of the tool to invoke
            arguments: Tool-specific arguments, credentials already injected

        Returns:
            Opaque, JSON-serialisable tool result

        Raises:
            ToolExecutionError: If the provider cannot execute the call
        """
        pass

    @abstractmethod
    async def list_tools(self) -> list[dict[str, Any]]:
        """
        List all available tools from this adapter.

        Returns:
            List of tool schemas. ``description`` and ``input_schema`` may be
            missing or None.

        Example:
            [
                {
                    "name": "execute_command",
                    "description": "Run an allow-listed shell command",
                    "input_schema": {
                        "type": "object",
                        "properties": {
                            "command": {"type": "string", "description": "Command line to run"}
                        },
                        "required": ["command"]
                    }
                }
            ]
        """
        pass

    async def __aenter__(self):
        """Context manager entry - initialize the adapter."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - shutdown the adapter."""
        await self.shutdown()
        return False
