"""
MCP tool provider adapter.

Spawns one configured MCP server as a subprocess and talks to it over
JSON-RPC on stdio.
"""

import asyncio
import logging
import os
from typing import Any

from mcp import ClientSession
from mcp.client.stdio import StdioServerParameters, stdio_client

from toolwizard.config.settings import MCPServerConfig
from toolwizard.tools.base import ToolAdapter, ToolExecutionError

logger = logging.getLogger(__name__)


class MCPServerTool(ToolAdapter):
    """
    Tool provider backed by an MCP server subprocess.

    Args:
        config: How to start the server (command, args, env)
        connect_timeout: Seconds allowed for the MCP handshake
    """

    def __init__(self, config: MCPServerConfig, connect_timeout: float = 30.0):
        self.config = config
        self._connect_timeout = connect_timeout
        self._initialized = False
        self._session = None
        self._stdio_context = None
        self._session_context = None

    @property
    def name(self) -> str:
        return self.config.name

    async def initialize(self) -> None:
        """Start the MCP server subprocess and perform the handshake."""
        server_params = StdioServerParameters(
            command=self.config.command,
            args=list(self.config.args),
            env={**os.environ, **self.config.env} if self.config.env else None,
        )
        logger.info(
            f"Starting MCP server '{self.name}': {self.config.command} {' '.join(self.config.args)}"
        )

        # Start the subprocess and keep the context managers for shutdown
        self._stdio_context = stdio_client(server_params)
        read_stream, write_stream = await self._stdio_context.__aenter__()

        self._session_context = ClientSession(read_stream, write_stream)
        self._session = await self._session_context.__aenter__()

        try:
            await asyncio.wait_for(self._session.initialize(), timeout=self._connect_timeout)
        except BaseException:
            await self._close()
            raise

        self._initialized = True

    async def shutdown(self) -> None:
        """Close the session and terminate the subprocess."""
        if not self._initialized:
            return  # Already shut down or never initialized

        await self._close()
        self._initialized = False
        logger.info(f"MCP server '{self.name}' stopped")

    async def _close(self) -> None:
        if self._session_context is not None:
            await self._session_context.__aexit__(None, None, None)
            self._session_context = None
            self._session = None

        if self._stdio_context is not None:
            await self._stdio_context.__aexit__(None, None, None)
            self._stdio_context = None

    async def call(self, tool_name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Call a tool and return the MCP result as plain JSON (content blocks, isError)."""
        if not self._initialized:
            raise ToolExecutionError(f"MCP server '{self.name}' is not initialized")

        result = await self._session.call_tool(tool_name, arguments)
        return result.model_dump(mode="json", exclude_none=True)

    async def list_tools(self) -> list[dict[str, Any]]:
        """List tools exposed by the MCP server."""
        if not self._initialized:
            raise ToolExecutionError(f"MCP server '{self.name}' is not initialized")

        result = await self._session.list_tools()
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.inputSchema,
            }
            for tool in result.tools
        ]
