"""
Registry of live tool providers.

The registry is built once at startup and then only read: requests look up
providers by server name and never mutate the mapping, so concurrent
requests share it without locking.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterator, Mapping
from contextlib import AsyncExitStack, asynccontextmanager
from types import MappingProxyType

from toolwizard.config.settings import MCPServerConfig
from toolwizard.llm.models import ToolDefinition
from toolwizard.tools.base import ToolAdapter
from toolwizard.tools.mcp_server import MCPServerTool

logger = logging.getLogger(__name__)


class ProviderRegistry(Mapping[str, ToolAdapter]):
    """
    Read-only mapping of server name to tool provider.

    Args:
        providers: Initialised providers keyed by server name
        descriptions: Optional capability text per server
    """

    def __init__(
        self,
        providers: Mapping[str, ToolAdapter],
        descriptions: Mapping[str, str] | None = None,
    ):
        self._providers = MappingProxyType(dict(providers))
        self._descriptions = MappingProxyType(dict(descriptions or {}))

    def __getitem__(self, name: str) -> ToolAdapter:
        return self._providers[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    def describe(self, name: str) -> str:
        return self._descriptions.get(name, "")

    async def catalog(self, server_names: list[str]) -> list[ToolDefinition]:
        """
        Collect the tool catalog of the given servers, in server order.

        Each entry remembers its owning server.

        Raises:
            KeyError: If a server is not registered
        """
        tools: list[ToolDefinition] = []
        for name in server_names:
            for tool in await self._providers[name].list_tools():
                tools.append(ToolDefinition.from_mcp(tool, server=name))
        return tools

    @classmethod
    @asynccontextmanager
    async def open(
        cls,
        configs: list[MCPServerConfig],
        connect_timeout: float = 30.0,
    ) -> AsyncIterator[ProviderRegistry]:
        """
        Start every configured MCP server and yield a registry of the live ones.

        Servers that fail to start are logged and left out. All providers are
        shut down when the context exits.

        Example::

            async with ProviderRegistry.open(settings.tools.servers) as registry:
                service = ToolWizardService(registry, settings)
        """
        async with AsyncExitStack() as stack:
            providers: dict[str, ToolAdapter] = {}
            descriptions: dict[str, str] = {}
            rows: list[str] = []

            for config in configs:
                tool = MCPServerTool(config, connect_timeout=connect_timeout)
                try:
                    await stack.enter_async_context(tool)
                    tool_count = len(await tool.list_tools())
                except Exception as e:
                    logger.error(f"MCP server '{config.name}' failed to start: {e}")
                    rows.append(f"  {config.name:<15} | Init Error: {e}")
                    continue

                providers[config.name] = tool
                descriptions[config.name] = config.description
                rows.append(f"  {config.name:<15} | {tool_count} tools")

            logger.info("MCP servers and available tools:\n" + ("\n".join(rows) or "  (none configured)"))
            yield cls(providers, descriptions)
