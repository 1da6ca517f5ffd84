"""
Tool dispatcher.

Executes one tool call against its provider after shaping credentials into
the arguments. A failing call is not a system error: the exception is
logged and its string becomes the result, which the model sees next round.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from toolwizard.tools.base import ToolAdapter
from toolwizard.tools.credentials import CREDENTIAL_SHAPERS, CredentialShaper, apply_credentials

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """
    Routes tool calls to providers from an injected, read-only registry.

    Args:
        providers: Server name -> tool provider (e.g. a ProviderRegistry)
        shapers: Server name -> credential shaper
    """

    def __init__(
        self,
        providers: Mapping[str, ToolAdapter],
        shapers: Mapping[str, CredentialShaper] = CREDENTIAL_SHAPERS,
    ):
        self._providers = providers
        self._shapers = shapers

    async def execute(
        self,
        provider_name: str,
        credentials: Mapping[str, Any] | None,
        tool_name: str,
        args: dict[str, Any],
    ) -> Any:
        """
        Execute ``tool_name`` on ``provider_name``.

        Args:
            provider_name: Server that owns the tool
            credentials: That server's credential bundle from the request
            tool_name: Tool to call
            args: Parsed tool arguments; credentials are injected in place

        Returns:
            The provider's result, or the stringified error if the call failed
            or the provider is unknown.
        """
        provider = self._providers.get(provider_name)
        if provider is None:
            message = f"Unknown tool provider: {provider_name}"
            logger.warning(message)
            return message

        try:
            apply_credentials(provider_name, credentials, args, self._shapers)
            return await provider.call(tool_name, args)
        except Exception as e:
            logger.warning(f"Tool '{tool_name}' on '{provider_name}' failed: {e}")
            return str(e)
