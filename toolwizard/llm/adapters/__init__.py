"""
LLM provider adapters.

Each adapter implements the same ``send(request) -> CanonicalLlmResponse``
contract for one backend family. Requests pick a backend with a client
selector string:

    MCP_CLIENT_OPENAI    -> OpenAIAdapter
    MCP_CLIENT_AZURE_AI  -> AzureOpenAIAdapter
    MCP_CLIENT_GEMINI    -> GeminiAdapter
"""

from __future__ import annotations

import httpx

from toolwizard.config.settings import LLMSettings
from toolwizard.llm.adapters.azure import AzureOpenAIAdapter
from toolwizard.llm.adapters.base import ProviderAdapter, normalize_parameters
from toolwizard.llm.adapters.gemini import GeminiAdapter
from toolwizard.llm.adapters.openai import OpenAIAdapter

ADAPTERS: dict[str, type[ProviderAdapter]] = {
    "MCP_CLIENT_OPENAI": OpenAIAdapter,
    "MCP_CLIENT_AZURE_AI": AzureOpenAIAdapter,
    "MCP_CLIENT_GEMINI": GeminiAdapter,
}


def create_adapter(
    selector: str,
    settings: LLMSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> ProviderAdapter:
    """
    Instantiate the adapter registered for a client selector.

    Raises:
        KeyError: If the selector is unknown
    """
    return ADAPTERS[selector](settings=settings, client=client)


__all__ = [
    "ADAPTERS",
    "AzureOpenAIAdapter",
    "GeminiAdapter",
    "OpenAIAdapter",
    "ProviderAdapter",
    "create_adapter",
    "normalize_parameters",
]
