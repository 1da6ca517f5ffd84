"""
Azure OpenAI adapter.

Same message and response shapes as OpenAI; only addressing and auth differ:
    POST {endpoint}/openai/deployments/{deployment}/chat/completions?api-version=...
    api-key: <key>

The selected model name is used as the deployment name.
"""

from __future__ import annotations

from typing import Any, ClassVar

from toolwizard.llm.adapters.base import ProviderAdapter
from toolwizard.llm.adapters.openai import OpenAIAdapter
from toolwizard.llm.models import CanonicalChatRequest, ProviderError


class AzureOpenAIAdapter(OpenAIAdapter):
    """Adapter for Azure OpenAI deployments."""

    display_name: ClassVar[str] = "Azure OpenAI"
    default_params: ClassVar[dict[str, Any]] = {
        **ProviderAdapter.default_params,
        "chat_model": "",
        "vision_model": "",
        "speech_model": "",
    }
    api_key_setting: ClassVar[str] = "azure_api_key"

    def _azure_option(self, request: CanonicalChatRequest, *names: str) -> str:
        extras = request.model_extra or {}
        for name in names:
            if extras.get(name):
                return str(extras[name])
        return ""

    def validate(self, request: CanonicalChatRequest) -> None:
        super().validate(request)
        if not (self._azure_option(request, "endpoint", "azure_endpoint") or self._settings.azure_endpoint):
            raise ProviderError("Azure OpenAI endpoint is required")
        if not self.select_model(request):
            raise ProviderError("Azure OpenAI deployment name is required")

    def endpoint(self, request: CanonicalChatRequest) -> tuple[str, dict[str, str], dict[str, str]]:
        base = self._azure_option(request, "endpoint", "azure_endpoint") or self._settings.azure_endpoint
        api_version = self._azure_option(request, "api_version") or self._settings.azure_api_version
        url = f"{base.rstrip('/')}/openai/deployments/{self.select_model(request)}/chat/completions"
        headers = {
            "Content-Type": "application/json",
            "api-key": request.api_key,
        }
        return url, headers, {"api-version": api_version}

    def build_payload(self, request: CanonicalChatRequest) -> dict[str, Any]:
        payload = super().build_payload(request)
        # The deployment in the URL selects the model
        payload.pop("model", None)
        return payload
