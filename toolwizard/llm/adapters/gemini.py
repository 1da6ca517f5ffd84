"""
Gemini generateContent adapter.

Wire format:
    POST {base_url}/models/{model}:generateContent?key=<api_key>
    {"system_instruction": {"parts": [{"text": prompt}]},
     "contents": [{"role": "user"|"model", "parts": [{"text": ...}]}, ...],
     "generationConfig": {"temperature", "maxOutputTokens"},
     "tools"?: [{"functionDeclarations": [...]}]}

Tool calls are read from ``candidates[0].content.parts[*].functionCall``.
Gemini does not correlate calls to results, so invocations carry no id.
"""

from __future__ import annotations

from typing import Any, ClassVar

from toolwizard.llm.adapters.base import ProviderAdapter, normalize_parameters
from toolwizard.llm.models import (
    CanonicalChatRequest,
    CanonicalLlmResponse,
    ProviderError,
    TokenUsage,
    ToolInvocation,
)


class GeminiAdapter(ProviderAdapter):
    """Adapter for the Google Gemini API."""

    display_name: ClassVar[str] = "Gemini"
    default_params: ClassVar[dict[str, Any]] = {
        **ProviderAdapter.default_params,
        "chat_model": "gemini-2.0-pro",
        "vision_model": "gemini-pro-vision",
        "speech_model": "",
    }
    # No separate audio model
    modality_models: ClassVar[dict[str, str]] = {"image": "vision_model"}
    assistant_role: ClassVar[str] = "model"
    api_key_setting: ClassVar[str] = "gemini_api_key"

    def validate(self, request: CanonicalChatRequest) -> None:
        super().validate(request)
        if not request.prompt and not request.input:
            raise ProviderError("Prompt or input is required")

    def endpoint(self, request: CanonicalChatRequest) -> tuple[str, dict[str, str], dict[str, str]]:
        base = self._settings.gemini_base_url.rstrip("/")
        url = f"{base}/models/{self.select_model(request)}:generateContent"
        return url, {"Content-Type": "application/json"}, {"key": request.api_key}

    def build_contents(self, request: CanonicalChatRequest) -> list[dict[str, Any]]:
        """History as Gemini contents; assistant turns become model turns, others are dropped."""
        contents: list[dict[str, Any]] = []
        for turn in self.conversation_turns(request):
            role = "model" if turn.role == "assistant" else turn.role
            if role not in ("user", "model"):
                continue
            contents.append({"role": role, "parts": [{"text": turn.content}]})
        return contents

    def build_tools(self, request: CanonicalChatRequest) -> list[dict[str, Any]]:
        return [
            {
                "functionDeclarations": [
                    {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": normalize_parameters(tool.parameters),
                    }
                    for tool in request.tools
                ]
            }
        ]

    def build_payload(self, request: CanonicalChatRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "system_instruction": {"parts": [{"text": request.prompt}]},
            "contents": self.build_contents(request),
            "generationConfig": {
                "temperature": request.temperature,
                "maxOutputTokens": request.max_tokens,
            },
        }
        if request.tools:
            payload["tools"] = self.build_tools(request)
        return payload

    def parse_response(self, data: dict[str, Any]) -> CanonicalLlmResponse:
        candidates = data.get("candidates") or [{}]
        parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []

        text = next((part["text"] for part in parts if part.get("text")), "")
        tool_calls = [
            ToolInvocation(
                id=None,
                name=part["functionCall"].get("name", ""),
                raw_arguments=part["functionCall"].get("args") or {},
            )
            for part in parts
            if part.get("functionCall")
        ]

        usage = data.get("usageMetadata") or {}
        return CanonicalLlmResponse(
            text=text,
            tool_calls=tool_calls,
            usage=TokenUsage(
                total_tokens=usage.get("totalTokenCount") or 0,
                input_tokens=usage.get("promptTokenCount") or 0,
                output_tokens=usage.get("candidatesTokenCount") or 0,
            ),
            raw=data,
        )
