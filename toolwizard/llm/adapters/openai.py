"""
OpenAI chat-completions adapter.

Wire format:
    POST {base_url}/chat/completions
    {"model", "messages": [system, *history], "max_tokens", "temperature",
     "stream": false, "tools"?, "tool_choice"?}

Tool calls are read from ``choices[0].message.tool_calls``; each carries an
``id`` that is kept on the ToolInvocation.
"""

from __future__ import annotations

from typing import Any, ClassVar

from toolwizard.llm.adapters.base import ProviderAdapter
from toolwizard.llm.models import (
    CanonicalChatRequest,
    CanonicalLlmResponse,
    TokenUsage,
    ToolInvocation,
)


class OpenAIAdapter(ProviderAdapter):
    """Adapter for OpenAI and OpenAI-compatible chat-completions endpoints."""

    display_name: ClassVar[str] = "OpenAI"
    default_params: ClassVar[dict[str, Any]] = {
        **ProviderAdapter.default_params,
        "chat_model": "gpt-4o-mini",
        "vision_model": "gpt-4o",
        "speech_model": "gpt-4o-audio-preview",
    }
    api_key_setting: ClassVar[str] = "openai_api_key"

    def endpoint(self, request: CanonicalChatRequest) -> tuple[str, dict[str, str], dict[str, str]]:
        url = f"{self._settings.openai_base_url.rstrip('/')}/chat/completions"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {request.api_key}",
        }
        return url, headers, {}

    def build_messages(self, request: CanonicalChatRequest) -> list[dict[str, Any]]:
        """System prompt first, then every history turn as role/content."""
        messages: list[dict[str, Any]] = [{"role": "system", "content": request.prompt}]
        for turn in self.conversation_turns(request):
            messages.append({"role": turn.role, "content": turn.content})
        return messages

    def build_payload(self, request: CanonicalChatRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.select_model(request),
            "messages": self.build_messages(request),
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "stream": False,
        }
        # tool_choice is rejected by the API unless tools are present
        if request.tools:
            payload["tools"] = [tool.to_openai() for tool in request.tools]
            payload["tool_choice"] = request.tool_choice or "auto"
        return payload

    def parse_response(self, data: dict[str, Any]) -> CanonicalLlmResponse:
        choices = data.get("choices") or [{}]
        message = (choices[0] or {}).get("message") or {}

        tool_calls = [
            ToolInvocation(
                id=call.get("id"),
                name=(call.get("function") or {}).get("name", ""),
                raw_arguments=(call.get("function") or {}).get("arguments") or "{}",
            )
            for call in message.get("tool_calls") or []
        ]

        usage = data.get("usage") or {}
        return CanonicalLlmResponse(
            text=message.get("content") or "",
            tool_calls=tool_calls,
            usage=TokenUsage(
                total_tokens=usage.get("total_tokens") or 0,
                input_tokens=usage.get("prompt_tokens") or 0,
                output_tokens=usage.get("completion_tokens") or 0,
            ),
            raw=data,
        )
