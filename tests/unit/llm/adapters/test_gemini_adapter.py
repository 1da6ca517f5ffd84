"""
Unit tests for the Gemini adapter.

Tests cover:
- URL, API key placement and model selection
- system_instruction / contents / generationConfig payload
- Role mapping of history turns
- functionDeclarations with normalised parameter schemas
- Response normalisation (text, function calls, usageMetadata)
"""

import json

import httpx
import pytest

from toolwizard.config.settings import LLMSettings
from toolwizard.llm.adapters import GeminiAdapter, normalize_parameters
from toolwizard.llm.models import ChatTurn, ProviderError, ToolDefinition


def _make_recording_client(body: dict):
    sent: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(200, json=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler)), sent


def _make_candidate(*parts: dict, usage: dict | None = None) -> dict:
    body = {"candidates": [{"content": {"role": "model", "parts": list(parts)}}]}
    if usage is not None:
        body["usageMetadata"] = usage
    return body


@pytest.fixture
def settings():
    return LLMSettings(gemini_api_key="")


@pytest.fixture
def adapter(settings):
    return GeminiAdapter(settings)


class TestNormalizeParameters:

    def test_fills_missing_fields(self):
        schema = {
            "type": "object",
            "properties": {
                "to": {"type": "string"},
                "cc": {"type": "array", "items": {"type": "string"}, "description": "Copies"},
                "count": {},
            },
            "required": ["to"],
        }
        assert normalize_parameters(schema) == {
            "type": "object",
            "properties": {
                "to": {"type": "string", "default": "", "description": ""},
                "cc": {"type": "array", "items": {"type": "string"}, "default": [], "description": "Copies"},
                "count": {"type": "string", "default": "", "description": ""},
            },
            "required": ["to"],
        }

    def test_array_without_items(self):
        normalized = normalize_parameters({"properties": {"ids": {"type": "array"}}})
        assert normalized["properties"]["ids"]["items"] == {"type": "string"}

    def test_empty_schema(self):
        assert normalize_parameters(None) == {"type": "object", "properties": {}, "required": []}


class TestGeminiPayload:

    def test_system_instruction_and_generation_config(self, adapter):
        request = adapter.build_request({"input": "hi", "prompt": "Be brief", "max_tokens": 200})
        payload = adapter.build_payload(request)

        assert payload["system_instruction"] == {"parts": [{"text": "Be brief"}]}
        assert payload["generationConfig"] == {"temperature": 0.1, "maxOutputTokens": 200}
        assert payload["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]
        assert "tools" not in payload

    def test_assistant_turns_become_model_and_others_dropped(self, adapter):
        request = adapter.build_request(
            {
                "input": "again",
                "chat_history": [
                    ChatTurn(role="user", content="hi"),
                    ChatTurn(role="assistant", content="hello"),
                    ChatTurn(role="system", content="ignored"),
                    ChatTurn(role="model", content="tool summary"),
                ],
            }
        )
        contents = adapter.build_payload(request)["contents"]
        assert [c["role"] for c in contents] == ["user", "model", "model", "user"]
        assert contents[-1]["parts"] == [{"text": "again"}]

    def test_tools_become_function_declarations(self, adapter):
        tool = ToolDefinition(
            name="send_email",
            description="Send an email",
            parameters={"type": "object", "properties": {"to": {"type": "string"}}, "required": ["to"]},
        )
        payload = adapter.build_payload(adapter.build_request({"input": "hi", "tools": [tool]}))

        declaration = payload["tools"][0]["functionDeclarations"][0]
        assert declaration["name"] == "send_email"
        assert declaration["parameters"]["properties"]["to"] == {
            "type": "string",
            "default": "",
            "description": "",
        }

    def test_image_input_uses_vision_model(self, adapter):
        request = adapter.build_request({"input_type": "image"})
        assert adapter.select_model(request) == "gemini-pro-vision"

    def test_audio_input_falls_back_to_chat_model(self, adapter):
        request = adapter.build_request({"input_type": "audio"})
        assert adapter.select_model(request) == "gemini-2.0-pro"


class TestGeminiSend:

    @pytest.mark.asyncio
    async def test_key_in_query_and_model_in_path(self, settings):
        client, sent = _make_recording_client(_make_candidate({"text": "Hi"}))
        adapter = GeminiAdapter(settings, client=client)

        await adapter.send(adapter.build_request({"input": "hi", "api_key": "g-key"}))

        request = sent[0]
        assert request.url.path == "/v1beta/models/gemini-2.0-pro:generateContent"
        assert request.url.params["key"] == "g-key"
        assert "contents" in json.loads(request.content)

    @pytest.mark.asyncio
    async def test_parses_text_and_usage(self, settings):
        body = _make_candidate(
            {"text": "Hello there"},
            usage={"promptTokenCount": 7, "candidatesTokenCount": 3, "totalTokenCount": 10},
        )
        client, _ = _make_recording_client(body)
        adapter = GeminiAdapter(settings, client=client)

        response = await adapter.send(adapter.build_request({"input": "hi", "api_key": "g-key"}))

        assert response.output_type == "text"
        assert response.text == "Hello there"
        assert (response.usage.total_tokens, response.usage.input_tokens, response.usage.output_tokens) == (10, 7, 3)

    @pytest.mark.asyncio
    async def test_parses_every_function_call_part(self, settings):
        body = _make_candidate(
            {"functionCall": {"name": "send_email", "args": {"to": "a@b.com"}}},
            {"functionCall": {"name": "list_files", "args": {}}},
        )
        client, _ = _make_recording_client(body)
        adapter = GeminiAdapter(settings, client=client)

        response = await adapter.send(adapter.build_request({"input": "hi", "api_key": "g-key"}))

        assert response.output_type == "tool_call"
        assert [call.name for call in response.tool_calls] == ["send_email", "list_files"]
        assert response.tool_calls[0].id is None
        assert response.tool_calls[0].parse_arguments() == {"to": "a@b.com"}

    @pytest.mark.asyncio
    async def test_requires_prompt_or_input(self, adapter):
        with pytest.raises(ProviderError, match="Prompt or input is required"):
            await adapter.send(adapter.build_request({"api_key": "g-key"}))

    @pytest.mark.asyncio
    async def test_requires_api_key(self, adapter):
        with pytest.raises(ProviderError, match="Gemini API Key is required"):
            await adapter.send(adapter.build_request({"input": "hi"}))
