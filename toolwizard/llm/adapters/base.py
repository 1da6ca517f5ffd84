"""
Base class for LLM provider adapters.

An adapter owns everything backend-specific about one LLM family:
request defaults, model selection by input modality, the wire payload,
the HTTP call, and normalisation of the response into a
CanonicalLlmResponse. The conversation loop only ever calls
``build_request()`` and ``send()``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar

import httpx

from toolwizard.config.settings import LLMSettings
from toolwizard.llm.models import (
    CanonicalChatRequest,
    CanonicalLlmResponse,
    ChatTurn,
    ProviderError,
)

logger = logging.getLogger(__name__)


def normalize_parameters(schema: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Rewrite a tool's JSON-schema parameters into a strict declaration shape.

    Every property gets a ``type``, ``description`` and ``default``; array
    properties also get an ``items`` sub-schema. Backends with strict
    function-declaration validators (Gemini) reject schemas without these.
    """
    schema = schema or {}
    properties: dict[str, Any] = {}
    for key, value in (schema.get("properties") or {}).items():
        value = value or {}
        if value.get("type") == "array":
            properties[key] = {
                "type": "array",
                "items": {"type": (value.get("items") or {}).get("type") or "string"},
                "default": value.get("default") or [],
                "description": value.get("description") or "",
            }
        else:
            properties[key] = {
                "type": value.get("type") or "string",
                "default": value.get("default") or "",
                "description": value.get("description") or "",
            }
    return {
        "type": schema.get("type") or "object",
        "properties": properties,
        "required": list(schema.get("required") or []),
    }


class ProviderAdapter(ABC):
    """
    Abstract base for one LLM backend family.

    Subclasses declare their defaults as class attributes and implement the
    three wire-level hooks: ``endpoint()``, ``build_payload()`` and
    ``parse_response()``.

    Args:
        settings: LLM configuration supplying fallback credentials, model
                  overrides and the transport timeout
        client: Optional shared ``httpx.AsyncClient``. When omitted a
                short-lived client is opened per call.
    """

    #: Human-readable backend name used in error messages
    display_name: ClassVar[str] = "LLM"

    #: Defaults merged underneath settings and caller parameters
    default_params: ClassVar[dict[str, Any]] = {
        "input": "",
        "input_type": "text",
        "prompt": "",
        "api_key": "",
        "chat_history": [],
        "tools": [],
        "tool_choice": "auto",
        "temperature": 0.1,
        "max_tokens": 1000,
    }

    #: Request field holding the model for each non-text input type
    modality_models: ClassVar[dict[str, str]] = {
        "image": "vision_model",
        "audio": "speech_model",
    }

    #: Role used for assistant turns in this backend's history
    assistant_role: ClassVar[str] = "assistant"

    #: LLMSettings attribute holding the fallback API key
    api_key_setting: ClassVar[str] = ""

    def __init__(
        self,
        settings: LLMSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self._settings = settings or LLMSettings()
        self._client = client

    # ------------------------------------------------------------------
    # Request construction
    # ------------------------------------------------------------------

    def _settings_params(self) -> dict[str, Any]:
        """Parameters contributed by configuration (layered over class defaults)."""
        params: dict[str, Any] = {
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
            "tool_choice": self._settings.tool_choice,
        }
        for field in ("chat_model", "vision_model", "speech_model"):
            value = getattr(self._settings, field)
            if value:
                params[field] = value
        if self.api_key_setting:
            api_key = getattr(self._settings, self.api_key_setting, "")
            if api_key:
                params["api_key"] = api_key
        return params

    def build_request(self, params: Mapping[str, Any]) -> CanonicalChatRequest:
        """
        Merge caller parameters over settings over the fixed defaults.

        ``None`` and empty-string caller values count as "not supplied".
        """
        supplied = {k: v for k, v in params.items() if v is not None and v != ""}
        merged = {**self.default_params, **self._settings_params(), **supplied}
        return CanonicalChatRequest.model_validate(merged)

    def select_model(self, request: CanonicalChatRequest) -> str:
        """Pick the model for the request's input modality."""
        field = self.modality_models.get(request.input_type, "chat_model")
        return getattr(request, field) or ""

    def conversation_turns(self, request: CanonicalChatRequest) -> list[ChatTurn]:
        """
        History plus the latest input.

        The input is appended as a user turn unless the history already holds
        it as a user turn (the conversation loop records it there before any
        tool-round turns).
        """
        turns = list(request.chat_history)
        if request.input and not any(
            turn.role == "user" and turn.content == request.input for turn in turns
        ):
            turns.append(ChatTurn(role="user", content=request.input))
        return turns

    def validate(self, request: CanonicalChatRequest) -> None:
        """
        Reject requests that cannot succeed before touching the network.

        Raises:
            ProviderError: If the API key is missing or max_tokens is not positive
        """
        if not request.api_key:
            raise ProviderError(f"{self.display_name} API Key is required")
        if request.max_tokens <= 0:
            raise ProviderError("Max tokens must be greater than 0")

    # ------------------------------------------------------------------
    # Wire-level hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def endpoint(self, request: CanonicalChatRequest) -> tuple[str, dict[str, str], dict[str, str]]:
        """Return ``(url, headers, query_params)`` for the request."""

    @abstractmethod
    def build_payload(self, request: CanonicalChatRequest) -> dict[str, Any]:
        """Translate the canonical request into the backend's JSON body."""

    @abstractmethod
    def parse_response(self, data: dict[str, Any]) -> CanonicalLlmResponse:
        """Translate the backend's JSON body into a canonical response."""

    # ------------------------------------------------------------------
    # Call
    # ------------------------------------------------------------------

    async def send(self, request: CanonicalChatRequest) -> CanonicalLlmResponse:
        """
        Perform one backend call.

        Returns:
            The normalised response. A model that declines to call tools is a
            successful response with no tool calls.

        Raises:
            ProviderError: If validation, transport, or the backend fails
        """
        self.validate(request)
        url, headers, query = self.endpoint(request)
        payload = self.build_payload(request)

        logger.debug(
            f"{self.display_name} request: model={payload.get('model', self.select_model(request))!r} "
            f"turns={len(request.chat_history)} tools={len(request.tools)}"
        )
        data = await self._post(url, payload, headers=headers, params=query)
        return self.parse_response(data)

    async def _post(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        params: dict[str, str],
    ) -> dict[str, Any]:
        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, headers=headers, params=params)
            else:
                async with httpx.AsyncClient(timeout=self._settings.request_timeout) as client:
                    response = await client.post(url, json=payload, headers=headers, params=params)
        except httpx.TimeoutException as e:
            raise ProviderError(f"{self.display_name} request timed out", cause=e)
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.display_name} request failed: {e}", cause=e)

        if response.status_code >= 400:
            raise ProviderError(
                f"{self.display_name} request failed with status {response.status_code}",
                body=_response_body(response),
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                f"{self.display_name} returned a non-JSON response",
                body=response.text,
                status_code=response.status_code,
                cause=e,
            )
        if not isinstance(data, dict):
            raise ProviderError(
                f"{self.display_name} returned an unexpected payload",
                body=data,
                status_code=response.status_code,
            )
        return data


def _response_body(response: httpx.Response) -> Any:
    """Parsed JSON error body when available, otherwise the raw text."""
    try:
        return response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
