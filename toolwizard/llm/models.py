"""
Canonical data model for the orchestration engine.

Provider adapters translate to and from these shapes so the conversation
loop never touches a backend-specific payload except through ``raw``:

- ChatTurn / ToolDefinition / CanonicalChatRequest: what goes into an adapter
- ToolInvocation / TokenUsage / CanonicalLlmResponse: what comes back out
- ExecutedToolCall / ExecutionData / ExecutionResult: the envelope returned
  to the caller, with the capitalised ``Data`` / ``Error`` / ``Status`` keys
  the wire contract uses
- ProviderError: an LLM backend call failed
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer

InputType = Literal["text", "image", "audio"]
OutputType = Literal["text", "tool_call"]


class ProviderError(Exception):
    """
    Raised when an LLM backend call fails.

    Covers missing or invalid credentials, malformed requests, HTTP error
    statuses, and transport failures such as timeouts. Business outcomes
    (the model declining to call a tool) are never ProviderErrors.

    Args:
        message: Human-readable description
        body: Raw error body from the backend (parsed JSON when possible).
              Defaults to ``message`` when the failure happened locally.
        status_code: HTTP status returned by the backend, if any
        cause: Underlying exception, if any
    """

    def __init__(
        self,
        message: str,
        body: Any = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.body = body if body is not None else message
        self.status_code = status_code
        self.cause = cause


class ChatTurn(BaseModel):
    """One turn of conversation history."""

    role: str = Field(description="user, assistant, or model")
    content: str = Field(default="", description="Plain-text content of the turn")

    model_config = ConfigDict(extra="ignore")

    @field_validator("content", mode="before")
    @classmethod
    def _coerce_content(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        return json.dumps(value)


class ToolDefinition(BaseModel):
    """
    A tool from the caller's catalog.

    ``server`` records which tool provider owns the tool so the dispatcher
    can route the call; it is never sent to an LLM backend.
    """

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )
    server: str | None = None

    @classmethod
    def from_mcp(cls, tool: dict[str, Any], server: str | None = None) -> ToolDefinition:
        """Build from a provider's ``list_tools()`` entry (name, description?, input_schema?)."""
        name = tool["name"]
        return cls(
            name=name,
            description=tool.get("description") or f"Tool for {name}",
            parameters=tool.get("input_schema")
            or {"type": "object", "properties": {}, "required": []},
            server=server,
        )

    @classmethod
    def from_openai(cls, tool: dict[str, Any], server: str | None = None) -> ToolDefinition:
        """Build from an OpenAI-style ``{"type": "function", "function": {...}}`` entry."""
        function = tool.get("function", tool)
        return cls(
            name=function["name"],
            description=function.get("description") or "",
            parameters=function.get("parameters")
            or {"type": "object", "properties": {}, "required": []},
            server=server,
        )

    def to_openai(self) -> dict[str, Any]:
        """OpenAI function-tool shape."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def summary(self) -> dict[str, str]:
        """Name/description pair used when tools are described in prompt text."""
        return {
            "function_name": self.name,
            "function_description": self.description,
        }


class CanonicalChatRequest(BaseModel):
    """
    Backend-agnostic chat request consumed by provider adapters.

    Unknown keys are kept (``extra="allow"``) so backend-specific options such
    as an Azure ``endpoint`` can ride along with the caller's details.
    """

    input: str = ""
    input_type: InputType = "text"
    prompt: str = ""
    api_key: str = ""

    chat_model: str = ""
    vision_model: str = ""
    speech_model: str = ""

    chat_history: list[ChatTurn] = Field(default_factory=list)
    tools: list[ToolDefinition] = Field(default_factory=list)
    tool_choice: str = "auto"

    max_tokens: int = 1000
    temperature: float = 0.1

    model_config = ConfigDict(extra="allow")


class ToolInvocation(BaseModel):
    """A tool call requested by the model."""

    id: str | None = Field(None, description="Correlation id (OpenAI-style backends only)")
    name: str
    raw_arguments: str | dict[str, Any] = Field(default_factory=dict)

    def parse_arguments(self) -> dict[str, Any]:
        """
        Decode the arguments into a dict.

        Raises:
            ValueError: If the arguments are not a JSON object
        """
        if isinstance(self.raw_arguments, dict):
            return dict(self.raw_arguments)
        if not self.raw_arguments.strip():
            return {}
        parsed = json.loads(self.raw_arguments)
        if not isinstance(parsed, dict):
            raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
        return parsed


class TokenUsage(BaseModel):
    """Token counts reported for one backend call."""

    total_tokens: int = Field(default=0, ge=0)
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)


class CanonicalLlmResponse(BaseModel):
    """Normalised backend response."""

    text: str | None = None
    tool_calls: list[ToolInvocation] = Field(default_factory=list)
    usage: TokenUsage = Field(default_factory=TokenUsage)
    raw: Any = None

    @property
    def output_type(self) -> OutputType:
        return "tool_call" if self.tool_calls else "text"

    @property
    def messages(self) -> list[str]:
        """Text outputs of this response, one entry per message."""
        return [self.text or ""]


class ExecutedToolCall(BaseModel):
    """A tool invocation together with the value the provider returned."""

    id: str | None = None
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    result: Any = None

    @model_serializer(mode="wrap")
    def _drop_missing_id(self, handler):
        data = handler(self)
        if data.get("id") is None:
            data.pop("id", None)
        return data


class ExecutionData(BaseModel):
    """Running totals and outputs accumulated across every round of a request."""

    total_llm_calls: int = 0
    total_tokens: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    final_llm_response: Any = None
    llm_responses_arr: list[Any] = Field(default_factory=list)
    messages: list[str] = Field(default_factory=list)
    output_type: OutputType = "text"
    executed_tool_calls: list[ExecutedToolCall] = Field(default_factory=list)


class ExecutionResult(BaseModel):
    """Result envelope returned from every request, streamed or not."""

    data: ExecutionData | None = Field(default=None, alias="Data")
    error: Any = Field(default=None, alias="Error")
    status: bool = Field(default=False, alias="Status")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def failure(cls, error: Any, data: ExecutionData | None = None) -> ExecutionResult:
        return cls(data=data, error=error, status=False)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict using the wire key names."""
        return self.model_dump(mode="json", by_alias=True)
