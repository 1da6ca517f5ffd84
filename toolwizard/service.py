"""
Request service: the outermost boundary of the engine.

Takes a raw request payload, validates it against the live provider
registry and the known client selectors, discovers the tool catalog, and
runs a ConversationLoop. Whatever happens, it returns a well-formed
ExecutionResult and closes the progress stream with exactly one terminal
event; it never raises.

Request payload:

    {
        "selected_client": "MCP_CLIENT_OPENAI",
        "selected_servers": ["FEDORA"],
        "selected_server_credentials": {"FEDORA": {...}},
        "client_details": {"input": "...", "prompt": "...", "api_key": "...", ...}
    }

Event sequence for one request:

    STARTED/NO-ACTION
    IN-PROGRESS/NOTIFICATION|MESSAGE ...           (from the loop)
    IN-PROGRESS/AI-RESPONSE, COMPLETED/NO-ACTION   on success
    ERROR/ERROR                                     on any failure
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from toolwizard.config.settings import Settings
from toolwizard.llm.adapters import ADAPTERS, create_adapter
from toolwizard.llm.adapters.base import ProviderAdapter
from toolwizard.llm.events import EventAction, EventSink, ProgressEmitter, StreamingStatus
from toolwizard.llm.models import ChatTurn, ExecutionResult, InputType
from toolwizard.llm.orchestrator import ConversationLoop
from toolwizard.tools.dispatcher import ToolDispatcher
from toolwizard.tools.registry import ProviderRegistry

logger = logging.getLogger(__name__)

AdapterFactory = Callable[..., ProviderAdapter]


class RequestValidationError(ValueError):
    """Raised when a request payload is malformed or names an unknown client or server."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientDetails(BaseModel):
    """
    Caller chat parameters. Only keys the caller sent are passed on, so unset
    fields fall back to settings and adapter defaults.
    """

    input: str | None = None
    input_type: InputType | None = None
    prompt: str | None = None
    api_key: str | None = None
    chat_model: str | None = None
    vision_model: str | None = None
    speech_model: str | None = None
    chat_history: list[ChatTurn] | None = None
    tool_choice: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None

    model_config = ConfigDict(extra="allow")


class ProcessMessageRequest(BaseModel):
    """Validated request payload."""

    selected_client: str = Field(min_length=1)
    selected_servers: list[str] = Field(min_length=1)
    selected_server_credentials: dict[str, Any]
    client_details: ClientDetails


class ToolWizardService:
    """
    Validates and executes requests against a shared provider registry.

    One service instance serves any number of concurrent requests; all
    per-request state lives in the ConversationLoop it creates.

    Args:
        registry: Live tool providers, built once at startup
        settings: Application settings (LLM fallbacks, round limit)
        http_client: Optional shared HTTP client for LLM backends
        adapter_factory: Builds the adapter for a client selector
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        adapter_factory: AdapterFactory = create_adapter,
    ):
        self._registry = registry
        self._settings = settings or Settings()
        self._http_client = http_client
        self._adapter_factory = adapter_factory

    def validate(self, payload: Any) -> ProcessMessageRequest:
        """
        Check the payload shape, the servers, and the client selector.

        Raises:
            RequestValidationError: With "Invalid Request Payload",
                "Invalid Server", or "Invalid Client"
        """
        if not isinstance(payload, Mapping):
            raise RequestValidationError("Invalid Request Payload")
        try:
            request = ProcessMessageRequest.model_validate(dict(payload))
        except PydanticValidationError:
            raise RequestValidationError("Invalid Request Payload")

        for server in request.selected_servers:
            if server not in self._registry:
                raise RequestValidationError("Invalid Server")

        if request.selected_client not in ADAPTERS:
            raise RequestValidationError("Invalid Client")

        return request

    async def process_message(
        self,
        payload: Any,
        on_event: EventSink | None = None,
    ) -> ExecutionResult:
        """
        Run one request end to end.

        Args:
            payload: Raw request payload (see module docstring)
            on_event: Streaming sink; ``None`` runs the request unobserved

        Returns:
            The result envelope. Never raises.
        """
        emitter = ProgressEmitter(on_event)
        await emitter.emit(StreamingStatus.STARTED, EventAction.NO_ACTION)

        try:
            request = self.validate(payload)
        except RequestValidationError as e:
            logger.warning(f"Request rejected: {e.message}")
            await emitter.emit(
                StreamingStatus.ERROR, EventAction.ERROR, error=e.message, status=False
            )
            return ExecutionResult.failure(e.message)

        logger.info(
            f"Processing request: client={request.selected_client} "
            f"servers={request.selected_servers}"
        )

        try:
            result = await self._execute(request, emitter)
            envelope = result.to_dict()
        except Exception as e:
            logger.error(f"Request failed unexpectedly: {e}", exc_info=True)
            result = ExecutionResult.failure(str(e))
            envelope = result.to_dict()

        if result.status:
            logger.info(
                f"Request completed: {envelope['Data']['total_llm_calls']} LLM calls, "
                f"{len(envelope['Data']['executed_tool_calls'])} tool calls"
            )
            await emitter.emit(
                StreamingStatus.IN_PROGRESS, EventAction.AI_RESPONSE, data=envelope["Data"]
            )
            await emitter.emit(StreamingStatus.COMPLETED, EventAction.NO_ACTION)
        else:
            logger.warning(f"Request failed: {envelope['Error']}")
            await emitter.emit(
                StreamingStatus.ERROR,
                EventAction.ERROR,
                data=envelope["Data"],
                error=envelope["Error"],
                status=False,
            )
        return result

    async def _execute(
        self,
        request: ProcessMessageRequest,
        emitter: ProgressEmitter,
    ) -> ExecutionResult:
        adapter = self._adapter_factory(
            request.selected_client,
            settings=self._settings.llm,
            client=self._http_client,
        )
        catalog = await self._registry.catalog(request.selected_servers)
        logger.debug(f"Tool catalog: {[tool.name for tool in catalog]}")

        loop = ConversationLoop(
            adapter=adapter,
            dispatcher=ToolDispatcher(self._registry),
            emitter=emitter,
            max_tool_rounds=self._settings.engine.max_tool_rounds,
            assistant_name=self._settings.engine.assistant_name,
        )
        return await loop.run(
            client_details=request.client_details.model_dump(exclude_unset=True),
            catalog=catalog,
            credentials=request.selected_server_credentials,
            primary_server=request.selected_servers[0],
        )
