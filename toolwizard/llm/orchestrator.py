"""
Conversation loop: the tool-use orchestration engine.

One ConversationLoop drives a single request through these states:

    CLASSIFY ──TRUE──▶ TOOL_ROUND* ──▶ TERMINAL_TEXT
        │                  ▲    └────▶ TERMINAL_ERROR (provider failure, round limit)
        └──FALSE──▶ DIRECT_ANSWER ──text──▶ TERMINAL_TEXT
                         └──tool calls──┘

Data flow:
    client_details + catalog ──▶ ProviderAdapter.send()  (classify, no tools)
                                        ↓
                          parse_classification() + select_tools()
                                        ↓
    ProviderAdapter.send() (selected tools) ◀──▶ ToolDispatcher.execute()
                                        ↓
                          ResultAggregator ──▶ ExecutionResult

Design decisions:
- The classification call carries no structured tools. Tool schemas are the
  dominant token cost, so they are only attached once the model says a tool
  is plausibly needed, and then only the selected subset.
- The loop is written once against the ProviderAdapter interface; OpenAI,
  Azure and Gemini differ only in their adapter.
- Tool failures come back as result strings and feed the next round.
  Provider failures end the request with whatever totals were accumulated.
- Tool rounds are bounded by max_tool_rounds. A model that keeps asking for
  tools past the limit ends the request with an error instead of looping
  forever.
- Tool calls within a round run one at a time in the order the backend
  listed them, so each history turn lands in a deterministic position.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from toolwizard.llm.adapters.base import ProviderAdapter
from toolwizard.llm.aggregator import ResultAggregator
from toolwizard.llm.classifier import (
    build_classifier_prompt,
    build_direct_answer_prompt,
    parse_classification,
)
from toolwizard.llm.events import ProgressEmitter
from toolwizard.llm.models import (
    CanonicalLlmResponse,
    ChatTurn,
    ExecutedToolCall,
    ExecutionResult,
    ProviderError,
    ToolDefinition,
    ToolInvocation,
)
from toolwizard.llm.selector import select_tools
from toolwizard.tools.dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)

CLASSIFICATION_DONE = "Optimized Token LLM call Successfully Completed"
TOOL_CALLS_STARTED = "Tool Calls Started"

# Keys of client_details that the loop manages itself
_STATE_KEYS = ("prompt", "tools", "chat_history")


@dataclass
class ConversationState:
    """Mutable state of one in-flight request. Never shared or persisted."""

    history: list[ChatTurn]
    prompt: str = ""
    tools: list[ToolDefinition] = field(default_factory=list)


def _to_json(value: Any) -> str:
    return json.dumps(value, default=str)


def _json_safe(value: Any) -> Any:
    """Tool results enter the envelope as plain JSON values."""
    return json.loads(_to_json(value))


def summarize_tool_call(name: str, arguments: dict[str, Any], result: Any) -> str:
    """Text of the synthetic history turn recorded after a tool call."""
    return f"Calling tool: {name} with arguments: {_to_json(arguments)} and result: {_to_json(result)}"


class ConversationLoop:
    """
    Runs one request to a terminal text answer or error.

    Args:
        adapter: Backend used for every LLM call
        dispatcher: Executes tool calls against tool providers
        emitter: Receives progress events (streaming or recorded only)
        max_tool_rounds: Tool rounds allowed before the request fails
        assistant_name: Names the assistant in the classifier prompt when no
                        server is given
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        dispatcher: ToolDispatcher,
        emitter: ProgressEmitter | None = None,
        max_tool_rounds: int = 10,
        assistant_name: str = "MCP",
    ):
        if max_tool_rounds < 1:
            raise ValueError("max_tool_rounds must be at least 1")
        self._adapter = adapter
        self._dispatcher = dispatcher
        self._emitter = emitter or ProgressEmitter()
        self._max_tool_rounds = max_tool_rounds
        self._assistant_name = assistant_name
        self._params: dict[str, Any] = {}
        self._catalog: list[ToolDefinition] = []
        self._credentials: Mapping[str, Any] = {}
        self._primary_server = ""

    async def run(
        self,
        client_details: Mapping[str, Any],
        catalog: list[ToolDefinition],
        credentials: Mapping[str, Any] | None = None,
        primary_server: str = "",
    ) -> ExecutionResult:
        """
        Execute the request.

        Args:
            client_details: Caller's chat parameters (input, prompt, api_key,
                            models, chat_history, ...)
            catalog: Full tool catalog of the selected servers
            credentials: Server name -> credential bundle
            primary_server: First selected server; names the assistant in the
                            classifier prompt and owns tools missing from the catalog

        Returns:
            ExecutionResult with Status=True on a terminal text answer, or
            Status=False with the error and the totals accumulated so far
        """
        self._params = {k: v for k, v in client_details.items() if k not in _STATE_KEYS}
        self._catalog = catalog
        self._credentials = credentials or {}
        self._primary_server = primary_server
        original_prompt = client_details.get("prompt") or ""

        history = [ChatTurn.model_validate(turn) for turn in client_details.get("chat_history") or []]
        history.append(ChatTurn(role="user", content=client_details.get("input") or ""))

        state = ConversationState(
            history=history,
            prompt=build_classifier_prompt(primary_server or self._assistant_name, catalog),
            tools=[],
        )
        aggregator = ResultAggregator()

        # --- CLASSIFY ---
        try:
            response = await self._call(state)
        except ProviderError as e:
            logger.error(f"Classification call failed: {e.message}")
            return aggregator.failure(e.body)
        aggregator.record_response(response)

        classification = parse_classification(response.text)
        selected = select_tools(classification.selected_tools, catalog)
        logger.info(
            f"Classification: function_call={classification.is_function_call} "
            f"selected={[tool.name for tool in selected]}"
        )
        await self._emitter.notify(CLASSIFICATION_DONE)

        if classification.is_function_call:
            state.prompt = original_prompt
            state.tools = selected
            return await self._tool_rounds(state, aggregator)

        # --- DIRECT_ANSWER ---
        state.prompt = build_direct_answer_prompt(original_prompt, catalog)
        state.tools = []
        try:
            response = await self._call(state)
        except ProviderError as e:
            logger.error(f"Direct answer call failed: {e.message}")
            return aggregator.failure(e.body)
        aggregator.record_response(response)

        if response.text:
            return await self._finish_text(response, aggregator)

        if response.tool_calls:
            # Continues with the classifier's selection, not the tools this
            # response asked for
            logger.info(
                "Direct answer requested tools; continuing with the classifier's "
                f"selection {[tool.name for tool in selected]}"
            )
            state.prompt = original_prompt
            state.tools = selected
            return await self._tool_rounds(state, aggregator)

        logger.info("Direct answer was empty")
        aggregator.finish_text([])
        return aggregator.success()

    async def _call(self, state: ConversationState) -> CanonicalLlmResponse:
        request = self._adapter.build_request(
            {
                **self._params,
                "prompt": state.prompt,
                "tools": state.tools,
                "chat_history": state.history,
            }
        )
        return await self._adapter.send(request)

    async def _finish_text(
        self,
        response: CanonicalLlmResponse,
        aggregator: ResultAggregator,
    ) -> ExecutionResult:
        aggregator.finish_text(response.messages)
        for message in response.messages:
            await self._emitter.message(message)
        return aggregator.success()

    async def _tool_rounds(
        self,
        state: ConversationState,
        aggregator: ResultAggregator,
    ) -> ExecutionResult:
        rounds_used = 0

        while True:
            try:
                response = await self._call(state)
            except ProviderError as e:
                logger.error(f"LLM call failed after {rounds_used} tool round(s): {e.message}")
                return aggregator.failure(e.body)
            aggregator.record_response(response)

            if response.output_type == "text":
                return await self._finish_text(response, aggregator)

            if rounds_used >= self._max_tool_rounds:
                logger.warning(f"Model still requesting tools after {rounds_used} rounds; stopping")
                return aggregator.failure(f"Maximum tool rounds ({self._max_tool_rounds}) exceeded")

            rounds_used += 1
            logger.info(f"Tool round {rounds_used}: {[call.name for call in response.tool_calls]}")
            await self._emitter.notify(TOOL_CALLS_STARTED)

            for invocation in response.tool_calls:
                executed = await self._execute(invocation)
                aggregator.record_tool_call(executed)
                state.history.append(
                    ChatTurn(
                        role=self._adapter.assistant_role,
                        content=summarize_tool_call(executed.name, executed.arguments, executed.result),
                    )
                )

    def _owner(self, tool_name: str) -> str:
        owner = next((tool.server for tool in self._catalog if tool.name == tool_name), None)
        return owner or self._primary_server

    async def _execute(self, invocation: ToolInvocation) -> ExecutedToolCall:
        server = self._owner(invocation.name)
        await self._emitter.notify(f"{server} MCP server {invocation.name} call initiated")

        try:
            arguments = invocation.parse_arguments()
        except ValueError as e:
            logger.warning(f"Tool '{invocation.name}' called with invalid arguments: {e}")
            arguments = {}
            result: Any = f"Invalid arguments for tool '{invocation.name}': {e}"
        else:
            # The dispatcher injects credentials into its own copy
            try:
                result = await self._dispatcher.execute(
                    server,
                    self._credentials.get(server),
                    invocation.name,
                    dict(arguments),
                )
            except Exception as e:
                logger.warning(f"Dispatch of tool '{invocation.name}' failed: {e}")
                result = str(e)
            result = _json_safe(result)

        await self._emitter.notify(f"{server} MCP server {invocation.name} call result  : {_to_json(result)}")
        return ExecutedToolCall(
            id=invocation.id,
            name=invocation.name,
            arguments=arguments,
            result=result,
        )
