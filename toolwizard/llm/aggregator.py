"""Accumulates usage and outputs across every round of one request."""

from __future__ import annotations

from typing import Any

from toolwizard.llm.models import (
    CanonicalLlmResponse,
    ExecutedToolCall,
    ExecutionData,
    ExecutionResult,
)


class ResultAggregator:
    """
    Builds the ExecutionData for a single request.

    Counters only ever grow: each successful adapter response adds one call
    and its token usage. Failed calls are never recorded.
    """

    def __init__(self) -> None:
        self.data = ExecutionData()

    def record_response(self, response: CanonicalLlmResponse) -> None:
        self.data.total_llm_calls += 1
        self.data.total_tokens += response.usage.total_tokens
        self.data.total_input_tokens += response.usage.input_tokens
        self.data.total_output_tokens += response.usage.output_tokens
        self.data.final_llm_response = response.raw
        self.data.llm_responses_arr.append(response.raw)

    def record_tool_call(self, call: ExecutedToolCall) -> None:
        self.data.executed_tool_calls.append(call)
        self.data.output_type = "tool_call"

    def finish_text(self, messages: list[str]) -> None:
        self.data.messages.extend(messages)
        self.data.output_type = "text"

    def success(self) -> ExecutionResult:
        return ExecutionResult(data=self.data, error=None, status=True)

    def failure(self, error: Any) -> ExecutionResult:
        return ExecutionResult(data=self.data, error=error, status=False)
