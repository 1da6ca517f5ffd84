"""
LLM Orchestration Layer.

Drives a request through intent classification and bounded tool-use rounds
against one of several LLM backends:

    client_details + tool catalog
                ↓
    ConversationLoop.run()  ──▶ ProviderAdapter.send()   (OpenAI / Azure / Gemini)
                ↓       ▲
                ↓       └──── ToolDispatcher.execute()  (MCP tool providers)
                ↓
         ExecutionResult  +  ProgressEvents

Key responsibilities:
- Ask the model, without tool schemas, whether a tool is needed and which
- Attach only the selected tools to the follow-up calls
- Execute requested tools and feed results back as history turns
- Accumulate call and token totals across every round
- Report progress as an ordered event stream
"""

from toolwizard.llm.events import EventAction, ProgressEmitter, ProgressEvent, StreamingStatus
from toolwizard.llm.models import (
    CanonicalChatRequest,
    CanonicalLlmResponse,
    ExecutionResult,
    ProviderError,
    TokenUsage,
    ToolDefinition,
    ToolInvocation,
)
from toolwizard.llm.orchestrator import ConversationLoop

__all__ = [
    "CanonicalChatRequest",
    "CanonicalLlmResponse",
    "ConversationLoop",
    "EventAction",
    "ExecutionResult",
    "ProgressEmitter",
    "ProgressEvent",
    "ProviderError",
    "StreamingStatus",
    "TokenUsage",
    "ToolDefinition",
    "ToolInvocation",
]
