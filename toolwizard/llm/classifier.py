"""
Intent classification.

Before any tool-enabled call, one cheap call with no structured tools asks
the model whether the request plausibly maps onto an available tool and
which tools are relevant. The reply must contain two tagged fields:

    <function_call>TRUE|FALSE</function_call>
    <selected_tools>name_a,name_b | none</selected_tools>

The parser never raises. Each field is extracted independently; a missing
or malformed field falls back to its default (no tool call / no tools), so
the worst case is a plain-text answer.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

from toolwizard.llm.models import ToolDefinition

logger = logging.getLogger(__name__)

_FUNCTION_CALL_RE = re.compile(r"<function_call>([^<]+)</function_call>")
_SELECTED_TOOLS_RE = re.compile(r"<selected_tools>([^<]+)</selected_tools>")

CLASSIFIER_PROMPT_TEMPLATE = """\
You are an {assistant} AI assistant that analyzes user requests and determines the required tool calls from available tools.
Available tools: {tools}
Analyze each request to determine if it matches available tool capabilities or needs clarification.
Return TRUE for tool calls when the request clearly maps to available tools without checking the required parameters.
Return FALSE when the request is ambiguous or requires more information.
Output format:
    <function_call>TRUE/FALSE</function_call>
    <selected_tools>function_name1,function_name2 or "none"</selected_tools>
Use exact tool names from available tools. List all relevant tools ordered by relevance. The output format should be exactly the same as mentioned above. It should be in string.
"""


@dataclass
class Classification:
    """Outcome of the classification call."""

    is_function_call: bool = False
    selected_tools: list[str] = field(default_factory=list)


def describe_tools(tools: list[ToolDefinition]) -> str:
    """JSON list of ``{function_name, function_description}`` used in prompt text."""
    return json.dumps([tool.summary() for tool in tools])


def build_classifier_prompt(assistant: str, tools: list[ToolDefinition]) -> str:
    """System prompt for the classification call."""
    return CLASSIFIER_PROMPT_TEMPLATE.format(assistant=assistant, tools=describe_tools(tools))


def build_direct_answer_prompt(prompt: str, tools: list[ToolDefinition]) -> str:
    """Original prompt with the catalog described in text, for the no-tool branch."""
    return f"{prompt}. Available tools: {describe_tools(tools)}"


def parse_classification(reply: str | None) -> Classification:
    """
    Extract the two tagged fields from a classifier reply.

    ``none`` in ``<selected_tools>`` yields an empty list. Any text outside
    the tags is ignored.
    """
    result = Classification()
    if not reply:
        logger.warning("Classifier returned an empty reply; assuming no tool call")
        return result

    match = _FUNCTION_CALL_RE.search(reply)
    if match:
        result.is_function_call = match.group(1).strip().upper() == "TRUE"
    else:
        logger.warning("Classifier reply has no <function_call> tag; assuming no tool call")

    match = _SELECTED_TOOLS_RE.search(reply)
    if match:
        names = [name.strip().strip("\"'") for name in match.group(1).split(",")]
        result.selected_tools = [name for name in names if name and name.lower() != "none"]

    return result
