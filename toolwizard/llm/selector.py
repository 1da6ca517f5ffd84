"""Narrow the caller's tool catalog to the classifier's picks."""

from __future__ import annotations

from toolwizard.llm.models import ToolDefinition


def select_tools(names: list[str], catalog: list[ToolDefinition]) -> list[ToolDefinition]:
    """
    Return the catalog entries named by ``names``, in classifier order.

    Matching is exact and case-sensitive; the first catalog entry with a
    given name wins. Unknown names are dropped.
    """
    selected: list[ToolDefinition] = []
    for name in names:
        match = next((tool for tool in catalog if tool.name == name), None)
        if match is not None:
            selected.append(match)
    return selected
