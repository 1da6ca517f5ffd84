"""
ToolWizard - LLM tool-use orchestration over MCP tool providers.

This package classifies natural-language requests, narrows the available
MCP tool catalog, and drives LLM-call / tool-execution rounds against
OpenAI, Azure OpenAI, or Gemini backends while streaming progress events.
"""

__version__ = "0.1.0"
