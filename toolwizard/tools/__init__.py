"""
Tool Integration Layer.

Provides the capability interface for MCP tool providers, the read-only
provider registry, per-provider credential shaping, and the dispatcher
that executes tool calls on behalf of the conversation loop.
"""
