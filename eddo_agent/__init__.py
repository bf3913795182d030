"""Eddo conversational agent.

Turns chat messages into tool calls against the Eddo MCP todo server:

- agent: the model/tool loop and its chat-facing surface
- actions: resolution of requested tool names to canonical actions
- tools: the MCP tool invocation client
- vcr: cassette-based record/replay of model calls for deterministic tests
"""

from .agent import ConversationAgent, AgentRunResult
from .actions import ActionRegistry
from .tools import MCPToolClient
from .vcr import CassetteManager, CachedResponseGenerator, LogicalClock

__all__ = [
    "ConversationAgent",
    "AgentRunResult",
    "ActionRegistry",
    "MCPToolClient",
    "CassetteManager",
    "CachedResponseGenerator",
    "LogicalClock",
]
