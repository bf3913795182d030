"""Conversational tool-orchestration agent.

- ConversationAgent: the bounded model/tool loop behind ``process_message``
- parse_response: turns model text into Conversational or ToolInvocation
- AgentChannel: the chat transport replies are delivered through
- Persona / SystemPromptBuilder: who the agent speaks as and what it is told
"""

from .channel import AgentChannel, ConsoleChannel, LoggingChannel
from .exporter import AgentStateExporter
from .loop import ConversationAgent, ToolInvoker, format_tool_result
from .parser import Conversational, ModelDirective, ToolInvocation, parse_response
from .persona import PERSONAS, Persona, get_persona
from .prompt import SystemPromptBuilder
from .state import AgentRunResult, AgentState, ToolResult

__all__ = [
    "AgentChannel",
    "ConsoleChannel",
    "LoggingChannel",
    "AgentStateExporter",
    "ConversationAgent",
    "ToolInvoker",
    "format_tool_result",
    "Conversational",
    "ModelDirective",
    "ToolInvocation",
    "parse_response",
    "PERSONAS",
    "Persona",
    "get_persona",
    "SystemPromptBuilder",
    "AgentRunResult",
    "AgentState",
    "ToolResult",
]
