from dataclasses import dataclass, field
from datetime import datetime

from eddo_agent.exceptions import EddoAgentError
from eddo_agent.tools.types import ToolFailure, ToolOutput
from eddo_agent.types import ConversationTurn


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool execution, kept for observability and tests."""
    tool_name: str
    result: ToolOutput
    timestamp: datetime
    requested_name: str | None = None

    @property
    def is_error(self) -> bool:
        return isinstance(self.result, ToolFailure)

    def to_dict(self) -> dict:
        return {
            "tool_name": self.tool_name,
            "requested_name": self.requested_name,
            "timestamp": self.timestamp.isoformat(),
            "result": self.result.model_dump(mode="json"),
        }


@dataclass
class AgentState:
    input: str
    history: list[ConversationTurn] = field(default_factory=list)
    done: bool = False
    output: str | None = None
    tool_results: list[ToolResult] = field(default_factory=list)
    system_prompt: str | None = None

    def to_dict(self) -> dict:
        return {
            "input": self.input,
            "done": self.done,
            "output": self.output,
            "system_prompt": self.system_prompt,
            "history": [turn.to_dict() for turn in self.history],
            "tool_results": [result.to_dict() for result in self.tool_results],
        }


@dataclass
class AgentRunResult:
    success: bool
    final_response: str | None = None
    tool_results: list[ToolResult] = field(default_factory=list)
    error: EddoAgentError | None = None
    iterations: int = 0

    @property
    def error_category(self) -> str | None:
        return self.error.category if self.error is not None else None
