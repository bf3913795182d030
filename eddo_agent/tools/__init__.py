from .client import MCPToolClient, SessionFactory, normalize_call_result, classify_error_message
from .types import (
    CallerContext,
    FailureCategory,
    RemoteTool,
    ToolFailure,
    ToolOutput,
    ToolOutputType,
    ToolSuccess,
    validate_tool_output,
)
