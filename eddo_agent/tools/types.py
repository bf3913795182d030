"""Normalized outputs of remote tool invocations."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, TypeAdapter, ConfigDict
from typing_extensions import Literal, Annotated


class ToolOutputType(str, Enum):
    OUTPUT = "output"
    ERROR = "error"


class FailureCategory(str, Enum):
    """Machine-readable reason a tool invocation failed"""
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    TRANSPORT = "transport"
    REMOTE_INTERNAL = "remote_internal"


class ToolOutputBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Annotated[ToolOutputType, Field(description="Type of the output")]


class ToolSuccess(ToolOutputBase):
    """Remote result flattened to text blocks, plus structured data when the server supplied it"""
    type: Literal[ToolOutputType.OUTPUT] = ToolOutputType.OUTPUT  # type: ignore
    blocks: Annotated[list[str], Field(description="Content blocks rendered as text", default_factory=list)]
    data: Annotated[Any, Field(description="Structured result, if any", default=None)]

    @property
    def text(self) -> str:
        return "\n".join(self.blocks)

    def payload(self) -> Any:
        return self.data if self.data is not None else self.text


class ToolFailure(ToolOutputBase):
    type: Literal[ToolOutputType.ERROR] = ToolOutputType.ERROR  # type: ignore
    category: Annotated[FailureCategory, Field(description="Failure category")]
    message: Annotated[str, Field(description="Message reported by the remote side or the transport")]
    timed_out: Annotated[bool, Field(description="The call exceeded the client timeout", default=False)]


ToolOutput = Annotated[
    ToolSuccess | ToolFailure,
    Field(discriminator='type')
]


def validate_tool_output(data: dict) -> ToolOutput:
    return TypeAdapter(ToolOutput).validate_python(data)


@dataclass(frozen=True)
class RemoteTool:
    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CallerContext:
    """Identity of the chat user on whose behalf tools are invoked.

    Forwarded to the tool server for authorization and attribution only.
    """
    user_id: str
    username: str | None = None
    database_name: str | None = None
    api_key: str | None = None

    def headers(self) -> dict[str, str]:
        headers = {"X-User-Id": self.user_id}
        if self.username:
            headers["X-Username"] = self.username
        if self.database_name:
            headers["X-Database-Name"] = self.database_name
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers


__all__ = [
    "ToolOutputType",
    "FailureCategory",
    "ToolSuccess",
    "ToolFailure",
    "ToolOutput",
    "validate_tool_output",
    "RemoteTool",
    "CallerContext",
]
