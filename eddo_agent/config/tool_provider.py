import os

from pydantic import BaseModel, Field
from typing_extensions import Annotated


class ToolProviderConfig(BaseModel):
    server_url: Annotated[str, Field(
        description="Streamable HTTP endpoint of the MCP tool server",
        default_factory=lambda: os.environ.get("MCP_SERVER_URL", "http://localhost:3001/mcp"),
    )]
    call_timeout: Annotated[float, Field(
        description="Timeout in seconds for a single tool invocation",
        default=30.0,
        gt=0,
    )]
    discovery_timeout: Annotated[float, Field(
        description="Timeout in seconds for listing the tools advertised by the server",
        default=10.0,
        gt=0,
    )]
    api_key: Annotated[str | None, Field(
        description="API key forwarded to the tool server for attribution",
        default_factory=lambda: os.environ.get("MCP_API_KEY"),
    )]
