"""MCP client used by the agent to run canonical actions on the tool server."""

import asyncio
import json
import logging
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, AsyncContextManager, Mapping

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client
from mcp.shared.exceptions import McpError
from mcp.types import CallToolResult, TextContent, INVALID_PARAMS, METHOD_NOT_FOUND
from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from eddo_agent.config.tool_provider import ToolProviderConfig
from eddo_agent.exceptions import ToolProviderUnavailableError
from .types import CallerContext, FailureCategory, RemoteTool, ToolFailure, ToolOutput, ToolSuccess

logger = logging.getLogger(__name__)

SessionFactory = Callable[[CallerContext | None], AsyncContextManager[ClientSession]]

_NOT_FOUND_PATTERN = re.compile(r"not\s+found|unknown\s+tool|does\s+not\s+exist|no\s+such", re.IGNORECASE)
_VALIDATION_PATTERN = re.compile(r"invalid|validation|required|must\s+be", re.IGNORECASE)

_JSON_TYPES: dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "array": list,
    "object": dict,
    "null": type(None),
}


def classify_error_message(message: str) -> FailureCategory:
    if _NOT_FOUND_PATTERN.search(message):
        return FailureCategory.NOT_FOUND
    if _VALIDATION_PATTERN.search(message):
        return FailureCategory.VALIDATION
    return FailureCategory.REMOTE_INTERNAL


def _leaf_exception(exc: BaseException) -> BaseException:
    # anyio task groups inside the transport wrap the real cause
    while isinstance(exc, BaseExceptionGroup) and exc.exceptions:
        exc = exc.exceptions[0]
    return exc


def classify_exception(exc: BaseException) -> FailureCategory:
    exc = _leaf_exception(exc)
    if isinstance(exc, McpError):
        if exc.error.code == INVALID_PARAMS:
            return FailureCategory.VALIDATION
        if exc.error.code == METHOD_NOT_FOUND:
            return FailureCategory.NOT_FOUND
        return classify_error_message(exc.error.message)
    return FailureCategory.TRANSPORT


def _content_to_text(block: Any) -> str:
    if isinstance(block, TextContent):
        return block.text
    return json.dumps(block.model_dump(mode="json", exclude_none=True), ensure_ascii=False)


def normalize_call_result(result: CallToolResult) -> ToolOutput:
    """Flatten an MCP tool result into a ToolSuccess or ToolFailure."""
    blocks = [_content_to_text(block) for block in result.content]
    if result.isError:
        message = "\n".join(blocks) or "Remote tool reported an error"
        return ToolFailure(category=classify_error_message(message), message=message)
    data = getattr(result, "structuredContent", None)
    # FastMCP wraps primitive returns as {"result": value}
    if isinstance(data, dict) and list(data) == ["result"]:
        data = data["result"]
    if data is None and len(blocks) == 1:
        data = blocks[0]
    if isinstance(data, str):
        data = _decode_json(data)
    return ToolSuccess(blocks=blocks, data=data)


def _decode_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def _annotation_for(prop: Mapping[str, Any]) -> Any:
    json_type = prop.get("type")
    if isinstance(json_type, list):
        options = tuple(_JSON_TYPES.get(t, Any) for t in json_type)
        if Any in options:
            return Any
        annotation = options[0]
        for option in options[1:]:
            annotation = annotation | option
        return annotation
    if isinstance(json_type, str):
        return _JSON_TYPES.get(json_type, Any)
    return Any


def build_arguments_model(tool: RemoteTool) -> type[BaseModel]:
    """Create a pydantic model checking required keys and JSON types of a tool's input schema."""
    properties: Mapping[str, Any] = tool.input_schema.get("properties") or {}
    required = set(tool.input_schema.get("required") or [])
    fields: dict[str, Any] = {}
    for index, (name, prop) in enumerate(properties.items()):
        annotation = _annotation_for(prop if isinstance(prop, Mapping) else {})
        # property names like "_id" are not valid field names, so alias them
        if name in required:
            fields[f"field_{index}"] = (annotation, Field(alias=name))
        else:
            fields[f"field_{index}"] = (annotation | None if annotation is not Any else Any, Field(default=None, alias=name))
    model_name = re.sub(r"\W", "_", tool.name) + "Arguments"
    return create_model(model_name, __config__=ConfigDict(extra="allow"), **fields)


class MCPToolClient:
    """Runs one action per call against an MCP server over streamable HTTP.

    Each invoke opens its own session, so no connection state is shared between
    chat users. Nothing is retried here; failures come back as ToolFailure and
    the caller decides what to do with them.
    """

    def __init__(
            self,
            server_url: str,
            *,
            call_timeout: float = 30.0,
            discovery_timeout: float = 10.0,
            api_key: str | None = None,
            session_factory: SessionFactory | None = None,
    ):
        self.server_url = server_url
        self.call_timeout = call_timeout
        self.discovery_timeout = discovery_timeout
        self.api_key = api_key
        self._session_factory: SessionFactory = session_factory or self._open_http_session
        self._tools: dict[str, RemoteTool] = {}
        self._argument_models: dict[str, type[BaseModel]] = {}

    @classmethod
    def from_config(cls, config: ToolProviderConfig, session_factory: SessionFactory | None = None) -> 'MCPToolClient':
        return cls(
            config.server_url,
            call_timeout=config.call_timeout,
            discovery_timeout=config.discovery_timeout,
            api_key=config.api_key,
            session_factory=session_factory,
        )

    @property
    def tools(self) -> list[RemoteTool]:
        return list(self._tools.values())

    @asynccontextmanager
    async def _open_http_session(self, context: CallerContext | None) -> AsyncIterator[ClientSession]:
        headers = context.headers() if context else {}
        if self.api_key and "X-API-Key" not in headers:
            headers["X-API-Key"] = self.api_key
        async with streamablehttp_client(self.server_url, headers=headers, timeout=self.call_timeout) as (read, write, _):
            async with ClientSession(read, write) as session:
                await session.initialize()
                yield session

    async def _list_tools_once(self) -> list[RemoteTool]:
        async with self._session_factory(None) as session:
            result = await session.list_tools()
        return [
            RemoteTool(name=tool.name, description=tool.description or "", input_schema=dict(tool.inputSchema or {}))
            for tool in result.tools
        ]

    async def list_tools(self) -> list[RemoteTool]:
        """Fetch and cache the tools advertised by the server.

        Raises:
            ToolProviderUnavailableError: if the server can not be reached in time.
        """
        try:
            tools = await asyncio.wait_for(self._list_tools_once(), self.discovery_timeout)
        except asyncio.TimeoutError as e:
            raise ToolProviderUnavailableError(self.server_url, f"discovery timed out after {self.discovery_timeout:g}s") from e
        except Exception as e:
            raise ToolProviderUnavailableError(self.server_url, str(_leaf_exception(e))) from e
        self._tools = {tool.name: tool for tool in tools}
        self._argument_models.clear()
        logger.info(f"Discovered {len(tools)} tools at {self.server_url}")
        return tools

    async def list_available_actions(self) -> list[str]:
        return [tool.name for tool in await self.list_tools()]

    def validate_arguments(self, action: str, args: Mapping[str, Any]) -> ToolFailure | None:
        """Check arguments against the cached input schema, None when valid or unknown."""
        tool = self._tools.get(action)
        if tool is None or not tool.input_schema:
            return None
        if action not in self._argument_models:
            self._argument_models[action] = build_arguments_model(tool)
        try:
            self._argument_models[action].model_validate(dict(args))
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()
            )
            return ToolFailure(category=FailureCategory.VALIDATION, message=f"Invalid arguments for '{action}': {details}")
        return None

    async def _call_once(self, action: str, args: dict[str, Any], context: CallerContext | None) -> CallToolResult:
        async with self._session_factory(context) as session:
            return await session.call_tool(action, arguments=args)

    async def invoke(self, action: str, args: Mapping[str, Any], context: CallerContext | None = None) -> ToolOutput:
        """Invoke one action on the server and normalize the outcome. Never raises for remote failures."""
        invalid = self.validate_arguments(action, args)
        if invalid is not None:
            logger.info(f"Rejected call to {action} before sending: {invalid.message}")
            return invalid
        try:
            result = await asyncio.wait_for(self._call_once(action, dict(args), context), self.call_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Tool {action} timed out after {self.call_timeout:g}s")
            return ToolFailure(
                category=FailureCategory.TRANSPORT,
                message=f"Tool '{action}' timed out after {self.call_timeout:g}s",
                timed_out=True,
            )
        except Exception as e:
            cause = _leaf_exception(e)
            category = classify_exception(cause)
            logger.warning(f"Tool {action} failed with {category.value}: {cause}")
            return ToolFailure(category=category, message=str(cause) or type(cause).__name__)
        output = normalize_call_result(result)
        if isinstance(output, ToolFailure):
            logger.info(f"Tool {action} reported {output.category.value}: {output.message}")
        return output
