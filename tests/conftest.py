import json
from contextlib import asynccontextmanager
from typing import Sequence

import pytest
from mcp.server.fastmcp import FastMCP
from mcp.shared.memory import create_connected_server_and_client_session

from eddo_agent.tools import CallerContext, MCPToolClient
from eddo_agent.types import ConversationTurn


class ScriptedGenerator:
    """ResponseGenerator returning canned responses in order and remembering what it was asked."""

    def __init__(self, responses: Sequence[str], model_name: str = "scripted-model"):
        self.responses = list(responses)
        self.model_name = model_name
        self.calls: list[tuple[list[ConversationTurn], str]] = []

    async def generate(self, history: Sequence[ConversationTurn], system_prompt: str) -> str:
        self.calls.append((list(history), system_prompt))
        if not self.responses:
            raise AssertionError("ScriptedGenerator ran out of responses")
        return self.responses.pop(0)


class RecordingChannel:
    def __init__(self):
        self.replies: list[str] = []
        self.typing_count = 0

    async def reply(self, content: str) -> None:
        self.replies.append(content)

    async def typing(self) -> None:
        self.typing_count += 1

    def caller_context(self, user_id: str) -> CallerContext:
        return CallerContext(user_id=user_id, username=f"user-{user_id}")


def build_todo_server() -> FastMCP:
    server = FastMCP("eddo-todo-test")
    todos: dict[str, dict] = {}

    @server.tool(name="eddo_todo_listTodos", description="List todos with optional filtering")
    def list_todos(context: str | None = None) -> str:
        items = [t for t in todos.values() if context is None or t["context"] == context]
        return json.dumps({"todos": items})

    @server.tool(name="eddo_todo_createTodo", description="Create a new todo item")
    def create_todo(title: str, context: str = "private", due: str | None = None) -> str:
        todo_id = f"todo-{len(todos) + 1}"
        todos[todo_id] = {"id": todo_id, "title": title, "context": context, "due": due, "completed": False}
        return json.dumps(todos[todo_id])

    @server.tool(name="eddo_todo_deleteTodo", description="Delete a todo")
    def delete_todo(id: str) -> str:
        if id not in todos:
            raise ValueError(f"Todo not found: {id}")
        del todos[id]
        return json.dumps({"deleted": id})

    @server.tool(name="eddo_todo_startTimeTracking", description="Start time tracking for a todo")
    def start_time_tracking(id: str) -> str:
        if id not in todos:
            raise ValueError(f"Todo not found: {id}")
        todos[id]["tracking"] = True
        return f"Started tracking {todos[id]['title']}"

    return server


@pytest.fixture
def todo_server() -> FastMCP:
    return build_todo_server()


@pytest.fixture
def session_contexts() -> list:
    return []


@pytest.fixture
def mcp_client(todo_server, session_contexts) -> MCPToolClient:
    """MCPToolClient wired to an in-process FastMCP server; every opened session is logged."""

    @asynccontextmanager
    async def factory(context: CallerContext | None):
        session_contexts.append(context)
        async with create_connected_server_and_client_session(todo_server._mcp_server) as session:
            yield session

    return MCPToolClient("memory://todo", call_timeout=5.0, discovery_timeout=5.0, session_factory=factory)


@pytest.fixture
def scripted_generator():
    return ScriptedGenerator


@pytest.fixture
def recording_channel() -> RecordingChannel:
    return RecordingChannel()
