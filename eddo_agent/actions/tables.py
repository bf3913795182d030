"""Static naming tables for the todo tool server.

Built once at startup and injected into the ActionRegistry. Nothing here is
mutated at runtime.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from .metadata import ActionCategory, ActionMetadata


@dataclass(frozen=True)
class ActionTables:
    alias_mapping: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    tool_variants: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))
    fallback_actions: Mapping[str, ActionMetadata] = field(default_factory=lambda: MappingProxyType({}))
    category_titles: Mapping[ActionCategory, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def create(
            cls,
            alias_mapping: Mapping[str, str] | None = None,
            tool_variants: Mapping[str, tuple[str, ...] | list[str]] | None = None,
            fallback_actions: list[ActionMetadata] | None = None,
            category_titles: Mapping[ActionCategory, str] | None = None,
    ) -> 'ActionTables':
        return cls(
            alias_mapping=MappingProxyType(dict(alias_mapping or {})),
            tool_variants=MappingProxyType({k: tuple(v) for k, v in (tool_variants or {}).items()}),
            fallback_actions=MappingProxyType({a.name: a for a in fallback_actions or []}),
            category_titles=MappingProxyType(dict(category_titles or DEFAULT_CATEGORY_TITLES)),
        )

    def title_for(self, category: ActionCategory) -> str:
        return self.category_titles.get(category, category.value.replace("-", " ").title())


DEFAULT_CATEGORY_TITLES: Mapping[ActionCategory, str] = MappingProxyType({
    ActionCategory.CRUD: "Todo Management",
    ActionCategory.TIME_TRACKING: "Time Tracking",
    ActionCategory.UTILITY: "Utility Functions",
    ActionCategory.ANALYSIS: "Analysis & Reports",
    ActionCategory.INTEGRATION: "Integrations",
})


def _fallback(name: str, aliases: list[str], category: ActionCategory, description: str) -> ActionMetadata:
    return ActionMetadata(name=name, aliases=frozenset(aliases), category=category, description=description)


DEFAULT_TABLES = ActionTables.create(
    alias_mapping={
        "list_todos": "listTodos",
        "create_todo": "createTodo",
        "update_todo": "updateTodo",
        "delete_todo": "deleteTodo",
        "toggle_completion": "toggleTodoCompletion",
        "start_time_tracking": "startTimeTracking",
        "stop_time_tracking": "stopTimeTracking",
        "get_active_timers": "getActiveTimeTracking",
        "execute_simple_task": "executeSimpleTask",
        "execute_fallback_task": "executeFallbackTask",
        "daily_summary": "dailySummary",
        "analysis": "analysis",
    },
    tool_variants={
        "createTodo": ["createTodo", "create", "addTodo", "eddo_todo_createTodo"],
        "listTodos": ["listTodos", "list", "getTodos", "eddo_todo_listTodos"],
        "updateTodo": ["updateTodo", "update", "editTodo", "eddo_todo_updateTodo"],
        "deleteTodo": ["deleteTodo", "delete", "removeTodo", "eddo_todo_deleteTodo"],
        "toggleTodoCompletion": [
            "toggleTodoCompletion", "toggle", "toggleCompletion", "completeTodo", "eddo_todo_toggleTodoCompletion",
        ],
        "startTimeTracking": ["startTimeTracking", "startTimer", "trackTime", "eddo_todo_startTimeTracking"],
        "stopTimeTracking": ["stopTimeTracking", "stopTimer", "endTracking", "eddo_todo_stopTimeTracking"],
        "getActiveTimeTracking": [
            "getActiveTimeTracking", "activeTimers", "getTimers", "eddo_todo_getActiveTimeTracking",
        ],
    },
    fallback_actions=[
        _fallback("listTodos", ["list_todos", "list", "getTodos"], ActionCategory.CRUD,
                  "List todos with optional filtering"),
        _fallback("createTodo", ["create_todo", "create", "addTodo"], ActionCategory.CRUD,
                  "Create a new todo item"),
        _fallback("updateTodo", ["update_todo", "update", "editTodo"], ActionCategory.CRUD,
                  "Update an existing todo"),
        _fallback("deleteTodo", ["delete_todo", "delete", "removeTodo"], ActionCategory.CRUD,
                  "Delete a todo"),
        _fallback("toggleTodoCompletion", ["toggle_completion", "toggle", "completeTodo"], ActionCategory.CRUD,
                  "Toggle todo completion status"),
        _fallback("startTimeTracking", ["start_time_tracking", "startTimer", "trackTime"],
                  ActionCategory.TIME_TRACKING, "Start time tracking for a todo"),
        _fallback("stopTimeTracking", ["stop_time_tracking", "stopTimer", "endTracking"],
                  ActionCategory.TIME_TRACKING, "Stop time tracking for a todo"),
        _fallback("getActiveTimeTracking", ["get_active_timers", "activeTimers", "getTimers"],
                  ActionCategory.TIME_TRACKING, "Get todos with active time tracking"),
    ],
)
