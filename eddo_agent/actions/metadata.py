import re
from dataclasses import dataclass, field
from enum import Enum


class ActionCategory(str, Enum):
    CRUD = "crud"
    TIME_TRACKING = "time-tracking"
    UTILITY = "utility"
    ANALYSIS = "analysis"
    INTEGRATION = "integration"


@dataclass(frozen=True)
class ActionMetadata:
    name: str
    aliases: frozenset[str] = field(default_factory=frozenset)
    category: ActionCategory = ActionCategory.UTILITY
    description: str = ""


_CATEGORY_KEYWORDS: list[tuple[ActionCategory, tuple[str, ...]]] = [
    (ActionCategory.TIME_TRACKING, ("time", "timer", "tracking")),
    (ActionCategory.ANALYSIS, ("summary", "report", "analysis", "analytics")),
    (ActionCategory.INTEGRATION, ("sync", "import", "export", "webhook", "integration")),
    (ActionCategory.CRUD, ("create", "update", "delete", "list", "get", "toggle", "todo")),
]


def normalize_action_name(name: str) -> str:
    """Strip separators and case so snake_case, camelCase and SHOUTING forms compare equal."""
    return re.sub(r"[^a-z0-9]", "", name.lower())


def to_snake_case(name: str) -> str:
    return re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name).lower()


def categorize_action(name: str) -> ActionCategory:
    lowered = name.lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return ActionCategory.UTILITY
