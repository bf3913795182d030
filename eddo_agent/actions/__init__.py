from .metadata import ActionCategory, ActionMetadata, categorize_action, normalize_action_name, to_snake_case
from .registry import ActionRegistry, ActionGroup, ResolvedAction, ResolutionSource, ToolDiscovery
from .tables import ActionTables, DEFAULT_TABLES, DEFAULT_CATEGORY_TITLES
