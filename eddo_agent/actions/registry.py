import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Sequence

from eddo_agent.exceptions import ToolProviderUnavailableError, UnknownActionError
from eddo_agent.tools.types import RemoteTool
from .metadata import ActionCategory, ActionMetadata, categorize_action, normalize_action_name, to_snake_case
from .tables import ActionTables, DEFAULT_TABLES

logger = logging.getLogger(__name__)

DEFAULT_TOOL_PREFIX = re.compile(r"^eddo_[A-Za-z0-9]+_")


class ResolutionSource(str, Enum):
    LIVE = "live"
    ALIAS = "alias"
    VARIANT = "variant"
    NORMALIZED = "normalized"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ResolvedAction:
    name: str
    tool_name: str
    metadata: ActionMetadata
    source: ResolutionSource
    executable: bool


@dataclass(frozen=True)
class ActionGroup:
    category: ActionCategory
    title: str
    actions: list[ActionMetadata]


class ToolDiscovery(Protocol):
    async def list_tools(self) -> list[RemoteTool]: ...


class ActionRegistry:
    """Maps requested action names to canonical actions.

    Lookup order: live server names, alias table, historical variants, then the
    same three again on separator/case-normalized input. The static fallback
    registry is only consulted when the live tool list could not be fetched.
    The registry is read-only once built and may be shared between runs.
    """

    def __init__(
            self,
            tables: ActionTables = DEFAULT_TABLES,
            live_tools: Sequence[RemoteTool] | None = None,
            tool_prefix: re.Pattern[str] = DEFAULT_TOOL_PREFIX,
    ):
        self.tables = tables
        self.live_available = live_tools is not None
        self._tool_prefix = tool_prefix
        self._live: dict[str, ActionMetadata] = {}
        self._tool_names: dict[str, str] = {}
        live_index: dict[str, str] = {}
        for tool in live_tools or []:
            canonical = self.extract_action_name(tool.name)
            if canonical in self._live:
                logger.warning(f"Tool {tool.name} duplicates canonical action {canonical}, ignoring it")
                continue
            self._live[canonical] = self._live_metadata(canonical, tool)
            self._tool_names[canonical] = tool.name
            live_index[canonical] = canonical
            live_index.setdefault(tool.name, canonical)

        variant_index = {
            variant: canonical
            for canonical, variants in tables.tool_variants.items()
            for variant in variants
        }
        self._exact_indexes: list[tuple[ResolutionSource, dict[str, str]]] = [
            (ResolutionSource.LIVE, live_index),
            (ResolutionSource.ALIAS, dict(tables.alias_mapping)),
            (ResolutionSource.VARIANT, variant_index),
        ]
        self._normalized_indexes: list[dict[str, str]] = []
        for _, index in self._exact_indexes:
            normalized: dict[str, str] = {}
            for key, canonical in index.items():
                normalized.setdefault(normalize_action_name(key), canonical)
            self._normalized_indexes.append(normalized)

        self._fallback_index: dict[str, str] = {}
        for action in tables.fallback_actions.values():
            for key in (action.name, *sorted(action.aliases)):
                self._fallback_index.setdefault(key, action.name)
                self._fallback_index.setdefault(normalize_action_name(key), action.name)

        if self.live_available:
            self._warn_on_table_drift()

    @classmethod
    async def build(cls, discovery: ToolDiscovery, tables: ActionTables = DEFAULT_TABLES) -> 'ActionRegistry':
        """Build the registry from the live tool list, falling back to static tables when unreachable."""
        try:
            tools = await discovery.list_tools()
        except ToolProviderUnavailableError as e:
            logger.warning(f"Live tool list unavailable, using fallback registry: {e}")
            return cls(tables, None)
        return cls(tables, tools)

    def extract_action_name(self, tool_name: str) -> str:
        return self._tool_prefix.sub("", tool_name) or tool_name

    def _live_metadata(self, canonical: str, tool: RemoteTool) -> ActionMetadata:
        aliases = {to_snake_case(canonical), tool.name}
        aliases.update(k for k, v in self.tables.alias_mapping.items() if v == canonical)
        aliases.update(self.tables.tool_variants.get(canonical, ()))
        aliases.discard(canonical)
        fallback = self.tables.fallback_actions.get(canonical)
        return ActionMetadata(
            name=canonical,
            aliases=frozenset(aliases),
            category=fallback.category if fallback else categorize_action(canonical),
            description=tool.description or (fallback.description if fallback else ""),
        )

    def _warn_on_table_drift(self):
        targets = set(self.tables.alias_mapping.values()) | set(self.tables.tool_variants.keys())
        for canonical in sorted(targets - self._live.keys()):
            logger.debug(f"Static table names {canonical}, which the server does not advertise")

    @property
    def live_actions(self) -> list[ActionMetadata]:
        return list(self._live.values())

    def action_names(self) -> list[str]:
        if self.live_available:
            return sorted(self._live)
        return sorted(self.tables.fallback_actions)

    def resolve(self, requested: str) -> ResolvedAction:
        """Resolve a requested action identifier to exactly one canonical action.

        Raises:
            UnknownActionError: if no lookup layer knows the identifier.
        """
        name = requested.strip()
        for source, index in self._exact_indexes:
            if name in index:
                return self._resolved(requested, index[name], source)
        key = normalize_action_name(name)
        if key:
            for index in self._normalized_indexes:
                if key in index:
                    return self._resolved(requested, index[key], ResolutionSource.NORMALIZED)
        if not self.live_available:
            canonical = self._fallback_index.get(name) or self._fallback_index.get(key)
            if canonical is not None:
                return ResolvedAction(
                    name=canonical,
                    tool_name=canonical,
                    metadata=self.tables.fallback_actions[canonical],
                    source=ResolutionSource.FALLBACK,
                    executable=False,
                )
        raise UnknownActionError(requested, self.action_names())

    def _resolved(self, requested: str, canonical: str, source: ResolutionSource) -> ResolvedAction:
        if not self.live_available:
            return ResolvedAction(
                name=canonical,
                tool_name=canonical,
                metadata=self.tables.fallback_actions.get(canonical) or ActionMetadata(
                    name=canonical, category=categorize_action(canonical)),
                source=source,
                executable=False,
            )
        if canonical not in self._live:
            live_name = self._normalized_indexes[0].get(normalize_action_name(canonical))
            if live_name is None:
                logger.warning(
                    f"Action '{requested}' maps to '{canonical}' which the server does not advertise; "
                    f"invoking it anyway")
                return ResolvedAction(
                    name=canonical,
                    tool_name=canonical,
                    metadata=ActionMetadata(name=canonical, category=categorize_action(canonical)),
                    source=source,
                    executable=False,
                )
            logger.warning(f"Static tables spell '{canonical}' but the server advertises '{live_name}', using the server name")
            canonical = live_name
        return ResolvedAction(
            name=canonical,
            tool_name=self._tool_names[canonical],
            metadata=self._live[canonical],
            source=source,
            executable=True,
        )

    def describe_actions(self) -> list[ActionGroup]:
        """Actions grouped by category for the system prompt, live when known, otherwise the fallback set."""
        actions = self.live_actions if self.live_available else list(self.tables.fallback_actions.values())
        groups = []
        for category in ActionCategory:
            members = sorted((a for a in actions if a.category == category), key=lambda a: a.name)
            if members:
                groups.append(ActionGroup(category=category, title=self.tables.title_for(category), actions=members))
        return groups
