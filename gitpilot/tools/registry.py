"""Tool registry: every primitive operation and workflow, registered once.

Protocol front ends list tools from here and the dispatcher looks them up
by name. Tools are grouped by category ("git" for primitives, "workflow"
for composites) and ranked by how much they can change a repository.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Coroutine, Iterator, Optional, Union

from gitpilot.tools.definitions import ToolDefinition, ToolParameter

logger = logging.getLogger(__name__)

# Handlers can be sync or async, taking a dict of arguments
ToolHandler = Union[
    Callable[[dict[str, Any]], Any],
    Callable[[dict[str, Any]], Coroutine[Any, Any, Any]],
]


class PermissionLevel(Enum):
    """How much a tool can change the repository or its remotes."""

    SAFE = "safe"  # Read-only queries
    CAUTIOUS = "cautious"  # Local or recoverable changes
    DANGEROUS = "dangerous"  # Discards work or rewrites shared state

    def within(self, ceiling: "PermissionLevel") -> bool:
        """True when this level is no riskier than ``ceiling``."""
        order = list(PermissionLevel)
        return order.index(self) <= order.index(ceiling)


@dataclass
class Tool:
    """A registered tool: schema, handler and classification."""

    definition: ToolDefinition
    handler: ToolHandler
    permission_level: PermissionLevel = PermissionLevel.SAFE
    description: str = ""
    category: str = "general"
    enabled: bool = True

    @property
    def name(self) -> str:
        return self.definition.name

    def __post_init__(self) -> None:
        if not self.description:
            self.description = self.definition.description


@dataclass
class ToolRegistry:
    """Name-keyed tools in registration order.

    Example:
        >>> registry = ToolRegistry()
        >>> register_git_tools(registry, orchestrator)
        >>> registry.get("git_status").permission_level
        <PermissionLevel.SAFE: 'safe'>
    """

    _tools: dict[str, Tool] = field(default_factory=dict)

    def register(self, tool: Tool) -> None:
        """Add a tool.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name} ({tool.category}, {tool.permission_level.value})")

    def unregister(self, name: str) -> bool:
        """Remove a tool; False if it was not registered."""
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def get_enabled(self, name: str) -> Optional[Tool]:
        tool = self._tools.get(name)
        return tool if tool and tool.enabled else None

    def has(self, name: str) -> bool:
        return name in self._tools

    def enable(self, name: str) -> bool:
        return self._set_enabled(name, True)

    def disable(self, name: str) -> bool:
        return self._set_enabled(name, False)

    def _set_enabled(self, name: str, enabled: bool) -> bool:
        tool = self._tools.get(name)
        if tool is None:
            return False
        tool.enabled = enabled
        return True

    def _select(
        self,
        enabled_only: bool = True,
        categories: Optional[list[str]] = None,
        max_permission: Optional[PermissionLevel] = None,
    ) -> Iterator[Tool]:
        for tool in self._tools.values():
            if enabled_only and not tool.enabled:
                continue
            if categories and tool.category not in categories:
                continue
            if max_permission and not tool.permission_level.within(max_permission):
                continue
            yield tool

    def list_tools(self, enabled_only: bool = True) -> list[str]:
        return [tool.name for tool in self._select(enabled_only)]

    def list_by_category(self, category: str, enabled_only: bool = True) -> list[str]:
        return [tool.name for tool in self._select(enabled_only, [category])]

    def list_categories(self) -> list[str]:
        """Categories in order of first registration."""
        return list(dict.fromkeys(tool.category for tool in self._tools.values()))

    def get_all_tools(
        self,
        enabled_only: bool = True,
        categories: Optional[list[str]] = None,
        max_permission: Optional[PermissionLevel] = None,
    ) -> list[Tool]:
        return list(self._select(enabled_only, categories, max_permission))

    def get_definitions(
        self,
        enabled_only: bool = True,
        categories: Optional[list[str]] = None,
        max_permission: Optional[PermissionLevel] = None,
    ) -> list[ToolDefinition]:
        """Definitions for protocol export.

        Args:
            enabled_only: Skip disabled tools.
            categories: Only these categories, when given.
            max_permission: Only tools no riskier than this level, so a
                client that may not run dangerous tools never sees them.
        """
        return [tool.definition for tool in self._select(enabled_only, categories, max_permission)]

    def clear(self) -> None:
        self._tools.clear()

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools


def create_tool(
    name: str,
    description: str,
    parameters: list[ToolParameter],
    handler: ToolHandler,
    permission_level: PermissionLevel = PermissionLevel.SAFE,
    category: str = "general",
) -> Tool:
    """Build a Tool together with its ToolDefinition."""
    return Tool(
        definition=ToolDefinition(name=name, description=description, parameters=parameters),
        handler=handler,
        permission_level=permission_level,
        category=category,
    )
