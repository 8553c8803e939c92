"""Tool system for gitpilot.

This package exposes every git primitive and workflow over the structured
protocol: schema definitions, a registry, and a validating dispatcher.
"""

from gitpilot.tools.definitions import (
    ToolDefinition,
    ToolParameter,
    tools_to_anthropic,
    tools_to_mcp,
    tools_to_openai,
)
from gitpilot.tools.dispatcher import ToolDispatcher, ToolResponse
from gitpilot.tools.git import create_default_registry, get_git_tools, register_git_tools
from gitpilot.tools.registry import PermissionLevel, Tool, ToolHandler, ToolRegistry, create_tool

__all__ = [
    # Definitions
    "ToolDefinition",
    "ToolParameter",
    "tools_to_anthropic",
    "tools_to_openai",
    "tools_to_mcp",
    # Registry
    "ToolRegistry",
    "Tool",
    "ToolHandler",
    "PermissionLevel",
    "create_tool",
    # Dispatcher
    "ToolDispatcher",
    "ToolResponse",
    # Git tools
    "get_git_tools",
    "register_git_tools",
    "create_default_registry",
]
