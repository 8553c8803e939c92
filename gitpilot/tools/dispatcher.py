"""Tool dispatcher for the structured protocol boundary.

The dispatcher looks a tool up, validates the arguments against its schema,
runs the handler and serializes whatever comes back into a
``ToolResponse``: JSON text plus an error flag. It never raises for a bad
call; every failure becomes an error response.
"""

from __future__ import annotations

import inspect
import json
import logging
import traceback
from dataclasses import dataclass
from typing import Any

from gitpilot.errors import GitPilotError, ToolError, ToolNotFoundError, ToolValidationError
from gitpilot.git.types import OperationResult, WorkflowRun
from gitpilot.tools.registry import PermissionLevel, Tool, ToolRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolResponse:
    """Serialized outcome of one tool call."""

    content: str
    is_error: bool = False

    def to_mcp(self) -> dict[str, Any]:
        """``tools/call`` result body."""
        return {
            "content": [{"type": "text", "text": self.content}],
            "isError": self.is_error,
        }


@dataclass
class ToolDispatcher:
    """Validates and executes tool calls.

    Example:
        >>> dispatcher = ToolDispatcher(registry)
        >>> response = await dispatcher.dispatch("git_status", {})
        >>> print(response.content)
    """

    registry: ToolRegistry
    allow_dangerous: bool = True

    async def dispatch(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResponse:
        """Execute a tool call.

        Args:
            name: Registered tool name.
            arguments: Tool arguments (JSON object).

        Returns:
            ToolResponse with JSON content; ``is_error`` is set for failed
            operations and rejected calls. Conflicted operations are not
            errors: the response carries the conflict report.
        """
        arguments = dict(arguments or {})

        try:
            tool = self.registry.get_enabled(name)
            if tool is None:
                if self.registry.has(name):
                    raise ToolError(f"Tool '{name}' is disabled", tool_name=name, code="TOOL_DISABLED")
                raise ToolNotFoundError(name)

            if not self.allow_dangerous and not tool.permission_level.within(PermissionLevel.CAUTIOUS):
                raise ToolError(
                    f"Tool '{name}' is dangerous and dangerous tools are disabled",
                    tool_name=name,
                    code="TOOL_NOT_PERMITTED",
                )

            self._validate_arguments(tool, arguments)

            result = tool.handler(arguments)
            if inspect.isawaitable(result):
                result = await result

            response = self._serialize(result)
            logger.info(f"Tool {name} finished ({'error' if response.is_error else 'ok'})")
            return response

        except GitPilotError as e:
            logger.warning(f"Tool {name} rejected: {e}")
            return ToolResponse(content=json.dumps(e.to_dict(), indent=2, default=str), is_error=True)

        except Exception as e:
            logger.error(f"Tool execution error: {name} - {e}\n{traceback.format_exc()}")
            payload = {"error_type": type(e).__name__, "message": str(e), "code": "TOOL_EXECUTION_ERROR"}
            return ToolResponse(content=json.dumps(payload, indent=2), is_error=True)

    def _serialize(self, result: Any) -> ToolResponse:
        if isinstance(result, (OperationResult, WorkflowRun)):
            return ToolResponse(
                content=json.dumps(result.to_dict(), indent=2, default=str),
                is_error=not result.success,
            )
        if result is None:
            return ToolResponse(content="Success (no output)")
        if isinstance(result, str):
            return ToolResponse(content=result)
        return ToolResponse(content=json.dumps(result, indent=2, default=str))

    def _validate_arguments(self, tool: Tool, arguments: dict[str, Any]) -> None:
        """Check arguments against the tool's schema before any git command runs.

        Raises:
            ToolValidationError: If the arguments do not fit the schema.
        """
        problem = tool.definition.problem_with(arguments)
        if problem:
            raise ToolValidationError(tool.name, problem)
