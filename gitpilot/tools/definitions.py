"""Tool schemas for the structured protocol boundary.

A ``ToolDefinition`` describes one git operation or workflow as a JSON
object schema. The same definition checks incoming arguments and exports
itself in the shape each protocol expects.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

# JSON Schema type name -> accepted Python types
JSON_TYPES: dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "array": list,
    "object": dict,
}


@dataclass
class ToolParameter:
    """One named argument of a tool."""

    name: str
    type: str  # a JSON_TYPES key
    description: str
    required: bool = True
    enum: Optional[list[str]] = None
    items: Optional[dict[str, Any]] = None  # element schema for arrays
    default: Any = None

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum:
            schema["enum"] = self.enum
        if self.items:
            schema["items"] = self.items
        if self.default is not None:
            schema["default"] = self.default
        return schema

    def problem_with(self, value: Any) -> Optional[str]:
        """Describe why ``value`` is not acceptable, or None when it is.

        An explicit null for an optional parameter means "use the default".
        """
        if value is None and not self.required:
            return None
        if self.enum and value not in self.enum:
            return f"Parameter '{self.name}' must be one of: {self.enum}"

        expected = JSON_TYPES.get(self.type)
        # bool is an int subclass; JSON keeps them apart
        mistyped = expected is not None and (
            not isinstance(value, expected) or (isinstance(value, bool) and self.type in ("integer", "number"))
        )
        if mistyped:
            return f"Parameter '{self.name}' has invalid type. Expected {self.type}, got {type(value).__name__}"
        return None


@dataclass
class ToolDefinition:
    """Name, description and parameter schema of a tool."""

    name: str
    description: str
    parameters: list[ToolParameter] = field(default_factory=list)

    def get_parameter(self, name: str) -> Optional[ToolParameter]:
        return next((param for param in self.parameters if param.name == name), None)

    @property
    def required_names(self) -> list[str]:
        return [param.name for param in self.parameters if param.required]

    def problem_with(self, arguments: dict[str, Any]) -> Optional[str]:
        """First reason ``arguments`` do not fit this schema, or None.

        Missing parameters are reported before unknown ones, and both
        before per-value problems.
        """
        for name in self.required_names:
            if name not in arguments:
                return f"Missing required parameter: {name}"

        for name in arguments:
            if self.get_parameter(name) is None:
                return f"Unknown parameter: {name}"

        for param in self.parameters:
            if param.name in arguments:
                problem = param.problem_with(arguments[param.name])
                if problem:
                    return problem
        return None

    def input_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {param.name: param.to_json_schema() for param in self.parameters},
        }
        if self.required_names:
            schema["required"] = self.required_names
        return schema

    def export(self, format: str) -> dict[str, Any]:
        """Render this definition for ``format`` (a key of EXPORT_FORMATS)."""
        return _ENVELOPES[format](self)

    def to_anthropic(self) -> dict[str, Any]:
        return self.export("anthropic")

    def to_openai(self) -> dict[str, Any]:
        return self.export("openai")

    def to_mcp(self) -> dict[str, Any]:
        """``tools/list`` entry of the Model Context Protocol."""
        return self.export("mcp")


_ENVELOPES: dict[str, Callable[[ToolDefinition], dict[str, Any]]] = {
    "anthropic": lambda d: {"name": d.name, "description": d.description, "input_schema": d.input_schema()},
    "openai": lambda d: {
        "type": "function",
        "function": {"name": d.name, "description": d.description, "parameters": d.input_schema()},
    },
    "mcp": lambda d: {"name": d.name, "description": d.description, "inputSchema": d.input_schema()},
}


def tools_to_anthropic(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    return [tool.export("anthropic") for tool in tools]


def tools_to_openai(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    return [tool.export("openai") for tool in tools]


def tools_to_mcp(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    return [tool.export("mcp") for tool in tools]


EXPORT_FORMATS = {
    "anthropic": tools_to_anthropic,
    "openai": tools_to_openai,
    "mcp": tools_to_mcp,
}
