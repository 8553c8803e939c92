"""Exception hierarchy for gitpilot.

Exceptions signal structural problems: bad arguments, blocked commands,
failed or timed-out git processes, broken configuration. Expected
repository states such as "nothing to commit" are never raised; they come
back as ``OperationResult`` values.

Every exception carries a stable ``code`` (the class default unless the
raiser overrides it) and a ``details`` mapping, and serializes with
``to_dict()`` for protocol responses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from gitpilot.utils.logging import redact_credentials

if TYPE_CHECKING:
    from gitpilot.git.types import ErrorKind


class GitPilotError(Exception):
    """Base exception for all gitpilot errors."""

    default_code = "GITPILOT_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = dict(details or {})

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(GitPilotError):
    """A configuration source could not be used."""

    default_code = "CONFIGURATION_ERROR"


class InvalidConfigError(ConfigurationError):
    """A config file or value is malformed or out of range."""

    default_code = "INVALID_CONFIG"

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration for '{field}': {reason}",
            details={"field": field, "value": str(value)[:100], "reason": reason},
        )


# =============================================================================
# Git Errors
# =============================================================================

class GitError(GitPilotError):
    """A git process ran and failed.

    Attributes:
        returncode: Exit status, or None when the process was killed.
        stderr: Raw diagnostic text (credentials in URLs are masked in details).
        kind: The classified ``ErrorKind``.
    """

    default_code = "GIT_ERROR"

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
        kind: Optional["ErrorKind"] = None,
        code: Optional[str] = None,
    ):
        details: dict[str, Any] = {"returncode": returncode}
        if stderr:
            details["stderr"] = redact_credentials(stderr)[:500]
        super().__init__(message, code, details)
        self.returncode = returncode
        self.stderr = stderr
        self.kind = kind

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["kind"] = self.kind.value if self.kind is not None else None
        return data


class GitCommandError(GitError):
    """git exited with a non-zero status."""

    default_code = "GIT_COMMAND_FAILED"

    def __init__(
        self,
        command: str,
        returncode: int,
        stdout: str,
        stderr: str,
        kind: "ErrorKind",
    ):
        lines = (stderr or stdout).strip().splitlines()
        summary = redact_credentials(lines[0]) if lines else f"exit code {returncode}"
        super().__init__(f"Git command failed: {summary}", returncode, stderr, kind)
        self.command = command
        self.stdout = stdout


class GitTimeoutError(GitError):
    """git ran past its timeout and was killed."""

    default_code = "GIT_TIMEOUT"

    def __init__(self, command: str, timeout_ms: int):
        from gitpilot.git.types import ErrorKind

        super().__init__(f"Git command timed out after {timeout_ms}ms", kind=ErrorKind.TIMEOUT)
        self.command = command
        self.timeout_ms = timeout_ms
        self.details["timeout_ms"] = timeout_ms


# =============================================================================
# Security Errors
# =============================================================================

class SecurityError(GitPilotError):
    """Input rejected before anything was spawned."""

    default_code = "SECURITY_ERROR"


class CommandBlockedError(SecurityError):
    """A command string does not start with the git program name."""

    default_code = "COMMAND_BLOCKED"

    def __init__(self, command: str, reason: str):
        preview = redact_credentials(command)
        if len(preview) > 50:
            preview = preview[:50] + "..."
        super().__init__(
            f"Command blocked: {reason}",
            details={"command_preview": preview, "reason": reason},
        )
        self.command = command


class InputValidationError(SecurityError):
    """An operation argument is missing, empty or outside its allowed values."""

    default_code = "INPUT_VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        super().__init__(
            f"Invalid input for '{field}': {reason}",
            details={"field": field, "reason": reason},
        )
        self.field = field


# =============================================================================
# Tool and Invocation Errors
# =============================================================================

class ToolError(GitPilotError):
    """A tool call was refused."""

    default_code = "TOOL_ERROR"

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        details = dict(details or {})
        if tool_name:
            details["tool_name"] = tool_name
        super().__init__(message, code, details)
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    default_code = "TOOL_NOT_FOUND"

    def __init__(self, tool_name: str):
        super().__init__(f"Tool '{tool_name}' not found", tool_name=tool_name)


class ToolValidationError(ToolError):
    """Tool arguments do not fit the tool's schema."""

    default_code = "TOOL_VALIDATION_ERROR"

    def __init__(self, tool_name: str, reason: str):
        super().__init__(
            f"Tool '{tool_name}' validation failed: {reason}",
            tool_name=tool_name,
            details={"reason": reason},
        )


class UnknownOperationError(GitPilotError):
    """An operation name cannot be resolved or dispatched."""

    default_code = "UNKNOWN_OPERATION"

    def __init__(self, name: Optional[str]):
        super().__init__(
            f"Unknown operation: {name if name else '<unresolved>'}",
            details={"operation": name},
        )
        self.name = name
