"""Data model shared by the git execution engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional


class ErrorKind(Enum):
    """Semantic classification of a failed git operation."""

    NOT_A_REPOSITORY = "NotARepository"
    NOTHING_TO_STAGE = "NothingToStage"
    NOTHING_TO_COMMIT = "NothingToCommit"
    MERGE_CONFLICT = "MergeConflict"
    REBASE_CONFLICT = "RebaseConflict"
    CHERRY_PICK_CONFLICT = "CherryPickConflict"
    AUTHENTICATION_FAILURE = "AuthenticationFailure"
    NETWORK_UNREACHABLE = "NetworkUnreachable"
    PERMISSION_DENIED = "PermissionDenied"
    REMOTE_REJECTED = "RemoteRejected"
    NO_UPSTREAM = "NoUpstream"
    INVALID_REFERENCE = "InvalidReference"
    TIMEOUT = "Timeout"
    UNKNOWN = "Unknown"

    @property
    def is_conflict(self) -> bool:
        """Whether this kind denotes a paused multi-step operation."""
        return self in (
            ErrorKind.MERGE_CONFLICT,
            ErrorKind.REBASE_CONFLICT,
            ErrorKind.CHERRY_PICK_CONFLICT,
        )


class ConflictKind(Enum):
    """The multi-step operation that left the repository conflicted."""

    MERGE = "merge"
    REBASE = "rebase"
    CHERRY_PICK = "cherry-pick"

    @property
    def error_kind(self) -> ErrorKind:
        return {
            ConflictKind.MERGE: ErrorKind.MERGE_CONFLICT,
            ConflictKind.REBASE: ErrorKind.REBASE_CONFLICT,
            ConflictKind.CHERRY_PICK: ErrorKind.CHERRY_PICK_CONFLICT,
        }[self]


@dataclass(frozen=True)
class CommandOutput:
    """Raw output of a git process that exited successfully."""

    command: str
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0

    def lines(self) -> list[str]:
        """Non-empty stdout lines, falling back to stderr (git reports progress there)."""
        text = self.stdout.strip() or self.stderr.strip()
        return [line for line in text.splitlines() if line.strip()]


@dataclass(frozen=True)
class OperationRequest:
    """A single, immutable request to run a named operation."""

    operation_name: str
    working_directory: Path
    arguments: Mapping[str, Any] = field(default_factory=dict)
    timeout_ms: int = 30000

    def __post_init__(self) -> None:
        object.__setattr__(self, "working_directory", Path(self.working_directory))
        object.__setattr__(self, "arguments", MappingProxyType(dict(self.arguments)))


@dataclass(frozen=True)
class ConflictReport:
    """Unresolved paths left behind by a merge, rebase or cherry-pick."""

    kind: ConflictKind
    conflicted_paths: frozenset[str]
    continue_command: str
    abort_command: str

    def summary(self) -> list[str]:
        """Human-readable description of the conflict and how to leave it."""
        lines = [f"{self.kind.value} stopped with {len(self.conflicted_paths)} conflicted file(s):"]
        lines.extend(f"  both modified: {path}" for path in sorted(self.conflicted_paths))
        lines.append(f"Resolve the files, stage them, then run: {self.continue_command}")
        lines.append(f"To give up instead, run: {self.abort_command}")
        return lines

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "conflicted_paths": sorted(self.conflicted_paths),
            "continue_command": self.continue_command,
            "abort_command": self.abort_command,
        }


@dataclass(frozen=True)
class OperationMetadata:
    """Timing and identity information attached to every result."""

    operation_name: str
    duration_ms: int
    command_issued: Optional[str]
    exit_code: Optional[int]
    timestamp: datetime
    working_directory: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass(frozen=True)
class OperationResult:
    """Uniform, immutable envelope returned by every operation.

    Attributes:
        success: Whether the operation completed (conflicts count as a
            paused success, see ``state``).
        message: Ordered display lines.
        error_kind: Classified failure, or the conflict kind when paused.
        metadata: Timing and identity information.
        hint: Short remediation hint derived from ``error_kind``.
        details: Raw tool diagnostics, auxiliary only.
        conflict: Conflict report when the operation paused.
        data: Structured payload (parsed status, branch list, ...).
        preview: True for dry-run placeholder entries.
    """

    success: bool
    message: tuple[str, ...]
    metadata: OperationMetadata
    error_kind: Optional[ErrorKind] = None
    hint: Optional[str] = None
    details: Optional[str] = None
    conflict: Optional[ConflictReport] = None
    data: Mapping[str, Any] = field(default_factory=dict)
    preview: bool = False

    @property
    def state(self) -> str:
        if self.preview:
            return "preview"
        if self.conflict is not None:
            return "conflicted"
        return "succeeded" if self.success else "failed"

    @property
    def needs_resolution(self) -> bool:
        return self.conflict is not None

    @property
    def operation_name(self) -> str:
        return self.metadata.operation_name

    def text(self) -> str:
        return "\n".join(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "success": self.success,
            "state": self.state,
            "message": list(self.message),
            "error_kind": self.error_kind.value if self.error_kind else None,
            "hint": self.hint,
            "details": self.details,
            "conflict": self.conflict.to_dict() if self.conflict else None,
            "data": dict(self.data),
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class WorkflowRun:
    """Incrementally built record of a workflow execution.

    An aborted run keeps every step result recorded before the failure.
    """

    workflow_name: str
    dry_run: bool = False
    steps: list[OperationResult] = field(default_factory=list)
    aborted: bool = False
    aborted_at_step: Optional[int] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def record(self, result: OperationResult) -> None:
        if self.aborted:
            raise RuntimeError(f"Workflow '{self.workflow_name}' already aborted")
        self.steps.append(result)

    def abort(self, index: int) -> None:
        self.aborted = True
        self.aborted_at_step = index

    @property
    def success(self) -> bool:
        return not self.aborted

    @property
    def failed_step(self) -> Optional[OperationResult]:
        if self.aborted_at_step is None:
            return None
        return self.steps[self.aborted_at_step]

    def summary(self) -> list[str]:
        """Display lines describing every recorded step."""
        mode = " (dry run)" if self.dry_run else ""
        lines = [f"Workflow {self.workflow_name}{mode}:"]
        for index, step in enumerate(self.steps, start=1):
            marker = {"succeeded": "ok", "preview": "..", "conflicted": "!!"}.get(step.state, "xx")
            lines.append(f"  [{marker}] {index}. {step.operation_name}")
            lines.extend(f"        {line}" for line in step.message)
            if step.hint and step.state != "succeeded":
                lines.append(f"        hint: {step.hint}")
        if self.aborted and self.aborted_at_step is not None:
            lines.append(f"Stopped at step {self.aborted_at_step + 1}; earlier steps were kept.")
        return lines

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_name": self.workflow_name,
            "dry_run": self.dry_run,
            "aborted": self.aborted,
            "aborted_at_step": self.aborted_at_step,
            "steps": [step.to_dict() for step in self.steps],
        }
