"""Operation result builder.

Centralizes construction of ``OperationResult`` so every operation reports
the same metadata (duration, command, exit code, timestamp) whether it
succeeded, failed validation, failed in git, or was only previewed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

from gitpilot.errors import CommandBlockedError, GitError, GitPilotError
from gitpilot.git.classifier import remediation_hint
from gitpilot.git.types import (
    CommandOutput,
    ConflictReport,
    ErrorKind,
    OperationMetadata,
    OperationResult,
)
from gitpilot.utils.logging import redact_credentials

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Success:
    """Successful outcome, optionally with the output of the command that ran."""

    lines: Sequence[str] = ()
    output: Optional[CommandOutput] = None
    data: Mapping[str, Any] = field(default_factory=dict)
    conflict: Optional[ConflictReport] = None


@dataclass(frozen=True)
class Failure:
    """Pre-flight failure: the mutating command was never spawned."""

    kind: ErrorKind
    reason: str
    command: Optional[str] = None


@dataclass(frozen=True)
class Skipped:
    """A workflow step that had nothing to do."""

    reason: str


@dataclass(frozen=True)
class Preview:
    """A dry-run placeholder for a step that would run ``command``."""

    command: str
    description: str = ""


Outcome = Union[Success, Failure, Skipped, Preview, CommandOutput, GitPilotError]


class ResultBuilder:
    """Builds well-formed ``OperationResult`` values. Never raises."""

    @staticmethod
    def start() -> float:
        """Monotonic start time to pass back to ``build``."""
        return time.monotonic()

    @staticmethod
    def build(
        operation_name: str,
        working_directory: Path | str,
        start_time: float,
        outcome: Outcome,
        conflict: Optional[ConflictReport] = None,
    ) -> OperationResult:
        """Wrap an outcome into an ``OperationResult``.

        Args:
            operation_name: Name of the operation that produced the outcome.
            working_directory: Directory the operation ran in.
            start_time: Value from ``ResultBuilder.start()``.
            outcome: What happened (output, error, failure, skip, preview).
            conflict: Conflict report attached to a paused operation.

        Returns:
            OperationResult with computed duration and metadata.
        """
        duration_ms = max(0, int((time.monotonic() - start_time) * 1000))

        def meta(command: Optional[str], exit_code: Optional[int]) -> OperationMetadata:
            return OperationMetadata(
                operation_name=operation_name,
                duration_ms=duration_ms,
                command_issued=command,
                exit_code=exit_code,
                timestamp=datetime.now(timezone.utc),
                working_directory=str(working_directory),
            )

        try:
            if isinstance(outcome, CommandOutput):
                outcome = Success(output=outcome)

            if isinstance(outcome, Success):
                output = outcome.output
                lines = list(outcome.lines) or (output.lines() if output else [])
                report = outcome.conflict or conflict
                kind = report.kind.error_kind if report else None
                if report:
                    lines = lines + report.summary()
                return OperationResult(
                    success=True,
                    message=tuple(lines),
                    metadata=meta(output.command if output else None, output.exit_code if output else None),
                    error_kind=kind,
                    hint=remediation_hint(kind) if kind else None,
                    conflict=report,
                    data=dict(outcome.data),
                )

            if isinstance(outcome, Failure):
                return OperationResult(
                    success=False,
                    message=(outcome.reason,),
                    metadata=meta(outcome.command, None),
                    error_kind=outcome.kind,
                    hint=remediation_hint(outcome.kind),
                )

            if isinstance(outcome, Skipped):
                return OperationResult(
                    success=True,
                    message=(outcome.reason,),
                    metadata=meta(None, None),
                    data={"skipped": True},
                )

            if isinstance(outcome, Preview):
                lines = [f"[dry-run] would run: {outcome.command}"]
                if outcome.description:
                    lines.insert(0, outcome.description)
                return OperationResult(
                    success=True,
                    message=tuple(lines),
                    metadata=meta(outcome.command, None),
                    preview=True,
                )

            if isinstance(outcome, GitError):
                kind = outcome.kind or ErrorKind.UNKNOWN
                command = getattr(outcome, "command", None)
                stdout = getattr(outcome, "stdout", "") or ""
                raw = "\n".join(part for part in (outcome.stderr or "", stdout) if part).strip()
                return OperationResult(
                    success=False,
                    message=(outcome.message,),
                    metadata=meta(command, outcome.returncode),
                    error_kind=kind,
                    hint=remediation_hint(kind),
                    details=redact_credentials(raw) or None,
                    conflict=conflict,
                )

            if isinstance(outcome, CommandBlockedError):
                return OperationResult(
                    success=False,
                    message=(outcome.message,),
                    metadata=meta(outcome.command, None),
                    error_kind=ErrorKind.UNKNOWN,
                    hint=remediation_hint(ErrorKind.UNKNOWN),
                )

            if isinstance(outcome, GitPilotError):
                return OperationResult(
                    success=False,
                    message=(outcome.message,),
                    metadata=meta(None, None),
                    error_kind=ErrorKind.UNKNOWN,
                    hint=remediation_hint(ErrorKind.UNKNOWN),
                )

            raise TypeError(f"Unsupported outcome type: {type(outcome).__name__}")

        except Exception as e:
            logger.error(f"Result construction failed for {operation_name}: {e}")
            return OperationResult(
                success=False,
                message=(f"Internal error while building result: {type(e).__name__}: {e}",),
                metadata=meta(None, None),
                error_kind=ErrorKind.UNKNOWN,
                hint=remediation_hint(ErrorKind.UNKNOWN),
            )
