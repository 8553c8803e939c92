"""Git operation execution engine.

Layers, leaves first: command executor, error classifier, repository
guard, result builder, conflict detector, primitive operations and
workflow orchestrators.
"""

from gitpilot.git.classifier import classify, remediation_hint
from gitpilot.git.command import GitCommand, git
from gitpilot.git.conflicts import ConflictDetector
from gitpilot.git.executor import CommandExecutor
from gitpilot.git.guard import RepositoryGuard
from gitpilot.git.operations import OPERATION_NAMES, GitOperations
from gitpilot.git.results import Failure, Preview, ResultBuilder, Skipped, Success
from gitpilot.git.types import (
    CommandOutput,
    ConflictKind,
    ConflictReport,
    ErrorKind,
    OperationMetadata,
    OperationRequest,
    OperationResult,
    WorkflowRun,
)
from gitpilot.git.workflows import WORKFLOW_NAMES, WorkflowOrchestrator, WorkflowStep

__all__ = [
    # Types
    "CommandOutput",
    "ConflictKind",
    "ConflictReport",
    "ErrorKind",
    "OperationMetadata",
    "OperationRequest",
    "OperationResult",
    "WorkflowRun",
    # Engine
    "GitCommand",
    "git",
    "CommandExecutor",
    "classify",
    "remediation_hint",
    "RepositoryGuard",
    "ResultBuilder",
    "Success",
    "Failure",
    "Skipped",
    "Preview",
    "ConflictDetector",
    "GitOperations",
    "OPERATION_NAMES",
    "WorkflowOrchestrator",
    "WorkflowStep",
    "WORKFLOW_NAMES",
]
