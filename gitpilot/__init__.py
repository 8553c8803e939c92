"""gitpilot - git operation execution engine with workflows and an alias layer."""

__version__ = "0.1.0"

from gitpilot.errors import GitPilotError
from gitpilot.git import (
    ErrorKind,
    GitOperations,
    OperationRequest,
    OperationResult,
    WorkflowOrchestrator,
    WorkflowRun,
)

__all__ = [
    "__version__",
    "GitPilotError",
    "ErrorKind",
    "GitOperations",
    "OperationRequest",
    "OperationResult",
    "WorkflowOrchestrator",
    "WorkflowRun",
]
