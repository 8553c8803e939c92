"""Pytest configuration and fixtures for gitpilot tests."""

import os
import tempfile
from pathlib import Path
from typing import Generator, Optional, Union

import pytest

from gitpilot.config import Settings, reset_settings
from gitpilot.errors import GitCommandError
from gitpilot.git.classifier import classify
from gitpilot.git.command import GitCommand
from gitpilot.git.executor import validate_command
from gitpilot.git.operations import GitOperations
from gitpilot.git.types import CommandOutput
from gitpilot.git.workflows import WorkflowOrchestrator


class FakeExecutor:
    """Scripted stand-in for ``CommandExecutor`` that records every call.

    Responses are registered per command prefix; the longest matching
    prefix wins. Several responses for the same prefix are consumed in
    order, the last one repeating. Unscripted commands succeed with empty
    output.
    """

    def __init__(self) -> None:
        self.calls: list[str] = []
        self._responses: dict[str, list[tuple[str, str, int]]] = {}

    def on(self, prefix: str, stdout: str = "", stderr: str = "", exit_code: int = 0) -> "FakeExecutor":
        self._responses.setdefault(prefix, []).append((stdout, stderr, exit_code))
        return self

    def fail(self, prefix: str, stderr: str, stdout: str = "", exit_code: int = 1) -> "FakeExecutor":
        return self.on(prefix, stdout=stdout, stderr=stderr, exit_code=exit_code)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def called(self, prefix: str) -> bool:
        return any(call.startswith(prefix) for call in self.calls)

    async def execute(
        self,
        command: Union[GitCommand, str],
        working_directory: Union[Path, str],
        timeout_ms: Optional[int] = None,
    ) -> CommandOutput:
        text = validate_command(command)
        self.calls.append(text)

        matches = [prefix for prefix in self._responses if text.startswith(prefix)]
        if not matches:
            return CommandOutput(command=text)

        queue = self._responses[max(matches, key=len)]
        stdout, stderr, exit_code = queue.pop(0) if len(queue) > 1 else queue[0]
        if exit_code != 0:
            raise GitCommandError(text, exit_code, stdout, stderr, classify(f"{stderr}\n{stdout}"))
        return CommandOutput(command=text, stdout=stdout, stderr=stderr, exit_code=exit_code)


class FakeGuard:
    """Repository guard with a fixed answer."""

    def __init__(self, is_repo: bool = True) -> None:
        self.is_repo = is_repo
        self.checked: list[Path] = []

    async def is_repository(self, working_directory: Union[Path, str]) -> bool:
        self.checked.append(Path(working_directory))
        return self.is_repo


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def guard() -> FakeGuard:
    return FakeGuard()


@pytest.fixture
def ops(temp_dir: Path, executor: FakeExecutor, guard: FakeGuard) -> GitOperations:
    """Operations on a temporary directory backed by the fake executor."""
    return GitOperations(temp_dir, executor=executor, guard=guard)


@pytest.fixture
def orchestrator(ops: GitOperations) -> WorkflowOrchestrator:
    return WorkflowOrchestrator(ops)


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Create test settings with temporary paths."""
    reset_settings()
    return Settings(
        identity={"wrapper_dirs": [str(temp_dir / "bin")]},
        logging={"level": "debug"},
    )


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Remove GITPILOT_* environment variables for the duration of a test."""
    original = {k: v for k, v in os.environ.items() if k.startswith("GITPILOT_")}
    for key in original:
        del os.environ[key]

    reset_settings()

    yield

    for key in [k for k in os.environ if k.startswith("GITPILOT_")]:
        del os.environ[key]
    os.environ.update(original)

    reset_settings()
