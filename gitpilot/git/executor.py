"""Command executor for running git with timeout and allow-list guards.

The executor is the single place where git processes are spawned for
operations. It validates that the command starts with the git program
name, runs it with a timeout, and turns failures into classified
exceptions. It never retries.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import signal
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from gitpilot.errors import CommandBlockedError, GitCommandError, GitTimeoutError
from gitpilot.git.classifier import classify
from gitpilot.git.command import GIT_PROGRAM, GitCommand
from gitpilot.git.types import CommandOutput

logger = logging.getLogger(__name__)

DEFAULT_ENV = {
    # Never block on credential or editor prompts
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_EDITOR": "true",
}

# Upper bound on reaping a killed process group
REAP_TIMEOUT_S = 2.0


def process_group_kwargs() -> dict[str, Any]:
    """Spawn git as the leader of its own process group (POSIX).

    Helpers git starts (ssh, hooks, credential helpers, ``!`` aliases)
    join that group, so a timeout can kill all of them at once.
    """
    if os.name == "posix":
        return {"start_new_session": True}
    return {}


async def kill_process_group(process: asyncio.subprocess.Process) -> None:
    """Kill ``process`` and every helper in its group, then reap it with a bound."""
    if os.name == "posix":
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except PermissionError:
            process.kill()
    else:
        process.kill()

    try:
        await asyncio.wait_for(process.wait(), timeout=REAP_TIMEOUT_S)
    except asyncio.TimeoutError:
        logger.warning(f"Process {process.pid} not reaped within {REAP_TIMEOUT_S}s after kill")


def validate_command(command: Union[GitCommand, str]) -> str:
    """Return the shell string for ``command`` if it invokes git.

    Raises:
        CommandBlockedError: If the first word is not the git program.
    """
    text = command.to_shell() if isinstance(command, GitCommand) else str(command).strip()

    try:
        words = shlex.split(text)
    except ValueError as e:
        raise CommandBlockedError(text, f"unparseable command: {e}")

    if not words or words[0] != GIT_PROGRAM:
        raise CommandBlockedError(text, f"command must start with '{GIT_PROGRAM}'")

    return text


@dataclass
class CommandExecutor:
    """Runs one git command per call against a working directory.

    Example:
        >>> executor = CommandExecutor()
        >>> output = await executor.execute(git("status"), Path("."), 5000)
        >>> print(output.stdout)
    """

    default_timeout_ms: int = 30000
    env: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ENV))
    max_output_chars: int = 100000
    call_count: int = 0

    async def execute(
        self,
        command: Union[GitCommand, str],
        working_directory: Path | str,
        timeout_ms: Optional[int] = None,
    ) -> CommandOutput:
        """Execute a git command and wait for it to finish.

        Args:
            command: Argument list or pre-built string starting with ``git``.
            working_directory: Directory to run the command in.
            timeout_ms: Timeout in milliseconds (default: executor default).

        Returns:
            CommandOutput with stdout/stderr of the successful process.

        Raises:
            CommandBlockedError: If the command does not invoke git.
            GitTimeoutError: If the command exceeded its timeout.
            GitCommandError: If git exited with a non-zero status.
        """
        text = validate_command(command)
        timeout_ms = timeout_ms or self.default_timeout_ms
        self.call_count += 1

        logger.debug(f"Running git command in {working_directory}: {text}")

        process = await asyncio.create_subprocess_shell(
            text,
            cwd=str(working_directory),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env={**os.environ, **self.env},
            **process_group_kwargs(),
        )

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout=timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            await kill_process_group(process)
            logger.warning(f"Git command timed out after {timeout_ms}ms: {text}")
            raise GitTimeoutError(text, timeout_ms)

        stdout = self._decode(stdout_bytes)
        stderr = self._decode(stderr_bytes)
        returncode = process.returncode if process.returncode is not None else -1

        if returncode != 0:
            kind = classify(f"{stderr}\n{stdout}")
            logger.warning(f"Git command failed ({kind.value}, exit {returncode}): {text}")
            raise GitCommandError(text, returncode, stdout, stderr, kind)

        return CommandOutput(command=text, stdout=stdout, stderr=stderr, exit_code=returncode)

    def _decode(self, data: Optional[bytes]) -> str:
        text = (data or b"").decode("utf-8", errors="replace")
        if len(text) > self.max_output_chars:
            text = (
                text[: self.max_output_chars]
                + f"\n... (truncated, {len(text)} total characters)"
            )
        return text
