"""Repository guard: a cheap, time-bounded "is this a repository?" check."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from gitpilot.git.command import git
from gitpilot.git.executor import kill_process_group, process_group_kwargs

logger = logging.getLogger(__name__)


@dataclass
class RepositoryGuard:
    """Validates that a directory is inside a git work tree.

    The check spawns ``git rev-parse --is-inside-work-tree`` directly rather
    than going through the command executor, and is bounded by its own short
    timeout so it stays responsive on slow or network-backed file systems.
    """

    timeout_ms: int = 5000

    async def is_repository(self, working_directory: Path | str) -> bool:
        """Check whether ``working_directory`` is inside a git work tree.

        Args:
            working_directory: Directory to check.

        Returns:
            True if git reports a work tree; False on any failure or timeout.
        """
        path = Path(working_directory)
        if not path.is_dir():
            return False

        command = git("rev-parse", "--is-inside-work-tree")
        try:
            process = await asyncio.create_subprocess_exec(
                *command.argv(),
                cwd=str(path),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
                env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
                **process_group_kwargs(),
            )
        except OSError as e:
            logger.warning(f"Repository check could not start git: {e}")
            return False

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout_ms / 1000)
        except asyncio.TimeoutError:
            await kill_process_group(process)
            logger.warning(f"Repository check timed out after {self.timeout_ms}ms: {path}")
            return False

        return process.returncode == 0 and stdout.decode(errors="replace").strip() == "true"
