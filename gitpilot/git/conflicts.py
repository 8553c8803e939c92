"""Detection of unresolved merge, rebase and cherry-pick conflicts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from gitpilot.errors import GitError
from gitpilot.git.command import git
from gitpilot.git.executor import CommandExecutor
from gitpilot.git.types import ConflictKind, ConflictReport

logger = logging.getLogger(__name__)

# Commands that resume or abandon each kind of paused operation
RESOLUTION_COMMANDS: dict[ConflictKind, tuple[str, str]] = {
    ConflictKind.MERGE: ("git merge --continue", "git merge --abort"),
    ConflictKind.REBASE: ("git rebase --continue", "git rebase --abort"),
    ConflictKind.CHERRY_PICK: ("git cherry-pick --continue", "git cherry-pick --abort"),
}


def parse_unmerged_paths(output: str) -> frozenset[str]:
    """Parse ``git diff --name-only --diff-filter=U`` output into a path set."""
    return frozenset(line.strip() for line in output.splitlines() if line.strip())


@dataclass
class ConflictDetector:
    """Queries git for unmerged paths after a conflict-prone operation."""

    executor: CommandExecutor
    timeout_ms: int = 10000

    async def detect(
        self,
        working_directory: Path | str,
        kind: ConflictKind,
    ) -> Optional[ConflictReport]:
        """Build a conflict report if the index has unmerged entries.

        Args:
            working_directory: Repository directory.
            kind: Which operation may have left conflicts behind.

        Returns:
            ConflictReport with the unmerged paths, or None when there is no
            actionable conflict (zero paths or the query itself failed).
        """
        try:
            output = await self.executor.execute(
                git("diff", "--name-only", "--diff-filter=U"),
                working_directory,
                self.timeout_ms,
            )
        except GitError as e:
            logger.warning(f"Could not query unmerged paths in {working_directory}: {e}")
            return None

        paths = parse_unmerged_paths(output.stdout)
        if not paths:
            logger.debug(f"No unmerged paths after {kind.value} in {working_directory}")
            return None

        continue_command, abort_command = RESOLUTION_COMMANDS[kind]
        logger.info(f"{kind.value} left {len(paths)} conflicted file(s) in {working_directory}")
        return ConflictReport(
            kind=kind,
            conflicted_paths=paths,
            continue_command=continue_command,
            abort_command=abort_command,
        )
