"""Argument-list representation of git commands.

Commands are assembled as lists of arguments and only joined into a shell
string, with quoting, by the command executor.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from typing import Iterable, Optional

GIT_PROGRAM = "git"


@dataclass(frozen=True)
class GitCommand:
    """A git invocation as an immutable argument tuple (without ``git``)."""

    args: tuple[str, ...]

    @classmethod
    def of(cls, *args: str) -> "GitCommand":
        return cls(tuple(str(a) for a in args))

    def with_args(self, *args: str) -> "GitCommand":
        return GitCommand(self.args + tuple(str(a) for a in args))

    def with_option(self, flag: str, value: Optional[object] = None, enabled: bool = True) -> "GitCommand":
        """Append ``flag`` (and ``value``) when enabled and the value is set."""
        if not enabled:
            return self
        if value is None:
            return self.with_args(flag)
        return self.with_args(flag, str(value))

    def with_paths(self, paths: Iterable[str]) -> "GitCommand":
        """Append pathspecs after a ``--`` separator."""
        return self.with_args("--", *paths)

    @property
    def subcommand(self) -> str:
        return self.args[0] if self.args else ""

    def argv(self) -> list[str]:
        return [GIT_PROGRAM, *self.args]

    def to_shell(self) -> str:
        """Quoted shell string; the only place arguments are joined."""
        return shlex.join(self.argv())

    def __str__(self) -> str:
        return self.to_shell()


def git(*args: str) -> GitCommand:
    """Shorthand for ``GitCommand.of``."""
    return GitCommand.of(*args)
