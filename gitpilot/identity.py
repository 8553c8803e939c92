"""Invocation identity resolution for the command alias layer.

One dispatcher program is installed under many alias names (``gstatus``,
``gflow``, ...), through symlinks, copies or shell wrappers. Depending on
how it was launched, the alias may show up in ``argv[0]``, in the parent
process command line, in the shell's ``$_`` variable, or nowhere at all.
The heuristics below are tried in order and the first confident answer
wins.

The last heuristic, picking the most recently accessed wrapper script, is
best effort: two invocations within the freshness window can be
misattributed to each other.
"""

from __future__ import annotations

import logging
import os
import re
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional

import psutil

logger = logging.getLogger(__name__)

# Alias name -> operation or workflow name
ALIASES: dict[str, str] = {
    "gstatus": "status",
    "gadd": "add",
    "gcommit": "commit",
    "gpush": "push",
    "gpull": "pull",
    "gfetch": "fetch",
    "gbranch": "branch_list",
    "gcheckout": "checkout",
    "glog": "log",
    "gdiff": "diff",
    "gstash": "stash",
    "gpop": "stash_pop",
    "greset": "reset",
    "gtag": "tag",
    "gmerge": "merge",
    "grebase": "rebase",
    "gcherry": "cherry_pick",
    "gblame": "blame",
    "gbisect": "bisect",
    "gremote": "remote_list",
    "gremote-remove": "remote_remove",
    "gclone": "clone",
    "ginit": "init",
    "gflow": "flow",
    "gsync": "sync",
    "grelease": "release",
    "gclean": "clean",
    "gdev": "dev",
    "gquick": "quick",
    "gbackup": "backup",
    "gfresh": "fresh",
    "gfix": "fix",
}

ALIAS_SHAPE = re.compile(r"^g[a-z][a-z-]*$")


def alias_name(token: Optional[str]) -> Optional[str]:
    """Return the known alias a path or word refers to, if any.

    ``/usr/local/bin/gflow.js`` and ``gflow`` both give ``gflow``.
    """
    if not token:
        return None
    stem, _ = os.path.splitext(Path(token.strip()).name)
    return stem if stem in ALIASES else None


def parent_command_line() -> tuple[str, ...]:
    """Command line of the parent process, empty when it can't be read."""
    try:
        parent = psutil.Process(os.getpid()).parent()
        if parent is None:
            return ()
        return tuple(parent.cmdline())
    except (psutil.NoSuchProcess, psutil.ZombieProcess, psutil.AccessDenied):
        return ()


@dataclass(frozen=True)
class InvocationContext:
    """Everything the resolver looks at, captured once per invocation.

    Attributes:
        argv: This process's argument vector.
        parent_cmdline: Argument vector of the parent process.
        environ: Environment variables.
        wrapper_dirs: Directories holding installed alias wrappers.
        now: Current time (epoch seconds).
        freshness_window: Max age in seconds of a wrapper access to trust.
        shell_command_var: Variable the shell sets to the typed command.
    """

    argv: tuple[str, ...] = ()
    parent_cmdline: tuple[str, ...] = ()
    environ: Mapping[str, str] = field(default_factory=dict)
    wrapper_dirs: tuple[Path, ...] = ()
    now: float = field(default_factory=time.time)
    freshness_window: float = 5.0
    shell_command_var: str = "_"

    @classmethod
    def from_process(
        cls,
        wrapper_dirs: Iterable[Path | str] = (),
        freshness_window: float = 5.0,
        shell_command_var: str = "_",
    ) -> "InvocationContext":
        """Capture the live invocation context of the current process."""
        return cls(
            argv=tuple(sys.argv),
            parent_cmdline=parent_command_line(),
            environ=dict(os.environ),
            wrapper_dirs=tuple(Path(d).expanduser() for d in wrapper_dirs),
            now=time.time(),
            freshness_window=freshness_window,
            shell_command_var=shell_command_var,
        )


# =============================================================================
# Heuristics
# =============================================================================

def from_direct_argument(context: InvocationContext) -> Optional[str]:
    """The program was launched under the alias name (symlink or copy)."""
    return alias_name(context.argv[0]) if context.argv else None


def from_parent_process(context: InvocationContext) -> Optional[str]:
    """A wrapper script (``node gflow.js``, ``sh gflow``) launched us."""
    for token in context.parent_cmdline:
        stem, _ = os.path.splitext(Path(token).name)
        if ALIAS_SHAPE.match(stem) and stem in ALIASES:
            return stem
    return None


def from_shell_variable(context: InvocationContext) -> Optional[str]:
    """bash and zsh export ``$_`` as the path of the command being run."""
    return alias_name(context.environ.get(context.shell_command_var))


def from_recent_wrapper(context: InvocationContext) -> Optional[str]:
    """The most recently accessed wrapper, if accessed within the window."""
    newest: Optional[tuple[float, str]] = None

    for directory in context.wrapper_dirs:
        try:
            entries = list(Path(directory).iterdir())
        except OSError as e:
            logger.debug(f"Cannot scan wrapper directory {directory}: {e}")
            continue

        for entry in entries:
            alias = alias_name(entry.name)
            if alias is None:
                continue
            try:
                accessed = entry.stat().st_atime
            except OSError:
                continue
            if newest is None or accessed > newest[0]:
                newest = (accessed, alias)

    if newest is None:
        return None

    age = context.now - newest[0]
    if age > context.freshness_window:
        logger.debug(f"Most recent wrapper {newest[1]} is stale ({age:.1f}s old)")
        return None
    return newest[1]


Heuristic = Callable[[InvocationContext], Optional[str]]

HEURISTICS: tuple[tuple[str, Heuristic], ...] = (
    ("argv", from_direct_argument),
    ("parent", from_parent_process),
    ("shell", from_shell_variable),
    ("recent-wrapper", from_recent_wrapper),
)


@dataclass(frozen=True)
class Resolution:
    """Which alias was resolved, its operation, and the heuristic that found it."""

    alias: str
    operation: str
    source: str


def resolve_invocation(context: InvocationContext) -> Optional[Resolution]:
    """Run the heuristics in order; the first answer wins."""
    for source, heuristic in HEURISTICS:
        alias = heuristic(context)
        if alias is not None:
            logger.debug(f"Resolved invocation as {alias} via {source}")
            return Resolution(alias=alias, operation=ALIASES[alias], source=source)

    logger.debug("Could not resolve invocation identity")
    return None


def resolve_operation(context: InvocationContext) -> Optional[str]:
    """Operation name the invocation refers to, or None when unresolved."""
    resolution = resolve_invocation(context)
    return resolution.operation if resolution else None
