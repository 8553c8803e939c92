"""Classification of raw git diagnostics into ``ErrorKind`` values.

Patterns are checked in a fixed priority order and the first match wins,
so the specific phrases (rebase and cherry-pick conflicts, SSH key
rejections) sit above the generic ones they would otherwise collide with.
"""

from __future__ import annotations

import re
from typing import Optional

from gitpilot.git.types import ErrorKind


def _any(*phrases: str, case_sensitive: bool = False) -> re.Pattern[str]:
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile("|".join(re.escape(p) for p in phrases), flags)


# Ordered (kind, pattern) table
ERROR_PATTERNS: tuple[tuple[ErrorKind, re.Pattern[str]], ...] = (
    (ErrorKind.TIMEOUT, _any("command timed out")),
    (ErrorKind.NOT_A_REPOSITORY, _any("not a git repository")),
    (
        ErrorKind.REBASE_CONFLICT,
        re.compile(
            r"rebase --continue|rebase in progress|rebase-merge|rebase-apply"
            r"|could not apply [0-9a-f]+.*\n(?:.*\n)*.*rebase",
            re.IGNORECASE,
        ),
    ),
    (
        ErrorKind.CHERRY_PICK_CONFLICT,
        _any(
            "cherry-pick --continue",
            "cherry-pick --abort",
            "cherry-pick is already in progress",
            "cherry-picking",
            "cherry-pick failed",
        ),
    ),
    (ErrorKind.MERGE_CONFLICT, _any("CONFLICT", case_sensitive=True)),
    (
        ErrorKind.MERGE_CONFLICT,
        _any(
            "automatic merge failed",
            "fix conflicts and then commit",
            "you have unmerged paths",
            "because you have unmerged files",
        ),
    ),
    (
        ErrorKind.NOTHING_TO_COMMIT,
        _any(
            "nothing to commit",
            "no changes added to commit",
            "nothing added to commit",
            "no staged changes",
        ),
    ),
    (
        ErrorKind.NOTHING_TO_STAGE,
        _any("nothing specified, nothing added", "no local changes to save", "nothing to stage"),
    ),
    (
        ErrorKind.AUTHENTICATION_FAILURE,
        _any(
            "authentication failed",
            "could not read username",
            "could not read password",
            "invalid username or password",
            "terminal prompts disabled",
            "permission denied (publickey",
            "host key verification failed",
        ),
    ),
    (
        ErrorKind.PERMISSION_DENIED,
        _any("permission denied", "operation not permitted", "insufficient permission", "read-only file system"),
    ),
    (
        ErrorKind.NETWORK_UNREACHABLE,
        _any(
            "could not resolve hostname",
            "could not resolve host",
            "network is unreachable",
            "connection refused",
            "connection timed out",
            "failed to connect",
            "unable to connect",
            "could not read from remote repository",
        ),
    ),
    (
        ErrorKind.REMOTE_REJECTED,
        _any(
            "remote rejected",
            "[rejected]",
            "updates were rejected",
            "failed to push some refs",
            "non-fast-forward",
        ),
    ),
    (
        ErrorKind.NO_UPSTREAM,
        _any("no upstream branch", "has no upstream", "no tracking information", "--set-upstream"),
    ),
    (
        ErrorKind.INVALID_REFERENCE,
        _any(
            "unknown revision",
            "bad revision",
            "not a valid object name",
            "did not match any",
            "invalid reference",
            "not a valid branch name",
            "is not a valid branch name",
            "already exists",
            "couldn't find remote ref",
            "no such remote",
            "not a commit",
            "needed a single revision",
            "invalid upstream",
        ),
    ),
)

REMEDIATION_HINTS: dict[ErrorKind, str] = {
    ErrorKind.NOT_A_REPOSITORY: "Run the command inside a git repository, or create one with 'git init'.",
    ErrorKind.NOTHING_TO_STAGE: "There are no changes to stage; edit files first or check 'git status'.",
    ErrorKind.NOTHING_TO_COMMIT: "Stage changes with 'git add' before committing.",
    ErrorKind.MERGE_CONFLICT: "Resolve the conflicted files, stage them, then run 'git merge --continue' (or '--abort').",
    ErrorKind.REBASE_CONFLICT: "Resolve the conflicted files, stage them, then run 'git rebase --continue' (or '--abort').",
    ErrorKind.CHERRY_PICK_CONFLICT: "Resolve the conflicted files, stage them, then run 'git cherry-pick --continue' (or '--abort').",
    ErrorKind.AUTHENTICATION_FAILURE: "Check your credentials, SSH key or access token for the remote.",
    ErrorKind.NETWORK_UNREACHABLE: "Check network connectivity and the remote URL, then retry.",
    ErrorKind.PERMISSION_DENIED: "Check file system permissions for the repository and its .git directory.",
    ErrorKind.REMOTE_REJECTED: "Fetch and integrate the remote changes first (pull or rebase), then push again.",
    ErrorKind.NO_UPSTREAM: "Set an upstream with 'git push --set-upstream <remote> <branch>'.",
    ErrorKind.INVALID_REFERENCE: "Check the branch, tag, commit or path name; list them with 'git branch -a' or 'git tag'.",
    ErrorKind.TIMEOUT: "The command took too long; narrow its scope or check connectivity to the remote.",
    ErrorKind.UNKNOWN: "Inspect the command details and 'git status' for more information.",
}


def classify(raw_error_text: Optional[str]) -> ErrorKind:
    """Map raw git diagnostic text to an ``ErrorKind``.

    Args:
        raw_error_text: stderr (or stdout) of a failed git command.

    Returns:
        The first matching kind, or ``ErrorKind.UNKNOWN``.
    """
    if not raw_error_text:
        return ErrorKind.UNKNOWN

    for kind, pattern in ERROR_PATTERNS:
        if pattern.search(raw_error_text):
            return kind

    return ErrorKind.UNKNOWN


def remediation_hint(kind: ErrorKind) -> str:
    """Short human hint for recovering from ``kind``."""
    return REMEDIATION_HINTS[kind]
