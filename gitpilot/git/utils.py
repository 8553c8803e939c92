"""Parsers and naming helpers for git porcelain output."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

# Field separator for --format output (ASCII unit separator). git log spells it
# %x1f and git branch spells it %1f; it cannot occur in names or subjects.
LOG_SEPARATOR = "\x1f"
LOG_FORMAT = "%x1f".join(["%H", "%an", "%ae", "%ai", "%s"])
BRANCH_FORMAT = "%1f".join(["%(HEAD)", "%(refname:short)", "%(upstream:short)", "%(objectname:short)"])

_TRACKING = re.compile(r"(ahead|behind) (\d+)")
_VERSION = re.compile(r"^(?P<prefix>[^\d]*)(?P<major>\d+)\.(?P<minor>\d+)\.(?P<patch>\d+)$")
_INVALID_REF_CHARS = re.compile(r"[\x00-\x20\x7f~^:?*\[\\]")


@dataclass
class GitStatus:
    """Represents the current git repository status."""

    branch: Optional[str]
    is_clean: bool
    staged: list[tuple[str, str]] = field(default_factory=list)  # (status, filename)
    modified: list[str] = field(default_factory=list)
    untracked: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    conflicted: list[str] = field(default_factory=list)
    ahead: int = 0
    behind: int = 0
    upstream: Optional[str] = None

    def summary(self) -> list[str]:
        """Get display lines describing the status."""
        parts = [f"On branch {self.branch}" if self.branch else "HEAD detached"]

        if self.upstream and (self.ahead or self.behind):
            tracking = []
            if self.ahead:
                tracking.append(f"ahead {self.ahead}")
            if self.behind:
                tracking.append(f"behind {self.behind}")
            parts.append(f"Your branch is {' and '.join(tracking)} of '{self.upstream}'")

        if self.is_clean:
            parts.append("Nothing to commit, working tree clean")
            return parts

        if self.staged:
            parts.append(f"Staged: {len(self.staged)} file(s)")
            parts.extend(f"  {status}: {name}" for status, name in self.staged)
        if self.modified:
            parts.append(f"Modified: {len(self.modified)} file(s)")
            parts.extend(f"  {name}" for name in self.modified)
        if self.deleted:
            parts.append(f"Deleted: {len(self.deleted)} file(s)")
            parts.extend(f"  {name}" for name in self.deleted)
        if self.untracked:
            parts.append(f"Untracked: {len(self.untracked)} file(s)")
            parts.extend(f"  {name}" for name in self.untracked)
        if self.conflicted:
            parts.append(f"Conflicts: {len(self.conflicted)} file(s)")
            parts.extend(f"  {name}" for name in self.conflicted)

        return parts


def parse_branch_header(line: str) -> tuple[Optional[str], Optional[str], int, int]:
    """Parse the ``## branch...upstream [ahead N, behind M]`` status header.

    Returns:
        (branch, upstream, ahead, behind); branch is None when detached.
    """
    header = line[3:].strip()
    if not header or header.startswith("HEAD (no branch)"):
        return None, None, 0, 0

    for prefix in ("No commits yet on ", "Initial commit on "):
        if header.startswith(prefix):
            header = header[len(prefix):]

    tracking = ""
    if header.endswith("]") and " [" in header:
        header, tracking = header[:-1].split(" [", 1)

    branch, _, upstream = header.partition("...")

    ahead = behind = 0
    for direction, count in _TRACKING.findall(tracking):
        if direction == "ahead":
            ahead = int(count)
        else:
            behind = int(count)

    return branch, upstream or None, ahead, behind


def parse_git_status(porcelain_output: str) -> GitStatus:
    """Parse ``git status --porcelain=v1 --branch`` output.

    Args:
        porcelain_output: Output from 'git status --porcelain=v1 --branch'.

    Returns:
        GitStatus with categorized file lists.
    """
    status = GitStatus(branch=None, is_clean=True)

    for line in porcelain_output.rstrip("\n").split("\n"):
        if not line:
            continue

        if line.startswith("## "):
            status.branch, status.upstream, status.ahead, status.behind = parse_branch_header(line)
            continue

        # Porcelain format: XY filename
        if len(line) < 4:
            continue

        x, y = line[0], line[1]
        filename = line[3:]

        if " -> " in filename:
            filename = filename.split(" -> ", 1)[1]

        status.is_clean = False

        if x == "U" or y == "U" or (x == "A" and y == "A") or (x == "D" and y == "D"):
            status.conflicted.append(filename)
            continue

        staged_kind = {"A": "added", "M": "modified", "D": "deleted", "R": "renamed", "C": "copied"}.get(x)
        if staged_kind:
            status.staged.append((staged_kind, filename))

        if y == "M":
            status.modified.append(filename)
        elif y == "D":
            status.deleted.append(filename)
        elif y == "?":
            status.untracked.append(filename)

    return status


def parse_commit_line(line: str, sep: str = LOG_SEPARATOR) -> dict:
    """Parse a line produced with ``LOG_FORMAT``.

    Args:
        line: Line from git log with custom format.
        sep: Separator used in format string.

    Returns:
        Dictionary with commit information, empty if the line is malformed.
    """
    parts = line.strip("\r\n").split(sep, 4)
    if len(parts) < 5:
        return {}
    return {
        "hash": parts[0],
        "short_hash": parts[0][:7],
        "author": parts[1],
        "email": parts[2],
        "date": parts[3],
        "message": parts[4],
    }


def parse_branch_line(line: str, sep: str = LOG_SEPARATOR) -> dict:
    """Parse a line produced by ``git branch --format=BRANCH_FORMAT``."""
    parts = line.split(sep)
    if len(parts) < 4 or not parts[1]:
        return {}
    return {
        "name": parts[1],
        "current": parts[0].strip() == "*",
        "upstream": parts[2] or None,
        "commit": parts[3],
    }


def parse_blame_porcelain(output: str) -> list[dict]:
    """Parse ``git blame --line-porcelain`` output into one dict per line."""
    lines = []
    current: dict = {}

    for line in output.split("\n"):
        if not line:
            continue

        # First line of each block: hash orig_line final_line [group_lines]
        if re.match(r"^[0-9a-f]{40}", line):
            parts = line.split()
            current = {
                "commit": parts[0][:8],
                "line_num": int(parts[2]) if len(parts) > 2 else 0,
            }
        elif line.startswith("author "):
            current["author"] = line[7:]
        elif line.startswith("author-time "):
            current["date"] = datetime.fromtimestamp(int(line[12:])).strftime("%Y-%m-%d")
        elif line.startswith("\t"):
            current["content"] = line[1:]
            lines.append(current)
            current = {}

    return lines


def parse_remotes(output: str) -> dict[str, dict[str, str]]:
    """Parse ``git remote -v`` into ``{name: {"fetch": url, "push": url}}``."""
    remotes: dict[str, dict[str, str]] = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 3:
            continue
        name, url, kind = parts[0], parts[1], parts[2].strip("()")
        remotes.setdefault(name, {})[kind] = url
    return remotes


def parse_ahead_behind(output: str) -> tuple[int, int]:
    """Parse ``git rev-list --left-right --count HEAD...@{upstream}``.

    Returns:
        (ahead, behind) counts.
    """
    parts = output.split()
    if len(parts) != 2:
        return 0, 0
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return 0, 0


def validate_ref_name(name: str) -> Optional[str]:
    """Check a branch or tag name against git's ref-format rules.

    Returns:
        A reason string when the name is invalid, otherwise None.
    """
    if not name:
        return "name is empty"
    if name == "@":
        return "'@' is not a valid name"
    if _INVALID_REF_CHARS.search(name):
        return "contains whitespace, control characters or one of ~^:?*[\\"
    if name.startswith(("-", "/", ".")) or name.endswith(("/", ".", ".lock")):
        return "has an invalid leading or trailing character"
    if ".." in name or "//" in name or "@{" in name or "/." in name:
        return "contains '..', '//', '/.' or '@{'"
    return None


def normalize_branch_name(name: str) -> str:
    """Map a shorthand development branch name onto a prefixed one.

    ``feature-x``/``feat-x`` become ``feature/x``, ``fix-x``/``bugfix-x``
    become ``bugfix/x``, ``hotfix-x`` becomes ``hotfix/x``. Names already
    containing ``/`` are returned as-is; anything else is a feature.
    """
    name = name.strip()
    if "/" in name:
        return name

    prefixes = (
        ("feature-", "feature/"),
        ("feat-", "feature/"),
        ("bugfix-", "bugfix/"),
        ("fix-", "bugfix/"),
        ("hotfix-", "hotfix/"),
    )
    for short, full in prefixes:
        if name.startswith(short) and len(name) > len(short):
            return full + name[len(short):]

    return f"feature/{name}"


def bump_version(latest_tag: Optional[str], bump: str = "patch", prefix: str = "v") -> str:
    """Compute the next semantic version tag.

    Args:
        latest_tag: Most recent version tag, or None when there is none.
        bump: One of major, minor, patch.
        prefix: Tag prefix (e.g. "v").

    Returns:
        The bumped tag, starting from ``<prefix>0.0.0`` when no tag exists.

    Raises:
        ValueError: If ``bump`` is unknown or the tag is not a version.
    """
    if bump not in ("major", "minor", "patch"):
        raise ValueError(f"Unknown version bump: {bump}")

    match = _VERSION.match(latest_tag or f"{prefix}0.0.0")
    if not match:
        raise ValueError(f"Tag is not a semantic version: {latest_tag}")

    major, minor, patch = (int(match.group(k)) for k in ("major", "minor", "patch"))
    if bump == "major":
        major, minor, patch = major + 1, 0, 0
    elif bump == "minor":
        minor, patch = minor + 1, 0
    else:
        patch += 1

    return f"{prefix}{major}.{minor}.{patch}"


def normalize_version_tag(version: str, prefix: str = "v") -> str:
    """Ensure an explicit version carries the tag prefix (``1.2.3`` -> ``v1.2.3``)."""
    version = version.strip()
    if prefix and not version.startswith(prefix):
        return prefix + version
    return version


def repository_name(remote_url: Optional[str], fallback: str) -> str:
    """Derive a repository name from a remote URL (``.../name.git`` -> ``name``)."""
    if not remote_url:
        return fallback
    tail = re.split(r"[/:]", remote_url.rstrip("/"))[-1]
    if tail.endswith(".git"):
        tail = tail[:-4]
    return tail or fallback


def timestamp_suffix(now: Optional[datetime] = None) -> str:
    """Timestamp used in backup names: ``YYYYmmdd-HHMMSS``."""
    return (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
