"""Primitive git operations.

Every primitive follows the same template: repository guard, argument and
state validation, one executor call, classification of failures (with
conflict detection for merge, rebase and cherry-pick style operations),
and a uniform ``OperationResult`` built by ``ResultBuilder``.

Structural argument errors raise ``InputValidationError`` before anything
runs. State preconditions (nothing staged, branch already exists, ...)
return a failed result without spawning the mutating command.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence, Union

from gitpilot.errors import (
    CommandBlockedError,
    GitCommandError,
    GitError,
    InputValidationError,
    UnknownOperationError,
)
from gitpilot.git.command import GitCommand, git
from gitpilot.git.conflicts import RESOLUTION_COMMANDS, ConflictDetector
from gitpilot.git.executor import CommandExecutor
from gitpilot.git.guard import RepositoryGuard
from gitpilot.git.results import Failure, Outcome, ResultBuilder, Success
from gitpilot.git.types import (
    CommandOutput,
    ConflictKind,
    ErrorKind,
    OperationRequest,
    OperationResult,
)
from gitpilot.git.utils import (
    BRANCH_FORMAT,
    LOG_FORMAT,
    parse_blame_porcelain,
    parse_branch_line,
    parse_commit_line,
    parse_git_status,
    parse_remotes,
    parse_ahead_behind,
    repository_name,
    validate_ref_name,
)

logger = logging.getLogger(__name__)

# Primitive operation names accepted by GitOperations.dispatch
OPERATION_NAMES: tuple[str, ...] = (
    "status",
    "add",
    "add_all",
    "unstage",
    "unstage_all",
    "commit",
    "push",
    "pull",
    "fetch",
    "branch_list",
    "branch_create",
    "branch_delete",
    "checkout",
    "log",
    "diff",
    "stash",
    "stash_pop",
    "stash_list",
    "reset",
    "tag",
    "tag_delete",
    "tag_list",
    "merge",
    "rebase",
    "cherry_pick",
    "resolve_conflict",
    "blame",
    "bisect",
    "remote_list",
    "remote_add",
    "remote_remove",
    "clone",
    "init",
    "repo_info",
)

RESET_MODES = ("soft", "mixed", "hard")
BISECT_ACTIONS = ("start", "good", "bad", "skip", "reset", "log")
RESOLVE_ACTIONS = ("continue", "abort")

STASH_CONFLICT_HINT = (
    "Resolve the conflicted files and stage them with 'git add', then run 'git stash drop' "
    "(the entry is kept after a conflicting pop). To undo the pop, run 'git reset --merge'."
)


# =============================================================================
# Argument validation
# =============================================================================

def _require_text(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InputValidationError(field, "must be a non-empty string")
    return value


def _optional_text(field: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    return _require_text(field, value)


def _require_paths(field: str, value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)) or not value:
        raise InputValidationError(field, "must be a non-empty list of strings")
    return [_require_text(field, item) for item in value]


def _require_int(field: str, value: Any, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InputValidationError(field, "must be an integer")
    if value < minimum:
        raise InputValidationError(field, f"must be >= {minimum}")
    return value


def _optional_int(field: str, value: Any, minimum: int) -> Optional[int]:
    if value is None:
        return None
    return _require_int(field, value, minimum)


def _require_choice(field: str, value: Any, choices: Sequence[str]) -> str:
    if value not in choices:
        raise InputValidationError(field, f"must be one of {', '.join(choices)}")
    return value


def _require_ref_name(field: str, value: Any) -> str:
    name = _require_text(field, value)
    reason = validate_ref_name(name)
    if reason:
        raise InputValidationError(field, reason)
    return name


def _conflict_kind(value: Union[ConflictKind, str]) -> ConflictKind:
    if isinstance(value, ConflictKind):
        return value
    try:
        return ConflictKind(str(value).replace("_", "-"))
    except ValueError:
        choices = ", ".join(kind.value for kind in ConflictKind)
        raise InputValidationError("kind", f"must be one of {choices}")


class GitOperations:
    """Primitive git operations against one working directory.

    Example:
        >>> ops = GitOperations("/path/to/repo")
        >>> result = await ops.status()
        >>> print(result.text())
    """

    def __init__(
        self,
        working_directory: Path | str,
        executor: Optional[CommandExecutor] = None,
        guard: Optional[RepositoryGuard] = None,
        detector: Optional[ConflictDetector] = None,
        timeout_ms: int = 30000,
        clone_timeout_ms: int = 300000,
        default_remote: str = "origin",
    ):
        """Initialize the operations.

        Args:
            working_directory: Directory operations run in.
            executor: Command executor (a default one is created if omitted).
            guard: Repository guard (a default one is created if omitted).
            detector: Conflict detector (defaults to one sharing ``executor``).
            timeout_ms: Timeout for each git command.
            clone_timeout_ms: Timeout for clone, which is usually slow.
            default_remote: Remote used when a push must set an upstream.
        """
        self.working_directory = Path(working_directory)
        self.executor = executor or CommandExecutor(default_timeout_ms=timeout_ms)
        self.guard = guard or RepositoryGuard()
        self.detector = detector or ConflictDetector(self.executor)
        self.timeout_ms = timeout_ms
        self.clone_timeout_ms = clone_timeout_ms
        self.default_remote = default_remote

    @classmethod
    def from_settings(cls, working_directory: Path | str, settings: Any = None) -> "GitOperations":
        """Create operations configured from gitpilot settings."""
        from gitpilot.config import get_settings

        settings = settings or get_settings()
        executor = CommandExecutor(
            default_timeout_ms=settings.executor.timeout_ms,
            env=dict(settings.executor.env),
            max_output_chars=settings.executor.max_output_chars,
        )
        return cls(
            working_directory,
            executor=executor,
            guard=RepositoryGuard(timeout_ms=settings.executor.guard_timeout_ms),
            timeout_ms=settings.executor.timeout_ms,
            clone_timeout_ms=settings.executor.clone_timeout_ms,
            default_remote=settings.workflows.default_remote,
        )

    def bind(
        self,
        working_directory: Optional[Path | str] = None,
        timeout_ms: Optional[int] = None,
    ) -> "GitOperations":
        """Copy sharing executor, guard and detector with a new directory or timeout."""
        return GitOperations(
            working_directory if working_directory is not None else self.working_directory,
            executor=self.executor,
            guard=self.guard,
            detector=self.detector,
            timeout_ms=timeout_ms or self.timeout_ms,
            clone_timeout_ms=self.clone_timeout_ms,
            default_remote=self.default_remote,
        )

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def dispatch(self, request: OperationRequest) -> OperationResult:
        """Route a request to the named primitive.

        Raises:
            UnknownOperationError: If the operation name is not a primitive.
            InputValidationError: If the arguments don't fit the primitive.
        """
        name = request.operation_name.replace("-", "_")
        if name not in OPERATION_NAMES:
            raise UnknownOperationError(request.operation_name)

        ops = self.bind(request.working_directory, request.timeout_ms)
        method = getattr(ops, name)
        arguments = dict(request.arguments)

        try:
            inspect.signature(method).bind(**arguments)
        except TypeError as e:
            raise InputValidationError("arguments", str(e))

        logger.debug(f"Dispatching {name} in {request.working_directory}")
        return await method(**arguments)

    # =========================================================================
    # Plumbing
    # =========================================================================

    async def run(self, command: Union[GitCommand, str], timeout_ms: Optional[int] = None) -> CommandOutput:
        return await self.executor.execute(command, self.working_directory, timeout_ms or self.timeout_ms)

    async def _probe(self, command: GitCommand) -> bool:
        """Run a yes/no query; a non-zero exit means "no"."""
        try:
            await self.run(command)
        except GitCommandError:
            return False
        return True

    async def _query(self, command: GitCommand) -> Optional[CommandOutput]:
        try:
            return await self.run(command)
        except GitCommandError:
            return None

    async def perform(
        self,
        name: str,
        body: Callable[[], Awaitable[Outcome]],
        *,
        guarded: bool = True,
        conflict_kind: Optional[ConflictKind] = None,
    ) -> OperationResult:
        """Run ``body`` inside the guard / classify / build template."""
        start = ResultBuilder.start()

        if guarded and not await self.guard.is_repository(self.working_directory):
            logger.info(f"{name}: not a git repository: {self.working_directory}")
            return ResultBuilder.build(
                name,
                self.working_directory,
                start,
                Failure(ErrorKind.NOT_A_REPOSITORY, f"Not a git repository: {self.working_directory}"),
            )

        try:
            outcome = await body()
        except GitError as e:
            if conflict_kind is not None and e.kind is not None and e.kind.is_conflict:
                report = await self.detector.detect(self.working_directory, conflict_kind)
                if report is not None:
                    output = CommandOutput(
                        command=getattr(e, "command", ""),
                        stdout=getattr(e, "stdout", ""),
                        stderr=e.stderr or "",
                        exit_code=e.returncode if e.returncode is not None else -1,
                    )
                    return ResultBuilder.build(
                        name, self.working_directory, start, Success(output=output, conflict=report)
                    )
            return ResultBuilder.build(name, self.working_directory, start, e)
        except CommandBlockedError as e:
            return ResultBuilder.build(name, self.working_directory, start, e)

        return ResultBuilder.build(name, self.working_directory, start, outcome)

    # =========================================================================
    # Repository queries (raise GitError; used by primitives and workflows)
    # =========================================================================

    async def current_branch(self) -> Optional[str]:
        """Current branch name, or None when HEAD is detached."""
        output = await self.run(git("branch", "--show-current"))
        return output.stdout.strip() or None

    async def ref_exists(self, ref: str) -> bool:
        return await self._probe(git("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"))

    async def branch_exists(self, name: str) -> bool:
        return await self._probe(git("show-ref", "--verify", "--quiet", f"refs/heads/{name}"))

    async def tag_exists(self, name: str) -> bool:
        return await self._probe(git("show-ref", "--verify", "--quiet", f"refs/tags/{name}"))

    async def pending_changes(self, paths: Iterable[str] = (), include_untracked: bool = True) -> list[str]:
        """Porcelain status lines for uncommitted changes (optionally limited to paths)."""
        command = git("status", "--porcelain=v1").with_option("--untracked-files=no", enabled=not include_untracked)
        paths = list(paths)
        if paths:
            command = command.with_paths(paths)
        output = await self.run(command)
        return [line for line in output.stdout.splitlines() if line.strip()]

    async def staged_files(self) -> list[str]:
        output = await self.run(git("diff", "--cached", "--name-only"))
        return [line for line in output.stdout.splitlines() if line.strip()]

    async def remote_names(self) -> list[str]:
        output = await self.run(git("remote"))
        return [line.strip() for line in output.stdout.splitlines() if line.strip()]

    async def upstream(self) -> Optional[str]:
        """Upstream of the current branch (``origin/main``), or None."""
        output = await self._query(git("rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{upstream}"))
        return (output.stdout.strip() or None) if output else None

    async def remote_head(self, remote: str) -> Optional[str]:
        """Default branch of ``remote`` as a tracking ref (``origin/main``), or None."""
        output = await self._query(git("symbolic-ref", "--quiet", "--short", f"refs/remotes/{remote}/HEAD"))
        return (output.stdout.strip() or None) if output else None

    async def ahead_behind(self) -> tuple[int, int]:
        """Commits (ahead, behind) relative to the upstream."""
        output = await self.run(git("rev-list", "--left-right", "--count", "HEAD...@{upstream}"))
        return parse_ahead_behind(output.stdout)

    async def latest_tag(self, match: Optional[str] = None) -> Optional[str]:
        command = git("describe", "--tags", "--abbrev=0").with_option("--match", match, enabled=match is not None)
        output = await self._query(command)
        return (output.stdout.strip() or None) if output else None

    async def commits_since(self, ref: Optional[str]) -> list[str]:
        """One ``- subject (hash)`` line per commit after ``ref`` (all when None)."""
        command = git("log", "--pretty=format:- %s (%h)")
        if ref:
            command = command.with_args(f"{ref}..HEAD")
        output = await self._query(command)
        return [line for line in output.stdout.splitlines() if line.strip()] if output else []

    async def merged_branches(self, target: str) -> list[str]:
        output = await self.run(git("branch", "--merged", target, "--format=%(refname:short)"))
        return [line.strip() for line in output.stdout.splitlines() if line.strip()]

    # =========================================================================
    # Status and staging
    # =========================================================================

    async def status(self) -> OperationResult:
        """Get the working tree status."""

        async def body() -> Outcome:
            output = await self.run(git("status", "--porcelain=v1", "--branch"))
            status = parse_git_status(output.stdout)
            return Success(lines=status.summary(), output=output, data=asdict(status))

        return await self.perform("status", body)

    async def add(self, files: list[str]) -> OperationResult:
        """Stage specific files.

        Args:
            files: Paths relative to the working directory.

        Returns:
            OperationResult; INVALID_REFERENCE for missing paths,
            NOTHING_TO_STAGE when none of them has changes.
        """
        files = _require_paths("files", files)

        async def body() -> Outcome:
            missing = [f for f in files if not (self.working_directory / f).exists()]
            if missing:
                return Failure(ErrorKind.INVALID_REFERENCE, f"File(s) not found: {', '.join(missing)}")
            if not await self.pending_changes(files):
                return Failure(ErrorKind.NOTHING_TO_STAGE, f"No changes to stage in: {', '.join(files)}")
            output = await self.run(git("add").with_paths(files))
            return Success(lines=[f"Staged {len(files)} file(s): {', '.join(files)}"], output=output, data={"files": files})

        return await self.perform("add", body)

    async def add_all(self) -> OperationResult:
        """Stage every change, including untracked and deleted files."""

        async def body() -> Outcome:
            pending = await self.pending_changes()
            if not pending:
                return Failure(ErrorKind.NOTHING_TO_STAGE, "No changes to stage; working tree clean")
            output = await self.run(git("add", "--all"))
            return Success(lines=[f"Staged all changes ({len(pending)} path(s))"], output=output)

        return await self.perform("add_all", body)

    async def unstage(self, file: str) -> OperationResult:
        """Remove a file from the index, keeping working tree changes."""
        file = _require_text("file", file)

        async def body() -> Outcome:
            output = await self.run(git("reset", "HEAD").with_paths([file]))
            return Success(lines=[f"Unstaged {file}"], output=output)

        return await self.perform("unstage", body)

    async def unstage_all(self) -> OperationResult:
        async def body() -> Outcome:
            output = await self.run(git("reset", "HEAD").with_paths(["."]))
            return Success(lines=["Unstaged all changes"], output=output)

        return await self.perform("unstage_all", body)

    # =========================================================================
    # Commits and remotes
    # =========================================================================

    async def commit(self, message: str, all: bool = False, amend: bool = False) -> OperationResult:
        """Create a commit.

        Args:
            message: Commit message.
            all: Stage tracked modifications first (``--all``).
            amend: Amend the previous commit.

        Returns:
            OperationResult; NOTHING_TO_COMMIT when the index is empty.
        """
        message = _require_text("message", message)

        async def body() -> Outcome:
            if not (all or amend) and not await self.staged_files():
                return Failure(ErrorKind.NOTHING_TO_COMMIT, "Nothing to commit: no staged changes")
            command = git("commit", "-m", message).with_option("--all", enabled=all).with_option("--amend", enabled=amend)
            return await self.run(command)

        return await self.perform("commit", body)

    async def push(
        self,
        remote: Optional[str] = None,
        branch: Optional[str] = None,
        set_upstream: bool = False,
        tags: bool = False,
        force: bool = False,
    ) -> OperationResult:
        """Push commits (and optionally tags) to a remote.

        With ``set_upstream`` the remote defaults to the configured default
        remote and the branch to the current branch.
        """
        remote = _optional_text("remote", remote)
        branch = _optional_text("branch", branch)

        async def body() -> Outcome:
            target_remote, target_branch = remote, branch
            if set_upstream:
                target_remote = target_remote or self.default_remote
                target_branch = target_branch or await self.current_branch()
                if not target_branch:
                    return Failure(ErrorKind.INVALID_REFERENCE, "Cannot set an upstream from a detached HEAD")
            elif target_branch and not target_remote:
                target_remote = self.default_remote

            command = (
                git("push")
                .with_option("--set-upstream", enabled=set_upstream)
                .with_option("--tags", enabled=tags)
                .with_option("--force-with-lease", enabled=force)
            )
            if target_remote:
                command = command.with_args(target_remote)
            if target_branch:
                command = command.with_args(target_branch)
            return await self.run(command)

        return await self.perform("push", body)

    async def pull(self, remote: Optional[str] = None, branch: Optional[str] = None, rebase: bool = False) -> OperationResult:
        """Fetch and integrate remote changes (merge by default, or rebase)."""
        remote = _optional_text("remote", remote)
        branch = _optional_text("branch", branch)

        async def body() -> Outcome:
            command = git("pull", "--rebase" if rebase else "--no-rebase")
            if remote:
                command = command.with_args(remote)
            if branch:
                command = command.with_args(branch)
            return await self.run(command)

        kind = ConflictKind.REBASE if rebase else ConflictKind.MERGE
        return await self.perform("pull", body, conflict_kind=kind)

    async def fetch(self, remote: Optional[str] = None, prune: bool = False, all_remotes: bool = False) -> OperationResult:
        remote = _optional_text("remote", remote)
        if remote and all_remotes:
            raise InputValidationError("remote", "cannot be combined with all_remotes")

        async def body() -> Outcome:
            command = git("fetch").with_option("--all", enabled=all_remotes).with_option("--prune", enabled=prune)
            if remote:
                command = command.with_args(remote)
            output = await self.run(command)
            return Success(lines=output.lines() or ["Fetch complete; already up to date"], output=output)

        return await self.perform("fetch", body)

    # =========================================================================
    # Branches
    # =========================================================================

    async def branch_list(self, all: bool = False) -> OperationResult:
        """List local branches (and remote-tracking ones with ``all``)."""

        async def body() -> Outcome:
            command = git("branch", f"--format={BRANCH_FORMAT}").with_option("--all", enabled=all)
            output = await self.run(command)
            branches = [b for b in (parse_branch_line(line) for line in output.stdout.splitlines()) if b]
            lines = [
                f"{'*' if b['current'] else ' '} {b['name']}" + (f" -> {b['upstream']}" if b["upstream"] else "")
                for b in branches
            ]
            return Success(lines=lines or ["No branches yet"], output=output, data={"branches": branches})

        return await self.perform("branch_list", body)

    async def branch_create(self, name: str, start_point: Optional[str] = None) -> OperationResult:
        name = _require_ref_name("name", name)
        start_point = _optional_text("start_point", start_point)

        async def body() -> Outcome:
            if await self.branch_exists(name):
                return Failure(ErrorKind.INVALID_REFERENCE, f"Branch '{name}' already exists")
            if start_point and not await self.ref_exists(start_point):
                return Failure(ErrorKind.INVALID_REFERENCE, f"Start point '{start_point}' does not exist")
            command = git("branch", name)
            if start_point:
                command = command.with_args(start_point)
            output = await self.run(command)
            return Success(lines=[f"Created branch '{name}'"], output=output)

        return await self.perform("branch_create", body)

    async def branch_delete(self, name: str, force: bool = False) -> OperationResult:
        """Delete a local branch; refuses the current branch."""
        name = _require_text("name", name)

        async def body() -> Outcome:
            if not await self.branch_exists(name):
                return Failure(ErrorKind.INVALID_REFERENCE, f"Branch '{name}' does not exist")
            if await self.current_branch() == name:
                return Failure(ErrorKind.INVALID_REFERENCE, f"Cannot delete the current branch '{name}'")
            output = await self.run(git("branch", "-D" if force else "-d", name))
            return Success(lines=[f"Deleted branch '{name}'"], output=output)

        return await self.perform("branch_delete", body)

    async def checkout(self, target: str, create: bool = False) -> OperationResult:
        """Switch to a branch or commit, optionally creating the branch."""
        target = _require_ref_name("target", target) if create else _require_text("target", target)

        async def body() -> Outcome:
            if create and await self.branch_exists(target):
                return Failure(ErrorKind.INVALID_REFERENCE, f"Branch '{target}' already exists")
            command = git("checkout", "-b", target) if create else git("checkout", target)
            return await self.run(command)

        return await self.perform("checkout", body)

    # =========================================================================
    # History
    # =========================================================================

    async def log(
        self,
        max_count: int = 10,
        file: Optional[str] = None,
        author: Optional[str] = None,
        since: Optional[str] = None,
    ) -> OperationResult:
        """Get commit history.

        Args:
            max_count: Maximum number of commits to return.
            file: Limit to commits touching this path.
            author: Filter by author.
            since: Show commits more recent than this date.
        """
        max_count = _require_int("max_count", max_count, 1)
        file = _optional_text("file", file)
        author = _optional_text("author", author)
        since = _optional_text("since", since)

        async def body() -> Outcome:
            command = (
                git("log", f"--max-count={max_count}", f"--format={LOG_FORMAT}")
                .with_option(f"--author={author}", enabled=author is not None)
                .with_option(f"--since={since}", enabled=since is not None)
            )
            if file:
                command = command.with_paths([file])
            output = await self.run(command)
            commits = [c for c in (parse_commit_line(line) for line in output.stdout.splitlines()) if c]
            lines = [f"{c['short_hash']} {c['date'][:10]} {c['author']}: {c['message']}" for c in commits]
            return Success(lines=lines or ["No commits found"], output=output, data={"commits": commits})

        return await self.perform("log", body)

    async def diff(self, target: Optional[str] = None, staged: bool = False, file: Optional[str] = None) -> OperationResult:
        target = _optional_text("target", target)
        file = _optional_text("file", file)

        async def body() -> Outcome:
            command = git("diff").with_option("--cached", enabled=staged)
            if target:
                command = command.with_args(target)
            if file:
                command = command.with_paths([file])
            output = await self.run(command)
            lines = output.stdout.splitlines()
            return Success(lines=lines or ["No differences"], output=output, data={"diff": output.stdout})

        return await self.perform("diff", body)

    async def blame(self, file: str, start_line: Optional[int] = None, end_line: Optional[int] = None) -> OperationResult:
        """Line-by-line authorship of a file."""
        file = _require_text("file", file)
        start_line = _optional_int("start_line", start_line, 1)
        end_line = _optional_int("end_line", end_line, 1)
        if start_line is not None and end_line is not None and end_line < start_line:
            raise InputValidationError("end_line", "must not be before start_line")

        async def body() -> Outcome:
            if not (self.working_directory / file).is_file():
                return Failure(ErrorKind.INVALID_REFERENCE, f"File not found: {file}")
            command = git("blame", "--line-porcelain")
            if start_line is not None:
                command = command.with_args("-L", f"{start_line},{end_line if end_line is not None else ''}")
            elif end_line is not None:
                command = command.with_args("-L", f"1,{end_line}")
            output = await self.run(command.with_paths([file]))
            entries = parse_blame_porcelain(output.stdout)
            lines = [
                f"{e['commit']} ({e.get('author', '?')} {e.get('date', '')} {e['line_num']}) {e.get('content', '')}"
                for e in entries
            ]
            return Success(lines=lines or [f"No blame information for {file}"], output=output, data={"lines": entries})

        return await self.perform("blame", body)

    async def bisect(
        self,
        action: str,
        ref: Optional[str] = None,
        good: Optional[str] = None,
        bad: Optional[str] = None,
    ) -> OperationResult:
        """Drive a bisect session (start/good/bad/skip/reset/log)."""
        action = _require_choice("action", action, BISECT_ACTIONS)
        ref = _optional_text("ref", ref)
        good = _optional_text("good", good)
        bad = _optional_text("bad", bad)

        async def body() -> Outcome:
            command = git("bisect", action)
            if action == "start":
                if bad or good:
                    command = command.with_args(bad or "HEAD")
                if good:
                    command = command.with_args(good)
            elif action != "log" and ref:
                command = command.with_args(ref)
            return await self.run(command)

        return await self.perform("bisect", body)

    # =========================================================================
    # Stash and reset
    # =========================================================================

    async def stash(self, message: Optional[str] = None, include_untracked: bool = False) -> OperationResult:
        message = _optional_text("message", message)

        async def body() -> Outcome:
            if not await self.pending_changes(include_untracked=include_untracked):
                return Failure(ErrorKind.NOTHING_TO_STAGE, "No local changes to stash")
            command = (
                git("stash", "push")
                .with_option("--include-untracked", enabled=include_untracked)
                .with_option("-m", message, enabled=message is not None)
            )
            return await self.run(command)

        return await self.perform("stash", body)

    async def stash_pop(self, index: int = 0) -> OperationResult:
        """Apply and drop a stash entry.

        A conflicting pop is not a paused operation: there is nothing to
        continue or abort, and git keeps the entry. It is reported as a
        failed MergeConflict with a stash-specific hint.
        """
        index = _require_int("index", index, 0)

        async def body() -> Outcome:
            output = await self.run(git("stash", "list"))
            entries = [line for line in output.stdout.splitlines() if line.strip()]
            if index >= len(entries):
                return Failure(ErrorKind.INVALID_REFERENCE, f"No stash entry stash@{{{index}}}")
            return await self.run(git("stash", "pop", f"stash@{{{index}}}"))

        result = await self.perform("stash_pop", body)
        if result.error_kind is ErrorKind.MERGE_CONFLICT:
            return replace(result, hint=STASH_CONFLICT_HINT)
        return result

    async def stash_list(self) -> OperationResult:
        async def body() -> Outcome:
            output = await self.run(git("stash", "list"))
            entries = [line for line in output.stdout.splitlines() if line.strip()]
            return Success(lines=entries or ["No stash entries"], output=output, data={"stashes": entries})

        return await self.perform("stash_list", body)

    async def reset(self, mode: str = "mixed", target: str = "HEAD") -> OperationResult:
        """Reset HEAD to ``target`` with the given mode (soft, mixed or hard)."""
        mode = _require_choice("mode", mode, RESET_MODES)
        target = _require_text("target", target)

        async def body() -> Outcome:
            output = await self.run(git("reset", f"--{mode}", target))
            return Success(lines=output.lines() or [f"Reset ({mode}) to {target}"], output=output)

        return await self.perform("reset", body)

    # =========================================================================
    # Tags
    # =========================================================================

    async def tag(self, name: str, message: Optional[str] = None, ref: Optional[str] = None) -> OperationResult:
        """Create a tag; annotated when a message is given."""
        name = _require_ref_name("name", name)
        message = _optional_text("message", message)
        ref = _optional_text("ref", ref)

        async def body() -> Outcome:
            if await self.tag_exists(name):
                return Failure(ErrorKind.INVALID_REFERENCE, f"Tag '{name}' already exists")
            command = git("tag", "-a", name, "-m", message) if message else git("tag", name)
            if ref:
                command = command.with_args(ref)
            output = await self.run(command)
            return Success(lines=[f"Created tag '{name}'"], output=output)

        return await self.perform("tag", body)

    async def tag_delete(self, name: str) -> OperationResult:
        name = _require_text("name", name)

        async def body() -> Outcome:
            if not await self.tag_exists(name):
                return Failure(ErrorKind.INVALID_REFERENCE, f"Tag '{name}' does not exist")
            return await self.run(git("tag", "-d", name))

        return await self.perform("tag_delete", body)

    async def tag_list(self, pattern: Optional[str] = None) -> OperationResult:
        pattern = _optional_text("pattern", pattern)

        async def body() -> Outcome:
            command = git("tag", "--list", "--sort=-v:refname")
            if pattern:
                command = command.with_args(pattern)
            output = await self.run(command)
            tags = [line.strip() for line in output.stdout.splitlines() if line.strip()]
            return Success(lines=tags or ["No tags"], output=output, data={"tags": tags})

        return await self.perform("tag_list", body)

    # =========================================================================
    # Merge, rebase, cherry-pick
    # =========================================================================

    async def merge(
        self,
        branch: str,
        strategy: Optional[str] = None,
        no_ff: bool = False,
        message: Optional[str] = None,
    ) -> OperationResult:
        """Merge a branch into the current one; may stop on conflicts."""
        branch = _require_text("branch", branch)
        strategy = _optional_text("strategy", strategy)
        message = _optional_text("message", message)

        async def body() -> Outcome:
            if not await self.ref_exists(branch):
                return Failure(ErrorKind.INVALID_REFERENCE, f"Cannot merge '{branch}': no such branch or commit")
            command = (
                git("merge")
                .with_option("--no-ff", enabled=no_ff)
                .with_option(f"--strategy={strategy}", enabled=strategy is not None)
                .with_option("-m", message, enabled=message is not None)
                .with_args(branch)
            )
            return await self.run(command)

        return await self.perform("merge", body, conflict_kind=ConflictKind.MERGE)

    async def rebase(self, onto: str) -> OperationResult:
        onto = _require_text("onto", onto)

        async def body() -> Outcome:
            if not await self.ref_exists(onto):
                return Failure(ErrorKind.INVALID_REFERENCE, f"Cannot rebase onto '{onto}': no such branch or commit")
            return await self.run(git("rebase", onto))

        return await self.perform("rebase", body, conflict_kind=ConflictKind.REBASE)

    async def cherry_pick(self, commits: list[str]) -> OperationResult:
        """Apply the given commits on top of the current branch."""
        commits = _require_paths("commits", commits)

        async def body() -> Outcome:
            for commit in commits:
                if not await self.ref_exists(commit):
                    return Failure(ErrorKind.INVALID_REFERENCE, f"Commit '{commit}' does not exist")
            return await self.run(git("cherry-pick", *commits))

        return await self.perform("cherry_pick", body, conflict_kind=ConflictKind.CHERRY_PICK)

    async def resolve_conflict(self, kind: Union[ConflictKind, str], action: str = "continue") -> OperationResult:
        """Continue or abort a paused merge, rebase or cherry-pick.

        Continuing can stop again on the next conflicting commit, in which
        case the result is conflicted once more.
        """
        conflict_kind = _conflict_kind(kind)
        action = _require_choice("action", action, RESOLVE_ACTIONS)
        continue_command, abort_command = RESOLUTION_COMMANDS[conflict_kind]

        async def body() -> Outcome:
            output = await self.run(continue_command if action == "continue" else abort_command)
            verb = "Continued" if action == "continue" else "Aborted"
            return Success(lines=[f"{verb} {conflict_kind.value}"] + output.lines(), output=output)

        resume_kind = conflict_kind if action == "continue" else None
        return await self.perform("resolve_conflict", body, conflict_kind=resume_kind)

    # =========================================================================
    # Remotes
    # =========================================================================

    async def remote_list(self) -> OperationResult:
        async def body() -> Outcome:
            output = await self.run(git("remote", "-v"))
            remotes = parse_remotes(output.stdout)
            lines = [f"{name}\t{urls.get('fetch') or urls.get('push', '')}" for name, urls in remotes.items()]
            return Success(lines=lines or ["No remotes configured"], output=output, data={"remotes": remotes})

        return await self.perform("remote_list", body)

    async def remote_add(self, name: str, url: str) -> OperationResult:
        name = _require_ref_name("name", name)
        url = _require_text("url", url)

        async def body() -> Outcome:
            if name in await self.remote_names():
                return Failure(ErrorKind.INVALID_REFERENCE, f"Remote '{name}' already exists")
            output = await self.run(git("remote", "add", name, url))
            return Success(lines=[f"Added remote '{name}' -> {url}"], output=output)

        return await self.perform("remote_add", body)

    async def remote_remove(self, name: str) -> OperationResult:
        name = _require_text("name", name)

        async def body() -> Outcome:
            if name not in await self.remote_names():
                return Failure(ErrorKind.INVALID_REFERENCE, f"Remote '{name}' does not exist")
            output = await self.run(git("remote", "remove", name))
            return Success(lines=[f"Removed remote '{name}'"], output=output)

        return await self.perform("remote_remove", body)

    # =========================================================================
    # Repository creation
    # =========================================================================

    async def clone(self, url: str, target_dir: Optional[str] = None, depth: Optional[int] = None) -> OperationResult:
        """Clone a repository into the working directory (no guard)."""
        url = _require_text("url", url)
        target_dir = _optional_text("target_dir", target_dir)
        depth = _optional_int("depth", depth, 1)

        async def body() -> Outcome:
            if not self.working_directory.is_dir():
                return Failure(ErrorKind.INVALID_REFERENCE, f"Working directory does not exist: {self.working_directory}")
            if target_dir:
                destination = self.working_directory / target_dir
                if destination.exists() and (not destination.is_dir() or any(destination.iterdir())):
                    return Failure(ErrorKind.INVALID_REFERENCE, f"Destination '{target_dir}' exists and is not empty")
            command = git("clone").with_option("--depth", depth, enabled=depth is not None).with_args(url)
            if target_dir:
                command = command.with_args(target_dir)
            output = await self.run(command, self.clone_timeout_ms)
            return Success(lines=output.lines() or [f"Cloned {url}"], output=output)

        return await self.perform("clone", body, guarded=False)

    async def init(self, initial_branch: Optional[str] = None) -> OperationResult:
        initial_branch = _require_ref_name("initial_branch", initial_branch) if initial_branch is not None else None

        async def body() -> Outcome:
            if not self.working_directory.is_dir():
                return Failure(ErrorKind.INVALID_REFERENCE, f"Working directory does not exist: {self.working_directory}")
            command = git("init").with_option(
                f"--initial-branch={initial_branch}", enabled=initial_branch is not None
            )
            return await self.run(command)

        return await self.perform("init", body, guarded=False)

    async def repo_info(self) -> OperationResult:
        """Summarize the repository: name, root, branch and origin URL."""

        async def body() -> Outcome:
            root_output = await self.run(git("rev-parse", "--show-toplevel"))
            root = root_output.stdout.strip()
            branch = await self.current_branch()
            remote_output = await self._query(git("remote", "get-url", self.default_remote))
            remote_url = remote_output.stdout.strip() if remote_output else None
            info = {
                "name": repository_name(remote_url, Path(root).name),
                "root": root,
                "branch": branch,
                "remote_url": remote_url,
            }
            lines = [
                f"Repository: {info['name']}",
                f"Root: {root}",
                f"Branch: {branch or 'HEAD detached'}",
                f"Remote: {remote_url or 'none'}",
            ]
            return Success(lines=lines, data=info)

        return await self.perform("repo_info", body)
