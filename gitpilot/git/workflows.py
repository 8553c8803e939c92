"""Workflow orchestrators composing primitive operations.

A workflow is an ordered list of steps run strictly in sequence. The first
failed or conflicted step stops the run; steps already completed are kept
and nothing is rolled back. A dry run records one preview per step and
never reaches the command executor.
"""

from __future__ import annotations

import copy
import dataclasses
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from gitpilot.errors import GitError, InputValidationError
from gitpilot.git.command import git
from gitpilot.git.operations import GitOperations
from gitpilot.git.results import Failure, Outcome, Preview, ResultBuilder, Skipped, Success
from gitpilot.git.types import ErrorKind, OperationRequest, OperationResult, WorkflowRun
from gitpilot.git.utils import (
    bump_version,
    normalize_branch_name,
    normalize_version_tag,
    timestamp_suffix,
    validate_ref_name,
)

logger = logging.getLogger(__name__)

WORKFLOW_NAMES: tuple[str, ...] = ("flow", "sync", "release", "clean", "dev", "quick", "backup", "fresh", "fix")
VERSION_BUMPS = ("major", "minor", "patch")
BACKUP_MODES = ("branch", "tag", "stash")

StepAction = Callable[[dict[str, Any]], Awaitable[OperationResult]]


@dataclass
class WorkflowStep:
    """One step of a workflow.

    Attributes:
        name: Step name, used as the operation name of its result.
        preview: Command shown instead of running the step in a dry run.
        action: Coroutine function receiving the shared run context.
        description: Optional one-line explanation for previews.
    """

    name: str
    preview: str
    action: StepAction
    description: str = ""


class WorkflowOrchestrator:
    """Runs composite workflows (flow, sync, release, clean, dev, ...)."""

    def __init__(
        self,
        operations: GitOperations,
        default_remote: str = "origin",
        main_branches: Sequence[str] = ("main", "master"),
        protected_branches: Sequence[str] = ("main", "master", "develop"),
        min_commit_message_length: int = 3,
        tag_prefix: str = "v",
        backup_prefix: str = "backup",
    ):
        self.operations = operations
        self.default_remote = default_remote
        self.main_branches = tuple(main_branches)
        self.protected_branches = tuple(protected_branches)
        self.min_commit_message_length = min_commit_message_length
        self.tag_prefix = tag_prefix
        self.backup_prefix = backup_prefix

    @classmethod
    def from_settings(cls, working_directory: Path | str, settings: Any = None) -> "WorkflowOrchestrator":
        """Create an orchestrator (and its operations) from gitpilot settings."""
        from gitpilot.config import get_settings

        settings = settings or get_settings()
        workflows = settings.workflows
        return cls(
            GitOperations.from_settings(working_directory, settings),
            default_remote=workflows.default_remote,
            main_branches=workflows.main_branches,
            protected_branches=workflows.protected_branches,
            min_commit_message_length=workflows.min_commit_message_length,
            tag_prefix=workflows.tag_prefix,
            backup_prefix=workflows.backup_prefix,
        )

    def bind(self, working_directory: Path | str, timeout_ms: Optional[int] = None) -> "WorkflowOrchestrator":
        """Copy of this orchestrator for another directory or timeout."""
        clone = copy.copy(self)
        clone.operations = self.operations.bind(working_directory, timeout_ms)
        return clone

    @property
    def working_directory(self) -> Path:
        return self.operations.working_directory

    # =========================================================================
    # Engine
    # =========================================================================

    async def run_steps(self, workflow_name: str, steps: Sequence[WorkflowStep], dry_run: bool = False) -> WorkflowRun:
        """Execute steps in order, stopping at the first failed or conflicted one.

        Args:
            workflow_name: Name recorded on the run.
            steps: Steps to execute.
            dry_run: Record previews only; nothing is executed.

        Returns:
            WorkflowRun with one result per attempted step.
        """
        run = WorkflowRun(workflow_name=workflow_name, dry_run=dry_run)
        context: dict[str, Any] = {}

        if dry_run:
            for step in steps:
                start = ResultBuilder.start()
                run.record(
                    ResultBuilder.build(
                        step.name, self.working_directory, start, Preview(step.preview, step.description)
                    )
                )
            logger.info(f"Workflow {workflow_name}: dry run of {len(steps)} step(s)")
            return run

        for index, step in enumerate(steps):
            logger.info(f"Workflow {workflow_name}: step {index + 1}/{len(steps)} {step.name}")
            result = await step.action(context)
            run.record(result)
            if not result.success or result.needs_resolution:
                logger.warning(f"Workflow {workflow_name} stopped at step {step.name}: {result.state}")
                run.abort(index)
                break

        return run

    def _skipped(self, name: str, reason: str) -> OperationResult:
        return ResultBuilder.build(name, self.working_directory, ResultBuilder.start(), Skipped(reason))

    async def _push_with_retry(self, remote: Optional[str] = None) -> OperationResult:
        """Push, retrying once with ``--set-upstream`` when no upstream is set."""
        result = await self.operations.push(remote=remote)
        if result.success or result.error_kind is not ErrorKind.NO_UPSTREAM:
            return result

        logger.info("Push failed for lack of an upstream; retrying with --set-upstream")
        retry = await self.operations.push(remote=remote, set_upstream=True)
        note = "No upstream configured; retried with --set-upstream"
        return dataclasses.replace(retry, message=(note,) + retry.message)

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def dispatch(self, request: OperationRequest) -> Union[OperationResult, WorkflowRun]:
        """Route a request to a workflow, or to a primitive operation.

        Raises:
            UnknownOperationError: If the name is neither a workflow nor a primitive.
        """
        name = request.operation_name.replace("-", "_")
        if name not in WORKFLOW_NAMES:
            return await self.operations.dispatch(request)

        orchestrator = self.bind(request.working_directory, request.timeout_ms)
        workflow = getattr(orchestrator, name)
        arguments = dict(request.arguments)
        try:
            inspect.signature(workflow).bind(**arguments)
        except TypeError as e:
            raise InputValidationError("arguments", str(e))

        logger.debug(f"Dispatching workflow {name} in {request.working_directory}")
        return await workflow(**arguments)

    # =========================================================================
    # Workflows
    # =========================================================================

    async def flow(
        self,
        message: str,
        files: Optional[list[str]] = None,
        remote: Optional[str] = None,
        dry_run: bool = False,
    ) -> WorkflowRun:
        """Stage, commit and push in one go.

        Args:
            message: Commit message.
            files: Files to stage; all changes when omitted.
            remote: Remote to push to (the upstream by default).
            dry_run: Preview the steps only.
        """
        if not isinstance(message, str) or len(message.strip()) < self.min_commit_message_length:
            raise InputValidationError(
                "message", f"must be at least {self.min_commit_message_length} characters"
            )
        if files is not None and (
            not isinstance(files, list) or not all(isinstance(f, str) and f.strip() for f in files)
        ):
            raise InputValidationError("files", "must be a list of non-empty strings")
        ops = self.operations

        async def stage(ctx: dict[str, Any]) -> OperationResult:
            return await (ops.add(files) if files else ops.add_all())

        async def commit(ctx: dict[str, Any]) -> OperationResult:
            return await ops.commit(message)

        async def push(ctx: dict[str, Any]) -> OperationResult:
            return await self._push_with_retry(remote)

        add_preview = git("add").with_paths(files) if files else git("add", "--all")
        steps = [
            WorkflowStep("add", str(add_preview), stage),
            WorkflowStep("commit", str(git("commit", "-m", message)), commit),
            WorkflowStep("push", str(git("push", *([remote] if remote else []))), push),
        ]
        return await self.run_steps("flow", steps, dry_run)

    async def quick(self, message: str, dry_run: bool = False) -> WorkflowRun:
        """Stage everything and commit, without pushing."""
        if not isinstance(message, str) or len(message.strip()) < self.min_commit_message_length:
            raise InputValidationError(
                "message", f"must be at least {self.min_commit_message_length} characters"
            )
        ops = self.operations

        async def stage(ctx: dict[str, Any]) -> OperationResult:
            return await ops.add_all()

        async def commit(ctx: dict[str, Any]) -> OperationResult:
            return await ops.commit(message)

        steps = [
            WorkflowStep("add", str(git("add", "--all")), stage),
            WorkflowStep("commit", str(git("commit", "-m", message)), commit),
        ]
        return await self.run_steps("quick", steps, dry_run)

    async def sync(self, remote: Optional[str] = None, dry_run: bool = False) -> WorkflowRun:
        """Fetch, compare with the upstream, pull when behind and push when ahead."""
        ops = self.operations

        async def fetch(ctx: dict[str, Any]) -> OperationResult:
            return await ops.fetch(remote=remote, prune=True)

        async def compare(ctx: dict[str, Any]) -> OperationResult:
            async def body() -> Outcome:
                upstream = await ops.upstream()
                ctx["upstream"] = upstream
                if upstream is None:
                    ctx["ahead"], ctx["behind"] = 0, 0
                    return Success(lines=["No upstream configured for the current branch"], data={"upstream": None})
                ahead, behind = await ops.ahead_behind()
                ctx["ahead"], ctx["behind"] = ahead, behind
                return Success(
                    lines=[f"{ahead} ahead, {behind} behind '{upstream}'"],
                    data={"upstream": upstream, "ahead": ahead, "behind": behind},
                )

            return await ops.perform("compare", body)

        async def pull(ctx: dict[str, Any]) -> OperationResult:
            if not ctx.get("behind"):
                return self._skipped("pull", "Already up to date with the upstream")
            return await ops.pull()

        async def push(ctx: dict[str, Any]) -> OperationResult:
            if ctx.get("upstream") is not None and not ctx.get("ahead"):
                return self._skipped("push", "Nothing to push")
            return await self._push_with_retry(remote)

        steps = [
            WorkflowStep("fetch", str(git("fetch", "--prune", *([remote] if remote else []))), fetch),
            WorkflowStep("compare", str(git("rev-list", "--left-right", "--count", "HEAD...@{upstream}")), compare),
            WorkflowStep("pull", str(git("pull", "--no-rebase")), pull, "only when behind the upstream"),
            WorkflowStep("push", str(git("push", *([remote] if remote else []))), push, "only when ahead of the upstream"),
        ]
        return await self.run_steps("sync", steps, dry_run)

    async def release(
        self,
        version: Optional[str] = None,
        bump: Optional[str] = None,
        remote: Optional[str] = None,
        require_main: bool = False,
        dry_run: bool = False,
    ) -> WorkflowRun:
        """Tag a release and push the tag.

        The version is either given explicitly or bumped (major, minor or
        patch; patch by default) from the most recent version tag. The tag is
        annotated with a changelog of the commits since that tag.
        """
        if version is not None and bump is not None:
            raise InputValidationError("version", "cannot be combined with bump")
        if bump is not None and bump not in VERSION_BUMPS:
            raise InputValidationError("bump", f"must be one of {', '.join(VERSION_BUMPS)}")
        explicit_tag = normalize_version_tag(version, self.tag_prefix) if version else None
        if explicit_tag and validate_ref_name(explicit_tag):
            raise InputValidationError("version", validate_ref_name(explicit_tag))

        ops = self.operations
        target_remote = remote or self.default_remote

        async def validate(ctx: dict[str, Any]) -> OperationResult:
            async def body() -> Outcome:
                if await ops.pending_changes():
                    return Failure(ErrorKind.UNKNOWN, "Working tree has uncommitted changes; commit or stash them first")

                lines = []
                branch = await ops.current_branch()
                if branch not in self.main_branches:
                    if require_main:
                        return Failure(
                            ErrorKind.INVALID_REFERENCE,
                            f"Releases must be made from {' or '.join(self.main_branches)} (on {branch or 'detached HEAD'})",
                        )
                    lines.append(f"Warning: releasing from '{branch or 'detached HEAD'}'")

                previous = await ops.latest_tag(match=f"{self.tag_prefix}[0-9]*")
                try:
                    tag = explicit_tag or bump_version(previous, bump or "patch", self.tag_prefix)
                except ValueError as e:
                    return Failure(ErrorKind.INVALID_REFERENCE, str(e))
                if await ops.tag_exists(tag):
                    return Failure(ErrorKind.INVALID_REFERENCE, f"Tag '{tag}' already exists")

                changelog = await ops.commits_since(previous)
                ctx.update(tag=tag, previous=previous, changelog=changelog)
                lines.append(f"Releasing {tag} ({len(changelog)} commit(s) since {previous or 'the beginning'})")
                return Success(lines=lines, data={"tag": tag, "previous": previous, "changelog": changelog})

            return await ops.perform("validate", body)

        async def tag(ctx: dict[str, Any]) -> OperationResult:
            message = "\n".join([f"Release {ctx['tag']}", ""] + (ctx["changelog"] or ["- No changes recorded"]))
            return await ops.tag(ctx["tag"], message=message)

        async def push_tag(ctx: dict[str, Any]) -> OperationResult:
            return await ops.push(remote=target_remote, branch=ctx["tag"])

        shown_tag = explicit_tag or f"<next {bump or 'patch'} version>"
        steps = [
            WorkflowStep("validate", str(git("status", "--porcelain=v1")), validate, "require a clean working tree"),
            WorkflowStep("tag", str(git("tag", "-a", shown_tag, "-m", f"Release {shown_tag}")), tag),
            WorkflowStep("push_tag", str(git("push", target_remote, shown_tag)), push_tag),
        ]
        return await self.run_steps("release", steps, dry_run)

    async def clean(self, aggressive: bool = False, remote: Optional[str] = None, dry_run: bool = False) -> WorkflowRun:
        """Prune remote refs, garbage-collect and delete merged branches."""
        ops = self.operations
        target_remote = remote or self.default_remote

        async def prune(ctx: dict[str, Any]) -> OperationResult:
            async def body() -> Outcome:
                if target_remote not in await ops.remote_names():
                    return Success(lines=[f"No remote '{target_remote}'; nothing to prune"], data={"skipped": True})
                output = await ops.run(git("remote", "prune", target_remote))
                return Success(lines=output.lines() or [f"Pruned stale refs from '{target_remote}'"], output=output)

            return await ops.perform("prune", body)

        async def gc(ctx: dict[str, Any]) -> OperationResult:
            async def body() -> Outcome:
                output = await ops.run(git("gc", "--prune=now").with_option("--aggressive", enabled=aggressive))
                return Success(lines=["Garbage collection complete"], output=output)

            return await ops.perform("gc", body)

        async def delete_merged(ctx: dict[str, Any]) -> OperationResult:
            async def body() -> Outcome:
                current = await ops.current_branch()
                merged = await ops.merged_branches(current or "HEAD")
                doomed = [b for b in merged if b != current and b not in self.protected_branches]
                for branch in doomed:
                    await ops.run(git("branch", "-d", branch))
                if not doomed:
                    return Success(lines=["No merged branches to delete"], data={"deleted": []})
                return Success(lines=[f"Deleted branch '{b}'" for b in doomed], data={"deleted": doomed})

            return await ops.perform("delete_merged", body)

        steps = [
            WorkflowStep("prune", str(git("remote", "prune", target_remote)), prune),
            WorkflowStep("gc", str(git("gc", "--prune=now").with_option("--aggressive", enabled=aggressive)), gc),
            WorkflowStep(
                "delete_merged",
                str(git("branch", "-d", "<merged branches>")),
                delete_merged,
                f"skipping the current branch and {', '.join(self.protected_branches)}",
            ),
        ]
        return await self.run_steps("clean", steps, dry_run)

    async def dev(self, branch: Optional[str] = None, remote: Optional[str] = None, dry_run: bool = False) -> WorkflowRun:
        """Start or resume development on a branch and bring it up to date.

        Shorthand branch names are normalized (``fix-login`` becomes
        ``bugfix/login``); the branch is created when it doesn't exist.
        """
        target = normalize_branch_name(branch) if branch else None
        if target and validate_ref_name(target):
            raise InputValidationError("branch", validate_ref_name(target))
        ops = self.operations

        async def status(ctx: dict[str, Any]) -> OperationResult:
            return await ops.status()

        async def switch(ctx: dict[str, Any]) -> OperationResult:
            if target is None:
                return self._skipped("branch", "Staying on the current branch")

            async def body() -> Outcome:
                created = not await ops.branch_exists(target)
                command = git("checkout", "-b", target) if created else git("checkout", target)
                output = await ops.run(command)
                verb = "Created and switched to" if created else "Switched to"
                return Success(lines=[f"{verb} branch '{target}'"], output=output, data={"branch": target, "created": created})

            return await ops.perform("branch", body)

        async def fetch(ctx: dict[str, Any]) -> OperationResult:
            async def body() -> Outcome:
                if not await ops.remote_names():
                    return Success(lines=["No remotes configured; skipping fetch"], data={"skipped": True})
                output = await ops.run(git("fetch", *([remote] if remote else [])))
                return Success(lines=output.lines() or ["Fetch complete"], output=output)

            return await ops.perform("fetch", body)

        async def pull(ctx: dict[str, Any]) -> OperationResult:
            try:
                upstream = await ops.upstream()
                behind = (await ops.ahead_behind())[1] if upstream else 0
            except GitError as e:
                return ResultBuilder.build("pull", self.working_directory, ResultBuilder.start(), e)
            if not behind:
                return self._skipped("pull", "Already up to date" if upstream else "No upstream to pull from")
            return await ops.pull()

        steps = [
            WorkflowStep("status", str(git("status", "--porcelain=v1", "--branch")), status),
            WorkflowStep("branch", str(git("checkout", target)) if target else "(stay on current branch)", switch),
            WorkflowStep("fetch", str(git("fetch", *([remote] if remote else []))), fetch),
            WorkflowStep("pull", str(git("pull", "--no-rebase")), pull, "only when behind the upstream"),
        ]
        return await self.run_steps("dev", steps, dry_run)

    async def backup(self, message: Optional[str] = None, mode: str = "branch", dry_run: bool = False) -> WorkflowRun:
        """Snapshot the current state as a backup branch, tag or stash entry.

        Branch and tag backups are named ``<prefix>/<branch>-<timestamp>``.
        Stash backups move uncommitted changes into a labelled stash entry
        (restore them with ``git stash pop``).
        """
        if mode not in BACKUP_MODES:
            raise InputValidationError("mode", f"must be one of {', '.join(BACKUP_MODES)}")
        ops = self.operations
        stamp = timestamp_suffix(datetime.now())

        async def locate(ctx: dict[str, Any]) -> OperationResult:
            async def body() -> Outcome:
                branch = await ops.current_branch() or "detached"
                name = f"{self.backup_prefix}/{branch}-{stamp}"
                ctx.update(branch=branch, name=name, label=message or f"{self.backup_prefix} {branch} {stamp}")
                return Success(lines=[f"Backing up '{branch}' as {name if mode != 'stash' else ctx['label']}"], data={"name": name})

            return await ops.perform("inspect", body)

        async def snapshot(ctx: dict[str, Any]) -> OperationResult:
            if mode == "branch":
                return await ops.branch_create(ctx["name"])
            if mode == "tag":
                return await ops.tag(ctx["name"], message=message or f"Backup of {ctx['branch']}")
            return await ops.stash(message=ctx["label"], include_untracked=True)

        previews = {
            "branch": git("branch", f"{self.backup_prefix}/<branch>-{stamp}"),
            "tag": git("tag", "-a", f"{self.backup_prefix}/<branch>-{stamp}"),
            "stash": git("stash", "push", "--include-untracked", "-m", message or f"{self.backup_prefix} <branch> {stamp}"),
        }
        steps = [
            WorkflowStep("inspect", str(git("branch", "--show-current")), locate),
            WorkflowStep("backup", str(previews[mode]), snapshot),
        ]
        return await self.run_steps("backup", steps, dry_run)

    async def fresh(
        self,
        remote: Optional[str] = None,
        branch: Optional[str] = None,
        clean: bool = False,
        dry_run: bool = False,
    ) -> WorkflowRun:
        """Throw away local state and start again from the remote.

        HEAD is first saved as a ``fresh-backup-<timestamp>`` branch, so the
        discarded commits stay reachable. The current branch is then hard
        reset to ``<remote>/<branch>``, which defaults to the branch the
        remote's HEAD points at. Uncommitted changes to tracked files are
        lost; with ``clean`` untracked files and directories go too.
        """
        if branch is not None and (not isinstance(branch, str) or validate_ref_name(branch.strip())):
            raise InputValidationError("branch", validate_ref_name(str(branch).strip()) or "must be a branch name")
        ops = self.operations
        target_remote = remote or self.default_remote
        backup_name = f"fresh-backup-{timestamp_suffix(datetime.now())}"

        async def backup(ctx: dict[str, Any]) -> OperationResult:
            return await ops.branch_create(backup_name)

        async def fetch(ctx: dict[str, Any]) -> OperationResult:
            return await ops.fetch(remote=target_remote)

        async def reset(ctx: dict[str, Any]) -> OperationResult:
            async def body() -> Outcome:
                if branch:
                    target = f"{target_remote}/{branch.strip()}"
                else:
                    target = await ops.remote_head(target_remote)
                if target is None:
                    for candidate in self.main_branches:
                        if await ops.ref_exists(f"{target_remote}/{candidate}"):
                            target = f"{target_remote}/{candidate}"
                            break
                if target is None:
                    return Failure(
                        ErrorKind.INVALID_REFERENCE,
                        f"Cannot tell the default branch of '{target_remote}'; name the branch to reset to",
                    )
                if not await ops.ref_exists(target):
                    return Failure(ErrorKind.INVALID_REFERENCE, f"'{target}' does not exist")
                output = await ops.run(git("reset", "--hard", target))
                return Success(
                    lines=[f"Reset to {target}; previous state kept on '{backup_name}'"],
                    output=output,
                    data={"target": target, "backup": backup_name},
                )

            return await ops.perform("reset", body)

        async def clean_untracked(ctx: dict[str, Any]) -> OperationResult:
            if not clean:
                return self._skipped("clean", "Keeping untracked files")

            async def body() -> Outcome:
                output = await ops.run(git("clean", "-fd"))
                return Success(lines=output.lines() or ["No untracked files to remove"], output=output)

            return await ops.perform("clean", body)

        shown_target = f"{target_remote}/{branch.strip() if branch else '<default branch>'}"
        steps = [
            WorkflowStep("backup", str(git("branch", backup_name)), backup),
            WorkflowStep("fetch", str(git("fetch", target_remote)), fetch),
            WorkflowStep("reset", str(git("reset", "--hard", shown_target)), reset, "discards uncommitted changes"),
            WorkflowStep(
                "clean",
                str(git("clean", "-fd")),
                clean_untracked,
                "removes untracked files" if clean else "skipped unless clean is set",
            ),
        ]
        return await self.run_steps("fresh", steps, dry_run)

    async def fix(self, message: Optional[str] = None, amend: bool = False, dry_run: bool = False) -> WorkflowRun:
        """Commit an urgent fix on a new hotfix branch, or fold changes into the last commit.

        Without ``amend`` a ``hotfix-<timestamp>`` branch is created at HEAD
        and pending changes are committed on it as ``HOTFIX: <message>``.
        With ``amend`` pending changes are staged into the previous commit,
        which takes ``message`` as its new message when one is given.
        """
        if message is not None and (not isinstance(message, str) or not message.strip()):
            raise InputValidationError("message", "must not be empty")
        ops = self.operations

        async def stage(ctx: dict[str, Any]) -> OperationResult:
            async def body() -> Outcome:
                pending = await ops.pending_changes()
                if not pending:
                    return Skipped("No uncommitted changes to stage")
                ctx["staged"] = True
                output = await ops.run(git("add", "--all"))
                return Success(lines=[f"Staged all changes ({len(pending)} path(s))"], output=output)

            return await ops.perform("add", body)

        if amend:
            command = git("commit", "--amend", *(["-m", message] if message else ["--no-edit"]))

            async def amend_commit(ctx: dict[str, Any]) -> OperationResult:
                async def body() -> Outcome:
                    if not await ops.ref_exists("HEAD"):
                        return Failure(ErrorKind.INVALID_REFERENCE, "No commit to amend yet")
                    if not message and not ctx.get("staged"):
                        return Failure(ErrorKind.NOTHING_TO_COMMIT, "Nothing to amend: no changes and no new message")
                    return await ops.run(command)

                return await ops.perform("amend", body)

            steps = [
                WorkflowStep("add", str(git("add", "--all")), stage, "only when there are uncommitted changes"),
                WorkflowStep("amend", str(command), amend_commit),
            ]
            return await self.run_steps("fix", steps, dry_run)

        branch_name = f"hotfix-{timestamp_suffix(datetime.now())}"
        commit_message = f"HOTFIX: {(message or 'Emergency hotfix').strip()}"

        async def create_branch(ctx: dict[str, Any]) -> OperationResult:
            return await ops.checkout(branch_name, create=True)

        async def commit(ctx: dict[str, Any]) -> OperationResult:
            if not ctx.get("staged"):
                return self._skipped("commit", f"Nothing to commit; '{branch_name}' is ready for the fix")
            return await ops.commit(commit_message)

        steps = [
            WorkflowStep("branch", str(git("checkout", "-b", branch_name)), create_branch),
            WorkflowStep("add", str(git("add", "--all")), stage, "only when there are uncommitted changes"),
            WorkflowStep("commit", str(git("commit", "-m", commit_message)), commit),
        ]
        return await self.run_steps("fix", steps, dry_run)
