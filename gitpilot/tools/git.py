"""Git operation and workflow tools.

Every primitive operation and workflow is registered exactly once as a
``git_<name>`` tool. Handlers turn the call into an ``OperationRequest``
and hand it to the workflow orchestrator, which routes primitives to
``GitOperations``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from gitpilot.git.operations import BISECT_ACTIONS, RESET_MODES, RESOLVE_ACTIONS
from gitpilot.git.types import ConflictKind, OperationRequest
from gitpilot.git.workflows import BACKUP_MODES, VERSION_BUMPS, WorkflowOrchestrator
from gitpilot.tools.definitions import ToolParameter
from gitpilot.tools.registry import PermissionLevel, Tool, ToolHandler, ToolRegistry, create_tool

logger = logging.getLogger(__name__)

TOOL_PREFIX = "git_"

SAFE = PermissionLevel.SAFE
CAUTIOUS = PermissionLevel.CAUTIOUS
DANGEROUS = PermissionLevel.DANGEROUS


def _string(name: str, description: str, required: bool = False, enum: Optional[list[str]] = None) -> ToolParameter:
    return ToolParameter(name=name, type="string", description=description, required=required, enum=enum)


def _flag(name: str, description: str) -> ToolParameter:
    return ToolParameter(name=name, type="boolean", description=description, required=False, default=False)


def _integer(name: str, description: str, default: Optional[int] = None) -> ToolParameter:
    return ToolParameter(name=name, type="integer", description=description, required=False, default=default)


def _string_list(name: str, description: str, required: bool = True) -> ToolParameter:
    return ToolParameter(name=name, type="array", description=description, required=required, items={"type": "string"})


WORKING_DIRECTORY = _string("working_directory", "Repository directory (defaults to the current directory)")
DRY_RUN = _flag("dry_run", "Only preview the steps; nothing is executed")

# (operation, description, parameters, permission level)
PRIMITIVE_TOOLS: list[tuple[str, str, list[ToolParameter], PermissionLevel]] = [
    ("status", "Show the working tree status: branch, tracking, staged, modified, untracked and conflicted files", [], SAFE),
    ("add", "Stage specific files for commit", [_string_list("files", "Paths to stage, relative to the repository")], CAUTIOUS),
    ("add_all", "Stage all changes, including untracked and deleted files", [], CAUTIOUS),
    ("unstage", "Remove a file from the staging area, keeping its changes", [_string("file", "Path to unstage", required=True)], CAUTIOUS),
    ("unstage_all", "Remove every file from the staging area, keeping the changes", [], CAUTIOUS),
    (
        "commit",
        "Commit staged changes",
        [
            _string("message", "Commit message", required=True),
            _flag("all", "Automatically stage modified tracked files first"),
            _flag("amend", "Amend the previous commit"),
        ],
        CAUTIOUS,
    ),
    (
        "push",
        "Push commits to a remote",
        [
            _string("remote", "Remote name"),
            _string("branch", "Branch or tag to push"),
            _flag("set_upstream", "Set the upstream of the current branch"),
            _flag("tags", "Push all tags"),
            _flag("force", "Force push (with lease)"),
        ],
        CAUTIOUS,
    ),
    (
        "pull",
        "Fetch and integrate changes from a remote; reports conflicts if integration stops",
        [_string("remote", "Remote name"), _string("branch", "Remote branch"), _flag("rebase", "Rebase instead of merge")],
        CAUTIOUS,
    ),
    (
        "fetch",
        "Download objects and refs from a remote",
        [_string("remote", "Remote name"), _flag("prune", "Prune deleted remote branches"), _flag("all_remotes", "Fetch all remotes")],
        SAFE,
    ),
    ("branch_list", "List branches", [_flag("all", "Include remote-tracking branches")], SAFE),
    (
        "branch_create",
        "Create a new branch without switching to it",
        [_string("name", "Branch name", required=True), _string("start_point", "Commit or branch to start from")],
        CAUTIOUS,
    ),
    (
        "branch_delete",
        "Delete a local branch (not the current one)",
        [_string("name", "Branch name", required=True), _flag("force", "Delete even if not merged")],
        DANGEROUS,
    ),
    (
        "checkout",
        "Switch branches or restore a commit",
        [_string("target", "Branch, tag or commit", required=True), _flag("create", "Create the branch first")],
        CAUTIOUS,
    ),
    (
        "log",
        "Show commit history",
        [
            _integer("max_count", "Maximum number of commits", default=10),
            _string("file", "Only commits touching this path"),
            _string("author", "Filter by author"),
            _string("since", "Only commits more recent than this date"),
        ],
        SAFE,
    ),
    (
        "diff",
        "Show changes",
        [_string("target", "Commit, branch or range to compare with"), _flag("staged", "Show staged changes"), _string("file", "Limit to this path")],
        SAFE,
    ),
    (
        "stash",
        "Stash uncommitted changes",
        [_string("message", "Stash description"), _flag("include_untracked", "Also stash untracked files")],
        CAUTIOUS,
    ),
    ("stash_pop", "Apply and drop a stash entry; reports conflicts", [_integer("index", "Stash index", default=0)], CAUTIOUS),
    ("stash_list", "List stash entries", [], SAFE),
    (
        "reset",
        "Reset HEAD to a commit",
        [_string("mode", "Reset mode", enum=list(RESET_MODES)), _string("target", "Commit to reset to (default HEAD)")],
        DANGEROUS,
    ),
    (
        "tag",
        "Create a tag (annotated when a message is given)",
        [_string("name", "Tag name", required=True), _string("message", "Annotation message"), _string("ref", "Commit to tag")],
        CAUTIOUS,
    ),
    ("tag_delete", "Delete a local tag", [_string("name", "Tag name", required=True)], DANGEROUS),
    ("tag_list", "List tags, newest version first", [_string("pattern", "Glob pattern to filter tags")], SAFE),
    (
        "merge",
        "Merge a branch into the current branch; reports conflicts",
        [
            _string("branch", "Branch or commit to merge", required=True),
            _string("strategy", "Merge strategy"),
            _flag("no_ff", "Always create a merge commit"),
            _string("message", "Merge commit message"),
        ],
        CAUTIOUS,
    ),
    ("rebase", "Rebase the current branch onto another; reports conflicts", [_string("onto", "Branch or commit", required=True)], CAUTIOUS),
    ("cherry_pick", "Apply commits onto the current branch; reports conflicts", [_string_list("commits", "Commits to apply, in order")], CAUTIOUS),
    (
        "resolve_conflict",
        "Continue or abort a merge, rebase or cherry-pick stopped by conflicts",
        [
            _string("kind", "Which operation stopped", required=True, enum=[k.value for k in ConflictKind]),
            _string("action", "continue or abort", enum=list(RESOLVE_ACTIONS)),
        ],
        CAUTIOUS,
    ),
    (
        "blame",
        "Show who last changed each line of a file",
        [_string("file", "Path to blame", required=True), _integer("start_line", "First line"), _integer("end_line", "Last line")],
        SAFE,
    ),
    (
        "bisect",
        "Binary-search history for the commit that introduced a bug",
        [
            _string("action", "Bisect step", required=True, enum=list(BISECT_ACTIONS)),
            _string("ref", "Commit for good/bad/skip/reset"),
            _string("good", "Known good commit (start)"),
            _string("bad", "Known bad commit (start)"),
        ],
        CAUTIOUS,
    ),
    ("remote_list", "List remotes and their URLs", [], SAFE),
    ("remote_add", "Add a remote", [_string("name", "Remote name", required=True), _string("url", "Remote URL", required=True)], CAUTIOUS),
    ("remote_remove", "Remove a remote", [_string("name", "Remote name", required=True)], DANGEROUS),
    (
        "clone",
        "Clone a repository into the working directory",
        [_string("url", "Repository URL", required=True), _string("target_dir", "Destination directory"), _integer("depth", "Shallow clone depth")],
        CAUTIOUS,
    ),
    ("init", "Create an empty repository", [_string("initial_branch", "Name of the initial branch")], CAUTIOUS),
    ("repo_info", "Summarize the repository: name, root, branch and remote URL", [], SAFE),
]

WORKFLOW_TOOLS: list[tuple[str, str, list[ToolParameter], PermissionLevel]] = [
    (
        "flow",
        "Stage, commit and push in one step",
        [
            _string("message", "Commit message", required=True),
            _string_list("files", "Files to stage (all changes when omitted)", required=False),
            _string("remote", "Remote to push to"),
            DRY_RUN,
        ],
        CAUTIOUS,
    ),
    ("quick", "Stage everything and commit, without pushing", [_string("message", "Commit message", required=True), DRY_RUN], CAUTIOUS),
    ("sync", "Fetch, then pull when behind and push when ahead of the upstream", [_string("remote", "Remote name"), DRY_RUN], CAUTIOUS),
    (
        "release",
        "Tag a release with a changelog and push the tag",
        [
            _string("version", "Explicit version (e.g. 1.4.0)"),
            _string("bump", "Version part to bump from the latest tag", enum=list(VERSION_BUMPS)),
            _string("remote", "Remote to push the tag to"),
            _flag("require_main", "Refuse to release from branches other than main/master"),
            DRY_RUN,
        ],
        CAUTIOUS,
    ),
    (
        "clean",
        "Prune remote refs, garbage-collect and delete merged branches",
        [_flag("aggressive", "Run an aggressive gc"), _string("remote", "Remote to prune"), DRY_RUN],
        DANGEROUS,
    ),
    (
        "dev",
        "Switch to (or create) a development branch and bring it up to date",
        [_string("branch", "Branch name; shorthand like fix-login becomes bugfix/login"), _string("remote", "Remote to fetch"), DRY_RUN],
        CAUTIOUS,
    ),
    (
        "backup",
        "Snapshot the current state as a backup branch, tag or stash",
        [_string("message", "Backup description"), _string("mode", "Backup kind", enum=list(BACKUP_MODES)), DRY_RUN],
        CAUTIOUS,
    ),
    (
        "fresh",
        "Hard reset to the remote state after saving HEAD on a fresh-backup branch",
        [
            _string("remote", "Remote to reset to"),
            _string("branch", "Remote branch (the remote default branch when omitted)"),
            _flag("clean", "Also remove untracked files and directories"),
            DRY_RUN,
        ],
        DANGEROUS,
    ),
    (
        "fix",
        "Commit pending changes on a new hotfix branch, or amend the last commit",
        [_string("message", "Fix description (new commit message when amending)"), _flag("amend", "Amend the last commit instead"), DRY_RUN],
        CAUTIOUS,
    ),
]


def _make_handler(orchestrator: WorkflowOrchestrator, operation: str) -> ToolHandler:
    async def handler(args: dict[str, Any]) -> Any:
        args = dict(args)
        directory = args.pop("working_directory", None) or orchestrator.working_directory
        arguments = {k: v for k, v in args.items() if v is not None}
        request = OperationRequest(
            operation_name=operation,
            working_directory=Path(directory),
            arguments=arguments,
            timeout_ms=orchestrator.operations.timeout_ms,
        )
        return await orchestrator.dispatch(request)

    return handler


def get_git_tools(orchestrator: WorkflowOrchestrator) -> list[Tool]:
    """Build one tool per primitive operation and workflow.

    Args:
        orchestrator: Orchestrator the handlers dispatch to; its working
            directory is the default for calls that don't name one.

    Returns:
        List of tools, primitives first.
    """
    tools = []
    for category, table in (("git", PRIMITIVE_TOOLS), ("workflow", WORKFLOW_TOOLS)):
        for operation, description, parameters, level in table:
            tools.append(
                create_tool(
                    name=f"{TOOL_PREFIX}{operation}",
                    description=description,
                    parameters=[*parameters, WORKING_DIRECTORY],
                    handler=_make_handler(orchestrator, operation),
                    permission_level=level,
                    category=category,
                )
            )
    return tools


def register_git_tools(registry: ToolRegistry, orchestrator: WorkflowOrchestrator) -> None:
    """Register all git tools with the registry."""
    for tool in get_git_tools(orchestrator):
        registry.register(tool)
    logger.debug(f"Registered {len(PRIMITIVE_TOOLS) + len(WORKFLOW_TOOLS)} git tools")


def create_default_registry(working_directory: Path | str = ".", settings: Any = None) -> ToolRegistry:
    """Registry with every git tool, configured from settings."""
    registry = ToolRegistry()
    register_git_tools(registry, WorkflowOrchestrator.from_settings(Path(working_directory), settings))
    return registry
