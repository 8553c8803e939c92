"""Tests for workflow orchestration."""

import pytest

from gitpilot.errors import InputValidationError, UnknownOperationError
from gitpilot.git.results import Failure, ResultBuilder, Success
from gitpilot.git.types import ConflictKind, ConflictReport, ErrorKind, OperationRequest, WorkflowRun
from gitpilot.git.workflows import WORKFLOW_NAMES, WorkflowOrchestrator, WorkflowStep

NO_UPSTREAM = (
    "fatal: The current branch feature has no upstream branch.\n"
    "To push the current branch and set the remote as upstream, use\n\n"
    "    git push --set-upstream origin feature\n"
)


class TestRunSteps:
    """Tests for the step engine."""

    @pytest.mark.asyncio
    async def test_stops_at_first_failure(self, orchestrator):
        attempted = []

        def step(name, outcome):
            async def action(ctx):
                attempted.append(name)
                return ResultBuilder.build(name, orchestrator.working_directory, ResultBuilder.start(), outcome)

            return WorkflowStep(name, f"git {name}", action)

        steps = [
            step("first", Success(lines=["ok"])),
            step("second", Failure(ErrorKind.NOTHING_TO_COMMIT, "Nothing to commit")),
            step("third", Success(lines=["never"])),
        ]

        run = await orchestrator.run_steps("custom", steps)

        assert run.aborted is True
        assert run.aborted_at_step == 1
        assert [s.operation_name for s in run.steps] == ["first", "second"]
        assert run.steps[0].success is True
        assert attempted == ["first", "second"]

    @pytest.mark.asyncio
    async def test_conflict_stops_run(self, orchestrator):
        report = ConflictReport(ConflictKind.MERGE, frozenset({"a.txt"}), "git merge --continue", "git merge --abort")

        async def conflicted(ctx):
            return ResultBuilder.build(
                "merge", orchestrator.working_directory, ResultBuilder.start(), Success(conflict=report)
            )

        async def unreachable(ctx):
            raise AssertionError("step after a conflict must not run")

        run = await orchestrator.run_steps(
            "custom",
            [WorkflowStep("merge", "git merge x", conflicted), WorkflowStep("push", "git push", unreachable)],
        )

        assert run.aborted_at_step == 0
        assert run.failed_step.state == "conflicted"

    @pytest.mark.asyncio
    async def test_context_is_shared(self, orchestrator):
        async def produce(ctx):
            ctx["value"] = 42
            return ResultBuilder.build("produce", orchestrator.working_directory, ResultBuilder.start(), Success())

        async def consume(ctx):
            return ResultBuilder.build(
                "consume", orchestrator.working_directory, ResultBuilder.start(), Success(lines=[str(ctx["value"])])
            )

        run = await orchestrator.run_steps("custom", [WorkflowStep("produce", "", produce), WorkflowStep("consume", "", consume)])

        assert run.success is True
        assert run.steps[1].message == ("42",)


class TestDryRun:
    """Dry runs record previews and never touch git."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "workflow,kwargs,step_count",
        [
            ("flow", {"message": "Add feature"}, 3),
            ("quick", {"message": "Add feature"}, 2),
            ("sync", {}, 4),
            ("release", {"bump": "minor"}, 3),
            ("clean", {"aggressive": True}, 3),
            ("dev", {"branch": "feature-x"}, 4),
            ("backup", {"mode": "stash"}, 2),
            ("fresh", {"clean": True}, 4),
            ("fix", {"message": "null session"}, 3),
            ("fix", {"amend": True}, 2),
        ],
    )
    async def test_no_commands_run(self, orchestrator, executor, guard, workflow, kwargs, step_count):
        run = await getattr(orchestrator, workflow)(dry_run=True, **kwargs)

        assert isinstance(run, WorkflowRun)
        assert run.dry_run is True
        assert run.success is True
        assert len(run.steps) == step_count
        assert all(step.state == "preview" for step in run.steps)
        assert executor.call_count == 0
        assert guard.checked == []

    @pytest.mark.asyncio
    async def test_flow_preview_commands(self, orchestrator):
        run = await orchestrator.flow("Add feature", files=["a.txt"], dry_run=True)

        previews = [step.metadata.command_issued for step in run.steps]
        assert previews == ["git add -- a.txt", "git commit -m 'Add feature'", "git push"]

    @pytest.mark.asyncio
    async def test_release_preview_with_explicit_version(self, orchestrator):
        run = await orchestrator.release(version="2.0.0", dry_run=True)
        assert run.steps[2].metadata.command_issued == "git push origin v2.0.0"


class TestFlow:
    """Tests for the flow and quick workflows."""

    @pytest.mark.asyncio
    async def test_flow_succeeds(self, orchestrator, executor):
        executor.on("git status --porcelain=v1", stdout=" M a.txt\n")
        executor.on("git diff --cached --name-only", stdout="a.txt\n")

        run = await orchestrator.flow("Add feature")

        assert run.success is True
        assert [s.operation_name for s in run.steps] == ["add_all", "commit", "push"]
        assert executor.calls == [
            "git status --porcelain=v1",
            "git add --all",
            "git diff --cached --name-only",
            "git commit -m 'Add feature'",
            "git push",
        ]

    @pytest.mark.asyncio
    async def test_flow_with_files(self, orchestrator, executor, temp_dir):
        (temp_dir / "a.txt").write_text("x")
        executor.on("git status --porcelain=v1", stdout=" M a.txt\n")
        executor.on("git diff --cached --name-only", stdout="a.txt\n")

        run = await orchestrator.flow("Add feature", files=["a.txt"])

        assert run.steps[0].operation_name == "add"
        assert executor.called("git add -- a.txt")

    @pytest.mark.asyncio
    async def test_nothing_to_commit_keeps_earlier_steps(self, orchestrator, executor):
        executor.on("git status --porcelain=v1", stdout=" M a.txt\n")
        executor.on("git diff --cached --name-only", stdout="")

        run = await orchestrator.flow("Add feature")

        assert run.success is False
        assert run.aborted_at_step == 1
        assert run.steps[0].success is True
        assert run.failed_step.error_kind is ErrorKind.NOTHING_TO_COMMIT
        assert not executor.called("git push")

    @pytest.mark.asyncio
    async def test_push_retries_with_upstream(self, orchestrator, executor):
        executor.on("git status --porcelain=v1", stdout=" M a.txt\n")
        executor.on("git diff --cached --name-only", stdout="a.txt\n")
        executor.on("git branch --show-current", stdout="feature\n")
        executor.fail("git push", NO_UPSTREAM, exit_code=128)
        executor.on("git push --set-upstream", stderr="branch 'feature' set up to track 'origin/feature'.\n")

        run = await orchestrator.flow("Add feature")

        push = run.steps[-1]
        assert run.success is True
        assert push.message[0] == "No upstream configured; retried with --set-upstream"
        assert executor.calls[-1] == "git push --set-upstream origin feature"

    @pytest.mark.asyncio
    async def test_push_other_failures_not_retried(self, orchestrator, executor):
        executor.on("git status --porcelain=v1", stdout=" M a.txt\n")
        executor.on("git diff --cached --name-only", stdout="a.txt\n")
        executor.fail("git push", "error: failed to push some refs to 'origin'")

        run = await orchestrator.flow("Add feature")

        assert run.failed_step.error_kind is ErrorKind.REMOTE_REJECTED
        assert not executor.called("git push --set-upstream")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", ["", "ab", "   x   ", None])
    async def test_short_message_rejected(self, orchestrator, executor, message):
        with pytest.raises(InputValidationError):
            await orchestrator.flow(message)
        assert executor.call_count == 0

    @pytest.mark.asyncio
    async def test_quick_does_not_push(self, orchestrator, executor):
        executor.on("git status --porcelain=v1", stdout="?? new.txt\n")
        executor.on("git diff --cached --name-only", stdout="new.txt\n")

        run = await orchestrator.quick("Add new file")

        assert run.success is True
        assert len(run.steps) == 2
        assert not executor.called("git push")


class TestSync:
    """Tests for the sync workflow."""

    @pytest.mark.asyncio
    async def test_behind_pulls_without_pushing(self, orchestrator, executor):
        executor.on("git rev-parse --abbrev-ref", stdout="origin/main\n")
        executor.on("git rev-list --left-right --count", stdout="0\t2\n")

        run = await orchestrator.sync()

        assert run.success is True
        assert run.steps[1].data == {"upstream": "origin/main", "ahead": 0, "behind": 2}
        assert executor.called("git fetch --prune")
        assert executor.called("git pull --no-rebase")
        assert run.steps[3].data == {"skipped": True}
        assert not executor.called("git push")

    @pytest.mark.asyncio
    async def test_ahead_pushes_without_pulling(self, orchestrator, executor):
        executor.on("git rev-parse --abbrev-ref", stdout="origin/main\n")
        executor.on("git rev-list --left-right --count", stdout="3\t0\n")

        run = await orchestrator.sync(remote="origin")

        assert run.steps[2].data == {"skipped": True}
        assert not executor.called("git pull")
        assert executor.calls[-1] == "git push origin"

    @pytest.mark.asyncio
    async def test_no_upstream_publishes_branch(self, orchestrator, executor):
        executor.fail("git rev-parse --abbrev-ref", "fatal: no upstream configured for branch 'feature'", exit_code=128)
        executor.on("git branch --show-current", stdout="feature\n")
        executor.fail("git push", NO_UPSTREAM, exit_code=128)
        executor.on("git push --set-upstream", stdout="")

        run = await orchestrator.sync()

        assert run.success is True
        assert run.steps[1].data == {"upstream": None}
        assert not executor.called("git rev-list")
        assert executor.called("git push --set-upstream origin feature")

    @pytest.mark.asyncio
    async def test_pull_conflict_stops(self, orchestrator, executor):
        executor.on("git rev-parse --abbrev-ref", stdout="origin/main\n")
        executor.on("git rev-list --left-right --count", stdout="1\t1\n")
        executor.fail("git pull", "", stdout="CONFLICT (content): Merge conflict in a.txt\n")
        executor.on("git diff --name-only --diff-filter=U", stdout="a.txt\n")

        run = await orchestrator.sync()

        assert run.aborted_at_step == 2
        assert run.failed_step.state == "conflicted"
        assert not executor.called("git push")


class TestRelease:
    """Tests for the release workflow."""

    @pytest.mark.asyncio
    async def test_minor_bump(self, orchestrator, executor):
        executor.on("git branch --show-current", stdout="main\n")
        executor.on("git describe --tags", stdout="v1.2.3\n")
        executor.fail("git show-ref --verify --quiet refs/tags/", "", exit_code=1)
        executor.on("git log", stdout="- Add export (abc1234)\n- Fix typo (def5678)\n")

        run = await orchestrator.release(bump="minor")

        assert run.success is True
        assert run.steps[0].data["tag"] == "v1.3.0"
        assert run.steps[0].data["previous"] == "v1.2.3"
        assert run.steps[0].data["changelog"] == ["- Add export (abc1234)", "- Fix typo (def5678)"]
        assert executor.called("git log '--pretty=format:- %s (%h)' v1.2.3..HEAD")
        assert executor.called("git tag -a v1.3.0 -m")
        assert executor.calls[-1] == "git push origin v1.3.0"

    @pytest.mark.asyncio
    async def test_first_release(self, orchestrator, executor):
        executor.on("git branch --show-current", stdout="main\n")
        executor.fail("git describe --tags", "fatal: No names found, cannot describe anything.", exit_code=128)
        executor.fail("git show-ref --verify --quiet refs/tags/", "", exit_code=1)

        run = await orchestrator.release()

        assert run.steps[0].data["tag"] == "v0.0.1"
        assert run.steps[0].data["previous"] is None

    @pytest.mark.asyncio
    async def test_dirty_tree_aborts(self, orchestrator, executor):
        executor.on("git status --porcelain=v1", stdout=" M a.txt\n")

        run = await orchestrator.release(version="1.0.0")

        assert run.aborted_at_step == 0
        assert run.failed_step.error_kind is ErrorKind.UNKNOWN
        assert not executor.called("git tag")

    @pytest.mark.asyncio
    async def test_require_main(self, orchestrator, executor):
        executor.on("git branch --show-current", stdout="feature\n")

        run = await orchestrator.release(version="1.0.0", require_main=True)

        assert run.failed_step.error_kind is ErrorKind.INVALID_REFERENCE
        assert "main or master" in run.failed_step.text()

    @pytest.mark.asyncio
    async def test_warns_off_main(self, orchestrator, executor):
        executor.on("git branch --show-current", stdout="feature\n")
        executor.fail("git show-ref --verify --quiet refs/tags/", "", exit_code=1)

        run = await orchestrator.release(version="1.0.0")

        assert run.success is True
        assert run.steps[0].message[0] == "Warning: releasing from 'feature'"

    @pytest.mark.asyncio
    async def test_existing_tag(self, orchestrator, executor):
        executor.on("git branch --show-current", stdout="main\n")

        run = await orchestrator.release(version="1.0.0")

        assert run.failed_step.error_kind is ErrorKind.INVALID_REFERENCE
        assert "already exists" in run.failed_step.text()

    @pytest.mark.asyncio
    async def test_version_and_bump_conflict(self, orchestrator):
        with pytest.raises(InputValidationError):
            await orchestrator.release(version="1.0.0", bump="major")

    @pytest.mark.asyncio
    async def test_unknown_bump(self, orchestrator):
        with pytest.raises(InputValidationError):
            await orchestrator.release(bump="huge")


class TestClean:
    """Tests for the clean workflow."""

    @pytest.mark.asyncio
    async def test_deletes_merged_branches(self, orchestrator, executor):
        executor.on("git remote", stdout="origin\n")
        executor.on("git branch --show-current", stdout="main\n")
        executor.on("git branch --merged", stdout="main\nfeature/done\ndevelop\nold\n")

        run = await orchestrator.clean(aggressive=True)

        assert run.success is True
        assert executor.called("git remote prune origin")
        assert executor.called("git gc --prune=now --aggressive")
        assert executor.called("git branch -d feature/done")
        assert executor.called("git branch -d old")
        assert not executor.called("git branch -d develop")
        assert not executor.called("git branch -d main")
        assert run.steps[2].data == {"deleted": ["feature/done", "old"]}

    @pytest.mark.asyncio
    async def test_missing_remote_skips_prune(self, orchestrator, executor):
        executor.on("git branch --show-current", stdout="main\n")

        run = await orchestrator.clean()

        assert run.success is True
        assert not executor.called("git remote prune")
        assert run.steps[2].message == ("No merged branches to delete",)


class TestDev:
    """Tests for the dev workflow."""

    @pytest.mark.asyncio
    async def test_creates_normalized_branch(self, orchestrator, executor):
        executor.fail("git show-ref", "", exit_code=1)
        executor.fail("git rev-parse --abbrev-ref", "fatal: no upstream", exit_code=128)

        run = await orchestrator.dev("fix-login")

        assert run.success is True
        assert run.steps[1].data == {"branch": "bugfix/login", "created": True}
        assert executor.called("git checkout -b bugfix/login")
        assert run.steps[2].data == {"skipped": True}
        assert not executor.called("git pull")

    @pytest.mark.asyncio
    async def test_switches_to_existing_branch_and_pulls(self, orchestrator, executor):
        executor.on("git remote", stdout="origin\n")
        executor.on("git rev-parse --abbrev-ref", stdout="origin/feature/login\n")
        executor.on("git rev-list --left-right --count", stdout="0\t4\n")

        run = await orchestrator.dev("feature/login")

        assert run.success is True
        assert executor.called("git checkout feature/login")
        assert executor.called("git fetch")
        assert executor.called("git pull --no-rebase")

    @pytest.mark.asyncio
    async def test_without_branch_stays_put(self, orchestrator, executor):
        run = await orchestrator.dev()
        assert run.steps[1].data == {"skipped": True}
        assert not executor.called("git checkout")

    @pytest.mark.asyncio
    async def test_invalid_branch(self, orchestrator):
        with pytest.raises(InputValidationError):
            await orchestrator.dev("bad name")


class TestBackup:
    """Tests for the backup workflow."""

    @pytest.mark.asyncio
    async def test_branch_backup(self, orchestrator, executor):
        executor.on("git branch --show-current", stdout="main\n")
        executor.fail("git show-ref", "", exit_code=1)

        run = await orchestrator.backup()

        assert run.success is True
        name = run.steps[0].data["name"]
        assert name.startswith("backup/main-")
        assert executor.calls[-1] == f"git branch {name}"

    @pytest.mark.asyncio
    async def test_tag_backup(self, orchestrator, executor):
        executor.on("git branch --show-current", stdout="main\n")
        executor.fail("git show-ref", "", exit_code=1)

        run = await orchestrator.backup(mode="tag")

        assert run.success is True
        assert executor.calls[-1].startswith("git tag -a backup/main-")

    @pytest.mark.asyncio
    async def test_stash_backup(self, orchestrator, executor):
        executor.on("git branch --show-current", stdout="main\n")
        executor.on("git status --porcelain=v1", stdout=" M a.txt\n")

        run = await orchestrator.backup(message="before refactor", mode="stash")

        assert run.success is True
        assert executor.calls[-1] == "git stash push --include-untracked -m 'before refactor'"

    @pytest.mark.asyncio
    async def test_stash_backup_clean_tree(self, orchestrator, executor):
        run = await orchestrator.backup(mode="stash")
        assert run.failed_step.error_kind is ErrorKind.NOTHING_TO_STAGE

    @pytest.mark.asyncio
    async def test_invalid_mode(self, orchestrator):
        with pytest.raises(InputValidationError):
            await orchestrator.backup(mode="zip")


class TestFresh:
    """Tests for the fresh workflow."""

    @pytest.mark.asyncio
    async def test_resets_to_remote_default_branch(self, orchestrator, executor):
        executor.fail("git show-ref", "", exit_code=1)
        executor.on("git symbolic-ref", stdout="origin/main\n")

        run = await orchestrator.fresh()

        assert run.success is True
        backup = next(call for call in executor.calls if call.startswith("git branch fresh-backup-"))
        assert executor.calls.index(backup) < executor.calls.index("git reset --hard origin/main")
        assert "git fetch origin" in executor.calls
        assert run.steps[2].data["target"] == "origin/main"
        assert run.steps[3].data["skipped"] is True
        assert not executor.called("git clean")

    @pytest.mark.asyncio
    async def test_falls_back_to_known_main_branches(self, orchestrator, executor):
        executor.fail("git show-ref", "", exit_code=1)
        executor.fail("git symbolic-ref", "", exit_code=1)
        executor.fail("git rev-parse --verify --quiet 'origin/main^{commit}'", "", exit_code=1)

        run = await orchestrator.fresh()

        assert run.success is True
        assert "git reset --hard origin/master" in executor.calls

    @pytest.mark.asyncio
    async def test_unknown_default_branch(self, orchestrator, executor):
        executor.fail("git show-ref", "", exit_code=1)
        executor.fail("git symbolic-ref", "", exit_code=1)
        executor.fail("git rev-parse", "", exit_code=1)

        run = await orchestrator.fresh()

        assert run.failed_step.error_kind is ErrorKind.INVALID_REFERENCE
        assert not executor.called("git reset")

    @pytest.mark.asyncio
    async def test_explicit_branch_and_clean(self, orchestrator, executor):
        executor.fail("git show-ref", "", exit_code=1)

        run = await orchestrator.fresh(remote="upstream", branch="develop", clean=True)

        assert run.success is True
        assert not executor.called("git symbolic-ref")
        assert "git reset --hard upstream/develop" in executor.calls
        assert executor.calls[-1] == "git clean -fd"

    @pytest.mark.asyncio
    async def test_fetch_failure_stops_before_reset(self, orchestrator, executor):
        executor.fail("git show-ref", "", exit_code=1)
        executor.fail("git fetch", "fatal: Could not read from remote repository.", exit_code=128)

        run = await orchestrator.fresh()

        assert run.failed_step.error_kind is ErrorKind.NETWORK_UNREACHABLE
        assert not executor.called("git reset")

    @pytest.mark.asyncio
    async def test_preview(self, orchestrator):
        run = await orchestrator.fresh(dry_run=True)

        previews = [step.metadata.command_issued for step in run.steps]
        assert previews[0].startswith("git branch fresh-backup-")
        assert previews[2] == "git reset --hard 'origin/<default branch>'"

    @pytest.mark.asyncio
    async def test_invalid_branch(self, orchestrator):
        with pytest.raises(InputValidationError):
            await orchestrator.fresh(branch="bad name")


class TestFix:
    """Tests for the fix workflow."""

    @pytest.mark.asyncio
    async def test_hotfix_commits_pending_changes(self, orchestrator, executor):
        executor.fail("git show-ref", "", exit_code=1)
        executor.on("git status --porcelain=v1", stdout=" M src/app.py\n")
        executor.on("git diff --cached --name-only", stdout="src/app.py\n")

        run = await orchestrator.fix("null session")

        assert run.success is True
        assert any(call.startswith("git checkout -b hotfix-") for call in executor.calls)
        assert executor.calls[-1] == "git commit -m 'HOTFIX: null session'"

    @pytest.mark.asyncio
    async def test_hotfix_on_clean_tree_only_branches(self, orchestrator, executor):
        executor.fail("git show-ref", "", exit_code=1)

        run = await orchestrator.fix()

        assert run.success is True
        assert run.steps[1].data["skipped"] is True
        assert run.steps[2].data["skipped"] is True
        assert not executor.called("git add")
        assert not executor.called("git commit")

    @pytest.mark.asyncio
    async def test_amend_keeps_message(self, orchestrator, executor):
        executor.on("git status --porcelain=v1", stdout=" M src/app.py\n")

        run = await orchestrator.fix(amend=True)

        assert run.success is True
        assert not executor.called("git checkout")
        assert executor.calls[-1] == "git commit --amend --no-edit"

    @pytest.mark.asyncio
    async def test_amend_with_new_message(self, orchestrator, executor):
        run = await orchestrator.fix("Better wording", amend=True)

        assert run.success is True
        assert executor.calls[-1] == "git commit --amend -m 'Better wording'"

    @pytest.mark.asyncio
    async def test_amend_with_nothing_to_add(self, orchestrator, executor):
        run = await orchestrator.fix(amend=True)

        assert run.failed_step.error_kind is ErrorKind.NOTHING_TO_COMMIT
        assert not executor.called("git commit")

    @pytest.mark.asyncio
    async def test_empty_message(self, orchestrator):
        with pytest.raises(InputValidationError):
            await orchestrator.fix("   ")


class TestDispatch:
    """Tests for WorkflowOrchestrator.dispatch."""

    @pytest.mark.asyncio
    async def test_workflow_request(self, orchestrator, executor):
        request = OperationRequest("quick", orchestrator.working_directory, {"message": "Add file", "dry_run": True})

        run = await orchestrator.dispatch(request)

        assert isinstance(run, WorkflowRun)
        assert run.workflow_name == "quick"
        assert executor.call_count == 0

    @pytest.mark.asyncio
    async def test_primitive_request(self, orchestrator, executor):
        result = await orchestrator.dispatch(OperationRequest("status", orchestrator.working_directory))
        assert result.operation_name == "status"
        assert executor.calls == ["git status --porcelain=v1 --branch"]

    @pytest.mark.asyncio
    async def test_bad_workflow_arguments(self, orchestrator):
        with pytest.raises(InputValidationError):
            await orchestrator.dispatch(OperationRequest("sync", orchestrator.working_directory, {"force": True}))

    @pytest.mark.asyncio
    async def test_unknown_name(self, orchestrator):
        with pytest.raises(UnknownOperationError):
            await orchestrator.dispatch(OperationRequest("deploy", orchestrator.working_directory))

    def test_workflow_names_are_methods(self):
        for name in WORKFLOW_NAMES:
            assert callable(getattr(WorkflowOrchestrator, name))
