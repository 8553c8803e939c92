"""Tests for git tools."""

import inspect
import json
from pathlib import Path

import pytest

from gitpilot.git.operations import OPERATION_NAMES, GitOperations
from gitpilot.git.workflows import WORKFLOW_NAMES, WorkflowOrchestrator
from gitpilot.tools.dispatcher import ToolDispatcher
from gitpilot.tools.git import (
    PRIMITIVE_TOOLS,
    TOOL_PREFIX,
    WORKFLOW_TOOLS,
    create_default_registry,
    get_git_tools,
    register_git_tools,
)
from gitpilot.tools.registry import PermissionLevel, ToolRegistry


@pytest.fixture
def registry(orchestrator) -> ToolRegistry:
    registry = ToolRegistry()
    register_git_tools(registry, orchestrator)
    return registry


@pytest.fixture
def dispatcher(registry) -> ToolDispatcher:
    return ToolDispatcher(registry)


def target_method(category: str, operation: str):
    owner = GitOperations if category == "git" else WorkflowOrchestrator
    return inspect.signature(getattr(owner, operation))


class TestToolTable:
    """Every operation and workflow is exposed exactly once."""

    def test_one_tool_per_operation(self, orchestrator):
        tools = get_git_tools(orchestrator)
        names = [tool.name for tool in tools]

        assert len(names) == len(set(names))
        assert sorted(names) == sorted(f"{TOOL_PREFIX}{n}" for n in OPERATION_NAMES + WORKFLOW_NAMES)

    def test_categories(self, registry):
        assert len(registry.list_by_category("git")) == len(OPERATION_NAMES)
        assert len(registry.list_by_category("workflow")) == len(WORKFLOW_NAMES)

    @pytest.mark.parametrize(
        "category,entry",
        [("git", entry) for entry in PRIMITIVE_TOOLS] + [("workflow", entry) for entry in WORKFLOW_TOOLS],
        ids=lambda value: value[0] if isinstance(value, tuple) else value,
    )
    def test_parameters_match_signature(self, category, entry):
        """Schema parameters line up with the method they call."""
        operation, _description, parameters, _level = entry
        signature = target_method(category, operation)
        accepted = {name for name in signature.parameters if name != "self"}
        required = {
            name
            for name, param in signature.parameters.items()
            if name != "self" and param.default is inspect.Parameter.empty
        }

        assert {p.name for p in parameters} == accepted
        assert {p.name for p in parameters if p.required} == required

    def test_every_tool_takes_working_directory(self, orchestrator):
        for tool in get_git_tools(orchestrator):
            param = tool.definition.get_parameter("working_directory")
            assert param is not None
            assert param.required is False

    @pytest.mark.parametrize(
        "name,level",
        [
            ("git_status", PermissionLevel.SAFE),
            ("git_log", PermissionLevel.SAFE),
            ("git_commit", PermissionLevel.CAUTIOUS),
            ("git_reset", PermissionLevel.DANGEROUS),
            ("git_branch_delete", PermissionLevel.DANGEROUS),
            ("git_clean", PermissionLevel.DANGEROUS),
            ("git_fresh", PermissionLevel.DANGEROUS),
            ("git_fix", PermissionLevel.CAUTIOUS),
        ],
    )
    def test_permission_levels(self, registry, name, level):
        assert registry.get(name).permission_level is level

    def test_mcp_export(self, registry):
        exported = [d.to_mcp() for d in registry.get_definitions()]
        flow = next(t for t in exported if t["name"] == "git_flow")

        assert flow["inputSchema"]["required"] == ["message"]
        assert flow["inputSchema"]["properties"]["files"]["items"] == {"type": "string"}


class TestGitToolCalls:
    """Tool calls run through the orchestrator."""

    @pytest.mark.asyncio
    async def test_status(self, dispatcher, executor):
        executor.on("git status --porcelain=v1 --branch", stdout="## main\n")

        response = await dispatcher.dispatch("git_status", {})

        data = json.loads(response.content)
        assert response.is_error is False
        assert data["metadata"]["operation_name"] == "status"
        assert data["data"]["branch"] == "main"

    @pytest.mark.asyncio
    async def test_nothing_to_commit(self, dispatcher, executor):
        response = await dispatcher.dispatch("git_commit", {"message": "Add feature"})

        assert response.is_error is True
        assert json.loads(response.content)["error_kind"] == "NothingToCommit"
        assert not executor.called("git commit")

    @pytest.mark.asyncio
    async def test_working_directory_argument(self, dispatcher, guard, temp_dir: Path):
        other = temp_dir / "other"
        other.mkdir()

        response = await dispatcher.dispatch("git_status", {"working_directory": str(other)})

        assert guard.checked == [other]
        assert json.loads(response.content)["metadata"]["working_directory"] == str(other)

    @pytest.mark.asyncio
    async def test_non_repository(self, dispatcher, executor, guard):
        guard.is_repo = False

        response = await dispatcher.dispatch("git_add_all", {})

        assert response.is_error is True
        assert json.loads(response.content)["error_kind"] == "NotARepository"
        assert executor.call_count == 0

    @pytest.mark.asyncio
    async def test_workflow_dry_run(self, dispatcher, executor):
        response = await dispatcher.dispatch("git_flow", {"message": "Add feature", "dry_run": True})

        data = json.loads(response.content)
        assert response.is_error is False
        assert data["workflow_name"] == "flow"
        assert [step["state"] for step in data["steps"]] == ["preview"] * 3
        assert executor.call_count == 0

    @pytest.mark.asyncio
    async def test_invalid_input(self, dispatcher, executor):
        response = await dispatcher.dispatch("git_flow", {"message": "x"})

        assert response.is_error is True
        assert json.loads(response.content)["code"] == "INPUT_VALIDATION_ERROR"
        assert executor.call_count == 0

    @pytest.mark.asyncio
    async def test_schema_rejects_wrong_type(self, dispatcher, executor):
        response = await dispatcher.dispatch("git_log", {"max_count": "ten"})

        assert json.loads(response.content)["code"] == "TOOL_VALIDATION_ERROR"
        assert executor.call_count == 0


class TestDefaultRegistry:
    def test_create_default_registry(self, temp_dir: Path, test_settings):
        registry = create_default_registry(temp_dir, test_settings)
        assert len(registry) == len(PRIMITIVE_TOOLS) + len(WORKFLOW_TOOLS)
        assert registry.list_categories() == ["git", "workflow"]
