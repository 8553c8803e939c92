"""CLI entry points for gitpilot.

``gitpilot`` is the operator CLI: it lists and calls tools, runs
operations and workflows directly, and explains alias resolution.
``gitpilot-dispatch`` is the single program installed under every alias
name (``gstatus``, ``gflow``, ...); it works out which alias it was
launched as and runs the matching operation.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, List, Optional, Union

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gitpilot import __version__
from gitpilot.config import create_default_config, get_settings, load_settings
from gitpilot.config.settings import Settings
from gitpilot.errors import GitPilotError, InputValidationError
from gitpilot.git import OperationRequest, OperationResult, WorkflowOrchestrator, WorkflowRun
from gitpilot.git.operations import OPERATION_NAMES, RESET_MODES
from gitpilot.git.workflows import BACKUP_MODES, VERSION_BUMPS, WORKFLOW_NAMES
from gitpilot.identity import ALIASES, HEURISTICS, InvocationContext, resolve_invocation
from gitpilot.tools import PermissionLevel, ToolDispatcher, create_default_registry
from gitpilot.tools.definitions import EXPORT_FORMATS
from gitpilot.utils.logging import setup_logging

app = typer.Typer(
    name="gitpilot",
    help="Git operation engine - primitives, workflows and command aliases",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]gitpilot[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """gitpilot - run git operations and workflows with structured results."""
    try:
        settings = load_settings(config_path=config, force_reload=True) if config else get_settings()
    except GitPilotError as e:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(2)

    setup_logging(settings.logging.level, settings.logging.resolved_file, verbose)


# =============================================================================
# Shared helpers
# =============================================================================

def exit_code(result: Union[OperationResult, WorkflowRun]) -> int:
    """0 for a clean success, 1 for failures and paused conflicts."""
    if isinstance(result, WorkflowRun):
        return 0 if result.success else 1
    return 0 if result.success and not result.needs_resolution else 1


def render(result: Union[OperationResult, WorkflowRun], as_json: bool = False) -> int:
    """Print a result and return the process exit code for it."""
    if as_json:
        console.print_json(json.dumps(result.to_dict(), default=str))
        return exit_code(result)

    if isinstance(result, WorkflowRun):
        style = None if result.success else "red"
        for line in result.summary():
            console.print(line, style=style, markup=False, highlight=False)
        return exit_code(result)

    style = {"failed": "red", "conflicted": "yellow"}.get(result.state)
    console.print(result.text(), style=style, markup=False, highlight=False)
    if result.hint and result.state in ("failed", "conflicted"):
        console.print(f"hint: {result.hint}", style="dim", markup=False, highlight=False)
    return exit_code(result)


def execute(request: OperationRequest, settings: Optional[Settings] = None) -> Union[OperationResult, WorkflowRun]:
    """Run one request through a settings-configured orchestrator."""
    orchestrator = WorkflowOrchestrator.from_settings(request.working_directory, settings or get_settings())
    return asyncio.run(orchestrator.dispatch(request))


def run_request(request: OperationRequest, as_json: bool = False) -> int:
    """Execute and render a request; rejected requests exit with 2."""
    try:
        result = execute(request)
    except GitPilotError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 2
    return render(result, as_json)


def parse_assignments(pairs: Optional[List[str]]) -> dict[str, Any]:
    """Turn ``key=value`` pairs into arguments; values are JSON when they parse."""
    arguments: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, raw = pair.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected key=value, got '{pair}'")
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            value = raw
        arguments[key.strip()] = value
    return arguments


def invocation_context(settings: Settings) -> InvocationContext:
    identity = settings.identity
    return InvocationContext.from_process(
        wrapper_dirs=identity.resolved_wrapper_dirs,
        freshness_window=identity.freshness_window_seconds,
        shell_command_var=identity.shell_command_var,
    )


# =============================================================================
# Alias argument mapping
# =============================================================================

# Aliases whose arguments map one-to-one onto named parameters
_POSITIONAL: dict[str, tuple[str, ...]] = {
    "gstatus": (),
    "gcheckout": ("target",),
    "gdiff": ("target", "file"),
    "gmerge": ("branch",),
    "grebase": ("onto",),
    "gblame": ("file",),
    "gbisect": ("action", "ref"),
    "gremote-remove": ("name",),
    "gclone": ("url", "target_dir"),
    "ginit": ("initial_branch",),
    "gsync": ("remote",),
    "gdev": ("branch",),
    "gclean": ("remote",),
}


def _pop_flag(args: list[str], *flags: str) -> bool:
    found = any(flag in args for flag in flags)
    args[:] = [arg for arg in args if arg not in flags]
    return found


def _positional(arguments: dict[str, Any], args: list[str], *names: str) -> None:
    if len(args) > len(names):
        raise InputValidationError("arguments", f"unexpected extra arguments: {' '.join(args[len(names):])}")
    arguments.update(zip(names, args))


def _integer(field: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise InputValidationError(field, f"expected a number, got '{value}'")


def alias_arguments(alias: str, args: List[str]) -> tuple[str, dict[str, Any]]:
    """Map an alias and its command-line words onto an operation and arguments.

    Args:
        alias: Known alias name (``gadd``, ``gflow``, ...).
        args: Words following the alias on the command line.

    Returns:
        Tuple of (operation name, arguments).

    Raises:
        InputValidationError: If the words don't fit the operation.
    """
    operation = ALIASES[alias]
    args = list(args)
    arguments: dict[str, Any] = {}

    if operation in WORKFLOW_NAMES and _pop_flag(args, "--dry-run", "-n"):
        arguments["dry_run"] = True

    if alias in _POSITIONAL:
        if alias == "gcheckout" and _pop_flag(args, "-b"):
            arguments["create"] = True
        elif alias == "gdiff" and _pop_flag(args, "--staged", "--cached"):
            arguments["staged"] = True
        elif alias == "gclean" and _pop_flag(args, "--aggressive"):
            arguments["aggressive"] = True
        _positional(arguments, args, *_POSITIONAL[alias])

    elif alias == "gadd":
        if not args or args in (["."], ["-A"], ["--all"]):
            return "add_all", arguments
        arguments["files"] = args

    elif alias in ("gcommit", "gflow", "gquick"):
        if alias == "gcommit":
            arguments["amend"] = _pop_flag(args, "--amend")
            arguments["all"] = _pop_flag(args, "-a", "--all")
        if args:
            arguments["message"] = " ".join(args)

    elif alias == "gpush":
        arguments["set_upstream"] = _pop_flag(args, "-u", "--set-upstream")
        arguments["tags"] = _pop_flag(args, "--tags")
        arguments["force"] = _pop_flag(args, "-f", "--force")
        _positional(arguments, args, "remote", "branch")

    elif alias == "gpull":
        arguments["rebase"] = _pop_flag(args, "--rebase", "-r")
        _positional(arguments, args, "remote", "branch")

    elif alias == "gfetch":
        arguments["prune"] = _pop_flag(args, "--prune", "-p")
        arguments["all_remotes"] = _pop_flag(args, "--all")
        _positional(arguments, args, "remote")

    elif alias == "gbranch":
        list_all = _pop_flag(args, "-a", "--all")
        force_delete = _pop_flag(args, "-D")
        if force_delete or _pop_flag(args, "-d", "--delete"):
            operation = "branch_delete"
            arguments["force"] = force_delete
            _positional(arguments, args, "name")
        elif args:
            operation = "branch_create"
            _positional(arguments, args, "name", "start_point")
        elif list_all:
            arguments["all"] = True

    elif alias == "glog":
        _positional(arguments, args, "max_count", "file")
        if "max_count" in arguments:
            arguments["max_count"] = _integer("max_count", arguments["max_count"])

    elif alias == "gstash":
        if args == ["list"]:
            return "stash_list", arguments
        arguments["include_untracked"] = _pop_flag(args, "-u", "--include-untracked")
        if args:
            arguments["message"] = " ".join(args)

    elif alias == "gpop":
        _positional(arguments, args, "index")
        if "index" in arguments:
            arguments["index"] = _integer("index", arguments["index"])

    elif alias == "greset":
        for mode in RESET_MODES:
            if _pop_flag(args, f"--{mode}"):
                arguments["mode"] = mode
        _positional(arguments, args, "target")

    elif alias == "gtag":
        if _pop_flag(args, "-d", "--delete"):
            operation = "tag_delete"
            _positional(arguments, args, "name")
        elif args:
            arguments["name"] = args[0]
            if args[1:]:
                arguments["message"] = " ".join(args[1:])
        else:
            operation = "tag_list"

    elif alias == "gcherry":
        if args:
            arguments["commits"] = args

    elif alias == "gremote":
        _pop_flag(args, "-v", "--verbose")
        if args[:1] == ["add"]:
            args = args[1:]
        if args[:1] in (["remove"], ["rm"]):
            operation = "remote_remove"
            _positional(arguments, args[1:], "name")
        elif args:
            operation = "remote_add"
            _positional(arguments, args, "name", "url")

    elif alias == "grelease":
        arguments["require_main"] = _pop_flag(args, "--require-main")
        if args and args[0] in VERSION_BUMPS:
            arguments["bump"] = args.pop(0)
        elif args:
            arguments["version"] = args.pop(0)
        _positional(arguments, args, "remote")

    elif alias == "gbackup":
        if args and args[0] in BACKUP_MODES:
            arguments["mode"] = args.pop(0)
        if args:
            arguments["message"] = " ".join(args)

    elif alias == "gfresh":
        _pop_flag(args, "--hard")
        arguments["clean"] = _pop_flag(args, "--clean")
        _positional(arguments, args, "remote", "branch")

    elif alias == "gfix":
        _pop_flag(args, "--hotfix")
        arguments["amend"] = _pop_flag(args, "--amend")
        if args:
            arguments["message"] = " ".join(args)

    return operation, arguments


def run_alias(alias: str, args: List[str], directory: Path, as_json: bool = False) -> int:
    try:
        operation, arguments = alias_arguments(alias, args)
    except GitPilotError as e:
        err_console.print(f"[red]{alias}:[/red] {escape(str(e))}")
        return 2

    settings = get_settings()
    request = OperationRequest(
        operation_name=operation,
        working_directory=directory,
        arguments=arguments,
        timeout_ms=settings.executor.timeout_ms,
    )
    return run_request(request, as_json)


# =============================================================================
# Commands
# =============================================================================

@app.command()
def run(
    operation: str = typer.Argument(..., help="Primitive operation or workflow name"),
    arg: Optional[List[str]] = typer.Option(
        None, "--arg", "-a", help="Argument as key=value (values parsed as JSON when possible)"
    ),
    directory: Path = typer.Option(Path("."), "--directory", "-C", help="Repository directory"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Preview workflow steps without running them"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Run a primitive operation or a workflow."""
    arguments = parse_assignments(arg)
    name = operation.replace("-", "_")
    if dry_run:
        if name not in WORKFLOW_NAMES:
            err_console.print(f"[red]--dry-run only applies to workflows ({', '.join(WORKFLOW_NAMES)})[/red]")
            raise typer.Exit(2)
        arguments["dry_run"] = True

    request = OperationRequest(
        operation_name=name,
        working_directory=directory,
        arguments=arguments,
        timeout_ms=get_settings().executor.timeout_ms,
    )
    raise typer.Exit(run_request(request, as_json))


@app.command()
def operations() -> None:
    """List primitive operations and workflows."""
    table = Table(title="Operations")
    table.add_column("Name", style="cyan")
    table.add_column("Kind")

    for name in OPERATION_NAMES:
        table.add_row(name, "primitive")
    for name in WORKFLOW_NAMES:
        table.add_row(name, "[green]workflow[/green]")

    console.print(table)


@app.command()
def tools(
    format: str = typer.Option("table", "--format", "-f", help="table, anthropic, openai or mcp"),
    category: Optional[str] = typer.Option(None, "--category", help="Only tools of this category (git or workflow)"),
    safe_only: bool = typer.Option(False, "--safe-only", help="Leave out dangerous tools"),
) -> None:
    """Show tool definitions, as a table or exported for a protocol."""
    registry = create_default_registry(Path.cwd())
    selected = registry.get_all_tools(
        categories=[category] if category else None,
        max_permission=PermissionLevel.CAUTIOUS if safe_only else None,
    )

    if format == "table":
        table = Table(title="Tools")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Category")
        table.add_column("Permission")
        table.add_column("Description")
        for tool in selected:
            table.add_row(tool.name, tool.category, tool.permission_level.value, tool.description)
        console.print(table)
        return

    exporter = EXPORT_FORMATS.get(format)
    if exporter is None:
        err_console.print(f"[red]Unknown format '{escape(format)}'. Use table, {', '.join(EXPORT_FORMATS)}.[/red]")
        raise typer.Exit(2)
    console.print_json(json.dumps(exporter([tool.definition for tool in selected])))


@app.command()
def call(
    tool: str = typer.Argument(..., help="Tool name, e.g. git_status"),
    arguments: str = typer.Argument("{}", help="Tool arguments as a JSON object"),
    directory: Path = typer.Option(Path("."), "--directory", "-C", help="Default repository directory"),
    safe_only: bool = typer.Option(False, "--safe-only", help="Refuse dangerous tools"),
) -> None:
    """Call a tool through the validating dispatcher and print its response."""
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError as e:
        err_console.print(f"[red]Arguments are not valid JSON: {escape(str(e))}[/red]")
        raise typer.Exit(2)
    if not isinstance(parsed, dict):
        err_console.print("[red]Arguments must be a JSON object[/red]")
        raise typer.Exit(2)

    registry = create_default_registry(directory)
    dispatcher = ToolDispatcher(registry, allow_dangerous=not safe_only)
    response = asyncio.run(dispatcher.dispatch(tool, parsed))

    console.print(response.content, markup=False, highlight=False, soft_wrap=True)
    raise typer.Exit(1 if response.is_error else 0)


@app.command(
    "alias",
    context_settings={"ignore_unknown_options": True, "allow_extra_args": True},
)
def alias_command(
    name: Optional[str] = typer.Argument(None, help="Alias to run, e.g. gflow"),
    args: Optional[List[str]] = typer.Argument(None, help="Arguments for the alias"),
    directory: Path = typer.Option(Path("."), "--directory", "-C", help="Repository directory"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Run an alias as if it had been typed, or list the aliases."""
    if name is None:
        table = Table(title="Aliases")
        table.add_column("Alias", style="cyan")
        table.add_column("Operation")
        for alias, operation in ALIASES.items():
            table.add_row(alias, operation)
        console.print(table)
        return

    if name not in ALIASES:
        err_console.print(f"[red]Unknown alias '{escape(name)}'.[/red] Run 'gitpilot alias' to list them.")
        raise typer.Exit(2)

    raise typer.Exit(run_alias(name, args or [], directory, as_json))


@app.command()
def resolve() -> None:
    """Show how this invocation's alias identity is resolved."""
    context = invocation_context(get_settings())

    table = Table(title="Identity heuristics")
    table.add_column("#", justify="right")
    table.add_column("Heuristic", style="cyan")
    table.add_column("Answer")
    for index, (source, heuristic) in enumerate(HEURISTICS, start=1):
        answer = heuristic(context)
        table.add_row(str(index), source, answer or "[dim]-[/dim]")
    console.print(table)

    resolution = resolve_invocation(context)
    if resolution is None:
        console.print("[yellow]Unresolved:[/yellow] no heuristic recognised an alias")
    else:
        console.print(
            f"[green]Resolved[/green] {resolution.alias} -> {resolution.operation} (via {resolution.source})"
        )


@app.command()
def config(
    init: bool = typer.Option(False, "--init", help="Write the default config file if missing"),
) -> None:
    """Show current configuration."""
    if init:
        path = create_default_config()
        console.print(f"[green]Config file:[/green] {path}")

    settings = get_settings()
    console.print(yaml.safe_dump(settings.model_dump(mode="json"), sort_keys=False), markup=False, highlight=False)


# =============================================================================
# Alias dispatcher
# =============================================================================

def dispatch_main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the program installed under every alias name."""
    try:
        settings = get_settings()
    except GitPilotError as e:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        sys.exit(2)

    setup_logging(settings.logging.level, settings.logging.resolved_file)

    resolution = resolve_invocation(invocation_context(settings))
    if resolution is None:
        err_console.print(
            "[red]Could not tell which alias was invoked.[/red] "
            "Install this program under an alias name such as gstatus or gflow."
        )
        sys.exit(2)

    args = sys.argv[1:] if argv is None else argv
    sys.exit(run_alias(resolution.alias, list(args), Path.cwd()))


if __name__ == "__main__":
    app()
