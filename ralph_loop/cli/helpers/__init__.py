"""CLI Helper Functions for ralph-loop.

This module provides reusable helper functions for CLI commands to reduce
code duplication and standardize behavior across all commands.

The helpers provide:
- Project and state directory resolution
- Configuration loading with consistent error handling
- Run ID resolution with short ID support
- Wiring of the loop components for a run
- Consistent table formatting for output
"""

import logging
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional

import click
from tabulate import tabulate

from ralph_loop.core.agent_invoker import AgentInvoker
from ralph_loop.core.completion import SentinelDetector
from ralph_loop.core.loop_controller import LoopController
from ralph_loop.core.progress_store import ProgressStore
from ralph_loop.core.prompt_builder import PromptBuilder
from ralph_loop.core.run_storage import RunStorageManager
from ralph_loop.core.verification import VerificationRunner
from ralph_loop.models.config import RalphConfig
from ralph_loop.models.run import IterationRecord, RunState, RunStatus
from ralph_loop.services.command_runner import CommandRunner
from ralph_loop.services.exceptions import ConfigError, RunNotFoundError, StateError
from ralph_loop.utils.config_manager import ConfigManager
from ralph_loop.utils.path_finder import PathFinder

STATUS_COLORS = {
    RunStatus.RUNNING: 'yellow',
    RunStatus.SUCCESS: 'green',
    RunStatus.MAX_ITERATIONS_REACHED: 'red',
    RunStatus.INTERRUPTED: 'magenta',
}


def configure_logging(verbose: bool) -> None:
    """Configure stdlib logging for CLI use."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


def get_project_context(state_dir: Optional[str] = None) -> tuple[Path, Path]:
    """Get project root and state directory.

    Returns:
        Tuple of (project_root, state_dir)

    Note:
        Does not check if state_dir exists - callers should validate as needed.
    """
    project_root = Path.cwd()
    if state_dir:
        return project_root, Path(state_dir).resolve()
    return project_root, PathFinder.default_state_dir(project_root)


def ensure_state_dir(state_dir: Path) -> None:
    """Exit with an error if no runs have been recorded yet."""
    if not state_dir.exists():
        click.echo(f"No ralph-loop state found at {state_dir}. Start with 'ralph-loop run'.", err=True)
        sys.exit(1)


def load_config(project_root: Path, state_dir: Path) -> RalphConfig:
    """Load configuration, exiting with a clear message when it is malformed."""
    try:
        return ConfigManager(state_dir, project_root).load_config()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def resolve_run(storage: RunStorageManager, run_id: Optional[str]) -> RunState:
    """Resolve a run ID with short ID support, defaulting to the latest run.

    Note:
        Exits with error if no run matches or the prefix is ambiguous.
    """
    try:
        if run_id:
            return storage.resolve_run(run_id)
        run = storage.latest_run()
    except (RunNotFoundError, StateError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if run is None:
        click.echo("No runs found.", err=True)
        sys.exit(1)
    return run


def relative_to(path: Path, root: Path) -> str:
    """Path shown to the agent, relative to the project when possible."""
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


def build_prompt_builder(run: RunState, project_root: Path, state_dir: Path,
                         config: RalphConfig) -> PromptBuilder:
    store = ProgressStore(state_dir)
    return PromptBuilder(
        task=run.task,
        plan_file=relative_to(store.plan_file, project_root),
        activity_file=relative_to(store.activity_file, project_root),
        sentinel=config.completion_sentinel,
    )


def build_controller(run: RunState, project_root: Path, state_dir: Path,
                     config: RalphConfig, storage: RunStorageManager,
                     timeout: Optional[float] = None,
                     echo: Optional[Callable[[str], None]] = None,
                     on_iteration_start: Optional[Callable[[int, int], None]] = None,
                     on_iteration_complete: Optional[Callable] = None) -> LoopController:
    """Wire the loop components for one run."""
    invoker = AgentInvoker(
        command=config.agent.command,
        log_path=storage.agent_log_path(run.run_id),
        budget_flag=config.agent.budget_flag,
        detector=SentinelDetector(config.completion_sentinel),
        tail_lines=config.agent.output_tail_lines,
        cwd=project_root,
        echo=echo,
    )
    verifier = VerificationRunner(
        checks=config.checks,
        log_path=storage.verification_log_path(run.run_id),
        command_runner=CommandRunner(project_root),
        check_timeout=config.check_timeout,
        excerpt_lines=config.excerpt_lines,
        echo=echo,
    )
    return LoopController(
        run_storage=storage,
        progress_store=ProgressStore(state_dir),
        prompt_builder=build_prompt_builder(run, project_root, state_dir, config),
        agent_invoker=invoker,
        verification_runner=verifier,
        timeout=timeout,
        on_iteration_start=on_iteration_start,
        on_iteration_complete=on_iteration_complete,
    )


def format_status(status: RunStatus) -> str:
    return click.style(status.value.upper(), fg=STATUS_COLORS.get(status, 'white'))


def format_run_table(runs: List[RunState], max_task_length: int = 50) -> str:
    """Format runs as a table with consistent styling."""
    headers = ["ID", "STATUS", "ITER", "MODE", "TASK", "STARTED"]
    table_data = []
    for run in runs:
        task_line = run.task.split('\n')[0]
        if len(task_line) > max_task_length:
            task_line = task_line[:max_task_length-3] + "..."

        table_data.append([
            run.run_id[:8],
            format_status(run.status),
            f"{len(run.iterations)}/{run.max_iterations}",
            run.verification_mode.value,
            task_line,
            run.started_at.strftime("%Y-%m-%d %H:%M"),
        ])

    return tabulate(table_data, headers=headers, tablefmt="simple")


def format_iteration_table(records: List[IterationRecord]) -> str:
    """Format iteration records as a table."""
    headers = ["#", "RESULT", "EXIT", "FAILED", "SENTINEL", "SUMMARY", "TIME"]
    rows = []
    for record in records:
        result = click.style("PASS", fg='green') if record.passed else click.style("FAIL", fg='red')
        rows.append([
            record.iteration,
            result,
            record.agent_exit_code,
            ", ".join(record.failed_checks) or "-",
            "yes" if record.saw_completion_sentinel else "",
            record.summary,
            record.timestamp.strftime("%H:%M:%S"),
        ])
    return tabulate(rows, headers=headers, tablefmt="simple")


def print_table(headers: list[str], rows: list[list[Any]],
                tablefmt: str = "simple") -> None:
    """Print a table with project-wide defaults."""
    click.echo(tabulate(rows, headers=headers, tablefmt=tablefmt))


__all__ = [
    'configure_logging',
    'get_project_context',
    'ensure_state_dir',
    'load_config',
    'resolve_run',
    'relative_to',
    'build_prompt_builder',
    'build_controller',
    'format_status',
    'format_run_table',
    'format_iteration_table',
    'print_table',
]
