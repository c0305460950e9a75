"""Run command: drive the agent until verification passes."""

import sys

import click
from rich.console import Console
from rich.markup import escape

from ralph_loop.cli.helpers import (
    build_controller,
    build_prompt_builder,
    configure_logging,
    format_status,
    get_project_context,
    load_config,
    resolve_run,
)
from ...core.constants import DEFAULT_BUDGET, DEFAULT_MAX_ITERATIONS, RUN_FILE_NAME
from ...core.progress_store import ProgressStore
from ...core.run_storage import RunStorageManager
from ...models.run import AgentResult, IterationRecord, RunState, RunStatus, VerificationMode
from ...services.exceptions import StateError

TAIL_DISPLAY_LINES = 10
EXCERPT_DISPLAY_LINES = 10
EXIT_EXHAUSTED = 1
EXIT_INTERRUPTED = 130


@click.command()
@click.argument('task', required=False)
@click.option('--file', '-f', 'task_file', type=click.Path(exists=True, dir_okay=False),
              help='File containing the task description')
@click.option('--max-iterations', '-n', type=click.IntRange(min=1), default=None,
              help=f'Maximum iterations (default {DEFAULT_MAX_ITERATIONS})')
@click.option('--mode', '-m', 'mode', default=VerificationMode.ALL.value, show_default=True,
              type=click.Choice([m.value for m in VerificationMode]),
              help='Checks that must pass for an iteration to count')
@click.option('--budget', '-b', type=click.FloatRange(min=0, min_open=True),
              default=DEFAULT_BUDGET, show_default=True,
              help='Per-iteration budget passed to the agent (USD)')
@click.option('--timeout', '-t', type=click.FloatRange(min=0, min_open=True), default=None,
              help='Kill the agent after this many seconds per iteration')
@click.option('--dry-run', is_flag=True, help='Show the first prompt without running anything')
@click.option('--verbose', '-v', is_flag=True, help='Stream agent output live')
@click.option('--state-dir', type=click.Path(file_okay=False),
              help='State directory (default: ./.ralph)')
@click.option('--resume', 'resume_id', help='Resume a stored run by ID')
def run(task, task_file, max_iterations, mode, budget, timeout, dry_run, verbose,
        state_dir, resume_id):
    """Run the agent in a loop until verification passes and all tasks are complete"""
    configure_logging(verbose)
    console = Console()
    project_root, state_path = get_project_context(state_dir)
    config = load_config(project_root, state_path)
    storage = RunStorageManager(state_path)

    if resume_id:
        run_state = resolve_run(storage, resume_id)
        if run_state.status == RunStatus.SUCCESS:
            click.echo(f"Run {run_state.run_id} already succeeded; nothing to resume.")
            return
        if max_iterations and max_iterations > run_state.max_iterations:
            run_state.max_iterations = max_iterations
        if run_state.next_iteration > run_state.max_iterations:
            click.echo(
                f"Run {run_state.run_id} has used all {run_state.max_iterations} iterations. "
                f"Pass a larger --max-iterations to continue.", err=True
            )
            sys.exit(EXIT_EXHAUSTED)
    else:
        if task_file:
            with open(task_file) as f:
                task = f.read().strip()
        if not task:
            task = click.prompt("Task description")
        if not task or task.isspace():
            click.echo("Error: Task description cannot be empty.", err=True)
            sys.exit(1)
        run_state = None

    if dry_run:
        _show_dry_run(console, run_state, task, max_iterations, mode, budget,
                      project_root, state_path, config)
        return

    try:
        if run_state is None:
            run_state = storage.create_run(
                task=task,
                max_iterations=max_iterations or DEFAULT_MAX_ITERATIONS,
                verification_mode=VerificationMode(mode),
                budget=budget,
            )
            console.print(f"[green]Created run {run_state.run_id}[/green]")
        else:
            console.print(f"[cyan]Resuming run {run_state.run_id} at iteration "
                          f"{run_state.next_iteration}[/cyan]")

        def on_start(iteration, total):
            console.rule(f"Iteration {iteration}/{total}")

        def on_complete(record: IterationRecord, agent_result: AgentResult):
            _report_iteration(console, record, agent_result, verbose)

        controller = build_controller(
            run_state, project_root, state_path, config, storage,
            timeout=timeout,
            echo=click.echo if verbose else None,
            on_iteration_start=on_start,
            on_iteration_complete=on_complete,
        )
        run_state = controller.run(run_state)
    except StateError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    _report_outcome(console, run_state, storage)


def _show_dry_run(console, run_state, task, max_iterations, mode, budget,
                  project_root, state_path, config):
    """Print the prompt the next iteration would receive; writes nothing."""
    if run_state is None:
        run_state = RunState(
            run_id="dry-run",
            task=task,
            max_iterations=max_iterations or DEFAULT_MAX_ITERATIONS,
            verification_mode=VerificationMode(mode),
            budget=budget,
        )
    prior_failure = run_state.last_iteration.to_failure_context() if run_state.last_iteration else None
    store = ProgressStore(state_path)
    builder = build_prompt_builder(run_state, project_root, state_path, config)
    prompt = builder.build(
        run_state.next_iteration,
        run_state.max_iterations,
        prior_failure,
        run_state.verification_mode,
        has_plan=store.plan_owner() == run_state.run_id and store.has_plan(),
    )
    console.rule(f"Dry run: prompt for iteration {run_state.next_iteration}")
    click.echo(prompt)
    console.rule()
    console.print(f"Agent command: {escape(' '.join(config.agent.command))}")
    console.print("[dim]No agent was invoked and no state was written.[/dim]")


def _report_iteration(console, record: IterationRecord, agent_result: AgentResult, verbose: bool):
    if record.passed:
        console.print(f"[green]✓ Iteration {record.iteration}:[/green] {escape(record.summary)}")
    else:
        console.print(f"[red]✗ Iteration {record.iteration}:[/red] {escape(record.summary)}")
        excerpt = record.excerpt.splitlines()[:EXCERPT_DISPLAY_LINES]
        for line in excerpt:
            console.print(f"    [dim]{escape(line)}[/dim]")

    if not verbose and agent_result.output:
        console.print("  [dim]Agent output (tail):[/dim]")
        for line in agent_result.output.splitlines()[-TAIL_DISPLAY_LINES:]:
            console.print(f"    [dim]{escape(line)}[/dim]")


def _report_outcome(console, run_state: RunState, storage: RunStorageManager):
    click.echo(f"\nRun {run_state.run_id}: {format_status(run_state.status)} "
               f"after {len(run_state.iterations)} iteration(s)")

    if run_state.status == RunStatus.SUCCESS:
        console.print("[green]✅ Verification passed and all tasks are complete.[/green]")
        return

    run_dir = storage.get_run_dir(run_state.run_id)
    if run_state.status == RunStatus.INTERRUPTED:
        console.print(f"[yellow]Interrupted. Resume with: ralph-loop run --resume {run_state.run_id}[/yellow]")
        sys.exit(EXIT_INTERRUPTED)

    console.print(f"[red]Stopped after reaching {run_state.max_iterations} iterations without success.[/red]")
    console.print("Investigate manually:")
    console.print(f"  Agent log:        {storage.agent_log_path(run_state.run_id)}")
    console.print(f"  Verification log: {storage.verification_log_path(run_state.run_id)}")
    console.print(f"  Run state:        {run_dir / RUN_FILE_NAME}")
    sys.exit(EXIT_EXHAUSTED)
