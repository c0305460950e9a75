"""Status command."""

import click

from ralph_loop.cli.helpers import (
    ensure_state_dir,
    format_iteration_table,
    format_status,
    get_project_context,
    resolve_run,
)

from ...core.progress_store import ProgressStore
from ...core.run_storage import RunStorageManager


@click.command()
@click.argument('run_id', required=False)
@click.option('--state-dir', type=click.Path(file_okay=False),
              help='State directory (default: ./.ralph)')
def status(run_id, state_dir):
    """Show details of a run (the latest run by default)"""
    _, state_path = get_project_context(state_dir)
    ensure_state_dir(state_path)

    storage = RunStorageManager(state_path)
    run_state = resolve_run(storage, run_id)

    click.echo("\n" + "=" * 80)
    click.echo(f"Run Details: {run_state.run_id}")
    click.echo("=" * 80)

    click.echo("\n📋 Basic Information:")
    click.echo(f"   Status: {format_status(run_state.status)}")
    click.echo(f"   Mode: {run_state.verification_mode.value}")
    click.echo(f"   Iterations: {len(run_state.iterations)}/{run_state.max_iterations}")
    click.echo(f"   Budget per iteration: ${run_state.budget:.2f}")
    click.echo(f"   Started: {run_state.started_at.strftime('%Y-%m-%d %H:%M:%S')}")
    if run_state.ended_at:
        click.echo(f"   Ended: {run_state.ended_at.strftime('%Y-%m-%d %H:%M:%S')}")

    click.echo("\n📄 Task:")
    for line in run_state.task.split('\n'):
        click.echo(f"   {line}")

    store = ProgressStore(state_path)
    # The plan on disk belongs to whichever run last claimed it
    tasks = store.read_tasks() if store.plan_owner() == run_state.run_id else None
    if tasks:
        done = sum(1 for t in tasks if t.passes)
        click.echo(f"\n✅ Plan: {done}/{len(tasks)} tasks complete")
        for t in tasks:
            mark = click.style("✓", fg='green') if t.passes else " "
            click.echo(f"   [{mark}] {t.id}. ({t.category}) {t.description}")
    else:
        click.echo("\n✅ Plan: none yet")

    if run_state.iterations:
        click.echo("\n🔁 Iterations:")
        click.echo(format_iteration_table(run_state.iterations))
