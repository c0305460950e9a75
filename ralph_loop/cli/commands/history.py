"""Run history command."""

import click

from ralph_loop.cli.helpers import ensure_state_dir, format_run_table, get_project_context

from ...core.run_storage import RunStorageManager


@click.command()
@click.option('--limit', '-n', type=int, default=10, help='Maximum number of runs to show')
@click.option('--state-dir', type=click.Path(file_okay=False),
              help='State directory (default: ./.ralph)')
def history(limit, state_dir):
    """Show past runs, newest first"""
    _, state_path = get_project_context(state_dir)
    ensure_state_dir(state_path)

    runs = RunStorageManager(state_path).list_runs(limit=limit)
    if not runs:
        click.echo("\nNo runs found")
        return

    click.echo(f"\n📋 Run history (showing up to {limit} runs):")
    click.echo(format_run_table(runs))
    click.echo(f"\nShowing {len(runs)} run(s)")

    status_counts = {}
    for run_state in runs:
        status_counts[run_state.status.value] = status_counts.get(run_state.status.value, 0) + 1

    if len(status_counts) > 1:
        click.echo("\nStatus breakdown:")
        for status_value, count in sorted(status_counts.items()):
            click.echo(f"  {status_value}: {count}")
