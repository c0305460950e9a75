"""Logs command."""

import click

from ralph_loop.cli.helpers import ensure_state_dir, get_project_context, resolve_run

from ...core.constants import AGENT_LOG_NAME, VERIFICATION_LOG_NAME
from ...core.run_storage import RunStorageManager


@click.command()
@click.argument('run_id', required=False)
@click.option('--verification', is_flag=True, help='Show the verification log instead of the agent log')
@click.option('--tail', '-n', 'tail', type=int, default=100, show_default=True,
              help='Number of lines to show (0 for all)')
@click.option('--state-dir', type=click.Path(file_okay=False),
              help='State directory (default: ./.ralph)')
def logs(run_id, verification, tail, state_dir):
    """Show the agent or verification log of a run"""
    _, state_path = get_project_context(state_dir)
    ensure_state_dir(state_path)

    storage = RunStorageManager(state_path)
    run_state = resolve_run(storage, run_id)

    log_name = VERIFICATION_LOG_NAME if verification else AGENT_LOG_NAME
    lines = storage.get_log_tail(run_state.run_id, log_name, tail)
    if not lines:
        click.echo(f"No {log_name} recorded for run {run_state.run_id}")
        return

    click.echo(f"==> {storage.get_run_dir(run_state.run_id) / log_name} <==")
    for line in lines:
        click.echo(line)
