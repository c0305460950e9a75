"""Init command: write a default configuration file."""

import sys

import click

from ralph_loop.cli.helpers import get_project_context, print_table

from ...models.config import RalphConfig
from ...services.exceptions import StateWriteError
from ...utils.config_manager import ConfigManager
from ...utils.path_finder import PathFinder


@click.command()
@click.option('--force', is_flag=True, help='Overwrite an existing config.yml')
@click.option('--state-dir', type=click.Path(file_okay=False),
              help='State directory (default: ./.ralph)')
def init(force, state_dir):
    """Create .ralph/config.yml with defaults for this project"""
    project_root, state_path = get_project_context(state_dir)
    manager = ConfigManager(state_path, project_root)

    if manager.config_file.exists() and not force:
        click.echo(f"{manager.config_file} already exists. Use --force to overwrite.", err=True)
        sys.exit(1)

    config = RalphConfig(checks=manager.default_checks())
    try:
        manager.save_config(config)
    except StateWriteError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    project_type = PathFinder.detect_project_type(project_root)
    click.echo(f"✅ Wrote {manager.config_file} (project type: {project_type})\n")
    print_table(["CHECK", "COMMAND"],
                [[name, " ".join(argv)] for name, argv in config.checks.items()])

    agent = config.agent.command[0]
    if not PathFinder.find_executable(agent):
        click.echo(f"\n⚠️  Warning: agent executable '{agent}' was not found on PATH", err=True)
