"""Main CLI entry point for ralph-loop."""

import click

from .commands.run import run
from .commands.status import status
from .commands.history import history
from .commands.logs import logs
from .commands.init import init


@click.group()
@click.version_option(package_name='ralph-loop')
def cli():
    """ralph-loop - Run a coding agent in a loop until verification passes"""
    pass


# Register commands
cli.add_command(run)
cli.add_command(status)
cli.add_command(history)
cli.add_command(logs)
cli.add_command(init)


if __name__ == '__main__':
    cli()
