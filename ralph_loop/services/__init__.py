"""Service layer for running external commands."""

from .command_runner import CommandResult, CommandRunner, CommandSpec
from .exceptions import (
    RalphError,
    ConfigError,
    StateError,
    StateWriteError,
    RunNotFoundError,
    CommandError,
)

__all__ = [
    "CommandResult",
    "CommandRunner",
    "CommandSpec",
    "RalphError",
    "ConfigError",
    "StateError",
    "StateWriteError",
    "RunNotFoundError",
    "CommandError",
]
