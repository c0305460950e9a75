"""Custom exceptions for ralph-loop."""


class RalphError(Exception):
    """Base exception for all ralph-loop errors."""

    pass


class ConfigError(RalphError):
    """Exception raised for malformed or invalid configuration."""

    pass


class StateError(RalphError):
    """Exception raised for run state and progress store problems."""

    pass


class StateWriteError(StateError):
    """Exception raised when state files cannot be written."""

    pass


class RunNotFoundError(StateError):
    """Exception raised when a stored run cannot be found."""

    pass


class CommandError(RalphError):
    """Exception raised when an external command cannot be launched."""

    pass
