"""ralph-loop - Run a coding agent in a loop until verification passes."""

__version__ = "0.1.0"

# Export main CLI for convenience
from .cli.main import cli

__all__ = ['cli']
