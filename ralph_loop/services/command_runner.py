"""Controlled execution of external commands."""

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import CommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandSpec:
    """A typed command: an argument list, never a shell string."""
    name: str
    argv: List[str]
    cwd: Optional[Path] = None
    env: Optional[Dict[str, str]] = None
    timeout: Optional[int] = None

    def display(self) -> str:
        return " ".join(self.argv)


@dataclass
class CommandResult:
    """Result of running a CommandSpec to completion."""
    name: str
    exit_code: int
    output: str = ""
    timed_out: bool = False
    argv: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


class CommandRunner:
    """Runs CommandSpecs with proper error handling."""

    def __init__(self, default_cwd: Optional[Path] = None):
        """Initialize command runner.

        Args:
            default_cwd: Working directory for specs that do not set one
        """
        self.default_cwd = default_cwd or Path.cwd()

    def run(self, spec: CommandSpec) -> CommandResult:
        """Run a command to completion, capturing stdout and stderr together.

        Args:
            spec: Command to run

        Returns:
            CommandResult with exit code and combined output

        Raises:
            CommandError: If the command cannot be launched at all
        """
        if not spec.argv:
            raise CommandError(f"Command '{spec.name}' has no arguments")

        try:
            result = subprocess.run(
                spec.argv,
                cwd=spec.cwd or self.default_cwd,
                env=spec.env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                timeout=spec.timeout,
            )
        except subprocess.TimeoutExpired as e:
            output = e.output or ""
            if isinstance(output, bytes):
                output = output.decode("utf-8", errors="replace")
            logger.warning(f"Command '{spec.name}' timed out after {spec.timeout}s")
            return CommandResult(
                name=spec.name,
                exit_code=-1,
                output=output + f"\nerror: timed out after {spec.timeout}s\n",
                timed_out=True,
                argv=list(spec.argv),
            )
        except OSError as e:
            raise CommandError(f"Failed to launch '{spec.display()}': {e}") from e

        logger.info(f"Command '{spec.name}' exited with {result.returncode}")
        return CommandResult(
            name=spec.name,
            exit_code=result.returncode,
            output=result.stdout or "",
            argv=list(spec.argv),
        )
