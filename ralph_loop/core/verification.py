"""Verification runner: reduces check commands to a single verdict."""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from ..models.run import VerificationMode, VerificationResult
from ..services.command_runner import CommandResult, CommandRunner, CommandSpec
from ..services.exceptions import CommandError
from ..utils.file_utils import append_text
from .constants import (
    DEFAULT_CHECK_TIMEOUT,
    DEFAULT_EXCERPT_LINES,
    FAILURE_LINE_PATTERN,
    MODE_CHECKS,
)

logger = logging.getLogger(__name__)

_FAILURE_LINE = re.compile(FAILURE_LINE_PATTERN, re.IGNORECASE)


def checks_for_mode(mode: Union[VerificationMode, str]) -> List[str]:
    """Names of the checks a verification mode runs; unknown modes run "all"."""
    value = mode.value if isinstance(mode, VerificationMode) else str(mode)
    return list(MODE_CHECKS.get(value, MODE_CHECKS[VerificationMode.ALL.value]))


def extract_excerpt(name: str, output: str, max_lines: int) -> str:
    """Pick failure-looking lines from a check's output.

    Falls back to the last lines of output when nothing matches.
    """
    lines = [line.rstrip() for line in output.splitlines() if line.strip()]
    matching = [line for line in lines if _FAILURE_LINE.search(line)]
    selected = matching[:max_lines] if matching else lines[-max_lines:]
    if not selected:
        return f"[{name}] failed with no output"
    return "\n".join(f"[{name}] {line}" for line in selected)


class VerificationRunner:
    """Runs the configured check commands for a verification mode."""

    def __init__(self, checks: Dict[str, List[str]], log_path: Path,
                 command_runner: Optional[CommandRunner] = None,
                 check_timeout: Optional[int] = DEFAULT_CHECK_TIMEOUT,
                 excerpt_lines: int = DEFAULT_EXCERPT_LINES,
                 echo: Optional[Callable[[str], None]] = None):
        """Initialize verification runner.

        Args:
            checks: Map of check name to argv
            log_path: Run-scoped log receiving all raw check output
            command_runner: Runner used to execute the checks
            check_timeout: Per-check timeout in seconds
            excerpt_lines: Max excerpt lines kept per failing check
            echo: Optional callback for per-check progress lines
        """
        self.checks = checks
        self.log_path = log_path
        self.command_runner = command_runner or CommandRunner()
        self.check_timeout = check_timeout
        self.excerpt_lines = excerpt_lines
        self.echo = echo

    def _run_check(self, name: str) -> CommandResult:
        argv = self.checks.get(name)
        if not argv:
            return CommandResult(name=name, exit_code=-1,
                                 output=f"error: no command configured for check '{name}'\n")

        spec = CommandSpec(name=name, argv=list(argv), timeout=self.check_timeout)
        try:
            return self.command_runner.run(spec)
        except CommandError as e:
            # A missing tool is a failed check, not a fatal error
            logger.warning(str(e))
            return CommandResult(name=name, exit_code=-1, output=f"error: {e}\n", argv=list(argv))

    def _log(self, result: CommandResult) -> None:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        header = (f"\n===== [{timestamp}] {result.name}: {' '.join(result.argv)} "
                  f"(exit {result.exit_code}) =====\n")
        append_text(self.log_path, header + result.output)

    def run(self, mode: Union[VerificationMode, str]) -> VerificationResult:
        """Run every check selected by ``mode`` and reduce to one verdict."""
        failed = set()
        excerpts = []
        checks_run = []

        for name in checks_for_mode(mode):
            result = self._run_check(name)
            checks_run.append(name)
            self._log(result)

            if result.succeeded:
                if self.echo:
                    self.echo(f"  ✓ {name}")
                continue

            failed.add(name)
            excerpts.append(extract_excerpt(name, result.output, self.excerpt_lines))
            if self.echo:
                self.echo(f"  ✗ {name} (exit {result.exit_code})")

        return VerificationResult(
            passed=not failed,
            failed_checks=sorted(failed),
            diagnostic_excerpt="\n".join(excerpts),
            checks_run=checks_run,
        )
