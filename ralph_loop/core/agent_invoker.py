"""Agent invocation: runs the external coding agent as a subprocess."""

import logging
import subprocess
import threading
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from ..models.run import AgentResult
from ..services.exceptions import StateWriteError
from .completion import CompletionDetector, SentinelDetector
from .constants import (
    AGENT_LAUNCH_FAILURE_EXIT_CODE,
    DEFAULT_BUDGET_FLAG,
    DEFAULT_OUTPUT_TAIL_LINES,
)

logger = logging.getLogger(__name__)


class AgentInvoker:
    """Launches the agent once per iteration and captures its output."""

    def __init__(self, command: List[str], log_path: Path,
                 budget_flag: Optional[str] = DEFAULT_BUDGET_FLAG,
                 detector: Optional[CompletionDetector] = None,
                 tail_lines: int = DEFAULT_OUTPUT_TAIL_LINES,
                 cwd: Optional[Path] = None,
                 echo: Optional[Callable[[str], None]] = None):
        """Initialize agent invoker.

        Args:
            command: Agent argv; the prompt is written to its stdin
            log_path: Append-only log receiving the full output
            budget_flag: Flag the agent uses for its budget cap, or None
            detector: Completion detector (sentinel substring by default)
            tail_lines: Number of trailing output lines kept in memory
            cwd: Working directory for the agent process
            echo: Optional callback receiving each output line live
        """
        self.command = list(command)
        self.log_path = log_path
        self.budget_flag = budget_flag
        self.detector = detector or SentinelDetector()
        self.tail_lines = tail_lines
        self.cwd = cwd
        self.echo = echo

    def build_command(self, budget: float) -> List[str]:
        """Agent argv for one invocation."""
        cmd = list(self.command)
        if self.budget_flag:
            cmd.extend([self.budget_flag, f"{budget:.2f}"])
        return cmd

    def invoke(self, prompt: str, budget: float, timeout: Optional[float] = None) -> AgentResult:
        """Run the agent to completion.

        Args:
            prompt: Instruction text for this iteration
            budget: Monetary budget cap for the invocation
            timeout: Optional wall-clock limit in seconds; the process is killed on expiry

        Returns:
            AgentResult with exit code, output tail and completion flag
        """
        cmd = self.build_command(budget)
        tail = deque(maxlen=self.tail_lines)
        saw_sentinel = False
        timed_out = threading.Event()

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            log_file = open(self.log_path, 'a')
        except OSError as e:
            raise StateWriteError(f"Cannot open agent log {self.log_path}: {e}") from e

        with log_file:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            log_file.write(f"\n===== [{timestamp}] {' '.join(cmd)} =====\n")

            try:
                process = subprocess.Popen(
                    cmd,
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    text=True,
                    errors="replace",
                    cwd=self.cwd,
                )
            except OSError as e:
                message = f"Failed to launch agent '{cmd[0]}': {e}"
                logger.error(message)
                log_file.write(message + "\n")
                return AgentResult(exit_code=AGENT_LAUNCH_FAILURE_EXIT_CODE, output=message)

            def _kill():
                timed_out.set()
                logger.warning(f"Agent exceeded {timeout}s timeout, killing it")
                process.kill()

            timer = threading.Timer(timeout, _kill) if timeout else None
            if timer:
                timer.daemon = True
                timer.start()

            try:
                try:
                    process.stdin.write(prompt)
                    process.stdin.close()
                except BrokenPipeError:
                    logger.warning("Agent closed stdin before reading the full prompt")

                for line in process.stdout:
                    log_file.write(line)
                    tail.append(line.rstrip("\n"))
                    if not saw_sentinel and self.detector.check_line(line):
                        saw_sentinel = True
                    if self.echo:
                        self.echo(line.rstrip("\n"))

                exit_code = process.wait()
            finally:
                if timer:
                    timer.cancel()
                if process.poll() is None:
                    process.kill()
                    process.wait()

            log_file.write(f"===== exit code {exit_code} =====\n")

        return AgentResult(
            exit_code=exit_code,
            output="\n".join(tail),
            saw_completion_sentinel=saw_sentinel,
            timed_out=timed_out.is_set(),
        )
