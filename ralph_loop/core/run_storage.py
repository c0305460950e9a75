"""Run storage manager for persistent run records."""
import json
import logging
import uuid
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..models.run import RunState, VerificationMode
from ..services.exceptions import RunNotFoundError, StateError, StateWriteError
from ..utils.file_utils import atomic_write_text, tail_lines
from .constants import (
    AGENT_LOG_NAME,
    REGISTRY_FILE_NAME,
    RUN_FILE_NAME,
    RUNS_DIR_NAME,
    VERIFICATION_LOG_NAME,
)

logger = logging.getLogger(__name__)


class RunStorageManager:
    """Manages persistent storage of run state, logs and prompts."""

    def __init__(self, state_dir: Path):
        """Initialize run storage manager.

        Args:
            state_dir: The .ralph directory for the project
        """
        self.runs_dir = state_dir / RUNS_DIR_NAME
        self.registry_file = self.runs_dir / REGISTRY_FILE_NAME

    def _ensure_storage_structure(self) -> None:
        """Ensure the storage directory structure exists."""
        try:
            self.runs_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StateWriteError(f"Cannot create {self.runs_dir}: {e}") from e

        if not self.registry_file.exists():
            self._save_registry({})

    def _load_registry(self) -> dict:
        """Load the run registry from disk."""
        if not self.registry_file.exists():
            return {}
        try:
            with open(self.registry_file) as f:
                registry = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Run registry is corrupt, ignoring it: {e}")
            return {}
        if not isinstance(registry, dict):
            logger.warning("Run registry is corrupt, ignoring it: expected an object")
            return {}
        return registry

    def _save_registry(self, registry: dict) -> None:
        """Save the run registry to disk."""
        atomic_write_text(self.registry_file, json.dumps(registry, indent=2, sort_keys=True))

    def get_run_dir(self, run_id: str) -> Path:
        """Get the directory for a specific run."""
        return self.runs_dir / run_id

    def agent_log_path(self, run_id: str) -> Path:
        return self.get_run_dir(run_id) / AGENT_LOG_NAME

    def verification_log_path(self, run_id: str) -> Path:
        return self.get_run_dir(run_id) / VERIFICATION_LOG_NAME

    def create_run(self, task: str, max_iterations: int,
                   verification_mode: VerificationMode, budget: float) -> RunState:
        """Create and persist a new run.

        Args:
            task: The original task description
            max_iterations: Iteration cap for the run
            verification_mode: Checks that define a passing iteration
            budget: Per-iteration budget passed to the agent

        Returns:
            Created RunState instance
        """
        self._ensure_storage_structure()
        run = RunState(
            run_id=uuid.uuid4().hex[:12],
            task=task,
            max_iterations=max_iterations,
            verification_mode=verification_mode,
            budget=budget,
        )

        run_dir = self.get_run_dir(run.run_id)
        try:
            (run_dir / "prompts").mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StateWriteError(f"Cannot create {run_dir}: {e}") from e

        self.save_run(run)
        return run

    def save_run(self, run: RunState) -> None:
        """Persist run state and refresh its registry entry."""
        run_file = self.get_run_dir(run.run_id) / RUN_FILE_NAME
        atomic_write_text(run_file, run.model_dump_json(indent=2))

        registry = self._load_registry()
        registry[run.run_id] = {
            "task": run.task.split('\n')[0][:80],
            "status": run.status.value,
            "iterations": len(run.iterations),
            "started_at": run.started_at.isoformat(),
            "ended_at": run.ended_at.isoformat() if run.ended_at else None,
        }
        self._save_registry(registry)

    def get_run(self, run_id: str) -> Optional[RunState]:
        """Get run state by ID.

        Returns:
            RunState if found, None otherwise

        Raises:
            StateError: If the run file exists but cannot be parsed
        """
        run_file = self.get_run_dir(run_id) / RUN_FILE_NAME
        if not run_file.exists():
            return None
        try:
            return RunState.model_validate_json(run_file.read_text())
        except (ValidationError, UnicodeDecodeError) as e:
            raise StateError(f"Run file {run_file} is corrupt: {e}") from e

    def resolve_run(self, run_id_prefix: str) -> RunState:
        """Find a run by full ID or unique prefix.

        Raises:
            RunNotFoundError: If no run, or more than one run, matches
        """
        run = self.get_run(run_id_prefix)
        if run:
            return run

        matches = [rid for rid in self._load_registry() if rid.startswith(run_id_prefix)]
        if not matches:
            raise RunNotFoundError(f"Run '{run_id_prefix}' not found")
        if len(matches) > 1:
            raise RunNotFoundError(
                f"Run id '{run_id_prefix}' is ambiguous: {', '.join(sorted(matches))}"
            )
        run = self.get_run(matches[0])
        if run is None:
            raise RunNotFoundError(f"Run '{matches[0]}' is registered but has no run file")
        return run

    def list_runs(self, limit: Optional[int] = None) -> list[RunState]:
        """List stored runs, newest first."""
        runs = []
        for run_id in self._load_registry():
            try:
                run = self.get_run(run_id)
            except StateError as e:
                logger.warning(str(e))
                continue
            if run:
                runs.append(run)

        runs.sort(key=lambda r: r.started_at, reverse=True)
        if limit:
            runs = runs[:limit]
        return runs

    def latest_run(self) -> Optional[RunState]:
        runs = self.list_runs(limit=1)
        return runs[0] if runs else None

    def save_prompt(self, run_id: str, iteration: int, prompt: str) -> Path:
        """Save the prompt sent for an iteration."""
        prompt_file = self.get_run_dir(run_id) / "prompts" / f"iteration-{iteration:03d}.md"
        atomic_write_text(prompt_file, prompt)
        return prompt_file

    def get_log_tail(self, run_id: str, log_name: str, lines: int) -> list[str]:
        """Return the last lines of a run-scoped log file."""
        return tail_lines(self.get_run_dir(run_id) / log_name, lines)
