"""Progress store: the task list and activity log shared with the agent."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import ValidationError

from ..models.task import Task, TaskList
from ..services.exceptions import StateWriteError
from ..utils.file_utils import append_text, atomic_write_text
from .constants import ACTIVITY_FILE_NAME, PLAN_FILE_NAME, PLAN_OWNER_FILE_NAME

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"```json\s*\n(.*?)```", re.DOTALL)

ACTIVITY_HEADER = "# Activity Log\n\n> Append-only. Newest entries at the bottom.\n"
PLAN_HEADER = (
    "# Plan\n\n"
    "Tasks for the current goal. Set `passes` to true once a task is done; "
    "never set it back to false.\n\n"
)


class ProgressStore:
    """Durable task list and activity log that survive agent invocations.

    Every agent invocation is a fresh process with no memory of earlier
    iterations, so everything the next iteration needs lives in these files.
    """

    def __init__(self, state_dir: Path):
        """Initialize progress store.

        Args:
            state_dir: Root directory for state files (normally .ralph)
        """
        self.state_dir = state_dir
        self.plan_file = state_dir / PLAN_FILE_NAME
        self.owner_file = state_dir / PLAN_OWNER_FILE_NAME
        self.activity_file = state_dir / ACTIVITY_FILE_NAME

    def initialize(self, run_id: str) -> None:
        """Create backing files if absent and claim the plan for ``run_id``.

        A plan left behind by a different run is moved aside so the new run
        starts from planning. The activity log is never truncated.

        Raises:
            StateWriteError: If the state directory cannot be written
        """
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StateWriteError(f"Cannot create {self.state_dir}: {e}") from e

        if not self.activity_file.exists():
            atomic_write_text(self.activity_file, ACTIVITY_HEADER)
        self.append_activity(f"Run {run_id} started")

        owner = self.plan_owner()
        if owner == run_id:
            return
        if self.plan_file.exists():
            archived = self._archive_plan(owner)
            self.append_activity(f"Plan from run {owner or 'unknown'} moved to {archived.name}")
        atomic_write_text(self.owner_file, run_id + "\n")

    def plan_owner(self) -> Optional[str]:
        """Run id the current plan belongs to, or None if unclaimed."""
        if not self.owner_file.exists():
            return None
        try:
            return self.owner_file.read_text().strip() or None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read {self.owner_file}: {e}")
            return None

    def _archive_plan(self, owner: Optional[str]) -> Path:
        stamp = datetime.now().strftime("%Y%m%d%H%M%S")
        target = self.state_dir / f"plan-{owner or 'unowned'}-{stamp}.md"
        try:
            self.plan_file.replace(target)
        except OSError as e:
            raise StateWriteError(f"Cannot move {self.plan_file} aside: {e}") from e
        logger.info(f"Moved plan of run {owner} to {target}")
        return target

    def read_tasks(self) -> Optional[List[Task]]:
        """Read the task list.

        Returns:
            List of tasks, or None if the plan is missing or cannot be parsed
        """
        if not self.plan_file.exists():
            return None

        try:
            content = self.plan_file.read_text()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read {self.plan_file}: {e}")
            return None

        match = _JSON_BLOCK.search(content)
        raw = match.group(1) if match else content

        try:
            data = json.loads(raw)
            if isinstance(data, dict):
                tasks = TaskList(**data).tasks
            else:
                tasks = [Task(**item) for item in data]
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            logger.warning(f"Ignoring corrupt plan file {self.plan_file}: {e}")
            return None

        ids = [task.id for task in tasks]
        if len(ids) != len(set(ids)):
            logger.warning(f"Ignoring plan file {self.plan_file}: duplicate task ids")
            return None

        return tasks

    def has_plan(self) -> bool:
        """True if a non-empty task list exists."""
        return bool(self.read_tasks())

    def all_tasks_complete(self) -> bool:
        """True iff a non-empty task list exists and every task passes."""
        tasks = self.read_tasks()
        if not tasks:
            return False
        return all(task.passes for task in tasks)

    def write_tasks(self, tasks: Iterable[Task]) -> None:
        """Atomically replace the task list."""
        payload = [task.model_dump() for task in tasks]
        content = PLAN_HEADER + "```json\n" + json.dumps(payload, indent=2) + "\n```\n"
        atomic_write_text(self.plan_file, content)

    def reconcile(self, previous: Optional[List[Task]]) -> List[int]:
        """Restore completion flags that were reverted since ``previous``.

        Args:
            previous: Task list read before the agent ran

        Returns:
            Ids of tasks whose completion flag was restored
        """
        if not previous:
            return []

        current = self.read_tasks()
        if current is None:
            return []

        completed_before = {task.id for task in previous if task.passes}
        restored = []
        reconciled = []
        for task in current:
            if task.id in completed_before and not task.passes:
                task = task.model_copy(update={"passes": True})
                restored.append(task.id)
            reconciled.append(task)

        if restored:
            logger.warning(f"Restoring completion flag for tasks: {restored}")
            self.write_tasks(reconciled)
        return restored

    def append_activity(self, text: str) -> None:
        """Append a timestamped note to the activity log."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        append_text(self.activity_file, f"\n[{timestamp}] {text.strip()}\n")
