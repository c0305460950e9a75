"""Prompt builder for agent iterations.

Prompts are assembled from plain strings with no side effects, so the same
inputs always produce the same prompt. There are three shapes:

- planning: no task list exists yet (normally iteration 1)
- retry: the previous iteration failed
- continuation: the previous iteration passed but tasks remain
"""

from typing import Optional, Union

from ..models.run import FailureContext, FailureReason, VerificationMode
from .constants import COMPLETION_SENTINEL, ESCALATION_ITERATION
from .verification import checks_for_mode

TASK_SCHEMA = """\
[
  {
    "id": 1,
    "category": "feature",
    "description": "What must be true when this task is done",
    "passes": false
  }
]"""


def escalation_notice(iteration: int) -> Optional[str]:
    """Escalation text for an iteration, or None below the threshold."""
    if iteration < ESCALATION_ITERATION:
        return None
    return (
        f"## Escalation\n\n"
        f"This is attempt {iteration} and verification is still failing. Stop making "
        f"incremental changes. Step back, re-read the failing output from scratch and "
        f"reconsider the approach; if the current design cannot pass, replace it."
    )


class PromptBuilder:
    """Builds the instruction text sent to the agent for each iteration."""

    def __init__(self, task: str, plan_file: str, activity_file: str,
                 sentinel: str = COMPLETION_SENTINEL):
        """Initialize prompt builder.

        Args:
            task: The original task description
            plan_file: Path of the task list, as the agent should see it
            activity_file: Path of the activity log, as the agent should see it
            sentinel: Completion marker the agent prints when everything is done
        """
        self.task = task.strip()
        self.plan_file = plan_file
        self.activity_file = activity_file
        self.sentinel = sentinel

    def build(self, iteration: int, max_iterations: int,
              prior_failure: Optional[FailureContext],
              verification_mode: Union[VerificationMode, str],
              has_plan: bool = True) -> str:
        """Build the prompt for one iteration.

        Args:
            iteration: 1-based iteration number
            max_iterations: Iteration cap for the run
            prior_failure: Failure carried over from the previous iteration, or None
            verification_mode: Checks that decide whether the iteration passes
            has_plan: Whether a task list already exists

        Returns:
            The complete prompt text
        """
        sections = [self._header(iteration, max_iterations, verification_mode)]

        if not has_plan:
            sections.append(self._planning_block())
            if prior_failure is not None:
                sections.append(self._failure_block(prior_failure))
        elif prior_failure is not None:
            sections.append(self._retry_block(prior_failure))
        else:
            sections.append(self._continuation_block())

        if prior_failure is not None:
            notice = escalation_notice(iteration)
            if notice:
                sections.append(notice)

        sections.append(self._completion_block())
        return "\n\n".join(sections) + "\n"

    def _header(self, iteration: int, max_iterations: int,
                verification_mode: Union[VerificationMode, str]) -> str:
        mode = verification_mode.value if isinstance(verification_mode, VerificationMode) \
            else str(verification_mode)
        checks = ", ".join(checks_for_mode(verification_mode))
        return (
            f"# Iteration {iteration} of {max_iterations}\n\n"
            f"## Goal\n\n{self.task}\n\n"
            f"You are running inside an automated loop. You have no memory of earlier "
            f"iterations; everything you need is in `{self.plan_file}` (task list) and "
            f"`{self.activity_file}` (activity log).\n\n"
            f"After you finish, the driver runs verification mode `{mode}` ({checks}). "
            f"The iteration only counts if those checks pass."
        )

    def _planning_block(self) -> str:
        return (
            f"## Plan the work\n\n"
            f"No task list exists yet.\n\n"
            f"1. Gather context: read the relevant code, docs and tests before deciding anything.\n"
            f"2. Break the goal into small, independently verifiable tasks.\n"
            f"3. Write them to `{self.plan_file}` as a fenced ```json block using this schema "
            f"(ids are unique integers and never change):\n\n"
            f"```json\n{TASK_SCHEMA}\n```\n\n"
            f"4. Start on the first incomplete task. When it is done, set its `passes` to "
            f"true and append a short note to `{self.activity_file}`."
        )

    def _failure_block(self, failure: FailureContext) -> str:
        if failure.reason == FailureReason.AGENT:
            what = "The previous agent run did not finish cleanly"
        else:
            failed = ", ".join(failure.failed_checks) or "verification"
            what = f"Verification failed on the previous iteration ({failed})"

        block = f"## Previous attempt failed\n\n{what}."
        if failure.summary:
            block += f"\n\nSummary: {failure.summary}"
        if failure.excerpt:
            block += f"\n\n```\n{failure.excerpt}\n```"
        return block

    def _retry_block(self, failure: FailureContext) -> str:
        return (
            f"{self._failure_block(failure)}\n\n"
            f"## Fix it\n\n"
            f"1. Investigate before changing code: reproduce the failure and read the full "
            f"error output. Do not guess at fixes.\n"
            f"2. Find the root cause, fix it, and re-run the failing check yourself.\n"
            f"3. Only then continue with the next incomplete task in `{self.plan_file}`.\n"
            f"4. Append a note to `{self.activity_file}` describing the cause and the fix."
        )

    def _continuation_block(self) -> str:
        return (
            f"## Continue\n\n"
            f"1. Read `{self.plan_file}` and `{self.activity_file}`.\n"
            f"2. Pick exactly one task whose `passes` is false.\n"
            f"3. Complete it and make sure the checks pass.\n"
            f"4. Set that task's `passes` to true. Never set a task back to false.\n"
            f"5. Append a short note to `{self.activity_file}` saying what you did."
        )

    def _completion_block(self) -> str:
        return (
            f"## Completion\n\n"
            f"When every task in `{self.plan_file}` has `passes: true` and the checks pass, "
            f"print `{self.sentinel}` on its own line. Do not print it when only this "
            f"iteration's task is done."
        )
