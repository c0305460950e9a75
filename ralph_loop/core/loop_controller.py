"""Loop controller: drives iterations until success or exhaustion."""

import logging
from typing import Callable, Optional

from ..models.run import (
    AgentResult,
    FailureContext,
    FailureReason,
    IterationRecord,
    RunState,
    RunStatus,
    VerificationResult,
)
from .agent_invoker import AgentInvoker
from .constants import DEFAULT_EXCERPT_LINES, ESCALATION_ITERATION
from .progress_store import ProgressStore
from .prompt_builder import PromptBuilder
from .run_storage import RunStorageManager
from .verification import VerificationRunner

logger = logging.getLogger(__name__)

AGENT_CHECK_NAME = "agent"


class LoopController:
    """Runs prompt -> agent -> verify -> persist until the run terminates.

    A run succeeds only when verification passes and the work is complete,
    signalled either by the completion sentinel or by every task in the
    progress store passing. Passing verification with tasks remaining just
    continues. Reaching max_iterations without success exhausts the run.
    """

    def __init__(self, run_storage: RunStorageManager, progress_store: ProgressStore,
                 prompt_builder: PromptBuilder, agent_invoker: AgentInvoker,
                 verification_runner: VerificationRunner,
                 timeout: Optional[float] = None,
                 on_iteration_start: Optional[Callable[[int, int], None]] = None,
                 on_iteration_complete: Optional[Callable[[IterationRecord, AgentResult], None]] = None):
        self.run_storage = run_storage
        self.progress_store = progress_store
        self.prompt_builder = prompt_builder
        self.agent_invoker = agent_invoker
        self.verification_runner = verification_runner
        self.timeout = timeout
        self.on_iteration_start = on_iteration_start
        self.on_iteration_complete = on_iteration_complete

    def run(self, run: RunState) -> RunState:
        """Iterate until success, exhaustion or interruption.

        Works for new runs and for resumed ones: iteration numbering picks up
        after the last stored record, and the prior failure is rebuilt from it.

        Returns:
            The finalized RunState
        """
        self.progress_store.initialize(run.run_id)
        prior_failure = run.last_iteration.to_failure_context() if run.last_iteration else None

        run.status = RunStatus.RUNNING
        run.ended_at = None
        self.run_storage.save_run(run)

        try:
            while run.next_iteration <= run.max_iterations:
                record, complete = self._run_iteration(run, prior_failure)
                if complete:
                    run.finalize(RunStatus.SUCCESS)
                    self.run_storage.save_run(run)
                    self.progress_store.append_activity(
                        f"Run {run.run_id} succeeded after {record.iteration} iteration(s)"
                    )
                    logger.info(f"Run {run.run_id} succeeded at iteration {record.iteration}")
                    return run
                prior_failure = record.to_failure_context()
        except KeyboardInterrupt:
            # The in-flight iteration is discarded; stored state covers completed ones only
            logger.warning(f"Run {run.run_id} interrupted at iteration {run.next_iteration}")
            run.finalize(RunStatus.INTERRUPTED)
            self.run_storage.save_run(run)
            self.progress_store.append_activity(
                f"Run {run.run_id} interrupted during iteration {run.next_iteration}"
            )
            return run

        run.finalize(RunStatus.MAX_ITERATIONS_REACHED)
        self.run_storage.save_run(run)
        self.progress_store.append_activity(
            f"Run {run.run_id} stopped: reached {run.max_iterations} iterations without success"
        )
        logger.warning(f"Run {run.run_id} reached max iterations ({run.max_iterations})")
        return run

    def _run_iteration(self, run: RunState,
                       prior_failure: Optional[FailureContext]) -> tuple[IterationRecord, bool]:
        iteration = run.next_iteration
        if iteration == ESCALATION_ITERATION:
            logger.warning(
                f"Run {run.run_id} has not succeeded after {iteration - 1} iterations; "
                f"escalating prompt"
            )
        if self.on_iteration_start:
            self.on_iteration_start(iteration, run.max_iterations)

        previous_tasks = self.progress_store.read_tasks()
        prompt = self.prompt_builder.build(
            iteration,
            run.max_iterations,
            prior_failure,
            run.verification_mode,
            has_plan=bool(previous_tasks),
        )
        self.run_storage.save_prompt(run.run_id, iteration, prompt)

        agent_result = self.agent_invoker.invoke(prompt, run.budget, self.timeout)
        self.progress_store.reconcile(previous_tasks)

        if agent_result.exit_code != 0 or agent_result.timed_out:
            if agent_result.saw_completion_sentinel:
                logger.warning(
                    f"Agent printed the completion sentinel but exited with "
                    f"{agent_result.exit_code}; treating iteration {iteration} as failed"
                )
            verification = self._agent_failure(agent_result)
            failure_reason = FailureReason.AGENT
        else:
            verification = self.verification_runner.run(run.verification_mode)
            failure_reason = None if verification.passed else FailureReason.VERIFICATION

        all_complete = self.progress_store.all_tasks_complete()
        complete = verification.passed and (agent_result.saw_completion_sentinel or all_complete)

        record = IterationRecord(
            iteration=iteration,
            agent_exit_code=agent_result.exit_code,
            passed=verification.passed,
            failed_checks=verification.failed_checks,
            checks_run=verification.checks_run,
            failure_reason=failure_reason,
            saw_completion_sentinel=agent_result.saw_completion_sentinel,
            timed_out=agent_result.timed_out,
            summary=self._summarize(agent_result, verification, complete),
            excerpt=verification.diagnostic_excerpt,
        )
        run.append_iteration(record)
        self.progress_store.append_activity(f"Iteration {iteration}: {record.summary}")
        self.run_storage.save_run(run)

        if self.on_iteration_complete:
            self.on_iteration_complete(record, agent_result)
        return record, complete

    @staticmethod
    def _agent_failure(agent_result: AgentResult) -> VerificationResult:
        lines = [line for line in agent_result.output.splitlines() if line.strip()]
        excerpt = "\n".join(f"[{AGENT_CHECK_NAME}] {line}" for line in lines[-DEFAULT_EXCERPT_LINES:])
        return VerificationResult(
            passed=False,
            failed_checks=[AGENT_CHECK_NAME],
            diagnostic_excerpt=excerpt,
            checks_run=[],
        )

    def _summarize(self, agent_result: AgentResult, verification: VerificationResult,
                   complete: bool) -> str:
        if agent_result.timed_out:
            return f"agent timed out (exit {agent_result.exit_code}); checks skipped"
        if agent_result.exit_code != 0:
            return f"agent exited with {agent_result.exit_code}; checks skipped"
        if not verification.passed:
            return f"verification failed: {', '.join(verification.failed_checks)}"
        if complete:
            return "verification passed; all tasks complete"

        tasks = self.progress_store.read_tasks() or []
        done = sum(1 for task in tasks if task.passes)
        return f"verification passed; {done}/{len(tasks)} tasks complete"
