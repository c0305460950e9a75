"""Run state data models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RunStatus(str, Enum):
    """Overall status of a loop execution."""
    RUNNING = "running"
    SUCCESS = "success"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    INTERRUPTED = "interrupted"


class VerificationMode(str, Enum):
    """Which external checks make up a passing verification."""
    TESTS = "tests"
    LINT = "lint"
    TYPECHECK = "typecheck"
    BUILD = "build"
    QUICK = "quick"
    ALL = "all"


class FailureReason(str, Enum):
    AGENT = "agent"
    VERIFICATION = "verification"


class VerificationResult(BaseModel):
    """Single verdict reduced from one or more check commands."""
    passed: bool
    failed_checks: List[str] = Field(default_factory=list)
    diagnostic_excerpt: str = ""
    checks_run: List[str] = Field(default_factory=list)


class AgentResult(BaseModel):
    """Outcome of one agent invocation."""
    exit_code: int
    output: str = ""
    saw_completion_sentinel: bool = False
    timed_out: bool = False


class FailureContext(BaseModel):
    """Failure details carried into the next iteration's prompt."""
    reason: FailureReason
    failed_checks: List[str] = Field(default_factory=list)
    summary: str = ""
    excerpt: str = ""


class IterationRecord(BaseModel):
    """Immutable outcome of a single pass through the loop."""

    model_config = ConfigDict(frozen=True)

    iteration: int = Field(..., ge=1)
    agent_exit_code: int
    passed: bool
    failed_checks: List[str] = Field(default_factory=list)
    checks_run: List[str] = Field(default_factory=list)
    failure_reason: Optional[FailureReason] = None
    saw_completion_sentinel: bool = False
    timed_out: bool = False
    summary: str = ""
    excerpt: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)

    def to_failure_context(self) -> Optional[FailureContext]:
        """Rebuild the failure context this record implies, if any."""
        if self.failure_reason is None:
            return None
        return FailureContext(
            reason=self.failure_reason,
            failed_checks=list(self.failed_checks),
            summary=self.summary,
            excerpt=self.excerpt,
        )


class RunState(BaseModel):
    """State of one loop execution, owned exclusively by that execution."""

    run_id: str
    task: str
    max_iterations: int = Field(..., ge=1)
    verification_mode: VerificationMode = VerificationMode.ALL
    budget: float = Field(..., gt=0)
    iterations: List[IterationRecord] = Field(default_factory=list)
    status: RunStatus = RunStatus.RUNNING
    started_at: datetime = Field(default_factory=datetime.now)
    ended_at: Optional[datetime] = None

    @property
    def next_iteration(self) -> int:
        return len(self.iterations) + 1

    @property
    def last_iteration(self) -> Optional[IterationRecord]:
        return self.iterations[-1] if self.iterations else None

    def append_iteration(self, record: IterationRecord) -> None:
        """Append a record, keeping iteration numbers exactly 1..k."""
        if record.iteration != self.next_iteration:
            raise ValueError(
                f"Expected iteration {self.next_iteration}, got {record.iteration}"
            )
        if record.iteration > self.max_iterations:
            raise ValueError(
                f"Iteration {record.iteration} exceeds max_iterations={self.max_iterations}"
            )
        self.iterations.append(record)

    def finalize(self, status: RunStatus) -> None:
        self.status = status
        self.ended_at = datetime.now()
