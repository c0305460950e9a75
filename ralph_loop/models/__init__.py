"""Models for ralph-loop."""

from .config import AgentConfig, RalphConfig
from .run import (
    AgentResult,
    FailureContext,
    FailureReason,
    IterationRecord,
    RunState,
    RunStatus,
    VerificationMode,
    VerificationResult,
)
from .task import Task, TaskList

__all__ = [
    'AgentConfig',
    'RalphConfig',
    'AgentResult',
    'FailureContext',
    'FailureReason',
    'IterationRecord',
    'RunState',
    'RunStatus',
    'VerificationMode',
    'VerificationResult',
    'Task',
    'TaskList',
]
