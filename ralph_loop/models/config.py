"""Configuration models for ralph-loop."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..core.constants import (
    COMPLETION_SENTINEL,
    DEFAULT_AGENT_COMMAND,
    DEFAULT_BUDGET_FLAG,
    DEFAULT_CHECK_TIMEOUT,
    DEFAULT_EXCERPT_LINES,
    DEFAULT_OUTPUT_TAIL_LINES,
)


class AgentConfig(BaseModel):
    """How to launch the external agent."""

    command: List[str] = Field(default_factory=lambda: list(DEFAULT_AGENT_COMMAND))
    budget_flag: Optional[str] = DEFAULT_BUDGET_FLAG
    output_tail_lines: int = Field(DEFAULT_OUTPUT_TAIL_LINES, ge=1)

    @field_validator("command")
    @classmethod
    def _command_not_empty(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("agent command must not be empty")
        return value


class RalphConfig(BaseModel):
    """Project configuration, usually loaded from ``.ralph/config.yml``."""

    agent: AgentConfig = Field(default_factory=AgentConfig)
    checks: Dict[str, List[str]] = Field(default_factory=dict)
    check_timeout: Optional[int] = Field(DEFAULT_CHECK_TIMEOUT, ge=1)
    excerpt_lines: int = Field(DEFAULT_EXCERPT_LINES, ge=1)
    completion_sentinel: str = Field(COMPLETION_SENTINEL, min_length=1)

    def to_yaml_dict(self) -> dict:
        """Convert to the layout written to config.yml."""
        return self.model_dump(mode="json")
