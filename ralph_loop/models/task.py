"""Task list data models."""

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class Task(BaseModel):
    """A single unit of work tracked across iterations.

    Agents may attach extra structured fields (e.g. ``test_type``); they are
    preserved verbatim when the plan is rewritten.
    """

    model_config = ConfigDict(extra="allow")

    id: int = Field(..., description="Unique, stable identifier within a run")
    category: str = Field("general", description="Free-form label")
    description: str
    passes: bool = Field(False, description="Completion flag, only moves false -> true")


class TaskList(BaseModel):
    """Wrapper used when the plan file stores an object instead of a bare list."""

    tasks: List[Task] = Field(default_factory=list)
