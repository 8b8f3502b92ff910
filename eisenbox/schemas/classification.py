"""Schemas for AI classification output.

Two views of the same record:
  ClassificationPayload     -- shape hint sent to the LLM as its JSON ``format``
  SanitizedClassification   -- validated, well-typed record consumed by the engine

The raw record itself is an untrusted ``dict``; see eisenbox.router.validator.
"""

from enum import StrEnum

from pydantic import BaseModel, Field

from eisenbox.schemas.policy import QuadrantId


class TaskPriority(StrEnum):
    """Priority for tasks created from self-sent email."""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class CalendarScheduling(BaseModel):
    suggested_time: str | None = None
    is_ai_suggested: bool = False
    ignore_calendar_event_creation: bool = False


class TaskCreation(BaseModel):
    should_create_task: bool = False
    task_title: str = ""
    task_notes: str = ""
    task_due_date: str | None = None
    task_priority: TaskPriority = TaskPriority.NORMAL


class ClassificationPayload(BaseModel):
    """JSON shape the LLM is asked to produce.

    Only used to build the ``format`` schema for Ollama. Responses are
    never validated against it: the model output is untrusted and goes
    through validate_classification instead.
    """

    categories: list[str]
    confidence: float
    is_spam_or_junk: bool
    is_self_sent: bool
    action_needed: bool
    deadline: str | None = None
    estimated_time: str | None = None
    summary: str
    ai_urgent: bool
    ai_important: bool
    calendar_scheduling: CalendarScheduling | None = None
    task_creation: TaskCreation | None = None


class SanitizedClassification(BaseModel):
    """Classification after validation, with the resolved quadrant attached."""

    categories: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    is_spam_or_junk: bool = False
    is_self_sent: bool = False
    action_needed: bool = False
    deadline: str | None = None
    estimated_time: str | None = None
    summary: str = ""
    ai_urgent: bool = False
    ai_important: bool = False
    calendar_scheduling: CalendarScheduling | None = None
    task_creation: TaskCreation | None = None
    eisenhower_quadrant: QuadrantId | None = None
