"""Schemas for calendar events and tasks created from email."""

from datetime import date, datetime

from pydantic import BaseModel, Field

from eisenbox.schemas.classification import TaskPriority


class CalendarEvent(BaseModel):
    """A calendar reminder created for an urgent, important email."""

    id: str
    title: str
    start: datetime
    end: datetime
    body: str = ""
    popup_minutes_before: list[int] = Field(default_factory=list)


class TaskRequest(BaseModel):
    """What the engine asks the task store to create."""

    title: str
    notes: str = ""
    due: date | None = None
    priority: TaskPriority = TaskPriority.NORMAL


class Task(BaseModel):
    """A task as stored by the task store."""

    id: str
    title: str
    notes: str = ""
    due: date | None = None
    priority_rank: int
    created_at: datetime
    completed: bool = False
