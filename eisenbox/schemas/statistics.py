"""Schema for the persisted session statistics tally."""

from datetime import datetime

from pydantic import BaseModel, Field


class SessionStatistics(BaseModel):
    """Running tally of processed email, kept until explicitly cleared."""

    processed: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)  # display name -> count
    by_priority: dict[str, int] = Field(default_factory=dict)  # quadrant id -> count
    session_started: datetime | None = None
    last_updated: datetime | None = None
