"""Schemas for triage outcomes, the audit log and the manual review queue."""

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field

from eisenbox.schemas.policy import QuadrantId


class ActionReport(BaseModel):
    """What the action engine did to one thread."""

    labels_added: list[str] = Field(default_factory=list)
    trashed: bool = False
    archived: bool = False
    marked_important: bool = False
    spam_short_circuit: bool = False
    calendar_event_id: str | None = None
    task_id: str | None = None

    def add_label(self, key: str) -> None:
        if key not in self.labels_added:
            self.labels_added.append(key)


class TriageOutcome(BaseModel):
    """Result of processing one email end to end."""

    uid: str
    quadrant: QuadrantId
    categories: list[str] = Field(default_factory=list)
    report: ActionReport


class TriageRunResult(BaseModel):
    """Pipeline result for a batch triage run."""

    account_email: str
    processed: int = 0
    skipped: int = 0
    manual_review: int = 0
    errors: int = 0
    by_priority: dict[str, int] = Field(default_factory=dict)  # quadrant -> count


# --- Audit ---


class TriageAuditEntry(BaseModel):
    """A record of what was done (or not) to one email."""

    timestamp: datetime
    action: Literal["triaged", "spam_trashed", "manual_review"]
    account_email: str
    uid: str
    subject: str
    from_address: str
    categories: list[str] = Field(default_factory=list)
    quadrant: QuadrantId | None = None
    labels_added: list[str] = Field(default_factory=list)
    trashed: bool = False
    archived: bool = False
    calendar_event_id: str | None = None
    task_id: str | None = None
    error: str | None = None


# --- Manual review ---


class ReviewStatus(StrEnum):
    """Status of an item in the manual review queue."""

    PENDING = "pending"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ManualReviewItem(BaseModel):
    """An email that could not be triaged automatically."""

    id: str = Field(description="Unique queue item ID")
    created_at: datetime
    uid: str
    account_email: str
    subject: str
    from_address: str
    reason: str
    raw_classification: dict | None = None
    status: ReviewStatus = ReviewStatus.PENDING
    resolved_at: datetime | None = None
    notes: str | None = None
