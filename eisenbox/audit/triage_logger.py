"""Append-only audit log for triaged email.

Writes TriageAuditEntry records as JSON Lines (one JSON object per line).
The batch pipeline also uses it to skip email it has already handled.
"""

import logging
from datetime import UTC, datetime
from pathlib import Path

from eisenbox.schemas.email import EmailEnvelope
from eisenbox.schemas.triage import TriageAuditEntry, TriageOutcome

logger = logging.getLogger(__name__)


class TriageAuditLog:
    """Append-only JSONL audit log of triage outcomes.

    Usage::

        audit = TriageAuditLog("/path/to/triage_audit.jsonl")
        audit.log_outcome(email, outcome)

        entries = audit.read_entries(since=some_datetime)
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: TriageAuditEntry) -> None:
        """Append a single audit entry to the log file."""
        with self._path.open("a") as f:
            f.write(entry.model_dump_json() + "\n")
        logger.debug(
            "Triage audit: %s uid=%s subject=%s",
            entry.action,
            entry.uid,
            entry.subject,
        )

    def log_outcome(self, email: EmailEnvelope, outcome: TriageOutcome) -> TriageAuditEntry:
        """Log an email that went through the action engine."""
        report = outcome.report
        entry = TriageAuditEntry(
            timestamp=datetime.now(UTC),
            action="spam_trashed" if report.spam_short_circuit else "triaged",
            account_email=email.account_email,
            uid=email.uid,
            subject=email.subject,
            from_address=email.from_address,
            categories=outcome.categories,
            quadrant=outcome.quadrant,
            labels_added=report.labels_added,
            trashed=report.trashed,
            archived=report.archived,
            calendar_event_id=report.calendar_event_id,
            task_id=report.task_id,
        )
        self.log(entry)
        return entry

    def log_manual_review(self, email: EmailEnvelope, reason: str) -> TriageAuditEntry:
        """Log an email that was set aside for manual review."""
        entry = TriageAuditEntry(
            timestamp=datetime.now(UTC),
            action="manual_review",
            account_email=email.account_email,
            uid=email.uid,
            subject=email.subject,
            from_address=email.from_address,
            error=reason,
        )
        self.log(entry)
        return entry

    def read_entries(
        self,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[TriageAuditEntry]:
        """Read audit entries, optionally filtered by timestamp.

        Args:
            since: Only return entries after this timestamp.
            limit: Maximum number of entries to return (newest first after filtering).

        Returns:
            List of TriageAuditEntry objects, oldest first.
        """
        if not self._path.exists():
            return []

        entries: list[TriageAuditEntry] = []
        with self._path.open() as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                entry = TriageAuditEntry.model_validate_json(line)
                if since and entry.timestamp <= since:
                    continue
                entries.append(entry)

        if limit is not None:
            entries = entries[-limit:]

        return entries

    def processed_uids(self, account_email: str) -> set[str]:
        """UIDs of an account's email that already have an entry."""
        return {
            entry.uid
            for entry in self.read_entries()
            if entry.account_email == account_email
        }
