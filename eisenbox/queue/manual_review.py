"""SQLite-backed queue of email that needs manual review.

Holds email whose classification failed or could not be validated, or
whose labels could not be applied. Uses stdlib sqlite3.
"""

import json
import logging
import sqlite3
import uuid
from datetime import UTC, datetime
from pathlib import Path

from eisenbox.schemas.email import EmailEnvelope
from eisenbox.schemas.triage import ManualReviewItem, ReviewStatus

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS manual_review_queue (
    id              TEXT PRIMARY KEY,
    created_at      TEXT NOT NULL,
    uid             TEXT NOT NULL,
    account_email   TEXT NOT NULL,
    subject         TEXT NOT NULL,
    from_address    TEXT NOT NULL,
    reason          TEXT NOT NULL,
    raw_json        TEXT,
    status          TEXT NOT NULL DEFAULT 'pending',
    resolved_at     TEXT,
    notes           TEXT
)
"""

_INSERT = """
INSERT INTO manual_review_queue
    (id, created_at, uid, account_email, subject, from_address, reason, raw_json, status)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_SELECT_BY_ID = "SELECT * FROM manual_review_queue WHERE id = ?"
_SELECT_PENDING = (
    "SELECT * FROM manual_review_queue WHERE status = 'pending' ORDER BY created_at ASC"
)
_SELECT_PENDING_FOR_ACCOUNT = (
    "SELECT * FROM manual_review_queue WHERE status = 'pending' AND account_email = ? "
    "ORDER BY created_at ASC"
)
_SELECT_PENDING_FOR_UID = (
    "SELECT * FROM manual_review_queue "
    "WHERE status = 'pending' AND account_email = ? AND uid = ?"
)
_UPDATE_REASON = "UPDATE manual_review_queue SET reason = ?, raw_json = ? WHERE id = ?"
_SELECT_ALL = "SELECT * FROM manual_review_queue ORDER BY created_at DESC LIMIT ?"

_UPDATE_STATUS = """
UPDATE manual_review_queue SET status = ?, resolved_at = ?, notes = ? WHERE id = ?
"""


def _row_to_item(row: sqlite3.Row) -> ManualReviewItem:
    """Convert a database row to a ManualReviewItem."""
    return ManualReviewItem(
        id=row["id"],
        created_at=datetime.fromisoformat(row["created_at"]),
        uid=row["uid"],
        account_email=row["account_email"],
        subject=row["subject"],
        from_address=row["from_address"],
        reason=row["reason"],
        raw_classification=json.loads(row["raw_json"]) if row["raw_json"] else None,
        status=ReviewStatus(row["status"]),
        resolved_at=(
            datetime.fromisoformat(row["resolved_at"]) if row["resolved_at"] else None
        ),
        notes=row["notes"],
    )


class ManualReviewQueue:
    """SQLite-backed queue of email awaiting a human decision.

    Usage::

        queue = ManualReviewQueue("/path/to/review.db")
        queue.add(email, reason="classification failed")

        for item in queue.list_pending():
            print(item.subject)

        queue.resolve(item_id, notes="Filed by hand")
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_CREATE_TABLE)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "ManualReviewQueue":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def add(
        self,
        email: EmailEnvelope,
        *,
        reason: str,
        raw_classification: object = None,
    ) -> ManualReviewItem:
        """Queue an email for manual review.

        An email already pending review keeps its single entry; its reason
        and raw classification are replaced with the latest ones.
        ``raw_classification`` is stored only if it is a JSON object.
        """
        raw = raw_classification if isinstance(raw_classification, dict) else None
        raw_json = json.dumps(raw, default=str) if raw is not None else None

        existing = self._conn.execute(
            _SELECT_PENDING_FOR_UID, (email.account_email, email.uid)
        ).fetchone()
        if existing is not None:
            self._conn.execute(_UPDATE_REASON, (reason, raw_json, existing["id"]))
            self._conn.commit()
            logger.info("Email %s already pending review (queue_id=%s)", email.uid, existing["id"])
            return self.get(existing["id"])

        item_id = str(uuid.uuid4())
        now = datetime.now(UTC)

        self._conn.execute(
            _INSERT,
            (
                item_id,
                now.isoformat(),
                email.uid,
                email.account_email,
                email.subject,
                email.from_address,
                reason,
                raw_json,
                ReviewStatus.PENDING.value,
            ),
        )
        self._conn.commit()

        logger.info(
            "Queued email %s for manual review (queue_id=%s, reason=%s)",
            email.uid,
            item_id,
            reason,
        )

        return ManualReviewItem(
            id=item_id,
            created_at=now,
            uid=email.uid,
            account_email=email.account_email,
            subject=email.subject,
            from_address=email.from_address,
            reason=reason,
            raw_classification=raw,
        )

    def get(self, item_id: str) -> ManualReviewItem | None:
        """Fetch a single queue item by ID."""
        row = self._conn.execute(_SELECT_BY_ID, (item_id,)).fetchone()
        if row is None:
            return None
        return _row_to_item(row)

    def list_pending(self, account_email: str | None = None) -> list[ManualReviewItem]:
        """List items awaiting review, oldest first, optionally for one account."""
        if account_email is None:
            rows = self._conn.execute(_SELECT_PENDING).fetchall()
        else:
            rows = self._conn.execute(_SELECT_PENDING_FOR_ACCOUNT, (account_email,)).fetchall()
        return [_row_to_item(r) for r in rows]

    def list_all(self, limit: int = 50) -> list[ManualReviewItem]:
        """List all items, newest first."""
        rows = self._conn.execute(_SELECT_ALL, (limit,)).fetchall()
        return [_row_to_item(r) for r in rows]

    def resolve(self, item_id: str, *, notes: str | None = None) -> ManualReviewItem:
        """Mark an item as handled.

        Raises:
            ValueError: If the item doesn't exist or isn't pending.
        """
        return self._set_status(item_id, ReviewStatus.RESOLVED, notes)

    def dismiss(self, item_id: str, *, notes: str | None = None) -> ManualReviewItem:
        """Drop an item without acting on it.

        Raises:
            ValueError: If the item doesn't exist or isn't pending.
        """
        return self._set_status(item_id, ReviewStatus.DISMISSED, notes)

    def count_pending(self) -> int:
        """Return the number of items awaiting review."""
        row = self._conn.execute(
            "SELECT COUNT(*) FROM manual_review_queue WHERE status = 'pending'"
        ).fetchone()
        return row[0]

    def _set_status(
        self,
        item_id: str,
        status: ReviewStatus,
        notes: str | None,
    ) -> ManualReviewItem:
        """Update the status of a queue item."""
        item = self.get(item_id)
        if item is None:
            raise ValueError(f"Queue item not found: {item_id}")
        if item.status != ReviewStatus.PENDING:
            raise ValueError(
                f"Cannot mark item {item_id} {status.value}: "
                f"current status is {item.status.value}"
            )

        now = datetime.now(UTC)
        self._conn.execute(_UPDATE_STATUS, (status.value, now.isoformat(), notes, item_id))
        self._conn.commit()

        logger.info("Manual review item %s: %s", item_id, status.value)

        item.status = status
        item.resolved_at = now
        item.notes = notes
        return item
