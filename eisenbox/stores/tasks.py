"""SQLite-backed task store for tasks created from self-sent email."""

import logging
import sqlite3
import uuid
from datetime import UTC, date, datetime
from pathlib import Path

from eisenbox.schemas.classification import TaskPriority
from eisenbox.schemas.planning import Task, TaskRequest

logger = logging.getLogger(__name__)

# Lower rank sorts first.
PRIORITY_RANKS: dict[TaskPriority, int] = {
    TaskPriority.HIGH: 1,
    TaskPriority.NORMAL: 5,
    TaskPriority.LOW: 9,
}

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS tasks (
    id              TEXT PRIMARY KEY,
    title           TEXT NOT NULL,
    notes           TEXT NOT NULL DEFAULT '',
    due             TEXT,
    priority_rank   INTEGER NOT NULL,
    created_at      TEXT NOT NULL,
    completed       INTEGER NOT NULL DEFAULT 0
)
"""

_INSERT = """
INSERT INTO tasks (id, title, notes, due, priority_rank, created_at)
VALUES (?, ?, ?, ?, ?, ?)
"""

_SELECT_BY_ID = "SELECT * FROM tasks WHERE id = ?"
_SELECT_OPEN = (
    "SELECT * FROM tasks WHERE completed = 0 "
    "ORDER BY priority_rank ASC, due IS NULL, due ASC, created_at ASC"
)
_COMPLETE = "UPDATE tasks SET completed = 1 WHERE id = ?"


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=row["id"],
        title=row["title"],
        notes=row["notes"],
        due=date.fromisoformat(row["due"]) if row["due"] else None,
        priority_rank=row["priority_rank"],
        created_at=datetime.fromisoformat(row["created_at"]),
        completed=bool(row["completed"]),
    )


class SqliteTaskStore:
    """Local task list.

    Usage::

        with SqliteTaskStore("data/tasks.db") as tasks:
            task = tasks.create_task(TaskRequest(title="Renew passport"))
            for t in tasks.list_open():
                print(t.title)
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_CREATE_TABLE)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SqliteTaskStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def create_task(self, request: TaskRequest) -> Task:
        """Create a task.

        Raises:
            ValueError: If the request has no title.
        """
        if not request.title.strip():
            raise ValueError("Task title must not be empty")

        task = Task(
            id=str(uuid.uuid4()),
            title=request.title.strip(),
            notes=request.notes,
            due=request.due,
            priority_rank=PRIORITY_RANKS[request.priority],
            created_at=datetime.now(UTC),
        )
        self._conn.execute(
            _INSERT,
            (
                task.id,
                task.title,
                task.notes,
                task.due.isoformat() if task.due else None,
                task.priority_rank,
                task.created_at.isoformat(),
            ),
        )
        self._conn.commit()
        logger.info("Created task %s: %s (rank=%d)", task.id, task.title, task.priority_rank)
        return task

    def get(self, task_id: str) -> Task | None:
        row = self._conn.execute(_SELECT_BY_ID, (task_id,)).fetchone()
        if row is None:
            return None
        return _row_to_task(row)

    def list_open(self) -> list[Task]:
        """Open tasks, highest priority first, then by due date."""
        rows = self._conn.execute(_SELECT_OPEN).fetchall()
        return [_row_to_task(r) for r in rows]

    def complete(self, task_id: str) -> Task:
        """Mark a task as done.

        Raises:
            ValueError: If the task doesn't exist.
        """
        task = self.get(task_id)
        if task is None:
            raise ValueError(f"Task not found: {task_id}")
        self._conn.execute(_COMPLETE, (task_id,))
        self._conn.commit()
        task.completed = True
        return task
