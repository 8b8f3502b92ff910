"""Session statistics: a persisted tally of processed email.

The tally grows across invocations until something calls clear(); the
session boundary (e.g. "until the next report") belongs to the caller.
"""

import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from eisenbox.schemas.classification import SanitizedClassification
from eisenbox.schemas.policy import PolicyConfig
from eisenbox.schemas.statistics import SessionStatistics

logger = logging.getLogger(__name__)


class StatisticsStore(Protocol):
    def load(self) -> SessionStatistics: ...

    def save(self, stats: SessionStatistics) -> None: ...


class JsonStatisticsStore:
    """Statistics persisted to a JSON file with atomic writes.

    Usage::

        store = JsonStatisticsStore("data/stats.json")
        stats = store.load()
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> SessionStatistics:
        """Load statistics; a missing or unreadable file means an empty tally."""
        if not self._path.exists():
            return SessionStatistics()
        try:
            return SessionStatistics.model_validate(json.loads(self._path.read_text()))
        except (json.JSONDecodeError, ValidationError):
            logger.warning("Corrupt statistics file %s, starting a new tally", self._path)
            return SessionStatistics()

    def save(self, stats: SessionStatistics) -> None:
        """Atomic write: temp file + rename to prevent corruption."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(stats.model_dump(mode="json"), indent=2) + "\n"

        fd, tmp_path = tempfile.mkstemp(dir=str(self._path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            os.replace(tmp_path, str(self._path))
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class StatisticsAccumulator:
    """Running tally by category display name and by quadrant.

    Usage::

        stats = StatisticsAccumulator(JsonStatisticsStore(path), policy)
        stats.record(classification)
        print(stats.snapshot().processed)
    """

    def __init__(self, store: StatisticsStore, policy: PolicyConfig) -> None:
        self._store = store
        self._policy = policy
        self._stats = store.load()

    def record(self, classification: SanitizedClassification) -> None:
        """Count one processed email and persist the tally."""
        now = datetime.now(UTC)
        stats = self._stats
        stats.processed += 1

        for key in classification.categories:
            category = self._policy.lookup(key)
            name = category.display_name if category is not None else key
            stats.by_category[name] = stats.by_category.get(name, 0) + 1

        if classification.eisenhower_quadrant is not None:
            quadrant = classification.eisenhower_quadrant.value
            stats.by_priority[quadrant] = stats.by_priority.get(quadrant, 0) + 1
        else:
            logger.warning("Recording classification without a quadrant")

        if stats.session_started is None:
            stats.session_started = now
        stats.last_updated = now
        self._store.save(stats)

    def snapshot(self) -> SessionStatistics:
        """Read-only copy of the current tally."""
        return self._stats.model_copy(deep=True)

    def clear(self) -> None:
        """Reset the tally and persist the empty state."""
        self._stats = SessionStatistics()
        self._store.save(self._stats)
        logger.info("Session statistics cleared")
