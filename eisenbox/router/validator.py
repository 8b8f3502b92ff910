"""Validation and sanitization of raw AI classification records.

The raw record comes straight from the LLM: any field may be missing or
have the wrong type. Only a missing/non-list ``categories`` is fatal;
everything else degrades to a safe default.
"""

import logging
from collections.abc import Mapping
from typing import Any

from eisenbox.schemas.classification import (
    CalendarScheduling,
    SanitizedClassification,
    TaskCreation,
    TaskPriority,
)
from eisenbox.schemas.policy import PolicyConfig

logger = logging.getLogger(__name__)

_TRUE_STRINGS = frozenset({"true", "yes", "1"})


class ClassificationValidationError(ValueError):
    """A raw classification record cannot be used."""


class MissingCategoriesError(ClassificationValidationError):
    """The record has no ``categories`` array."""


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def _as_optional_str(value: Any) -> str | None:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


def _as_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _as_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0.0
    if value != value:  # NaN
        return 0.0
    return min(max(float(value), 0.0), 1.0)


def _sanitize_calendar(value: Any) -> CalendarScheduling | None:
    if not isinstance(value, Mapping):
        return None
    return CalendarScheduling(
        suggested_time=_as_optional_str(value.get("suggested_time")),
        is_ai_suggested=_as_bool(value.get("is_ai_suggested")),
        ignore_calendar_event_creation=_as_bool(value.get("ignore_calendar_event_creation")),
    )


def _sanitize_task(value: Any) -> TaskCreation | None:
    if not isinstance(value, Mapping):
        return None
    raw_priority = _as_str(value.get("task_priority")).lower()
    try:
        priority = TaskPriority(raw_priority)
    except ValueError:
        priority = TaskPriority.NORMAL
    return TaskCreation(
        should_create_task=_as_bool(value.get("should_create_task")),
        task_title=_as_str(value.get("task_title")),
        task_notes=_as_str(value.get("task_notes")),
        task_due_date=_as_optional_str(value.get("task_due_date")),
        task_priority=priority,
    )


def _filter_categories(raw_categories: list, policy: PolicyConfig) -> list[str]:
    """Normalize category keys and keep only those the policy knows."""
    kept: list[str] = []
    for entry in raw_categories:
        if not isinstance(entry, str):
            continue
        key = entry.strip().upper()
        if key in policy.categories and key not in kept:
            kept.append(key)
    return kept


def validate_classification(raw: Any, policy: PolicyConfig) -> SanitizedClassification:
    """Validate and sanitize a raw classification record.

    Args:
        raw: The record returned by the AI classifier (untrusted).
        policy: Category policy used to filter category keys.

    Returns:
        A SanitizedClassification without a quadrant attached.

    Raises:
        MissingCategoriesError: If ``raw`` is not an object, or its
            ``categories`` field is absent or not a list.
    """
    if not isinstance(raw, Mapping):
        raise MissingCategoriesError(
            f"Classification is not an object: {type(raw).__name__}"
        )

    raw_categories = raw.get("categories")
    if not isinstance(raw_categories, list | tuple):
        raise MissingCategoriesError("Classification has no categories array")

    categories = _filter_categories(list(raw_categories), policy)
    if categories != list(raw_categories):
        logger.warning(
            "Filtered classification categories: %r -> %r",
            list(raw_categories),
            categories,
        )

    return SanitizedClassification(
        categories=categories,
        confidence=_as_confidence(raw.get("confidence")),
        is_spam_or_junk=_as_bool(raw.get("is_spam_or_junk")),
        is_self_sent=_as_bool(raw.get("is_self_sent")),
        action_needed=_as_bool(raw.get("action_needed")),
        deadline=_as_optional_str(raw.get("deadline")),
        estimated_time=_as_optional_str(raw.get("estimated_time")),
        summary=_as_str(raw.get("summary")),
        ai_urgent=_as_bool(raw.get("ai_urgent")),
        ai_important=_as_bool(raw.get("ai_important")),
        calendar_scheduling=_sanitize_calendar(raw.get("calendar_scheduling")),
        task_creation=_sanitize_task(raw.get("task_creation")),
    )
