"""Deterministic action engine: sanitized classification -> thread side effects.

No LLM calls. The decision tree runs in a fixed order and returns early
for spam:

1. spam short-circuit (spam labels, trash, stop)
2. task creation for self-sent mail
3. category labels (with per-category trash policy)
4. quadrant label, priority actions, archive unless kept in inbox
5. requires-action / has-deadline labels

Calendar and task collaborators are best-effort: their failures are logged
and never abort the tree. Label failures propagate to the caller.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol

from eisenbox.router.quadrant import QuadrantResolver
from eisenbox.schemas.classification import SanitizedClassification
from eisenbox.schemas.planning import CalendarEvent, Task, TaskRequest
from eisenbox.schemas.policy import PolicyConfig, QuadrantId, SpecialLabel
from eisenbox.schemas.triage import ActionReport
from eisenbox.timeparse import parse_due_date, parse_duration, parse_scheduled_time

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_DELAY = timedelta(minutes=30)
POPUP_MINUTES_BEFORE = 5


class ThreadHandle(Protocol):
    """Mutable mail thread, as exposed by the mail store."""

    @property
    def subject(self) -> str: ...

    @property
    def permalink(self) -> str: ...

    def add_label(self, key: str) -> None: ...

    def move_to_trash(self) -> None: ...

    def move_to_archive(self) -> None: ...

    def mark_important(self) -> None: ...


class CalendarStore(Protocol):
    def create_event(
        self, title: str, start: datetime, end: datetime, body: str
    ) -> CalendarEvent: ...

    def add_popup_reminder(self, event: CalendarEvent, minutes_before: int) -> None: ...


class TaskStore(Protocol):
    def create_task(self, request: TaskRequest) -> Task: ...


def local_now() -> datetime:
    """Current time as an aware datetime in the local timezone."""
    return datetime.now().astimezone()


class ActionEngine:
    """Applies a sanitized classification to a thread.

    Usage::

        engine = ActionEngine(policy, calendar=calendar_store, tasks=task_store)
        report = engine.apply(thread, classification)
    """

    def __init__(
        self,
        policy: PolicyConfig,
        *,
        calendar: CalendarStore | None = None,
        tasks: TaskStore | None = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._policy = policy
        self._calendar = calendar
        self._tasks = tasks
        self._clock = clock
        self._resolver = QuadrantResolver(policy)

    @property
    def resolver(self) -> QuadrantResolver:
        return self._resolver

    def apply(
        self, thread: ThreadHandle, classification: SanitizedClassification
    ) -> ActionReport:
        """Run the decision tree against one thread.

        Returns:
            An ActionReport describing the side effects performed.
        """
        report = ActionReport()

        # 1. Spam short-circuit
        spam_keys = [
            key for key in classification.categories if self._policy.is_spam_category(key)
        ]
        if classification.is_spam_or_junk or spam_keys:
            for key in spam_keys:
                thread.add_label(key)
                report.add_label(key)
            thread.move_to_trash()
            report.trashed = True
            report.spam_short_circuit = True
            logger.info("Spam '%s' trashed (labels=%s)", thread.subject, spam_keys)
            return report

        # 2. Self-sent task creation
        task = classification.task_creation
        if classification.is_self_sent and task is not None and task.should_create_task:
            self._create_task(thread, classification, report)

        # 3. Category labels
        for key in classification.categories:
            if key in self._policy.categories:
                self._apply_label(thread, key, report)
            else:
                logger.warning("Unknown category '%s' skipped when labeling", key)

        # 4. Quadrant label + priority actions
        quadrant = classification.eisenhower_quadrant
        if quadrant is None:
            quadrant = self._resolver.resolve_classification(classification)
            logger.warning(
                "Classification for '%s' had no quadrant, resolved to %s",
                thread.subject,
                quadrant.value,
            )

        thread.add_label(quadrant.value)
        report.add_label(quadrant.value)

        if quadrant == QuadrantId.URGENT_IMPORTANT:
            self._mark_important(thread, report)
            self._schedule_reminder(thread, classification, quadrant, report)
        elif quadrant == QuadrantId.NOT_URGENT_IMPORTANT:
            self._mark_important(thread, report)
            self._apply_label(thread, SpecialLabel.TO_PLAN, report)
        elif quadrant == QuadrantId.URGENT_NOT_IMPORTANT:
            self._apply_label(thread, SpecialLabel.DELEGATE, report)
        elif not any(self._policy.is_spam_category(k) for k in classification.categories):
            self._apply_label(thread, SpecialLabel.SOMEDAY, report)

        if not self._policy.quadrants[quadrant].keep_in_inbox:
            thread.move_to_archive()
            report.archived = True

        # 5. Supplementary labels
        if classification.action_needed:
            self._apply_label(thread, SpecialLabel.REQUIRES_ACTION, report)
        if classification.deadline:
            self._apply_label(thread, SpecialLabel.HAS_DEADLINE, report)

        logger.info(
            "Applied %s to '%s': labels=%s archived=%s",
            quadrant.value,
            thread.subject,
            report.labels_added,
            report.archived,
        )
        return report

    # --- Steps ---

    def _apply_label(self, thread: ThreadHandle, key: str, report: ActionReport) -> None:
        """Add a label, then trash the thread if the label's category says so."""
        key = str(key)
        thread.add_label(key)
        report.add_label(key)

        category = self._policy.categories.get(key)
        if category is not None and category.move_to_trash and not report.trashed:
            thread.move_to_trash()
            report.trashed = True
            logger.info("Trashed '%s' per category policy %s", thread.subject, key)

    def _mark_important(self, thread: ThreadHandle, report: ActionReport) -> None:
        thread.mark_important()
        report.marked_important = True

    def _schedule_reminder(
        self,
        thread: ThreadHandle,
        classification: SanitizedClassification,
        quadrant: QuadrantId,
        report: ActionReport,
    ) -> None:
        scheduling = classification.calendar_scheduling
        if scheduling is not None and scheduling.ignore_calendar_event_creation:
            logger.info("Calendar reminder skipped for '%s' (already an event)", thread.subject)
            return
        if self._calendar is None:
            logger.debug("No calendar store configured, skipping reminder")
            return

        now = self._clock()
        if scheduling is not None and scheduling.is_ai_suggested and scheduling.suggested_time:
            start = parse_scheduled_time(scheduling.suggested_time, now)
        else:
            start = now + DEFAULT_REMINDER_DELAY
        end = start + timedelta(milliseconds=parse_duration(classification.estimated_time))

        try:
            subject = thread.subject
            event = self._calendar.create_event(
                f"Email: {subject}",
                start,
                end,
                self._reminder_body(thread, classification, quadrant),
            )
            self._calendar.add_popup_reminder(event, POPUP_MINUTES_BEFORE)
        except Exception:
            logger.exception("Failed to create calendar reminder for '%s'", thread.subject)
            return

        report.calendar_event_id = event.id
        logger.info("Calendar reminder %s at %s for '%s'", event.id, start.isoformat(), subject)

    def _reminder_body(
        self,
        thread: ThreadHandle,
        classification: SanitizedClassification,
        quadrant: QuadrantId,
    ) -> str:
        categories = [
            self._policy.categories[k].display_name
            for k in classification.categories
            if k in self._policy.categories
        ]
        lines = [
            classification.summary or "(no summary)",
            "",
            f"Priority: {self._policy.quadrants[quadrant].display_name}",
            f"Categories: {', '.join(categories) or '(none)'}",
        ]
        if classification.deadline:
            lines.append(f"Deadline: {classification.deadline}")
        if classification.estimated_time:
            lines.append(f"Estimated time: {classification.estimated_time}")
        lines.append(f"Confidence: {classification.confidence:.0%}")
        lines.append(f"Open: {thread.permalink}")
        return "\n".join(lines)

    def _create_task(
        self,
        thread: ThreadHandle,
        classification: SanitizedClassification,
        report: ActionReport,
    ) -> None:
        task = classification.task_creation
        if self._tasks is None:
            logger.warning("Task requested for '%s' but no task store configured", thread.subject)
            return

        try:
            notes = task.task_notes
            if thread.permalink:
                notes = f"{notes}\n\n{thread.permalink}".strip()
            request = TaskRequest(
                title=task.task_title or thread.subject,
                notes=notes,
                due=parse_due_date(task.task_due_date, self._clock()),
                priority=task.task_priority,
            )
            created = self._tasks.create_task(request)
        except Exception:
            logger.exception("Failed to create task for '%s'", thread.subject)
            return

        report.task_id = created.id
        logger.info("Created task %s '%s' (due=%s)", created.id, created.title, created.due)
