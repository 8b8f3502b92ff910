"""Triage pipeline: one email end to end, and the batch driver around it.

process_email is the synchronous core (validate -> resolve quadrant ->
apply actions -> record statistics). run_inbox_triage fetches unread mail,
classifies each message via the LLM and hands it to process_email one at a
time, setting aside anything that can't be triaged for manual review.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from eisenbox.audit.triage_logger import TriageAuditLog
from eisenbox.integrations.imap import ImapClient, ImapThread
from eisenbox.integrations.ollama import OllamaClient
from eisenbox.queue.manual_review import ManualReviewQueue
from eisenbox.router.actions import ActionEngine, ThreadHandle, local_now
from eisenbox.router.validator import ClassificationValidationError, validate_classification
from eisenbox.schemas.email import EmailAccountConfig, EmailMessage
from eisenbox.schemas.policy import PolicyConfig, SpecialLabel
from eisenbox.schemas.triage import TriageOutcome, TriageRunResult
from eisenbox.stats import StatisticsAccumulator

logger = logging.getLogger(__name__)


def process_email(
    thread: ThreadHandle,
    raw: object,
    *,
    uid: str = "",
    policy: PolicyConfig,
    engine: ActionEngine,
    statistics: StatisticsAccumulator,
) -> TriageOutcome:
    """Triage one email from its raw classification.

    Raises:
        ClassificationValidationError: If the raw record has no categories.
        Exception: Anything the mail store raises while labeling.
    """
    classification = validate_classification(raw, policy)
    quadrant = engine.resolver.resolve_classification(classification)
    classification = classification.model_copy(update={"eisenhower_quadrant": quadrant})

    report = engine.apply(thread, classification)
    statistics.record(classification)

    return TriageOutcome(
        uid=uid,
        quadrant=quadrant,
        categories=classification.categories,
        report=report,
    )


def _flag_for_review(thread: ImapThread) -> None:
    """Best-effort manual review label; the queue entry is what matters."""
    try:
        with thread:
            thread.add_label(SpecialLabel.MANUAL_REVIEW.value)
    except Exception:
        logger.exception("Could not add manual review label to email %s", thread.uid)


async def run_inbox_triage(
    *,
    account_config: EmailAccountConfig,
    ollama: OllamaClient,
    model: str,
    policy: PolicyConfig,
    engine: ActionEngine,
    statistics: StatisticsAccumulator,
    review_db_path: str,
    audit_log_path: str,
    keep_alive: str = "5m",
    limit: int = 50,
    throttle_seconds: float = 0.0,
    clock: Callable[[], datetime] = local_now,
    on_progress: Callable[[str], None] | None = None,
) -> TriageRunResult:
    """Triage unread emails in an account's inbox.

    Flow:
    1. Connect to IMAP, get-or-create label folders.
    2. Fetch unread emails, skipping UIDs already in the audit log.
    3. For each email: classify, then process_email in a worker thread.
    4. Failed classifications and processing errors go to manual review.

    Args:
        account_config: Email account configuration.
        ollama: An open OllamaClient instance.
        model: Ollama model name.
        policy: Category/quadrant policy.
        engine: Action engine (with calendar/task stores attached).
        statistics: Session statistics accumulator.
        review_db_path: Path to the manual review SQLite database.
        audit_log_path: Path to the triage audit log file.
        keep_alive: Ollama keep_alive duration.
        limit: Maximum emails to fetch.
        throttle_seconds: Pause between emails.
        clock: Source of the reference time given to the classifier.
        on_progress: Optional callback for progress messages.

    Returns:
        TriageRunResult with counts and quadrant breakdown.
    """
    from eisenbox.executors.email_classifier import classify_email

    def _emit(msg: str) -> None:
        if on_progress:
            on_progress(msg)

    audit_log = TriageAuditLog(audit_log_path)
    already_done = audit_log.processed_uids(account_config.email)

    processed = 0
    skipped = 0
    manual_review = 0
    errors = 0
    by_priority: dict[str, int] = {}

    async with ImapClient(account_config, policy) as imap:
        await imap.ensure_labels()

        _emit(f"Fetching emails from {account_config.inbox_folder}...")
        messages = await imap.fetch_messages(limit=limit)

        if not messages:
            _emit("No unread emails to process.")
            return TriageRunResult(account_email=account_config.email)

        _emit(f"Found {len(messages)} unread email(s). Processing...")

        def _triage(thread: ImapThread, raw: dict) -> TriageOutcome:
            with thread:
                return process_email(
                    thread,
                    raw,
                    uid=thread.uid,
                    policy=policy,
                    engine=engine,
                    statistics=statistics,
                )

        with ManualReviewQueue(review_db_path) as review_queue:

            async def _set_aside(email: EmailMessage, reason: str, raw: object) -> None:
                try:
                    await asyncio.to_thread(_flag_for_review, imap.thread(email))
                    review_queue.add(email, reason=reason, raw_classification=raw)
                    audit_log.log_manual_review(email, reason)
                except Exception:
                    logger.exception("Could not queue email %s for review", email.uid)
                    return
                _emit(f"  Manual review: {reason}")

            first = True
            for i, email in enumerate(messages, 1):
                if email.uid in already_done:
                    skipped += 1
                    continue

                if not first and throttle_seconds > 0:
                    await asyncio.sleep(throttle_seconds)
                first = False

                raw: dict | None = None
                try:
                    _emit(
                        f"\n[{i}/{len(messages)}] {email.subject}"
                        f"\n  From: {email.from_address}"
                    )

                    raw = await classify_email(
                        email,
                        ollama=ollama,
                        model=model,
                        policy=policy,
                        now=clock(),
                        keep_alive=keep_alive,
                    )
                    if raw is None:
                        manual_review += 1
                        await _set_aside(email, "classification failed", None)
                        continue

                    outcome = await asyncio.to_thread(_triage, imap.thread(email), raw)

                except ClassificationValidationError as e:
                    manual_review += 1
                    logger.warning("Invalid classification for email %s: %s", email.uid, e)
                    await _set_aside(email, f"invalid classification: {e}", raw)
                    continue

                except Exception as e:
                    errors += 1
                    logger.exception(
                        "Error processing email %s: %s", email.uid, email.subject
                    )
                    _emit("  ERROR: Failed to process (see log for details)")
                    await _set_aside(email, f"processing error: {e}", raw)
                    continue

                processed += 1
                quadrant = outcome.quadrant.value
                by_priority[quadrant] = by_priority.get(quadrant, 0) + 1
                audit_log.log_outcome(email, outcome)
                _emit(
                    f"  {policy.quadrants[outcome.quadrant].display_name} "
                    f"labels={outcome.report.labels_added}"
                    + (" (trashed)" if outcome.report.trashed else "")
                    + (" (archived)" if outcome.report.archived else "")
                )

    _emit(
        f"\nDone. Processed: {processed}, Skipped: {skipped}, "
        f"Manual review: {manual_review}, Errors: {errors}"
    )

    return TriageRunResult(
        account_email=account_config.email,
        processed=processed,
        skipped=skipped,
        manual_review=manual_review,
        errors=errors,
        by_priority=by_priority,
    )
