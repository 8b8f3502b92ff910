"""CLI entry point for eisenbox.

Commands:
    eisenbox triage      -- classify and file unread email
    eisenbox stats       -- show (or clear) session statistics
    eisenbox review      -- list email waiting for manual review
    eisenbox resolve     -- mark a manual review item as handled
    eisenbox events      -- list upcoming reminder events
    eisenbox tasks       -- list (or complete) open tasks
    eisenbox labels      -- list the labels the policy can apply
    eisenbox parse-time  -- show how a time expression is understood
"""

import asyncio
import logging
import sys
from datetime import timedelta

import click

from eisenbox.config import (
    AUDIT_LOG_PATH,
    CALENDAR_DB_PATH,
    OLLAMA_BASE_URL,
    OLLAMA_KEEP_ALIVE,
    OLLAMA_MODEL,
    POLICY_PATH,
    REVIEW_DB_PATH,
    STATS_PATH,
    TASKS_DB_PATH,
    THROTTLE_SECONDS,
    TRIAGE_BATCH_LIMIT,
    load_email_accounts,
)

logger = logging.getLogger("eisenbox")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """eisenbox: Eisenhower Matrix triage for your inbox."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_policy_or_exit():
    from pydantic import ValidationError

    from eisenbox.policy import load_policy

    try:
        return load_policy(POLICY_PATH)
    except (ValidationError, ValueError) as e:
        click.echo(f"Error: Invalid policy file {POLICY_PATH}: {e}", err=True)
        sys.exit(1)


def _select_accounts(account: str | None) -> list:
    from pydantic import ValidationError

    from eisenbox.schemas.email import EmailAccountConfig

    raw_accounts = load_email_accounts()
    if not raw_accounts:
        click.echo("No email accounts configured.", err=True)
        sys.exit(1)

    try:
        accounts = [EmailAccountConfig.model_validate(a) for a in raw_accounts]
    except ValidationError as e:
        click.echo(f"Error: Invalid account configuration: {e}", err=True)
        sys.exit(1)

    if account:
        accounts = [
            a for a in accounts if account.lower() in (a.name.lower(), a.email.lower())
        ]
        if not accounts:
            click.echo(f"Error: No account named '{account}'.", err=True)
            sys.exit(1)
    return accounts


# ------------------------------------------------------------------
# eisenbox triage
# ------------------------------------------------------------------


@cli.command()
@click.option("--account", "-a", default=None, help="Account name or address (default: all).")
@click.option("--limit", "-n", default=TRIAGE_BATCH_LIMIT, show_default=True, help="Max emails per account.")
@click.option("--model", "-m", default=None, help="Ollama model name (auto-detected if omitted).")
@click.option("--keep-alive", default=OLLAMA_KEEP_ALIVE, show_default=True, help="Ollama keep_alive duration.")
@click.option("--throttle", default=THROTTLE_SECONDS, show_default=True, help="Seconds to pause between emails.")
def triage(account: str | None, limit: int, model: str | None, keep_alive: str, throttle: float) -> None:
    """Classify unread email and apply labels, archive, trash, reminders and tasks."""
    policy = _load_policy_or_exit()
    accounts = _select_accounts(account)
    ok = asyncio.run(
        _triage_async(accounts, policy, limit, model or OLLAMA_MODEL or None, keep_alive, throttle)
    )
    if not ok:
        sys.exit(1)


async def _triage_async(
    accounts: list,
    policy,
    limit: int,
    model: str | None,
    keep_alive: str,
    throttle: float,
) -> bool:
    from eisenbox.integrations.ollama import OllamaClient
    from eisenbox.orchestrator.pipeline import run_inbox_triage
    from eisenbox.router.actions import ActionEngine
    from eisenbox.stats import JsonStatisticsStore, StatisticsAccumulator
    from eisenbox.stores.calendar import SqliteCalendarStore
    from eisenbox.stores.tasks import SqliteTaskStore

    statistics = StatisticsAccumulator(JsonStatisticsStore(STATS_PATH), policy)

    async with OllamaClient(OLLAMA_BASE_URL, default_keep_alive=keep_alive) as ollama:
        if model is None:
            model = await ollama.pick_instruct_model()
            if model is None:
                click.echo("Error: No models available on Ollama server.", err=True)
                return False
            click.echo(f"Auto-selected model: {model}")

        with (
            SqliteCalendarStore(CALENDAR_DB_PATH) as calendar,
            SqliteTaskStore(TASKS_DB_PATH) as tasks,
        ):
            engine = ActionEngine(policy, calendar=calendar, tasks=tasks)
            for account_config in accounts:
                click.echo(f"\n=== {account_config.name} ({account_config.email}) ===")
                try:
                    result = await run_inbox_triage(
                        account_config=account_config,
                        ollama=ollama,
                        model=model,
                        policy=policy,
                        engine=engine,
                        statistics=statistics,
                        review_db_path=REVIEW_DB_PATH,
                        audit_log_path=AUDIT_LOG_PATH,
                        keep_alive=keep_alive,
                        limit=limit,
                        throttle_seconds=throttle,
                        on_progress=click.echo,
                    )
                except Exception:
                    logger.exception("Triage failed for %s", account_config.email)
                    click.echo("  ERROR: Account failed (see log for details)", err=True)
                    continue

                for quadrant, count in sorted(result.by_priority.items()):
                    click.echo(f"  {policy.quadrants[quadrant].display_name}: {count}")

    return True


# ------------------------------------------------------------------
# eisenbox stats
# ------------------------------------------------------------------


@cli.command()
@click.option("--clear", "clear_stats", is_flag=True, help="Reset the tally after showing it.")
def stats(clear_stats: bool) -> None:
    """Show session statistics."""
    from eisenbox.stats import JsonStatisticsStore, StatisticsAccumulator

    policy = _load_policy_or_exit()
    accumulator = StatisticsAccumulator(JsonStatisticsStore(STATS_PATH), policy)
    snapshot = accumulator.snapshot()

    click.echo("Session Statistics")
    if snapshot.session_started:
        click.echo(f"  Since:      {snapshot.session_started.isoformat(timespec='seconds')}")
    click.echo(f"  Processed:  {snapshot.processed}")

    if snapshot.by_priority:
        click.echo("\n  By priority:")
        for quadrant, quadrant_policy in policy.quadrants.items():
            count = snapshot.by_priority.get(quadrant.value, 0)
            if count:
                click.echo(f"    {quadrant_policy.display_name:<20} {count}")

    if snapshot.by_category:
        click.echo("\n  By category:")
        for name, count in sorted(snapshot.by_category.items(), key=lambda kv: -kv[1]):
            click.echo(f"    {name:<20} {count}")

    if clear_stats:
        accumulator.clear()
        click.echo("\nStatistics cleared.")


# ------------------------------------------------------------------
# eisenbox review / resolve
# ------------------------------------------------------------------


@cli.command()
@click.option("--all", "show_all", is_flag=True, help="Include resolved and dismissed items.")
@click.option("--account", "-a", default=None, help="Only pending items for this address.")
def review(show_all: bool, account: str | None) -> None:
    """List email waiting for manual review."""
    from eisenbox.queue.manual_review import ManualReviewQueue

    with ManualReviewQueue(REVIEW_DB_PATH) as queue:
        items = queue.list_all() if show_all else queue.list_pending(account)

    if not items:
        click.echo("No items awaiting review.")
        return

    for item in items:
        click.echo(
            f"{item.id}  [{item.status.value}]  {item.subject}\n"
            f"    from {item.from_address} ({item.account_email}, uid={item.uid})\n"
            f"    reason: {item.reason}"
        )


@cli.command()
@click.argument("item_id")
@click.option("--dismiss", is_flag=True, help="Dismiss instead of resolving.")
@click.option("--notes", default=None, help="Reviewer notes.")
def resolve(item_id: str, dismiss: bool, notes: str | None) -> None:
    """Mark a manual review item as resolved (or dismissed)."""
    from eisenbox.queue.manual_review import ManualReviewQueue

    with ManualReviewQueue(REVIEW_DB_PATH) as queue:
        try:
            if dismiss:
                item = queue.dismiss(item_id, notes=notes)
            else:
                item = queue.resolve(item_id, notes=notes)
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    click.echo(f"{item.id}: {item.status.value}")


# ------------------------------------------------------------------
# eisenbox events / tasks
# ------------------------------------------------------------------


@cli.command()
@click.option("--limit", "-n", default=20, show_default=True, help="Max events to show.")
def events(limit: int) -> None:
    """List upcoming reminder events created for urgent, important email."""
    from eisenbox.router.actions import local_now
    from eisenbox.stores.calendar import SqliteCalendarStore

    with SqliteCalendarStore(CALENDAR_DB_PATH) as calendar:
        upcoming = calendar.list_upcoming(local_now(), limit=limit)

    if not upcoming:
        click.echo("No upcoming events.")
        return

    for event in upcoming:
        start = event.start.astimezone()
        end = event.end.astimezone()
        click.echo(
            f"{start:%Y-%m-%d %H:%M}-{end:%H:%M}  {event.title}"
            + (f"  (reminder {event.popup_minutes_before[0]} min before)" if event.popup_minutes_before else "")
        )


@cli.command()
@click.option("--complete", "complete_id", default=None, help="Mark this task ID as done.")
def tasks(complete_id: str | None) -> None:
    """List open tasks created from self-sent email."""
    from eisenbox.stores.tasks import SqliteTaskStore

    with SqliteTaskStore(TASKS_DB_PATH) as store:
        if complete_id:
            try:
                task = store.complete(complete_id)
            except ValueError as e:
                click.echo(f"Error: {e}", err=True)
                sys.exit(1)
            click.echo(f"{task.id}: done")
            return

        open_tasks = store.list_open()

    if not open_tasks:
        click.echo("No open tasks.")
        return

    for task in open_tasks:
        due = f"  due {task.due.isoformat()}" if task.due else ""
        click.echo(f"{task.id}  [rank {task.priority_rank}]  {task.title}{due}")


# ------------------------------------------------------------------
# eisenbox labels
# ------------------------------------------------------------------


@cli.command()
def labels() -> None:
    """List every label the policy can apply, with colors."""
    from eisenbox.colors import resolve_color

    policy = _load_policy_or_exit()
    for spec in policy.all_labels():
        color = resolve_color(spec.color)
        click.echo(
            f"{spec.key:<26} {spec.display_name:<22} "
            f"{spec.color:<10} {color.background}/{color.text}"
        )


# ------------------------------------------------------------------
# eisenbox parse-time
# ------------------------------------------------------------------


@cli.command("parse-time")
@click.argument("text")
def parse_time(text: str) -> None:
    """Show how TEXT is read as a start time, a duration and a due date."""
    from eisenbox.router.actions import local_now
    from eisenbox.timeparse import parse_due_date, resolve_duration, resolve_scheduled_time

    now = local_now()
    start = resolve_scheduled_time(text, now)
    duration = resolve_duration(text)
    due = parse_due_date(text, now)

    click.echo(
        f"Scheduled:  {start.value.isoformat(timespec='minutes')}"
        + ("  (fallback)" if start.was_fallback else "")
    )
    click.echo(
        f"Duration:   {timedelta(milliseconds=duration.milliseconds)}"
        + ("  (fallback)" if duration.was_fallback else "")
    )
    click.echo(f"Due date:   {due.isoformat() if due else '(none)'}")
