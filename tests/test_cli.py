"""Tests for the eisenbox CLI entry point.

Uses Click's CliRunner so no real IMAP/Ollama connections are required.
"""

import json
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from eisenbox.cli import cli
from eisenbox.queue.manual_review import ManualReviewQueue
from eisenbox.schemas.classification import TaskPriority
from eisenbox.schemas.email import EmailEnvelope
from eisenbox.schemas.planning import TaskRequest
from eisenbox.schemas.statistics import SessionStatistics
from eisenbox.schemas.triage import ReviewStatus, TriageRunResult
from eisenbox.stats import JsonStatisticsStore
from eisenbox.stores.calendar import SqliteCalendarStore
from eisenbox.stores.tasks import SqliteTaskStore

_RUN_TRIAGE_PATH = "eisenbox.orchestrator.pipeline.run_inbox_triage"
_OLLAMA_PATH = "eisenbox.integrations.ollama.OllamaClient"

SAMPLE_ACCOUNTS = [
    {
        "name": "Personal",
        "server": "imap.example.com",
        "email": "me@example.com",
        "password": "secret",
    },
    {
        "name": "Work",
        "server": "imap.gmail.com",
        "email": "me@work.com",
        "password": "secret2",
        "is_gmail": True,
    },
]


# --- Fixtures ---


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def data_paths(tmp_path, monkeypatch):
    """Point every store the CLI touches at tmp_path."""
    paths = {
        "POLICY_PATH": tmp_path / "policy.json",
        "STATS_PATH": tmp_path / "stats.json",
        "REVIEW_DB_PATH": tmp_path / "review.db",
        "AUDIT_LOG_PATH": tmp_path / "audit.jsonl",
        "CALENDAR_DB_PATH": tmp_path / "calendar.db",
        "TASKS_DB_PATH": tmp_path / "tasks.db",
    }
    for name, path in paths.items():
        monkeypatch.setattr(f"eisenbox.cli.{name}", str(path))
    monkeypatch.setattr("eisenbox.cli.OLLAMA_MODEL", "")
    return paths


def _mock_ollama_cls(model: str | None = "qwen2.5:7b-instruct"):
    mock_ollama = AsyncMock()
    mock_ollama.pick_instruct_model = AsyncMock(return_value=model)
    mock_cls = MagicMock()
    mock_cls.return_value.__aenter__ = AsyncMock(return_value=mock_ollama)
    mock_cls.return_value.__aexit__ = AsyncMock(return_value=False)
    return mock_cls


def _make_email(uid: str = "42") -> EmailEnvelope:
    return EmailEnvelope(
        uid=uid,
        account_email="me@example.com",
        from_address="sender@example.com",
        subject="Unclassifiable",
        date=datetime(2025, 6, 1, tzinfo=timezone.utc),
    )


# --- eisenbox triage ---


class TestTriage:
    def test_no_accounts(self, runner, monkeypatch):
        monkeypatch.setattr("eisenbox.cli.load_email_accounts", lambda: [])
        result = runner.invoke(cli, ["triage"])
        assert result.exit_code == 1
        assert "No email accounts configured" in result.output

    def test_invalid_account(self, runner, monkeypatch):
        monkeypatch.setattr("eisenbox.cli.load_email_accounts", lambda: [{"name": "x"}])
        result = runner.invoke(cli, ["triage"])
        assert result.exit_code == 1
        assert "Invalid account configuration" in result.output

    def test_unknown_account_name(self, runner, monkeypatch):
        monkeypatch.setattr("eisenbox.cli.load_email_accounts", lambda: SAMPLE_ACCOUNTS)
        result = runner.invoke(cli, ["triage", "--account", "Holiday"])
        assert result.exit_code == 1
        assert "No account named 'Holiday'" in result.output

    def test_runs_each_account(self, runner, monkeypatch):
        monkeypatch.setattr("eisenbox.cli.load_email_accounts", lambda: SAMPLE_ACCOUNTS)
        mock_run = AsyncMock(
            side_effect=lambda **kw: TriageRunResult(
                account_email=kw["account_config"].email,
                processed=1,
                by_priority={"URGENT_IMPORTANT": 1},
            )
        )

        with patch(_OLLAMA_PATH, _mock_ollama_cls()), patch(_RUN_TRIAGE_PATH, mock_run):
            result = runner.invoke(cli, ["triage", "-n", "5", "--throttle", "0"])

        assert result.exit_code == 0, result.output
        assert "Auto-selected model: qwen2.5:7b-instruct" in result.output
        assert "=== Personal (me@example.com) ===" in result.output
        assert "=== Work (me@work.com) ===" in result.output
        assert "Q1: Do Now: 1" in result.output
        assert mock_run.await_count == 2
        kwargs = mock_run.call_args.kwargs
        assert kwargs["limit"] == 5
        assert kwargs["throttle_seconds"] == 0
        assert kwargs["model"] == "qwen2.5:7b-instruct"

    def test_account_filter_and_explicit_model(self, runner, monkeypatch):
        monkeypatch.setattr("eisenbox.cli.load_email_accounts", lambda: SAMPLE_ACCOUNTS)
        mock_run = AsyncMock(return_value=TriageRunResult(account_email="me@work.com"))
        ollama_cls = _mock_ollama_cls()

        with patch(_OLLAMA_PATH, ollama_cls), patch(_RUN_TRIAGE_PATH, mock_run):
            result = runner.invoke(cli, ["triage", "-a", "work", "-m", "llama3"])

        assert result.exit_code == 0, result.output
        assert mock_run.await_count == 1
        assert mock_run.call_args.kwargs["model"] == "llama3"
        assert mock_run.call_args.kwargs["account_config"].email == "me@work.com"

    def test_no_model_available(self, runner, monkeypatch):
        monkeypatch.setattr("eisenbox.cli.load_email_accounts", lambda: SAMPLE_ACCOUNTS)

        with patch(_OLLAMA_PATH, _mock_ollama_cls(model=None)):
            result = runner.invoke(cli, ["triage"])

        assert result.exit_code == 1
        assert "No models available" in result.output

    def test_account_failure_does_not_stop_batch(self, runner, monkeypatch):
        monkeypatch.setattr("eisenbox.cli.load_email_accounts", lambda: SAMPLE_ACCOUNTS)
        mock_run = AsyncMock(
            side_effect=[ConnectionError("login refused"), TriageRunResult(account_email="me@work.com")]
        )

        with patch(_OLLAMA_PATH, _mock_ollama_cls()), patch(_RUN_TRIAGE_PATH, mock_run):
            result = runner.invoke(cli, ["triage", "-m", "llama3"])

        assert result.exit_code == 0
        assert "Account failed" in result.output
        assert mock_run.await_count == 2

    def test_invalid_policy_file(self, runner, data_paths):
        data_paths["POLICY_PATH"].write_text(json.dumps({"spam_categories": ["NOPE"]}))
        result = runner.invoke(cli, ["triage"])
        assert result.exit_code == 1
        assert "Invalid policy file" in result.output


# --- eisenbox stats ---


class TestStats:
    def test_empty(self, runner):
        result = runner.invoke(cli, ["stats"])
        assert result.exit_code == 0
        assert "Processed:  0" in result.output

    def test_shows_and_clears(self, runner, data_paths):
        store = JsonStatisticsStore(data_paths["STATS_PATH"])
        store.save(
            SessionStatistics(
                processed=3,
                by_category={"Family": 2, "Work": 1},
                by_priority={"NOT_URGENT_IMPORTANT": 3},
                session_started=datetime(2025, 6, 1, tzinfo=timezone.utc),
            )
        )

        result = runner.invoke(cli, ["stats", "--clear"])

        assert result.exit_code == 0, result.output
        assert "Processed:  3" in result.output
        assert "Q2: Schedule" in result.output
        assert "Family" in result.output
        assert "Statistics cleared." in result.output
        assert store.load().processed == 0


# --- eisenbox review / resolve ---


class TestReview:
    def test_no_pending(self, runner):
        result = runner.invoke(cli, ["review"])
        assert result.exit_code == 0
        assert "No items awaiting review" in result.output

    def test_lists_pending(self, runner, data_paths):
        with ManualReviewQueue(data_paths["REVIEW_DB_PATH"]) as queue:
            item = queue.add(_make_email(), reason="classification failed")

        result = runner.invoke(cli, ["review"])

        assert result.exit_code == 0
        assert item.id in result.output
        assert "Unclassifiable" in result.output
        assert "classification failed" in result.output

    def test_resolve(self, runner, data_paths):
        with ManualReviewQueue(data_paths["REVIEW_DB_PATH"]) as queue:
            item = queue.add(_make_email(), reason="classification failed")

        result = runner.invoke(cli, ["resolve", item.id, "--notes", "filed"])

        assert result.exit_code == 0
        assert f"{item.id}: resolved" in result.output
        with ManualReviewQueue(data_paths["REVIEW_DB_PATH"]) as queue:
            stored = queue.get(item.id)
        assert stored.status == ReviewStatus.RESOLVED
        assert stored.notes == "filed"

    def test_dismiss(self, runner, data_paths):
        with ManualReviewQueue(data_paths["REVIEW_DB_PATH"]) as queue:
            item = queue.add(_make_email(), reason="x")

        result = runner.invoke(cli, ["resolve", item.id, "--dismiss"])

        assert result.exit_code == 0
        assert "dismissed" in result.output

    def test_resolve_missing(self, runner):
        result = runner.invoke(cli, ["resolve", "nope"])
        assert result.exit_code == 1
        assert "not found" in result.output


# --- eisenbox events / tasks ---


class TestEvents:
    def test_none(self, runner):
        result = runner.invoke(cli, ["events"])
        assert result.exit_code == 0
        assert "No upcoming events" in result.output

    def test_lists_only_upcoming(self, runner, data_paths):
        soon = datetime.now(timezone.utc) + timedelta(days=1)
        past = datetime.now(timezone.utc) - timedelta(days=1)
        with SqliteCalendarStore(data_paths["CALENDAR_DB_PATH"]) as calendar:
            event = calendar.create_event("Email: Server down", soon, soon + timedelta(minutes=30), "")
            calendar.add_popup_reminder(event, 5)
            calendar.create_event("Email: Old news", past, past, "")

        result = runner.invoke(cli, ["events"])

        assert result.exit_code == 0, result.output
        assert "Email: Server down" in result.output
        assert "reminder 5 min before" in result.output
        assert "Old news" not in result.output


class TestTasks:
    def test_none(self, runner):
        result = runner.invoke(cli, ["tasks"])
        assert result.exit_code == 0
        assert "No open tasks" in result.output

    def test_list_and_complete(self, runner, data_paths):
        with SqliteTaskStore(data_paths["TASKS_DB_PATH"]) as store:
            task = store.create_task(
                TaskRequest(title="Renew passport", due=date(2025, 7, 1), priority=TaskPriority.HIGH)
            )

        listed = runner.invoke(cli, ["tasks"])
        assert listed.exit_code == 0, listed.output
        assert "Renew passport" in listed.output
        assert "due 2025-07-01" in listed.output

        done = runner.invoke(cli, ["tasks", "--complete", task.id])
        assert done.exit_code == 0
        assert f"{task.id}: done" in done.output
        assert "No open tasks" in runner.invoke(cli, ["tasks"]).output

    def test_complete_missing(self, runner):
        result = runner.invoke(cli, ["tasks", "--complete", "nope"])
        assert result.exit_code == 1
        assert "not found" in result.output


# --- eisenbox labels / parse-time ---


def test_labels_lists_every_label(runner):
    result = runner.invoke(cli, ["labels"])
    assert result.exit_code == 0
    assert "Security Alerts" in result.output
    assert "Q4: Eliminate" in result.output
    assert "Someday/Maybe" in result.output
    assert "#fb4c2f/#ffffff" in result.output


def test_parse_time(runner):
    result = runner.invoke(cli, ["parse-time", "2 hours"])
    assert result.exit_code == 0
    assert "Duration:   2:00:00" in result.output
    assert "Scheduled:" in result.output
    assert "(fallback)" in result.output
