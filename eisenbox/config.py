"""Single source of truth for all configuration and secrets.

All modules import from here, never from os.environ directly.

Values come from secrets/internal.env (or secrets/internal.env.enc via SOPS
when EISENBOX_USE_SOPS=true); process environment variables of the same
name take precedence.
"""

import json
import os
from pathlib import Path

from eisenbox.secrets import load_dotenv_file, load_secrets, with_env_overrides

PROJECT_ROOT = Path(__file__).resolve().parent.parent

USE_SOPS = os.environ.get("EISENBOX_USE_SOPS", "false").lower() == "true"

_KEYS = (
    "OLLAMA_BASE_URL",
    "OLLAMA_MODEL",
    "OLLAMA_KEEP_ALIVE",
    "EMAIL_ACCOUNTS_PATH",
    "POLICY_PATH",
    "STATS_PATH",
    "AUDIT_LOG_PATH",
    "REVIEW_DB_PATH",
    "CALENDAR_DB_PATH",
    "TASKS_DB_PATH",
    "TRIAGE_BATCH_LIMIT",
    "THROTTLE_SECONDS",
)


def _load(scope: str) -> dict[str, str | None]:
    """Load secrets for a given scope (e.g. internal)."""
    if USE_SOPS:
        values = load_secrets(PROJECT_ROOT / f"secrets/{scope}.env.enc")
    else:
        values = load_dotenv_file(PROJECT_ROOT / f"secrets/{scope}.env")
    return with_env_overrides(values, _KEYS)


_internal = _load("internal")


def _get(key: str, default: str) -> str:
    return _internal.get(key) or default


_DATA = PROJECT_ROOT / "data"

# --- AI classifier ---
OLLAMA_BASE_URL: str = _get("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_MODEL: str = _get("OLLAMA_MODEL", "")
OLLAMA_KEEP_ALIVE: str = _get("OLLAMA_KEEP_ALIVE", "5m")

# --- Accounts & policy ---
EMAIL_ACCOUNTS_PATH: str = _get("EMAIL_ACCOUNTS_PATH", str(_DATA / "email_accounts.json"))
POLICY_PATH: str = _get("POLICY_PATH", str(_DATA / "policy.json"))

# --- Stores ---
STATS_PATH: str = _get("STATS_PATH", str(_DATA / "stats.json"))
AUDIT_LOG_PATH: str = _get("AUDIT_LOG_PATH", str(_DATA / "triage_audit.jsonl"))
REVIEW_DB_PATH: str = _get("REVIEW_DB_PATH", str(_DATA / "manual_review.db"))
CALENDAR_DB_PATH: str = _get("CALENDAR_DB_PATH", str(_DATA / "calendar.db"))
TASKS_DB_PATH: str = _get("TASKS_DB_PATH", str(_DATA / "tasks.db"))

# --- Batch driver ---
TRIAGE_BATCH_LIMIT: int = int(_get("TRIAGE_BATCH_LIMIT", "50"))
THROTTLE_SECONDS: float = float(_get("THROTTLE_SECONDS", "1.0"))


def load_email_accounts(path: str | Path | None = None) -> list[dict]:
    """Load the list of account objects from the accounts JSON file.

    A missing file means no accounts are configured.
    """
    path = Path(path or EMAIL_ACCOUNTS_PATH)
    if not path.exists():
        return []
    data = json.loads(path.read_text())
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of accounts")
    return data
