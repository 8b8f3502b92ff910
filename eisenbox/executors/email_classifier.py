"""Email classifier executor: asks the LLM for a raw classification record.

Stateless: receives the email and clients, returns the decoded JSON object
or None when classification failed. The record is NOT validated here;
eisenbox.router.validator does that.
"""

import json
import logging
from datetime import datetime

import httpx

from eisenbox.integrations.ollama import OllamaClient
from eisenbox.schemas.classification import ClassificationPayload
from eisenbox.schemas.email import EmailMessage
from eisenbox.schemas.policy import PolicyConfig

logger = logging.getLogger(__name__)

# Truncate email body sent to the LLM to stay within context limits.
MAX_BODY_CHARS = 3000

SYSTEM_PROMPT = """\
You are an email triage assistant that sorts a personal inbox using the \
Eisenhower Matrix.

For each email decide:
- **categories**: one or more life-area category KEYS from the list below.
- **ai_urgent** / **ai_important**: whether the email is urgent (needs \
attention within a day or two) and whether it matters to the recipient's goals.
- **is_spam_or_junk**: unsolicited junk, phishing or scams.
- **action_needed**: the recipient has to do something.
- **deadline**: any deadline mentioned, as written, or null.
- **estimated_time**: how long handling it takes, e.g. "15 minutes", "2 hours".
- **summary**: one or two sentences.
- **confidence**: 0.0-1.0.
- **calendar_scheduling**: if the email suggests a time to act, set \
suggested_time (ISO 8601 or phrases like "tomorrow 2pm") and is_ai_suggested. \
Set ignore_calendar_event_creation to true when the email is itself a \
calendar invitation or event notification.
- **task_creation**: only for notes the user sent to themselves. Give \
task_title, task_notes, task_due_date ("tomorrow", "next friday", YYYY-MM-DD) \
and task_priority ("high", "normal", "low").

## Categories

{categories}

## Rules

1. Use only the category keys listed above.
2. Be conservative with confidence scores.
3. Never mark spam as urgent or important.
4. Respond with a single JSON object and nothing else.
"""

USER_PROMPT = """\
Classify this email. Current time: {now}.

**From:** {from_address} ({from_name})
**To:** {to}
**Subject:** {subject}
**Date:** {date}
**Self-sent:** {self_sent}

**Body:**
{body}
"""


def _build_system_prompt(policy: PolicyConfig) -> str:
    lines = [
        f"- **{c.key}**: {c.display_name}" for c in policy.categories.values()
    ]
    return SYSTEM_PROMPT.format(categories="\n".join(lines))


def _build_user_prompt(email: EmailMessage, now: datetime) -> str:
    """Build the user prompt from an email message."""
    body = email.body_text or email.body_html or "(no body)"
    if len(body) > MAX_BODY_CHARS:
        body = body[:MAX_BODY_CHARS] + "\n\n[... content truncated ...]"

    return USER_PROMPT.format(
        now=now.isoformat(timespec="minutes"),
        from_address=email.from_address,
        from_name=email.from_name or "(unknown)",
        to=", ".join(email.to) if email.to else "(unknown)",
        subject=email.subject,
        date=email.date.isoformat() if email.date else "(unknown)",
        self_sent="yes" if email.is_self_sent else "no",
        body=body,
    )


async def classify_email(
    email: EmailMessage,
    *,
    ollama: OllamaClient,
    model: str,
    policy: PolicyConfig,
    now: datetime,
    keep_alive: str | None = None,
) -> dict | None:
    """Classify an email via the LLM.

    Args:
        email: The full email message to classify.
        ollama: An open OllamaClient instance.
        model: Ollama model name to use for inference.
        policy: Category policy; its keys are offered to the LLM.
        now: Reference time given to the LLM for relative dates.
        keep_alive: Ollama keep_alive parameter.

    Returns:
        The raw classification object, or None if the LLM call failed
        or did not return a JSON object.
    """
    logger.info("Classifying email: %s from %s", email.subject, email.from_address)

    try:
        data, _raw = await ollama.generate_json(
            model=model,
            system=_build_system_prompt(policy),
            prompt=_build_user_prompt(email, now),
            schema=ClassificationPayload.model_json_schema(),
            keep_alive=keep_alive,
        )
    except httpx.HTTPError:
        logger.exception("Classifier request failed for email %s", email.uid)
        return None
    except json.JSONDecodeError:
        logger.error("Classifier returned non-JSON output for email %s", email.uid)
        return None

    if not isinstance(data, dict):
        logger.error(
            "Classifier returned %s instead of an object for email %s",
            type(data).__name__,
            email.uid,
        )
        return None

    # Self-sent is a header fact, not something to leave to the model.
    if email.is_self_sent:
        data["is_self_sent"] = True

    logger.info(
        "Email %s: categories=%s urgent=%s important=%s spam=%s",
        email.uid,
        data.get("categories"),
        data.get("ai_urgent"),
        data.get("ai_important"),
        data.get("is_spam_or_junk"),
    )
    return data
