"""Default category/quadrant policy and JSON policy loading.

The defaults cover the life-area categories the classifier prompt offers.
A JSON file with the same shape as PolicyConfig replaces any table it
names; tables it omits keep their defaults.
"""

import json
import logging
from pathlib import Path

from eisenbox.schemas.policy import (
    CategoryPolicy,
    LabelSpec,
    PolicyConfig,
    QuadrantId,
    QuadrantPolicy,
    SpecialLabel,
)

logger = logging.getLogger(__name__)


def _category(
    key: str,
    display_name: str,
    color: str,
    *,
    urgent: bool = False,
    important: bool = False,
    trash: bool = False,
) -> CategoryPolicy:
    return CategoryPolicy(
        key=key,
        display_name=display_name,
        is_urgent=urgent,
        is_important=important,
        move_to_trash=trash,
        color=color,
    )


DEFAULT_CATEGORIES: dict[str, CategoryPolicy] = {
    c.key: c
    for c in (
        _category("FAMILY", "Family", "pink", important=True),
        _category("FRIENDS", "Friends", "purple"),
        _category("WORK", "Work", "blue", important=True),
        _category("FINANCE", "Finance", "green", important=True),
        _category("HEALTH", "Health", "red", important=True),
        _category("HOME", "Home", "brown"),
        _category("EDUCATION", "Education", "teal"),
        _category("TRAVEL", "Travel", "light_blue"),
        _category("SHOPPING", "Shopping", "orange"),
        _category("LEGAL", "Legal & Government", "dark_red", important=True),
        _category("SECURITY", "Security Alerts", "red", urgent=True, important=True),
        _category("APPOINTMENTS", "Appointments", "yellow", urgent=True),
        _category("PERSONAL_REMINDER", "Personal Reminders", "yellow"),
        _category("SOCIAL", "Social", "purple"),
        _category("NEWSLETTERS", "Newsletters", "gray"),
        _category("PROMOTIONS", "Promotions", "gray"),
        _category("SPAM", "Spam", "dark_red", trash=True),
    )
}

DEFAULT_SPAM_CATEGORIES: frozenset[str] = frozenset({"SPAM"})

DEFAULT_QUADRANTS: dict[QuadrantId, QuadrantPolicy] = {
    QuadrantId.URGENT_IMPORTANT: QuadrantPolicy(
        display_name="Q1: Do Now", keep_in_inbox=True, color="red"
    ),
    QuadrantId.NOT_URGENT_IMPORTANT: QuadrantPolicy(
        display_name="Q2: Schedule", keep_in_inbox=True, color="orange"
    ),
    QuadrantId.URGENT_NOT_IMPORTANT: QuadrantPolicy(
        display_name="Q3: Delegate", keep_in_inbox=False, color="yellow"
    ),
    QuadrantId.NOT_URGENT_NOT_IMPORTANT: QuadrantPolicy(
        display_name="Q4: Eliminate", keep_in_inbox=False, color="gray"
    ),
}

DEFAULT_SPECIAL_LABELS: dict[SpecialLabel, LabelSpec] = {
    SpecialLabel.TO_PLAN: LabelSpec(key="TO_PLAN", display_name="To Plan", color="orange"),
    SpecialLabel.DELEGATE: LabelSpec(key="DELEGATE", display_name="Delegate", color="yellow"),
    SpecialLabel.SOMEDAY: LabelSpec(key="SOMEDAY", display_name="Someday/Maybe", color="gray"),
    SpecialLabel.REQUIRES_ACTION: LabelSpec(
        key="REQUIRES_ACTION", display_name="Requires Action", color="red"
    ),
    SpecialLabel.HAS_DEADLINE: LabelSpec(
        key="HAS_DEADLINE", display_name="Has Deadline", color="dark_red"
    ),
    SpecialLabel.MANUAL_REVIEW: LabelSpec(
        key="MANUAL_REVIEW", display_name="Manual Review", color="purple"
    ),
}


def default_policy() -> PolicyConfig:
    return PolicyConfig(
        categories=DEFAULT_CATEGORIES,
        quadrants=DEFAULT_QUADRANTS,
        spam_categories=DEFAULT_SPAM_CATEGORIES,
        special_labels=DEFAULT_SPECIAL_LABELS,
    )


def load_policy(path: str | Path | None) -> PolicyConfig:
    """Load policy from a JSON file, falling back to defaults.

    Raises:
        pydantic.ValidationError: If the file describes an invalid policy.
        json.JSONDecodeError: If the file is not valid JSON.
    """
    if not path:
        return default_policy()

    path = Path(path)
    if not path.exists():
        logger.info("Policy file not found at %s, using default policy", path)
        return default_policy()

    raw = json.loads(path.read_text())
    merged = {
        "categories": raw.get("categories", DEFAULT_CATEGORIES),
        "quadrants": raw.get("quadrants", DEFAULT_QUADRANTS),
        "spam_categories": raw.get("spam_categories", DEFAULT_SPAM_CATEGORIES),
        "special_labels": raw.get("special_labels", DEFAULT_SPECIAL_LABELS),
    }
    policy = PolicyConfig.model_validate(merged)
    logger.info(
        "Loaded policy from %s: %d categories, %d spam categories",
        path,
        len(policy.categories),
        len(policy.spam_categories),
    )
    return policy
