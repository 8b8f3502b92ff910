"""Tests for policy schemas, defaults and JSON policy loading."""

import json

import pytest
from pydantic import ValidationError

from eisenbox.policy import DEFAULT_CATEGORIES, default_policy, load_policy
from eisenbox.schemas.policy import (
    CategoryPolicy,
    LabelSpec,
    PolicyConfig,
    QuadrantId,
    QuadrantPolicy,
    SpecialLabel,
)


def _quadrants() -> dict:
    return {q: QuadrantPolicy(display_name=q.value, keep_in_inbox=True) for q in QuadrantId}


class TestPolicyConfig:
    def test_missing_quadrant_rejected(self):
        quadrants = _quadrants()
        del quadrants[QuadrantId.URGENT_NOT_IMPORTANT]
        with pytest.raises(ValidationError, match="URGENT_NOT_IMPORTANT"):
            PolicyConfig(categories={}, quadrants=quadrants)

    def test_mismatched_category_key_rejected(self):
        with pytest.raises(ValidationError, match="does not match"):
            PolicyConfig(
                categories={"WORK": CategoryPolicy(key="JOB", display_name="Work")},
                quadrants=_quadrants(),
            )

    def test_unknown_spam_category_rejected(self):
        with pytest.raises(ValidationError, match="JUNK"):
            PolicyConfig(categories={}, quadrants=_quadrants(), spam_categories={"JUNK"})

    def test_policy_is_frozen(self, policy):
        with pytest.raises(ValidationError):
            policy.spam_categories = frozenset()


class TestLookup:
    def test_by_key(self, policy):
        assert policy.lookup("FAMILY").display_name == "Family"

    def test_by_display_name_case_insensitive(self, policy):
        assert policy.lookup("security alerts").key == "SECURITY"

    def test_unknown(self, policy):
        assert policy.lookup("ASTROLOGY") is None

    def test_is_spam_category(self, policy):
        assert policy.is_spam_category("SPAM")
        assert policy.is_spam_category("Spam")
        assert not policy.is_spam_category("PROMOTIONS")
        assert not policy.is_spam_category("UNKNOWN")


class TestLabelSpec:
    def test_category_label(self, policy):
        spec = policy.label_spec("FINANCE")
        assert spec == LabelSpec(key="FINANCE", display_name="Finance", color="green")

    def test_quadrant_label(self, policy):
        assert policy.label_spec("URGENT_IMPORTANT").display_name == "Q1: Do Now"

    def test_special_label(self, policy):
        assert policy.label_spec(SpecialLabel.SOMEDAY).display_name == "Someday/Maybe"

    def test_unknown_raises(self, policy):
        with pytest.raises(KeyError):
            policy.label_spec("NOPE")

    def test_all_labels_covers_every_table(self, policy):
        keys = [spec.key for spec in policy.all_labels()]
        assert keys[: len(DEFAULT_CATEGORIES)] == list(DEFAULT_CATEGORIES)
        assert "NOT_URGENT_IMPORTANT" in keys
        assert "MANUAL_REVIEW" in keys
        assert len(keys) == len(set(keys))


class TestDefaults:
    def test_quadrant_inbox_policy(self):
        policy = default_policy()
        assert policy.quadrants[QuadrantId.URGENT_IMPORTANT].keep_in_inbox
        assert policy.quadrants[QuadrantId.NOT_URGENT_IMPORTANT].keep_in_inbox
        assert not policy.quadrants[QuadrantId.URGENT_NOT_IMPORTANT].keep_in_inbox
        assert not policy.quadrants[QuadrantId.NOT_URGENT_NOT_IMPORTANT].keep_in_inbox

    def test_spam_is_trashed(self):
        policy = default_policy()
        assert policy.spam_categories == frozenset({"SPAM"})
        assert policy.categories["SPAM"].move_to_trash


class TestLoadPolicy:
    def test_none_gives_defaults(self):
        assert load_policy(None) == default_policy()

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_policy(tmp_path / "nope.json") == default_policy()

    def test_override_replaces_named_tables(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text(json.dumps({
            "categories": {
                "WORK": {"key": "WORK", "display_name": "Work", "is_important": True},
                "JUNK": {"key": "JUNK", "display_name": "Junk", "move_to_trash": True},
            },
            "spam_categories": ["JUNK"],
        }))

        policy = load_policy(path)

        assert set(policy.categories) == {"WORK", "JUNK"}
        assert policy.is_spam_category("JUNK")
        assert policy.quadrants == default_policy().quadrants
        assert policy.special_labels[SpecialLabel.TO_PLAN].display_name == "To Plan"

    def test_invalid_policy_raises(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text(json.dumps({"spam_categories": ["NOT_A_CATEGORY"]}))
        with pytest.raises(ValidationError):
            load_policy(path)
