"""Tests for Eisenhower quadrant resolution."""

import logging

import pytest

from eisenbox.router.quadrant import QuadrantResolver
from eisenbox.schemas.classification import SanitizedClassification
from eisenbox.schemas.policy import QuadrantId


@pytest.fixture()
def resolver(policy):
    return QuadrantResolver(policy)


class TestResolve:
    def test_no_categories_is_q4(self, resolver):
        assert resolver.resolve([], ai_urgent=True, ai_important=True) == QuadrantId.NOT_URGENT_NOT_IMPORTANT

    def test_ai_flags_alone(self, resolver):
        assert resolver.resolve(["SHOPPING"], ai_urgent=True, ai_important=True) == QuadrantId.URGENT_IMPORTANT
        assert resolver.resolve(["SHOPPING"], ai_urgent=True) == QuadrantId.URGENT_NOT_IMPORTANT
        assert resolver.resolve(["SHOPPING"], ai_important=True) == QuadrantId.NOT_URGENT_IMPORTANT
        assert resolver.resolve(["SHOPPING"]) == QuadrantId.NOT_URGENT_NOT_IMPORTANT

    def test_category_promotes_importance(self, resolver):
        assert resolver.resolve(["FAMILY"]) == QuadrantId.NOT_URGENT_IMPORTANT

    def test_category_promotes_both(self, resolver):
        assert resolver.resolve(["SECURITY"]) == QuadrantId.URGENT_IMPORTANT

    def test_category_never_demotes(self, resolver):
        # Newsletters carry no flags; the AI's flags survive.
        assert resolver.resolve(["NEWSLETTERS"], ai_urgent=True, ai_important=True) == QuadrantId.URGENT_IMPORTANT

    def test_flags_combine_across_categories(self, resolver):
        assert resolver.resolve(["APPOINTMENTS", "WORK"]) == QuadrantId.URGENT_IMPORTANT

    def test_spam_category_overrides_everything(self, resolver):
        result = resolver.resolve(["SECURITY", "SPAM"], ai_urgent=True, ai_important=True)
        assert result == QuadrantId.NOT_URGENT_NOT_IMPORTANT

    def test_spam_flag_overrides_everything(self, resolver):
        result = resolver.resolve(["FAMILY"], ai_urgent=True, ai_important=True, is_spam=True)
        assert result == QuadrantId.NOT_URGENT_NOT_IMPORTANT

    def test_display_names_accepted(self, resolver):
        assert resolver.resolve(["Security Alerts"]) == QuadrantId.URGENT_IMPORTANT

    def test_unknown_category_ignored(self, resolver, caplog):
        with caplog.at_level(logging.WARNING, logger="eisenbox.router.quadrant"):
            result = resolver.resolve(["ASTROLOGY", "WORK"])
        assert result == QuadrantId.NOT_URGENT_IMPORTANT
        assert "ASTROLOGY" in caplog.text


def test_resolve_classification(resolver):
    classification = SanitizedClassification(
        categories=["APPOINTMENTS"], ai_important=True
    )
    assert resolver.resolve_classification(classification) == QuadrantId.URGENT_IMPORTANT
