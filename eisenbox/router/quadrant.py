"""Eisenhower quadrant resolution.

Combines the AI's urgent/important flags with category policy. Category
flags can only promote a flag to True, never demote it, and spam always
lands in NOT_URGENT_NOT_IMPORTANT no matter what the AI claims.
"""

import logging
from collections.abc import Iterable

from eisenbox.schemas.classification import SanitizedClassification
from eisenbox.schemas.policy import PolicyConfig, QuadrantId

logger = logging.getLogger(__name__)

_QUADRANTS: dict[tuple[bool, bool], QuadrantId] = {
    (True, True): QuadrantId.URGENT_IMPORTANT,
    (False, True): QuadrantId.NOT_URGENT_IMPORTANT,
    (True, False): QuadrantId.URGENT_NOT_IMPORTANT,
    (False, False): QuadrantId.NOT_URGENT_NOT_IMPORTANT,
}


class QuadrantResolver:
    """Computes the final quadrant for a set of categories.

    Usage::

        resolver = QuadrantResolver(policy)
        quadrant = resolver.resolve(["FAMILY"], ai_urgent=False, ai_important=False)
    """

    def __init__(self, policy: PolicyConfig) -> None:
        self._policy = policy

    def resolve(
        self,
        categories: Iterable[str],
        ai_urgent: bool = False,
        ai_important: bool = False,
        is_spam: bool = False,
    ) -> QuadrantId:
        """Resolve the quadrant for categories plus the AI baseline.

        Categories may be given as keys or display names.
        """
        categories = list(categories)
        if not categories:
            return QuadrantId.NOT_URGENT_NOT_IMPORTANT

        if is_spam or any(self._policy.is_spam_category(name) for name in categories):
            return QuadrantId.NOT_URGENT_NOT_IMPORTANT

        urgent = bool(ai_urgent)
        important = bool(ai_important)

        for name in categories:
            category = self._policy.lookup(name)
            if category is None:
                logger.warning("Unknown category '%s' ignored for quadrant resolution", name)
                continue
            urgent = urgent or category.is_urgent
            important = important or category.is_important

        return _QUADRANTS[(urgent, important)]

    def resolve_classification(self, classification: SanitizedClassification) -> QuadrantId:
        return self.resolve(
            classification.categories,
            ai_urgent=classification.ai_urgent,
            ai_important=classification.ai_important,
            is_spam=classification.is_spam_or_junk,
        )
