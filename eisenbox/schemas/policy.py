"""Schemas for category and quadrant policy.

Policy is static configuration: read-only to the resolver and the action
engine, built once per run (from defaults or a JSON override file).
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class QuadrantId(StrEnum):
    """Eisenhower Matrix quadrant."""

    URGENT_IMPORTANT = "URGENT_IMPORTANT"
    NOT_URGENT_IMPORTANT = "NOT_URGENT_IMPORTANT"
    URGENT_NOT_IMPORTANT = "URGENT_NOT_IMPORTANT"
    NOT_URGENT_NOT_IMPORTANT = "NOT_URGENT_NOT_IMPORTANT"


class SpecialLabel(StrEnum):
    """Label keys added by the engine outside of category/quadrant labels."""

    TO_PLAN = "TO_PLAN"
    DELEGATE = "DELEGATE"
    SOMEDAY = "SOMEDAY"
    REQUIRES_ACTION = "REQUIRES_ACTION"
    HAS_DEADLINE = "HAS_DEADLINE"
    MANUAL_REVIEW = "MANUAL_REVIEW"


class LabelColor(BaseModel):
    """Background/text color pair used to style a label."""

    model_config = ConfigDict(frozen=True)

    background: str
    text: str


class LabelSpec(BaseModel):
    """A label the engine may add to a thread."""

    model_config = ConfigDict(frozen=True)

    key: str
    display_name: str
    color: str = "gray"


class CategoryPolicy(BaseModel):
    """Per-category metadata used to override AI-asserted flags."""

    model_config = ConfigDict(frozen=True)

    key: str
    display_name: str
    is_urgent: bool = False
    is_important: bool = False
    move_to_trash: bool = False
    color: str = "gray"


class QuadrantPolicy(BaseModel):
    """Handling for one Eisenhower quadrant."""

    model_config = ConfigDict(frozen=True)

    display_name: str
    keep_in_inbox: bool
    color: str = "gray"


class PolicyConfig(BaseModel):
    """Immutable policy tables injected into the resolver and the engine."""

    model_config = ConfigDict(frozen=True)

    categories: dict[str, CategoryPolicy]
    quadrants: dict[QuadrantId, QuadrantPolicy]
    spam_categories: frozenset[str] = Field(default_factory=frozenset)
    special_labels: dict[SpecialLabel, LabelSpec] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_tables(self) -> "PolicyConfig":
        missing = set(QuadrantId) - set(self.quadrants)
        if missing:
            raise ValueError(
                f"Quadrant policy missing: {', '.join(sorted(missing))}"
            )
        for key, category in self.categories.items():
            if key != category.key:
                raise ValueError(
                    f"Category table key '{key}' does not match policy key '{category.key}'"
                )
        unknown_spam = self.spam_categories - set(self.categories)
        if unknown_spam:
            raise ValueError(
                f"Spam categories not in category table: {', '.join(sorted(unknown_spam))}"
            )
        return self

    def lookup(self, name: str) -> CategoryPolicy | None:
        """Find a category by key, falling back to its display name."""
        category = self.categories.get(name)
        if category is not None:
            return category
        folded = name.strip().casefold()
        for candidate in self.categories.values():
            if candidate.display_name.casefold() == folded:
                return candidate
        return None

    def is_spam_category(self, name: str) -> bool:
        category = self.lookup(name)
        return category is not None and category.key in self.spam_categories

    def label_spec(self, key: str) -> LabelSpec:
        """Return the label for a category, quadrant, or special label key.

        Raises:
            KeyError: If no label is defined for the key.
        """
        if key in self.categories:
            category = self.categories[key]
            return LabelSpec(key=key, display_name=category.display_name, color=category.color)
        if key in self.quadrants:
            quadrant = self.quadrants[key]
            return LabelSpec(key=key, display_name=quadrant.display_name, color=quadrant.color)
        if key in self.special_labels:
            return self.special_labels[key]
        raise KeyError(f"No label defined for key: {key}")

    def all_labels(self) -> list[LabelSpec]:
        """Every label the engine may add, categories first."""
        keys = [*self.categories, *(q.value for q in QuadrantId), *self.special_labels]
        return [self.label_spec(str(k)) for k in keys]
