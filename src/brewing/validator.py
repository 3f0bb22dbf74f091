"""
Combination Validator.

Checks that the resolved effects of an attempt can be brewed together.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from src.brewing.errors import BrewingValidationError
from src.data_models import PairedEffect, RecipeCategory


NO_EFFECTS_ERROR = "No effects selected"
MIXED_CATEGORIES_ERROR = "Cannot mix categories in one attempt"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating an effect set."""

    valid: bool
    category: Optional[RecipeCategory] = None
    error: Optional[str] = None

    def raise_for_error(self) -> RecipeCategory:
        """Return the category, or raise BrewingValidationError if invalid."""
        if not self.valid or self.category is None:
            raise BrewingValidationError(self.error or NO_EFFECTS_ERROR)
        return self.category


def validate_combination(effects: Sequence[PairedEffect]) -> ValidationResult:
    """
    Check that a set of effects is non-empty and single-category.

    Pure: the same effect list always yields the same result.
    """
    if not effects:
        return ValidationResult(valid=False, error=NO_EFFECTS_ERROR)

    categories = {effect.recipe.category for effect in effects}
    if len(categories) > 1:
        return ValidationResult(valid=False, error=MIXED_CATEGORIES_ERROR)

    return ValidationResult(valid=True, category=effects[0].recipe.category)
