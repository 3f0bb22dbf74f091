"""
The unit passed from validation to the outcome resolver and committer.

A CraftingAttempt is built when the player finalizes pairing (or confirms
the herbs for a recipe-mode brew) and is discarded after the commit
settles or the session is reset.
"""

from dataclasses import dataclass, field
from typing import Optional

from src.brewing.committer import consolidate_removals
from src.brewing.templates import (
    ChoiceVar,
    collect_required_choices,
    compute_brewed_description,
    expand_effect_names,
    invalid_choices,
    missing_choices,
)
from src.data_models import (
    ElementPair,
    IngredientRemoval,
    PairedEffect,
    RecipeCategory,
    SelectedIngredient,
)


@dataclass
class CraftingAttempt:
    """Everything a brew needs once the effects are settled."""

    ingredients: list[SelectedIngredient]
    pairs: list[ElementPair]
    effects: list[PairedEffect]
    category: RecipeCategory
    choices: dict[str, str] = field(default_factory=dict)
    batch_size: int = 1

    @property
    def required_choices(self) -> list[ChoiceVar]:
        return collect_required_choices(self.effects)

    def missing_choices(self) -> list[str]:
        return missing_choices(self.required_choices, self.choices)

    def invalid_choices(self) -> list[str]:
        return invalid_choices(self.required_choices, self.choices)

    def choice_error(self) -> Optional[str]:
        """Why the choices are not ready for commit, or None if they are."""
        missing = self.missing_choices()
        if missing:
            return f"Missing choices: {', '.join(missing)}"
        invalid = self.invalid_choices()
        if invalid:
            return f"Invalid choices: {', '.join(invalid)}"
        return None

    def ingredient_removals(self) -> list[IngredientRemoval]:
        """Herb quantities consumed by this attempt, one line per herb."""
        return consolidate_removals(self.ingredients)

    def expanded_effect_names(self) -> list[str]:
        return expand_effect_names(self.effects)

    def description(self) -> str:
        return compute_brewed_description(self.effects, self.choices)

    def resolved_choices(self) -> dict[str, str]:
        """Only the choices the effects actually declare."""
        declared = {c.variable for c in self.required_choices}
        return {k: v for k, v in self.choices.items() if k in declared}
