"""
Herbalism brewing engine.

Turns a character's selected herbs into a brewed elixir, bomb or oil:
element pool, pairing, recipe resolution, category validation, effect
templates, outcome rolls and the atomic commit.
"""

from src.brewing.attempt import CraftingAttempt
from src.brewing.catalog import HerbCatalog, RecipeCatalog, seed_store
from src.brewing.committer import CommitResult, CraftingCommitter, consolidate_removals
from src.brewing.element_pool import (
    ElementPool,
    build_element_pool,
    primary_element,
    sort_elements,
    total_elements,
)
from src.brewing.errors import (
    BrewingError,
    BrewingValidationError,
    ErrorKind,
    InsufficientIngredientsError,
    PairingError,
    PersistenceError,
)
from src.brewing.outcome import DiceRngAdapter, OutcomeResolver
from src.brewing.pairing import PairingEngine, RemainingElements
from src.brewing.recipe_mode import (
    check_batch_instances,
    effects_from_selected_recipes,
    herbs_satisfy_recipes,
    matching_herbs,
    required_elements,
)
from src.brewing.recipe_resolver import RecipeResolver, aggregate_effects, find_recipe_for_pair
from src.brewing.session import BrewingSession
from src.brewing.templates import (
    EnumChoiceVar,
    FreeTextVar,
    PotencyVar,
    compute_brewed_description,
    extract_choices,
    fill_template,
    parse_template,
)
from src.brewing.validator import ValidationResult, validate_combination

__all__ = [
    "CraftingAttempt",
    "HerbCatalog",
    "RecipeCatalog",
    "seed_store",
    "CommitResult",
    "CraftingCommitter",
    "consolidate_removals",
    "ElementPool",
    "build_element_pool",
    "primary_element",
    "sort_elements",
    "total_elements",
    "BrewingError",
    "BrewingValidationError",
    "ErrorKind",
    "InsufficientIngredientsError",
    "PairingError",
    "PersistenceError",
    "DiceRngAdapter",
    "OutcomeResolver",
    "PairingEngine",
    "RemainingElements",
    "check_batch_instances",
    "effects_from_selected_recipes",
    "herbs_satisfy_recipes",
    "matching_herbs",
    "required_elements",
    "RecipeResolver",
    "aggregate_effects",
    "find_recipe_for_pair",
    "BrewingSession",
    "EnumChoiceVar",
    "FreeTextVar",
    "PotencyVar",
    "compute_brewed_description",
    "extract_choices",
    "fill_template",
    "parse_template",
    "ValidationResult",
    "validate_combination",
]
