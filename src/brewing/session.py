"""
Brewing Session.

Drives one brewing attempt through the BrewStateMachine:

    herb mode:    SELECTING_INGREDIENTS -> PAIRING -> CHOOSING -> COMMITTING -> SETTLED
    recipe mode:  SELECTING_RECIPES -> SELECTING_INGREDIENTS -> CHOOSING -> COMMITTING -> SETTLED

Each operation is only allowed in its state and each forward step checks
what the next state depends on (a valid single-category effect set before
CHOOSING, every choice resolved before COMMITTING). The session owns all
attempt state; nothing is written to storage before the commit, so reset()
abandons an attempt without trace.

A commit that fails with a retryable error leaves the session in
COMMITTING with the rolled outcome kept, so retry_commit() re-issues the
identical commit without rolling again.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Sequence, Union
import logging

from src.brewing.attempt import CraftingAttempt
from src.brewing.committer import CommitResult, CraftingCommitter
from src.brewing.element_pool import ElementPool, build_element_pool
from src.brewing.errors import BrewingValidationError
from src.brewing.outcome import OutcomeResolver
from src.brewing.pairing import PairingEngine, RemainingElements
from src.brewing.recipe_mode import (
    check_batch_instances,
    effects_from_selected_recipes,
    element_shortfalls,
    matching_herbs,
    required_elements,
)
from src.brewing.recipe_resolver import RecipeResolver, aggregate_effects
from src.brewing.templates import ChoiceVar, EnumChoiceVar
from src.brewing.validator import ValidationResult, validate_combination
from src.config import BrewingConfig
from src.data_models import (
    BatchResult,
    BrewMode,
    CharacterHerb,
    ElementPair,
    PairedEffect,
    Recipe,
    SelectedIngredient,
    SelectedRecipe,
)
from src.game_state.state_machine import BrewState, BrewStateMachine, InvalidTransitionError

if TYPE_CHECKING:
    from src.persistence.brewing_store import BrewingStore

logger = logging.getLogger(__name__)


# =============================================================================
# PHASE PAYLOADS
# =============================================================================


@dataclass(frozen=True)
class RecipeSelectionPhase:
    recipes: tuple[SelectedRecipe, ...]
    batch_size: int


@dataclass(frozen=True)
class IngredientSelectionPhase:
    ingredients: tuple[SelectedIngredient, ...]
    element_pool: ElementPool
    required_elements: Optional[ElementPool] = None  # Recipe mode only


@dataclass(frozen=True)
class PairingPhase:
    element_pool: ElementPool
    pairs: tuple[ElementPair, ...]
    remaining: dict[str, int]
    effects: tuple[PairedEffect, ...]
    validation: ValidationResult


@dataclass(frozen=True)
class ChoosingPhase:
    attempt: CraftingAttempt
    required_choices: tuple[ChoiceVar, ...]
    missing_choices: tuple[str, ...]


@dataclass(frozen=True)
class CommittingPhase:
    attempt: CraftingAttempt
    batch: BatchResult
    last_result: Optional[CommitResult] = None


@dataclass(frozen=True)
class SettledPhase:
    attempt: CraftingAttempt
    batch: BatchResult
    result: CommitResult


BrewPhase = Union[
    RecipeSelectionPhase,
    IngredientSelectionPhase,
    PairingPhase,
    ChoosingPhase,
    CommittingPhase,
    SettledPhase,
]


# =============================================================================
# SESSION
# =============================================================================


@dataclass
class _AttemptState:
    """Everything the current attempt has accumulated."""

    selection: dict[int, SelectedIngredient] = field(default_factory=dict)
    selected_recipes: dict[int, SelectedRecipe] = field(default_factory=dict)
    batch_size: int = 1
    pairing: Optional[PairingEngine] = None
    attempt: Optional[CraftingAttempt] = None
    batch: Optional[BatchResult] = None
    last_result: Optional[CommitResult] = None


class BrewingSession:
    """
    One character's brewing attempts.

    Args:
        store: Storage for ledgers and known recipes
        character_id: Character doing the brewing
        recipes: Recipe table to resolve against; defaults to the
            character's known recipes from the store
        config: Rules configuration
        outcome_resolver: Outcome source; defaults to one built from config
        mode: Starting brew mode
    """

    def __init__(
        self,
        store: "BrewingStore",
        character_id: str,
        recipes: Optional[Sequence[Recipe]] = None,
        config: Optional[BrewingConfig] = None,
        outcome_resolver: Optional[OutcomeResolver] = None,
        mode: BrewMode = BrewMode.BY_HERBS,
    ):
        self.store = store
        self.character_id = character_id
        self.config = config or BrewingConfig()
        if recipes is None:
            recipes = store.fetch_character_recipes(character_id)
        self.resolver = RecipeResolver(recipes)
        self.committer = CraftingCommitter(store)
        self.outcome_resolver = outcome_resolver or OutcomeResolver(
            die_size=self.config.die_size,
            threshold=self.config.brewing_dc,
        )
        self._mode = BrewMode(mode)
        self._state = _AttemptState(batch_size=self.config.default_batch_size)
        self.machine = BrewStateMachine(self._start_state(self._mode))

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @staticmethod
    def _start_state(mode: BrewMode) -> BrewState:
        if mode == BrewMode.BY_RECIPE:
            return BrewState.SELECTING_RECIPES
        return BrewState.SELECTING_INGREDIENTS

    @property
    def mode(self) -> BrewMode:
        return self._mode

    @property
    def state(self) -> BrewState:
        return self.machine.current_state

    def _require(self, *states: BrewState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidTransitionError(
                f"Not allowed in state '{self.state.value}' (requires {allowed})"
            )

    def _require_mode(self, mode: BrewMode) -> None:
        if self._mode != mode:
            raise InvalidTransitionError(f"Not allowed in {self._mode.value} mode")

    @property
    def phase(self) -> BrewPhase:
        """Typed view of the current state and its data."""
        s = self._state
        state = self.state

        if state == BrewState.SELECTING_RECIPES:
            return RecipeSelectionPhase(
                recipes=tuple(s.selected_recipes.values()),
                batch_size=s.batch_size,
            )
        if state == BrewState.SELECTING_INGREDIENTS:
            return IngredientSelectionPhase(
                ingredients=tuple(s.selection.values()),
                element_pool=self.element_pool(),
                required_elements=(
                    self.required_elements() if self._mode == BrewMode.BY_RECIPE else None
                ),
            )
        if state == BrewState.PAIRING:
            effects = self.effects()
            return PairingPhase(
                element_pool=s.pairing.pool,
                pairs=tuple(s.pairing.pairs),
                remaining=s.pairing.remaining_counts(),
                effects=tuple(effects),
                validation=validate_combination(effects),
            )
        if state == BrewState.CHOOSING:
            return ChoosingPhase(
                attempt=s.attempt,
                required_choices=tuple(s.attempt.required_choices),
                missing_choices=tuple(s.attempt.missing_choices()),
            )
        if state == BrewState.COMMITTING:
            return CommittingPhase(attempt=s.attempt, batch=s.batch, last_result=s.last_result)
        return SettledPhase(attempt=s.attempt, batch=s.batch, result=s.last_result)

    # -------------------------------------------------------------------------
    # Ingredient selection
    # -------------------------------------------------------------------------

    def inventory(self) -> dict[int, CharacterHerb]:
        """The character's ingredient ledger keyed by herb id."""
        return {row.herb.herb_id: row for row in self.store.fetch_character_herbs(self.character_id)}

    @property
    def selection(self) -> list[SelectedIngredient]:
        return list(self._state.selection.values())

    def _herb_limit(self) -> int:
        if self._mode == BrewMode.BY_RECIPE:
            return self.config.max_herbs_per_brew * self._state.batch_size
        return self.config.max_herbs_per_brew

    def select_ingredient(self, herb_id: int, quantity: int = 1) -> SelectedIngredient:
        """
        Add herb instances to the selection.

        Raises:
            BrewingValidationError: Herb not owned, not enough owned, or the
                selection would exceed the herb limit
        """
        self._require(BrewState.SELECTING_INGREDIENTS)
        if quantity < 1:
            raise BrewingValidationError("Quantity must be positive")

        owned = self.inventory().get(herb_id)
        if owned is None:
            raise BrewingValidationError(f"Herb {herb_id} is not in the inventory")

        current = self._state.selection.get(herb_id)
        new_quantity = (current.quantity if current else 0) + quantity
        if new_quantity > owned.quantity:
            raise BrewingValidationError(
                f"Only {owned.quantity} {owned.herb.name} available"
            )

        total = sum(s.quantity for s in self._state.selection.values()) + quantity
        if total > self._herb_limit():
            raise BrewingValidationError(f"At most {self._herb_limit()} herbs per brew")

        if current:
            current.quantity = new_quantity
        else:
            current = SelectedIngredient(herb=owned.herb, quantity=new_quantity)
            self._state.selection[herb_id] = current
        return current

    def deselect_ingredient(self, herb_id: int, quantity: int = 1) -> None:
        """Remove herb instances from the selection; removing all drops the herb."""
        self._require(BrewState.SELECTING_INGREDIENTS)
        current = self._state.selection.get(herb_id)
        if current is None:
            raise BrewingValidationError(f"Herb {herb_id} is not selected")
        current.quantity -= quantity
        if current.quantity <= 0:
            del self._state.selection[herb_id]

    def element_pool(self) -> ElementPool:
        return build_element_pool(self._state.selection.values())

    # -------------------------------------------------------------------------
    # Pairing (herb mode)
    # -------------------------------------------------------------------------

    def begin_pairing(self) -> PairingEngine:
        self._require(BrewState.SELECTING_INGREDIENTS)
        self._require_mode(BrewMode.BY_HERBS)
        if not self._state.selection:
            raise BrewingValidationError("No herbs selected")

        self._state.pairing = PairingEngine(self.element_pool())
        self.machine.transition(
            "begin_pairing",
            {"herbs": {h: s.quantity for h, s in self._state.selection.items()}},
        )
        return self._state.pairing

    def add_pair(self, first: str, second: str) -> ElementPair:
        self._require(BrewState.PAIRING)
        return self._state.pairing.add_pair(first, second)

    def remove_pair(self, index: int) -> ElementPair:
        self._require(BrewState.PAIRING)
        return self._state.pairing.remove_pair(index)

    def remaining_elements(self) -> RemainingElements:
        self._require(BrewState.PAIRING)
        return self._state.pairing.remaining_elements()

    def effects(self) -> list[PairedEffect]:
        """Effects of the attempt so far."""
        if self._state.attempt is not None:
            return list(self._state.attempt.effects)
        if self._state.pairing is not None:
            return aggregate_effects(self._state.pairing.pairs, self.resolver)
        return []

    def validation(self) -> ValidationResult:
        return validate_combination(self.effects())

    def back_to_ingredients(self) -> None:
        """Leave pairing; pairs are discarded."""
        self._require(BrewState.PAIRING)
        self._state.pairing = None
        self.machine.transition("back_to_ingredients")

    def confirm_pairing(self) -> CraftingAttempt:
        """
        Finish pairing and build the attempt.

        Raises:
            BrewingValidationError: No effects, or effects of mixed categories
        """
        self._require(BrewState.PAIRING)
        effects = self.effects()
        category = validate_combination(effects).raise_for_error()

        self._state.attempt = CraftingAttempt(
            ingredients=self.selection,
            pairs=self._state.pairing.pairs,
            effects=effects,
            category=category,
            batch_size=self._state.batch_size,
        )
        self.machine.transition(
            "confirm_pairing",
            {"category": category.value, "effects": self._state.attempt.expanded_effect_names()},
        )
        return self._state.attempt

    def back_to_pairing(self) -> None:
        """Leave choosing; pairs are kept, choices are dropped."""
        self._require(BrewState.CHOOSING)
        self._require_mode(BrewMode.BY_HERBS)
        self._state.attempt = None
        self.machine.transition("back_to_pairing")

    # -------------------------------------------------------------------------
    # Recipe selection (recipe mode)
    # -------------------------------------------------------------------------

    @property
    def selected_recipes(self) -> list[SelectedRecipe]:
        return list(self._state.selected_recipes.values())

    def select_recipe(self, recipe_id: int, count: int = 1) -> SelectedRecipe:
        self._require(BrewState.SELECTING_RECIPES)
        if count < 1:
            raise BrewingValidationError("Count must be positive")

        recipe = next((r for r in self.resolver.recipes if r.recipe_id == recipe_id), None)
        if recipe is None:
            raise BrewingValidationError(f"Recipe {recipe_id} is not known")

        current = self._state.selected_recipes.get(recipe_id)
        if current:
            current.count += count
        else:
            current = SelectedRecipe(recipe=recipe, count=count)
            self._state.selected_recipes[recipe_id] = current
        return current

    def deselect_recipe(self, recipe_id: int, count: int = 1) -> None:
        self._require(BrewState.SELECTING_RECIPES)
        current = self._state.selected_recipes.get(recipe_id)
        if current is None:
            raise BrewingValidationError(f"Recipe {recipe_id} is not selected")
        current.count -= count
        if current.count <= 0:
            del self._state.selected_recipes[recipe_id]

    def set_batch_size(self, batch_size: int) -> None:
        self._require(BrewState.SELECTING_RECIPES, BrewState.SELECTING_INGREDIENTS)
        if batch_size < 1:
            raise BrewingValidationError("Batch size must be at least 1")
        self._state.batch_size = batch_size

    def required_elements(self) -> ElementPool:
        return required_elements(self.selected_recipes, self._state.batch_size)

    def matching_herbs(self) -> list[CharacterHerb]:
        """Inventory herbs that carry an element the selected recipes need."""
        return matching_herbs(self.inventory().values(), self.selected_recipes)

    def confirm_recipes(self) -> None:
        """
        Finish recipe selection.

        Raises:
            BrewingValidationError: Nothing selected or categories mixed
        """
        self._require(BrewState.SELECTING_RECIPES)
        validate_combination(effects_from_selected_recipes(self.selected_recipes)).raise_for_error()
        self.machine.transition(
            "confirm_recipes",
            {
                "recipes": {r.recipe.name: r.count for r in self.selected_recipes},
                "batch_size": self._state.batch_size,
            },
        )

    def back_to_recipes(self) -> None:
        self._require(BrewState.SELECTING_INGREDIENTS)
        self._require_mode(BrewMode.BY_RECIPE)
        self.machine.transition("back_to_recipes")

    def confirm_recipe_ingredients(self) -> CraftingAttempt:
        """
        Check the selected herbs cover the recipes and build the attempt.

        Raises:
            BrewingValidationError: Elements missing, or too few herb
                instances for the batch size
        """
        self._require(BrewState.SELECTING_INGREDIENTS)
        self._require_mode(BrewMode.BY_RECIPE)

        shortfalls = element_shortfalls(self.selection, self.selected_recipes, self._state.batch_size)
        if shortfalls:
            raise BrewingValidationError(f"Selected herbs are missing elements: {shortfalls}")
        if self._state.batch_size > 1:
            instances = check_batch_instances(
                self.selection, self.selected_recipes, self._state.batch_size
            )
            if instances:
                raise BrewingValidationError(
                    f"Need {self._state.batch_size} herb instances per element: {instances}"
                )

        effects = effects_from_selected_recipes(self.selected_recipes)
        category = validate_combination(effects).raise_for_error()
        self._state.attempt = CraftingAttempt(
            ingredients=self.selection,
            pairs=[],
            effects=effects,
            category=category,
            batch_size=self._state.batch_size,
        )
        self.machine.transition(
            "confirm_recipe_ingredients",
            {"category": category.value, "batch_size": self._state.batch_size},
        )
        return self._state.attempt

    # -------------------------------------------------------------------------
    # Choices
    # -------------------------------------------------------------------------

    def required_choices(self) -> list[ChoiceVar]:
        self._require(BrewState.CHOOSING)
        return self._state.attempt.required_choices

    def set_choice(self, variable: str, value: str) -> None:
        """
        Resolve a template choice.

        Raises:
            BrewingValidationError: Unknown variable, or a value outside an
                enumerated option set
        """
        self._require(BrewState.CHOOSING)
        declared = {c.variable: c for c in self._state.attempt.required_choices}
        choice = declared.get(variable)
        if choice is None:
            raise BrewingValidationError(f"No effect asks for '{variable}'")
        if isinstance(choice, EnumChoiceVar) and not choice.accepts(value):
            raise BrewingValidationError(
                f"'{value}' is not an option for {variable} ({', '.join(choice.options)})"
            )
        self._state.attempt.choices[variable] = value

    # -------------------------------------------------------------------------
    # Outcome and commit
    # -------------------------------------------------------------------------

    def brew(self, modifier: int = 0, batch_size: Optional[int] = None) -> CommitResult:
        """
        Roll the outcome and commit the attempt.

        Every trial of the batch is rolled before the single commit.

        Args:
            modifier: Brewer's modifier added to each roll
            batch_size: Trials to roll; recipe mode uses its confirmed batch size

        Returns:
            The commit result. On a retryable failure the session stays in
            COMMITTING; see retry_commit().

        Raises:
            BrewingValidationError: Choices missing or invalid, or a bad batch size
        """
        self._require(BrewState.CHOOSING)
        attempt = self._state.attempt

        choice_error = attempt.choice_error()
        if choice_error:
            raise BrewingValidationError(choice_error)

        if self._mode == BrewMode.BY_RECIPE:
            if batch_size is not None and batch_size != attempt.batch_size:
                raise BrewingValidationError(
                    f"Batch size was confirmed as {attempt.batch_size}"
                )
            batch_size = attempt.batch_size
        elif batch_size is None:
            batch_size = attempt.batch_size
        if batch_size < 1:
            raise BrewingValidationError("Batch size must be at least 1")

        if self._mode == BrewMode.BY_HERBS and batch_size > 1:
            instances = check_batch_instances(
                attempt.ingredients,
                [SelectedRecipe(e.recipe, e.potency) for e in attempt.effects],
                batch_size,
            )
            if instances:
                raise BrewingValidationError(
                    f"Need {batch_size} herb instances per element: {instances}"
                )
        attempt.batch_size = batch_size

        batch = self.outcome_resolver.resolve_batch(batch_size, modifier)
        self._state.batch = batch
        self.machine.transition(
            "begin_commit",
            {
                "batch_size": batch_size,
                "modifier": modifier,
                "success_count": batch.success_count,
            },
        )
        return self._commit()

    def retry_commit(self) -> CommitResult:
        """Re-issue the commit of a failed attempt with the same outcome."""
        self._require(BrewState.COMMITTING)
        return self._commit()

    def _commit(self) -> CommitResult:
        attempt = self._state.attempt
        batch = self._state.batch
        result = self.committer.commit_craft(
            owner_id=self.character_id,
            ingredient_removals=attempt.ingredient_removals(),
            category=attempt.category,
            effect_names=attempt.expanded_effect_names(),
            description=attempt.description(),
            choices=attempt.resolved_choices(),
            success_count=batch.success_count,
        )
        self._state.last_result = result

        if result.ok:
            self.machine.transition(
                "commit_succeeded",
                {"items_created": result.items_created, "brewed_id": result.brewed_id},
            )
        else:
            logger.warning(f"Brew commit failed, attempt kept for retry: {result.error}")
        return result

    @property
    def batch(self) -> Optional[BatchResult]:
        return self._state.batch

    @property
    def attempt(self) -> Optional[CraftingAttempt]:
        return self._state.attempt

    # -------------------------------------------------------------------------
    # Reset
    # -------------------------------------------------------------------------

    def reset(self, mode: Optional[BrewMode] = None) -> None:
        """Abandon the current attempt, optionally switching brew mode."""
        if mode is not None:
            self._mode = BrewMode(mode)
        trigger = "reset_by_recipe" if self._mode == BrewMode.BY_RECIPE else "reset_by_herbs"
        self._state = _AttemptState(batch_size=self.config.default_batch_size)
        self.machine.transition(trigger)

    def __repr__(self) -> str:
        return (
            f"BrewingSession(character={self.character_id!r}, "
            f"mode={self._mode.value}, state={self.state.value})"
        )
