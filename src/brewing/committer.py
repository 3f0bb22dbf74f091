"""
Crafting Transaction Committer.

The single boundary between a brewing attempt and storage. A commit
consumes the attempt's ingredients and, when at least one trial
succeeded, creates the brewed item with quantity equal to the success
count. Both writes happen in one store transaction or not at all.

Errors come back in the CommitResult rather than as exceptions so the
caller can decide whether to retry.
"""

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Protocol, Sequence, Union
import logging

from src.brewing.errors import BrewingError, BrewingValidationError, ErrorKind
from src.data_models import (
    Herb,
    IngredientRemoval,
    RecipeCategory,
    SelectedIngredient,
)

logger = logging.getLogger(__name__)


class BrewStore(Protocol):
    """The storage operation a commit needs."""

    def brew_items(
        self,
        character_id: str,
        removals: list[IngredientRemoval],
        category: RecipeCategory,
        effects: list[str],
        computed_description: str,
        choices: Optional[dict[str, str]] = None,
        success_count: int = 1,
    ) -> Optional[int]:
        ...


@dataclass(frozen=True)
class CommitResult:
    """
    Outcome of a commit.

    error is None on success. items_created is the brewed quantity (zero
    for a fully failed batch, which still consumed its ingredients).
    """

    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    items_created: int = 0
    brewed_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def retryable(self) -> bool:
        return self.error_kind in (ErrorKind.INSUFFICIENT_RESOURCES, ErrorKind.PERSISTENCE)


def consolidate_removals(
    selection: Iterable[Union[SelectedIngredient, Herb, IngredientRemoval]],
) -> list[IngredientRemoval]:
    """
    Sum a selection into one removal line per herb.

    Accepts selected ingredients, bare herb instances (one each) or
    removal lines. Herbs keep the order they were first seen in.
    """
    totals: dict[int, int] = {}
    for entry in selection:
        if isinstance(entry, SelectedIngredient):
            herb_id, quantity = entry.herb.herb_id, entry.quantity
        elif isinstance(entry, Herb):
            herb_id, quantity = entry.herb_id, 1
        else:
            herb_id, quantity = entry.herb_id, entry.quantity
        totals[herb_id] = totals.get(herb_id, 0) + quantity
    return [IngredientRemoval(herb_id=h, quantity=q) for h, q in totals.items()]


class CraftingCommitter:
    """Runs commits against a store exposing brew_items."""

    def __init__(self, store: BrewStore):
        self.store = store

    def commit_craft(
        self,
        owner_id: str,
        ingredient_removals: Sequence[IngredientRemoval],
        category: Union[RecipeCategory, str],
        effect_names: Sequence[str],
        description: str,
        choices: Optional[Mapping[str, str]] = None,
        success_count: int = 1,
    ) -> CommitResult:
        """
        Consume ingredients and create the brewed item atomically.

        Args:
            owner_id: Character that owns both ledgers
            ingredient_removals: One line per herb to remove
            category: Brewed item category
            effect_names: Effect names repeated per unit of potency
            description: Filled description text
            choices: Resolved template choices
            success_count: Successful trials (0..batch size)

        Returns:
            CommitResult; on error nothing in the store has changed
        """
        removals = list(ingredient_removals)
        try:
            category = self._check_arguments(removals, category, effect_names, success_count)
            brewed_id = self.store.brew_items(
                character_id=owner_id,
                removals=removals,
                category=category,
                effects=list(effect_names),
                computed_description=description,
                choices=dict(choices or {}),
                success_count=success_count,
            )
        except BrewingError as e:
            logger.warning(f"Commit for {owner_id} rejected ({e.kind.value}): {e.message}")
            self._log_commit(owner_id, category, success_count, 0, 0, error=e.message)
            return CommitResult(error=e.message, error_kind=e.kind)

        consumed = sum(r.quantity for r in removals)
        self._log_commit(owner_id, category, success_count, success_count, consumed)
        return CommitResult(items_created=success_count, brewed_id=brewed_id)

    def _check_arguments(
        self,
        removals: list[IngredientRemoval],
        category: Union[RecipeCategory, str],
        effect_names: Sequence[str],
        success_count: int,
    ) -> RecipeCategory:
        if not effect_names:
            raise BrewingValidationError("No effects selected")
        if not removals:
            raise BrewingValidationError("No ingredients selected")
        if success_count < 0:
            raise BrewingValidationError("Invalid success count")
        for removal in removals:
            if removal.quantity <= 0:
                raise BrewingValidationError(
                    f"Removal quantity must be positive (herb {removal.herb_id})"
                )
        try:
            return RecipeCategory(category)
        except ValueError:
            raise BrewingValidationError(f"Invalid brew category: {category}")

    def _log_commit(
        self,
        owner_id: str,
        category: Union[RecipeCategory, str],
        success_count: int,
        items_created: int,
        ingredients_removed: int,
        error: Optional[str] = None,
    ) -> None:
        """Log the commit to the observability RunLog."""
        try:
            from src.observability.run_log import get_run_log

            get_run_log().log_commit(
                character_id=owner_id,
                category=getattr(category, "value", str(category)),
                success_count=success_count,
                items_created=items_created,
                ingredients_removed=ingredients_removed,
                error=error,
            )
        except ImportError:
            pass  # Observability module not available
