"""
Recipe-driven brewing.

Instead of pairing elements by hand, the player picks recipes up front
(each with a count) and a batch size, then selects herbs that cover the
elements those recipes need. The effects follow directly from the chosen
recipes: each recipe's potency is its count.
"""

from typing import Iterable, Sequence, TypeVar, Union
import logging

from src.brewing.element_pool import ElementPool, build_element_pool, sort_elements
from src.data_models import (
    CharacterHerb,
    Herb,
    PairedEffect,
    SelectedIngredient,
    SelectedRecipe,
)

logger = logging.getLogger(__name__)

HerbLike = TypeVar("HerbLike", Herb, CharacterHerb, SelectedIngredient)


def _herb_of(item: Union[Herb, CharacterHerb, SelectedIngredient]) -> Herb:
    return item if isinstance(item, Herb) else item.herb


def required_elements(
    selected_recipes: Sequence[SelectedRecipe], batch_size: int = 1
) -> ElementPool:
    """
    Elements needed to brew the selected recipes batch_size times.

    Each element of each recipe counts count × batch_size times, so a
    fire/fire recipe selected twice for a batch of 3 needs 12 fire.
    """
    needed: ElementPool = {}
    for selected in selected_recipes:
        for element in selected.recipe.elements:
            needed[element] = needed.get(element, 0) + selected.count * batch_size
    return needed


def element_shortfalls(
    selection: Iterable[SelectedIngredient],
    selected_recipes: Sequence[SelectedRecipe],
    batch_size: int = 1,
) -> dict[str, int]:
    """How many of each required element the selection is short by."""
    available = build_element_pool(selection)
    shortfalls = {}
    for element, needed in required_elements(selected_recipes, batch_size).items():
        have = available.get(element, 0)
        if have < needed:
            shortfalls[element] = needed - have
    return shortfalls


def herbs_satisfy_recipes(
    selection: Iterable[SelectedIngredient],
    selected_recipes: Sequence[SelectedRecipe],
    batch_size: int = 1,
) -> bool:
    """True when the selected herbs supply every required element. No recipes means False."""
    if not selected_recipes:
        return False
    return not element_shortfalls(selection, selected_recipes, batch_size)


def matching_herbs(
    herbs: Iterable[HerbLike], selected_recipes: Sequence[SelectedRecipe]
) -> list[HerbLike]:
    """Herbs (or ledger rows) carrying at least one element the recipes need."""
    needed = set(required_elements(selected_recipes))
    return [item for item in herbs if needed.intersection(_herb_of(item).elements)]


def effects_from_selected_recipes(selected_recipes: Sequence[SelectedRecipe]) -> list[PairedEffect]:
    """
    Effects of a recipe-mode brew.

    Selecting the same recipe twice folds into one effect, like pairs
    resolving to the same recipe do in herb mode.
    """
    effects: dict[str, PairedEffect] = {}
    for selected in selected_recipes:
        if selected.count < 1:
            continue
        name = selected.recipe.name
        if name in effects:
            effects[name].potency += selected.count
        else:
            effects[name] = PairedEffect(recipe=selected.recipe, potency=selected.count)
    return list(effects.values())


def check_batch_instances(
    selection: Iterable[SelectedIngredient],
    selected_recipes: Sequence[SelectedRecipe],
    batch_size: int,
) -> dict[str, int]:
    """
    Check that a batch has enough separate herbs per element.

    Each brew of a batch needs its own herb for every element, so every
    element the recipes use must appear in at least batch_size selected
    herb instances. A single herb listing fire twice still counts once.

    Returns:
        Element to number of missing instances, in canonical element
        order. Empty when the batch is covered.
    """
    selection = list(selection)
    recipe_elements: set[str] = set()
    for selected in selected_recipes:
        recipe_elements.update(selected.recipe.elements)

    shortfalls: dict[str, int] = {}
    for element in sort_elements(recipe_elements):
        instances = sum(
            s.quantity for s in selection
            if s.quantity > 0 and element in s.herb.elements
        )
        if instances < batch_size:
            shortfalls[element] = batch_size - instances

    if shortfalls:
        logger.debug(f"Batch of {batch_size} short of herb instances: {shortfalls}")
    return shortfalls
