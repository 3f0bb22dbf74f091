"""
Recipe Resolver.

Maps an unordered element pair to a known recipe and folds the pairs of an
attempt into potency-counted effects.
"""

import logging
from typing import Iterable, Optional

from src.data_models import ElementPair, PairedEffect, Recipe, normalize_element

logger = logging.getLogger(__name__)


def find_recipe_for_pair(
    recipes: Iterable[Recipe], element1: str, element2: str
) -> Optional[Recipe]:
    """
    Find the first recipe whose two elements match a pair in either order.

    Recipes that do not have exactly two elements never match.

    Args:
        recipes: Recipes in table order
        element1: One element of the pair
        element2: The other element

    Returns:
        The first matching recipe, or None
    """
    wanted = tuple(sorted((normalize_element(element1), normalize_element(element2))))
    for recipe in recipes:
        if recipe.pair_key == wanted:
            return recipe
    return None


class RecipeResolver:
    """
    Lookup table from sorted element pair to recipe.

    Built once from the character's known recipes. When two recipes share
    a pair, the earlier one in table order wins, same as the linear scan.
    """

    def __init__(self, recipes: Iterable[Recipe]):
        self._recipes: list[Recipe] = list(recipes)
        self._by_pair: dict[tuple[str, str], Recipe] = {}
        for recipe in self._recipes:
            key = recipe.pair_key
            if key is None:
                continue
            if key in self._by_pair:
                logger.debug(
                    f"Recipe '{recipe.name}' ignored: pair {key} "
                    f"already resolves to '{self._by_pair[key].name}'"
                )
                continue
            self._by_pair[key] = recipe

    @property
    def recipes(self) -> list[Recipe]:
        return list(self._recipes)

    def resolve(self, element1: str, element2: str) -> Optional[Recipe]:
        """Resolve a pair of elements to a recipe, or None."""
        key = tuple(sorted((normalize_element(element1), normalize_element(element2))))
        return self._by_pair.get(key)  # type: ignore[arg-type]

    def resolve_pair(self, pair: ElementPair) -> Optional[Recipe]:
        return self._by_pair.get(pair.key)

    def __len__(self) -> int:
        return len(self._recipes)


def aggregate_effects(pairs: Iterable[ElementPair], resolver: RecipeResolver) -> list[PairedEffect]:
    """
    Resolve every pair and count how often each recipe comes up.

    Pairs that match no recipe are dropped; the player may pair leftovers
    on purpose. Effects come back in the order their recipe first appeared.

    Args:
        pairs: The attempt's pairs
        resolver: Lookup built from the known recipes

    Returns:
        One PairedEffect per distinct recipe, potency = number of pairs
    """
    effects: dict[str, PairedEffect] = {}
    for pair in pairs:
        recipe = resolver.resolve_pair(pair)
        if recipe is None:
            continue
        existing = effects.get(recipe.name)
        if existing:
            existing.potency += 1
        else:
            effects[recipe.name] = PairedEffect(recipe=recipe, potency=1)
    return list(effects.values())
