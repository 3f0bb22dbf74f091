"""
Element pool construction.

Turns a selection of herb instances into a countable multiset of elements.
Everything here is a pure function of its input.
"""

from typing import Iterable, Optional, Union

from src.data_models import Herb, SelectedIngredient, element_index, normalize_element


ElementPool = dict[str, int]


def _iter_instances(selection: Iterable[Union[Herb, SelectedIngredient]]) -> Iterable[Herb]:
    for entry in selection:
        if isinstance(entry, SelectedIngredient):
            yield from entry.instances()
        else:
            yield entry


def build_element_pool(selection: Iterable[Union[Herb, SelectedIngredient]]) -> ElementPool:
    """
    Build the element pool for a brewing attempt.

    Args:
        selection: Herb instances, or SelectedIngredient entries whose
            quantity expands into that many instances

    Returns:
        Mapping of element to the number of times it appears across all
        selected instances. An empty selection gives an empty pool.
    """
    pool: ElementPool = {}
    for herb in _iter_instances(selection):
        for element in herb.elements:
            element = normalize_element(element)
            pool[element] = pool.get(element, 0) + 1
    return pool


def total_elements(pool: ElementPool) -> int:
    """Total number of elements in a pool."""
    return sum(pool.values())


def sort_elements(elements: Iterable[str]) -> list[str]:
    """Sort elements into canonical display order, unknown elements last."""
    return sorted(elements, key=lambda e: (element_index(e), e))


def primary_element(elements: Optional[list[str]]) -> Optional[str]:
    """
    Get the most common element of a list.

    Ties go to the first element of the original list, matching how herbs
    are labelled in the inventory.
    """
    if not elements:
        return None

    counts: dict[str, int] = {}
    for element in elements:
        counts[element] = counts.get(element, 0) + 1

    highest = max(counts.values())
    top = [e for e, c in counts.items() if c == highest]
    if len(top) > 1:
        return elements[0]
    return top[0]
