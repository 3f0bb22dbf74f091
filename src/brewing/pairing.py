"""
Pairing Engine.

Tracks which pool elements the player has combined into pairs and exposes
what is left to pair. The pool is fixed for the attempt; only the list of
pairs changes. One attempt is driven by one interaction stream at a time,
so there is no locking here.
"""

import logging
from typing import Iterator

from src.brewing.element_pool import ElementPool, sort_elements
from src.brewing.errors import PairingError
from src.data_models import ElementPair, normalize_element

logger = logging.getLogger(__name__)


class RemainingElements:
    """
    Lazy view of the unpaired part of a pool.

    Iterating yields (element, count) for every element with a positive
    remaining count, in canonical element order. The view can be iterated
    any number of times; each pass reflects the engine's current pairs.
    """

    def __init__(self, engine: "PairingEngine"):
        self._engine = engine

    def __iter__(self) -> Iterator[tuple[str, int]]:
        counts = self._engine.remaining_counts()
        for element in sort_elements(counts):
            yield element, counts[element]

    def __contains__(self, element: object) -> bool:
        if not isinstance(element, str):
            return False
        return self._engine.available(element) > 0

    def __len__(self) -> int:
        return len(self._engine.remaining_counts())

    def total(self) -> int:
        """Total number of unpaired elements."""
        return sum(count for _, count in self)

    def __repr__(self) -> str:
        return f"RemainingElements({dict(self)!r})"


class PairingEngine:
    """
    Pairs up elements from a fixed element pool.

    Attributes:
        pool: The element pool for the attempt (never modified)
        pairs: The pairs assigned so far, in assignment order
    """

    def __init__(self, pool: ElementPool):
        self._pool: ElementPool = {normalize_element(e): c for e, c in pool.items() if c > 0}
        self._pairs: list[ElementPair] = []

    @property
    def pool(self) -> ElementPool:
        return dict(self._pool)

    @property
    def pairs(self) -> list[ElementPair]:
        return list(self._pairs)

    def _consumed(self) -> dict[str, int]:
        consumed: dict[str, int] = {}
        for pair in self._pairs:
            for element in pair:
                consumed[element] = consumed.get(element, 0) + 1
        return consumed

    def remaining_counts(self) -> dict[str, int]:
        """Pool minus paired elements, omitting elements with nothing left."""
        consumed = self._consumed()
        remaining = {}
        for element, count in self._pool.items():
            left = count - consumed.get(element, 0)
            if left > 0:
                remaining[element] = left
        return remaining

    def available(self, element: str) -> int:
        """How many of an element are still unpaired."""
        element = normalize_element(element)
        return max(0, self._pool.get(element, 0) - self._consumed().get(element, 0))

    def remaining_elements(self) -> RemainingElements:
        """Restartable view of the elements still available for pairing."""
        return RemainingElements(self)

    def add_pair(self, first: str, second: str) -> ElementPair:
        """
        Combine two available elements into a pair.

        Args:
            first: First element (assignment order is kept for display)
            second: Second element; may equal the first if two are left

        Returns:
            The new pair

        Raises:
            PairingError: If either element is not available
        """
        pair = ElementPair(first, second)
        needed: dict[str, int] = {}
        for element in pair:
            needed[element] = needed.get(element, 0) + 1

        for element, count in needed.items():
            have = self.available(element)
            if have < count:
                raise PairingError(
                    f"Cannot pair {pair.first} with {pair.second}: "
                    f"{count} {element} needed, {have} remaining"
                )

        self._pairs.append(pair)
        logger.debug(f"Paired {pair.first}+{pair.second} ({len(self._pairs)} pairs)")
        return pair

    def remove_pair(self, index: int) -> ElementPair:
        """
        Withdraw a pair, returning its elements to the remaining pool.

        Raises:
            PairingError: If there is no pair at that position
        """
        if index < 0 or index >= len(self._pairs):
            raise PairingError(f"No pair at position {index}")
        pair = self._pairs.pop(index)
        logger.debug(f"Unpaired {pair.first}+{pair.second}")
        return pair

    def clear(self) -> None:
        """Withdraw every pair."""
        self._pairs = []

    def __repr__(self) -> str:
        return f"PairingEngine(pool={self._pool}, pairs={self._pairs})"
