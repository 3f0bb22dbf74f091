"""
Shared data structures for the Herbalism Brewing Engine.

These structures are passed between the pool builder, pairing engine,
recipe resolver, template engine, outcome resolver and committer. No
component owns them exclusively.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional
import random


# =============================================================================
# ELEMENTS
# =============================================================================


# Canonical order for sorting and displaying elements
ELEMENT_ORDER: tuple[str, ...] = ("fire", "water", "earth", "air", "positive", "negative")

ELEMENT_SYMBOLS: dict[str, str] = {
    "fire": "🔥",
    "water": "💧",
    "earth": "⛰️",
    "air": "💨",
    "positive": "✨",
    "negative": "💀",
}


def normalize_element(element: str) -> str:
    """Normalize an element tag for comparison."""
    return element.strip().lower()


def element_index(element: str) -> int:
    """Sort index for an element; unknown elements sort last."""
    try:
        return ELEMENT_ORDER.index(normalize_element(element))
    except ValueError:
        return 999


def element_symbol(element: str) -> str:
    """Display symbol for an element, or a bullet for unknown elements."""
    return ELEMENT_SYMBOLS.get(normalize_element(element), "●")


# =============================================================================
# ENUMS
# =============================================================================


class RecipeCategory(str, Enum):
    """Crafted item classes. One brewing attempt produces exactly one category."""
    ELIXIR = "elixir"
    BOMB = "bomb"
    OIL = "oil"


class BrewMode(str, Enum):
    """How the player drives a brewing attempt."""
    BY_HERBS = "by_herbs"  # Select herbs, then pair their elements
    BY_RECIPE = "by_recipe"  # Select recipes, then herbs to cover them


RARITY_ORDER: tuple[str, ...] = (
    "common",
    "uncommon",
    "rare",
    "very rare",
    "legendary",
    "preternatural",
)


# =============================================================================
# DICE AND RANDOMIZATION
# =============================================================================


class DiceRoller:
    """
    Centralized randomization interface.
    All dice rolls must go through this class for reproducibility and logging.

    The roller owns a private random.Random so seeding it never disturbs
    (or is disturbed by) other users of the global random module.
    """

    _instance = None
    _seed: Optional[int] = None
    _rng: random.Random = random.Random()
    _roll_log: list = []

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def set_seed(cls, seed: int) -> None:
        """Set random seed for reproducibility."""
        cls._seed = seed
        cls._rng = random.Random(seed)

    @classmethod
    def get_seed(cls) -> Optional[int]:
        """Get the current seed, if one was set."""
        return cls._seed

    @classmethod
    def roll(cls, dice: str, reason: str = "") -> "DiceResult":
        """
        Roll dice using standard notation (e.g., '2d6', '1d20+5', '3d6-2').

        Args:
            dice: Dice notation string
            reason: Why this roll is being made (for logging)

        Returns:
            DiceResult with individual rolls and total
        """
        modifier = 0
        if '+' in dice:
            dice_part, mod_part = dice.split('+')
            modifier = int(mod_part)
        elif '-' in dice:
            dice_part, mod_part = dice.split('-')
            modifier = -int(mod_part)
        else:
            dice_part = dice

        num_dice, die_size = dice_part.lower().split('d')
        num_dice = int(num_dice) if num_dice else 1
        die_size = int(die_size)

        rolls = [cls._rng.randint(1, die_size) for _ in range(num_dice)]
        total = sum(rolls) + modifier

        result = DiceResult(
            notation=dice,
            rolls=rolls,
            modifier=modifier,
            total=total,
            reason=reason
        )

        cls._roll_log.append(result)
        return result

    @classmethod
    def randint(cls, a: int, b: int, reason: str = "") -> int:
        """
        Return a random integer in [a, b], inclusive, and log it.

        Args:
            a: Minimum value (inclusive)
            b: Maximum value (inclusive)
            reason: Why this roll is being made (for logging)
        """
        value = cls._rng.randint(a, b)
        cls._roll_log.append(
            DiceResult(
                notation=f"d{b - a + 1}" if a == 1 else f"range({a}-{b})",
                rolls=[value],
                modifier=0,
                total=value,
                reason=reason,
            )
        )
        return value

    @classmethod
    def roll_d20(cls, reason: str = "") -> "DiceResult":
        """Convenience method for d20 rolls."""
        return cls.roll("1d20", reason)

    @classmethod
    def roll_d4(cls, reason: str = "") -> "DiceResult":
        """Convenience method for d4 rolls."""
        return cls.roll("1d4", reason)

    @classmethod
    def get_roll_log(cls) -> list:
        """Get the complete roll log for the session."""
        return cls._roll_log.copy()

    @classmethod
    def clear_roll_log(cls) -> None:
        """Clear the roll log."""
        cls._roll_log = []


@dataclass
class DiceResult:
    """Result of a dice roll with full information."""
    notation: str
    rolls: list[int]
    modifier: int
    total: int
    reason: str
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        if self.modifier > 0:
            return f"{self.notation}: {self.rolls} + {self.modifier} = {self.total}"
        elif self.modifier < 0:
            return f"{self.notation}: {self.rolls} - {abs(self.modifier)} = {self.total}"
        return f"{self.notation}: {self.rolls} = {self.total}"


# =============================================================================
# INGREDIENTS
# =============================================================================


@dataclass
class Herb:
    """
    Herb definition from the reference catalog.

    An herb contributes every entry of its element list to the element
    pool, so a herb listing "fire" twice contributes two fire elements.
    """
    herb_id: int
    name: str
    elements: list[str] = field(default_factory=list)
    rarity: str = "common"
    description: Optional[str] = None
    property: Optional[str] = None

    def __post_init__(self):
        self.elements = [normalize_element(e) for e in self.elements]

    def to_dict(self) -> dict[str, Any]:
        return {
            "herb_id": self.herb_id,
            "name": self.name,
            "elements": list(self.elements),
            "rarity": self.rarity,
            "description": self.description,
            "property": self.property,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Herb":
        return cls(
            herb_id=int(data["herb_id"]),
            name=data["name"],
            elements=list(data.get("elements", [])),
            rarity=data.get("rarity", "common"),
            description=data.get("description"),
            property=data.get("property"),
        )


@dataclass
class CharacterHerb:
    """A row of the ingredient ledger: how many of a herb a character owns."""
    character_id: str
    herb: Herb
    quantity: int


@dataclass
class SelectedIngredient:
    """A herb picked for the current brew and how many instances of it."""
    herb: Herb
    quantity: int = 1

    def instances(self) -> list[Herb]:
        """Expand into one Herb per selected instance."""
        return [self.herb] * self.quantity


@dataclass(frozen=True)
class IngredientRemoval:
    """Quantity of one ingredient to remove from the ledger at commit time."""
    herb_id: int
    quantity: int


# =============================================================================
# RECIPES AND EFFECTS
# =============================================================================


class ElementPair:
    """
    Two elements combined by the player.

    Recorded in assignment order, compared unordered:
    ElementPair("fire", "water") == ElementPair("water", "fire").
    """

    __slots__ = ("first", "second")

    def __init__(self, first: str, second: str):
        self.first = normalize_element(first)
        self.second = normalize_element(second)

    @property
    def key(self) -> tuple[str, str]:
        """Order-independent key for lookups."""
        a, b = self.first, self.second
        return (a, b) if a <= b else (b, a)

    def elements(self) -> tuple[str, str]:
        return (self.first, self.second)

    def __iter__(self):
        return iter((self.first, self.second))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ElementPair):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return f"ElementPair({self.first!r}, {self.second!r})"


@dataclass
class Recipe:
    """
    Catalog entry mapping an unordered element pair to a categorized effect.

    Only recipes with exactly two elements can be matched by a pair. The
    description is an optional template (see src.brewing.templates).
    """
    recipe_id: int
    name: str
    elements: list[str]
    category: RecipeCategory
    description: Optional[str] = None
    recipe_text: Optional[str] = None  # Clean text for the recipe book
    lore: Optional[str] = None
    is_secret: bool = False
    unlock_code: Optional[str] = None

    def __post_init__(self):
        self.elements = [normalize_element(e) for e in self.elements]
        if isinstance(self.category, str) and not isinstance(self.category, RecipeCategory):
            self.category = RecipeCategory(self.category.lower())

    @property
    def pair_key(self) -> Optional[tuple[str, str]]:
        """Sorted element pair, or None when the recipe is not a two-element recipe."""
        if len(self.elements) != 2:
            return None
        return tuple(sorted(self.elements))  # type: ignore[return-value]

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipe_id": self.recipe_id,
            "name": self.name,
            "elements": list(self.elements),
            "category": self.category.value,
            "description": self.description,
            "recipe_text": self.recipe_text,
            "lore": self.lore,
            "is_secret": self.is_secret,
            "unlock_code": self.unlock_code,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Recipe":
        return cls(
            recipe_id=int(data["recipe_id"]),
            name=data["name"],
            elements=list(data.get("elements", [])),
            category=RecipeCategory(data.get("category", data.get("type", "elixir"))),
            description=data.get("description"),
            recipe_text=data.get("recipe_text"),
            lore=data.get("lore"),
            is_secret=bool(data.get("is_secret", False)),
            unlock_code=data.get("unlock_code"),
        )


@dataclass
class PairedEffect:
    """
    A resolved recipe and its potency.

    Potency is the number of pairs in the attempt that resolved to the
    same recipe; it is always at least 1.
    """
    recipe: Recipe
    potency: int = 1

    def __post_init__(self):
        if self.potency < 1:
            raise ValueError(f"Potency must be at least 1, got {self.potency}")

    @property
    def category(self) -> RecipeCategory:
        return self.recipe.category


@dataclass
class SelectedRecipe:
    """A recipe chosen up front in recipe mode, with how many times to include it."""
    recipe: Recipe
    count: int = 1


# =============================================================================
# OUTCOMES
# =============================================================================


@dataclass(frozen=True)
class BrewOutcome:
    """One randomized brewing trial. Every numeric field is kept for display."""
    raw_roll: int
    modifier: int
    total: int
    threshold: int
    success: bool

    def __str__(self) -> str:
        verdict = "success" if self.success else "failure"
        comparison = ">=" if self.success else "<"
        return (
            f"d20 {self.raw_roll} {self.modifier:+d} = {self.total} "
            f"{comparison} {self.threshold} ({verdict})"
        )


@dataclass
class BatchResult:
    """Ordered trials of a batch and how many succeeded."""
    outcomes: list[BrewOutcome] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def batch_size(self) -> int:
        return len(self.outcomes)

    @property
    def all_failed(self) -> bool:
        return self.success_count == 0


# =============================================================================
# CRAFTED ARTIFACTS
# =============================================================================


@dataclass
class BrewedItem:
    """A row of the crafted-artifact ledger."""
    brewed_id: int
    character_id: str
    category: RecipeCategory
    effects: list[str]
    quantity: int
    computed_description: Optional[str] = None
    choices: dict[str, str] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "brewed_id": self.brewed_id,
            "character_id": self.character_id,
            "category": self.category.value,
            "effects": list(self.effects),
            "quantity": self.quantity,
            "computed_description": self.computed_description,
            "choices": dict(self.choices),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# =============================================================================
# STATE TRACKING
# =============================================================================


@dataclass
class TransitionLog:
    """Log entry for a state transition."""
    timestamp: datetime
    from_state: str
    to_state: str
    trigger: str
    context: dict[str, Any] = field(default_factory=dict)
