"""
Test helpers for the Herbalism Brewing Engine test suite.

Provides a deterministic test harness with:
- BrewingSessionTestBuilder for easy BrewingSession setup
- Scripted roll sources
- Deterministic seeding utilities
"""

from typing import Iterable, Optional

from src.brewing.outcome import OutcomeResolver
from src.brewing.session import BrewingSession
from src.config import BrewingConfig
from src.data_models import BrewMode, DiceRoller, Herb, Recipe
from src.observability.replay import ReplaySession
from src.observability.run_log import get_run_log
from src.persistence.brewing_store import BrewingStore


CHARACTER_ID = "char_1"


def scripted_rolls(*values: int) -> ReplaySession:
    """A random source that returns exactly these die results, in order."""
    return ReplaySession.from_values(values)


# =============================================================================
# SESSION TEST BUILDER
# =============================================================================


class BrewingSessionTestBuilder:
    """
    Builder pattern for creating BrewingSession instances in tests.

    Usage:
        session = (BrewingSessionTestBuilder(store)
            .with_rolls(18, 3, 15)
            .with_herb(1, 4)
            .with_mode(BrewMode.BY_RECIPE)
            .build())
    """

    def __init__(self, store: BrewingStore, character_id: str = CHARACTER_ID):
        """Initialize builder with defaults."""
        self._store = store
        self._character_id = character_id
        self._rolls: Optional[list[int]] = None
        self._seed: int = 42
        self._mode: BrewMode = BrewMode.BY_HERBS
        self._config: BrewingConfig = BrewingConfig()
        self._recipes: Optional[list[Recipe]] = None
        self._herbs: list[tuple[int, int]] = []

    def with_rolls(self, *values: int) -> "BrewingSessionTestBuilder":
        """Script the outcome rolls."""
        self._rolls = list(values)
        return self

    def with_seed(self, seed: int) -> "BrewingSessionTestBuilder":
        """Seed the dice roller (used when no rolls are scripted)."""
        self._seed = seed
        return self

    def with_mode(self, mode: BrewMode) -> "BrewingSessionTestBuilder":
        self._mode = mode
        return self

    def with_config(self, **overrides) -> "BrewingSessionTestBuilder":
        """Override BrewingConfig fields."""
        self._config = BrewingConfig(**overrides)
        return self

    def with_recipes(self, recipes: Iterable[Recipe]) -> "BrewingSessionTestBuilder":
        """Resolve against these recipes instead of the character's known ones."""
        self._recipes = list(recipes)
        return self

    def with_herb(self, herb_id: int, quantity: int = 1) -> "BrewingSessionTestBuilder":
        """Put herbs in the character's inventory before building."""
        self._herbs.append((herb_id, quantity))
        return self

    def build(self) -> BrewingSession:
        """Build and return the configured BrewingSession."""
        for herb_id, quantity in self._herbs:
            self._store.add_character_herbs(self._character_id, herb_id, quantity)

        if self._rolls is not None:
            rng = scripted_rolls(*self._rolls)
        else:
            seed_all_randomness(self._seed)
            rng = None

        resolver = OutcomeResolver(
            rng=rng,
            die_size=self._config.die_size,
            threshold=self._config.brewing_dc,
        )
        return BrewingSession(
            self._store,
            self._character_id,
            recipes=self._recipes,
            config=self._config,
            outcome_resolver=resolver,
            mode=self._mode,
        )


# =============================================================================
# STORE HELPERS
# =============================================================================


def create_test_store(
    herbs: Iterable[Herb],
    recipes: Iterable[Recipe],
    character_id: Optional[str] = CHARACTER_ID,
) -> BrewingStore:
    """In-memory store with reference data; the character learns the base recipes."""
    store = BrewingStore()
    store.register_herbs(herbs)
    store.register_recipes(recipes)
    if character_id:
        store.initialize_base_recipes(character_id)
    return store


# =============================================================================
# RANDOMNESS
# =============================================================================


def seed_all_randomness(seed: int = 42) -> None:
    """Seed the dice roller and record the seed in the run log."""
    DiceRoller.clear_roll_log()
    DiceRoller.set_seed(seed)
    get_run_log().set_seed(seed)


def reset_randomness() -> None:
    """Clear roll history."""
    DiceRoller.clear_roll_log()
