"""
Pytest fixtures for the Herbalism Brewing Engine test suite.

Provides reusable fixtures for dice, reference herbs and recipes, and an
in-memory store with a stocked character. Session setup lives in
tests/helpers.py.
"""

import pytest

from src.data_models import (
    DiceRoller,
    Herb,
    PairedEffect,
    Recipe,
    RecipeCategory,
)
from src.observability.run_log import reset_run_log
from src.persistence.brewing_store import BrewingStore
from tests.helpers import CHARACTER_ID


# =============================================================================
# DICE AND LOG FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def clean_run_log():
    """Every test starts with an empty run log."""
    log = reset_run_log()
    yield log
    reset_run_log()


@pytest.fixture
def seeded_dice():
    """Provide a seeded DiceRoller for reproducible tests."""
    DiceRoller.clear_roll_log()
    DiceRoller.set_seed(42)
    yield DiceRoller()
    DiceRoller.clear_roll_log()


# =============================================================================
# REFERENCE DATA FIXTURES
# =============================================================================


@pytest.fixture
def herbs():
    """A small herb table keyed by name."""
    return {
        "emberroot": Herb(herb_id=1, name="Emberroot", elements=["fire", "fire"]),
        "dewcap": Herb(herb_id=2, name="Dewcap", elements=["water", "positive"]),
        "stonemoss": Herb(herb_id=3, name="Stonemoss", elements=["earth", "earth"]),
        "ashbloom": Herb(herb_id=5, name="Ashbloom", elements=["fire", "negative"], rarity="uncommon"),
        "mirewort": Herb(herb_id=6, name="Mirewort", elements=["water", "earth"]),
    }


@pytest.fixture
def recipes():
    """Recipe table in table order."""
    return [
        Recipe(
            recipe_id=1,
            name="Healing Draught",
            elements=["water", "positive"],
            category=RecipeCategory.ELIXIR,
            description="Restores {n*2}d4 hit points.",
        ),
        Recipe(
            recipe_id=2,
            name="Fire Bomb",
            elements=["fire", "fire"],
            category=RecipeCategory.BOMB,
            description="Deals {n*2} damage to {target:ally|self}",
        ),
        Recipe(
            recipe_id=3,
            name="Stoneskin Elixir",
            elements=["earth", "earth"],
            category=RecipeCategory.ELIXIR,
            description="Grants +{n} AC for {n+2} rounds.",
        ),
        Recipe(
            recipe_id=5,
            name="Blight Oil",
            elements=["fire", "negative"],
            category=RecipeCategory.OIL,
            description="A coated weapon deals {n}d4 extra {damage:fire|necrotic} damage.",
        ),
        Recipe(
            recipe_id=6,
            name="Mudfoot Bomb",
            elements=["water", "earth"],
            category=RecipeCategory.BOMB,
        ),
        Recipe(
            recipe_id=7,
            name="Gravedust Oil",
            elements=["negative", "negative"],
            category=RecipeCategory.OIL,
            is_secret=True,
            unlock_code="BARROW",
        ),
    ]


@pytest.fixture
def recipes_by_name(recipes):
    return {r.name: r for r in recipes}


@pytest.fixture
def elixir_effect(recipes_by_name):
    return PairedEffect(recipe=recipes_by_name["Healing Draught"], potency=1)


@pytest.fixture
def bomb_effect(recipes_by_name):
    return PairedEffect(recipe=recipes_by_name["Fire Bomb"], potency=1)


# =============================================================================
# STORE FIXTURES
# =============================================================================


@pytest.fixture
def store(herbs, recipes):
    """In-memory store holding the reference herbs and recipes."""
    store = BrewingStore()
    store.register_herbs(herbs.values())
    store.register_recipes(recipes)
    return store


@pytest.fixture
def stocked_store(store, herbs):
    """Store where CHARACTER_ID knows the base recipes and holds some herbs."""
    store.initialize_base_recipes(CHARACTER_ID)
    store.add_character_herbs(CHARACTER_ID, herbs["emberroot"].herb_id, 4)
    store.add_character_herbs(CHARACTER_ID, herbs["dewcap"].herb_id, 3)
    store.add_character_herbs(CHARACTER_ID, herbs["stonemoss"].herb_id, 2)
    store.add_character_herbs(CHARACTER_ID, herbs["ashbloom"].herb_id, 1)
    store.add_character_herbs(CHARACTER_ID, herbs["mirewort"].herb_id, 2)
    return store

