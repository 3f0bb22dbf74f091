"""
Tests for the herb and recipe catalogs.
"""

import json

from src.brewing.catalog import HerbCatalog, RecipeCatalog, seed_store
from src.data_models import RecipeCategory
from src.persistence.brewing_store import BrewingStore


class TestBundledData:
    def test_herbs_load(self):
        catalog = HerbCatalog()
        assert len(catalog) == 10
        assert catalog.get(1).name == "Emberroot"
        assert catalog.get(1).elements == ["fire", "fire"]
        assert 10 in catalog

    def test_recipes_load_in_table_order(self):
        catalog = RecipeCatalog()
        assert [r.recipe_id for r in catalog.all()] == list(range(1, 13))

    def test_base_recipes_exclude_secret(self):
        catalog = RecipeCatalog()
        base = catalog.base_recipes()
        assert len(base) == 11
        assert all(not r.is_secret for r in base)
        assert catalog.get(7).unlock_code == "BARROW"

    def test_every_recipe_is_a_pair(self):
        assert all(r.pair_key is not None for r in RecipeCatalog().all())

    def test_get_by_category(self):
        bombs = RecipeCatalog().get_by_category("bomb")
        assert bombs
        assert all(r.category == RecipeCategory.BOMB for r in bombs)


class TestHerbSearch:
    def test_by_element(self):
        names = {h.name for h in HerbCatalog().search(element="AIR")}
        assert names == {"Windthistle", "Frostfern"}

    def test_by_name_and_rarity(self):
        catalog = HerbCatalog()
        assert [h.name for h in catalog.search(name_contains="bark")] == ["Ironbark"]
        assert {h.name for h in catalog.search(rarity="Rare")} == {"Gravebell", "Sunpetal"}


class TestLoading:
    def test_missing_path(self, tmp_path):
        catalog = HerbCatalog(tmp_path / "nope.json")
        assert len(catalog) == 0

    def test_invalid_entries_skipped(self, tmp_path):
        path = tmp_path / "herbs.json"
        path.write_text(json.dumps({
            "herbs": [
                {"herb_id": 1, "name": "Good", "elements": ["fire"]},
                {"name": "No id"},
                {"herb_id": 2},
            ]
        }))
        catalog = HerbCatalog(path)
        assert [h.name for h in catalog.all()] == ["Good"]

    def test_duplicate_id_overwrites(self, tmp_path):
        path = tmp_path / "recipes.json"
        path.write_text(json.dumps({
            "recipes": [
                {"recipe_id": 1, "name": "First", "category": "oil", "elements": ["fire", "air"]},
                {"recipe_id": 1, "name": "Second", "category": "oil", "elements": ["fire", "air"]},
            ]
        }))
        catalog = RecipeCatalog(path)
        assert len(catalog) == 1
        assert catalog.get(1).name == "Second"

    def test_bad_json_file_is_skipped(self, tmp_path):
        (tmp_path / "a.json").write_text("{not json")
        (tmp_path / "b.json").write_text(json.dumps({
            "herbs": [{"herb_id": 3, "name": "Moss", "elements": ["earth"]}]
        }))
        catalog = HerbCatalog(tmp_path)
        assert [h.herb_id for h in catalog.all()] == [3]

    def test_legacy_type_key(self, tmp_path):
        path = tmp_path / "recipes.json"
        path.write_text(json.dumps({
            "recipes": [{"recipe_id": 4, "name": "Old", "type": "bomb", "elements": ["air", "air"]}]
        }))
        assert RecipeCatalog(path).get(4).category == RecipeCategory.BOMB


def test_seed_store():
    store = BrewingStore()
    assert seed_store(store) == (10, 12)
    assert store.get_recipe(7).is_secret is True
    assert store.initialize_base_recipes("someone") == 11
