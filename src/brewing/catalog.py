"""
Reference catalogs for herbs and recipes.

Loads herb and recipe definitions from JSON files (by default the ones
shipped in src/brewing/data/) and can register them in a BrewingStore.

File format:
    {"herbs": [{"herb_id": 1, "name": "...", "elements": [...], ...}]}
    {"recipes": [{"recipe_id": 1, "name": "...", "category": "elixir", ...}]}
"""

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Generic, Optional, TypeVar, Union

from src.config import DEFAULT_DATA_DIR
from src.data_models import Herb, Recipe, RecipeCategory, normalize_element

if TYPE_CHECKING:
    from src.persistence.brewing_store import BrewingStore

logger = logging.getLogger(__name__)

T = TypeVar("T", Herb, Recipe)


class _JsonCatalog(Generic[T]):
    """
    Catalog of definitions loaded from a JSON file or a directory of them.

    Entries are kept in file order; a duplicate id replaces the earlier
    entry in place and is logged.
    """

    list_key: str = ""
    id_key: str = ""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._entries: dict[int, T] = {}
        self._loaded = False

    def _from_dict(self, data: dict[str, Any]) -> T:
        raise NotImplementedError

    def load(self) -> None:
        """Load every JSON file at the catalog path."""
        if not self.path.exists():
            logger.warning(f"Catalog path not found: {self.path}")
            self._loaded = True
            return

        files = [self.path] if self.path.is_file() else sorted(self.path.rglob("*.json"))
        for json_file in files:
            try:
                self._load_file(json_file)
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Error loading {json_file}: {e}")

        self._loaded = True
        logger.info(f"Loaded {len(self._entries)} {self.list_key} from {self.path}")

    def _load_file(self, json_file: Path) -> None:
        """Load entries from a single JSON file."""
        with open(json_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        for entry_data in data.get(self.list_key, []):
            if self.id_key not in entry_data:
                logger.warning(f"Entry without {self.id_key} in {json_file}")
                continue
            try:
                entry = self._from_dict(entry_data)
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping invalid entry {entry_data.get(self.id_key)} in {json_file}: {e}")
                continue

            entry_id = getattr(entry, self.id_key)
            if entry_id in self._entries:
                logger.warning(f"Duplicate {self.id_key} '{entry_id}' - overwriting")
            self._entries[entry_id] = entry

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def get(self, entry_id: int) -> Optional[T]:
        self._ensure_loaded()
        return self._entries.get(entry_id)

    def all(self) -> list[T]:
        self._ensure_loaded()
        return list(self._entries.values())

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        self._ensure_loaded()
        return entry_id in self._entries


class HerbCatalog(_JsonCatalog[Herb]):
    """Herb definitions."""

    list_key = "herbs"
    id_key = "herb_id"

    def __init__(self, path: Union[str, Path] = DEFAULT_DATA_DIR / "herbs.json"):
        super().__init__(path)

    def _from_dict(self, data: dict[str, Any]) -> Herb:
        return Herb.from_dict(data)

    def search(
        self,
        name_contains: Optional[str] = None,
        element: Optional[str] = None,
        rarity: Optional[str] = None,
    ) -> list[Herb]:
        """
        Search for herbs matching criteria.

        Args:
            name_contains: Substring to match in herb name (case-insensitive)
            element: Element the herb must carry
            rarity: Exact rarity

        Returns:
            List of matching herbs
        """
        results = []
        for herb in self.all():
            if name_contains and name_contains.lower() not in herb.name.lower():
                continue
            if element and normalize_element(element) not in herb.elements:
                continue
            if rarity and herb.rarity != rarity.lower():
                continue
            results.append(herb)
        return results


class RecipeCatalog(_JsonCatalog[Recipe]):
    """Recipe definitions, in table order."""

    list_key = "recipes"
    id_key = "recipe_id"

    def __init__(self, path: Union[str, Path] = DEFAULT_DATA_DIR / "recipes.json"):
        super().__init__(path)

    def _from_dict(self, data: dict[str, Any]) -> Recipe:
        return Recipe.from_dict(data)

    def get_by_category(self, category: Union[RecipeCategory, str]) -> list[Recipe]:
        category = RecipeCategory(category)
        return [r for r in self.all() if r.category == category]

    def base_recipes(self) -> list[Recipe]:
        """Recipes every character knows from the start."""
        return [r for r in self.all() if not r.is_secret]


def seed_store(
    store: "BrewingStore",
    data_dir: Union[str, Path] = DEFAULT_DATA_DIR,
) -> tuple[int, int]:
    """
    Register every catalog herb and recipe in the store.

    Returns:
        (herbs registered, recipes registered)
    """
    data_dir = Path(data_dir)
    herbs = store.register_herbs(HerbCatalog(data_dir / "herbs.json").all())
    recipes = store.register_recipes(RecipeCatalog(data_dir / "recipes.json").all())
    logger.info(f"Seeded store with {herbs} herbs and {recipes} recipes")
    return herbs, recipes
