"""
SQLite persistence for the brewing engine.

Holds the reference tables (herbs, recipes), each character's known
recipes, and the two ledgers a brew touches:

- character_herbs: ingredient ledger, one row per (character, herb);
  rows that reach zero are deleted rather than kept at zero
- character_brewed: crafted-artifact ledger, one row per successful brew

Every mutation of a ledger runs inside one BEGIN IMMEDIATE transaction, so
the sufficiency check and the write happen under the same database write
lock. Two concurrent brews cannot both pass the check against the same
herbs.
"""

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional
import json
import logging
import sqlite3
import threading

from src.brewing.errors import (
    BrewingValidationError,
    InsufficientIngredientsError,
    PersistenceError,
)
from src.data_models import (
    BrewedItem,
    CharacterHerb,
    Herb,
    IngredientRemoval,
    Recipe,
    RecipeCategory,
)


logger = logging.getLogger(__name__)


class BrewingStore:
    """
    SQLite-backed ledgers and catalogs for brewing.

    For an in-memory database a single connection is kept for the life of
    the store (guarded by a lock); file databases open a connection per
    operation and rely on SQLite's own locking between connections.
    """

    def __init__(self, db_path: Optional[Path] = None, timeout: float = 5.0):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database file. If None, uses in-memory database.
            timeout: Seconds to wait for another connection's write lock
        """
        self.db_path = Path(db_path) if db_path else Path(":memory:")
        self.timeout = timeout
        self._memory_conn: Optional[sqlite3.Connection] = None
        self._memory_lock = threading.RLock()

        if self.is_memory:
            self._memory_conn = self._connect()
        else:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_database()

        logger.info(f"BrewingStore initialized with database: {self.db_path}")

    @property
    def is_memory(self) -> bool:
        return str(self.db_path) == ":memory:"

    # =========================================================================
    # CONNECTIONS
    # =========================================================================

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.timeout,
            isolation_level=None,  # Transactions are opened explicitly
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection, closing it afterwards unless it is the shared in-memory one."""
        if self._memory_conn is not None:
            with self._memory_lock:
                yield self._memory_conn
            return

        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        """
        Run a block inside one write transaction.

        Any exception rolls the whole block back. sqlite3 errors surface
        as PersistenceError; brewing errors raised inside the block pass
        through unchanged.
        """
        try:
            with self._connection() as conn:
                cursor = conn.cursor()
                cursor.execute("BEGIN IMMEDIATE")
                try:
                    yield cursor
                except BaseException:
                    conn.rollback()
                    raise
                else:
                    conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Brewing store transaction failed: {e}")
            raise PersistenceError(f"Storage failure: {e}") from e

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            with self._connection() as conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Brewing store query failed: {e}")
            raise PersistenceError(f"Storage failure: {e}") from e

    def _init_database(self) -> None:
        """Initialize the SQLite database schema."""
        with self._transaction() as cursor:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS herbs (
                    herb_id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    rarity TEXT NOT NULL,
                    elements_json TEXT NOT NULL,
                    description TEXT,
                    property TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS recipes (
                    recipe_id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    category TEXT NOT NULL,
                    elements_json TEXT NOT NULL,
                    description TEXT,
                    recipe_text TEXT,
                    lore TEXT,
                    is_secret INTEGER NOT NULL DEFAULT 0,
                    unlock_code TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS character_recipes (
                    character_id TEXT NOT NULL,
                    recipe_id INTEGER NOT NULL,
                    unlocked_at TEXT NOT NULL,
                    PRIMARY KEY (character_id, recipe_id),
                    FOREIGN KEY (recipe_id) REFERENCES recipes(recipe_id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS character_herbs (
                    character_id TEXT NOT NULL,
                    herb_id INTEGER NOT NULL,
                    quantity INTEGER NOT NULL CHECK (quantity > 0),
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (character_id, herb_id),
                    FOREIGN KEY (herb_id) REFERENCES herbs(herb_id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS character_brewed (
                    brewed_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    character_id TEXT NOT NULL,
                    category TEXT NOT NULL,
                    effects_json TEXT NOT NULL,
                    computed_description TEXT,
                    choices_json TEXT NOT NULL DEFAULT '{}',
                    quantity INTEGER NOT NULL CHECK (quantity > 0),
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_brewed_character
                ON character_brewed(character_id)
            """)

    # =========================================================================
    # REFERENCE DATA
    # =========================================================================

    def register_herb(self, herb: Herb) -> None:
        """Insert or update a herb definition."""
        with self._transaction() as cursor:
            cursor.execute("""
                INSERT INTO herbs
                (herb_id, name, rarity, elements_json, description, property)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (herb_id) DO UPDATE SET
                    name = excluded.name, rarity = excluded.rarity,
                    elements_json = excluded.elements_json,
                    description = excluded.description, property = excluded.property
            """, (
                herb.herb_id,
                herb.name,
                herb.rarity,
                json.dumps(herb.elements),
                herb.description,
                herb.property,
            ))

    def register_herbs(self, herbs: Iterable[Herb]) -> int:
        count = 0
        for herb in herbs:
            self.register_herb(herb)
            count += 1
        return count

    def get_herb(self, herb_id: int) -> Optional[Herb]:
        rows = self._query("SELECT * FROM herbs WHERE herb_id = ?", (herb_id,))
        return self._row_to_herb(rows[0]) if rows else None

    def list_herbs(self) -> list[Herb]:
        return [self._row_to_herb(r) for r in self._query("SELECT * FROM herbs ORDER BY name")]

    def register_recipe(self, recipe: Recipe) -> None:
        """Insert or update a recipe definition."""
        with self._transaction() as cursor:
            cursor.execute("""
                INSERT INTO recipes
                (recipe_id, name, category, elements_json, description,
                 recipe_text, lore, is_secret, unlock_code)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (recipe_id) DO UPDATE SET
                    name = excluded.name, category = excluded.category,
                    elements_json = excluded.elements_json,
                    description = excluded.description, recipe_text = excluded.recipe_text,
                    lore = excluded.lore, is_secret = excluded.is_secret,
                    unlock_code = excluded.unlock_code
            """, (
                recipe.recipe_id,
                recipe.name,
                recipe.category.value,
                json.dumps(recipe.elements),
                recipe.description,
                recipe.recipe_text,
                recipe.lore,
                int(recipe.is_secret),
                recipe.unlock_code,
            ))

    def register_recipes(self, recipes: Iterable[Recipe]) -> int:
        count = 0
        for recipe in recipes:
            self.register_recipe(recipe)
            count += 1
        return count

    def get_recipe(self, recipe_id: int) -> Optional[Recipe]:
        rows = self._query("SELECT * FROM recipes WHERE recipe_id = ?", (recipe_id,))
        return self._row_to_recipe(rows[0]) if rows else None

    def list_recipes(self) -> list[Recipe]:
        return [self._row_to_recipe(r) for r in self._query("SELECT * FROM recipes ORDER BY name")]

    # =========================================================================
    # KNOWN RECIPES
    # =========================================================================

    def learn_recipe(self, character_id: str, recipe_id: int) -> bool:
        """
        Add a recipe to a character's known recipes.

        Returns:
            True if newly learned, False if already known
        """
        with self._transaction() as cursor:
            cursor.execute("""
                INSERT OR IGNORE INTO character_recipes (character_id, recipe_id, unlocked_at)
                VALUES (?, ?, ?)
            """, (character_id, recipe_id, datetime.now().isoformat()))
            return cursor.rowcount > 0

    def initialize_base_recipes(self, character_id: str) -> int:
        """
        Teach a character every non-secret recipe.

        Returns:
            Number of recipes newly learned
        """
        now = datetime.now().isoformat()
        with self._transaction() as cursor:
            cursor.execute("""
                INSERT OR IGNORE INTO character_recipes (character_id, recipe_id, unlocked_at)
                SELECT ?, recipe_id, ? FROM recipes WHERE is_secret = 0
            """, (character_id, now))
            learned = cursor.rowcount
        logger.info(f"Character {character_id} learned {learned} base recipes")
        return learned

    def fetch_character_recipes(self, character_id: str) -> list[Recipe]:
        """Recipes a character knows, sorted by name."""
        rows = self._query("""
            SELECT r.* FROM character_recipes cr
            JOIN recipes r ON r.recipe_id = cr.recipe_id
            WHERE cr.character_id = ?
            ORDER BY r.name
        """, (character_id,))
        return [self._row_to_recipe(r) for r in rows]

    # =========================================================================
    # INGREDIENT LEDGER
    # =========================================================================

    def add_character_herbs(self, character_id: str, herb_id: int, quantity: int = 1) -> int:
        """
        Add herbs to a character's ingredient ledger.

        Returns:
            The new quantity held

        Raises:
            BrewingValidationError: If quantity is not positive or the herb is unknown
        """
        if quantity <= 0:
            raise BrewingValidationError("Quantity must be positive")

        now = datetime.now().isoformat()
        with self._transaction() as cursor:
            cursor.execute("SELECT 1 FROM herbs WHERE herb_id = ?", (herb_id,))
            if cursor.fetchone() is None:
                raise BrewingValidationError(f"Unknown herb: {herb_id}")

            cursor.execute("""
                INSERT INTO character_herbs (character_id, herb_id, quantity, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (character_id, herb_id)
                DO UPDATE SET quantity = quantity + excluded.quantity,
                              updated_at = excluded.updated_at
            """, (character_id, herb_id, quantity, now))

            cursor.execute("""
                SELECT quantity FROM character_herbs
                WHERE character_id = ? AND herb_id = ?
            """, (character_id, herb_id))
            return cursor.fetchone()[0]

    def remove_character_herbs(self, character_id: str, herb_id: int, quantity: int = 1) -> None:
        """
        Remove herbs from a character's ingredient ledger.

        Raises:
            BrewingValidationError: If quantity is not positive
            InsufficientIngredientsError: If the character holds fewer than quantity
        """
        if quantity <= 0:
            raise BrewingValidationError("Quantity must be positive")

        with self._transaction() as cursor:
            self._deduct_herbs(cursor, character_id, [IngredientRemoval(herb_id, quantity)])

    def fetch_character_herbs(self, character_id: str) -> list[CharacterHerb]:
        """A character's ingredient ledger, joined with herb definitions, by herb name."""
        rows = self._query("""
            SELECT h.*, ch.quantity AS held FROM character_herbs ch
            JOIN herbs h ON h.herb_id = ch.herb_id
            WHERE ch.character_id = ?
            ORDER BY h.name
        """, (character_id,))
        return [
            CharacterHerb(character_id=character_id, herb=self._row_to_herb(r), quantity=r["held"])
            for r in rows
        ]

    def get_herb_quantities(self, character_id: str) -> dict[int, int]:
        rows = self._query("""
            SELECT herb_id, quantity FROM character_herbs WHERE character_id = ?
        """, (character_id,))
        return {r["herb_id"]: r["quantity"] for r in rows}

    def _deduct_herbs(
        self,
        cursor: sqlite3.Cursor,
        character_id: str,
        removals: Iterable[IngredientRemoval],
    ) -> int:
        """
        Check and deduct a removal list inside an open transaction.

        Every line is checked before any row is touched. Duplicate herb ids
        are summed first.

        Returns:
            Total number of herb instances removed
        """
        needed: dict[int, int] = {}
        for removal in removals:
            if removal.quantity <= 0:
                raise BrewingValidationError(
                    f"Removal quantity must be positive (herb {removal.herb_id})"
                )
            needed[removal.herb_id] = needed.get(removal.herb_id, 0) + removal.quantity

        for herb_id, quantity in needed.items():
            cursor.execute("""
                SELECT quantity FROM character_herbs
                WHERE character_id = ? AND herb_id = ?
            """, (character_id, herb_id))
            row = cursor.fetchone()
            if row is None:
                raise InsufficientIngredientsError(f"Herb not found: {herb_id}", herb_id=herb_id)
            if row[0] < quantity:
                raise InsufficientIngredientsError(
                    f"Insufficient herbs: {herb_id} (have {row[0]}, need {quantity})",
                    herb_id=herb_id,
                )

        now = datetime.now().isoformat()
        for herb_id, quantity in needed.items():
            cursor.execute("""
                UPDATE character_herbs
                SET quantity = quantity - ?, updated_at = ?
                WHERE character_id = ? AND herb_id = ? AND quantity > ?
            """, (quantity, now, character_id, herb_id, quantity))
            if cursor.rowcount == 0:
                cursor.execute("""
                    DELETE FROM character_herbs
                    WHERE character_id = ? AND herb_id = ?
                """, (character_id, herb_id))

        return sum(needed.values())

    # =========================================================================
    # BREWING
    # =========================================================================

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
        """
        Consume ingredients and create the brewed item in one transaction.

        Ingredients are removed whatever the success count; the brewed item
        row is only created when success_count > 0, with that quantity.
        Either both happen or neither does.

        Args:
            character_id: Character performing the brew
            removals: Ingredient removal list
            category: Brewed item category
            effects: Effect names, repeated per unit of potency
            computed_description: Filled description text
            choices: Player choices made for the templates
            success_count: Number of successful trials

        Returns:
            The new brewed item id, or None when nothing was created

        Raises:
            BrewingValidationError: Bad category, success count or removal quantity
            InsufficientIngredientsError: The ledger cannot cover the removals
            PersistenceError: The database failed
        """
        try:
            category = RecipeCategory(category)
        except ValueError:
            raise BrewingValidationError(f"Invalid brew category: {category}")
        if success_count < 0:
            raise BrewingValidationError("Invalid success count")

        with self._transaction() as cursor:
            removed = self._deduct_herbs(cursor, character_id, removals)

            brewed_id = None
            if success_count > 0:
                brewed_id = self._insert_brewed(
                    cursor, character_id, category, effects,
                    computed_description, choices or {}, success_count,
                )

        logger.info(
            f"Brewed {category.value} for {character_id}: "
            f"{removed} herbs consumed, {success_count} created"
        )
        return brewed_id

    def _insert_brewed(
        self,
        cursor: sqlite3.Cursor,
        character_id: str,
        category: RecipeCategory,
        effects: list[str],
        computed_description: str,
        choices: dict[str, str],
        quantity: int,
    ) -> int:
        now = datetime.now().isoformat()
        cursor.execute("""
            INSERT INTO character_brewed
            (character_id, category, effects_json, computed_description,
             choices_json, quantity, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            character_id,
            category.value,
            json.dumps(list(effects)),
            computed_description,
            json.dumps(dict(choices)),
            quantity,
            now,
            now,
        ))
        return cursor.lastrowid

    # =========================================================================
    # BREWED ITEM LEDGER
    # =========================================================================

    def fetch_character_brewed(self, character_id: str) -> list[BrewedItem]:
        """A character's brewed items, newest first."""
        rows = self._query("""
            SELECT * FROM character_brewed
            WHERE character_id = ?
            ORDER BY created_at DESC, brewed_id DESC
        """, (character_id,))
        return [self._row_to_brewed(r) for r in rows]

    def consume_brewed_item(
        self,
        brewed_id: int,
        quantity: int = 1,
        character_id: Optional[str] = None,
    ) -> int:
        """
        Use up brewed items; the row is deleted when none remain.

        Args:
            brewed_id: Brewed item row
            quantity: How many to consume
            character_id: If given, the item must belong to this character

        Returns:
            Quantity remaining

        Raises:
            BrewingValidationError: Bad quantity, or the item belongs to someone else
            InsufficientIngredientsError: Item missing or not enough left
        """
        if quantity <= 0:
            raise BrewingValidationError("Quantity must be positive")

        with self._transaction() as cursor:
            cursor.execute("""
                SELECT quantity, character_id FROM character_brewed WHERE brewed_id = ?
            """, (brewed_id,))
            row = cursor.fetchone()
            if row is None:
                raise InsufficientIngredientsError(f"Brewed item not found: {brewed_id}")
            if character_id is not None and row[1] != character_id:
                raise BrewingValidationError("Unauthorized")
            if row[0] < quantity:
                raise InsufficientIngredientsError("Insufficient items")

            remaining = row[0] - quantity
            if remaining == 0:
                cursor.execute("DELETE FROM character_brewed WHERE brewed_id = ?", (brewed_id,))
            else:
                cursor.execute("""
                    UPDATE character_brewed SET quantity = ?, updated_at = ?
                    WHERE brewed_id = ?
                """, (remaining, datetime.now().isoformat(), brewed_id))
            return remaining

    # =========================================================================
    # INSPECTION
    # =========================================================================

    def snapshot(self, character_id: str) -> dict[str, Any]:
        """Both ledgers for a character, as plain data."""
        return {
            "herbs": self.get_herb_quantities(character_id),
            "brewed": [
                {k: v for k, v in item.to_dict().items() if k != "created_at"}
                for item in self.fetch_character_brewed(character_id)
            ],
        }

    def get_statistics(self) -> dict[str, int]:
        """Row counts per table."""
        stats = {}
        for table in ("herbs", "recipes", "character_recipes", "character_herbs", "character_brewed"):
            stats[table] = self._query(f"SELECT COUNT(*) FROM {table}")[0][0]
        return stats

    # =========================================================================
    # ROW CONVERSION
    # =========================================================================

    def _row_to_herb(self, row: sqlite3.Row) -> Herb:
        return Herb(
            herb_id=row["herb_id"],
            name=row["name"],
            rarity=row["rarity"],
            elements=json.loads(row["elements_json"]),
            description=row["description"],
            property=row["property"],
        )

    def _row_to_recipe(self, row: sqlite3.Row) -> Recipe:
        return Recipe(
            recipe_id=row["recipe_id"],
            name=row["name"],
            category=RecipeCategory(row["category"]),
            elements=json.loads(row["elements_json"]),
            description=row["description"],
            recipe_text=row["recipe_text"],
            lore=row["lore"],
            is_secret=bool(row["is_secret"]),
            unlock_code=row["unlock_code"],
        )

    def _row_to_brewed(self, row: sqlite3.Row) -> BrewedItem:
        return BrewedItem(
            brewed_id=row["brewed_id"],
            character_id=row["character_id"],
            category=RecipeCategory(row["category"]),
            effects=json.loads(row["effects_json"]),
            quantity=row["quantity"],
            computed_description=row["computed_description"],
            choices=json.loads(row["choices_json"] or "{}"),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
