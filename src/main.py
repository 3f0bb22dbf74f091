"""
Herbalism Brewing Engine - Main Entry Point

Command-line front end for brewing: list the reference herbs and
recipes, show a character's inventory and brew from herbs or recipes.

Examples:
  python -m src.main --list-recipes
  python -m src.main --db brew.db --add-herb 1:4 --add-herb 2:2
  python -m src.main --db brew.db --brew --herb 1:2 --pair fire,fire --choice target="one creature"
"""

import sys
from pathlib import Path

# Add the project root to the Python path for module discovery
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import argparse
import logging
import os
from typing import Optional

from src.brewing import (
    BrewingError,
    BrewingSession,
    CommitResult,
    seed_store,
)
from src.config import BrewingConfig
from src.data_models import BrewMode, DiceRoller, element_symbol
from src.game_state import InvalidTransitionError
from src.observability import get_run_log
from src.persistence import BrewingStore


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


logger = logging.getLogger(__name__)


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def _parse_herb(value: str) -> tuple[int, int]:
    """Parse 'ID' or 'ID:QTY'."""
    herb_id, _, quantity = value.partition(":")
    try:
        return int(herb_id), int(quantity) if quantity else 1
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected ID or ID:QTY, got {value!r}")


def _parse_pair(value: str) -> tuple[str, str]:
    """Parse 'first,second'."""
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 2 or not all(parts):
        raise argparse.ArgumentTypeError(f"expected ELEMENT,ELEMENT, got {value!r}")
    return parts[0], parts[1]


def _parse_choice(value: str) -> tuple[str, str]:
    """Parse 'variable=value'."""
    variable, sep, choice = value.partition("=")
    if not sep or not variable.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {value!r}")
    return variable.strip(), choice.strip()


def parse_arguments(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Herbalism Brewing Engine - brew elixirs, bombs and oils from herbs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m src.main --list-herbs
  python -m src.main --db brew.db --add-herb 1:4 --inventory
  python -m src.main --db brew.db --brew --herb 1:2 --pair fire,fire --choice target=one\\ creature
  python -m src.main --db brew.db --brew --recipe 3:1 --herb 3:2 --batch 2
        """
    )

    # General options
    parser.add_argument(
        "--db",
        type=Path,
        help="SQLite database file (default: in-memory, or BREWING_DB_PATH)",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Directory holding herbs.json and recipes.json",
    )
    parser.add_argument(
        "--character",
        type=str,
        default="player",
        help="Character id (default: player)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed for reproducible rolls",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    # Listing
    list_group = parser.add_argument_group("Listing")
    list_group.add_argument(
        "--list-herbs",
        action="store_true",
        help="List every herb in the reference catalog",
    )
    list_group.add_argument(
        "--list-recipes",
        action="store_true",
        help="List the recipes the character knows",
    )
    list_group.add_argument(
        "--inventory",
        action="store_true",
        help="Show the character's herbs and brewed items",
    )
    list_group.add_argument(
        "--add-herb",
        type=_parse_herb,
        action="append",
        default=[],
        metavar="ID:QTY",
        help="Add herbs to the character's inventory (repeatable)",
    )

    # Brewing
    brew_group = parser.add_argument_group("Brewing")
    brew_group.add_argument(
        "--brew",
        action="store_true",
        help="Brew from the selected herbs",
    )
    brew_group.add_argument(
        "--herb",
        type=_parse_herb,
        action="append",
        default=[],
        metavar="ID:QTY",
        help="Select herbs for the brew (repeatable)",
    )
    brew_group.add_argument(
        "--pair",
        type=_parse_pair,
        action="append",
        default=[],
        metavar="A,B",
        help="Pair two elements (repeatable, herb mode)",
    )
    brew_group.add_argument(
        "--recipe",
        type=_parse_herb,
        action="append",
        default=[],
        metavar="ID:COUNT",
        help="Brew by recipe instead of pairing (repeatable)",
    )
    brew_group.add_argument(
        "--choice",
        type=_parse_choice,
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Resolve a template choice (repeatable)",
    )
    brew_group.add_argument(
        "--batch",
        type=int,
        help="Number of brews to attempt at once",
    )
    brew_group.add_argument(
        "--modifier",
        type=int,
        default=0,
        help="Modifier added to each brewing roll (default: 0)",
    )
    brew_group.add_argument(
        "--save-log",
        type=Path,
        help="Write the run log to this JSON file",
    )

    return parser.parse_args(argv)


def create_config_from_args(args: argparse.Namespace) -> BrewingConfig:
    """Create BrewingConfig from the environment, overridden by parsed arguments."""
    config = BrewingConfig.from_env(os.environ)
    if args.data_dir:
        config.data_dir = Path(args.data_dir)
    if args.db:
        config.db_path = Path(args.db)
    if args.seed is not None:
        config.seed = args.seed
    if args.batch is not None:
        config.default_batch_size = args.batch
    config.verbose = args.verbose or config.verbose
    return config


# =============================================================================
# COMMANDS
# =============================================================================

def open_store(config: BrewingConfig, character_id: str) -> BrewingStore:
    """Open the store, load reference data and teach the character the base recipes."""
    store = BrewingStore(config.db_path)
    seed_store(store, config.data_dir)
    store.initialize_base_recipes(character_id)
    return store


def _elements(elements: list[str]) -> str:
    return " ".join(f"{element_symbol(e)} {e}" for e in elements)


def list_herbs(store: BrewingStore) -> None:
    print("\nHERBS")
    for herb in store.list_herbs():
        print(f"  [{herb.herb_id:>3}] {herb.name:<20} {herb.rarity:<10} {_elements(herb.elements)}")


def list_recipes(store: BrewingStore, character_id: str) -> None:
    print(f"\nRECIPES KNOWN BY {character_id}")
    for recipe in store.fetch_character_recipes(character_id):
        print(
            f"  [{recipe.recipe_id:>3}] {recipe.name:<20} {recipe.category.value:<7} "
            f"{_elements(recipe.elements)}"
        )
        if recipe.description:
            print(f"        {recipe.description}")


def show_inventory(store: BrewingStore, character_id: str) -> None:
    print(f"\nINVENTORY OF {character_id}")
    herbs = store.fetch_character_herbs(character_id)
    if not herbs:
        print("  No herbs.")
    for row in herbs:
        print(f"  [{row.herb.herb_id:>3}] {row.herb.name:<20} x{row.quantity:<3} {_elements(row.herb.elements)}")

    brewed = store.fetch_character_brewed(character_id)
    print("\nBREWED ITEMS")
    if not brewed:
        print("  None.")
    for item in brewed:
        print(f"  [{item.brewed_id:>3}] {item.category.value:<7} x{item.quantity:<3} {item.computed_description}")


def run_brew(
    store: BrewingStore,
    config: BrewingConfig,
    args: argparse.Namespace,
) -> CommitResult:
    """
    Run one brew non-interactively from the parsed arguments.

    Raises:
        BrewingError: The attempt could not proceed
        InvalidTransitionError: Arguments do not fit the chosen mode
    """
    mode = BrewMode.BY_RECIPE if args.recipe else BrewMode.BY_HERBS
    session = BrewingSession(store, args.character, config=config, mode=mode)

    if mode == BrewMode.BY_RECIPE:
        for recipe_id, count in args.recipe:
            session.select_recipe(recipe_id, count)
        session.set_batch_size(config.default_batch_size)
        session.confirm_recipes()
        for herb_id, quantity in args.herb:
            session.select_ingredient(herb_id, quantity)
        session.confirm_recipe_ingredients()
    else:
        for herb_id, quantity in args.herb:
            session.select_ingredient(herb_id, quantity)
        session.begin_pairing()
        for first, second in args.pair:
            session.add_pair(first, second)
        leftover = dict(session.remaining_elements())
        if leftover:
            print(f"Unpaired elements: {leftover}")
        session.confirm_pairing()

    for variable, value in args.choice:
        session.set_choice(variable, value)

    result = session.brew(modifier=args.modifier, batch_size=config.default_batch_size)

    print("\nROLLS")
    for outcome in session.batch.outcomes:
        print(f"  {outcome}")
    if result.ok:
        if result.items_created:
            print(f"\nBrewed {result.items_created} {session.attempt.category.value}: "
                  f"{session.attempt.description()}")
        else:
            print("\nThe brew failed. The herbs are spent.")
    else:
        print(f"\nCommit failed: {result.error}")
    return result


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI usage."""
    args = parse_arguments(argv)
    config = create_config_from_args(args)
    setup_logging(config.verbose)

    run_log = get_run_log()
    if config.seed is not None:
        DiceRoller.set_seed(config.seed)
        run_log.set_seed(config.seed)

    store = open_store(config, args.character)

    for herb_id, quantity in args.add_herb:
        try:
            held = store.add_character_herbs(args.character, herb_id, quantity)
        except BrewingError as e:
            print(f"Cannot add herb {herb_id}: {e.message}")
            return 1
        print(f"{args.character} now holds {held} of herb {herb_id}")

    if args.list_herbs:
        list_herbs(store)
    if args.list_recipes:
        list_recipes(store, args.character)

    exit_code = 0
    if args.brew:
        try:
            result = run_brew(store, config, args)
            exit_code = 0 if result.ok else 1
        except (BrewingError, InvalidTransitionError) as e:
            print(f"Cannot brew: {e}")
            exit_code = 1

    if args.inventory:
        show_inventory(store, args.character)

    if args.save_log:
        run_log.save(str(args.save_log))

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
