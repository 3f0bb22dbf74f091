"""SQLite persistence for brewing ledgers and reference data."""

from src.persistence.brewing_store import BrewingStore

__all__ = ["BrewingStore"]
