"""
Error types for the brewing engine.

Every error is local to one brewing attempt. Validation errors block the
player before anything reaches storage; insufficient-ingredient and
persistence errors come back from the commit and may be retried by the
caller.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Classes of brewing failure."""

    VALIDATION = "validation"
    INSUFFICIENT_RESOURCES = "insufficient_resources"
    PERSISTENCE = "persistence"


class BrewingError(Exception):
    """Base class for all brewing errors."""

    kind: ErrorKind = ErrorKind.VALIDATION
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BrewingValidationError(BrewingError):
    """The attempt is not in a state that may proceed (no effects, mixed categories, ...)."""

    kind = ErrorKind.VALIDATION
    retryable = False


class PairingError(BrewingValidationError):
    """A pair cannot be added or removed."""


class InsufficientIngredientsError(BrewingError):
    """The ingredient ledger cannot cover the removal list."""

    kind = ErrorKind.INSUFFICIENT_RESOURCES
    retryable = True

    def __init__(self, message: str, herb_id=None):
        super().__init__(message)
        self.herb_id = herb_id


class PersistenceError(BrewingError):
    """The store failed while reading or writing."""

    kind = ErrorKind.PERSISTENCE
    retryable = True
