"""Brewing attempt state management module."""

from src.game_state.state_machine import (
    BrewState,
    BrewStateMachine,
    InvalidTransitionError,
    StateTransition,
    VALID_TRANSITIONS,
)

__all__ = [
    "BrewState",
    "BrewStateMachine",
    "InvalidTransitionError",
    "StateTransition",
    "VALID_TRANSITIONS",
]
