"""
State Machine for a brewing attempt.

One attempt is always in exactly one named state. The table of valid
transitions is the only way to move between them, so no caller can skip
pairing validation or the choice check on the way to a commit.

All transitions are validated and logged to the history and the RunLog.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from src.data_models import TransitionLog


class BrewState(str, Enum):
    """
    Named states of a brewing attempt.

    Herb mode starts in SELECTING_INGREDIENTS and passes through PAIRING.
    Recipe mode starts in SELECTING_RECIPES and goes from
    SELECTING_INGREDIENTS straight to CHOOSING.
    """

    SELECTING_RECIPES = "selecting_recipes"
    SELECTING_INGREDIENTS = "selecting_ingredients"
    PAIRING = "pairing"
    CHOOSING = "choosing"
    COMMITTING = "committing"
    SETTLED = "settled"


@dataclass
class StateTransition:
    """A valid state transition."""

    from_state: BrewState
    to_state: BrewState
    trigger: str
    description: str = ""

    def __hash__(self) -> int:
        return hash((self.from_state, self.to_state, self.trigger))


VALID_TRANSITIONS: list[StateTransition] = [
    # Recipe mode
    StateTransition(
        BrewState.SELECTING_RECIPES,
        BrewState.SELECTING_INGREDIENTS,
        "confirm_recipes",
        "Recipes and batch size chosen; pick herbs to cover them",
    ),
    StateTransition(
        BrewState.SELECTING_INGREDIENTS,
        BrewState.SELECTING_RECIPES,
        "back_to_recipes",
        "Return to recipe selection",
    ),
    StateTransition(
        BrewState.SELECTING_INGREDIENTS,
        BrewState.CHOOSING,
        "confirm_recipe_ingredients",
        "Selected herbs supply every element the recipes need",
    ),
    # Herb mode
    StateTransition(
        BrewState.SELECTING_INGREDIENTS,
        BrewState.PAIRING,
        "begin_pairing",
        "Herbs selected; element pool built",
    ),
    StateTransition(
        BrewState.PAIRING,
        BrewState.SELECTING_INGREDIENTS,
        "back_to_ingredients",
        "Return to herb selection, discarding pairs",
    ),
    StateTransition(
        BrewState.PAIRING,
        BrewState.CHOOSING,
        "confirm_pairing",
        "Pairs resolve to a valid single-category effect set",
    ),
    StateTransition(
        BrewState.CHOOSING,
        BrewState.PAIRING,
        "back_to_pairing",
        "Return to pairing, keeping pairs",
    ),
    # Commit
    StateTransition(
        BrewState.CHOOSING,
        BrewState.COMMITTING,
        "begin_commit",
        "All choices resolved; outcome rolled",
    ),
    StateTransition(
        BrewState.COMMITTING,
        BrewState.SETTLED,
        "commit_succeeded",
        "Ingredients consumed and brewed items stored",
    ),
]

# Reset is valid from every state, into either starting state
for _state in BrewState:
    VALID_TRANSITIONS.append(
        StateTransition(_state, BrewState.SELECTING_INGREDIENTS, "reset_by_herbs", "Abandon attempt")
    )
    VALID_TRANSITIONS.append(
        StateTransition(_state, BrewState.SELECTING_RECIPES, "reset_by_recipe", "Abandon attempt")
    )
del _state


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    pass


class BrewStateMachine:
    """
    Manages brewing state transitions with validation and history tracking.

    Attributes:
        current_state: The current state of the attempt
        previous_state: The state before the last transition
        state_history: Complete history of all state transitions
    """

    def __init__(self, initial_state: BrewState = BrewState.SELECTING_INGREDIENTS):
        """
        Initialize the state machine.

        Args:
            initial_state: The starting state (default: SELECTING_INGREDIENTS)
        """
        self._current_state: BrewState = initial_state
        self._previous_state: Optional[BrewState] = None
        self._state_history: list[TransitionLog] = []
        self._transition_callbacks: dict[str, list[Callable]] = {}
        self._pre_transition_hooks: list[Callable] = []
        self._post_transition_hooks: list[Callable] = []

        self._valid_transitions: dict[tuple[BrewState, str], BrewState] = {}
        for transition in VALID_TRANSITIONS:
            key = (transition.from_state, transition.trigger)
            self._valid_transitions[key] = transition.to_state

        self._log_transition(
            from_state="INIT", to_state=initial_state.value, trigger="initialization"
        )

    @property
    def current_state(self) -> BrewState:
        return self._current_state

    @property
    def previous_state(self) -> Optional[BrewState]:
        return self._previous_state

    @property
    def state_history(self) -> list[TransitionLog]:
        return self._state_history.copy()

    def can_transition(self, trigger: str) -> bool:
        """Check if a trigger is valid from the current state."""
        return (self._current_state, trigger) in self._valid_transitions

    def get_valid_triggers(self) -> list[str]:
        """All triggers valid from the current state."""
        return [
            trigger
            for (state, trigger) in self._valid_transitions
            if state == self._current_state
        ]

    def get_valid_transitions(self) -> list[StateTransition]:
        return [t for t in VALID_TRANSITIONS if t.from_state == self._current_state]

    def transition(self, trigger: str, context: Optional[dict[str, Any]] = None) -> BrewState:
        """
        Attempt to transition to a new state.

        Args:
            trigger: The trigger event causing the transition
            context: Optional context data for the transition

        Returns:
            The new state

        Raises:
            InvalidTransitionError: If the transition is not valid
        """
        context = context or {}

        key = (self._current_state, trigger)
        if key not in self._valid_transitions:
            raise InvalidTransitionError(
                f"Invalid transition: Cannot trigger '{trigger}' from state "
                f"'{self._current_state.value}'. Valid triggers: {self.get_valid_triggers()}"
            )

        new_state = self._valid_transitions[key]
        old_state = self._current_state

        for hook in self._pre_transition_hooks:
            hook(old_state, new_state, trigger, context)

        self._previous_state = old_state
        self._current_state = new_state

        self._log_transition(
            from_state=old_state.value, to_state=new_state.value, trigger=trigger, context=context
        )

        for hook in self._post_transition_hooks:
            hook(old_state, new_state, trigger, context)

        callback_key = f"{old_state.value}:{trigger}"
        for callback in self._transition_callbacks.get(callback_key, []):
            callback(old_state, new_state, context)

        return new_state

    def register_callback(self, from_state: BrewState, trigger: str, callback: Callable) -> None:
        """
        Register a callback for a specific transition.

        The callback will be called with (old_state, new_state, context)
        after the transition completes.
        """
        key = f"{from_state.value}:{trigger}"
        self._transition_callbacks.setdefault(key, []).append(callback)

    def register_pre_hook(self, hook: Callable) -> None:
        """
        Register a hook to run before any transition.

        The hook will be called with (old_state, new_state, trigger, context).
        A hook that raises stops the transition.
        """
        self._pre_transition_hooks.append(hook)

    def register_post_hook(self, hook: Callable) -> None:
        """
        Register a hook to run after any transition.

        The hook will be called with (old_state, new_state, trigger, context).
        """
        self._post_transition_hooks.append(hook)

    def _log_transition(
        self, from_state: str, to_state: str, trigger: str, context: Optional[dict[str, Any]] = None
    ) -> None:
        """Log a state transition."""
        self._state_history.append(
            TransitionLog(
                timestamp=datetime.now(),
                from_state=from_state,
                to_state=to_state,
                trigger=trigger,
                context=context or {},
            )
        )
        self._log_to_run_log(from_state, to_state, trigger, context)

    def _log_to_run_log(
        self,
        from_state: str,
        to_state: str,
        trigger: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        """Log transition to the observability RunLog."""
        try:
            from src.observability.run_log import get_run_log

            get_run_log().log_transition(
                from_state=from_state,
                to_state=to_state,
                trigger=trigger,
                context=context,
            )
        except ImportError:
            pass  # Observability module not available

    def get_state_info(self) -> dict[str, Any]:
        """State information for display and debugging."""
        return {
            "current_state": self._current_state.value,
            "previous_state": self._previous_state.value if self._previous_state else None,
            "valid_triggers": self.get_valid_triggers(),
            "transition_count": len(self._state_history),
            "last_transition": self._state_history[-1] if self._state_history else None,
        }

    def is_selecting(self) -> bool:
        return self._current_state in {
            BrewState.SELECTING_RECIPES,
            BrewState.SELECTING_INGREDIENTS,
        }

    def is_settled(self) -> bool:
        return self._current_state == BrewState.SETTLED

    def __repr__(self) -> str:
        return f"BrewStateMachine(current={self._current_state.value}, previous={self._previous_state})"
