"""
Observability and replay for the brewing engine.

Provides logging of brewing events (outcome rolls, state transitions,
commits) and replay of recorded rolls.
"""

from src.observability.run_log import (
    RunLog,
    LogEvent,
    EventType,
    RollEvent,
    TransitionEvent,
    CommitEvent,
    get_run_log,
    reset_run_log,
)
from src.observability.replay import ReplaySession, ReplayMode

__all__ = [
    "RunLog",
    "LogEvent",
    "EventType",
    "RollEvent",
    "TransitionEvent",
    "CommitEvent",
    "get_run_log",
    "reset_run_log",
    "ReplaySession",
    "ReplayMode",
]
