"""
Replay of recorded brewing rolls.

A ReplaySession serves previously recorded die results back in order, so a
brewing session can be re-run with exactly the outcomes it had. It exposes
randint(a, b) and can be handed to the OutcomeResolver in place of the
live dice.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional
import json
import logging
import random

logger = logging.getLogger(__name__)


class ReplayMode(str, Enum):
    """Replay mode settings."""

    DISABLED = "disabled"  # Normal operation, generate random rolls
    REPLAYING = "replaying"  # Use recorded rolls from stream


@dataclass
class ReplaySession:
    """
    Serves recorded rolls in order.

    When the stream runs out (or replay is disabled) rolls fall back to a
    random.Random seeded with the session seed, and overruns are counted.
    """

    seed: int
    roll_stream: list[dict[str, Any]] = field(default_factory=list)
    mode: ReplayMode = ReplayMode.DISABLED
    _position: int = 0
    _overruns: int = 0

    def __post_init__(self):
        self._position = 0
        self._overruns = 0
        self._fallback = random.Random(self.seed)

    @classmethod
    def from_run_log(cls, log_data: dict[str, Any]) -> "ReplaySession":
        """
        Create a replay session from saved run log data.

        Args:
            log_data: Dictionary from RunLog.to_dict() or loaded JSON

        Returns:
            ReplaySession configured for replay
        """
        seed = log_data.get("seed") or 0
        roll_stream = []

        for event in log_data.get("events", []):
            if event.get("event_type") == "roll":
                roll_stream.append(
                    {
                        "notation": event.get("notation", ""),
                        "rolls": event.get("rolls", []),
                        "modifier": event.get("modifier", 0),
                        "total": event.get("total", 0),
                        "reason": event.get("reason", ""),
                    }
                )

        session = cls(seed=seed, roll_stream=roll_stream)
        session.mode = ReplayMode.REPLAYING
        return session

    @classmethod
    def from_values(cls, values: Iterable[int], seed: int = 0) -> "ReplaySession":
        """Create a replaying session from bare die results."""
        session = cls(
            seed=seed,
            roll_stream=[
                {"notation": "1d20", "rolls": [v], "modifier": 0, "total": v, "reason": ""}
                for v in values
            ],
        )
        session.mode = ReplayMode.REPLAYING
        return session

    @classmethod
    def load(cls, filepath: str) -> "ReplaySession":
        """Load a replay session from a file."""
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)

        # Handle both ReplaySession.save() format and RunLog.to_dict() format
        if "roll_stream" in data:
            session = cls(
                seed=data.get("seed", 0),
                roll_stream=data.get("roll_stream", []),
            )
            session.mode = ReplayMode.REPLAYING
            return session
        return cls.from_run_log(data)

    def save(self, filepath: str) -> None:
        """Save the replay session to a file."""
        data = {
            "seed": self.seed,
            "roll_stream": self.roll_stream,
        }
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        logger.info(f"ReplaySession saved to {filepath}")

    def start_replay(self) -> None:
        """Start replaying from the beginning."""
        self.mode = ReplayMode.REPLAYING
        self.reset()
        logger.info(f"Replay started with {len(self.roll_stream)} recorded rolls")

    def stop_replay(self) -> None:
        """Stop replay mode."""
        self.mode = ReplayMode.DISABLED
        logger.info(f"Replay stopped at position {self._position}/{len(self.roll_stream)}")

    def is_replaying(self) -> bool:
        """Check if currently in replay mode."""
        return self.mode == ReplayMode.REPLAYING

    def get_next_roll(self) -> Optional[dict[str, Any]]:
        """
        Get the next recorded roll.

        Returns:
            Dict with {notation, rolls, modifier, total, reason}
            or None if not replaying or no more rolls are available
        """
        if not self.is_replaying():
            return None

        if self._position >= len(self.roll_stream):
            self._overruns += 1
            logger.warning(
                f"Replay overrun #{self._overruns}: no more recorded rolls at position {self._position}"
            )
            return None

        roll = self.roll_stream[self._position]
        self._position += 1
        return roll

    def randint(self, a: int, b: int) -> int:
        """
        Next recorded die result, or a seeded fallback roll.

        A recorded value outside [a, b] means the stream does not belong to
        this kind of roll; it is rejected with ValueError.
        """
        recorded = self.get_next_roll()
        if recorded is None:
            return self._fallback.randint(a, b)

        rolls = recorded.get("rolls") or [recorded.get("total", 0)]
        value = int(rolls[0])
        if not a <= value <= b:
            raise ValueError(f"Recorded roll {value} outside range {a}-{b}")
        return value

    def get_position(self) -> int:
        """Get current position in the roll stream."""
        return self._position

    def get_remaining_rolls(self) -> int:
        """Get number of remaining rolls in the stream."""
        return max(0, len(self.roll_stream) - self._position)

    def get_overrun_count(self) -> int:
        """Get number of times replay ran out of recorded rolls."""
        return self._overruns

    def reset(self) -> None:
        """Reset to the beginning of the roll stream."""
        self._position = 0
        self._overruns = 0
        self._fallback = random.Random(self.seed)

    def get_summary(self) -> dict[str, Any]:
        """Get a summary of the replay session."""
        return {
            "seed": self.seed,
            "mode": self.mode.value,
            "total_rolls": len(self.roll_stream),
            "current_position": self._position,
            "remaining_rolls": self.get_remaining_rolls(),
            "overruns": self._overruns,
        }

    def __repr__(self) -> str:
        return (
            f"ReplaySession(seed={self.seed}, "
            f"mode={self.mode.value}, "
            f"position={self._position}/{len(self.roll_stream)})"
        )
