"""
Outcome Resolver.

Decides whether a brew works. A trial rolls one die (d20 by default), adds
the brewer's modifier and succeeds when the total meets the threshold.
A batch draws all of its trials up front, before anything is committed.

Randomness comes from an injected source with a randint(a, b) method so
trials are reproducible: DiceRngAdapter for live play, a seeded
random.Random or a ReplaySession in tests and replays.
"""

from typing import TYPE_CHECKING, Optional, Protocol
import logging

from src.data_models import BatchResult, BrewOutcome

if TYPE_CHECKING:
    from src.data_models import DiceRoller

logger = logging.getLogger(__name__)


DEFAULT_DIE_SIZE = 20
DEFAULT_BREWING_DC = 15


class RandomSource(Protocol):
    """Anything that can produce an integer in [a, b]."""

    def randint(self, a: int, b: int) -> int:
        ...


class DiceRngAdapter:
    """
    Adapter that exposes DiceRoller through a random.Random-style randint.

    Every roll goes through the centralized, seedable DiceRoller and is
    recorded in its roll log.

    Usage:
        resolver = OutcomeResolver(rng=DiceRngAdapter(reason_prefix="Brewing"))
    """

    def __init__(
        self,
        reason_prefix: str = "Brewing",
        dice_roller: Optional["DiceRoller"] = None,
    ):
        """
        Initialize the adapter.

        Args:
            reason_prefix: Prefix for roll reason logging
            dice_roller: Optional DiceRoller instance. If None, uses singleton.
        """
        self._reason_prefix = reason_prefix
        self._dice_roller = dice_roller
        self._roll_count = 0

    def _get_dice_roller(self) -> "DiceRoller":
        """Get the DiceRoller instance (lazy import to avoid circular deps)."""
        if self._dice_roller is not None:
            return self._dice_roller
        from src.data_models import DiceRoller
        return DiceRoller()

    def _make_reason(self, context: str) -> str:
        """Create a reason string for logging."""
        self._roll_count += 1
        return f"{self._reason_prefix}: {context} (roll #{self._roll_count})"

    def randint(self, a: int, b: int) -> int:
        """Return random integer in range [a, b], inclusive."""
        dice = self._get_dice_roller()
        reason = self._make_reason(f"d{b - a + 1}" if a == 1 else f"range({a}-{b})")
        return dice.randint(a, b, reason)

    @property
    def roll_count(self) -> int:
        """Get the number of rolls made through this adapter."""
        return self._roll_count


class OutcomeResolver:
    """
    Resolves single and batched brewing trials.

    Attributes:
        die_size: Faces on the trial die (rolls are 1..die_size)
        threshold: Minimum total for success
    """

    def __init__(
        self,
        rng: Optional[RandomSource] = None,
        die_size: int = DEFAULT_DIE_SIZE,
        threshold: int = DEFAULT_BREWING_DC,
    ):
        if die_size < 1:
            raise ValueError(f"Die size must be positive, got {die_size}")
        self._rng: RandomSource = rng if rng is not None else DiceRngAdapter()
        self.die_size = die_size
        self.threshold = threshold

    def resolve_single(self, modifier: int = 0, reason: str = "brewing check") -> BrewOutcome:
        """
        Roll one trial.

        Args:
            modifier: Brewer's modifier added to the raw roll
            reason: Why the roll is made (for the run log)

        Returns:
            BrewOutcome with the raw roll, modifier, total and verdict
        """
        raw = self._rng.randint(1, self.die_size)
        total = raw + modifier
        outcome = BrewOutcome(
            raw_roll=raw,
            modifier=modifier,
            total=total,
            threshold=self.threshold,
            success=total >= self.threshold,
        )
        self._log_roll(outcome, reason)
        return outcome

    def resolve_batch(self, batch_size: int, modifier: int = 0) -> BatchResult:
        """
        Roll every trial of a batch.

        All trials are drawn before returning so the committer only ever
        sees the final success count.

        Raises:
            ValueError: If batch_size is below 1
        """
        if batch_size < 1:
            raise ValueError(f"Batch size must be at least 1, got {batch_size}")

        outcomes = [
            self.resolve_single(modifier, reason=f"brewing check {i + 1}/{batch_size}")
            for i in range(batch_size)
        ]
        result = BatchResult(outcomes=outcomes)
        logger.info(f"Brewing batch of {batch_size}: {result.success_count} succeeded")
        return result

    def _log_roll(self, outcome: BrewOutcome, reason: str) -> None:
        """Log the trial to the observability RunLog."""
        try:
            from src.observability.run_log import get_run_log

            get_run_log().log_roll(
                notation=f"1d{self.die_size}",
                rolls=[outcome.raw_roll],
                modifier=outcome.modifier,
                total=outcome.total,
                reason=reason,
                threshold=outcome.threshold,
                success=outcome.success,
            )
        except ImportError:
            pass  # Observability module not available
