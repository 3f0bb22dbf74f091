"""
Unit tests for dice rolling system.

Tests the DiceRoller class and DiceResult from src/data_models.py, and the
DiceRngAdapter that feeds it to the outcome resolver.
"""

import random

import pytest
from src.brewing.outcome import DiceRngAdapter
from src.data_models import DiceRoller, DiceResult


class TestDiceRoller:
    """Tests for DiceRoller class."""

    def test_singleton_pattern(self):
        """Test that DiceRoller is a singleton."""
        assert DiceRoller() is DiceRoller()

    def test_roll_basic_d6(self, seeded_dice):
        """Test rolling a basic d6."""
        result = seeded_dice.roll("1d6", "test roll")
        assert isinstance(result, DiceResult)
        assert 1 <= result.total <= 6
        assert len(result.rolls) == 1

    def test_roll_multiple_dice(self, seeded_dice):
        """Test rolling multiple dice."""
        result = seeded_dice.roll("3d6", "herb quantity")
        assert len(result.rolls) == 3
        assert all(1 <= r <= 6 for r in result.rolls)
        assert result.total == sum(result.rolls)

    def test_roll_with_positive_modifier(self, seeded_dice):
        """Test rolling with positive modifier."""
        result = seeded_dice.roll("1d20+5", "brewing check")
        assert result.modifier == 5
        assert result.total == result.rolls[0] + 5

    def test_roll_with_negative_modifier(self, seeded_dice):
        """Test rolling with negative modifier."""
        result = seeded_dice.roll("1d8-2", "penalty")
        assert result.modifier == -2
        assert result.total == result.rolls[0] - 2

    def test_roll_d20_convenience(self, seeded_dice):
        """Test d20 convenience method."""
        result = seeded_dice.roll_d20("brewing")
        assert 1 <= result.total <= 20
        assert result.notation == "1d20"

    def test_roll_d4_convenience(self, seeded_dice):
        result = seeded_dice.roll_d4("potency")
        assert 1 <= result.total <= 4

    def test_seeded_reproducibility(self):
        """Test that seeded rolls are reproducible."""
        DiceRoller.set_seed(12345)
        first_results = [DiceRoller.roll_d20("test").total for _ in range(5)]

        DiceRoller.set_seed(12345)
        second_results = [DiceRoller.roll_d20("test").total for _ in range(5)]

        assert first_results == second_results
        assert DiceRoller.get_seed() == 12345

    def test_seeding_is_isolated_from_global_random(self):
        """Seeding the roller neither uses nor disturbs the global random module."""
        DiceRoller.set_seed(7)
        expected = [DiceRoller.randint(1, 20) for _ in range(5)]

        DiceRoller.set_seed(7)
        random.seed(999)
        random.random()
        assert [DiceRoller.randint(1, 20) for _ in range(5)] == expected

    def test_randint_range_and_log(self, seeded_dice):
        value = seeded_dice.randint(3, 5, "range check")
        assert 3 <= value <= 5

        entry = DiceRoller.get_roll_log()[-1]
        assert entry.rolls == [value]
        assert entry.notation == "range(3-5)"
        assert entry.reason == "range check"

    def test_roll_log(self, seeded_dice):
        """Test that rolls are logged."""
        seeded_dice.roll("1d20", "first")
        seeded_dice.roll("2d6", "second")

        log = DiceRoller.get_roll_log()
        assert len(log) == 2
        assert log[0].reason == "first"
        assert log[1].reason == "second"

    def test_clear_roll_log(self, seeded_dice):
        seeded_dice.roll("1d20", "test")
        DiceRoller.clear_roll_log()
        assert DiceRoller.get_roll_log() == []

    def test_get_roll_log_returns_copy(self, seeded_dice):
        seeded_dice.roll("1d20", "test")
        log = DiceRoller.get_roll_log()
        log.clear()
        assert len(DiceRoller.get_roll_log()) == 1


class TestDiceResult:
    """Tests for DiceResult formatting."""

    def test_str_without_modifier(self):
        result = DiceResult(notation="1d20", rolls=[12], modifier=0, total=12, reason="")
        assert str(result) == "1d20: [12] = 12"

    def test_str_with_positive_modifier(self):
        result = DiceResult(notation="1d20+3", rolls=[12], modifier=3, total=15, reason="")
        assert str(result) == "1d20+3: [12] + 3 = 15"

    def test_str_with_negative_modifier(self):
        result = DiceResult(notation="1d20-2", rolls=[12], modifier=-2, total=10, reason="")
        assert str(result) == "1d20-2: [12] - 2 = 10"


class TestDiceRngAdapter:
    """Tests for the random.Random-style adapter over DiceRoller."""

    def test_randint_goes_through_dice_roller(self, seeded_dice):
        adapter = DiceRngAdapter(reason_prefix="Brewing")
        value = adapter.randint(1, 20)

        assert 1 <= value <= 20
        entry = DiceRoller.get_roll_log()[-1]
        assert entry.rolls == [value]
        assert entry.reason.startswith("Brewing: d20")

    def test_roll_count(self, seeded_dice):
        adapter = DiceRngAdapter()
        for _ in range(3):
            adapter.randint(1, 20)
        assert adapter.roll_count == 3
        assert "(roll #3)" in DiceRoller.get_roll_log()[-1].reason

    def test_adapter_is_reproducible_with_seed(self):
        DiceRoller.set_seed(99)
        first = [DiceRngAdapter().randint(1, 20) for _ in range(4)]
        DiceRoller.set_seed(99)
        second = [DiceRngAdapter().randint(1, 20) for _ in range(4)]
        assert first == second

    @pytest.mark.parametrize("low,high", [(1, 4), (1, 20), (5, 10)])
    def test_randint_bounds(self, seeded_dice, low, high):
        adapter = DiceRngAdapter()
        assert all(low <= adapter.randint(low, high) <= high for _ in range(30))
