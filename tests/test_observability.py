"""
Tests for the observability and replay system.

Tests RunLog, ReplaySession, and integration with the outcome resolver,
the brewing state machine and the crafting committer.
"""

import json
import tempfile
from pathlib import Path

import pytest

from src.brewing.committer import CraftingCommitter
from src.brewing.outcome import OutcomeResolver
from src.data_models import DiceRoller, IngredientRemoval, RecipeCategory
from src.game_state.state_machine import BrewStateMachine
from src.observability.run_log import (
    CommitEvent,
    EventType,
    RollEvent,
    RunLog,
    TransitionEvent,
    get_run_log,
    reset_run_log,
)
from src.observability.replay import ReplaySession, ReplayMode
from tests.helpers import CHARACTER_ID, BrewingSessionTestBuilder


class TestRunLog:
    """Tests for the RunLog class."""

    @pytest.fixture(autouse=True)
    def reset_state(self):
        """Reset RunLog and DiceRoller before each test."""
        reset_run_log()
        DiceRoller.clear_roll_log()
        yield
        reset_run_log()
        DiceRoller.clear_roll_log()

    def test_singleton_pattern(self):
        """RunLog should be a singleton."""
        assert get_run_log() is get_run_log()
        assert RunLog() is get_run_log()

    def test_log_roll_event(self):
        """Test logging a roll event."""
        log = get_run_log()
        event = log.log_roll(
            notation="1d20",
            rolls=[17],
            modifier=2,
            total=19,
            reason="brewing check",
            threshold=15,
            success=True,
        )

        assert event.event_type == EventType.ROLL
        assert event.notation == "1d20"
        assert event.threshold == 15
        assert event.success is True
        assert "success" in str(event)

    def test_log_transition_event(self):
        """Test logging a transition event."""
        log = get_run_log()
        event = log.log_transition(
            from_state="pairing",
            to_state="choosing",
            trigger="confirm_pairing",
        )

        assert event.event_type == EventType.TRANSITION
        assert event.from_state == "pairing"
        assert event.to_state == "choosing"

    def test_log_commit_event(self):
        log = get_run_log()
        event = log.log_commit(
            character_id=CHARACTER_ID,
            category="elixir",
            success_count=2,
            items_created=2,
            ingredients_removed=3,
        )

        assert event.event_type == EventType.COMMIT
        assert "x2" in str(event)
        assert "-3 herbs" in str(event)

    def test_rejected_commit_str(self):
        event = get_run_log().log_commit(
            CHARACTER_ID, "bomb", 1, error="Insufficient herbs: Emberroot"
        )
        assert "REJECTED" in str(event)

    def test_sequence_numbers(self):
        """Test that events get sequential sequence numbers."""
        log = get_run_log()
        e1 = log.log_roll("1d20", [5], 0, 5, "roll1")
        e2 = log.log_roll("1d20", [10], 0, 10, "roll2")
        e3 = log.log_transition("pairing", "choosing", "confirm_pairing")

        assert (e1.sequence_number, e2.sequence_number, e3.sequence_number) == (1, 2, 3)

    def test_get_events_by_type(self):
        """Test filtering events by type."""
        log = get_run_log()
        log.log_roll("1d20", [5], 0, 5, "roll1")
        log.log_transition("pairing", "choosing", "confirm_pairing")
        log.log_roll("1d20", [10], 0, 10, "roll2")
        log.log_commit(CHARACTER_ID, "oil", 1, 1, 2)

        assert len(log.get_rolls()) == 2
        assert len(log.get_transitions()) == 1
        assert len(log.get_commits()) == 1
        assert len(log.get_events(EventType.ROLL)) == 2

    def test_get_events_since_sequence(self):
        log = get_run_log()
        log.log_roll("1d20", [5], 0, 5)
        log.log_roll("1d20", [6], 0, 6)
        log.log_roll("1d20", [7], 0, 7)

        later = log.get_events(since_sequence=1)
        assert [e.total for e in later] == [6, 7]

    def test_get_roll_stream(self):
        """Test getting roll stream for replay."""
        log = get_run_log()
        log.log_roll("1d20", [5], 0, 5, "roll1")
        log.log_roll("1d20", [15], 2, 17, "roll2")

        stream = log.get_roll_stream()

        assert len(stream) == 2
        assert stream[0]["rolls"] == [5]
        assert stream[1]["total"] == 17

    def test_seed_tracking(self):
        log = get_run_log()
        log.set_seed(12345)
        assert log.get_seed() == 12345

    def test_reset_clears_events(self):
        """Test that reset clears all events."""
        log = get_run_log()
        log.set_seed(1)
        log.log_roll("1d20", [5], 0, 5, "roll1")

        log.reset()

        assert log.get_event_count() == 0
        assert log.get_seed() is None

    def test_pause_resume(self):
        """Test pausing and resuming logging."""
        log = get_run_log()
        log.log_roll("1d20", [5], 0, 5, "before")

        log.pause()
        assert log.is_paused()
        log.log_roll("1d20", [10], 0, 10, "during pause")

        log.resume()
        log.log_roll("1d20", [15], 0, 15, "after")

        assert [r.reason for r in log.get_rolls()] == ["before", "after"]

    def test_to_dict(self):
        """Test serialization to dictionary."""
        log = get_run_log()
        log.set_seed(42)
        log.log_roll("1d20", [5], 0, 5, "test")

        data = log.to_dict()

        assert data["seed"] == 42
        assert len(data["events"]) == 1
        assert data["events"][0]["event_type"] == "roll"

    def test_to_json_is_valid(self):
        log = get_run_log()
        log.log_commit(CHARACTER_ID, "elixir", 1, 1, 2)
        data = json.loads(log.to_json())
        assert data["events"][0]["category"] == "elixir"

    def test_save_and_load(self):
        """Test saving and loading the log."""
        log = get_run_log()
        log.set_seed(42)
        log.log_roll("1d20", [5], 0, 5, "test roll", threshold=15, success=False)
        log.log_transition("pairing", "choosing", "confirm_pairing")
        log.log_commit(CHARACTER_ID, "elixir", 0, 0, 2)

        with tempfile.TemporaryDirectory() as tmpdir:
            filepath = Path(tmpdir) / "test_log.json"
            log.save(str(filepath))

            with open(filepath) as f:
                data = json.load(f)
            assert data["seed"] == 42
            assert len(data["events"]) == 3

            loaded = RunLog.load(str(filepath))

        events = loaded.get_events()
        assert isinstance(events[0], RollEvent)
        assert events[0].success is False
        assert isinstance(events[1], TransitionEvent)
        assert isinstance(events[2], CommitEvent)
        assert events[2].ingredients_removed == 2
        assert loaded.get_seed() == 42

    def test_format_log(self):
        """Test human-readable log formatting."""
        log = get_run_log()
        log.set_seed(42)
        log.log_roll("1d20", [5], 0, 5, "test roll")
        log.log_transition("pairing", "choosing", "confirm_pairing")

        formatted = log.format_log()

        assert "Run Log" in formatted
        assert "Seed: 42" in formatted
        assert "ROLL" in formatted
        assert "TRANSITION" in formatted

    def test_format_log_filtered(self):
        log = get_run_log()
        log.log_roll("1d20", [5], 0, 5, "test roll")
        log.log_transition("pairing", "choosing", "confirm_pairing")

        formatted = log.format_log(event_types=[EventType.TRANSITION])
        assert "TRANSITION" in formatted
        assert "ROLL" not in formatted

    def test_subscriber_notification(self):
        """Test that subscribers are notified of events."""
        log = get_run_log()
        received = []

        def subscriber(event):
            received.append(event)

        log.subscribe(subscriber)
        log.log_roll("1d20", [5], 0, 5, "test")
        log.log_transition("pairing", "choosing", "confirm_pairing")
        log.unsubscribe(subscriber)
        log.log_roll("1d20", [6], 0, 6, "not seen")

        assert len(received) == 2

    def test_failing_subscriber_does_not_stop_logging(self):
        log = get_run_log()

        def broken(event):
            raise RuntimeError("boom")

        log.subscribe(broken)
        try:
            log.log_roll("1d20", [5], 0, 5, "test")
        finally:
            log.unsubscribe(broken)

        assert len(log.get_rolls()) == 1

    def test_custom_event(self):
        event = get_run_log().log_custom("herbs_added", {"herb_id": 1, "quantity": 3})
        assert event.event_type == EventType.CUSTOM
        assert event.context["event_name"] == "herbs_added"
        assert event.context["quantity"] == 3


class TestReplaySession:
    """Tests for the ReplaySession class."""

    def test_create_from_roll_stream(self):
        """Test creating a replay session from roll stream."""
        stream = [
            {"notation": "1d20", "rolls": [5], "modifier": 0, "total": 5, "reason": "r1"},
            {"notation": "1d20", "rolls": [15], "modifier": 0, "total": 15, "reason": "r2"},
        ]
        session = ReplaySession(seed=42, roll_stream=stream)

        assert session.seed == 42
        assert session.mode == ReplayMode.DISABLED
        assert session.get_remaining_rolls() == 2

    def test_get_next_roll_requires_replay_mode(self):
        session = ReplaySession(seed=42, roll_stream=[{"rolls": [5], "total": 5}])
        assert session.get_next_roll() is None

        session.start_replay()
        assert session.get_next_roll()["total"] == 5

    def test_from_values(self):
        session = ReplaySession.from_values([18, 3, 15])

        assert session.is_replaying()
        assert [session.randint(1, 20) for _ in range(3)] == [18, 3, 15]
        assert session.get_position() == 3
        assert session.get_remaining_rolls() == 0

    def test_randint_rejects_out_of_range_value(self):
        session = ReplaySession.from_values([25])
        with pytest.raises(ValueError) as exc_info:
            session.randint(1, 20)
        assert "outside range" in str(exc_info.value)

    def test_overrun_falls_back_to_seeded_rolls(self):
        """Test that overruns are counted and fall back to the seed."""
        first = ReplaySession.from_values([10], seed=7)
        second = ReplaySession.from_values([10], seed=7)

        assert first.randint(1, 20) == 10
        fallback = [first.randint(1, 20) for _ in range(3)]

        second.randint(1, 20)
        assert [second.randint(1, 20) for _ in range(3)] == fallback
        assert all(1 <= v <= 20 for v in fallback)
        assert first.get_overrun_count() == 3

    def test_stop_replay_uses_fallback(self):
        session = ReplaySession.from_values([20], seed=3)
        session.stop_replay()
        session.randint(1, 20)
        assert session.get_position() == 0
        assert session.get_overrun_count() == 0

    def test_reset(self):
        """Test resetting replay position."""
        session = ReplaySession.from_values([4, 5])
        session.randint(1, 20)
        session.randint(1, 20)
        session.randint(1, 20)

        session.reset()

        assert session.get_position() == 0
        assert session.get_overrun_count() == 0
        assert session.randint(1, 20) == 4

    def test_from_run_log(self):
        """Test creating replay session from RunLog data."""
        log_data = {
            "seed": 12345,
            "events": [
                {"event_type": "roll", "notation": "1d20", "rolls": [15], "modifier": 0, "total": 15},
                {"event_type": "transition", "from_state": "choosing", "to_state": "committing"},
                {"event_type": "roll", "notation": "1d20", "rolls": [2], "modifier": 1, "total": 3},
            ],
        }

        session = ReplaySession.from_run_log(log_data)

        assert session.seed == 12345
        assert session.is_replaying()
        assert len(session.roll_stream) == 2
        assert session.roll_stream[1]["rolls"] == [2]

    def test_save_and_load(self):
        """Test saving and loading replay session."""
        session = ReplaySession.from_values([7, 19], seed=42)

        with tempfile.TemporaryDirectory() as tmpdir:
            filepath = Path(tmpdir) / "replay.json"
            session.save(str(filepath))
            loaded = ReplaySession.load(str(filepath))

        assert loaded.seed == 42
        assert loaded.is_replaying()
        assert [loaded.randint(1, 20), loaded.randint(1, 20)] == [7, 19]

    def test_load_run_log_file(self):
        log = reset_run_log()
        log.set_seed(5)
        log.log_roll("1d20", [12], 0, 12, "brewing check 1/1")

        with tempfile.TemporaryDirectory() as tmpdir:
            filepath = Path(tmpdir) / "run_log.json"
            log.save(str(filepath))
            loaded = ReplaySession.load(str(filepath))

        assert loaded.seed == 5
        assert loaded.randint(1, 20) == 12

    def test_get_summary(self):
        """Test getting replay summary."""
        session = ReplaySession.from_values([1, 2, 3], seed=42)
        session.randint(1, 20)

        summary = session.get_summary()

        assert summary["seed"] == 42
        assert summary["mode"] == "replaying"
        assert summary["total_rolls"] == 3
        assert summary["current_position"] == 1
        assert summary["remaining_rolls"] == 2

    def test_repr(self):
        assert "position=0/2" in repr(ReplaySession.from_values([1, 2]))


class TestOutcomeResolverIntegration:
    """Outcome rolls are logged to the RunLog and can be replayed."""

    def test_trials_logged_with_verdict(self):
        log = get_run_log()
        resolver = OutcomeResolver(rng=ReplaySession.from_values([15, 14]), threshold=15)

        resolver.resolve_batch(2)

        rolls = log.get_rolls()
        assert [r.rolls for r in rolls] == [[15], [14]]
        assert [r.success for r in rolls] == [True, False]
        assert all(r.threshold == 15 for r in rolls)
        assert rolls[0].reason == "brewing check 1/2"

    def test_replay_deterministic_sequence(self, seeded_dice):
        """Test that replay produces identical outcomes."""
        log = get_run_log()
        log.set_seed(12345)
        DiceRoller.set_seed(12345)
        original = OutcomeResolver().resolve_batch(5, modifier=1)

        session = ReplaySession.from_run_log(log.to_dict())
        reset_run_log()
        replayed = OutcomeResolver(rng=session).resolve_batch(5, modifier=1)

        assert [o.raw_roll for o in replayed.outcomes] == [o.raw_roll for o in original.outcomes]
        assert replayed.success_count == original.success_count
        assert session.get_overrun_count() == 0


class TestStateMachineIntegration:
    """Test BrewStateMachine integration with observability."""

    def test_transitions_logged_to_run_log(self):
        """Test that state transitions are logged to RunLog."""
        log = get_run_log()
        sm = BrewStateMachine()

        transitions = log.get_transitions()
        assert len(transitions) == 1
        assert transitions[0].to_state == "selecting_ingredients"

        sm.transition("begin_pairing")

        transitions = log.get_transitions()
        assert len(transitions) == 2
        assert transitions[1].from_state == "selecting_ingredients"
        assert transitions[1].to_state == "pairing"
        assert transitions[1].trigger == "begin_pairing"

    def test_multiple_transitions_tracked(self):
        """Test tracking multiple state transitions."""
        log = get_run_log()
        sm = BrewStateMachine()

        sm.transition("begin_pairing")
        sm.transition("confirm_pairing")
        sm.transition("begin_commit")
        sm.transition("commit_succeeded")

        transitions = log.get_transitions()
        assert len(transitions) == 5
        assert [t.to_state for t in transitions[1:]] == [
            "pairing",
            "choosing",
            "committing",
            "settled",
        ]


class TestCommitterIntegration:
    """Commits are logged whether they succeed or are rejected."""

    def test_successful_commit_logged(self, stocked_store):
        committer = CraftingCommitter(stocked_store)
        committer.commit_craft(
            CHARACTER_ID,
            [IngredientRemoval(herb_id=2, quantity=1)],
            RecipeCategory.ELIXIR,
            ["Healing Draught"],
            "Restores 2d4 hit points.",
            success_count=1,
        )

        commits = get_run_log().get_commits()
        assert len(commits) == 1
        assert commits[0].error is None
        assert commits[0].items_created == 1
        assert commits[0].ingredients_removed == 1

    def test_rejected_commit_logged(self, stocked_store):
        committer = CraftingCommitter(stocked_store)
        committer.commit_craft(
            CHARACTER_ID,
            [IngredientRemoval(herb_id=2, quantity=99)],
            RecipeCategory.ELIXIR,
            ["Healing Draught"],
            "Restores 2d4 hit points.",
        )

        commit = get_run_log().get_commits()[0]
        assert commit.error is not None
        assert commit.items_created == 0


class TestEndToEndObservability:
    """End-to-end tests for the observability system."""

    def test_full_session_recording_and_replay(self, stocked_store, recipes):
        """Record a brew, then replay its rolls into a fresh session."""
        log = get_run_log()
        session = (
            BrewingSessionTestBuilder(stocked_store)
            .with_seed(42)
            .with_recipes(recipes)
            .build()
        )
        session.select_ingredient(2)  # Dewcap: water, positive
        session.begin_pairing()
        session.add_pair("water", "positive")
        session.confirm_pairing()
        result = session.brew()
        original_rolls = [o.raw_roll for o in session.batch.outcomes]

        assert result.ok
        assert [t.trigger for t in log.get_transitions()][-2:] == [
            "begin_commit",
            "commit_succeeded",
        ]
        assert len(log.get_commits()) == 1

        replay = ReplaySession.from_run_log(log.to_dict())
        reset_run_log()
        replayed = OutcomeResolver(rng=replay).resolve_batch(len(original_rolls))
        assert [o.raw_roll for o in replayed.outcomes] == original_rolls

    def test_log_summary(self):
        """Test getting a summary of the log."""
        log = get_run_log()
        log.set_seed(42)
        OutcomeResolver(rng=ReplaySession.from_values([3, 19])).resolve_batch(2)
        BrewStateMachine().transition("begin_pairing")
        log.log_commit(CHARACTER_ID, "elixir", 1, 1, 1)

        summary = log.get_summary()

        assert summary["seed"] == 42
        assert summary["rolls"] == 2
        assert summary["transitions"] == 2
        assert summary["commits"] == 1
