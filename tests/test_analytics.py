# ABOUTME: Unit tests for keystroke classification and accuracy accumulation
import pytest

from typing_tutor.analytics import (
    AccuracyAccumulator,
    CharacterStats,
    calculate_accuracy,
    get_weakest_bigrams,
    get_weakest_characters,
    track_keystroke,
)


class TestTrackKeystroke:
    """Test the keystroke classifier."""

    def test_correct_keystroke_updates_character_and_bigram(self):
        """A match counts as correct for the character and the bigram."""
        acc = AccuracyAccumulator()
        assert track_keystroke("h", "h", "t", acc) is True

        assert acc.characters["h"] == CharacterStats(correct=1, total=1)
        assert acc.bigrams[("t", "h")] == CharacterStats(correct=1, total=1)

    def test_incorrect_keystroke_counts_attempt_only(self):
        """A miss is charged to the expected character."""
        acc = AccuracyAccumulator()
        assert track_keystroke("t", "x", "a", acc) is False

        assert acc.characters == {"t": CharacterStats(correct=0, total=1)}
        assert "x" not in acc.characters
        assert acc.bigrams[("a", "t")] == CharacterStats(correct=0, total=1)

    def test_case_sensitive(self):
        """Typing uppercase for a lowercase expectation is an error."""
        acc = AccuracyAccumulator()
        assert track_keystroke("a", "A", None, acc) is False
        assert acc.characters["a"].correct == 0

    def test_no_bigram_without_previous(self):
        """The first character of a text has no bigram."""
        acc = AccuracyAccumulator()
        track_keystroke("c", "c", None, acc)
        assert acc.bigrams == {}

    def test_stats_are_append_only(self):
        """Repeated classifications keep adding to the same key."""
        acc = AccuracyAccumulator()
        track_keystroke("t", "x", "a", acc)
        track_keystroke("t", "t", "a", acc)

        assert acc.characters["t"] == CharacterStats(correct=1, total=2)
        assert acc.bigrams[("a", "t")] == CharacterStats(correct=1, total=2)


class TestAccuracyAccumulator:
    """Test merging and serialization of accuracy maps."""

    def test_merge_sums_counts(self):
        """Merging sums per key rather than averaging percentages."""
        lifetime = AccuracyAccumulator({"a": CharacterStats(9, 10)})
        session = AccuracyAccumulator({"a": CharacterStats(0, 1), "b": CharacterStats(1, 1)})

        lifetime.merge(session)

        assert lifetime.characters["a"] == CharacterStats(9, 11)
        assert lifetime.characters["b"] == CharacterStats(1, 1)
        # Percentage of sums, not mean of 90% and 0%
        assert calculate_accuracy(lifetime.characters["a"]) == pytest.approx(81.818, abs=0.01)

    def test_merge_leaves_source_untouched(self):
        """The merged-in accumulator is not modified."""
        lifetime = AccuracyAccumulator()
        session = AccuracyAccumulator()
        track_keystroke("q", "q", None, session)

        lifetime.merge(session)
        lifetime.merge(AccuracyAccumulator({"q": CharacterStats(1, 1)}))

        assert session.characters["q"] == CharacterStats(1, 1)
        assert lifetime.characters["q"] == CharacterStats(2, 2)

    def test_property_returns_copy(self):
        """Callers cannot mutate the accumulator through its maps."""
        acc = AccuracyAccumulator({"a": CharacterStats(1, 1)})
        acc.characters["z"] = CharacterStats(0, 1)
        assert "z" not in acc.characters

    def test_dict_round_trip_uses_two_character_bigram_keys(self):
        """Bigrams are stored as two-character strings."""
        acc = AccuracyAccumulator()
        track_keystroke("h", "h", "t", acc)

        data = acc.to_dict()
        assert data["bigrams"] == {"th": {"correct": 1, "total": 1}}
        assert AccuracyAccumulator.from_dict(data) == acc

    def test_invalid_stats_rejected(self):
        """correct can never exceed total."""
        with pytest.raises(ValueError):
            CharacterStats.from_dict({"correct": 3, "total": 2})
        with pytest.raises(ValueError):
            AccuracyAccumulator.from_dict({"bigrams": {"abc": {"correct": 1, "total": 1}}})


class TestWeakestKeys:
    """Test weakest-character and weakest-bigram queries."""

    @pytest.fixture
    def character_stats(self):
        return {
            "a": CharacterStats(10, 10),
            "b": CharacterStats(3, 6),
            "c": CharacterStats(4, 5),
            "d": CharacterStats(0, 4),  # below the sample threshold
        }

    def test_calculate_accuracy(self):
        """Accuracy is a percentage and zero for an empty key."""
        assert calculate_accuracy(CharacterStats(1, 4)) == 25.0
        assert calculate_accuracy(CharacterStats(0, 0)) == 0.0

    def test_sorted_ascending_with_minimum_samples(self, character_stats):
        """Keys with too few samples are excluded."""
        weakest = get_weakest_characters(character_stats)

        assert [entry["char"] for entry in weakest] == ["b", "c", "a"]
        assert weakest[0] == {"char": "b", "accuracy": 50.0, "total": 6}

    def test_limit(self, character_stats):
        assert len(get_weakest_characters(character_stats, limit=2)) == 2

    def test_custom_minimum(self, character_stats):
        weakest = get_weakest_characters(character_stats, min_samples=1)
        assert weakest[0]["char"] == "d"

    def test_bigram_default_threshold_is_three(self):
        """Bigrams need three samples by default."""
        stats = {("t", "h"): CharacterStats(1, 3), ("h", "e"): CharacterStats(0, 2)}
        weakest = get_weakest_bigrams(stats)

        assert weakest == [{"bigram": "th", "accuracy": pytest.approx(33.333, abs=0.01), "total": 3}]

    def test_accumulator_queries(self, character_stats):
        acc = AccuracyAccumulator(character_stats)
        assert acc.weakest_characters(min_samples=5, limit=1)[0]["char"] == "b"
        assert acc.weakest_bigrams() == []
