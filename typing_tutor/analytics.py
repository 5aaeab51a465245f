# ABOUTME: Keystroke classification and per-character / per-bigram accuracy tracking
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

Bigram = Tuple[str, str]


@dataclass(frozen=True)
class CharacterStats:
    """Correct/total attempt counts for a single key."""

    correct: int = 0
    total: int = 0

    def recorded(self, is_correct: bool) -> "CharacterStats":
        """Return the stats with one more attempt counted."""
        return CharacterStats(self.correct + int(is_correct), self.total + 1)

    def __add__(self, other: "CharacterStats") -> "CharacterStats":
        return CharacterStats(self.correct + other.correct, self.total + other.total)

    def to_dict(self) -> Dict[str, int]:
        return {"correct": self.correct, "total": self.total}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CharacterStats":
        correct = int(data.get("correct", 0))
        total = int(data.get("total", 0))
        if correct < 0 or total < correct:
            raise ValueError(f"Invalid character stats: {dict(data)}")
        return cls(correct, total)


class AccuracyAccumulator:
    """Append-only character and bigram accuracy maps.

    One instance belongs to a single session; a second instance holds the
    lifetime aggregate and is grown with :meth:`merge`, which sums counts per
    key rather than averaging percentages.
    """

    def __init__(
        self,
        characters: Optional[Mapping[str, CharacterStats]] = None,
        bigrams: Optional[Mapping[Bigram, CharacterStats]] = None,
    ):
        self._characters: Dict[str, CharacterStats] = dict(characters or {})
        self._bigrams: Dict[Bigram, CharacterStats] = dict(bigrams or {})

    @property
    def characters(self) -> Dict[str, CharacterStats]:
        return dict(self._characters)

    @property
    def bigrams(self) -> Dict[Bigram, CharacterStats]:
        return dict(self._bigrams)

    def record(self, expected: str, previous: Optional[str], is_correct: bool) -> None:
        """Count one classification of ``expected``."""
        self._characters[expected] = self._characters.get(
            expected, CharacterStats()
        ).recorded(is_correct)
        if previous is not None:
            bigram = (previous, expected)
            self._bigrams[bigram] = self._bigrams.get(bigram, CharacterStats()).recorded(
                is_correct
            )

    def merge(self, other: "AccuracyAccumulator") -> None:
        """Sum another accumulator's counts into this one."""
        for char, stats in other._characters.items():
            self._characters[char] = self._characters.get(char, CharacterStats()) + stats
        for bigram, stats in other._bigrams.items():
            self._bigrams[bigram] = self._bigrams.get(bigram, CharacterStats()) + stats

    def copy(self) -> "AccuracyAccumulator":
        return AccuracyAccumulator(self._characters, self._bigrams)

    def weakest_characters(
        self, min_samples: int = 5, limit: int = 10
    ) -> List[Dict[str, Any]]:
        return get_weakest_characters(self._characters, limit, min_samples)

    def weakest_bigrams(self, min_samples: int = 3, limit: int = 10) -> List[Dict[str, Any]]:
        return get_weakest_bigrams(self._bigrams, limit, min_samples)

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, int]]]:
        """Convert to JSON-friendly dictionaries, bigrams keyed by their two characters."""
        return {
            "characters": stats_to_dict(self._characters),
            "bigrams": bigram_stats_to_dict(self._bigrams),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AccuracyAccumulator":
        return cls(
            stats_from_dict(data.get("characters", {})),
            bigram_stats_from_dict(data.get("bigrams", {})),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccuracyAccumulator):
            return NotImplemented
        return self._characters == other._characters and self._bigrams == other._bigrams

    def __repr__(self) -> str:
        return (
            f"AccuracyAccumulator(characters={len(self._characters)}, "
            f"bigrams={len(self._bigrams)})"
        )


def track_keystroke(
    expected: str,
    actual: str,
    previous: Optional[str],
    accumulator: AccuracyAccumulator,
) -> bool:
    """Classify one keystroke and record it.

    Correctness is strict, case-sensitive equality. The accumulator is updated
    before the result is returned, for the character and (when ``previous`` is
    given) for the ``(previous, expected)`` bigram.
    """
    is_correct = expected == actual
    accumulator.record(expected, previous, is_correct)
    return is_correct


def calculate_accuracy(stats: CharacterStats) -> float:
    """Calculate accuracy percentage from stats."""
    if stats.total == 0:
        return 0.0
    return (stats.correct / stats.total) * 100


def _rank_weakest(
    entries: Iterable[Tuple[str, CharacterStats]], label: str, limit: int, min_samples: int
) -> List[Dict[str, Any]]:
    ranked = [
        {label: key, "accuracy": calculate_accuracy(stats), "total": stats.total}
        for key, stats in entries
        if stats.total >= min_samples
    ]
    ranked.sort(key=lambda item: item["accuracy"])
    return ranked[:limit]


def get_weakest_characters(
    character_stats: Mapping[str, CharacterStats], limit: int = 10, min_samples: int = 5
) -> List[Dict[str, Any]]:
    """Get weakest characters sorted by accuracy (lowest first)."""
    return _rank_weakest(character_stats.items(), "char", limit, min_samples)


def get_weakest_bigrams(
    bigram_stats: Mapping[Bigram, CharacterStats], limit: int = 10, min_samples: int = 3
) -> List[Dict[str, Any]]:
    """Get weakest bigrams sorted by accuracy (lowest first)."""
    entries = (("".join(bigram), stats) for bigram, stats in bigram_stats.items())
    return _rank_weakest(entries, "bigram", limit, min_samples)


def stats_to_dict(stats: Mapping[str, CharacterStats]) -> Dict[str, Dict[str, int]]:
    return {key: value.to_dict() for key, value in stats.items()}


def stats_from_dict(data: Mapping[str, Any]) -> Dict[str, CharacterStats]:
    return {key: CharacterStats.from_dict(value) for key, value in data.items()}


def bigram_stats_to_dict(stats: Mapping[Bigram, CharacterStats]) -> Dict[str, Dict[str, int]]:
    return {"".join(bigram): value.to_dict() for bigram, value in stats.items()}


def bigram_stats_from_dict(data: Mapping[str, Any]) -> Dict[Bigram, CharacterStats]:
    bigrams = {}
    for key, value in data.items():
        if len(key) != 2:
            raise ValueError(f"Bigram key must be two characters: {key!r}")
        bigrams[(key[0], key[1])] = CharacterStats.from_dict(value)
    return bigrams
