# ABOUTME: Immutable session records and their hand-off to persistence
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from .analytics import (
    AccuracyAccumulator,
    Bigram,
    CharacterStats,
    bigram_stats_from_dict,
    bigram_stats_to_dict,
    stats_from_dict,
    stats_to_dict,
)
from .timing import calculate_wpm
from .utils import generate_session_id

if TYPE_CHECKING:
    from .storage import PersistenceSink


@dataclass(frozen=True)
class SessionRecord:
    """Finalized result of one completed typing session."""

    id: str
    timestamp: int
    text_content: str
    total_characters: int
    correct_characters: int
    duration_ms: float
    wpm: int
    accuracy: float
    character_accuracy: Tuple[Tuple[str, CharacterStats], ...] = field(default=())
    bigram_accuracy: Tuple[Tuple[Bigram, CharacterStats], ...] = field(default=())

    @property
    def character_stats(self) -> Dict[str, CharacterStats]:
        return dict(self.character_accuracy)

    @property
    def bigram_stats(self) -> Dict[Bigram, CharacterStats]:
        return dict(self.bigram_accuracy)

    def accumulator(self) -> AccuracyAccumulator:
        """Fresh accumulator holding this session's stats, for merging."""
        return AccuracyAccumulator(self.character_stats, self.bigram_stats)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "text_content": self.text_content,
            "total_characters": self.total_characters,
            "correct_characters": self.correct_characters,
            "duration_ms": self.duration_ms,
            "wpm": self.wpm,
            "accuracy": self.accuracy,
            "character_accuracy": stats_to_dict(self.character_stats),
            "bigram_accuracy": bigram_stats_to_dict(self.bigram_stats),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SessionRecord":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            timestamp=int(data["timestamp"]),
            text_content=data["text_content"],
            total_characters=int(data["total_characters"]),
            correct_characters=int(data["correct_characters"]),
            duration_ms=float(data["duration_ms"]),
            wpm=int(data["wpm"]),
            accuracy=float(data["accuracy"]),
            character_accuracy=_freeze(stats_from_dict(data.get("character_accuracy", {}))),
            bigram_accuracy=_freeze(bigram_stats_from_dict(data.get("bigram_accuracy", {}))),
        )


def _freeze(stats: Mapping[Any, CharacterStats]) -> Tuple[Tuple[Any, CharacterStats], ...]:
    return tuple(sorted(stats.items()))


def create_session_record(
    text_content: str,
    total_characters: int,
    correct_characters: int,
    duration_ms: float,
    character_accuracy: Mapping[str, CharacterStats],
    bigram_accuracy: Mapping[Bigram, CharacterStats],
) -> SessionRecord:
    """Create a SessionRecord from finished session data."""
    accuracy = (correct_characters / total_characters) * 100 if total_characters > 0 else 0.0
    return SessionRecord(
        id=generate_session_id(),
        timestamp=int(time.time() * 1000),
        text_content=text_content,
        total_characters=total_characters,
        correct_characters=correct_characters,
        duration_ms=duration_ms,
        wpm=calculate_wpm(correct_characters, duration_ms),
        accuracy=accuracy,
        character_accuracy=_freeze(character_accuracy),
        bigram_accuracy=_freeze(bigram_accuracy),
    )


class SessionRecorder:
    """Delivers finished records to a persistence sink.

    A record the sink fails to store stays in ``pending`` until
    :meth:`retry_pending` succeeds with it.
    """

    def __init__(self, sink: Optional["PersistenceSink"] = None):
        self.sink = sink
        self.pending: List[SessionRecord] = []
        self.delivered: List[SessionRecord] = []

    def finalize(
        self,
        text_content: str,
        total_characters: int,
        correct_characters: int,
        duration_ms: float,
        character_accuracy: Mapping[str, CharacterStats],
        bigram_accuracy: Mapping[Bigram, CharacterStats],
    ) -> SessionRecord:
        record = self.build(
            text_content,
            total_characters,
            correct_characters,
            duration_ms,
            character_accuracy,
            bigram_accuracy,
        )
        self.deliver(record)
        return record

    def build(
        self,
        text_content: str,
        total_characters: int,
        correct_characters: int,
        duration_ms: float,
        character_accuracy: Mapping[str, CharacterStats],
        bigram_accuracy: Mapping[Bigram, CharacterStats],
    ) -> SessionRecord:
        """Create and log the record without handing it to the sink."""
        record = create_session_record(
            text_content,
            total_characters,
            correct_characters,
            duration_ms,
            character_accuracy,
            bigram_accuracy,
        )
        logging.info(
            f"Session {record.id} complete: {record.wpm} WPM, {record.accuracy:.1f}% accuracy "
            f"over {record.duration_ms / 1000:.1f}s active"
        )
        return record

    def deliver(self, record: SessionRecord) -> bool:
        """Hand a record to the sink; returns False if it is left pending."""
        if self.sink is None:
            self.delivered.append(record)
            return True
        try:
            self.sink.save_session(record)
        except Exception as e:
            logging.error(f"Failed to save session {record.id}: {e}")
            if record not in self.pending:
                self.pending.append(record)
            return False
        if record in self.pending:
            self.pending.remove(record)
        self.delivered.append(record)
        return True

    def retry_pending(self) -> int:
        """Resend pending records; returns how many are still pending."""
        for record in list(self.pending):
            self.deliver(record)
        return len(self.pending)
