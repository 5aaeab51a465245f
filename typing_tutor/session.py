# ABOUTME: Typing session state machine with blocking error correction
import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from .analytics import (
    AccuracyAccumulator,
    bigram_stats_from_dict,
    bigram_stats_to_dict,
    stats_from_dict,
    stats_to_dict,
    track_keystroke,
)
from .events import Backspace, CharacterInput, InputEvent, PauseToggle, normalize_character
from .recorder import SessionRecord, SessionRecorder
from .timing import MonotonicClock, PeriodicTicker, TimingTracker, calculate_wpm
from .utils import ConfigManager


@dataclass(frozen=True)
class NotStarted:
    pass


@dataclass(frozen=True)
class Running:
    idle: bool = False
    paused: bool = False


@dataclass(frozen=True)
class Complete:
    record: SessionRecord


SessionState = Union[NotStarted, Running, Complete]


@dataclass(frozen=True)
class SessionView:
    """What the presentation layer renders after each state change."""

    phase: str
    cursor: int
    length: int
    errors: FrozenSet[int]
    wpm: int
    accuracy: float
    is_paused: bool
    is_idle: bool
    record: Optional[SessionRecord] = None

    @property
    def is_complete(self) -> bool:
        return self.record is not None


@dataclass
class PausedSessionSnapshot:
    """Serializable capture of an unfinished session."""

    target_text: str
    cursor: int
    errors: Tuple[int, ...]
    active_time_ms: float
    correct_count: int
    attempted: Tuple[int, ...] = ()
    missed: Tuple[int, ...] = ()
    character_stats: Dict[str, Any] = field(default_factory=dict)
    bigram_stats: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "target_text": self.target_text,
            "cursor": self.cursor,
            "errors": list(self.errors),
            "active_time_ms": self.active_time_ms,
            "correct_count": self.correct_count,
            "attempted": list(self.attempted),
            "missed": list(self.missed),
            "character_stats": dict(self.character_stats),
            "bigram_stats": dict(self.bigram_stats),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PausedSessionSnapshot":
        """Create from dictionary."""
        return cls(
            target_text=data["target_text"],
            cursor=int(data["cursor"]),
            errors=tuple(int(i) for i in data.get("errors", [])),
            active_time_ms=float(data.get("active_time_ms", 0)),
            correct_count=int(data.get("correct_count", 0)),
            attempted=tuple(int(i) for i in data.get("attempted", [])),
            missed=tuple(int(i) for i in data.get("missed", [])),
            character_stats=dict(data.get("character_stats", {})),
            bigram_stats=dict(data.get("bigram_stats", {})),
        )


Listener = Callable[[SessionView], None]


class SessionStateMachine:
    """Drives one typing session from the first keystroke to its record.

    Correct and total character counts are per text position: a position is
    correct when its first classification was correct, so retyping after a
    backspace never inflates either figure. The per-key accuracy maps, by
    contrast, count every classification.
    """

    def __init__(
        self,
        text: str,
        config: Optional[ConfigManager] = None,
        clock: Any = None,
        recorder: Optional[SessionRecorder] = None,
    ):
        self.config = config or ConfigManager()
        self.clock = clock or MonotonicClock()
        self.recorder = recorder or SessionRecorder()
        self.idle_timeout_ms = self.config.get("session.idle_timeout_ms", 5000)
        self.blocking_errors = self.config.get("session.blocking_errors", True)

        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._reset_state(text)

    def _reset_state(self, text: str) -> None:
        self.text = text
        self.cursor = 0
        self.errors: set = set()
        self.accumulator = AccuracyAccumulator()
        self.timing = TimingTracker(self.idle_timeout_ms)
        self.state: SessionState = NotStarted()
        self._first_attempts: Dict[int, bool] = {}

    # -- queries -----------------------------------------------------------

    @property
    def correct_count(self) -> int:
        return sum(1 for correct in self._first_attempts.values() if correct)

    @property
    def record(self) -> Optional[SessionRecord]:
        return self.state.record if isinstance(self.state, Complete) else None

    def live_accuracy(self) -> float:
        attempted = len(self._first_attempts)
        if attempted == 0:
            return 100.0
        return (self.correct_count / attempted) * 100

    def live_wpm(self) -> int:
        if isinstance(self.state, Complete):
            return self.state.record.wpm
        return calculate_wpm(self.correct_count, self.timing.active_time_ms)

    def view(self) -> SessionView:
        with self._lock:
            state = self.state
            if isinstance(state, Running):
                phase = "running"
            elif isinstance(state, Complete):
                phase = "complete"
            else:
                phase = "not_started"
            return SessionView(
                phase=phase,
                cursor=self.cursor,
                length=len(self.text),
                errors=frozenset(self.errors),
                wpm=self.live_wpm(),
                accuracy=self.live_accuracy(),
                is_paused=isinstance(state, Running) and state.paused,
                is_idle=isinstance(state, Running) and state.idle,
                record=self.record,
            )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a view listener; returns a function that unsubscribes it.

        Listeners run with the session lock held, so views arrive in the order
        the changes were made. A listener may read the session from its own
        thread but must not wait on another thread that uses it.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        # Caller holds the lock
        view = self.view()
        for listener in list(self._listeners):
            listener(view)

    def _deliver(self, record: Optional[SessionRecord]) -> None:
        # Called outside the lock; sinks may block on disk or network
        if record is not None:
            self.recorder.deliver(record)

    # -- input -------------------------------------------------------------

    def handle(self, event: InputEvent) -> bool:
        """Dispatch an input event; returns True if it changed the session."""
        if isinstance(event, CharacterInput):
            return self.type_character(event.char)
        if isinstance(event, Backspace):
            return self.backspace()
        if isinstance(event, PauseToggle):
            return self.toggle_pause()
        raise TypeError(f"Unsupported input event: {event!r}")

    def type_character(self, char: str) -> bool:
        with self._lock:
            if not self._accept_character(char):
                return False
            record = self._complete_if_finished()
            self._notify()
        self._deliver(record)
        return True

    def _accept_character(self, char: str) -> bool:
        actual = normalize_character(char)
        if actual is None:
            logging.debug(f"Ignoring input that is not one logical character: {char!r}")
            return False

        state = self.state
        if isinstance(state, Complete) or self.cursor >= len(self.text):
            return False
        if isinstance(state, Running) and state.paused:
            logging.debug("Input rejected while paused")
            return False
        if self.errors and self.blocking_errors:
            logging.debug(f"Input rejected until error at {min(self.errors)} is corrected")
            return False

        now = self.clock.now_ms()
        if isinstance(state, NotStarted):
            self.timing.start(now)
            self.state = Running()
            logging.info(f"Session started on a {len(self.text)}-character text")
        else:
            self.timing.note_keystroke(now)
            self.state = replace(self.state, idle=False)

        index = self.cursor
        previous = self.text[index - 1] if index > 0 else None
        is_correct = track_keystroke(self.text[index], actual, previous, self.accumulator)
        self._first_attempts.setdefault(index, is_correct)
        if not is_correct:
            self.errors.add(index)
        self.cursor += 1
        return True

    def backspace(self) -> bool:
        with self._lock:
            state = self.state
            if not isinstance(state, Running) or state.paused:
                return False
            if self.cursor == 0:
                return False
            self.cursor -= 1
            self.errors.discard(self.cursor)
            self.timing.note_keystroke(self.clock.now_ms())
            self.state = replace(state, idle=False)
            self._notify()
        return True

    def toggle_pause(self) -> bool:
        with self._lock:
            state = self.state
            if not isinstance(state, Running):
                return False
            now = self.clock.now_ms()
            if state.paused:
                self.timing.resume(now)
                self.state = Running(idle=False, paused=False)
                logging.info("Session resumed")
            else:
                self.timing.pause(now)
                self.state = Running(idle=state.idle, paused=True)
                logging.info("Session paused")
            self._notify()
        return True

    def tick(self) -> None:
        """Timer callback: accrue active time and refresh the idle flag."""
        with self._lock:
            state = self.state
            if not isinstance(state, Running):
                return
            self._sync_timing()
            self._notify()

    def create_ticker(self) -> PeriodicTicker:
        """Background ticker calling :meth:`tick` at the configured interval."""
        return PeriodicTicker(self.config.get("session.tick_interval_ms", 100), self.tick)

    def _sync_timing(self) -> None:
        self.timing.tick(self.clock.now_ms())
        if self.state.idle != self.timing.is_idle:
            self.state = replace(self.state, idle=self.timing.is_idle)

    # -- completion --------------------------------------------------------

    def complete(self) -> Optional[SessionRecord]:
        """External completion signal; finalizes only if the text is done."""
        with self._lock:
            record = self._complete_if_finished()
            if record is not None:
                self._notify()
        self._deliver(record)
        return self.record

    def _complete_if_finished(self) -> Optional[SessionRecord]:
        """Move to Complete if the text is done; returns the new record, if any."""
        if not isinstance(self.state, Running):
            return None
        if self.cursor < len(self.text) or self.errors:
            return None
        duration = self.timing.freeze(self.clock.now_ms())
        record = self.recorder.build(
            self.text,
            len(self.text),
            self.correct_count,
            duration,
            self.accumulator.characters,
            self.accumulator.bigrams,
        )
        self.state = Complete(record)
        return record

    def reset(self, text: Optional[str] = None) -> None:
        """Start over on the same text, or on a new one."""
        with self._lock:
            self._reset_state(self.text if text is None else text)
            self._notify()

    # -- pause / resume across navigation ----------------------------------

    def snapshot(self) -> Optional[PausedSessionSnapshot]:
        """Capture an unfinished session so it can be resumed later."""
        with self._lock:
            if not isinstance(self.state, Running):
                return None
            self._sync_timing()
            return PausedSessionSnapshot(
                target_text=self.text,
                cursor=self.cursor,
                errors=tuple(sorted(self.errors)),
                active_time_ms=self.timing.active_time_ms,
                correct_count=self.correct_count,
                attempted=tuple(sorted(self._first_attempts)),
                missed=tuple(
                    index for index, correct in sorted(self._first_attempts.items()) if not correct
                ),
                character_stats=stats_to_dict(self.accumulator.characters),
                bigram_stats=bigram_stats_to_dict(self.accumulator.bigrams),
            )

    @classmethod
    def from_snapshot(
        cls,
        snapshot: PausedSessionSnapshot,
        config: Optional[ConfigManager] = None,
        clock: Any = None,
        recorder: Optional[SessionRecorder] = None,
    ) -> "SessionStateMachine":
        """Rebuild a paused session; typing continues after ``toggle_pause``."""
        machine = cls(snapshot.target_text, config, clock, recorder)
        length = len(snapshot.target_text)
        if not 0 <= snapshot.cursor <= length:
            raise ValueError(f"Snapshot cursor {snapshot.cursor} outside text of length {length}")
        if any(not 0 <= index < snapshot.cursor for index in snapshot.errors):
            raise ValueError("Snapshot errors must lie before the cursor")

        attempted = set(snapshot.attempted) | set(range(snapshot.cursor))
        if not set(snapshot.missed) <= attempted:
            raise ValueError("Snapshot misses must be attempted positions")
        first_attempts = {index: index not in snapshot.missed for index in sorted(attempted)}
        if sum(first_attempts.values()) != snapshot.correct_count:
            raise ValueError("Snapshot correct count does not match its attempts")

        machine.cursor = snapshot.cursor
        machine.errors = set(snapshot.errors)
        machine._first_attempts = first_attempts
        machine.accumulator = AccuracyAccumulator(
            stats_from_dict(snapshot.character_stats),
            bigram_stats_from_dict(snapshot.bigram_stats),
        )
        now = machine.clock.now_ms()
        machine.timing.start(now)
        machine.timing.restore(snapshot.active_time_ms)
        machine.timing.pause(now)
        machine.state = Running(idle=False, paused=True)
        logging.info(
            f"Restored paused session at {snapshot.cursor}/{length} "
            f"with {snapshot.active_time_ms / 1000:.1f}s active"
        )
        return machine
