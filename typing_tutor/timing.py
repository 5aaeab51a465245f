# ABOUTME: Active-time tracking, idle detection and WPM calculation
import logging
import math
import threading
import time
from typing import Callable, Optional


def calculate_wpm(correct_characters: int, active_time_ms: float) -> int:
    """Calculate WPM from correct characters and active time.

    Standard: 5 characters = 1 word. Rounds half up.
    """
    if active_time_ms <= 0:
        return 0
    words = correct_characters / 5
    minutes = active_time_ms / 60000
    return int(math.floor(words / minutes + 0.5))


class MonotonicClock:
    """Millisecond timestamps from the monotonic clock."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000


class ManualClock:
    """Clock that only moves when told to, for replays and tests."""

    def __init__(self, start_ms: float = 0.0):
        self._now = float(start_ms)

    def now_ms(self) -> float:
        return self._now

    def advance(self, ms: float) -> float:
        if ms < 0:
            raise ValueError("Clock cannot move backwards")
        self._now += ms
        return self._now

    def set(self, now_ms: float) -> None:
        if now_ms < self._now:
            raise ValueError("Clock cannot move backwards")
        self._now = float(now_ms)


class TimingTracker:
    """Tracks productive typing time.

    Time accrues between consecutive ticks/keystrokes only while the tracker is
    neither idle nor paused. Becoming idle withdraws whatever was credited since
    the last keystroke, so an idle gap contributes nothing to active time.
    """

    def __init__(self, idle_timeout_ms: float = 5000):
        self.idle_timeout_ms = idle_timeout_ms
        self.active_time_ms = 0.0
        self.started_at: Optional[float] = None
        self.last_tick: Optional[float] = None
        self.last_keystroke: Optional[float] = None
        self.is_idle = False
        self.is_paused = False
        self.is_frozen = False
        self._credit_since_keystroke = 0.0

    @property
    def is_started(self) -> bool:
        return self.started_at is not None

    def start(self, now: float) -> None:
        """Start the clock at the first accepted keystroke."""
        if self.is_started:
            return
        self.started_at = now
        self.last_tick = now
        self.last_keystroke = now

    def restore(self, active_time_ms: float) -> None:
        """Seed active time from a paused-session snapshot."""
        self.active_time_ms = float(active_time_ms)

    def _accrue(self, now: float) -> None:
        if self.is_idle or self.is_paused or self.is_frozen:
            self.last_tick = None
            return
        if self.last_tick is not None and now > self.last_tick:
            delta = now - self.last_tick
            self.active_time_ms += delta
            self._credit_since_keystroke += delta
        self.last_tick = now

    def _detect_idle(self, now: float) -> None:
        # Checked on every update, so a gap with no tick inside it is still caught
        if (
            not self.is_idle
            and not self.is_paused
            and self.last_keystroke is not None
            and now - self.last_keystroke > self.idle_timeout_ms
        ):
            self.is_idle = True
            self.active_time_ms -= self._credit_since_keystroke
            self._credit_since_keystroke = 0.0
            logging.debug(f"Idle after {now - self.last_keystroke:.0f}ms without input")

    def tick(self, now: float) -> None:
        """Periodic update; accrues time and detects idleness."""
        if not self.is_started or self.is_frozen:
            return
        self._detect_idle(now)
        self._accrue(now)

    def note_keystroke(self, now: float) -> None:
        """Record activity; clears idleness and restarts accrual from ``now``."""
        if not self.is_started or self.is_frozen:
            return
        self._detect_idle(now)
        if self.is_idle:
            self.is_idle = False
            self.last_tick = now
        else:
            self._accrue(now)
        self.last_keystroke = now
        self._credit_since_keystroke = 0.0

    def pause(self, now: float) -> None:
        if self.is_paused or self.is_frozen:
            return
        self._accrue(now)
        self.is_paused = True
        self.last_tick = None

    def resume(self, now: float) -> None:
        if not self.is_paused or self.is_frozen:
            return
        self.is_paused = False
        self.is_idle = False
        self.last_tick = now
        self.last_keystroke = now
        self._credit_since_keystroke = 0.0

    def freeze(self, now: float) -> float:
        """Stop the clock for good and return the final active time."""
        if not self.is_frozen:
            if self.is_started:
                self._detect_idle(now)
            self._accrue(now)
            self.is_frozen = True
            self.last_tick = None
        return self.active_time_ms

    def wpm(self, correct_characters: int) -> int:
        return calculate_wpm(correct_characters, self.active_time_ms)


class PeriodicTicker:
    """Invoke a callback every ``interval_ms`` on a daemon timer thread."""

    def __init__(self, interval_ms: float, callback: Callable[[], None]):
        self.interval_ms = interval_ms
        self.callback = callback
        self.is_running = False
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                logging.warning("Ticker is already running")
                return
            self.is_running = True
            self._schedule()

    def stop(self) -> None:
        with self._lock:
            self.is_running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _schedule(self) -> None:
        self._timer = threading.Timer(self.interval_ms / 1000, self._run)
        self._timer.daemon = True
        self._timer.start()

    def _run(self) -> None:
        if not self.is_running:
            return
        try:
            self.callback()
        except Exception as e:
            logging.error(f"Error in tick callback: {e}")
        with self._lock:
            if self.is_running:
                self._schedule()
