# ABOUTME: Unit tests for active-time tracking, idle detection and WPM
import threading

import pytest

from typing_tutor.timing import ManualClock, PeriodicTicker, TimingTracker, calculate_wpm


def run_ticks(tracker, clock, until_ms, step_ms=100):
    """Advance the clock in tick-sized steps, ticking the tracker each time."""
    while clock.now_ms() < until_ms:
        clock.advance(step_ms)
        tracker.tick(clock.now_ms())


class TestCalculateWpm:
    """Test the WPM formula."""

    def test_zero_active_time(self):
        assert calculate_wpm(100, 0) == 0

    def test_standard_five_characters_per_word(self):
        """50 correct characters in one minute is 10 WPM."""
        assert calculate_wpm(50, 60000) == 10

    def test_rounds_half_up(self):
        """5 words in 2 minutes rounds 2.5 up to 3."""
        assert calculate_wpm(25, 120000) == 3

    def test_zero_characters(self):
        assert calculate_wpm(0, 5000) == 0


class TestManualClock:
    def test_advance_and_set(self):
        clock = ManualClock(1000)
        assert clock.advance(250) == 1250
        clock.set(2000)
        assert clock.now_ms() == 2000

    def test_cannot_move_backwards(self):
        clock = ManualClock(1000)
        with pytest.raises(ValueError):
            clock.set(500)
        with pytest.raises(ValueError):
            clock.advance(-1)


class TestTimingTracker:
    """Test active time accrual."""

    @pytest.fixture
    def clock(self):
        return ManualClock()

    @pytest.fixture
    def tracker(self, clock):
        tracker = TimingTracker(idle_timeout_ms=5000)
        tracker.start(clock.now_ms())
        return tracker

    def test_nothing_accrues_before_start(self, clock):
        tracker = TimingTracker()
        run_ticks(tracker, clock, 1000)
        assert tracker.active_time_ms == 0
        assert not tracker.is_started

    def test_ticks_accrue_active_time(self, tracker, clock):
        run_ticks(tracker, clock, 1000)
        assert tracker.active_time_ms == 1000

    def test_keystroke_accrues_up_to_its_timestamp(self, tracker, clock):
        clock.advance(250)
        tracker.note_keystroke(clock.now_ms())
        assert tracker.active_time_ms == 250

    def test_idle_gap_is_excluded(self, tracker, clock):
        """An idle gap between two keystrokes adds nothing to active time."""
        run_ticks(tracker, clock, 1000)
        tracker.note_keystroke(clock.now_ms())
        assert tracker.active_time_ms == 1000

        run_ticks(tracker, clock, 7000)
        assert tracker.is_idle
        assert tracker.active_time_ms == 1000

        tracker.note_keystroke(clock.now_ms())
        assert not tracker.is_idle
        assert tracker.active_time_ms == 1000

        run_ticks(tracker, clock, 7500)
        assert tracker.active_time_ms == 1500

    def test_idle_gap_without_ticks_is_excluded(self, tracker, clock):
        """A keystroke after the timeout withdraws the gap even with no tick in it."""
        clock.advance(6000)
        tracker.note_keystroke(clock.now_ms())
        assert tracker.active_time_ms == 0
        assert not tracker.is_idle

        clock.advance(200)
        tracker.note_keystroke(clock.now_ms())
        assert tracker.active_time_ms == 200

    def test_idle_gap_with_sparse_ticks_is_excluded(self, tracker, clock):
        """Credit from a tick inside the gap is withdrawn too."""
        clock.advance(3000)
        tracker.tick(clock.now_ms())
        assert tracker.active_time_ms == 3000

        clock.advance(3000)
        tracker.note_keystroke(clock.now_ms())
        assert tracker.active_time_ms == 0

    def test_freeze_after_idle_gap_excludes_it(self, tracker, clock):
        run_ticks(tracker, clock, 400)
        tracker.note_keystroke(clock.now_ms())
        clock.advance(9000)
        assert tracker.freeze(clock.now_ms()) == 400

    def test_not_idle_at_exact_timeout(self, tracker, clock):
        """Idle requires the gap to exceed the timeout."""
        run_ticks(tracker, clock, 5000)
        assert not tracker.is_idle
        assert tracker.active_time_ms == 5000

    def test_pause_freezes_time(self, tracker, clock):
        run_ticks(tracker, clock, 500)
        tracker.pause(clock.now_ms())
        run_ticks(tracker, clock, 60000)
        assert tracker.active_time_ms == 500
        assert tracker.last_tick is None

        tracker.resume(clock.now_ms())
        run_ticks(tracker, clock, 60300)
        assert tracker.active_time_ms == 800
        assert not tracker.is_idle

    def test_freeze_is_final(self, tracker, clock):
        run_ticks(tracker, clock, 300)
        assert tracker.freeze(clock.now_ms()) == 300

        run_ticks(tracker, clock, 1000)
        tracker.note_keystroke(clock.now_ms())
        assert tracker.freeze(clock.now_ms()) == 300

    def test_restore_seeds_active_time(self, tracker, clock):
        tracker.restore(12000)
        run_ticks(tracker, clock, 100)
        assert tracker.active_time_ms == 12100
        assert tracker.wpm(50) == calculate_wpm(50, 12100)


class TestPeriodicTicker:
    """Test the background tick scheduler."""

    def test_calls_callback_until_stopped(self):
        calls = []
        done = threading.Event()

        def on_tick():
            calls.append(1)
            if len(calls) >= 3:
                done.set()

        ticker = PeriodicTicker(10, on_tick)
        ticker.start()
        try:
            assert done.wait(timeout=5)
        finally:
            ticker.stop()

        assert not ticker.is_running
        assert len(calls) >= 3

    def test_callback_errors_do_not_stop_ticker(self):
        calls = []
        done = threading.Event()

        def on_tick():
            calls.append(1)
            if len(calls) >= 2:
                done.set()
            raise RuntimeError("boom")

        ticker = PeriodicTicker(10, on_tick)
        ticker.start()
        try:
            assert done.wait(timeout=5)
        finally:
            ticker.stop()
