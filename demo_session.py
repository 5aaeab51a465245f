# ABOUTME: Safe demonstration script that replays a simulated typing session
import random
import tempfile

from typing_tutor.events import Backspace, CharacterInput, PauseToggle
from typing_tutor.recorder import SessionRecorder
from typing_tutor.report import summarize_sessions
from typing_tutor.session import SessionStateMachine
from typing_tutor.storage import ProgressStore
from typing_tutor.timing import ManualClock
from typing_tutor.utils import ConfigManager

DEMO_TEXT = "The quick brown fox jumps over the lazy dog."


def simulate_keystrokes(text, error_rate=0.05, seed=7):
    """Yield (delay_ms, event) pairs for a typist who makes and fixes mistakes."""
    rng = random.Random(seed)
    for index, char in enumerate(text):
        if rng.random() < error_rate:
            yield rng.uniform(80, 180), CharacterInput(rng.choice("asdfjkl"))
            yield rng.uniform(200, 400), Backspace()
        # Slight hesitation at word start
        delay = rng.uniform(150, 250) if index and text[index - 1] == " " else rng.uniform(80, 180)
        yield delay, CharacterInput(char)
        if index == len(text) // 2:
            # Walk away for a while without pausing, then take an explicit break
            yield 8000, PauseToggle()
            yield 30000, PauseToggle()


def run_demo_session():
    """Run a complete demonstration of the typing session engine."""
    config = ConfigManager("config.yaml")
    clock = ManualClock()
    tick_ms = config.get("session.tick_interval_ms", 100)

    with tempfile.TemporaryDirectory() as temp_dir:
        store = ProgressStore(temp_dir)
        machine = SessionStateMachine(DEMO_TEXT, config, clock, SessionRecorder(store))

        print(f"Typing: {DEMO_TEXT!r}")
        for delay, event in simulate_keystrokes(DEMO_TEXT):
            # Drive the timer in tick-sized steps until the event is due
            remaining = delay
            while remaining > 0:
                step = min(tick_ms, remaining)
                clock.advance(step)
                remaining -= step
                machine.tick()
            machine.handle(event)

        record = machine.record
        if record is None:
            print("Session did not complete.")
            return None

        print("\n" + "=" * 50)
        print("SESSION RESULTS")
        print("=" * 50)
        print(f"WPM: {record.wpm}")
        print(f"Accuracy: {record.accuracy:.1f}%")
        print(f"Active time: {record.duration_ms / 1000:.1f}s")
        print(f"Wall time: {clock.now_ms() / 1000:.1f}s")

        weakest = store.load_aggregate().weakest_characters(min_samples=1, limit=5)
        print("\nWeakest characters:")
        for entry in weakest:
            print(f"  {entry['char']!r}: {entry['accuracy']:.0f}% of {entry['total']}")

        summary = summarize_sessions(store.load_sessions())
        print(f"\nSaved sessions: {summary['total_sessions']}")
        return record


if __name__ == "__main__":
    run_demo_session()
