# ABOUTME: Package initialization for the typing tutor session engine
"""
Typing Tutor Session Engine

Classifies keystrokes against a target text, tracks character and bigram
accuracy, measures WPM over active typing time, and records each completed
session exactly once.
"""

__version__ = "1.0.0"
__description__ = "Typing-session engine with blocking error correction and active-time WPM"

from .analytics import AccuracyAccumulator, CharacterStats, track_keystroke
from .events import Backspace, CharacterInput, DeadKeyComposer, PauseToggle
from .recorder import SessionRecord, SessionRecorder
from .session import PausedSessionSnapshot, SessionStateMachine, SessionView
from .storage import ProgressStore
from .timing import ManualClock, MonotonicClock, PeriodicTicker, TimingTracker
from .utils import ConfigManager

__all__ = [
    "AccuracyAccumulator",
    "CharacterStats",
    "track_keystroke",
    "Backspace",
    "CharacterInput",
    "DeadKeyComposer",
    "PauseToggle",
    "SessionRecord",
    "SessionRecorder",
    "PausedSessionSnapshot",
    "SessionStateMachine",
    "SessionView",
    "ProgressStore",
    "ManualClock",
    "MonotonicClock",
    "PeriodicTicker",
    "TimingTracker",
    "ConfigManager",
]
