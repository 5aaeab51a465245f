# ABOUTME: Logical input events and dead-key composition for the session engine
import unicodedata
from dataclasses import dataclass
from typing import Dict, Optional, Union


@dataclass(frozen=True)
class CharacterInput:
    """One logical character, already composed."""

    char: str


@dataclass(frozen=True)
class Backspace:
    pass


@dataclass(frozen=True)
class PauseToggle:
    pass


InputEvent = Union[CharacterInput, Backspace, PauseToggle]


def normalize_character(text: str) -> Optional[str]:
    """NFC-normalize input; return it only if it is exactly one character."""
    if not text:
        return None
    composed = unicodedata.normalize("NFC", text)
    if len(composed) != 1:
        return None
    return composed


# Mac Option-key dead keys and the combining mark each one applies
DEAD_KEYS: Dict[str, str] = {
    "acute": "\u0301",  # Option + e
    "grave": "\u0300",  # Option + `
    "tilde": "\u0303",  # Option + n
    "dieresis": "\u0308",  # Option + u
    "circumflex": "\u0302",  # Option + i
}


class DeadKeyComposer:
    """Turns a dead-key accent plus a base letter into one logical keystroke.

    ``press_dead_key("acute")`` followed by ``feed("e")`` yields ``"é"``. When
    the pair has no precomposed form the accent is dropped and the base
    character is passed through on its own, so the engine still sees exactly
    one character.
    """

    def __init__(self):
        self._pending: Optional[str] = None

    @property
    def pending(self) -> Optional[str]:
        return self._pending

    def press_dead_key(self, name: str) -> None:
        if name not in DEAD_KEYS:
            raise ValueError(f"Unknown dead key: {name}")
        self._pending = DEAD_KEYS[name]

    def cancel(self) -> None:
        self._pending = None

    def feed(self, char: str) -> Optional[CharacterInput]:
        """Resolve a physical character into a logical input event."""
        mark, self._pending = self._pending, None
        base = normalize_character(char)
        if base is None:
            return None
        if mark is not None:
            composed = normalize_character(base + mark)
            if composed is not None:
                return CharacterInput(composed)
        return CharacterInput(base)
