from __future__ import annotations

import unicodedata
from datetime import datetime, timedelta
from enum import Enum

from .dates import utc_now
from .models import CharState

CHARS_PER_WORD = 5
_ONE_MICROSECOND = timedelta(microseconds=1)
_MICROSECONDS_PER_MINUTE = 60 * 1_000_000


class SessionState(Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def is_accepted_keystroke(ch: str) -> bool:
    """Letters, digits, punctuation, symbols and whitespace; control keys are dropped."""
    if len(ch) != 1:
        return False
    if ch.isspace() or ch.isalpha() or ch.isnumeric():
        return True
    return unicodedata.category(ch)[0] in ("P", "S")


def count_correct_chars(target: str, typed: str) -> int:
    return sum(1 for typed_char, target_char in zip(typed, target) if typed_char == target_char)


def compute_wpm(correct_chars: int, elapsed: timedelta) -> int | None:
    """Floor of correct_chars / 5 / elapsed minutes, or None when no time has passed.

    Integer arithmetic on microseconds keeps exact cases exact (7 chars over 6s is 14).
    """
    elapsed_us = elapsed // _ONE_MICROSECOND
    if elapsed_us <= 0:
        return None
    return (correct_chars * _MICROSECONDS_PER_MINUTE) // (CHARS_PER_WORD * elapsed_us)


def classify(target: str, typed: str) -> list[CharState]:
    """Per-position correctness overlay for ``target``.

    The first mismatch taints every typed position after it, even ones that
    happen to match. A line break never holds the cursor; it moves to the next
    position instead.
    """
    states: list[CharState] = []
    typed_len = len(typed)
    found_error = False
    cursor_pending = False

    for index, target_char in enumerate(target):
        if index < typed_len:
            if not found_error and typed[index] != target_char:
                found_error = True
            states.append(CharState.INCORRECT if found_error else CharState.CORRECT)
            continue

        if index == typed_len or cursor_pending:
            if target_char == "\n":
                cursor_pending = True
                states.append(CharState.UNTYPED)
                continue
            cursor_pending = False
            states.append(CharState.CURRENT)
            continue

        states.append(CharState.UNTYPED)

    return states


class TypingSession:
    """Typing state for one player against one target sentence.

    ``typed`` never grows past the target, line breaks in the target are
    inserted automatically, and the session completes only on an exact match.
    Once completed it ignores all further input.
    """

    def __init__(self, target: str) -> None:
        if not target:
            raise ValueError("target must be a non-empty string")
        self._target = target
        self._typed = ""
        self._start_time: datetime | None = None
        self._finished = False
        self._wpm = 0

    @property
    def target(self) -> str:
        return self._target

    @property
    def typed(self) -> str:
        return self._typed

    @property
    def start_time(self) -> datetime | None:
        return self._start_time

    @property
    def wpm(self) -> int:
        return self._wpm

    @property
    def state(self) -> SessionState:
        if self._finished:
            return SessionState.COMPLETED
        if self._start_time is None:
            return SessionState.IDLE
        return SessionState.IN_PROGRESS

    def is_complete(self) -> bool:
        return self._finished

    def correct_chars(self) -> int:
        return count_correct_chars(self._target, self._typed)

    def overlay(self) -> list[CharState]:
        return classify(self._target, self._typed)

    def handle_keystroke(self, ch: str, now: datetime | None = None) -> bool:
        """Apply one keystroke; returns whether it was accepted."""
        if self._finished or not is_accepted_keystroke(ch):
            return False

        if self._start_time is None:
            self._start_time = now or utc_now()

        if len(self._typed) >= len(self._target):
            return False

        if self._target[len(self._typed)] == "\n":
            self._typed += "\n"
        if len(self._typed) < len(self._target):
            self._typed += ch

        self._finished = self._typed == self._target
        return True

    def handle_backspace(self) -> bool:
        if self._finished or not self._typed:
            return False

        self._typed = self._typed[:-1]
        # Drop the auto-inserted line break together with the character before it.
        if self._typed.endswith("\n"):
            self._typed = self._typed[:-1]
        return True

    def tick(self, now: datetime | None = None) -> int:
        """Recompute WPM from correct characters and elapsed time."""
        if self._start_time is None:
            return self._wpm

        elapsed = (now or utc_now()) - self._start_time
        wpm = compute_wpm(self.correct_chars(), elapsed)
        if wpm is not None:
            self._wpm = max(0, wpm)
        return self._wpm
