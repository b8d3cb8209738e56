from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Protocol
from zoneinfo import ZoneInfo

from .dates import local_day_key, seconds_until_rollover, utc_now
from .errors import StoreError
from .models import LeaderboardEntry, SubmitResult
from .session import TypingSession

USERNAME_MIN_LENGTH = 6
USERNAME_MAX_LENGTH = 20
DEFAULT_POLL_SECONDS = 5.0
DEFAULT_SUBMIT_ATTEMPTS = 2


class Phase(Enum):
    AWAITING_STATUS = "awaiting_status"
    PLAYING = "playing"
    SUBMITTING = "submitting"
    VIEWING = "viewing"


class LeaderboardStore(Protocol):
    def has_played(self, day_key: str, user_id: str) -> bool: ...

    def submit(self, day_key: str, user_id: str, username: str, wpm: int) -> SubmitResult: ...

    def get_leaderboard(self, day_key: str) -> list[LeaderboardEntry]: ...


def validate_username(raw: str) -> str:
    username = raw.strip()
    if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
        raise ValueError(
            f"Username must be {USERNAME_MIN_LENGTH}-{USERNAME_MAX_LENGTH} characters long"
        )
    if not all(ch.isascii() and (ch.isalnum() or ch in "_-") for ch in username):
        raise ValueError("Username may only contain letters, numbers, _ and -")
    return username


def short_user_id(user_id: str) -> str:
    return user_id if len(user_id) <= 16 else f"{user_id[:16]}..."


class ChallengeCoordinator:
    """Per-connection glue between one TypingSession and the shared store.

    Phases run AWAITING_STATUS -> PLAYING -> SUBMITTING -> VIEWING, or jump
    straight to VIEWING when the player already has an entry for the day.
    All methods are synchronous and meant to be driven one event at a time.
    """

    def __init__(
        self,
        store: LeaderboardStore,
        user_id: str,
        username: str,
        tz: ZoneInfo,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_SECONDS,
        max_submit_attempts: int = DEFAULT_SUBMIT_ATTEMPTS,
        logger: logging.Logger | None = None,
    ) -> None:
        if max_submit_attempts <= 0:
            raise ValueError("max_submit_attempts must be positive")
        self.store = store
        self.user_id = user_id
        self.username = validate_username(username)
        self.tz = tz
        self.poll_interval = timedelta(seconds=poll_interval_seconds)
        self.max_submit_attempts = max_submit_attempts
        self.logger = logger or logging.getLogger(__name__)

        self.phase = Phase.AWAITING_STATUS
        self.day_key: str | None = None
        self.session: TypingSession | None = None
        self.leaderboard: list[LeaderboardEntry] = []
        self.submit_result: SubmitResult | None = None
        self.submit_failed = False
        self.closed = False

        self._submission_queued = False
        self._submit_attempts = 0
        self._last_poll: datetime | None = None

    @property
    def wpm(self) -> int:
        return self.session.wpm if self.session is not None else 0

    def connect(self, now: datetime | None = None) -> Phase:
        if self.phase is not Phase.AWAITING_STATUS:
            return self.phase

        current = now or utc_now()
        self.day_key = local_day_key(self.tz, current)
        try:
            played = self.store.has_played(self.day_key, self.user_id)
        except StoreError:
            self.logger.warning(
                "Could not read challenge status for user=%s; assuming not played",
                short_user_id(self.user_id),
                exc_info=True,
            )
            played = False

        if played:
            self._enter_viewing(current)
        else:
            self.phase = Phase.PLAYING
        return self.phase

    def begin(self, target: str) -> TypingSession:
        if self.phase is not Phase.PLAYING:
            raise RuntimeError(f"Cannot start typing while {self.phase.value}")
        if self.session is None:
            self.session = TypingSession(target)
        return self.session

    def handle_keystroke(self, ch: str, now: datetime | None = None) -> bool:
        if self.closed or self.phase is not Phase.PLAYING or self.session is None:
            return False
        return self.session.handle_keystroke(ch, now)

    def handle_backspace(self) -> bool:
        if self.closed or self.phase is not Phase.PLAYING or self.session is None:
            return False
        return self.session.handle_backspace()

    def tick(self, now: datetime | None = None) -> bool:
        """Advance timers; returns True when something visible changed."""
        if self.closed:
            return False

        current = now or utc_now()
        if self.phase is Phase.PLAYING:
            return self._tick_playing(current)
        if self.phase is Phase.SUBMITTING:
            self._attempt_submit(current)
            return True
        if self.phase is Phase.VIEWING:
            return self._poll_leaderboard(current)
        return False

    def seconds_until_next_challenge(self, now: datetime | None = None) -> int:
        return seconds_until_rollover(self.tz, now)

    def close(self) -> None:
        self.closed = True

    def _tick_playing(self, now: datetime) -> bool:
        if self.session is None:
            return False

        before = self.session.wpm
        self.session.tick(now)
        if self.session.is_complete() and not self._submission_queued:
            self._submission_queued = True
            self.phase = Phase.SUBMITTING
            self._attempt_submit(now)
            return True
        return self.session.wpm != before

    def _attempt_submit(self, now: datetime) -> None:
        if self.session is None or self.day_key is None:
            return

        self._submit_attempts += 1
        try:
            result = self.store.submit(self.day_key, self.user_id, self.username, self.session.wpm)
        except StoreError:
            if self._submit_attempts < self.max_submit_attempts:
                self.logger.warning(
                    "Submit attempt %d/%d failed for user=%s; retrying on next tick",
                    self._submit_attempts,
                    self.max_submit_attempts,
                    short_user_id(self.user_id),
                    exc_info=True,
                )
                return
            self.logger.error(
                "Giving up on submission for user=%s after %d attempts",
                short_user_id(self.user_id),
                self._submit_attempts,
                exc_info=True,
            )
            self.submit_failed = True
            self._enter_viewing(now)
            return

        self.submit_result = result
        if result is SubmitResult.OK:
            self.logger.info(
                "Score submitted: user=%s username=%s wpm=%d",
                short_user_id(self.user_id),
                self.username,
                self.session.wpm,
            )
        else:
            self.logger.info("Duplicate submission ignored: user=%s", short_user_id(self.user_id))
        self._enter_viewing(now)

    def _enter_viewing(self, now: datetime) -> None:
        self.phase = Phase.VIEWING
        self._refresh_leaderboard(now)

    def _poll_leaderboard(self, now: datetime) -> bool:
        if self._last_poll is not None and now - self._last_poll < self.poll_interval:
            return False
        return self._refresh_leaderboard(now)

    def _refresh_leaderboard(self, now: datetime) -> bool:
        self._last_poll = now
        if self.day_key is None:
            return False
        try:
            entries = self.store.get_leaderboard(self.day_key)
        except StoreError:
            self.logger.warning("Leaderboard refresh failed for %s", self.day_key, exc_info=True)
            return False

        changed = entries != self.leaderboard
        self.leaderboard = entries
        return changed
