from __future__ import annotations

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from .dates import local_day_key, seconds_until_rollover
from .db import Database
from .errors import StoreError
from .models import CharState, LeaderboardEntry

DEFAULT_ENTRIES_PER_PAGE = 10
MEDALS = ("🥇", "🥈", "🥉")

# Discord renders these inside ```ansi code blocks.
_ANSI_RESET = "\u001b[0m"
_ANSI_STYLES = {
    CharState.CORRECT: "\u001b[0;32m",
    CharState.INCORRECT: "\u001b[0;41;37m",
    CharState.CURRENT: "\u001b[4;44;37m",
    CharState.UNTYPED: "\u001b[0;30m",
}


def format_seconds(total_seconds: int) -> str:
    """Render a duration as HH:MM:SS for countdown output."""
    safe_seconds = max(0, int(total_seconds))
    hours, remainder = divmod(safe_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02}:{minutes:02}:{seconds:02}"


def render_overlay(target: str, states: list[CharState]) -> str:
    if len(states) != len(target):
        raise ValueError("states must cover every target position")

    parts: list[str] = []
    active: CharState | None = None
    for char, state in zip(target, states):
        if char == "\n":
            parts.append(char)
            continue
        if state is not active:
            parts.append(_ANSI_STYLES[state])
            active = state
        parts.append(char)
    parts.append(_ANSI_RESET)
    return "```ansi\n" + "".join(parts) + "\n```"


def total_pages(entry_count: int, per_page: int = DEFAULT_ENTRIES_PER_PAGE) -> int:
    return max(1, (entry_count + per_page - 1) // per_page)


def clamp_page(page: int, entry_count: int, per_page: int = DEFAULT_ENTRIES_PER_PAGE) -> int:
    return min(max(page, 0), total_pages(entry_count, per_page) - 1)


def format_entry(rank: int, entry: LeaderboardEntry) -> str:
    prefix = MEDALS[rank] if rank < len(MEDALS) else f"{rank + 1:2d}."
    return f"{prefix} {entry.username}: {entry.wpm} WPM"


def build_leaderboard_content(
    day_key: str,
    entries: list[LeaderboardEntry],
    countdown_seconds: int,
    *,
    page: int = 0,
    per_page: int = DEFAULT_ENTRIES_PER_PAGE,
) -> str:
    page = clamp_page(page, len(entries), per_page)
    lines = [f"**🏆 Daily Leaderboard - {day_key}**"]

    if not entries:
        lines.append("No entries yet today!")
    else:
        start = page * per_page
        for offset, entry in enumerate(entries[start : start + per_page]):
            lines.append(format_entry(start + offset, entry))

    pages = total_pages(len(entries), per_page)
    lines.append("")
    lines.append(f"Page {page + 1} of {pages} ({len(entries)} total entries)")
    lines.append(f"Next challenge in `{format_seconds(countdown_seconds)}`")
    return "\n".join(lines)


def build_typing_content(target: str, states: list[CharState], wpm: int) -> str:
    return "\n".join(
        [
            "Type the sentence below in this channel. Each message counts as a fresh attempt; "
            "it has to match exactly, punctuation included.",
            render_overlay(target, states),
            f"**WPM: {wpm}**",
        ]
    )


class Reporter:
    def __init__(self, db: Database, tz: ZoneInfo, logger: logging.Logger | None = None) -> None:
        self.db = db
        self.tz = tz
        self.logger = logger or logging.getLogger(__name__)

    def build_today_content(self, *, page: int = 0, now_utc: datetime | None = None) -> str:
        day_key = local_day_key(self.tz, now_utc)
        try:
            entries = self.db.get_leaderboard(day_key)
        except StoreError:
            self.logger.warning("Leaderboard read failed for %s", day_key, exc_info=True)
            entries = []

        return build_leaderboard_content(
            day_key,
            entries,
            seconds_until_rollover(self.tz, now_utc),
            page=clamp_page(page, len(entries)),
        )
