from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .sentences import DEFAULT_MAX_ATTEMPTS, DEFAULT_QUOTE_API_URL, DEFAULT_WORD_COUNT

DEFAULT_TIMEZONE = "America/Los_Angeles"
DEFAULT_DB_PATH = "daily_typing.db"


@dataclass(frozen=True, slots=True)
class Config:
    discord_token: str
    guild_id: int
    timezone: ZoneInfo
    db_path: Path
    quote_api_url: str
    sentence_word_count: int
    sentence_max_attempts: int
    tick_seconds: int
    leaderboard_poll_seconds: int
    submit_max_attempts: int
    play_timeout_seconds: int


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ValueError(f"Missing required environment variable: {name}")
    return value.strip()


def _required_int_env(name: str) -> int:
    value = _required_env(name)
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc

    if parsed <= 0:
        raise ValueError(f"Environment variable {name} must be positive")
    return parsed


def _positive_int_env(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc

    if parsed <= 0:
        raise ValueError(f"{name} must be positive")
    return parsed


def _timezone_from_env(name: str, default: str) -> ZoneInfo:
    tz_name = os.getenv(name, default).strip() or default
    try:
        return ZoneInfo(tz_name)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"Invalid timezone in {name}: {tz_name}") from exc


def load_config() -> Config:
    return Config(
        discord_token=_required_env("DISCORD_TOKEN"),
        guild_id=_required_int_env("GUILD_ID"),
        timezone=_timezone_from_env("TIMEZONE", DEFAULT_TIMEZONE),
        db_path=Path(os.getenv("DB_PATH", DEFAULT_DB_PATH).strip() or DEFAULT_DB_PATH),
        quote_api_url=os.getenv("QUOTE_API_URL", DEFAULT_QUOTE_API_URL).strip() or DEFAULT_QUOTE_API_URL,
        sentence_word_count=_positive_int_env("SENTENCE_WORD_COUNT", DEFAULT_WORD_COUNT),
        sentence_max_attempts=_positive_int_env("SENTENCE_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
        tick_seconds=_positive_int_env("TICK_SECONDS", 1),
        leaderboard_poll_seconds=_positive_int_env("LEADERBOARD_POLL_SECONDS", 5),
        submit_max_attempts=_positive_int_env("SUBMIT_MAX_ATTEMPTS", 2),
        play_timeout_seconds=_positive_int_env("PLAY_TIMEOUT_SECONDS", 600),
    )
