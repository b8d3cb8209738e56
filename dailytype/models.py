from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class SubmitResult(Enum):
    OK = "ok"
    ALREADY_SUBMITTED = "already_submitted"


class CharState(Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    CURRENT = "current"
    UNTYPED = "untyped"


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    user_id: str
    username: str
    wpm: int

    def to_dict(self) -> dict[str, object]:
        return {"user_id": self.user_id, "username": self.username, "wpm": self.wpm}

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> LeaderboardEntry:
        return cls(
            user_id=str(payload["user_id"]),
            username=str(payload["username"]),
            wpm=int(payload["wpm"]),
        )


@dataclass(frozen=True, slots=True)
class ChallengeRecord:
    day_key: str
    entries: tuple[LeaderboardEntry, ...] = field(default_factory=tuple)

    def has_user(self, user_id: str) -> bool:
        return any(entry.user_id == user_id for entry in self.entries)

    def with_entry(self, entry: LeaderboardEntry) -> ChallengeRecord:
        return ChallengeRecord(day_key=self.day_key, entries=(*self.entries, entry))

    def to_dict(self) -> dict[str, object]:
        return {"date": self.day_key, "entries": [entry.to_dict() for entry in self.entries]}

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> ChallengeRecord:
        raw_entries = payload.get("entries") or []
        if not isinstance(raw_entries, list):
            raise ValueError("entries must be a list")
        return cls(
            day_key=str(payload["date"]),
            entries=tuple(LeaderboardEntry.from_dict(item) for item in raw_entries),
        )
