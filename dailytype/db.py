from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path

from .errors import CorruptRecordError, StoreError, StoreUnavailableError
from .models import ChallengeRecord, LeaderboardEntry, SubmitResult

SENTENCE_PREFIX = "sentence:"
RECORD_PREFIX = "record:"


def sentence_key(day_key: str) -> str:
    return f"{SENTENCE_PREFIX}{day_key}"


def record_key(day_key: str) -> str:
    return f"{RECORD_PREFIX}{day_key}"


class Database:
    """SQLite-backed leaderboard store.

    Daily state lives in a key/value table as ``sentence:<day>`` and
    ``record:<day>`` JSON values. Every statement runs under one connection
    lock, and submissions run inside a ``BEGIN IMMEDIATE`` transaction, so the
    duplicate check and the append are a single unit.
    """

    def __init__(self, db_path: str | Path, logger: logging.Logger | None = None) -> None:
        self.db_path = str(db_path)
        self.logger = logger or logging.getLogger(__name__)
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Unable to open store at {self.db_path}") from exc
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._closed = False

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True
            self.logger.info("Store closed: %s", self.db_path)

    def initialize(self) -> None:
        # kv: sentence and record values per day.
        # meta: small key/value store for scheduler markers.
        try:
            with self._lock, self._conn:
                self._conn.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS kv (
                      key TEXT PRIMARY KEY,
                      value TEXT NOT NULL
                    );

                    CREATE TABLE IF NOT EXISTS meta (
                      key TEXT PRIMARY KEY,
                      value TEXT NOT NULL
                    );
                    """
                )
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Unable to initialize store at {self.db_path}") from exc
        self.logger.info("Store ready: %s", self.db_path)

    def get_sentence(self, day_key: str) -> str | None:
        value = self._read_json(sentence_key(day_key))
        if value is None:
            return None
        if not isinstance(value, str):
            raise CorruptRecordError(f"Sentence for {day_key} is not a string")
        return value

    def publish_sentence(self, day_key: str, text: str) -> bool:
        """Store the day's sentence and an empty record; never overwrites.

        Returns False when a sentence already exists for ``day_key``.
        """
        if not text:
            raise ValueError("Refusing to publish an empty sentence")

        with self._lock:
            try:
                with self._conn:
                    self._conn.execute("BEGIN IMMEDIATE")
                    if self._fetch_raw(sentence_key(day_key)) is not None:
                        return False
                    self._put(sentence_key(day_key), json.dumps(text))
                    # A record may exist from submissions made before the sentence landed.
                    if self._fetch_raw(record_key(day_key)) is None:
                        self._put(record_key(day_key), json.dumps(ChallengeRecord(day_key).to_dict()))
            except sqlite3.Error as exc:
                raise StoreError(f"Failed to publish sentence for {day_key}") from exc

        self.logger.info("Published sentence for %s (%d chars)", day_key, len(text))
        return True

    def get_record(self, day_key: str) -> ChallengeRecord | None:
        value = self._read_json(record_key(day_key))
        if value is None:
            return None
        return _decode_record(day_key, value)

    def has_played(self, day_key: str, user_id: str) -> bool:
        record = self.get_record(day_key)
        return record is not None and record.has_user(user_id)

    def submit(self, day_key: str, user_id: str, username: str, wpm: int) -> SubmitResult:
        if wpm < 0:
            raise ValueError("wpm must be non-negative")

        entry = LeaderboardEntry(user_id=user_id, username=username, wpm=int(wpm))
        with self._lock:
            try:
                with self._conn:
                    self._conn.execute("BEGIN IMMEDIATE")
                    raw = self._fetch_raw(record_key(day_key))
                    record = ChallengeRecord(day_key) if raw is None else _decode_record(day_key, _loads(raw))
                    if record.has_user(user_id):
                        return SubmitResult.ALREADY_SUBMITTED
                    self._put(record_key(day_key), json.dumps(record.with_entry(entry).to_dict()))
            except sqlite3.Error as exc:
                raise StoreError(f"Failed to submit score for {day_key}") from exc

        return SubmitResult.OK

    def get_leaderboard(self, day_key: str) -> list[LeaderboardEntry]:
        record = self.get_record(day_key)
        if record is None:
            return []
        # sorted() is stable, so equal scores keep submission order.
        return sorted(record.entries, key=lambda entry: -entry.wpm)

    def get_meta(self, key: str) -> str | None:
        try:
            with self._lock:
                row = self._conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read meta key {key}") from exc
        if row is None:
            return None
        return str(row["value"])

    def set_meta(self, key: str, value: str) -> None:
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    """
                    INSERT INTO meta (key, value)
                    VALUES (?, ?)
                    ON CONFLICT(key)
                    DO UPDATE SET value=excluded.value
                    """,
                    (key, value),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to write meta key {key}") from exc

    def _read_json(self, key: str) -> object | None:
        try:
            with self._lock:
                raw = self._fetch_raw(key)
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read {key}") from exc
        if raw is None:
            return None
        return _loads(raw)

    def _fetch_raw(self, key: str) -> str | None:
        row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return str(row["value"])

    def _put(self, key: str, value: str) -> None:
        self._conn.execute(
            """
            INSERT INTO kv (key, value)
            VALUES (?, ?)
            ON CONFLICT(key)
            DO UPDATE SET value=excluded.value
            """,
            (key, value),
        )


def _loads(raw: str) -> object:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CorruptRecordError("Stored value is not valid JSON") from exc


def _decode_record(day_key: str, value: object) -> ChallengeRecord:
    if not isinstance(value, dict):
        raise CorruptRecordError(f"Record for {day_key} is not an object")
    try:
        return ChallengeRecord.from_dict(value)
    except (KeyError, TypeError, ValueError) as exc:
        raise CorruptRecordError(f"Record for {day_key} is malformed") from exc
