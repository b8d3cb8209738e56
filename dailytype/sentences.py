from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import aiohttp

from .db import Database
from .errors import MalformedQuoteError, SentenceUnavailableError

DEFAULT_QUOTE_API_URL = "http://thequoteshub.com/api/random-quote"
DEFAULT_WORD_COUNT = 38
DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0

_SPACED_PUNCTUATION = (".", ",", ";", ":", "?", "!")
_QUOTE_REPLACEMENTS = {
    "‘": "'",
    "’": "'",
    "“": '"',
    "”": '"',
}


class SentenceProvider(Protocol):
    async def get_daily_sentence(self) -> str: ...


def normalize_sentence(text: str, word_count: int | None = None) -> str:
    """Lower-case, single-spaced text with a space after each punctuation mark."""
    words = text.split()
    if word_count is not None:
        words = words[:word_count]
    normalized = " ".join(words).lower()

    for mark in _SPACED_PUNCTUATION:
        normalized = normalized.replace(mark, f"{mark} ")
    for curly, straight in _QUOTE_REPLACEMENTS.items():
        normalized = normalized.replace(curly, straight)

    return " ".join(normalized.split())


def parse_quote_payload(payload: object) -> str:
    if not isinstance(payload, dict):
        raise MalformedQuoteError("Quote payload is not an object")
    text = payload.get("text")
    if not isinstance(text, str):
        raise MalformedQuoteError("Quote payload has no text")
    if not text.strip():
        raise MalformedQuoteError("Quote text is empty")
    return text


class QuoteSentenceProvider:
    """Builds the daily sentence by stitching random quotes together.

    Every fetch, good or bad, uses one of ``max_attempts``; a flaky source
    ends in SentenceUnavailableError instead of looping forever.
    """

    def __init__(
        self,
        url: str = DEFAULT_QUOTE_API_URL,
        *,
        word_count: int = DEFAULT_WORD_COUNT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        logger: logging.Logger | None = None,
    ) -> None:
        if word_count <= 0:
            raise ValueError("word_count must be positive")
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        self.url = url
        self.word_count = word_count
        self.max_attempts = max_attempts
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.logger = logger or logging.getLogger(__name__)

    async def fetch_quote(self, session: aiohttp.ClientSession) -> str:
        async with session.get(self.url) as response:
            response.raise_for_status()
            try:
                payload = await response.json(content_type=None)
            except ValueError as exc:
                raise MalformedQuoteError("Quote response is not JSON") from exc
        return parse_quote_payload(payload)

    async def get_daily_sentence(self) -> str:
        quotes: list[str] = []
        total_words = 0

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    quote = await self.fetch_quote(session)
                except (aiohttp.ClientError, asyncio.TimeoutError, MalformedQuoteError) as exc:
                    self.logger.warning("Quote fetch %d/%d failed: %s", attempt, self.max_attempts, exc)
                    continue

                quotes.append(quote)
                total_words += len(quote.split())
                if total_words >= self.word_count:
                    break

        sentence = normalize_sentence(" ".join(quotes), self.word_count)
        if total_words < self.word_count or not sentence:
            self.logger.error(
                "Gave up composing sentence after %d attempts (%d/%d words)",
                self.max_attempts,
                total_words,
                self.word_count,
            )
            raise SentenceUnavailableError(f"Could not collect {self.word_count} words from {self.url}")

        return sentence


class DailySentenceService:
    """Hands out each day's sentence, composing and publishing it on first use."""

    def __init__(self, db: Database, provider: SentenceProvider, logger: logging.Logger | None = None) -> None:
        self.db = db
        self.provider = provider
        self.logger = logger or logging.getLogger(__name__)
        self._lock = asyncio.Lock()

    async def ensure(self, day_key: str) -> str:
        existing = self.db.get_sentence(day_key)
        if existing is not None:
            return existing

        async with self._lock:
            # Another caller may have published while we waited for the lock.
            existing = self.db.get_sentence(day_key)
            if existing is not None:
                return existing

            self.logger.info("No sentence for %s yet, composing one", day_key)
            text = await self.provider.get_daily_sentence()
            if not text:
                raise SentenceUnavailableError("Sentence provider returned an empty sentence")

            if not self.db.publish_sentence(day_key, text):
                self.logger.info("Sentence for %s was published concurrently; keeping stored one", day_key)

        stored = self.db.get_sentence(day_key)
        if stored is None:
            raise SentenceUnavailableError(f"Sentence for {day_key} missing after publish")
        return stored
