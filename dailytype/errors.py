from __future__ import annotations


class StoreError(Exception):
    """A read or write against the leaderboard store failed."""


class CorruptRecordError(StoreError):
    """A persisted value could not be decoded."""


class StoreUnavailableError(RuntimeError):
    """The store could not be opened; nothing can be served without it."""


class MalformedQuoteError(ValueError):
    """The quote source answered with an unexpected payload."""


class SentenceUnavailableError(RuntimeError):
    """Composing a daily sentence ran out of attempts."""
