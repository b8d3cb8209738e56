import asyncio

import pytest

from dailytype.db import Database
from dailytype.errors import MalformedQuoteError, SentenceUnavailableError
from dailytype.sentences import (
    DailySentenceService,
    QuoteSentenceProvider,
    normalize_sentence,
    parse_quote_payload,
)

DAY = "2026-02-01"


class ScriptedProvider(QuoteSentenceProvider):
    """Replays canned quotes (or errors) instead of calling the network."""

    def __init__(self, responses, **kwargs) -> None:
        super().__init__("http://quotes.invalid/random", **kwargs)
        self.responses = list(responses)
        self.calls = 0

    async def fetch_quote(self, session) -> str:
        self.calls += 1
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return parse_quote_payload(response)


class CountingProvider:
    def __init__(self, text: str) -> None:
        self.text = text
        self.calls = 0

    async def get_daily_sentence(self) -> str:
        self.calls += 1
        await asyncio.sleep(0)
        return self.text


def make_db() -> Database:
    db = Database(":memory:")
    db.initialize()
    return db


def test_normalize_sentence() -> None:
    raw = "Be Yourself;everyone else\nis already taken.“Quote”  ‘here’!"

    assert normalize_sentence(raw) == "be yourself; everyone else is already taken. \"quote\" 'here'!"


def test_normalize_truncates_to_word_count() -> None:
    assert normalize_sentence("one two three four", 2) == "one two"


def test_parse_quote_payload_rejects_bad_shapes() -> None:
    with pytest.raises(MalformedQuoteError):
        parse_quote_payload(["text"])
    with pytest.raises(MalformedQuoteError):
        parse_quote_payload({"quote": "missing text key"})
    with pytest.raises(MalformedQuoteError):
        parse_quote_payload({"text": 42})
    with pytest.raises(MalformedQuoteError):
        parse_quote_payload({"text": "   "})


def test_provider_accumulates_until_word_count() -> None:
    provider = ScriptedProvider(
        [{"text": "Alpha beta."}, {"text": "Gamma delta epsilon"}],
        word_count=4,
    )

    sentence = asyncio.run(provider.get_daily_sentence())

    assert sentence == "alpha beta. gamma delta"
    assert provider.calls == 2


def test_provider_retries_past_malformed_quotes() -> None:
    provider = ScriptedProvider(
        [{"oops": True}, MalformedQuoteError("not json"), {"text": "one two three"}],
        word_count=3,
        max_attempts=5,
    )

    assert asyncio.run(provider.get_daily_sentence()) == "one two three"
    assert provider.calls == 3


def test_provider_gives_up_after_max_attempts() -> None:
    provider = ScriptedProvider([{"bad": 1}] * 3, word_count=3, max_attempts=3)

    with pytest.raises(SentenceUnavailableError):
        asyncio.run(provider.get_daily_sentence())
    assert provider.calls == 3


def test_service_publishes_lazily_once() -> None:
    db = make_db()
    provider = CountingProvider("lazy sentence")
    service = DailySentenceService(db, provider)

    async def scenario():
        return await asyncio.gather(service.ensure(DAY), service.ensure(DAY), service.ensure(DAY))

    assert asyncio.run(scenario()) == ["lazy sentence"] * 3
    assert provider.calls == 1
    assert db.get_sentence(DAY) == "lazy sentence"


def test_service_returns_existing_sentence() -> None:
    db = make_db()
    db.publish_sentence(DAY, "already here")
    provider = CountingProvider("replacement")
    service = DailySentenceService(db, provider)

    assert asyncio.run(service.ensure(DAY)) == "already here"
    assert provider.calls == 0


def test_service_refuses_empty_sentence() -> None:
    db = make_db()
    service = DailySentenceService(db, CountingProvider(""))

    with pytest.raises(SentenceUnavailableError):
        asyncio.run(service.ensure(DAY))
    assert db.get_sentence(DAY) is None
