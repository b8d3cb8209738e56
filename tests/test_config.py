import pytest

from dailytype.config import load_config


@pytest.fixture
def base_env(monkeypatch):
    for name in (
        "TIMEZONE",
        "DB_PATH",
        "LEADERBOARD_POLL_SECONDS",
        "SUBMIT_MAX_ATTEMPTS",
        "SENTENCE_WORD_COUNT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DISCORD_TOKEN", "token")
    monkeypatch.setenv("GUILD_ID", "1234")
    return monkeypatch


def test_defaults(base_env) -> None:
    config = load_config()

    assert config.guild_id == 1234
    assert config.timezone.key == "America/Los_Angeles"
    assert config.leaderboard_poll_seconds == 5
    assert config.submit_max_attempts == 2
    assert config.sentence_word_count == 38


def test_poll_interval_is_configurable(base_env) -> None:
    base_env.setenv("LEADERBOARD_POLL_SECONDS", "1")

    assert load_config().leaderboard_poll_seconds == 1


def test_missing_token(base_env) -> None:
    base_env.delenv("DISCORD_TOKEN")

    with pytest.raises(ValueError, match="DISCORD_TOKEN"):
        load_config()


def test_invalid_timezone(base_env) -> None:
    base_env.setenv("TIMEZONE", "Mars/Olympus")

    with pytest.raises(ValueError, match="Invalid timezone"):
        load_config()


def test_non_positive_interval(base_env) -> None:
    base_env.setenv("LEADERBOARD_POLL_SECONDS", "0")

    with pytest.raises(ValueError, match="must be positive"):
        load_config()
