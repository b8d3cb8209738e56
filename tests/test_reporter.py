from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from dailytype.db import Database
from dailytype.models import CharState, LeaderboardEntry
from dailytype.reporter import Reporter, build_leaderboard_content, format_seconds, render_overlay, total_pages


def test_format_seconds_hh_mm_ss() -> None:
    assert format_seconds(0) == "00:00:00"
    assert format_seconds(3661) == "01:01:01"
    assert format_seconds(-5) == "00:00:00"


def test_empty_leaderboard_message() -> None:
    content = build_leaderboard_content("2026-02-01", [], 60)

    assert "No entries yet today!" in content
    assert "Page 1 of 1 (0 total entries)" in content
    assert "Next challenge in `00:01:00`" in content


def test_medals_then_numbered_ranks() -> None:
    entries = [LeaderboardEntry(f"u{i}", f"player_{i}", 100 - i) for i in range(5)]

    lines = build_leaderboard_content("2026-02-01", entries, 0).splitlines()

    assert lines[1] == "🥇 player_0: 100 WPM"
    assert lines[3] == "🥉 player_2: 98 WPM"
    assert lines[4] == " 4. player_3: 97 WPM"


def test_pagination_is_clamped() -> None:
    entries = [LeaderboardEntry(f"u{i}", f"player_{i}", 50) for i in range(12)]

    content = build_leaderboard_content("2026-02-01", entries, 0, page=7)

    assert total_pages(12) == 2
    assert "Page 2 of 2 (12 total entries)" in content
    assert "11. player_10: 50 WPM" in content
    assert "player_9:" not in content


def test_render_overlay_styles_each_run() -> None:
    states = [CharState.CORRECT, CharState.INCORRECT, CharState.CURRENT, CharState.UNTYPED]

    rendered = render_overlay("abcd", states)

    assert rendered.startswith("```ansi\n")
    assert rendered.endswith("\n```")
    assert "\u001b[0;32ma\u001b[0;41;37mb\u001b[4;44;37mc\u001b[0;30md\u001b[0m" in rendered


def test_reporter_reads_today_in_configured_timezone() -> None:
    db = Database(":memory:")
    db.initialize()
    db.submit("2026-02-01", "1", "alice_a", 40)
    db.submit("2026-02-01", "2", "bobby_b", 90)
    reporter = Reporter(db, ZoneInfo("America/Los_Angeles"))

    content = reporter.build_today_content(now_utc=datetime(2026, 2, 2, 3, 0, 0, tzinfo=timezone.utc))

    assert "Daily Leaderboard - 2026-02-01" in content
    assert content.index("bobby_b") < content.index("alice_a")
