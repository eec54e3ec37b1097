"""
backend/tests/test_schedule_service.py

Purpose:
    Season schedule ingest: creates, updates, monotonic status, and failed
    weeks written to the feed call log.
"""

import pytest

from app.models.game import SeasonFetchResult
from app.services.errors import FeedFetchError
from app.services.schedule_service import ingest_season_schedule
from conftest import feed_game


class FakeSeasonFeed:
    scoreboard_url = "https://espn.test/scoreboard"
    last_response_ms = 40

    def __init__(self, games, failed_weeks=()):
        self.games = games
        self.failed_weeks = list(failed_weeks)

    async def fetch_season(self, weeks=None, on_week_failed=None):
        result = SeasonFetchResult(games=list(self.games), weekly_breakdown={1: len(self.games)})
        for week in self.failed_weeks:
            result.failed_weeks.append(week)
            result.weekly_breakdown[week] = 0
            if on_week_failed is not None:
                await on_week_failed(FeedFetchError("ESPN API error: 500", week=week, status_code=500))
        return result


@pytest.mark.asyncio
async def test_ingest_creates_and_updates_games(fake_repo):
    fake_repo.add_game("g1", "401", "BUF", "NYJ", status="live")
    feed = FakeSeasonFeed([
        feed_game("401", "BUF", "NYJ", 24, 17),
        feed_game("402", "KC", "LAC", completed=False),
    ])

    result = await ingest_season_schedule(fake_repo, feed, "s1")

    assert result["total_games"] == 2
    assert (result["created"], result["updated"], result["failed"]) == (1, 1, 0)
    assert fake_repo.games["g1"]["status"] == "completed"
    assert fake_repo.games["g1"]["home_score"] == 24
    created = fake_repo.games["g-402"]
    assert created["season_id"] == "s1"
    assert created["status"] == "scheduled"
    assert "home_score" not in created


@pytest.mark.asyncio
async def test_ingest_never_regresses_status(fake_repo):
    fake_repo.add_game("g1", "401", "BUF", "NYJ", status="completed", home_score=24, away_score=17)
    feed = FakeSeasonFeed([feed_game("401", "BUF", "NYJ", completed=False)])

    await ingest_season_schedule(fake_repo, feed, "s1")

    assert fake_repo.games["g1"]["status"] == "completed"
    assert fake_repo.games["g1"]["home_score"] == 24


@pytest.mark.asyncio
async def test_failed_weeks_are_logged_and_skipped(fake_repo):
    feed = FakeSeasonFeed([feed_game("401", "BUF", "NYJ", 24, 17)], failed_weeks=[4, 9])

    result = await ingest_season_schedule(fake_repo, feed, "s1")

    assert result["failed_weeks"] == [4, 9]
    assert result["created"] == 1
    assert [c["week"] for c in fake_repo.feed_calls] == [4, 9]
    assert fake_repo.feed_calls[0]["endpoint"] == "https://espn.test/scoreboard?week=4"
    assert fake_repo.feed_calls[0]["games_found"] == 0
    assert fake_repo.feed_calls[0]["status_code"] == 500


@pytest.mark.asyncio
async def test_write_failure_counts_game_as_failed(fake_repo, monkeypatch):
    async def _boom(*_args, **_kwargs):
        raise RuntimeError("write failed")

    monkeypatch.setattr(fake_repo, "upsert_feed_game", _boom)
    feed = FakeSeasonFeed([feed_game("401", "BUF", "NYJ", 24, 17)])

    result = await ingest_season_schedule(fake_repo, feed, "s1")

    assert (result["created"], result["updated"], result["failed"]) == (0, 0, 1)
