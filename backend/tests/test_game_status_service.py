from datetime import datetime, timedelta, timezone

import pytest

from app.models.game import advance_status
from app.services import game_status_service
from app.services.game_status_service import sync_game_statuses
from conftest import FakeFeed, feed_game

_NOW = datetime(2025, 9, 7, 20, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _fixed_week(monkeypatch):
    monkeypatch.setattr(game_status_service, "current_nfl_week", lambda now=None: 1)


def test_advance_status_never_moves_backwards():
    assert advance_status(None, "live") == "live"
    assert advance_status("scheduled", "live") == "live"
    assert advance_status("live", "scheduled") == "live"
    assert advance_status("completed", "live") == "completed"
    assert advance_status("bogus", "scheduled") == "scheduled"


@pytest.mark.asyncio
async def test_sync_moves_games_forward(fake_repo):
    fake_repo.add_game("g1", "401", "BUF", "NYJ", start_time=_NOW - timedelta(hours=1))
    fake_repo.add_game("g2", "402", "KC", "LAC", start_time=_NOW + timedelta(hours=2))
    feed = FakeFeed([
        feed_game("401", "BUF", "NYJ", 7, 3, completed=False, state="in"),
        feed_game("402", "KC", "LAC", completed=False),
    ])

    result = await sync_game_statuses(fake_repo, feed, now=_NOW)

    assert result["processed"] == 2
    assert result["status_changes"] == 1
    assert result["updates"] == [{"game_id": "g1", "old_status": "scheduled", "new_status": "live"}]
    assert fake_repo.games["g1"]["status"] == "live"
    assert fake_repo.games["g1"]["home_score"] == 7
    assert fake_repo.games["g2"]["status"] == "scheduled"
    assert feed.weeks_requested == [1]


@pytest.mark.asyncio
async def test_live_game_is_not_moved_back_to_scheduled(fake_repo):
    fake_repo.add_game("g1", "401", "BUF", "NYJ", status="live", start_time=_NOW - timedelta(hours=1))
    feed = FakeFeed([feed_game("401", "BUF", "NYJ", completed=False, state="pre")])

    result = await sync_game_statuses(fake_repo, feed, now=_NOW)

    assert result["status_changes"] == 0
    assert fake_repo.games["g1"]["status"] == "live"


@pytest.mark.asyncio
async def test_stale_game_missing_from_feed_is_forced_completed(fake_repo):
    fake_repo.add_game("g1", "401", "BUF", "NYJ", status="live", start_time=_NOW - timedelta(hours=5))
    fake_repo.add_game("g2", "402", "KC", "LAC", start_time=_NOW - timedelta(hours=1))

    result = await sync_game_statuses(fake_repo, FakeFeed([]), now=_NOW)

    assert result["status_changes"] == 1
    assert fake_repo.games["g1"]["status"] == "completed"
    assert fake_repo.games["g2"]["status"] == "scheduled"


@pytest.mark.asyncio
async def test_no_open_games_skips_feed(fake_repo):
    feed = FakeFeed([])

    result = await sync_game_statuses(fake_repo, feed, now=_NOW)

    assert result == {"processed": 0, "status_changes": 0, "score_updates": 0, "updates": []}
    assert feed.weeks_requested == []


@pytest.mark.asyncio
async def test_update_failure_for_one_game_does_not_stop_others(fake_repo, monkeypatch):
    fake_repo.add_game("g1", "401", "BUF", "NYJ", start_time=_NOW - timedelta(hours=1))
    fake_repo.add_game("g2", "402", "KC", "LAC", start_time=_NOW - timedelta(hours=1))
    feed = FakeFeed([
        feed_game("401", "BUF", "NYJ", completed=False, state="in"),
        feed_game("402", "KC", "LAC", completed=False, state="in"),
    ])
    real_update = fake_repo.update_game_status

    async def _flaky_update(game_id, status, home_score=None, away_score=None, status_detail=None):
        if game_id == "g1":
            raise RuntimeError("write failed")
        await real_update(game_id, status, home_score, away_score, status_detail)

    monkeypatch.setattr(fake_repo, "update_game_status", _flaky_update)

    result = await sync_game_statuses(fake_repo, feed, now=_NOW)

    assert [u["game_id"] for u in result["updates"]] == ["g2"]
    assert fake_repo.games["g2"]["status"] == "live"


@pytest.mark.asyncio
async def test_live_scores_refresh_without_status_change(fake_repo):
    fake_repo.add_game(
        "g1", "401", "BUF", "NYJ",
        status="live", home_score=7, away_score=3, start_time=_NOW - timedelta(hours=1),
    )
    feed = FakeFeed([feed_game("401", "BUF", "NYJ", 14, 3, completed=False, state="in", detail="5:32 - 2nd")])

    result = await sync_game_statuses(fake_repo, feed, now=_NOW)

    assert result["status_changes"] == 0
    assert result["score_updates"] == 1
    assert result["updates"] == []
    assert fake_repo.games["g1"]["home_score"] == 14
    assert fake_repo.games["g1"]["away_score"] == 3
    assert fake_repo.games["g1"]["status_detail"] == "5:32 - 2nd"


@pytest.mark.asyncio
async def test_unchanged_live_game_is_not_rewritten(fake_repo, monkeypatch):
    fake_repo.add_game(
        "g1", "401", "BUF", "NYJ",
        status="live", home_score=7, away_score=3, status_detail="5:32 - 2nd",
        start_time=_NOW - timedelta(hours=1),
    )
    feed = FakeFeed([feed_game("401", "BUF", "NYJ", 7, 3, completed=False, state="in", detail="5:32 - 2nd")])
    writes = []

    async def _record(*args, **kwargs):
        writes.append(args)

    monkeypatch.setattr(fake_repo, "update_game_status", _record)

    result = await sync_game_statuses(fake_repo, feed, now=_NOW)

    assert result["score_updates"] == 0
    assert writes == []
