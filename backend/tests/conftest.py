"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: import paths, an in-memory stand-in for the
    pick'em repository, and a scripted scoreboard feed.
"""

from __future__ import annotations

import sys
from copy import deepcopy
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]
_REPO_ROOT = _THIS_FILE.parents[2]

for candidate in (str(_BACKEND_DIR), str(_REPO_ROOT)):
    if candidate not in sys.path:
        sys.path.insert(0, candidate)

from app.models.game import FeedGame, FeedStatus, FeedTeam  # noqa: E402
from app.services.errors import FeedFetchError  # noqa: E402


def feed_game(
    external_id: str,
    home: str,
    away: str,
    home_score: int | None = None,
    away_score: int | None = None,
    *,
    completed: bool = True,
    state: str | None = None,
    start_time: datetime | None = None,
    detail: str = "",
) -> FeedGame:
    return FeedGame(
        external_id=external_id,
        home=FeedTeam(abbreviation=home, score=home_score),
        away=FeedTeam(abbreviation=away, score=away_score),
        status=FeedStatus(
            name="STATUS_FINAL" if completed else "STATUS_SCHEDULED",
            state=state or ("post" if completed else "pre"),
            completed=completed,
            detail=detail,
        ),
        start_time=start_time or datetime(2025, 9, 7, 17, 0, tzinfo=timezone.utc),
        week=1,
    )


class FakeFeed:
    """Scoreboard feed returning a fixed snapshot, or raising a fetch error."""

    scoreboard_url = "https://espn.test/scoreboard"

    def __init__(self, games: list[FeedGame] | None = None, error: FeedFetchError | None = None):
        self.games = games or []
        self.error = error
        self.last_response_ms = 12
        self.weeks_requested: list[int] = []

    async def fetch_week(self, week: int) -> list[FeedGame]:
        if not 1 <= week <= 18:
            raise ValueError(f"week must be between 1 and 18, got {week}")
        self.weeks_requested.append(week)
        if self.error:
            raise self.error
        return list(self.games)


class FakeRepository:
    """In-memory PickemRepository: unique scoring events, pending-only grade writes."""

    def __init__(self):
        self.games: dict[Any, dict] = {}
        self.picks: dict[Any, dict] = {}
        self.events: dict[str, dict] = {}
        self.rules: dict[Any, dict] = {}
        self.seasons: dict[Any, dict] = {}
        self.stats: dict[tuple, dict] = {}
        self.profiles: dict[str, str] = {}
        self.feed_calls: list[dict] = []
        self.failing_stats_users: set[str] = set()
        self._next_event = 0

    # ---------- seeding ----------

    def add_game(self, game_id, espn_game_id, home, away, **extra) -> dict:
        game = {
            "_id": game_id,
            "espn_game_id": espn_game_id,
            "home_team": {"abbreviation": home},
            "away_team": {"abbreviation": away},
            "season_id": "s1",
            "week": 1,
            "status": "scheduled",
            "start_time": datetime(2025, 9, 7, 17, 0, tzinfo=timezone.utc),
            "home_score": None,
            "away_score": None,
            **extra,
        }
        self.games[game_id] = game
        return game

    def add_pick(self, pick_id, user_id, game_id, bet_type, selection, **extra) -> dict:
        pick = {
            "_id": pick_id,
            "user_id": user_id,
            "game_id": game_id,
            "season_id": "s1",
            "week": 1,
            "bet_type": bet_type,
            "selection": selection,
            "result": "pending",
            "points_awarded": 0,
            "created_at": datetime(2025, 9, 1, tzinfo=timezone.utc),
            **extra,
        }
        self.picks[pick_id] = pick
        return pick

    # ---------- scoring events ----------

    async def find_scoring_event(self, espn_game_id):
        return self.events.get(espn_game_id)

    async def claim_scoring_event(self, espn_game_id, **fields):
        if espn_game_id in self.events:
            return None
        self._next_event += 1
        self.events[espn_game_id] = {
            "_id": self._next_event,
            "espn_game_id": espn_game_id,
            "state": "in_progress",
            "picks_processed": 0,
            "points_awarded": 0,
            "error_message": None,
            **fields,
        }
        return self._next_event

    async def finish_scoring_event(self, event_id, state, **fields):
        for event in self.events.values():
            if event["_id"] == event_id:
                event.update({"state": state, **fields})

    # ---------- games ----------

    async def get_game(self, game_id):
        return deepcopy(self.games.get(game_id))

    async def find_game_by_espn_id(self, espn_game_id):
        for game in self.games.values():
            if game.get("espn_game_id") == espn_game_id:
                return deepcopy(game)
        return None

    async def find_game_by_teams_on_day(self, home_abbr, away_abbr, day):
        for game in self.games.values():
            if (
                game["home_team"]["abbreviation"] == home_abbr
                and game["away_team"]["abbreviation"] == away_abbr
                and game["start_time"].date() == day.date()
            ):
                return deepcopy(game)
        return None

    async def backfill_espn_game_id(self, game_id, espn_game_id):
        if not self.games[game_id].get("espn_game_id"):
            self.games[game_id]["espn_game_id"] = espn_game_id

    async def complete_game(self, game_id, home_score, away_score):
        self.games[game_id].update(
            {"status": "completed", "home_score": home_score, "away_score": away_score}
        )

    async def update_game_status(self, game_id, status, home_score=None, away_score=None, status_detail=None):
        self.games[game_id]["status"] = status
        if status_detail:
            self.games[game_id]["status_detail"] = status_detail
        if home_score is not None:
            self.games[game_id]["home_score"] = home_score
        if away_score is not None:
            self.games[game_id]["away_score"] = away_score

    async def upsert_feed_game(self, espn_game_id, fields, insert_fields):
        for game in self.games.values():
            if game.get("espn_game_id") == espn_game_id:
                game.update(fields)
                return False
        game_id = f"g-{espn_game_id}"
        self.games[game_id] = {"_id": game_id, "espn_game_id": espn_game_id, **insert_fields, **fields}
        return True

    async def find_open_games_between(self, start, end):
        return [
            deepcopy(g)
            for g in self.games.values()
            if g["status"] != "completed" and g.get("espn_game_id") and start <= g["start_time"] <= end
        ]

    # ---------- picks ----------

    async def find_pending_picks(self, game_id):
        return [
            deepcopy(p) for p in self.picks.values()
            if p["game_id"] == game_id and p["result"] == "pending"
        ]

    async def apply_grade(self, pick_id, outcome):
        pick = self.picks[pick_id]
        if pick["result"] != "pending":
            return False
        pick.update(
            {
                "result": outcome.result.value,
                "points_awarded": outcome.points,
                "explanation": outcome.explanation,
            }
        )
        return True

    async def record_grading_error(self, pick_id, explanation):
        self.picks[pick_id]["explanation"] = explanation

    async def find_graded_picks_for_user(self, user_id, season_id):
        if user_id in self.failing_stats_users:
            raise RuntimeError(f"stats read failed for {user_id}")
        return [
            deepcopy(p) for p in self.picks.values()
            if p["user_id"] == user_id and p["season_id"] == season_id and p["result"] != "pending"
        ]

    async def find_graded_picks_for_week(self, season_id, week):
        return [
            deepcopy(p) for p in self.picks.values()
            if p["season_id"] == season_id and p["week"] == week and p["result"] != "pending"
        ]

    async def find_game_pick_users(self, game_id):
        return list(dict.fromkeys(
            (p["user_id"], p["season_id"]) for p in self.picks.values() if p["game_id"] == game_id
        ))

    async def distinct_pick_users(self, season_id):
        return sorted({p["user_id"] for p in self.picks.values() if p["season_id"] == season_id})

    # ---------- rules, seasons, profiles, stats ----------

    async def get_season(self, season_id):
        return deepcopy(self.seasons.get(season_id))

    async def get_scoring_rules(self, league_id):
        return deepcopy(self.rules.get(league_id))

    async def upsert_scoring_rules(self, league_id, fields):
        doc = self.rules.setdefault(league_id, {"league_id": league_id})
        doc.update(fields)
        return deepcopy(doc)

    async def get_usernames(self, user_ids):
        return {u: self.profiles[u] for u in user_ids if u in self.profiles}

    async def upsert_season_stats(self, user_id, season_id, fields):
        self.stats[(user_id, season_id)] = {"user_id": user_id, "season_id": season_id, **fields}

    async def get_season_leaderboard(self, season_id, limit=100):
        rows = [deepcopy(r) for (u, s), r in self.stats.items() if s == season_id]
        rows.sort(key=lambda r: (-r["total_points"], -r["wins"], r["user_id"]))
        return rows[:limit]

    async def log_feed_call(self, **fields):
        self.feed_calls.append(fields)


@pytest.fixture
def fake_repo() -> FakeRepository:
    repo = FakeRepository()
    repo.seasons["s1"] = {"_id": "s1", "league_id": "l1"}
    return repo
