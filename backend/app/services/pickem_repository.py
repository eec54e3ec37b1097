"""
backend/app/services/pickem_repository.py

Purpose:
    Persistence access layer for the grading pipeline: games, picks,
    scoring events, league scoring rules, season stats, and the feed call log.
    Pick grading writes are conditional on the pick still being pending, and
    scoring events are claimed with an insert guarded by a unique index.

Dependencies:
    - app.database
    - app.models.pick
    - app.utils
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

import app.database as _db
from app.models.game import GameStatus
from app.models.pick import GRADED_RESULTS, GradeOutcome, PickResult
from app.utils import utc_day_bounds, utcnow

_GRADED_PICK_FIELDS = {
    "user_id": 1,
    "season_id": 1,
    "week": 1,
    "result": 1,
    "points_awarded": 1,
    "created_at": 1,
}


def coerce_id(value: Any) -> Any:
    """Route ids arrive as strings; stored ids may be ObjectIds."""
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def _id_variants(value: Any) -> list[Any]:
    """Match an id stored either as ObjectId or as its string form."""
    variants = [value]
    if isinstance(value, ObjectId):
        variants.append(str(value))
    elif isinstance(value, str) and ObjectId.is_valid(value):
        variants.append(ObjectId(value))
    return variants


class PickemRepository:
    # ---------- Scoring events ----------

    async def find_scoring_event(self, espn_game_id: str) -> dict | None:
        return await _db.db.scoring_events.find_one({"espn_game_id": espn_game_id})

    async def claim_scoring_event(self, espn_game_id: str, **fields: Any) -> ObjectId | None:
        """Insert an in_progress event for a feed game.

        Returns the new event id, or None when another run already owns this
        game (duplicate key on espn_game_id).
        """
        doc = {
            "espn_game_id": espn_game_id,
            "state": "in_progress",
            "picks_processed": 0,
            "points_awarded": 0,
            "error_message": None,
            "created_at": utcnow(),
            **fields,
        }
        try:
            result = await _db.db.scoring_events.insert_one(doc)
        except DuplicateKeyError:
            return None
        return result.inserted_id

    async def finish_scoring_event(self, event_id: ObjectId, state: str, **fields: Any) -> None:
        await _db.db.scoring_events.update_one(
            {"_id": event_id},
            {"$set": {"state": state, "finished_at": utcnow(), **fields}},
        )

    # ---------- Games ----------

    async def get_game(self, game_id: Any) -> dict | None:
        return await _db.db.games.find_one({"_id": {"$in": _id_variants(game_id)}})

    async def find_game_by_espn_id(self, espn_game_id: str) -> dict | None:
        return await _db.db.games.find_one({"espn_game_id": espn_game_id})

    async def find_game_by_teams_on_day(
        self, home_abbr: str, away_abbr: str, day: datetime,
    ) -> dict | None:
        """Fallback lookup: same home/away abbreviations kicking off on the same UTC day."""
        start, end = utc_day_bounds(day)
        return await _db.db.games.find_one(
            {
                "home_team.abbreviation": home_abbr,
                "away_team.abbreviation": away_abbr,
                "start_time": {"$gte": start, "$lt": end},
            },
            sort=[("start_time", 1)],
        )

    async def backfill_espn_game_id(self, game_id: Any, espn_game_id: str) -> None:
        await _db.db.games.update_one(
            {"_id": game_id, "espn_game_id": {"$in": [None, ""]}},
            {"$set": {"espn_game_id": espn_game_id, "updated_at": utcnow()}},
        )

    async def complete_game(self, game_id: Any, home_score: int, away_score: int) -> None:
        await _db.db.games.update_one(
            {"_id": game_id},
            {
                "$set": {
                    "status": GameStatus.completed.value,
                    "home_score": home_score,
                    "away_score": away_score,
                    "updated_at": utcnow(),
                }
            },
        )

    async def update_game_status(
        self,
        game_id: Any,
        status: str,
        home_score: int | None = None,
        away_score: int | None = None,
        status_detail: str | None = None,
    ) -> None:
        fields: dict[str, Any] = {"status": status, "updated_at": utcnow()}
        if status_detail:
            fields["status_detail"] = status_detail
        if home_score is not None:
            fields["home_score"] = home_score
        if away_score is not None:
            fields["away_score"] = away_score
        await _db.db.games.update_one({"_id": game_id}, {"$set": fields})

    async def find_open_games_between(self, start: datetime, end: datetime) -> list[dict]:
        """Non-completed feed-linked games kicking off in [start, end]."""
        return await _db.db.games.find(
            {
                "status": {"$ne": GameStatus.completed.value},
                "espn_game_id": {"$nin": [None, ""]},
                "start_time": {"$gte": start, "$lte": end},
            }
        ).to_list(length=1000)

    async def upsert_feed_game(self, espn_game_id: str, set_fields: dict, insert_fields: dict) -> bool:
        """Upsert a game by feed id. Returns True when a new game was created."""
        doc = await _db.db.games.find_one_and_update(
            {"espn_game_id": espn_game_id},
            {
                "$set": {**set_fields, "updated_at": utcnow()},
                "$setOnInsert": {**insert_fields, "created_at": utcnow()},
            },
            upsert=True,
            return_document=ReturnDocument.BEFORE,
        )
        return doc is None

    # ---------- Picks ----------

    async def find_pending_picks(self, game_id: Any) -> list[dict]:
        return await _db.db.picks.find(
            {"game_id": {"$in": _id_variants(game_id)}, "result": PickResult.pending.value}
        ).to_list(length=10_000)

    async def apply_grade(self, pick_id: Any, outcome: GradeOutcome) -> bool:
        """Write a graded result only if the pick is still pending."""
        result = await _db.db.picks.update_one(
            {"_id": pick_id, "result": PickResult.pending.value},
            {
                "$set": {
                    "result": outcome.result.value,
                    "points_awarded": outcome.points,
                    "explanation": outcome.explanation,
                    "graded_at": utcnow(),
                }
            },
        )
        return result.modified_count == 1

    async def record_grading_error(self, pick_id: Any, explanation: str) -> None:
        await _db.db.picks.update_one(
            {"_id": pick_id, "result": PickResult.pending.value},
            {"$set": {"explanation": explanation, "updated_at": utcnow()}},
        )

    async def find_graded_picks_for_user(self, user_id: str, season_id: Any) -> list[dict]:
        return await _db.db.picks.find(
            {
                "user_id": user_id,
                "season_id": {"$in": _id_variants(season_id)},
                "result": {"$in": list(GRADED_RESULTS)},
            },
            _GRADED_PICK_FIELDS,
        ).to_list(length=10_000)

    async def find_graded_picks_for_week(self, season_id: Any, week: int) -> list[dict]:
        return await _db.db.picks.find(
            {
                "season_id": {"$in": _id_variants(season_id)},
                "week": week,
                "result": {"$in": list(GRADED_RESULTS)},
            },
            _GRADED_PICK_FIELDS,
        ).to_list(length=50_000)

    async def find_game_pick_users(self, game_id: Any) -> list[tuple[str, Any]]:
        """Distinct (user_id, season_id) pairs with any pick on a game."""
        docs = await _db.db.picks.find(
            {"game_id": {"$in": _id_variants(game_id)}},
            {"user_id": 1, "season_id": 1},
        ).to_list(length=10_000)
        return list(dict.fromkeys((d["user_id"], d.get("season_id")) for d in docs))

    async def distinct_pick_users(self, season_id: Any) -> list[str]:
        return await _db.db.picks.distinct(
            "user_id", {"season_id": {"$in": _id_variants(season_id)}}
        )

    # ---------- Rules, seasons, profiles ----------

    async def get_season(self, season_id: Any) -> dict | None:
        return await _db.db.seasons.find_one({"_id": {"$in": _id_variants(season_id)}})

    async def get_scoring_rules(self, league_id: Any) -> dict | None:
        return await _db.db.league_scoring_rules.find_one(
            {"league_id": {"$in": _id_variants(league_id)}}
        )

    async def upsert_scoring_rules(self, league_id: Any, fields: dict[str, Any]) -> dict:
        return await _db.db.league_scoring_rules.find_one_and_update(
            {"league_id": league_id},
            {
                "$set": {**fields, "updated_at": utcnow()},
                "$setOnInsert": {"league_id": league_id, "created_at": utcnow()},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    async def get_usernames(self, user_ids: list[str]) -> dict[str, str]:
        if not user_ids:
            return {}
        lookup: list[Any] = list(user_ids) + [
            ObjectId(u) for u in user_ids if isinstance(u, str) and ObjectId.is_valid(u)
        ]
        docs = await _db.db.profiles.find(
            {"_id": {"$in": lookup}}, {"username": 1}
        ).to_list(length=len(lookup))
        return {str(d["_id"]): d.get("username") or "Unknown" for d in docs}

    # ---------- Season stats ----------

    async def upsert_season_stats(self, user_id: str, season_id: Any, fields: dict[str, Any]) -> None:
        await _db.db.user_season_stats.update_one(
            {"user_id": user_id, "season_id": season_id},
            {"$set": fields},
            upsert=True,
        )

    async def get_season_leaderboard(self, season_id: Any, limit: int = 100) -> list[dict]:
        return await _db.db.user_season_stats.find(
            {"season_id": {"$in": _id_variants(season_id)}},
            {"_id": 0},
        ).sort([("total_points", -1), ("wins", -1), ("user_id", 1)]).to_list(length=limit)

    # ---------- Feed call log ----------

    async def log_feed_call(
        self,
        *,
        endpoint: str,
        week: int | None,
        status_code: int,
        response_time_ms: int,
        games_found: int = 0,
        completed_games: int = 0,
        newly_completed: int = 0,
        error_message: str | None = None,
    ) -> None:
        await _db.db.espn_api_calls.insert_one(
            {
                "endpoint": endpoint,
                "week": week,
                "status_code": status_code,
                "response_time_ms": response_time_ms,
                "games_found": games_found,
                "completed_games": completed_games,
                "newly_completed": newly_completed,
                "error_message": error_message,
                "created_at": utcnow(),
            }
        )


pickem_repository = PickemRepository()
