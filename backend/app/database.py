"""
backend/app/database.py

Purpose:
    MongoDB connection bootstrap and index management for the pick'em
    grading collections. The unique index on scoring_events.espn_game_id is
    the store-level idempotency gate for grading.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - app.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, OperationFailure

from app.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("pickem.database")


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=5,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()


async def close_db() -> None:
    global client
    if client:
        client.close()


async def get_db() -> AsyncIOMotorDatabase:
    return db


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent, safe to run repeatedly."""

    # ---- Scoring events (one committed event per feed game) ----
    # Grading must not run without this index; remove duplicate events first.
    try:
        await db.scoring_events.create_index("espn_game_id", unique=True)
    except (DuplicateKeyError, OperationFailure) as exc:
        logger.critical(
            "Could not create unique scoring_events.espn_game_id index, refusing to start: %s", exc,
        )
        raise
    await db.scoring_events.create_index([("state", 1), ("created_at", -1)])

    # ---- Games ----
    # Partial, not sparse: unlinked games may carry an explicit null id.
    await db.games.create_index(
        "espn_game_id",
        unique=True,
        partialFilterExpression={"espn_game_id": {"$type": "string"}},
    )
    await db.games.create_index([("season_id", 1), ("week", 1)])
    await db.games.create_index([("status", 1), ("start_time", 1)])
    await db.games.create_index(
        [("home_team.abbreviation", 1), ("away_team.abbreviation", 1), ("start_time", 1)]
    )

    # ---- Picks ----
    await db.picks.create_index([("game_id", 1), ("result", 1)])
    await db.picks.create_index([("user_id", 1), ("season_id", 1), ("result", 1)])
    await db.picks.create_index([("season_id", 1), ("week", 1), ("result", 1)])

    # ---- Derived aggregates and rules ----
    await db.user_season_stats.create_index(
        [("user_id", 1), ("season_id", 1)], unique=True
    )
    await db.user_season_stats.create_index(
        [("season_id", 1), ("total_points", -1), ("wins", -1)]
    )
    await db.league_scoring_rules.create_index("league_id", unique=True)

    # ---- Feed call log ----
    await db.espn_api_calls.create_index([("created_at", -1)])

    logger.info("MongoDB indexes ensured")
