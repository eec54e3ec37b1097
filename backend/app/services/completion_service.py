"""
backend/app/services/completion_service.py

Purpose:
    Detect feed games that finished since the last grading pass and link each
    one to its internal game record. A game counts as processed once a
    scoring event exists for its feed id.

Dependencies:
    - app.services.pickem_repository
"""

import logging

from app.models.game import FeedGame
from app.services.errors import GameResolutionError
from app.services.pickem_repository import PickemRepository

logger = logging.getLogger("pickem.completion")


def completed_games(games: list[FeedGame]) -> list[FeedGame]:
    return [g for g in games if g.status.completed]


async def find_newly_completed(repo: PickemRepository, games: list[FeedGame]) -> list[FeedGame]:
    """Completed feed games with no scoring event yet, in feed order."""
    fresh: list[FeedGame] = []
    for game in completed_games(games):
        try:
            event = await repo.find_scoring_event(game.external_id)
        except Exception as e:
            logger.error("Scoring event lookup failed for ESPN game %s: %s", game.external_id, e)
            continue
        if event:
            logger.debug("ESPN game %s already processed, skipping", game.external_id)
            continue
        fresh.append(game)
    return fresh


async def resolve_internal_game(repo: PickemRepository, feed_game: FeedGame) -> dict:
    """Find the stored game for a feed game.

    Primary lookup is the stored feed id. Otherwise match the same home/away
    abbreviations on the same UTC calendar day and backfill the feed id so
    the next lookup is direct.
    """
    game = await repo.find_game_by_espn_id(feed_game.external_id)
    if game:
        return game

    if feed_game.start_time is None or not feed_game.home.abbreviation or not feed_game.away.abbreviation:
        raise GameResolutionError(feed_game.external_id)

    game = await repo.find_game_by_teams_on_day(
        feed_game.home.abbreviation, feed_game.away.abbreviation, feed_game.start_time,
    )
    if not game:
        raise GameResolutionError(feed_game.external_id)

    await repo.backfill_espn_game_id(game["_id"], feed_game.external_id)
    game["espn_game_id"] = feed_game.external_id
    logger.info(
        "Linked game %s to ESPN game %s (%s @ %s)",
        game["_id"], feed_game.external_id,
        feed_game.away.abbreviation, feed_game.home.abbreviation,
    )
    return game
