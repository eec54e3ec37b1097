"""
backend/app/services/schedule_service.py

Purpose:
    Full-season schedule ingest: fetch every regular-season week from the
    feed and upsert games keyed by feed id. Status only moves forward and
    known scores are kept current.

Dependencies:
    - app.providers.espn
    - app.services.pickem_repository
"""

import logging
from typing import Any

from app.models.game import FeedGame, advance_status
from app.providers.espn import ESPNFeedClient
from app.services.errors import FeedFetchError
from app.services.pickem_repository import PickemRepository

logger = logging.getLogger("pickem.schedule")


def _game_fields(feed_game: FeedGame, status: str) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "home_team": {"abbreviation": feed_game.home.abbreviation},
        "away_team": {"abbreviation": feed_game.away.abbreviation},
        "status": status,
        "status_detail": feed_game.status.detail,
        "name": feed_game.name,
    }
    if feed_game.week is not None:
        fields["week"] = feed_game.week
    if feed_game.start_time is not None:
        fields["start_time"] = feed_game.start_time
    if feed_game.home.score is not None:
        fields["home_score"] = feed_game.home.score
    if feed_game.away.score is not None:
        fields["away_score"] = feed_game.away.score
    return fields


async def ingest_season_schedule(
    repo: PickemRepository, feed: ESPNFeedClient, season_id: Any,
) -> dict[str, Any]:
    """Fetch the whole season and upsert each game. Failed weeks are logged and skipped."""

    async def _log_failed_week(exc: FeedFetchError) -> None:
        await repo.log_feed_call(
            endpoint=f"{feed.scoreboard_url}?week={exc.week}",
            week=exc.week,
            status_code=exc.status_code,
            response_time_ms=feed.last_response_ms,
            games_found=0,
            error_message=str(exc),
        )

    season = await feed.fetch_season(on_week_failed=_log_failed_week)

    created = updated = failed = 0
    for feed_game in season.games:
        try:
            existing = await repo.find_game_by_espn_id(feed_game.external_id)
            status = advance_status(
                existing.get("status") if existing else None, feed_game.internal_status,
            )
            is_new = await repo.upsert_feed_game(
                feed_game.external_id,
                _game_fields(feed_game, status),
                {"season_id": season_id},
            )
        except Exception as e:
            failed += 1
            logger.error("Schedule ingest failed for ESPN game %s: %s", feed_game.external_id, e)
            continue
        if is_new:
            created += 1
        else:
            updated += 1

    logger.info(
        "Season %s schedule ingested: %d created, %d updated, %d failed, weeks failed=%s",
        season_id, created, updated, failed, season.failed_weeks,
    )
    return {
        "total_games": len(season.games),
        "created": created,
        "updated": updated,
        "failed": failed,
        "weekly_breakdown": season.weekly_breakdown,
        "failed_weeks": season.failed_weeks,
        "fetch_ms": season.fetch_ms,
    }
