"""Game status sync: move stored games forward along scheduled -> live -> completed."""

import logging
from datetime import datetime, timedelta
from typing import Any

from app.config import settings
from app.models.game import GameStatus, advance_status
from app.providers.espn import ESPNFeedClient
from app.services.pickem_repository import PickemRepository
from app.utils import ensure_utc, utcnow
from app.utils.nfl_week import current_nfl_week

logger = logging.getLogger("pickem.game_status")


async def sync_game_statuses(
    repo: PickemRepository,
    feed: ESPNFeedClient,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Update open games kicking off within the status window from the current week's feed.

    Status only moves forward; scores and status detail are refreshed on every
    tick while a game is live. Games missing from the feed that started more
    than STALE_GAME_HOURS ago are forced to completed.
    """
    now = ensure_utc(now or utcnow())
    window = timedelta(hours=settings.GAME_STATUS_WINDOW_HOURS)
    games = await repo.find_open_games_between(now - window, now + window)
    if not games:
        logger.debug("No games to monitor")
        return {"processed": 0, "status_changes": 0, "score_updates": 0, "updates": []}

    feed_games = await feed.fetch_week(current_nfl_week(now))
    by_id = {g.external_id: g for g in feed_games}
    stale_after = timedelta(hours=settings.STALE_GAME_HOURS)

    updates: list[dict[str, Any]] = []
    score_updates = 0
    for game in games:
        current = game.get("status") or GameStatus.scheduled.value
        feed_game = by_id.get(game["espn_game_id"])
        detail = None

        if feed_game is None:
            start = game.get("start_time")
            if start and now - ensure_utc(start) > stale_after:
                new_status = GameStatus.completed.value
                home_score = away_score = None
            else:
                continue
        else:
            new_status = advance_status(current, feed_game.internal_status)
            home_score, away_score = feed_game.home.score, feed_game.away.score
            detail = feed_game.status.detail or None

        scores_changed = (
            (home_score is not None and home_score != game.get("home_score"))
            or (away_score is not None and away_score != game.get("away_score"))
        )
        detail_changed = detail is not None and detail != game.get("status_detail")
        if new_status == current and not scores_changed and not detail_changed:
            continue

        try:
            await repo.update_game_status(
                game["_id"], new_status, home_score, away_score, status_detail=detail,
            )
        except Exception as e:
            logger.error("Failed to update status for game %s: %s", game["_id"], e)
            continue
        if scores_changed:
            score_updates += 1
        if new_status != current:
            logger.info("Game %s status %s -> %s", game["_id"], current, new_status)
            updates.append({"game_id": str(game["_id"]), "old_status": current, "new_status": new_status})

    return {
        "processed": len(games),
        "status_changes": len(updates),
        "score_updates": score_updates,
        "updates": updates,
    }
