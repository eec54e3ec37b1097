"""Game status sync worker: keeps stored game status in step with the scoreboard."""

import logging
from datetime import timedelta

from app.providers.espn import espn_feed
from app.services.errors import FeedFetchError
from app.services.game_status_service import sync_game_statuses
from app.services.pickem_repository import pickem_repository
from app.workers._state import recently_synced, set_synced

logger = logging.getLogger("pickem.game_status_sync")

_STATE_KEY = "game_status_sync"


async def sync_game_status() -> None:
    """Scheduled entry point. Skips if another instance synced within the last minute."""
    if await recently_synced(_STATE_KEY, timedelta(minutes=1)):
        logger.debug("Game status synced moments ago, skipping")
        return
    try:
        result = await sync_game_statuses(pickem_repository, espn_feed)
    except FeedFetchError as e:
        logger.error("Game status sync aborted: %s", e)
        return
    await set_synced(_STATE_KEY, {k: result[k] for k in ("processed", "status_changes")})
    if result["status_changes"]:
        logger.info("Game status sync: %d of %d games updated", result["status_changes"], result["processed"])
