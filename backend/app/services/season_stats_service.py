"""
backend/app/services/season_stats_service.py

Purpose:
    Season aggregates per (user, season). Always rebuilt from every graded
    pick of that user and season, never patched incrementally, so a rerun
    corrects any earlier drift.

Dependencies:
    - app.services.pickem_repository
    - app.services.streak_service
"""

import asyncio
import logging
from typing import Any, Iterable

from app.models.scoring import SeasonStats
from app.services.pickem_repository import PickemRepository
from app.services.streak_service import calculate_streak
from app.utils import utcnow

logger = logging.getLogger("pickem.season_stats")


def build_season_stats(user_id: str, season_id: Any, picks: list[dict]) -> SeasonStats:
    graded = [p for p in picks if p.get("result") in ("win", "loss", "push")]
    streak = calculate_streak(graded)
    return SeasonStats(
        user_id=user_id,
        season_id=season_id,
        total_picks=len(graded),
        wins=sum(1 for p in graded if p["result"] == "win"),
        losses=sum(1 for p in graded if p["result"] == "loss"),
        pushes=sum(1 for p in graded if p["result"] == "push"),
        total_points=sum(p.get("points_awarded") or 0 for p in graded),
        current_streak=streak.current,
        best_streak=streak.best,
        worst_streak=streak.worst,
        last_updated=utcnow(),
    )


async def recalculate_user_season_stats(
    repo: PickemRepository, user_id: str, season_id: Any,
) -> SeasonStats:
    picks = await repo.find_graded_picks_for_user(user_id, season_id)
    stats = build_season_stats(user_id, season_id, picks)
    await repo.upsert_season_stats(
        user_id, season_id, stats.model_dump(exclude={"user_id", "season_id"}),
    )
    return stats


async def _recalculate_isolated(repo: PickemRepository, user_id: str, season_id: Any) -> bool:
    try:
        await recalculate_user_season_stats(repo, user_id, season_id)
        return True
    except Exception as e:
        logger.error("Season stats recompute failed for user %s season %s: %s", user_id, season_id, e)
        return False


async def recalculate_affected_users(
    repo: PickemRepository, pairs: Iterable[tuple[str, Any]],
) -> tuple[int, int]:
    """Recompute each distinct (user, season) concurrently. Returns (updated, failed)."""
    unique = list(dict.fromkeys(pairs))
    if not unique:
        return 0, 0
    results = await asyncio.gather(
        *(_recalculate_isolated(repo, user_id, season_id) for user_id, season_id in unique)
    )
    updated = sum(1 for ok in results if ok)
    return updated, len(results) - updated


async def recalculate_season(repo: PickemRepository, season_id: Any) -> dict[str, int]:
    """Rebuild stats for every user with at least one pick in the season."""
    user_ids = await repo.distinct_pick_users(season_id)
    updated, failed = await recalculate_affected_users(
        repo, ((user_id, season_id) for user_id in user_ids)
    )
    logger.info(
        "Season %s recalculated: %d users updated, %d failed", season_id, updated, failed,
    )
    return {"users": len(user_ids), "updated": updated, "failed": failed}
