"""
backend/app/routers/grading.py

Purpose:
    Cron/admin triggers for the grading pipeline: run a grading pass, re-grade
    one stored game, rebuild season stats, and ingest a season schedule.
    Every route requires the shared CRON_SECRET.

Dependencies:
    - app.workers.grading_pass
    - app.services.season_stats_service
    - app.services.schedule_service
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.providers.espn import espn_feed
from app.services.auth_service import require_cron_secret
from app.services.errors import FeedFetchError
from app.services.pickem_repository import coerce_id, pickem_repository
from app.services.schedule_service import ingest_season_schedule
from app.services.season_stats_service import recalculate_season
from app.utils.nfl_week import current_nfl_week
from app.workers.grading_pass import regrade_stored_game, run_grading_pass

logger = logging.getLogger("pickem.routers.grading")

router = APIRouter(
    prefix="/api/grading",
    tags=["grading"],
    dependencies=[Depends(require_cron_secret)],
)


@router.post("/run")
async def trigger_grading_pass(week: Optional[int] = Query(None)) -> dict[str, Any]:
    """Run a grading pass for ``week`` (default: current NFL week)."""
    target_week = week if week is not None else current_nfl_week()
    try:
        summary = await run_grading_pass(target_week, feed=espn_feed, repo=pickem_repository)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except FeedFetchError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to fetch ESPN data: {e}",
        )
    return {"success": True, "summary": summary.model_dump()}


@router.post("/games/{game_id}")
async def regrade_game(game_id: str) -> dict[str, Any]:
    """Grade the remaining pending picks of a completed game from its stored score."""
    try:
        result = await regrade_stored_game(coerce_id(game_id), repo=pickem_repository)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"success": True, "result": result.model_dump()}


@router.post("/seasons/{season_id}/recalculate")
async def recalculate_season_stats(season_id: str) -> dict[str, Any]:
    season = await pickem_repository.get_season(coerce_id(season_id))
    if not season:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Season not found")
    result = await recalculate_season(pickem_repository, season["_id"])
    return {"success": True, **result}


@router.post("/schedule/{season_id}")
async def ingest_schedule(season_id: str) -> dict[str, Any]:
    """Fetch every week of the season from ESPN and upsert its games."""
    season = await pickem_repository.get_season(coerce_id(season_id))
    if not season:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Season not found")
    result = await ingest_season_schedule(pickem_repository, espn_feed, season["_id"])
    if result["total_games"] == 0:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="No games found in ESPN season data",
        )
    return {"success": True, "summary": result}
