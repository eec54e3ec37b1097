from typing import Any

from fastapi import APIRouter, HTTPException, Query

from app.config import settings
from app.models.scoring import WeeklyStandingsResponse
from app.services.pickem_repository import coerce_id, pickem_repository
from app.services.standings_service import get_season_leaderboard, get_weekly_standings

router = APIRouter(prefix="/api/standings", tags=["standings"])


@router.get("/weekly", response_model=WeeklyStandingsResponse)
async def weekly_standings(
    season_id: str = Query(..., min_length=1),
    week: int = Query(..., ge=1),
) -> WeeklyStandingsResponse:
    """Ranked weekly standings, computed from graded picks on every request."""
    if week > settings.SEASON_WEEKS:
        raise HTTPException(status_code=400, detail=f"Week must be between 1 and {settings.SEASON_WEEKS}")
    season = await pickem_repository.get_season(coerce_id(season_id))
    if not season:
        raise HTTPException(status_code=404, detail="Season not found")
    return await get_weekly_standings(pickem_repository, season["_id"], week)


@router.get("/season/{season_id}")
async def season_leaderboard(
    season_id: str,
    limit: int = Query(100, ge=1, le=500),
) -> list[dict[str, Any]]:
    """Season leaderboard from stored season stats, by total points then wins."""
    season = await pickem_repository.get_season(coerce_id(season_id))
    if not season:
        raise HTTPException(status_code=404, detail="Season not found")
    return await get_season_leaderboard(pickem_repository, season["_id"], limit=limit)
