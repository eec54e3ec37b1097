from fastapi import APIRouter, Depends

from app.models.scoring import ScoringRules, ScoringRulesUpdate
from app.services.auth_service import require_cron_secret
from app.services.pickem_repository import coerce_id, pickem_repository
from app.services.scoring_rules_service import (
    get_league_rules,
    reset_league_rules,
    update_league_rules,
)

router = APIRouter(prefix="/api/scoring-rules", tags=["scoring-rules"])


@router.get("/{league_id}", response_model=ScoringRules)
async def read_scoring_rules(league_id: str) -> ScoringRules:
    """League scoring rules; defaults when the league has none stored."""
    return await get_league_rules(pickem_repository, coerce_id(league_id))


@router.put(
    "/{league_id}",
    response_model=ScoringRules,
    dependencies=[Depends(require_cron_secret)],
)
async def write_scoring_rules(league_id: str, body: ScoringRulesUpdate) -> ScoringRules:
    return await update_league_rules(pickem_repository, coerce_id(league_id), body)


@router.delete(
    "/{league_id}",
    response_model=ScoringRules,
    dependencies=[Depends(require_cron_secret)],
)
async def reset_scoring_rules(league_id: str) -> ScoringRules:
    """Reset a league's scoring rules to the defaults."""
    return await reset_league_rules(pickem_repository, coerce_id(league_id))
