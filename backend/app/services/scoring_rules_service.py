"""League scoring rules: read with defaults, admin update and reset, season -> league resolution."""

import logging
from typing import Any

from app.models.scoring import ScoringRules, ScoringRulesUpdate
from app.services.pickem_repository import PickemRepository

logger = logging.getLogger("pickem.scoring_rules")

_RULE_FIELDS = tuple(ScoringRules.model_fields)


def _rules_from_doc(doc: dict | None) -> ScoringRules:
    if not doc:
        return ScoringRules()
    return ScoringRules(**{k: doc[k] for k in _RULE_FIELDS if doc.get(k) is not None})


async def get_league_rules(repo: PickemRepository, league_id: Any) -> ScoringRules:
    """Rules for a league; defaults when the league never configured any."""
    return _rules_from_doc(await repo.get_scoring_rules(league_id))


async def get_season_rules(repo: PickemRepository, season_id: Any) -> ScoringRules:
    """Rules of the league that owns a season."""
    season = await repo.get_season(season_id)
    if not season or season.get("league_id") is None:
        logger.warning("Season %s has no league; using default scoring rules", season_id)
        return ScoringRules()
    return await get_league_rules(repo, season["league_id"])


async def update_league_rules(
    repo: PickemRepository, league_id: Any, update: ScoringRulesUpdate,
) -> ScoringRules:
    fields = update.model_dump(exclude_none=True)
    if not fields:
        return await get_league_rules(repo, league_id)
    doc = await repo.upsert_scoring_rules(league_id, fields)
    logger.info("Scoring rules updated for league %s: %s", league_id, sorted(fields))
    return _rules_from_doc(doc)


async def reset_league_rules(repo: PickemRepository, league_id: Any) -> ScoringRules:
    """Overwrite a league's stored rules with the defaults."""
    doc = await repo.upsert_scoring_rules(league_id, ScoringRules().model_dump())
    logger.info("Scoring rules reset to defaults for league %s", league_id)
    return _rules_from_doc(doc)
