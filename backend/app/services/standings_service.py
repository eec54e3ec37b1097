"""
backend/app/services/standings_service.py

Purpose:
    Weekly standings computed on read from graded picks, and the season
    leaderboard read from the stored season aggregates.

    Weekly ranking is two-pass: winners are the users tied for the top total
    before the winner bonus, then the bonus is applied and the table is
    re-sorted and re-ranked with the same comparator.

Dependencies:
    - app.services.pickem_repository
    - app.services.scoring_rules_service
    - app.services.streak_service
"""

import logging
from collections import defaultdict
from typing import Any

from app.models.scoring import ScoringRules, WeeklyStanding, WeeklyStandingsResponse
from app.services.pickem_repository import PickemRepository
from app.services.scoring_rules_service import get_season_rules
from app.services.streak_service import calculate_streak, streak_bonus

logger = logging.getLogger("pickem.standings")


def _standing_sort_key(s: WeeklyStanding) -> tuple:
    return (-s.total_points, -s.wins, s.user_id)


def _assign_ranks(standings: list[WeeklyStanding]) -> None:
    """Ties on total share a rank; the next distinct total takes index + 1."""
    previous = None
    rank = 1
    for index, s in enumerate(standings):
        if previous is not None and s.total_points != previous:
            rank = index + 1
        s.rank = rank
        previous = s.total_points


def rank_weekly_standings(
    picks: list[dict],
    rules: ScoringRules,
    usernames: dict[str, str] | None = None,
) -> list[WeeklyStanding]:
    """Group a week's graded picks by user and rank them. Pure and deterministic."""
    usernames = usernames or {}
    by_user: dict[str, list[dict]] = defaultdict(list)
    for pick in picks:
        if pick.get("result") in ("win", "loss", "push"):
            by_user[str(pick["user_id"])].append(pick)

    standings: list[WeeklyStanding] = []
    for user_id, user_picks in by_user.items():
        wins = sum(1 for p in user_picks if p["result"] == "win")
        losses = sum(1 for p in user_picks if p["result"] == "loss")
        pushes = sum(1 for p in user_picks if p["result"] == "push")
        base = sum(p.get("points_awarded") or 0 for p in user_picks)
        current = calculate_streak(user_picks).current
        bonus = streak_bonus(current, rules.streak_bonus)
        standings.append(
            WeeklyStanding(
                user_id=user_id,
                username=usernames.get(user_id, "Unknown"),
                total_picks=len(user_picks),
                wins=wins,
                losses=losses,
                pushes=pushes,
                base_points=base,
                streak_bonus_points=bonus,
                total_points=base + bonus,
                win_percentage=round(wins / len(user_picks) * 100, 1),
                current_streak=current,
            )
        )

    standings.sort(key=_standing_sort_key)
    _assign_ranks(standings)
    if not standings:
        return standings

    top_total = standings[0].total_points
    for s in standings:
        if s.total_points == top_total:
            s.is_weekly_winner = True
            if rules.weekly_winner_bonus > 0:
                s.weekly_winner_bonus = rules.weekly_winner_bonus
                s.total_points += rules.weekly_winner_bonus

    standings.sort(key=_standing_sort_key)
    _assign_ranks(standings)
    return standings


async def get_weekly_standings(
    repo: PickemRepository, season_id: Any, week: int,
) -> WeeklyStandingsResponse:
    rules = await get_season_rules(repo, season_id)
    picks = await repo.find_graded_picks_for_week(season_id, week)
    user_ids = sorted({str(p["user_id"]) for p in picks})
    usernames = await repo.get_usernames(user_ids)
    standings = rank_weekly_standings(picks, rules, usernames)
    logger.debug("Weekly standings season=%s week=%d: %d users", season_id, week, len(standings))
    return WeeklyStandingsResponse(
        season_id=str(season_id),
        week=week,
        total_participants=len(standings),
        standings=standings,
        scoring_rules=rules,
    )


async def get_season_leaderboard(repo: PickemRepository, season_id: Any, limit: int = 100) -> list[dict]:
    rows = await repo.get_season_leaderboard(season_id, limit=limit)
    usernames = await repo.get_usernames([str(r["user_id"]) for r in rows])
    leaderboard = []
    previous = None
    rank = 1
    for index, row in enumerate(rows):
        total = row.get("total_points", 0)
        if previous is not None and total != previous:
            rank = index + 1
        previous = total
        leaderboard.append(
            {
                "rank": rank,
                "username": usernames.get(str(row["user_id"]), "Unknown"),
                **row,
                "season_id": str(row.get("season_id")),
            }
        )
    return leaderboard
