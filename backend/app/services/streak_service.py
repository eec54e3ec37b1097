"""Streak calculation over graded picks, and the streak bonus derived from it."""

import math
from datetime import datetime, timezone
from typing import Iterable

from app.models.scoring import StreakSummary
from app.utils import ensure_utc

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Bonus accrues once per completed run of this many wins.
STREAK_BONUS_STEP = 3


def _sort_key(pick: dict) -> tuple[datetime, str]:
    # Picks made in the same instant fall back to id order.
    created = pick.get("created_at")
    when = ensure_utc(created) if isinstance(created, datetime) else _EPOCH
    return when, str(pick.get("_id", ""))


def calculate_streak(picks: Iterable[dict]) -> StreakSummary:
    """Walk graded picks oldest-first; pushes neither extend nor break a run.

    ``current`` is the run at the most recent graded pick (positive = wins,
    negative = losses); ``best``/``worst`` are the extremes seen on the way.
    """
    graded = sorted(
        (p for p in picks if p.get("result") in ("win", "loss", "push")),
        key=_sort_key,
    )

    run = 0
    best = 0
    worst = 0
    for pick in graded:
        result = pick["result"]
        if result == "win":
            run = run + 1 if run > 0 else 1
            best = max(best, run)
        elif result == "loss":
            run = run - 1 if run < 0 else -1
            worst = min(worst, run)

    return StreakSummary(current=run, best=best, worst=worst)


def streak_bonus(streak: int, bonus_per_step: float) -> float:
    """``bonus_per_step × floor(streak / 3)`` for winning streaks of 3 or more."""
    if streak < STREAK_BONUS_STEP or bonus_per_step <= 0:
        return 0
    return bonus_per_step * math.floor(abs(streak) / STREAK_BONUS_STEP)
