"""NFL calendar helpers: which regular-season week a date falls in."""

from datetime import date, datetime

from app.config import settings
from app.utils import ensure_utc, utcnow

# Week 1 kickoff Thursday per season; anything else falls back to Sept 5.
_KNOWN_SEASON_STARTS = {
    2025: date(2025, 9, 4),
}
_DEFAULT_START_DAY = 5


def season_start(year: int) -> date:
    if settings.NFL_SEASON_START:
        override = date.fromisoformat(settings.NFL_SEASON_START)
        if override.year == year:
            return override
    return _KNOWN_SEASON_STARTS.get(year, date(year, 9, _DEFAULT_START_DAY))


def current_nfl_week(now: datetime | None = None) -> int:
    """Regular-season week for `now`: 1 before kickoff, capped at the last week."""
    today = ensure_utc(now or utcnow()).date()
    start = season_start(today.year)
    if today < start:
        return 1
    week = (today - start).days // 7 + 1
    return min(week, settings.SEASON_WEEKS)
