"""Game data models: canonical scoreboard records and stored game status."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class GameStatus(str, Enum):
    scheduled = "scheduled"
    live = "live"
    completed = "completed"


# Status only ever moves forward along this order.
STATUS_ORDER = {
    GameStatus.scheduled.value: 0,
    GameStatus.live.value: 1,
    GameStatus.completed.value: 2,
}


def advance_status(current: str | None, incoming: str) -> str:
    """Return the later of two statuses; a game never moves backwards."""
    if current is None or current not in STATUS_ORDER:
        return incoming
    if STATUS_ORDER.get(incoming, -1) > STATUS_ORDER[current]:
        return incoming
    return current


class FeedTeam(BaseModel):
    abbreviation: str = ""
    score: Optional[int] = None


class FeedStatus(BaseModel):
    name: str = ""        # STATUS_SCHEDULED | STATUS_IN_PROGRESS | STATUS_FINAL
    state: str = "pre"    # pre | in | post
    completed: bool = False
    detail: str = ""


class FeedGame(BaseModel):
    """One game as normalized from the scoreboard feed."""
    external_id: str
    home: FeedTeam
    away: FeedTeam
    status: FeedStatus
    start_time: Optional[datetime] = None
    week: Optional[int] = None
    name: str = ""

    @property
    def internal_status(self) -> str:
        if self.status.completed:
            return GameStatus.completed.value
        if self.status.state == "in":
            return GameStatus.live.value
        return GameStatus.scheduled.value


class SeasonFetchResult(BaseModel):
    """Outcome of the best-effort full-season fetch."""
    games: list[FeedGame] = Field(default_factory=list)
    weekly_breakdown: dict[int, int] = Field(default_factory=dict)
    failed_weeks: list[int] = Field(default_factory=list)
    fetch_ms: int = 0
