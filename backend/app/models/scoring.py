"""Scoring data models: league rules, streaks, season stats, standings, run summaries."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class ScoringRules(BaseModel):
    """Per-league point values. Defaults apply when a league never configured rules."""
    points_per_win: float = 1
    points_per_loss: float = 0
    points_per_push: float = 0
    streak_bonus: float = 0
    weekly_winner_bonus: float = 0

    def points_for(self, result: str) -> float:
        """Points for a graded result; pending (or anything unknown) scores 0."""
        return {
            "win": self.points_per_win,
            "loss": self.points_per_loss,
            "push": self.points_per_push,
        }.get(result, 0)


class ScoringRulesUpdate(BaseModel):
    """Admin update body; omitted fields keep their stored value."""
    points_per_win: Optional[float] = Field(default=None, ge=0, le=100)
    points_per_loss: Optional[float] = Field(default=None, ge=-100, le=100)
    points_per_push: Optional[float] = Field(default=None, ge=0, le=100)
    streak_bonus: Optional[float] = Field(default=None, ge=0, le=100)
    weekly_winner_bonus: Optional[float] = Field(default=None, ge=0, le=100)


class StreakSummary(BaseModel):
    current: int = 0
    best: int = 0
    worst: int = 0


class SeasonStats(BaseModel):
    """Derived per (user, season) aggregate; always rebuilt from all graded picks."""
    user_id: str
    season_id: Any
    total_picks: int = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    total_points: float = 0
    current_streak: int = 0
    best_streak: int = 0
    worst_streak: int = 0
    last_updated: datetime


class WeeklyStanding(BaseModel):
    user_id: str
    username: str = "Unknown"
    total_picks: int = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    base_points: float = 0
    streak_bonus_points: float = 0
    weekly_winner_bonus: float = 0
    total_points: float = 0
    win_percentage: float = 0.0
    current_streak: int = 0
    is_weekly_winner: bool = False
    rank: int = 0


class WeeklyStandingsResponse(BaseModel):
    season_id: Any
    week: int
    total_participants: int
    standings: list[WeeklyStanding]
    scoring_rules: ScoringRules


class GameGradingResult(BaseModel):
    """Per-game outcome inside one grading pass."""
    external_id: str
    game_id: Any = None
    picks_processed: int = 0
    picks_failed: int = 0
    points_awarded: float = 0
    affected_users: int = 0
    error: Optional[str] = None


class GradingSummary(BaseModel):
    """Returned by every grading pass, scheduled or manual."""
    week: int
    total_games: int = 0
    completed_games: int = 0
    newly_completed: int = 0
    picks_processed: int = 0
    points_awarded: float = 0
    processed_game_ids: list[str] = Field(default_factory=list)
    failed_game_ids: list[str] = Field(default_factory=list)
    feed_response_ms: int = 0
    total_ms: int = 0
