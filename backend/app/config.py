"""
backend/app/config.py

Purpose:
    Central settings loading for the grading backend.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "pickem"
    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"

    # Shared secret for cron + admin triggers (empty = triggers disabled)
    CRON_SECRET: str = ""

    # ESPN public scoreboard (no key)
    ESPN_BASE_URL: str = "https://site.api.espn.com/apis/site/v2/sports/football/nfl"
    ESPN_TIMEOUT_SECONDS: float = 10.0
    ESPN_MAX_RETRIES: int = 0  # retries belong to the scheduler, not the fetch
    ESPN_SEASON_FETCH_DELAY_SECONDS: float = 0.5

    # Season calendar
    SEASON_WEEKS: int = 18
    NFL_SEASON_START: str = ""  # ISO date override, e.g. "2025-09-04"

    # Game status monitor
    STALE_GAME_HOURS: int = 4
    GAME_STATUS_WINDOW_HOURS: int = 24

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    GRADING_INTERVAL_MINUTES: int = 15
    GAME_STATUS_INTERVAL_MINUTES: int = 15

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
