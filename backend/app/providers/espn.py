"""
backend/app/providers/espn.py

Purpose:
    ESPN public NFL scoreboard client. Fetches one regular-season week (or
    every week of a season) and normalizes events into FeedGame records.
    A failed request raises FeedFetchError; retry policy belongs to the caller.

Dependencies:
    - app.providers.http_client
    - app.models.game
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Optional

import httpx

from app.config import settings
from app.models.game import FeedGame, FeedStatus, FeedTeam, SeasonFetchResult
from app.providers.http_client import ResilientClient, _safe_url
from app.services.errors import FeedFetchError
from app.utils import parse_utc

logger = logging.getLogger("pickem.espn")

_HEADERS = {"User-Agent": "Mozilla/5.0 (compatible; PickemGrader/1.0)"}


def _parse_score(raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        return int(float(raw))
    except (TypeError, ValueError):
        return None


def _parse_start(raw: Any) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return parse_utc(raw)
    except ValueError:
        return None


def _normalize_event(event: dict[str, Any]) -> Optional[FeedGame]:
    competitions = event.get("competitions") or []
    if not competitions or not event.get("id"):
        return None
    comp = competitions[0]

    home: dict[str, Any] = {}
    away: dict[str, Any] = {}
    for c in comp.get("competitors", []):
        if c.get("homeAway") == "home":
            home = c
        elif c.get("homeAway") == "away":
            away = c

    status_type = (comp.get("status") or {}).get("type") or {}
    week_obj = event.get("week") or {}

    return FeedGame(
        external_id=str(event["id"]),
        home=FeedTeam(
            abbreviation=(home.get("team") or {}).get("abbreviation", ""),
            score=_parse_score(home.get("score")),
        ),
        away=FeedTeam(
            abbreviation=(away.get("team") or {}).get("abbreviation", ""),
            score=_parse_score(away.get("score")),
        ),
        status=FeedStatus(
            name=status_type.get("name", ""),
            state=status_type.get("state", "pre"),
            completed=bool(status_type.get("completed", False)),
            detail=status_type.get("shortDetail") or status_type.get("detail", ""),
        ),
        start_time=_parse_start(event.get("date") or comp.get("date")),
        week=week_obj.get("number"),
        name=event.get("shortName") or event.get("name", ""),
    )


def normalize_scoreboard(payload: dict[str, Any]) -> list[FeedGame]:
    """Turn a raw scoreboard payload into FeedGame records, skipping malformed events."""
    games: list[FeedGame] = []
    for event in payload.get("events") or []:
        game = _normalize_event(event)
        if game is None:
            logger.warning("ESPN: skipping malformed event %s", event.get("id"))
            continue
        games.append(game)
    return games


class ESPNFeedClient:
    """ESPN public NFL scoreboard: free, no key."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        client: ResilientClient | None = None,
        season_delay: float | None = None,
    ):
        self._base_url = (base_url or settings.ESPN_BASE_URL).rstrip("/")
        self._client = client or ResilientClient(
            "espn",
            timeout=settings.ESPN_TIMEOUT_SECONDS,
            max_retries=settings.ESPN_MAX_RETRIES,
        )
        self._season_delay = (
            settings.ESPN_SEASON_FETCH_DELAY_SECONDS if season_delay is None else season_delay
        )
        # Timing of the most recent week request, read by the call log.
        self.last_response_ms = 0

    @property
    def scoreboard_url(self) -> str:
        return f"{self._base_url}/scoreboard"

    async def fetch_week(self, week: int) -> list[FeedGame]:
        """Fetch and normalize the scoreboard for one regular-season week."""
        if not 1 <= week <= settings.SEASON_WEEKS:
            raise ValueError(f"week must be between 1 and {settings.SEASON_WEEKS}, got {week}")

        started = time.monotonic()
        try:
            resp = await self._client.get(
                self.scoreboard_url,
                params={"week": week},
                headers=_HEADERS,
            )
        except httpx.HTTPError as exc:
            self.last_response_ms = int((time.monotonic() - started) * 1000)
            logger.error("ESPN week %d request failed (%dms): %s", week, self.last_response_ms, exc)
            raise FeedFetchError(f"ESPN API request failed: {exc}", week=week) from exc

        self.last_response_ms = int((time.monotonic() - started) * 1000)
        if resp.status_code < 200 or resp.status_code >= 300:
            logger.error(
                "ESPN week %d returned %d from %s",
                week, resp.status_code, _safe_url(self.scoreboard_url),
            )
            raise FeedFetchError(
                f"ESPN API error: {resp.status_code} {resp.reason_phrase}",
                week=week,
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise FeedFetchError(
                "ESPN API returned invalid JSON", week=week, status_code=resp.status_code,
            ) from exc

        games = normalize_scoreboard(payload)
        logger.info("ESPN week %d: %d games (%dms)", week, len(games), self.last_response_ms)
        return games

    async def fetch_season(self, weeks: int | None = None, on_week_failed=None) -> SeasonFetchResult:
        """Fetch weeks 1..N sequentially. A failing week is logged and skipped.

        ``on_week_failed`` is awaited with the FeedFetchError of each failed week
        so callers can persist it.
        """
        total_weeks = weeks or settings.SEASON_WEEKS
        result = SeasonFetchResult()
        started = time.monotonic()

        for week in range(1, total_weeks + 1):
            try:
                games = await self.fetch_week(week)
                result.games.extend(games)
                result.weekly_breakdown[week] = len(games)
            except FeedFetchError as exc:
                logger.warning("ESPN season fetch: week %d skipped: %s", week, exc)
                result.failed_weeks.append(week)
                result.weekly_breakdown[week] = 0
                if on_week_failed is not None:
                    try:
                        await on_week_failed(exc)
                    except Exception:
                        logger.exception("ESPN season fetch: failure callback for week %d raised", week)

            if week < total_weeks and self._season_delay > 0:
                await asyncio.sleep(self._season_delay)

        result.fetch_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "ESPN season fetch: %d games across %d weeks (%d failed, %dms)",
            len(result.games), total_weeks, len(result.failed_weeks), result.fetch_ms,
        )
        return result

    async def aclose(self) -> None:
        await self._client.aclose()


espn_feed = ESPNFeedClient()
