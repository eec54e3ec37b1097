"""Grading pass worker.

Fetches one week of the scoreboard, claims each newly completed game with a
scoring event, grades its pending picks and rebuilds season stats for the
affected users. Games are processed one at a time; a failure is recorded on
that game's scoring event and the pass moves on. Only a feed failure for the
requested week fails the whole pass.
"""

import logging
import time
from typing import Any, Iterable

from app.models.game import FeedGame, GameStatus
from app.models.scoring import GameGradingResult, GradingSummary
from app.providers.espn import ESPNFeedClient, espn_feed
from app.services.completion_service import (
    completed_games,
    find_newly_completed,
    resolve_internal_game,
)
from app.services.errors import FeedFetchError, GameResolutionError, PickemError
from app.services.grading_service import grade_pick
from app.services.pickem_repository import PickemRepository, pickem_repository
from app.services.scoring_rules_service import get_season_rules
from app.services.season_stats_service import recalculate_affected_users
from app.utils.nfl_week import current_nfl_week
from app.workers._state import set_synced

logger = logging.getLogger("pickem.grading_pass")

_STATE_KEY = "grading_pass"


async def grade_game(
    repo: PickemRepository,
    game: dict,
    home_score: int,
    away_score: int,
    *,
    recalculate: Iterable[tuple[str, Any]] = (),
) -> GameGradingResult:
    """Grade every pending pick of one completed game, then rebuild affected season stats.

    Rules are resolved once per game and stay fixed for all of its picks.
    Picks with an unreadable selection stay pending with the error recorded.
    ``recalculate`` adds (user, season) pairs to rebuild even if none of
    their picks are graded in this call.
    """
    rules = await get_season_rules(repo, game.get("season_id"))
    picks = await repo.find_pending_picks(game["_id"])
    home_abbr = (game.get("home_team") or {}).get("abbreviation")
    away_abbr = (game.get("away_team") or {}).get("abbreviation")

    result = GameGradingResult(external_id=game.get("espn_game_id") or "", game_id=str(game["_id"]))
    affected: list[tuple[str, Any]] = list(recalculate)

    try:
        for pick in picks:
            outcome = grade_pick(
                pick, home_score, away_score, rules, home_abbr=home_abbr, away_abbr=away_abbr,
            )
            if not outcome.is_graded:
                result.picks_failed += 1
                logger.warning("Pick %s left pending: %s", pick["_id"], outcome.explanation)
                await repo.record_grading_error(pick["_id"], outcome.explanation)
                continue

            try:
                written = await repo.apply_grade(pick["_id"], outcome)
            except Exception as e:
                result.picks_failed += 1
                logger.error("Failed to write grade for pick %s: %s", pick["_id"], e)
                continue
            if not written:
                # Graded concurrently by another run.
                continue
            result.picks_processed += 1
            result.points_awarded += outcome.points
            affected.append((pick["user_id"], pick.get("season_id", game.get("season_id"))))
            logger.debug(
                "Pick %s: %s %s -> %s (%s pts) - %s",
                pick["_id"], pick.get("bet_type"), pick.get("selection"),
                outcome.result.value, outcome.points, outcome.explanation,
            )
    finally:
        # Picks already written must reach season stats even if the loop unwinds.
        updated, _failed = await recalculate_affected_users(repo, affected)
        result.affected_users = updated
    logger.info(
        "Graded %d picks for game %s (%d left pending), awarded %s points",
        result.picks_processed, game["_id"], result.picks_failed, result.points_awarded,
    )
    return result


async def _process_completed_game(
    repo: PickemRepository, feed_game: FeedGame,
) -> GameGradingResult | None:
    """Claim, resolve and grade one feed game. Returns None if another run owns it.

    Never raises: store errors at any step are logged and reported on the
    returned result so the pass can move on to the next game.
    """
    try:
        event_id = await repo.claim_scoring_event(
            feed_game.external_id,
            status_after=GameStatus.completed.value,
            home_score=feed_game.home.score,
            away_score=feed_game.away.score,
        )
    except Exception as e:
        logger.error("Could not claim ESPN game %s: %s", feed_game.external_id, e)
        return GameGradingResult(external_id=feed_game.external_id, error=str(e))
    if event_id is None:
        logger.info("ESPN game %s claimed by another run, skipping", feed_game.external_id)
        return None

    try:
        if feed_game.home.score is None or feed_game.away.score is None:
            raise PickemError(f"ESPN game {feed_game.external_id} is final without a score")
        game = await resolve_internal_game(repo, feed_game)
        status_before = game.get("status")
        await repo.complete_game(game["_id"], feed_game.home.score, feed_game.away.score)
        result = await grade_game(repo, game, feed_game.home.score, feed_game.away.score)
    except GameResolutionError as e:
        logger.warning("Game resolution failed: %s", e)
        await _finish_event(repo, event_id, "failed", game_id=None, error_message=str(e))
        return GameGradingResult(external_id=feed_game.external_id, error=str(e))
    except Exception as e:
        logger.exception("Failed to process ESPN game %s", feed_game.external_id)
        await _finish_event(repo, event_id, "failed", error_message=str(e))
        return GameGradingResult(external_id=feed_game.external_id, error=str(e))

    result.external_id = feed_game.external_id
    finished = await _finish_event(
        repo,
        event_id,
        "completed",
        game_id=game["_id"],
        status_before=status_before,
        picks_processed=result.picks_processed,
        points_awarded=result.points_awarded,
    )
    if not finished:
        result.error = f"Scoring event for ESPN game {feed_game.external_id} left in progress"
    return result


async def _finish_event(repo: PickemRepository, event_id: Any, state: str, **fields: Any) -> bool:
    try:
        await repo.finish_scoring_event(event_id, state, **fields)
    except Exception as e:
        logger.error("Could not mark scoring event %s %s: %s", event_id, state, e)
        return False
    return True


async def run_grading_pass(
    week: int,
    *,
    feed: ESPNFeedClient | None = None,
    repo: PickemRepository | None = None,
) -> GradingSummary:
    """Grade all newly completed games of one week. Safe to re-run on the same snapshot.

    Raises FeedFetchError if the week's scoreboard cannot be fetched.
    """
    feed = feed or espn_feed
    repo = repo or pickem_repository
    started = time.monotonic()
    endpoint = f"{feed.scoreboard_url}?week={week}"

    try:
        games = await feed.fetch_week(week)
    except FeedFetchError as e:
        await repo.log_feed_call(
            endpoint=endpoint,
            week=week,
            status_code=e.status_code,
            response_time_ms=feed.last_response_ms,
            games_found=0,
            error_message=str(e),
        )
        raise

    completed = completed_games(games)
    newly_completed = await find_newly_completed(repo, games)
    summary = GradingSummary(
        week=week,
        total_games=len(games),
        completed_games=len(completed),
        newly_completed=len(newly_completed),
        feed_response_ms=feed.last_response_ms,
    )
    logger.info(
        "Week %d: %d games, %d completed, %d newly completed",
        week, len(games), len(completed), len(newly_completed),
    )

    for feed_game in newly_completed:
        result = await _process_completed_game(repo, feed_game)
        if result is None:
            continue
        summary.picks_processed += result.picks_processed
        summary.points_awarded += result.points_awarded
        if result.error:
            summary.failed_game_ids.append(feed_game.external_id)
        else:
            summary.processed_game_ids.append(feed_game.external_id)

    await repo.log_feed_call(
        endpoint=endpoint,
        week=week,
        status_code=200,
        response_time_ms=feed.last_response_ms,
        games_found=len(games),
        completed_games=len(completed),
        newly_completed=len(newly_completed),
    )

    summary.total_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "Grading pass week %d done: %d games processed, %d failed, %d picks, %s points (%dms)",
        week, len(summary.processed_game_ids), len(summary.failed_game_ids),
        summary.picks_processed, summary.points_awarded, summary.total_ms,
    )
    return summary


async def regrade_stored_game(game_id: Any, *, repo: PickemRepository | None = None) -> GameGradingResult:
    """Grade the pending picks of a stored completed game from its stored score.

    Season stats are rebuilt for every user with a pick on the game, not only
    those graded now, so an earlier interrupted pass is fully repaired.
    """
    repo = repo or pickem_repository
    game = await repo.get_game(game_id)
    if not game:
        raise LookupError(f"Game {game_id} not found")
    if game.get("status") != GameStatus.completed.value:
        raise ValueError(f"Game {game_id} is not completed")
    if game.get("home_score") is None or game.get("away_score") is None:
        raise ValueError(f"Game {game_id} has no final score")
    pick_users = await repo.find_game_pick_users(game["_id"])
    return await grade_game(
        repo, game, game["home_score"], game["away_score"], recalculate=pick_users,
    )


async def run_scheduled_grading_pass() -> None:
    """APScheduler entry point: grade the current NFL week."""
    week = current_nfl_week()
    try:
        summary = await run_grading_pass(week)
    except FeedFetchError as e:
        logger.error("Grading pass for week %d aborted: %s", week, e)
        return
    await set_synced(_STATE_KEY, summary.model_dump())
