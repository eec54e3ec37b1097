"""
backend/app/services/grading_service.py

Purpose:
    Pure pick grading: (pick, final score, scoring rules) -> GradeOutcome.
    Structured selections are graded directly; legacy free-text selections
    go through a strict parser first. Nothing here touches the database.

Dependencies:
    - app.models.pick
    - app.models.scoring
"""

import re
from typing import Any

from pydantic import BaseModel, ValidationError

from app.models.pick import (
    BetType,
    GradeOutcome,
    MoneylineSelection,
    PickResult,
    Selection,
    SpreadSelection,
    TotalSelection,
    selection_adapter,
)
from app.models.scoring import ScoringRules
from app.services.errors import SelectionParseError

_SIDE_TOKENS = {"home": "home", "h": "home", "away": "away", "a": "away"}
_DIRECTION_TOKENS = {"over": "over", "o": "over", "under": "under", "u": "under"}

_NUMBER = r"([+-]?\d+(?:\.\d+)?)"
_UNSIGNED = r"(\d+(?:\.\d+)?)"
_SPREAD_SIDE_FIRST = re.compile(rf"^([a-z]+)\s*{_NUMBER}$")
_SPREAD_LINE_FIRST = re.compile(rf"^{_NUMBER}\s*([a-z]+)$")
_TOTAL_DIRECTION_FIRST = re.compile(rf"^(over|o|under|u)\s*{_UNSIGNED}$")
_TOTAL_LINE_FIRST = re.compile(rf"^{_UNSIGNED}\s*(over|o|under|u)$")
_TOKEN = re.compile(r"[a-z0-9]+")


# ---------- Legacy text adapter ----------

def _side_from_token(token: str, home_abbr: str | None, away_abbr: str | None) -> str | None:
    """Map one whole token to a side: home/h/away/a or an exact team abbreviation."""
    if token in _SIDE_TOKENS:
        return _SIDE_TOKENS[token]
    if home_abbr and token == home_abbr.lower():
        return "home"
    if away_abbr and token == away_abbr.lower():
        return "away"
    return None


def _parse_moneyline(text: str, home_abbr: str | None, away_abbr: str | None) -> MoneylineSelection:
    sides = {
        side
        for side in (_side_from_token(t, home_abbr, away_abbr) for t in _TOKEN.findall(text))
        if side is not None
    }
    if len(sides) != 1:
        raise SelectionParseError(f"Invalid moneyline selection format: {text!r}")
    return MoneylineSelection(side=sides.pop())


def _parse_spread(text: str, home_abbr: str | None, away_abbr: str | None) -> SpreadSelection:
    m = _SPREAD_SIDE_FIRST.match(text)
    if m:
        token, line = m.group(1), m.group(2)
    else:
        m = _SPREAD_LINE_FIRST.match(text)
        if not m:
            raise SelectionParseError(f"Invalid spread selection format: {text!r}")
        line, token = m.group(1), m.group(2)

    side = _side_from_token(token, home_abbr, away_abbr)
    if side is None:
        raise SelectionParseError(f"Invalid spread selection format: {text!r}")
    return SpreadSelection(side=side, line=float(line))


def _parse_total(text: str) -> TotalSelection:
    m = _TOTAL_DIRECTION_FIRST.match(text)
    if m:
        token, line = m.group(1), m.group(2)
    else:
        m = _TOTAL_LINE_FIRST.match(text)
        if not m:
            raise SelectionParseError(f"Invalid total selection format: {text!r}")
        line, token = m.group(1), m.group(2)
    return TotalSelection(direction=_DIRECTION_TOKENS[token], line=float(line))


def parse_selection_text(
    bet_type: str,
    text: str,
    *,
    home_abbr: str | None = None,
    away_abbr: str | None = None,
) -> Selection:
    """Parse a legacy free-text selection for the given bet type.

    Accepted: ``"home"``/``"h"``/``"away"``/``"a"`` or a team abbreviation for
    moneyline, ``"<side> <±N>"`` or ``"<±N> <side>"`` for spread and
    ``"<over|o|under|u> <N>"`` or reversed for totals. Anything else raises
    SelectionParseError.
    """
    cleaned = (text or "").strip().lower()
    if not cleaned:
        raise SelectionParseError("Empty selection")
    if bet_type == BetType.moneyline.value:
        return _parse_moneyline(cleaned, home_abbr, away_abbr)
    if bet_type == BetType.spread.value:
        return _parse_spread(cleaned, home_abbr, away_abbr)
    if bet_type == BetType.total.value:
        return _parse_total(cleaned)
    raise SelectionParseError(f"Unknown bet type: {bet_type}")


def coerce_selection(
    bet_type: str,
    raw: Any,
    *,
    home_abbr: str | None = None,
    away_abbr: str | None = None,
) -> Selection:
    """Return a structured selection for a stored pick, checking it agrees with bet_type."""
    if bet_type not in {b.value for b in BetType}:
        raise SelectionParseError(f"Unknown bet type: {bet_type}")

    if isinstance(raw, BaseModel):
        selection = raw
    elif isinstance(raw, dict):
        try:
            selection = selection_adapter.validate_python(raw)
        except ValidationError as exc:
            raise SelectionParseError(f"Invalid {bet_type} selection: {exc.errors()[0]['msg']}") from exc
    elif isinstance(raw, str):
        selection = parse_selection_text(bet_type, raw, home_abbr=home_abbr, away_abbr=away_abbr)
    else:
        raise SelectionParseError(f"Unsupported selection value: {raw!r}")

    if selection.kind != bet_type:
        raise SelectionParseError(
            f"Selection kind {selection.kind!r} does not match bet type {bet_type!r}"
        )
    return selection


def describe_selection(selection: Selection) -> str:
    if isinstance(selection, SpreadSelection):
        return f"{selection.side} {selection.line:+g}"
    if isinstance(selection, TotalSelection):
        return f"{selection.direction} {selection.line:g}"
    return selection.side


# ---------- Resolution ----------

def _compare(mine: float, theirs: float) -> PickResult:
    if mine == theirs:
        return PickResult.push
    return PickResult.win if mine > theirs else PickResult.loss


def resolve_selection(selection: Selection, home_score: int, away_score: int) -> PickResult:
    """Win/loss/push for a structured selection against a final score."""
    if isinstance(selection, MoneylineSelection):
        if home_score == away_score:
            return PickResult.push
        mine, theirs = (
            (home_score, away_score) if selection.side == "home" else (away_score, home_score)
        )
        return _compare(mine, theirs)

    if isinstance(selection, SpreadSelection):
        mine, theirs = (
            (home_score, away_score) if selection.side == "home" else (away_score, home_score)
        )
        return _compare(mine + selection.line, theirs)

    total = home_score + away_score
    if selection.direction == "over":
        return _compare(total, selection.line)
    return _compare(selection.line, total)


def _explain(bet_type: str, result: PickResult, home_score: int, away_score: int, pick_text: str) -> str:
    if bet_type == BetType.moneyline.value:
        if result == PickResult.push:
            return f"Tie game {home_score}-{away_score}"
        winner = "Home" if home_score > away_score else "Away"
        return f"{winner} won {home_score}-{away_score}, pick: {pick_text}"
    if bet_type == BetType.spread.value:
        margin = home_score - away_score
        return f"Final: {home_score}-{away_score} (spread: {margin:+g}), pick: {pick_text}"
    return f"Total points: {home_score + away_score}, pick: {pick_text}"


def grade_pick(
    pick: dict,
    home_score: int | None,
    away_score: int | None,
    rules: ScoringRules,
    *,
    home_abbr: str | None = None,
    away_abbr: str | None = None,
) -> GradeOutcome:
    """Grade one pick. Deterministic: same pick and score always give the same outcome.

    Problems with the pick itself (bad selection, unknown bet type) never
    raise; the outcome stays pending with the error in its explanation.
    """
    if home_score is None or away_score is None:
        return GradeOutcome(result=PickResult.pending, explanation="Game not completed")

    bet_type = str(pick.get("bet_type") or "").lower()
    raw = pick.get("selection")

    # A tied moneyline is a push whatever side was picked.
    if bet_type == BetType.moneyline.value and home_score == away_score:
        return GradeOutcome(
            result=PickResult.push,
            points=rules.points_for(PickResult.push.value),
            explanation=f"Tie game {home_score}-{away_score}",
        )

    try:
        selection = coerce_selection(bet_type, raw, home_abbr=home_abbr, away_abbr=away_abbr)
    except SelectionParseError as exc:
        return GradeOutcome(result=PickResult.pending, explanation=f"Error: {exc}")

    result = resolve_selection(selection, home_score, away_score)
    pick_text = raw if isinstance(raw, str) else describe_selection(selection)
    return GradeOutcome(
        result=result,
        points=rules.points_for(result.value),
        explanation=_explain(bet_type, result, home_score, away_score, pick_text),
    )
