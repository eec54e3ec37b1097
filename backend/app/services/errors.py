"""
backend/app/services/errors.py

Purpose:
    Domain exception hierarchy for the grading pipeline. Each error maps to
    the smallest unit it is contained at: a feed request, a game, or a pick.
"""


class PickemError(Exception):
    """Base class for grading pipeline errors."""


class FeedFetchError(PickemError):
    """The scoreboard feed could not be fetched (network, timeout, non-2xx)."""

    def __init__(self, message: str, *, week: int | None = None, status_code: int = 0):
        super().__init__(message)
        self.week = week
        self.status_code = status_code


class GameResolutionError(PickemError):
    """A completed feed game has no matching internal game record."""

    def __init__(self, external_id: str, message: str | None = None):
        super().__init__(message or f"Could not find database game for ESPN game {external_id}")
        self.external_id = external_id


class SelectionParseError(PickemError, ValueError):
    """A pick's selection cannot be interpreted for its bet type."""
