"""Daily streak continuation."""

from __future__ import annotations

from datetime import date

from .state import LearnerState, StreakState


def days_between(earlier: date, later: date) -> int:
    """Whole calendar days from ``earlier`` to ``later``."""
    return later.toordinal() - earlier.toordinal()


def advance_streak(state: LearnerState, today: date) -> LearnerState:
    """Return ``state`` with its streak carried forward to ``today``.

    Same-day calls are no-ops, a gap of exactly one day extends the streak and
    anything else (including a ``lastDate`` in the future) restarts it at 1.
    """
    last = state.streak.last_date
    if last == today:
        return state.model_copy(deep=True)

    if last is None:
        count = 1
    elif days_between(last, today) == 1:
        count = state.streak.count + 1
    else:
        count = 1

    updated = state.model_copy(deep=True)
    updated.streak = StreakState(count=count, last_date=today)
    return updated


__all__ = ["advance_streak", "days_between"]
