"""Persisted learner state and its forward-compatible loader."""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .persistence import STATE_KEY, PersistenceStore

logger = logging.getLogger(__name__)

DEFAULT_STARTER_XP = 120
_MAX_REPAIR_PASSES = 3


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Round halves towards +inf, so 62.5 becomes 63."""
    return math.floor(value + 0.5)


def clamp_percent(value: Any) -> int:
    """Coerce ``value`` to an integer percentage in [0, 100]; junk becomes 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return int(clamp(round_half_up(value), 0, 100))


def _non_negative(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return max(0, int(value))
    return value


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StreakState(_CamelModel):
    count: int = 1
    last_date: Optional[date] = Field(default=None, alias="lastDate")

    @field_validator("count", mode="before")
    @classmethod
    def _clamp_count(cls, value: Any) -> Any:
        return _non_negative(value)


class AssessmentRecord(_CamelModel):
    last_score: Optional[int] = Field(default=None, alias="lastScore")
    last_taken_at: Optional[datetime] = Field(default=None, alias="lastTakenAt")

    @field_validator("last_score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> Any:
        if value is None:
            return None
        return clamp_percent(value)

    @field_validator("last_taken_at", mode="before")
    @classmethod
    def _epoch_millis(cls, value: Any) -> Any:
        # Older documents stored a millisecond epoch rather than an ISO timestamp.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        return value


class CommunityState(_CamelModel):
    likes: Dict[str, int] = Field(default_factory=dict)
    comments: Dict[str, List[str]] = Field(default_factory=dict)

    @field_validator("likes", mode="before")
    @classmethod
    def _clamp_likes(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {key: _non_negative(count) for key, count in value.items()}
        return value


class LearnerState(_CamelModel):
    """The single persisted learner aggregate, stored under the ``state`` key."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    streak: StreakState = Field(default_factory=StreakState)
    xp: int = 0
    course_progress: Dict[str, int] = Field(default_factory=dict, alias="courseProgress")
    selected_course_id: Optional[str] = Field(default=None, alias="selectedCourseId")
    roadmap_done: Dict[str, bool] = Field(default_factory=dict, alias="roadmapDone")
    course_roadmap_done: Dict[str, Dict[str, bool]] = Field(default_factory=dict, alias="courseRoadmapDone")
    assessment: AssessmentRecord = Field(default_factory=AssessmentRecord)
    coding_drafts: Dict[str, str] = Field(default_factory=dict, alias="codingDrafts")
    community: CommunityState = Field(default_factory=CommunityState)

    @field_validator("xp", mode="before")
    @classmethod
    def _clamp_xp(cls, value: Any) -> Any:
        return _non_negative(value)

    @field_validator("course_progress", mode="before")
    @classmethod
    def _clamp_progress(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {key: clamp_percent(percent) for key, percent in value.items()}
        return value

    def progress_for(self, course_id: str) -> int:
        return self.course_progress.get(course_id, 0)

    def roadmap_for(self, course_id: str) -> Dict[str, bool]:
        return dict(self.course_roadmap_done.get(course_id, {}))

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def default_state(today: Optional[date] = None, starter_xp: int = DEFAULT_STARTER_XP) -> LearnerState:
    """Baseline state for a first session: a one-day streak dated ``today``."""
    return LearnerState(
        streak=StreakState(count=1, last_date=today or date.today()),
        xp=max(0, starter_xp),
    )


def merge_with_defaults(
    raw: Any,
    today: Optional[date] = None,
    starter_xp: int = DEFAULT_STARTER_XP,
) -> LearnerState:
    """Overlay a stored document on the current default shape.

    Top-level keys from ``raw`` win over defaults, keys missing from ``raw``
    keep their default, and ``streak`` is merged key by key. A stored field
    that no longer validates is replaced by its default instead of discarding
    the whole document.
    """
    defaults = default_state(today, starter_xp).to_document()
    if not isinstance(raw, dict):
        if raw is not None:
            logger.warning("Stored state is not an object; using defaults")
        return LearnerState.model_validate(defaults)

    stored_streak = raw.get("streak")
    merged: Dict[str, Any] = {**defaults, **raw}
    merged["streak"] = {**defaults["streak"], **(stored_streak if isinstance(stored_streak, dict) else {})}

    for _ in range(_MAX_REPAIR_PASSES):
        try:
            return LearnerState.model_validate(merged)
        except ValidationError as exc:
            _repair(merged, defaults, exc)

    logger.warning("Stored state could not be repaired; using defaults")
    return LearnerState.model_validate(defaults)


def _repair(merged: Dict[str, Any], defaults: Dict[str, Any], exc: ValidationError) -> None:
    for error in exc.errors():
        loc = error.get("loc") or ()
        if not loc:
            continue
        top = loc[0]
        if top == "streak" and len(loc) > 1 and loc[1] == "lastDate":
            # An unreadable date cannot continue the streak; advance_streak restarts it.
            merged["streak"]["lastDate"] = None
        elif top == "streak" and len(loc) > 1 and loc[1] in defaults["streak"]:
            merged["streak"][loc[1]] = defaults["streak"][loc[1]]
        elif top in defaults:
            merged[top] = defaults[top]
        else:
            merged.pop(top, None)
        logger.warning("Replaced malformed stored field %s with its default", ".".join(str(part) for part in loc))


def load_state(
    store: PersistenceStore,
    today: Optional[date] = None,
    starter_xp: int = DEFAULT_STARTER_XP,
) -> LearnerState:
    raw = store.read(STATE_KEY, None)
    if raw is None:
        return default_state(today, starter_xp)
    return merge_with_defaults(raw, today, starter_xp)


def save_state(store: PersistenceStore, state: LearnerState) -> None:
    store.write(STATE_KEY, state.to_document())


__all__ = [
    "AssessmentRecord",
    "CommunityState",
    "DEFAULT_STARTER_XP",
    "LearnerState",
    "StreakState",
    "clamp",
    "clamp_percent",
    "default_state",
    "load_state",
    "merge_with_defaults",
    "round_half_up",
    "save_state",
]
