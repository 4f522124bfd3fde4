"""Domain events applied to :class:`~mentora.state.LearnerState`.

Each function takes the current state and returns a
:class:`ProgressionResult` carrying a new state and the XP awarded. Inputs are
never mutated; callers persist ``result.state`` themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from .catalog import Question
from .state import (
    DEFAULT_STARTER_XP,
    AssessmentRecord,
    LearnerState,
    clamp,
    clamp_percent,
    default_state,
    round_half_up,
)

LESSON_STEP_PERCENT = 10
LESSON_STEP_XP = 15
BOOSTER_XP = 25
ROADMAP_STEP_XP = 30
MCQ_CORRECT_XP = 20
ASSESSMENT_MAX_BONUS_XP = 80


@dataclass(frozen=True)
class ProgressionResult:
    state: LearnerState
    xp_delta: int = 0
    correct: Optional[bool] = None

    @property
    def changed(self) -> bool:
        return self.xp_delta > 0


def _award(state: LearnerState, amount: int) -> int:
    amount = max(0, int(amount))
    state.xp += amount
    return amount


def select_course(state: LearnerState, course_id: Optional[str]) -> ProgressionResult:
    updated = state.model_copy(deep=True)
    updated.selected_course_id = course_id
    return ProgressionResult(updated)


def complete_lesson_step(state: LearnerState, course_id: str) -> ProgressionResult:
    """Advance a course by one lesson step.

    XP is granted even when the course is already complete.
    """
    updated = state.model_copy(deep=True)
    current = clamp_percent(updated.progress_for(course_id))
    updated.course_progress[course_id] = clamp_percent(current + LESSON_STEP_PERCENT)
    delta = _award(updated, LESSON_STEP_XP)
    return ProgressionResult(updated, delta)


def grant_bonus_xp(state: LearnerState, amount: int) -> ProgressionResult:
    updated = state.model_copy(deep=True)
    delta = _award(updated, amount)
    return ProgressionResult(updated, delta)


def toggle_roadmap_step(state: LearnerState, course_id: str, step_id: str) -> ProgressionResult:
    """Flip a roadmap step; XP is earned the first time it is marked done.

    An unmarked step keeps its ``False`` entry, so marking it again later
    awards nothing.
    """
    updated = state.model_copy(deep=True)
    steps = updated.course_roadmap_done.setdefault(course_id, {})
    first_time = step_id not in steps
    done = not steps.get(step_id, False)
    steps[step_id] = done
    delta = _award(updated, ROADMAP_STEP_XP) if done and first_time else 0
    return ProgressionResult(updated, delta)


def answer_mcq(state: LearnerState, chosen_index: int, question: Question) -> ProgressionResult:
    if chosen_index != question.answer_index:
        return ProgressionResult(state.model_copy(deep=True), 0, correct=False)
    updated = state.model_copy(deep=True)
    delta = _award(updated, MCQ_CORRECT_XP)
    return ProgressionResult(updated, delta, correct=True)


def save_coding_draft(state: LearnerState, question_id: str, text: str) -> ProgressionResult:
    updated = state.model_copy(deep=True)
    if question_id:
        updated.coding_drafts[question_id] = str(text or "")
    return ProgressionResult(updated)


def assessment_bonus_xp(score_percent: float) -> int:
    """XP earned for an assessment score, up to ``ASSESSMENT_MAX_BONUS_XP``."""
    score = clamp(score_percent, 0, 100)
    return round_half_up(score / 100 * ASSESSMENT_MAX_BONUS_XP)


def record_assessment_result(
    state: LearnerState,
    score_percent: float,
    bonus_xp: int,
    taken_at: datetime,
) -> ProgressionResult:
    updated = state.model_copy(deep=True)
    updated.assessment = AssessmentRecord(last_score=clamp_percent(score_percent), last_taken_at=taken_at)
    delta = _award(updated, bonus_xp)
    return ProgressionResult(updated, delta)


def toggle_like(state: LearnerState, post_id: str) -> ProgressionResult:
    """Add a like to ``post_id``. Likes cannot be withdrawn."""
    updated = state.model_copy(deep=True)
    likes = updated.community.likes
    likes[post_id] = likes.get(post_id, 0) + 1
    return ProgressionResult(updated)


def add_comment(state: LearnerState, post_id: str, text: str) -> ProgressionResult:
    updated = state.model_copy(deep=True)
    comment = (text or "").strip()
    if comment:
        updated.community.comments.setdefault(post_id, []).append(comment)
    return ProgressionResult(updated)


def reset_progress(
    state: LearnerState,
    today: Optional[date] = None,
    starter_xp: int = DEFAULT_STARTER_XP,
) -> ProgressionResult:
    """Discard all progress. Identity and profile documents are not touched."""
    return ProgressionResult(default_state(today, starter_xp))


__all__ = [
    "ASSESSMENT_MAX_BONUS_XP",
    "BOOSTER_XP",
    "LESSON_STEP_PERCENT",
    "LESSON_STEP_XP",
    "MCQ_CORRECT_XP",
    "ProgressionResult",
    "ROADMAP_STEP_XP",
    "add_comment",
    "answer_mcq",
    "assessment_bonus_xp",
    "complete_lesson_step",
    "grant_bonus_xp",
    "record_assessment_result",
    "reset_progress",
    "save_coding_draft",
    "select_course",
    "toggle_like",
    "toggle_roadmap_step",
]
