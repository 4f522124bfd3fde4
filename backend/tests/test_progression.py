"""Tests for the progression rules applied to learner state."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from mentora.catalog import Question
from mentora.progression import (
    LESSON_STEP_XP,
    MCQ_CORRECT_XP,
    ROADMAP_STEP_XP,
    add_comment,
    answer_mcq,
    assessment_bonus_xp,
    complete_lesson_step,
    grant_bonus_xp,
    record_assessment_result,
    reset_progress,
    save_coding_draft,
    select_course,
    toggle_like,
    toggle_roadmap_step,
)
from mentora.state import LearnerState, default_state

TODAY = date(2024, 3, 10)


@pytest.fixture()
def state() -> LearnerState:
    return default_state(TODAY, starter_xp=100)


def _question(answer_index: int = 1) -> Question:
    return Question(id="m1", question="Pick one", choices=["a", "b", "c"], answer_index=answer_index)


def test_lesson_step_adds_progress_and_xp(state: LearnerState) -> None:
    result = complete_lesson_step(state, "c1")
    assert result.state.course_progress == {"c1": 10}
    assert result.xp_delta == LESSON_STEP_XP
    assert result.state.xp == 115


def test_lesson_step_is_capped_at_one_hundred(state: LearnerState) -> None:
    state.course_progress["c1"] = 95
    result = complete_lesson_step(state, "c1")
    assert result.state.course_progress["c1"] == 100


def test_completed_course_still_earns_xp(state: LearnerState) -> None:
    state.course_progress["c1"] = 100
    result = complete_lesson_step(state, "c1")
    assert result.state.course_progress["c1"] == 100
    assert result.xp_delta == 15
    assert result.state.xp == state.xp + 15


def test_operations_do_not_mutate_input(state: LearnerState) -> None:
    before = state.model_copy(deep=True)
    complete_lesson_step(state, "c1")
    toggle_roadmap_step(state, "c1", "r1")
    toggle_like(state, "p1")
    add_comment(state, "p1", "nice")
    save_coding_draft(state, "q1", "print('hi')")
    assert state == before


def test_grant_bonus_xp(state: LearnerState) -> None:
    result = grant_bonus_xp(state, 25)
    assert result.xp_delta == 25
    assert result.state.xp == 125


def test_negative_bonus_xp_is_ignored(state: LearnerState) -> None:
    result = grant_bonus_xp(state, -40)
    assert result.xp_delta == 0
    assert result.state.xp == 100


def test_roadmap_toggle_awards_xp_once(state: LearnerState) -> None:
    state.course_progress["c1"] = 40
    on = toggle_roadmap_step(state, "c1", "r1")
    off = toggle_roadmap_step(on.state, "c1", "r1")

    assert on.xp_delta == ROADMAP_STEP_XP
    assert on.state.course_roadmap_done == {"c1": {"r1": True}}
    assert off.xp_delta == 0
    assert off.state.course_roadmap_done == {"c1": {"r1": False}}
    assert off.state.xp == state.xp + ROADMAP_STEP_XP
    assert off.state.course_progress == {"c1": 40}
    assert off.state.roadmap_done == {}


def test_roadmap_toggle_cannot_farm_xp(state: LearnerState) -> None:
    result = toggle_roadmap_step(state, "c1", "r1")
    for _ in range(4):
        result = toggle_roadmap_step(result.state, "c1", "r1")
    assert result.state.course_roadmap_done == {"c1": {"r1": True}}
    assert result.state.xp == state.xp + ROADMAP_STEP_XP
    assert result.xp_delta == 0


def test_roadmap_steps_are_tracked_per_course(state: LearnerState) -> None:
    first = toggle_roadmap_step(state, "c1", "r1")
    second = toggle_roadmap_step(first.state, "c2", "r1")
    assert second.xp_delta == ROADMAP_STEP_XP
    assert second.state.course_roadmap_done == {"c1": {"r1": True}, "c2": {"r1": True}}


def test_correct_mcq_answer_earns_xp(state: LearnerState) -> None:
    result = answer_mcq(state, 1, _question(1))
    assert result.correct is True
    assert result.xp_delta == MCQ_CORRECT_XP
    assert result.state.xp == 120


def test_wrong_mcq_answer_changes_nothing(state: LearnerState) -> None:
    result = answer_mcq(state, 0, _question(1))
    assert result.correct is False
    assert result.xp_delta == 0
    assert result.state == state


def test_coding_draft_overwrites_previous_text(state: LearnerState) -> None:
    first = save_coding_draft(state, "q1", "draft one")
    second = save_coding_draft(first.state, "q1", "")
    assert first.state.coding_drafts == {"q1": "draft one"}
    assert second.state.coding_drafts == {"q1": ""}
    assert second.xp_delta == 0


def test_coding_draft_without_question_is_ignored(state: LearnerState) -> None:
    result = save_coding_draft(state, "", "orphan")
    assert result.state.coding_drafts == {}


@pytest.mark.parametrize(
    "score, bonus",
    [(0, 0), (33, 26), (50, 40), (75, 60), (100, 80), (62.5, 50), (150, 80), (-10, 0)],
)
def test_assessment_bonus_xp(score, bonus) -> None:
    assert assessment_bonus_xp(score) == bonus


def test_record_assessment_result(state: LearnerState) -> None:
    taken_at = datetime(2024, 3, 10, 9, 30, tzinfo=timezone.utc)
    result = record_assessment_result(state, 75, assessment_bonus_xp(75), taken_at)
    assert result.xp_delta == 60
    assert result.state.xp == 160
    assert result.state.assessment.last_score == 75
    assert result.state.assessment.last_taken_at == taken_at


def test_record_assessment_result_clamps_score(state: LearnerState) -> None:
    taken_at = datetime(2024, 3, 10, tzinfo=timezone.utc)
    result = record_assessment_result(state, 130, 0, taken_at)
    assert result.state.assessment.last_score == 100


def test_likes_only_increase(state: LearnerState) -> None:
    once = toggle_like(state, "p1")
    twice = toggle_like(once.state, "p1")
    assert twice.state.community.likes == {"p1": 2}
    assert twice.xp_delta == 0


def test_blank_comment_is_ignored(state: LearnerState) -> None:
    state.community.comments["p1"] = ["first"]
    result = add_comment(state, "p1", "   ")
    assert result.state.community.comments["p1"] == ["first"]


def test_comment_is_trimmed_and_appended(state: LearnerState) -> None:
    first = add_comment(state, "p1", "  great post ")
    second = add_comment(first.state, "p1", "agreed")
    assert second.state.community.comments == {"p1": ["great post", "agreed"]}


def test_select_course_accepts_unknown_ids(state: LearnerState) -> None:
    result = select_course(state, "does-not-exist")
    assert result.state.selected_course_id == "does-not-exist"
    assert result.xp_delta == 0


def test_reset_progress_returns_defaults(state: LearnerState) -> None:
    progressed = complete_lesson_step(state, "c1").state
    result = reset_progress(progressed, TODAY, starter_xp=100)
    assert result.state == default_state(TODAY, starter_xp=100)
