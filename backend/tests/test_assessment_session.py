"""Tests for the timed assessment state machine."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import List

import pytest

from mentora.assessment import AssessmentOutcome, AssessmentSession, ManualScheduler, ThreadingScheduler, grade
from mentora.catalog import Question
from mentora.errors import AssessmentStateError

START = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)


def _questions() -> List[Question]:
    return [
        Question(id="a1", question="One?", choices=["w", "x", "y", "z"], answer_index=2),
        Question(id="a2", question="Two?", choices=["w", "x"], answer_index=0),
        Question(id="a3", question="Three?", choices=["w", "x", "y"], answer_index=1),
        Question(id="a4", question="Four?", choices=["w", "x"], answer_index=1),
    ]


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler(START)


@pytest.fixture()
def session(scheduler: ManualScheduler) -> AssessmentSession:
    return AssessmentSession(clock=scheduler.now, scheduler=scheduler, tick_seconds=0.25)


def test_start_runs_a_single_countdown(session: AssessmentSession, scheduler: ManualScheduler) -> None:
    snapshot = session.start(_questions(), 60)
    assert snapshot.status == "running"
    assert snapshot.remaining_seconds == 60
    assert snapshot.answers == {"a1": None, "a2": None, "a3": None, "a4": None}
    assert scheduler.active_count == 1
    assert session.has_active_timer

    scheduler.advance(10.1)
    assert session.remaining_seconds() == 50


def test_start_while_running_is_rejected(session: AssessmentSession, scheduler: ManualScheduler) -> None:
    session.start(_questions(), 60)
    with pytest.raises(AssessmentStateError):
        session.start(_questions(), 60)
    assert scheduler.active_count == 1


def test_answers_are_only_recorded_while_running(session: AssessmentSession) -> None:
    assert session.record_answer("a1", 2) is False

    session.start(_questions(), 60)
    assert session.record_answer("a1", 0) is True
    assert session.record_answer("a1", 2) is True
    assert session.record_answer("unknown", 1) is False
    assert session.snapshot().answers["a1"] == 2

    session.submit()
    assert session.record_answer("a2", 0) is False


def test_manual_submit_scores_answers(session: AssessmentSession, scheduler: ManualScheduler) -> None:
    session.start(_questions(), 60)
    session.record_answer("a1", 2)
    session.record_answer("a2", 0)
    session.record_answer("a3", 0)

    outcome = session.submit()

    assert outcome is not None
    assert outcome.correct_count == 2
    assert outcome.question_count == 4
    assert outcome.score_percent == 50
    assert outcome.bonus_xp == 40
    assert outcome.auto is False
    assert [item.correct for item in outcome.breakdown] == [True, True, False, False]
    assert outcome.breakdown[3].chosen_index is None
    assert session.status == "submitted"
    assert scheduler.active_count == 0


def test_second_submit_returns_first_outcome(session: AssessmentSession) -> None:
    calls: List[AssessmentOutcome] = []
    session.start(_questions(), 60, on_submit=calls.append)
    session.record_answer("a1", 2)

    first = session.submit()
    second = session.submit(auto=True)

    assert second is first
    assert len(calls) == 1


def test_timer_auto_submits_at_zero(session: AssessmentSession, scheduler: ManualScheduler) -> None:
    calls: List[AssessmentOutcome] = []
    ticks: List[int] = []
    session.start(_questions(), 5, on_submit=calls.append, on_tick=ticks.append)
    session.record_answer("a4", 1)

    scheduler.advance(4.9)
    assert session.status == "running"

    scheduler.advance(0.2)
    assert session.status == "submitted"
    assert len(calls) == 1
    assert calls[0].auto is True
    assert calls[0].score_percent == 25
    assert ticks[0] == 5
    assert ticks[-1] == 0
    assert scheduler.active_count == 0

    manual = session.submit()
    assert manual is calls[0]
    assert len(calls) == 1


def test_reset_cancels_timer_and_is_idempotent(session: AssessmentSession, scheduler: ManualScheduler) -> None:
    calls: List[AssessmentOutcome] = []
    session.start(_questions(), 5, on_submit=calls.append)
    session.reset()
    session.reset()

    assert session.status == "idle"
    assert scheduler.active_count == 0
    scheduler.advance(30)
    assert calls == []
    assert session.submit() is None


def test_session_can_restart_after_submission(session: AssessmentSession, scheduler: ManualScheduler) -> None:
    session.start(_questions(), 60)
    session.submit()
    snapshot = session.start(_questions(), 30)
    assert snapshot.status == "running"
    assert snapshot.outcome is None
    assert scheduler.active_count == 1


def test_question_set_is_snapshotted(session: AssessmentSession) -> None:
    questions = _questions()
    session.start(questions, 60)
    questions.append(Question(id="late", question="Late?", choices=["a"], answer_index=0))
    questions[0].answer_index = 0

    session.record_answer("a1", 2)
    outcome = session.submit()

    assert outcome is not None
    assert outcome.question_count == 4
    assert outcome.breakdown[0].correct is True


def test_empty_question_set_scores_zero(session: AssessmentSession) -> None:
    session.start([], 60)
    outcome = session.submit()
    assert outcome is not None
    assert outcome.score_percent == 0
    assert outcome.question_count == 0
    assert outcome.bonus_xp == 0


def test_grade_rounds_half_up() -> None:
    questions = _questions()[:3]
    outcome = grade(questions, {"a1": 2, "a2": 0})
    assert outcome.score_percent == 67
    assert outcome.bonus_xp == 54


def test_threading_scheduler_auto_submits() -> None:
    done = threading.Event()
    outcomes: List[AssessmentOutcome] = []

    def record(outcome: AssessmentOutcome) -> None:
        outcomes.append(outcome)
        done.set()

    session = AssessmentSession(scheduler=ThreadingScheduler(), tick_seconds=0.02)
    session.start(_questions()[:1], 1, on_submit=record)
    session.record_answer("a1", 2)

    assert done.wait(5)
    assert outcomes[0].auto is True
    assert outcomes[0].score_percent == 100
    assert not session.has_active_timer
    session.reset()


def test_threading_scheduler_cancel_is_idempotent() -> None:
    scheduler = ThreadingScheduler()
    handle = scheduler.schedule_interval(10, lambda: None)
    scheduler.cancel(handle)
    scheduler.cancel(handle)
    scheduler.cancel(None)
    handle.join(timeout=1)
    assert not handle.is_alive()
