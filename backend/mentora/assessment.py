"""Timed assessment attempts.

An :class:`AssessmentSession` moves through ``idle -> running -> submitted``.
While running, a single interval timer refreshes the countdown and submits
automatically when it reaches zero. Submission happens at most once per
attempt, so a manual submit racing the timer yields one outcome.
"""

from __future__ import annotations

import itertools
import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional, Protocol, Sequence, Tuple

from .catalog import Question
from .errors import AssessmentStateError
from .progression import assessment_bonus_xp
from .state import round_half_up

logger = logging.getLogger(__name__)

SessionStatus = Literal["idle", "running", "submitted"]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Scheduler(Protocol):
    def schedule_interval(self, seconds: float, callback: Callable[[], None]) -> Any:  # pragma: no cover
        ...

    def cancel(self, handle: Any) -> None:  # pragma: no cover
        ...


class _IntervalThread(threading.Thread):
    def __init__(self, seconds: float, callback: Callable[[], None]) -> None:
        super().__init__(name="mentora-assessment-timer", daemon=True)
        self.seconds = seconds
        self.callback = callback
        self.stopped = threading.Event()

    def run(self) -> None:
        while not self.stopped.wait(self.seconds):
            try:
                self.callback()
            except Exception:  # noqa: BLE001
                logger.exception("Assessment timer callback failed")
                self.stopped.set()


class ThreadingScheduler:
    """Runs interval callbacks on daemon threads."""

    def schedule_interval(self, seconds: float, callback: Callable[[], None]) -> _IntervalThread:
        handle = _IntervalThread(seconds, callback)
        handle.start()
        return handle

    def cancel(self, handle: Any) -> None:
        if isinstance(handle, _IntervalThread):
            handle.stopped.set()


@dataclass
class _ManualTimer:
    handle_id: int
    seconds: float
    callback: Callable[[], None]
    next_due: datetime


class ManualScheduler:
    """Deterministic scheduler with its own clock, driven by :meth:`advance`."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = start or utc_now()
        self._timers: Dict[int, _ManualTimer] = {}
        self._ids = itertools.count(1)

    def now(self) -> datetime:
        return self._now

    @property
    def active_count(self) -> int:
        return len(self._timers)

    def schedule_interval(self, seconds: float, callback: Callable[[], None]) -> int:
        handle_id = next(self._ids)
        self._timers[handle_id] = _ManualTimer(
            handle_id, seconds, callback, self._now + timedelta(seconds=seconds)
        )
        return handle_id

    def cancel(self, handle: Any) -> None:
        self._timers.pop(handle, None)

    def advance(self, seconds: float) -> None:
        target = self._now + timedelta(seconds=seconds)
        while True:
            due = [timer for timer in self._timers.values() if timer.next_due <= target]
            if not due:
                break
            timer = min(due, key=lambda entry: (entry.next_due, entry.handle_id))
            self._now = timer.next_due
            timer.next_due = timer.next_due + timedelta(seconds=timer.seconds)
            timer.callback()
        self._now = target


@dataclass(frozen=True)
class QuestionResult:
    question_id: str
    chosen_index: Optional[int]
    answer_index: int
    correct: bool


@dataclass(frozen=True)
class AssessmentOutcome:
    score_percent: int
    bonus_xp: int
    correct_count: int
    question_count: int
    auto: bool
    submitted_at: datetime
    breakdown: Tuple[QuestionResult, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AssessmentSnapshot:
    status: SessionStatus
    ends_at: Optional[datetime]
    remaining_seconds: int
    questions: Tuple[Question, ...]
    answers: Dict[str, Optional[int]]
    outcome: Optional[AssessmentOutcome] = None


def grade(
    questions: Sequence[Question],
    answers: Dict[str, Optional[int]],
    *,
    auto: bool = False,
    submitted_at: Optional[datetime] = None,
) -> AssessmentOutcome:
    breakdown: List[QuestionResult] = []
    for question in questions:
        chosen = answers.get(question.id)
        breakdown.append(
            QuestionResult(
                question_id=question.id,
                chosen_index=chosen,
                answer_index=question.answer_index,
                correct=chosen is not None and chosen == question.answer_index,
            )
        )
    correct_count = sum(1 for item in breakdown if item.correct)
    score = round_half_up(100 * correct_count / max(1, len(questions)))
    return AssessmentOutcome(
        score_percent=score,
        bonus_xp=assessment_bonus_xp(score),
        correct_count=correct_count,
        question_count=len(questions),
        auto=auto,
        submitted_at=submitted_at or utc_now(),
        breakdown=tuple(breakdown),
    )


class AssessmentSession:
    def __init__(
        self,
        clock: Optional[Clock] = None,
        scheduler: Optional[Scheduler] = None,
        tick_seconds: float = 0.25,
    ) -> None:
        self._clock: Clock = clock or utc_now
        self._scheduler: Scheduler = scheduler or ThreadingScheduler()
        self._tick_seconds = tick_seconds
        self._lock = threading.RLock()
        self._timer: Any = None
        self._status: SessionStatus = "idle"
        self._ends_at: Optional[datetime] = None
        self._questions: Tuple[Question, ...] = ()
        self._answers: Dict[str, Optional[int]] = {}
        self._outcome: Optional[AssessmentOutcome] = None
        self._on_submit: Optional[Callable[[AssessmentOutcome], None]] = None
        self._on_tick: Optional[Callable[[int], None]] = None

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def outcome(self) -> Optional[AssessmentOutcome]:
        return self._outcome

    @property
    def has_active_timer(self) -> bool:
        return self._timer is not None

    def start(
        self,
        questions: Iterable[Question],
        time_seconds: int,
        *,
        on_submit: Optional[Callable[[AssessmentOutcome], None]] = None,
        on_tick: Optional[Callable[[int], None]] = None,
    ) -> AssessmentSnapshot:
        with self._lock:
            if self._status == "running":
                raise AssessmentStateError("An assessment attempt is already running.")
            self._cancel_timer()
            self._questions = tuple(question.model_copy(deep=True) for question in questions)
            self._answers = {question.id: None for question in self._questions}
            self._ends_at = self._clock() + timedelta(seconds=max(0, time_seconds))
            self._outcome = None
            self._on_submit = on_submit
            self._on_tick = on_tick
            self._status = "running"
            self._timer = self._scheduler.schedule_interval(self._tick_seconds, self.tick)
            logger.debug("Assessment started with %d questions", len(self._questions))
        self.tick()
        return self.snapshot()

    def remaining_seconds(self) -> int:
        if self._status != "running" or self._ends_at is None:
            return 0
        remaining = (self._ends_at - self._clock()).total_seconds()
        return max(0, math.ceil(remaining))

    def tick(self) -> int:
        """Refresh the countdown; submits automatically once it hits zero."""
        if self._status != "running":
            return 0
        remaining = self.remaining_seconds()
        if self._on_tick is not None:
            self._on_tick(remaining)
        if remaining <= 0:
            self.submit(auto=True)
        return remaining

    def record_answer(self, question_id: str, choice_index: Optional[int]) -> bool:
        with self._lock:
            if self._status != "running" or question_id not in self._answers:
                return False
            self._answers[question_id] = choice_index
            return True

    def submit(self, auto: bool = False) -> Optional[AssessmentOutcome]:
        with self._lock:
            if self._status == "submitted":
                return self._outcome
            if self._status != "running":
                return None
            self._cancel_timer()
            outcome = grade(self._questions, self._answers, auto=auto, submitted_at=self._clock())
            self._outcome = outcome
            self._status = "submitted"
            callback = self._on_submit
        logger.info(
            "Assessment submitted (%s): %d/%d correct",
            "auto" if auto else "manual",
            outcome.correct_count,
            outcome.question_count,
        )
        if callback is not None:
            callback(outcome)
        return outcome

    def reset(self) -> None:
        with self._lock:
            self._cancel_timer()
            self._status = "idle"
            self._ends_at = None
            self._questions = ()
            self._answers = {}
            self._outcome = None
            self._on_submit = None
            self._on_tick = None

    def snapshot(self) -> AssessmentSnapshot:
        with self._lock:
            return AssessmentSnapshot(
                status=self._status,
                ends_at=self._ends_at,
                remaining_seconds=self.remaining_seconds(),
                questions=self._questions,
                answers=dict(self._answers),
                outcome=self._outcome,
            )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._scheduler.cancel(self._timer)
            self._timer = None


__all__ = [
    "AssessmentOutcome",
    "AssessmentSession",
    "AssessmentSnapshot",
    "ManualScheduler",
    "QuestionResult",
    "Scheduler",
    "SessionStatus",
    "ThreadingScheduler",
    "grade",
    "utc_now",
]
