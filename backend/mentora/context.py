"""The learner context: one object owning persisted state and the live assessment.

View code holds a :class:`LearnerContext` and calls one method per user
gesture. Every mutating call re-reads the latest persisted state, applies a
pure progression function, commits the whole document and returns the
result for re-rendering.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime
from functools import partial
from typing import Callable, List, Optional

from .assessment import AssessmentOutcome, AssessmentSession, AssessmentSnapshot, Clock, Scheduler
from .catalog import Catalog, CodingQuestion, find_coding_question, find_mcq, load_catalog
from .config import Settings, get_settings
from .persistence import PROFILE_KEY, THEME_KEY, USER_KEY, PersistenceStore, build_store
from .profile import (
    LearnerProfile,
    Theme,
    UserSession,
    default_profile,
    next_theme,
    parse_theme,
    update_profile,
    validate_sign_in,
)
from .progression import (
    BOOSTER_XP,
    ProgressionResult,
    add_comment,
    answer_mcq,
    complete_lesson_step,
    grant_bonus_xp,
    record_assessment_result,
    reset_progress,
    save_coding_draft,
    select_course,
    toggle_like,
    toggle_roadmap_step,
)
from .ranks import LeaderboardRow, RankStatus, build_leaderboard, compute_rank, overall_progress, rank_hint
from .state import LearnerState, load_state, save_state
from .streak import advance_streak
from .telemetry import emit_event

logger = logging.getLogger(__name__)


def local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass(frozen=True)
class DashboardSummary:
    streak_count: int
    xp: int
    rank: RankStatus
    rank_hint: str
    overall_progress: int
    enrolled_courses: int
    last_score: Optional[int]
    last_taken_at: Optional[datetime]


class LearnerContext:
    def __init__(
        self,
        store: Optional[PersistenceStore] = None,
        catalog: Optional[Catalog] = None,
        *,
        clock: Optional[Clock] = None,
        scheduler: Optional[Scheduler] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store if store is not None else build_store(self._settings)
        self._catalog = catalog if catalog is not None else load_catalog()
        self._clock: Clock = clock or local_now
        self._scheduler = scheduler
        self._assessment: Optional[AssessmentSession] = None
        # Held for every read-modify-write of stored documents; the assessment
        # timer commits from its own thread.
        self._lock = threading.RLock()
        self._last_assessment_result: Optional[ProgressionResult] = None

    @property
    def store(self) -> PersistenceStore:
        return self._store

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def assessment(self) -> Optional[AssessmentSession]:
        return self._assessment

    @property
    def last_assessment_result(self) -> Optional[ProgressionResult]:
        return self._last_assessment_result

    def today(self) -> date:
        return self._clock().date()

    # ------------------------------------------------------------------
    # Session and identity
    # ------------------------------------------------------------------

    def sign_in(self, email: str, password: str) -> LearnerState:
        """Cosmetic sign-in gate; raises :class:`SignInError` for bad form input."""
        address = validate_sign_in(email, password)
        with self._lock:
            self._store.write(USER_KEY, UserSession(email=address, login_at=self._clock()))
            existing = self._store.read(PROFILE_KEY, None, model=LearnerProfile)
            if existing is None or not existing.email:
                self._store.write(PROFILE_KEY, default_profile(address))
            logger.info("Signed in %s", address)
            return self.bootstrap()

    def current_user(self) -> Optional[UserSession]:
        return self._store.read(USER_KEY, None, model=UserSession)

    def is_signed_in(self) -> bool:
        return self.current_user() is not None

    def bootstrap(self) -> LearnerState:
        """Carry the streak forward for a new session; run before any view renders."""
        with self._lock:
            state = self._load()
            advanced = advance_streak(state, self.today())
            save_state(self._store, advanced)
        if advanced.streak != state.streak:
            emit_event(
                "streak_advanced",
                previous=state.streak.count,
                count=advanced.streak.count,
                last_date=advanced.streak.last_date,
            )
        return advanced

    def sign_out(self) -> None:
        with self._lock:
            self.leave_assessment()
            self._store.clear()
        emit_event("signed_out")

    def state(self) -> LearnerState:
        return self._load()

    def profile(self) -> LearnerProfile:
        user = self.current_user()
        fallback = default_profile(user.email if user else None)
        return self._store.read(PROFILE_KEY, fallback, model=LearnerProfile)

    def save_profile(
        self,
        *,
        name: Optional[str] = None,
        goal: Optional[str] = None,
        level: Optional[str] = None,
    ) -> LearnerProfile:
        with self._lock:
            updated = update_profile(self.profile(), name=name, goal=goal, level=level)
            self._store.write(PROFILE_KEY, updated)
        return updated

    def reset_profile(self) -> LearnerProfile:
        user = self.current_user()
        profile = default_profile(user.email if user else None)
        self._store.write(PROFILE_KEY, profile)
        return profile

    def theme(self) -> Theme:
        stored = self._store.read(THEME_KEY, None)
        if isinstance(stored, str):
            return parse_theme(stored)
        # Bare strings written before themes were JSON encoded.
        return parse_theme(self._store.read_text(THEME_KEY))

    def set_theme(self, theme: str) -> Theme:
        selected = parse_theme(theme)
        with self._lock:
            self._store.write(THEME_KEY, selected)
        return selected

    def cycle_theme(self) -> Theme:
        with self._lock:
            return self.set_theme(next_theme(self.theme()))

    # ------------------------------------------------------------------
    # Progression events
    # ------------------------------------------------------------------

    def select_course(self, course_id: str) -> ProgressionResult:
        return self._apply("course_selected", select_course, course_id, course_id=course_id)

    def complete_lesson_step(self, course_id: str) -> ProgressionResult:
        return self._apply("lesson_step_completed", complete_lesson_step, course_id, course_id=course_id)

    def boost_xp(self, amount: int = BOOSTER_XP) -> ProgressionResult:
        return self._apply("xp_boosted", grant_bonus_xp, amount)

    def toggle_roadmap_step(self, course_id: str, step_id: str) -> ProgressionResult:
        return self._apply(
            "roadmap_step_toggled",
            toggle_roadmap_step,
            course_id,
            step_id,
            course_id=course_id,
            step_id=step_id,
        )

    def answer_mcq(self, question_id: str, chosen_index: int) -> ProgressionResult:
        question = find_mcq(self._catalog, question_id)
        if question is None:
            return ProgressionResult(self._load())
        with self._lock:
            result = answer_mcq(self._load(), chosen_index, question)
            return self._commit("mcq_answered", result, question_id=question_id, correct=result.correct)

    def coding_question(self, question_id: Optional[str]) -> Optional[CodingQuestion]:
        return find_coding_question(self._catalog, question_id)

    def restore_coding_selection(self) -> Optional[str]:
        """The first question with a saved draft that still exists in the catalog."""
        for question_id in self._load().coding_drafts:
            if find_coding_question(self._catalog, question_id) is not None:
                return question_id
        return None

    def save_coding_draft(self, question_id: str, text: str) -> ProgressionResult:
        return self._apply("coding_draft_saved", save_coding_draft, question_id, text, question_id=question_id)

    def toggle_like(self, post_id: str) -> ProgressionResult:
        return self._apply("post_liked", toggle_like, post_id, post_id=post_id)

    def add_comment(self, post_id: str, text: str) -> ProgressionResult:
        return self._apply("comment_added", add_comment, post_id, text, post_id=post_id)

    def reset_progress(self) -> ProgressionResult:
        """Wipe learner progress; user, profile and theme documents are kept."""
        with self._lock:
            self.leave_assessment()
            result = reset_progress(self._load(), self.today(), self._settings.starter_xp)
            return self._commit("progress_reset", result)

    # ------------------------------------------------------------------
    # Timed assessment
    # ------------------------------------------------------------------

    def start_assessment(self, on_tick: Optional[Callable[[int], None]] = None) -> AssessmentSnapshot:
        with self._lock:
            self.leave_assessment()
            session = AssessmentSession(
                clock=self._clock,
                scheduler=self._scheduler,
                tick_seconds=self._settings.tick_seconds,
            )
            self._assessment = session
            self._last_assessment_result = None
        config = self._catalog.assessment
        emit_event(
            "assessment_started",
            question_count=len(config.questions),
            time_seconds=config.time_seconds,
        )
        return session.start(
            config.questions,
            config.time_seconds,
            on_submit=partial(self._record_outcome, session),
            on_tick=on_tick,
        )

    def record_assessment_answer(self, question_id: str, choice_index: Optional[int]) -> bool:
        if self._assessment is None:
            return False
        return self._assessment.record_answer(question_id, choice_index)

    def submit_assessment(self, auto: bool = False) -> Optional[AssessmentOutcome]:
        if self._assessment is None:
            return None
        return self._assessment.submit(auto=auto)

    def reset_assessment(self) -> None:
        if self._assessment is not None:
            self._assessment.reset()

    def leave_assessment(self) -> None:
        """Discard the attempt when the learner navigates away."""
        with self._lock:
            if self._assessment is not None:
                self._assessment.reset()
                self._assessment = None

    def _record_outcome(self, session: AssessmentSession, outcome: AssessmentOutcome) -> None:
        with self._lock:
            if session is not self._assessment:
                logger.info("Dropping outcome of a discarded assessment attempt")
                return
            result = record_assessment_result(
                self._load(),
                outcome.score_percent,
                outcome.bonus_xp,
                outcome.submitted_at,
            )
            self._last_assessment_result = self._commit(
                "assessment_submitted",
                result,
                score_percent=outcome.score_percent,
                auto=outcome.auto,
            )

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def dashboard(self) -> DashboardSummary:
        state = self._load()
        rank = compute_rank(state.xp)
        return DashboardSummary(
            streak_count=state.streak.count,
            xp=state.xp,
            rank=rank,
            rank_hint=rank_hint(rank),
            overall_progress=overall_progress(state, self._catalog.courses),
            enrolled_courses=len(self._catalog.courses),
            last_score=state.assessment.last_score,
            last_taken_at=state.assessment.last_taken_at,
        )

    def leaderboard(self) -> List[LeaderboardRow]:
        return build_leaderboard(self._catalog.leaderboard, self.profile().name, self._load().xp)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self) -> LearnerState:
        return load_state(self._store, self.today(), self._settings.starter_xp)

    def _apply(self, event: str, operation: Callable[..., ProgressionResult], *args: object, **fields: object) -> ProgressionResult:
        with self._lock:
            result = operation(self._load(), *args)
            return self._commit(event, result, **fields)

    def _commit(self, event: str, result: ProgressionResult, **fields: object) -> ProgressionResult:
        with self._lock:
            save_state(self._store, result.state)
        if result.xp_delta:
            emit_event("xp_awarded", source=event, amount=result.xp_delta, total=result.state.xp)
        emit_event(event, **fields)
        return result


__all__ = ["DashboardSummary", "LearnerContext", "local_now"]
