"""XP rank tiers and the leaderboard derived from them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .catalog import Course, LeaderboardEntry
from .state import LearnerState, clamp, round_half_up


@dataclass(frozen=True)
class RankTier:
    name: str
    floor: int
    ceiling: Optional[int]


RANK_TIERS: Sequence[RankTier] = (
    RankTier("Beginner", 0, 300),
    RankTier("Intermediate", 300, 700),
    RankTier("Advanced", 700, 1200),
    RankTier("Pro", 1200, None),
)


@dataclass(frozen=True)
class RankStatus:
    name: str
    floor: int
    ceiling: Optional[int]
    percent_to_next: float

    @property
    def is_top(self) -> bool:
        return self.ceiling is None


@dataclass(frozen=True)
class LeaderboardRow:
    position: int
    name: str
    xp: int
    rank: str
    is_you: bool


def compute_rank(xp: int) -> RankStatus:
    """Map an XP total to its tier and the percentage towards the next one."""
    xp = max(0, xp)
    tier = RANK_TIERS[0]
    for candidate in RANK_TIERS:
        if xp >= candidate.floor:
            tier = candidate
    if tier.ceiling is None:
        percent = 100.0
    else:
        percent = clamp(100 * (xp - tier.floor) / (tier.ceiling - tier.floor), 0, 100)
    return RankStatus(name=tier.name, floor=tier.floor, ceiling=tier.ceiling, percent_to_next=percent)


def rank_hint(status: RankStatus) -> str:
    if status.ceiling is None:
        return "You’re at the top level."
    return f"Next level at {status.ceiling} XP."


def build_leaderboard(
    entries: Iterable[LeaderboardEntry],
    learner_name: Optional[str],
    learner_xp: int,
) -> List[LeaderboardRow]:
    """Rank the catalog leaderboard together with the current learner."""
    you = learner_name or "You"
    board = [(entry.name, entry.xp, False) for entry in entries]
    board.append((you, learner_xp, True))
    board.sort(key=lambda row: row[1], reverse=True)
    return [
        LeaderboardRow(position=index, name=name, xp=xp, rank=compute_rank(xp).name, is_you=is_you)
        for index, (name, xp, is_you) in enumerate(board, start=1)
    ]


def overall_progress(state: LearnerState, courses: Sequence[Course]) -> int:
    if not courses:
        return 0
    total = sum(state.progress_for(course.id) for course in courses)
    return round_half_up(total / len(courses))


__all__ = [
    "LeaderboardRow",
    "RANK_TIERS",
    "RankStatus",
    "RankTier",
    "build_leaderboard",
    "compute_rank",
    "overall_progress",
    "rank_hint",
]
