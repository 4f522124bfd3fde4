"""Mentora learner progression and persisted-state engine."""

from .context import DashboardSummary, LearnerContext
from .state import LearnerState, default_state, load_state, save_state

__all__ = [
    "DashboardSummary",
    "LearnerContext",
    "LearnerState",
    "default_state",
    "load_state",
    "save_state",
]
