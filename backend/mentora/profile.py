"""Identity, profile and theme documents kept beside the learner state."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Literal, Optional, cast

from pydantic import BaseModel, ConfigDict, Field

from .errors import SignInError

Theme = Literal["auto", "light", "dark"]
THEMES = ("auto", "light", "dark")
_THEME_CYCLE = {"auto": "dark", "dark": "light", "light": "auto"}

MIN_PASSWORD_LENGTH = 6
DEFAULT_GOAL = "Become consistent and job-ready"
DEFAULT_LEVEL = "Beginner"

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class UserSession(BaseModel):
    """Marker written by the demo sign-in form; carries no credentials."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    login_at: datetime = Field(alias="loginAt")


class LearnerProfile(BaseModel):
    name: str = "Learner"
    email: Optional[str] = None
    goal: str = DEFAULT_GOAL
    level: str = DEFAULT_LEVEL


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_PATTERN.match(str(email).strip()))


def validate_sign_in(email: str, password: str) -> str:
    """Apply the demo form rules and return the trimmed email."""
    trimmed = str(email or "").strip()
    if not is_valid_email(trimmed):
        raise SignInError("Please enter a valid email address.", field="email")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise SignInError(
            f"Password should be at least {MIN_PASSWORD_LENGTH} characters (demo rule).",
            field="password",
        )
    return trimmed


def default_profile(email: Optional[str]) -> LearnerProfile:
    guess = email.split("@")[0] if email else "Learner"
    name = guess[:1].upper() + guess[1:]
    return LearnerProfile(name=name, email=email)


def update_profile(
    profile: LearnerProfile,
    *,
    name: Optional[str] = None,
    goal: Optional[str] = None,
    level: Optional[str] = None,
) -> LearnerProfile:
    update = {
        "name": (name or "").strip() or profile.name,
        "goal": (goal or "").strip() if goal is not None else profile.goal,
        "level": ((level or "").strip() or DEFAULT_LEVEL) if level is not None else profile.level,
    }
    return profile.model_copy(update=update)


def parse_theme(raw: Optional[str]) -> Theme:
    if raw in THEMES:
        return cast(Theme, raw)
    return "auto"


def next_theme(current: Optional[str]) -> Theme:
    return cast(Theme, _THEME_CYCLE[parse_theme(current)])


__all__ = [
    "LearnerProfile",
    "MIN_PASSWORD_LENGTH",
    "THEMES",
    "Theme",
    "UserSession",
    "default_profile",
    "is_valid_email",
    "next_theme",
    "parse_theme",
    "update_profile",
    "validate_sign_in",
]
