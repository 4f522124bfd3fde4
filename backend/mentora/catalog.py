"""Read-only course catalog consumed by the engine and the view layer.

The catalog is an external document (``data.json`` in the demo). Loading it
never fails: any fetch, decode or validation problem yields the built-in
``FALLBACK_CATALOG``.
"""

from __future__ import annotations

import json
import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_QUOTE = "Keep going."


class _CatalogModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Course(_CatalogModel):
    id: str
    title: str
    description: str = ""
    lesson_title: Optional[str] = Field(default=None, alias="lessonTitle")
    lesson_body: Optional[str] = Field(default=None, alias="lessonBody")


class Question(_CatalogModel):
    id: str
    question: str
    choices: List[str] = Field(default_factory=list)
    answer_index: int = Field(alias="answerIndex")


class McqQuestion(Question):
    explain: Optional[str] = None


class CodingQuestion(_CatalogModel):
    id: str
    title: str
    question: str
    sample_input: str = Field(default="", alias="sampleInput")
    sample_output: str = Field(default="", alias="sampleOutput")


class AssessmentConfig(_CatalogModel):
    time_seconds: int = Field(default=60, ge=1, alias="timeSeconds")
    questions: List[Question] = Field(default_factory=list)

    @field_validator("time_seconds", mode="before")
    @classmethod
    def _at_least_one_second(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return max(1, int(value))
        return value


class RoadmapStep(_CatalogModel):
    id: str
    title: str
    desc: str = ""


class CommunityPost(_CatalogModel):
    id: str
    author: str
    title: str
    body: str = ""


class LeaderboardEntry(_CatalogModel):
    name: str
    xp: int = Field(ge=0)


class Catalog(_CatalogModel):
    courses: List[Course] = Field(default_factory=list)
    mcqs: List[McqQuestion] = Field(default_factory=list)
    coding: List[CodingQuestion] = Field(default_factory=list)
    assessment: AssessmentConfig = Field(default_factory=AssessmentConfig)
    roadmap: List[RoadmapStep] = Field(default_factory=list)
    community: List[CommunityPost] = Field(default_factory=list)
    leaderboard: List[LeaderboardEntry] = Field(default_factory=list)
    quotes: List[str] = Field(default_factory=list)


FALLBACK_CATALOG = Catalog.model_validate(
    {
        "courses": [
            {
                "id": "c1",
                "title": "Frontend Foundations",
                "description": "HTML, CSS, and JavaScript essentials to build real interfaces.",
                "lessonTitle": "Your first responsive layout",
                "lessonBody": (
                    "In this lesson, you'll build a simple responsive layout using flexible grids, "
                    "spacing, and accessible UI patterns."
                ),
            }
        ],
        "mcqs": [
            {
                "id": "m1",
                "question": "Which HTML element is best for the main navigation links?",
                "choices": ["<div>", "<nav>", "<span>", "<section>"],
                "answerIndex": 1,
                "explain": "<nav> semantically represents navigation links.",
            }
        ],
        "coding": [
            {
                "id": "q1",
                "title": "Reverse a string",
                "question": "Given a string s, return the reversed string.",
                "sampleInput": "hello",
                "sampleOutput": "olleh",
            }
        ],
        "assessment": {
            "timeSeconds": 60,
            "questions": [
                {
                    "id": "a1",
                    "question": "What does LocalStorage store values as?",
                    "choices": ["Numbers", "Objects", "Strings", "Booleans"],
                    "answerIndex": 2,
                }
            ],
        },
        "roadmap": [
            {"id": "r1", "title": "Step 1: Basics", "desc": "HTML, CSS, JS fundamentals."},
            {"id": "r2", "title": "Step 2: Intermediate", "desc": "Patterns, async JS, tooling basics."},
            {"id": "r3", "title": "Step 3: Projects", "desc": "Build portfolio apps with clean UI."},
        ],
        "community": [
            {
                "id": "p1",
                "author": "MENTORA Team",
                "title": "Welcome to the community",
                "body": "Share your progress, ask questions, and learn together!",
            }
        ],
        "leaderboard": [
            {"name": "Ishaan", "xp": 980},
            {"name": "Sana", "xp": 720},
            {"name": "Karthik", "xp": 540},
            {"name": "Nila", "xp": 410},
        ],
        "quotes": ["Small steps every day add up to big results."],
    }
)


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _fetch_document(source: str, timeout: float, client: Optional[httpx.Client]) -> Any:
    if _is_url(source):
        headers = {"Cache-Control": "no-store"}
        if client is not None:
            response = client.get(source, headers=headers, timeout=timeout)
        else:
            response = httpx.get(source, headers=headers, timeout=timeout)
        response.raise_for_status()
        return response.json()
    return json.loads(Path(source).read_text(encoding="utf-8"))


def parse_catalog(document: Any) -> Catalog:
    """Validate a catalog document; sections it omits come from the fallback."""
    if not isinstance(document, dict):
        raise ValueError("Catalog document must be a JSON object.")
    merged: Dict[str, Any] = FALLBACK_CATALOG.model_dump(by_alias=True)
    merged.update({key: value for key, value in document.items() if value is not None})
    return Catalog.model_validate(merged)


def load_catalog(
    source: Union[str, Path, None] = None,
    *,
    timeout: Optional[float] = None,
    client: Optional[httpx.Client] = None,
) -> Catalog:
    settings = get_settings()
    if source is None:
        source = settings.catalog_source
    if source is None or str(source).strip() == "":
        return FALLBACK_CATALOG.model_copy(deep=True)

    location = str(source)
    try:
        document = _fetch_document(location, timeout or settings.catalog_timeout, client)
        catalog = parse_catalog(document)
    except (httpx.HTTPError, OSError, ValueError, ValidationError) as exc:
        logger.warning("Catalog unavailable from %s, using built-in data: %s", location, exc)
        return FALLBACK_CATALOG.model_copy(deep=True)

    logger.info("Loaded catalog from %s (%d courses)", location, len(catalog.courses))
    return catalog


def find_course(catalog: Catalog, course_id: Optional[str]) -> Optional[Course]:
    return next((course for course in catalog.courses if course.id == course_id), None)


def find_mcq(catalog: Catalog, question_id: str) -> Optional[McqQuestion]:
    return next((question for question in catalog.mcqs if question.id == question_id), None)


def find_coding_question(catalog: Catalog, question_id: Optional[str]) -> Optional[CodingQuestion]:
    if not question_id:
        return None
    return next((question for question in catalog.coding if question.id == question_id), None)


def coding_options(catalog: Catalog) -> List[Tuple[str, str]]:
    return [(question.id, question.title) for question in catalog.coding]


def pick_mcq(catalog: Catalog, rng: Optional[random.Random] = None) -> Optional[McqQuestion]:
    if not catalog.mcqs:
        return None
    return (rng or random).choice(catalog.mcqs)


def pick_quote(catalog: Catalog, rng: Optional[random.Random] = None) -> str:
    quotes = catalog.quotes or FALLBACK_CATALOG.quotes
    if not quotes:
        return DEFAULT_QUOTE
    return (rng or random).choice(quotes)


__all__ = [
    "AssessmentConfig",
    "Catalog",
    "CodingQuestion",
    "CommunityPost",
    "Course",
    "FALLBACK_CATALOG",
    "LeaderboardEntry",
    "McqQuestion",
    "Question",
    "RoadmapStep",
    "coding_options",
    "find_coding_question",
    "find_course",
    "find_mcq",
    "load_catalog",
    "parse_catalog",
    "pick_mcq",
    "pick_quote",
]
