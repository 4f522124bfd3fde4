"""Tests for catalog loading and lookup helpers."""

from __future__ import annotations

import json
import random
from pathlib import Path

import httpx
import pytest

from mentora.catalog import (
    DEFAULT_QUOTE,
    FALLBACK_CATALOG,
    Catalog,
    coding_options,
    find_coding_question,
    find_course,
    find_mcq,
    load_catalog,
    parse_catalog,
    pick_mcq,
    pick_quote,
)

DOCUMENT = {
    "courses": [
        {"id": "py", "title": "Python Basics", "description": "Syntax and data types."},
        {"id": "sql", "title": "SQL Fundamentals"},
    ],
    "mcqs": [
        {"id": "m9", "question": "2 + 2?", "choices": ["3", "4"], "answerIndex": 1, "explain": "Arithmetic."}
    ],
    "coding": [
        {"id": "q7", "title": "FizzBuzz", "question": "Print fizzbuzz.", "sampleInput": "3", "sampleOutput": "Fizz"}
    ],
    "assessment": {
        "timeSeconds": 90,
        "questions": [{"id": "a9", "question": "True?", "choices": ["yes", "no"], "answerIndex": 0}],
    },
    "leaderboard": [{"name": "Ravi", "xp": 300}],
    "quotes": ["One lesson at a time."],
}


def test_load_catalog_from_file(tmp_path: Path) -> None:
    path = tmp_path / "data.json"
    path.write_text(json.dumps(DOCUMENT), encoding="utf-8")

    catalog = load_catalog(path)

    assert [course.id for course in catalog.courses] == ["py", "sql"]
    assert catalog.assessment.time_seconds == 90
    assert catalog.coding[0].sample_output == "Fizz"
    assert catalog.mcqs[0].explain == "Arithmetic."
    # Omitted sections come from the built-in catalog.
    assert catalog.roadmap == FALLBACK_CATALOG.roadmap
    assert catalog.community == FALLBACK_CATALOG.community


def test_load_catalog_uses_configured_source(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "data.json"
    path.write_text(json.dumps(DOCUMENT), encoding="utf-8")
    monkeypatch.setenv("MENTORA_CATALOG_SOURCE", str(path))

    assert load_catalog().courses[0].id == "py"


def test_load_catalog_over_http() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["cache"] = request.headers.get("Cache-Control")
        return httpx.Response(200, json=DOCUMENT)

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        catalog = load_catalog("https://example.test/data.json", client=client)

    assert seen["cache"] == "no-store"
    assert catalog.leaderboard[0].name == "Ravi"


def test_load_catalog_falls_back_on_http_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    with httpx.Client(transport=transport) as client:
        catalog = load_catalog("https://example.test/data.json", client=client)
    assert catalog == FALLBACK_CATALOG
    assert catalog is not FALLBACK_CATALOG


@pytest.mark.parametrize(
    "content",
    [
        "not json at all",
        json.dumps(["a", "list"]),
        json.dumps({"assessment": {"timeSeconds": "soon", "questions": []}}),
        json.dumps({"courses": [{"title": "missing id"}]}),
    ],
)
def test_load_catalog_falls_back_on_bad_documents(tmp_path: Path, content: str) -> None:
    path = tmp_path / "data.json"
    path.write_text(content, encoding="utf-8")
    assert load_catalog(path) == FALLBACK_CATALOG


def test_non_positive_time_limit_is_clamped(tmp_path: Path) -> None:
    path = tmp_path / "data.json"
    path.write_text(json.dumps({**DOCUMENT, "assessment": {"timeSeconds": 0, "questions": []}}), encoding="utf-8")

    catalog = load_catalog(path)

    assert catalog.assessment.time_seconds == 1
    assert catalog.courses[0].id == "py"
    assert parse_catalog({"assessment": {"timeSeconds": -30}}).assessment.time_seconds == 1


def test_load_catalog_falls_back_on_missing_file(tmp_path: Path) -> None:
    assert load_catalog(tmp_path / "absent.json") == FALLBACK_CATALOG


def test_load_catalog_without_source_returns_fallback_copy() -> None:
    catalog = load_catalog()
    catalog.courses.clear()
    assert FALLBACK_CATALOG.courses


def test_explicit_empty_section_is_kept() -> None:
    catalog = parse_catalog({"coding": []})
    assert catalog.coding == []
    assert coding_options(catalog) == []
    assert find_coding_question(catalog, "q1") is None


def test_lookup_helpers() -> None:
    catalog = parse_catalog(DOCUMENT)
    assert find_course(catalog, "sql").title == "SQL Fundamentals"
    assert find_course(catalog, "nope") is None
    assert find_course(catalog, None) is None
    assert find_mcq(catalog, "m9").answer_index == 1
    assert find_mcq(catalog, "m1") is None
    assert find_coding_question(catalog, "q7").title == "FizzBuzz"
    assert find_coding_question(catalog, "") is None
    assert coding_options(catalog) == [("q7", "FizzBuzz")]


def test_pickers() -> None:
    catalog = parse_catalog(DOCUMENT)
    assert pick_mcq(catalog, random.Random(3)).id == "m9"
    assert pick_quote(catalog, random.Random(3)) == "One lesson at a time."

    empty = Catalog()
    assert pick_mcq(empty) is None
    assert pick_quote(empty) == FALLBACK_CATALOG.quotes[0]
    assert DEFAULT_QUOTE == "Keep going."
