from __future__ import annotations

import pytest

from planforge.analysis import analyze_task, detect_features, determine_complexity
from planforge.schema import Complexity, ProjectType


def test_context_api_is_frontend_state_not_network_api() -> None:
    analysis = analyze_task("Build a React app with context API for state management")

    assert "frontend" in analysis.features
    assert "api" not in analysis.features
    assert analysis.project_type is ProjectType.WEB_APP
    assert analysis.has_frontend is True
    assert analysis.has_backend is False


def test_fullstack_with_context_api_and_rest_api_keeps_both_tags() -> None:
    analysis = analyze_task("Create a fullstack app with React context API and REST API endpoints")

    assert "frontend" in analysis.features
    assert "api" in analysis.features
    assert analysis.project_type is ProjectType.FULLSTACK


def test_empty_task_defaults_to_simple_web_app() -> None:
    analysis = analyze_task("")

    assert analysis.features == []
    assert analysis.project_type is ProjectType.WEB_APP
    assert analysis.complexity is Complexity.SIMPLE
    assert analysis.has_database is True
    assert analysis.has_frontend is True
    assert analysis.database_recommendation is not None
    assert analysis.frontend_recommendation is not None
    assert analysis.backend_recommendation is None


def test_single_word_keywords_require_word_boundaries() -> None:
    # "ui" sits inside "guide" and "builders" but is not a word on its own.
    assert detect_features("build a guide for builders") == []


def test_multi_word_keywords_match_as_phrases() -> None:
    features = detect_features("a dashboard with live updates and unit test coverage")

    assert "realtime" in features
    assert "testing" in features


@pytest.mark.parametrize(
    ("count", "expected"),
    [
        (0, Complexity.SIMPLE),
        (2, Complexity.SIMPLE),
        (3, Complexity.MEDIUM),
        (5, Complexity.MEDIUM),
        (6, Complexity.COMPLEX),
    ],
)
def test_complexity_thresholds(count: int, expected: Complexity) -> None:
    assert determine_complexity(count) is expected


def test_fastapi_service_is_an_api_with_python_backend() -> None:
    analysis = analyze_task("Build a FastAPI service with PostgreSQL database and user login")

    assert analysis.project_type is ProjectType.API
    assert analysis.features == ["auth", "database", "fastapi"]
    assert analysis.complexity is Complexity.MEDIUM
    assert analysis.has_fastapi is True
    assert analysis.has_backend is True
    assert analysis.has_frontend is False
    assert analysis.backend_recommendation is not None
    assert analysis.backend_recommendation.recommendation == "Python with FastAPI"


def test_fintech_flags_force_backend_and_database() -> None:
    analysis = analyze_task("Build a fintech loan management app with user login")

    assert analysis.features == ["auth", "fintech"]
    assert analysis.has_fintech is True
    assert analysis.has_backend is True
    assert analysis.has_database is True


def test_classification_is_case_insensitive() -> None:
    assert analyze_task("BUILD A REACT DASHBOARD") == analyze_task("build a react dashboard")
