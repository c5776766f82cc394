"""Keyword classification of free-text task descriptions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, List, Optional, Pattern, Sequence

from ..schema import Complexity, ProjectType, TaskAnalysis
from .decisions import DecisionEngine

TextPredicate = Callable[[str], bool]

REST_API_PHRASES: tuple[str, ...] = ("rest api", "rest endpoint", "backend api", "server api")
FRONTEND_STATE_PHRASES: tuple[str, ...] = ("context api", "state management")


def _contains_any(*needles: str) -> TextPredicate:
    return lambda text: any(needle in text for needle in needles)


def _contains_all(*needles: str) -> TextPredicate:
    return lambda text: all(needle in text for needle in needles)


def _either(*predicates: TextPredicate) -> TextPredicate:
    return lambda text: any(predicate(text) for predicate in predicates)


@dataclass(frozen=True)
class ProjectTypeRule:
    """Predicate that assigns a project type when it matches."""

    project_type: ProjectType
    matches: TextPredicate
    label: str


# Evaluated top to bottom; the first match wins.
PROJECT_TYPE_RULES: tuple[ProjectTypeRule, ...] = (
    ProjectTypeRule(
        ProjectType.FULLSTACK,
        _either(
            _contains_all("frontend", "backend"),
            _contains_all("react", "node"),
            _contains_all("frontend", "node"),
            _contains_any("fullstack", "full-stack", "full stack"),
        ),
        "fullstack-combination",
    ),
    ProjectTypeRule(ProjectType.WEB_APP, _contains_any("context api", "react", "component"), "frontend-literal"),
    ProjectTypeRule(
        ProjectType.LIBRARY,
        _contains_any("library", "package", "module", "sdk", "framework"),
        "library-literal",
    ),
    ProjectTypeRule(
        ProjectType.WEB_APP,
        _contains_any("app", "website", "dashboard", "platform", "portal", "web app", "webapp"),
        "web-app-keyword",
    ),
    ProjectTypeRule(
        ProjectType.API,
        _contains_any(*REST_API_PHRASES, "rest", "endpoint", "service", "backend", "server"),
        "api-keyword",
    ),
    ProjectTypeRule(
        ProjectType.CLI,
        _contains_any("command", "terminal", "cli", "tool", "script", "command line"),
        "cli-keyword",
    ),
    ProjectTypeRule(
        ProjectType.LIBRARY,
        _contains_any("library", "package", "module", "sdk", "framework"),
        "library-keyword",
    ),
    ProjectTypeRule(
        ProjectType.FULLSTACK,
        _contains_any("full", "fullstack", "full-stack", "complete", "full stack"),
        "fullstack-keyword",
    ),
)

DEFAULT_PROJECT_TYPE = ProjectType.WEB_APP


@dataclass(frozen=True)
class FeatureRule:
    """Feature tag with the keywords that signal it."""

    tag: str
    keywords: Sequence[str]


FEATURE_RULES: tuple[FeatureRule, ...] = (
    FeatureRule(
        "auth",
        ("auth", "login", "signup", "user", "account", "register", "authentication", "authorization"),
    ),
    FeatureRule(
        "database",
        ("database", "data", "store", "persist", "sql", "postgres", "mysql", "mongodb", "db"),
    ),
    FeatureRule(
        "realtime",
        ("realtime", "websocket", "live", "socket", "real-time", "real time", "live updates"),
    ),
    FeatureRule(
        "api",
        (
            "rest api",
            "rest endpoint",
            "backend api",
            "server api",
            "api endpoint",
            "graphql",
            "routes",
            "express",
            "fastify",
            "backend",
            "node",
            "nodejs",
            "server",
        ),
    ),
    FeatureRule("fastapi", ("fastapi", "fast api", "python api", "python backend", "uvicorn")),
    FeatureRule(
        "frontend",
        ("frontend", "ui", "interface", "react", "component", "vue", "angular", "context api", "state management"),
    ),
    FeatureRule("testing", ("test", "testing", "jest", "unit test", "integration test", "e2e")),
    FeatureRule("payment", ("payment", "stripe", "checkout", "billing", "paypal", "credit card")),
    FeatureRule("email", ("email", "mail", "notification", "smtp", "sendgrid")),
    FeatureRule("file", ("file", "upload", "download", "storage", "s3", "cloudinary")),
    FeatureRule("search", ("search", "elasticsearch", "algolia", "query")),
    FeatureRule("cache", ("cache", "redis", "memcached", "caching")),
    FeatureRule("monitoring", ("monitoring", "analytics", "logging", "metrics", "tracking")),
    FeatureRule(
        "fintech",
        (
            "fintech",
            "financial",
            "banking",
            "loan",
            "credit",
            "mortgage",
            "investment",
            "trading",
            "crypto",
            "blockchain",
            "payment processing",
            "compliance",
            "audit",
            "transaction",
        ),
    ),
    FeatureRule(
        "healthcare",
        ("healthcare", "medical", "patient", "hospital", "clinic", "pharmacy", "hipaa", "health records"),
    ),
    FeatureRule(
        "ecommerce",
        ("ecommerce", "e-commerce", "shopping", "retail", "inventory", "catalog", "cart", "checkout"),
    ),
)

BLOG_HINTS: tuple[str, ...] = ("blog", "posts", "comments")


@lru_cache(maxsize=None)
def _word_pattern(keyword: str) -> Pattern[str]:
    return re.compile(rf"\b{re.escape(keyword)}\b")


def keyword_matches(text: str, keyword: str) -> bool:
    """Multi-word keywords match as substrings; single words must sit on word boundaries."""
    if " " in keyword:
        return keyword in text
    return _word_pattern(keyword).search(text) is not None


def detect_project_type(text: str) -> ProjectType:
    """Classify lowercased ``text`` using ``PROJECT_TYPE_RULES`` in order."""
    for rule in PROJECT_TYPE_RULES:
        if rule.matches(text):
            return rule.project_type
    return DEFAULT_PROJECT_TYPE


def detect_features(text: str) -> List[str]:
    """Return the feature tags found in lowercased ``text``, without duplicates."""
    detected: List[str] = []
    if any(phrase in text for phrase in FRONTEND_STATE_PHRASES):
        detected.append("frontend")
    mentions_context_api = "context api" in text

    for rule in FEATURE_RULES:
        if rule.tag in detected:
            continue
        # "context api" is React state, not a network API.
        if rule.tag == "api" and mentions_context_api:
            continue
        if any(keyword_matches(text, keyword) for keyword in rule.keywords):
            detected.append(rule.tag)

    if "api" not in detected and any(phrase in text for phrase in REST_API_PHRASES):
        detected.append("api")
    return detected


def determine_complexity(feature_count: int) -> Complexity:
    if feature_count <= 2:
        return Complexity.SIMPLE
    if feature_count <= 5:
        return Complexity.MEDIUM
    return Complexity.COMPLEX


def _needs_backend(text: str, project_type: ProjectType, features: Sequence[str]) -> bool:
    if any(tag in features for tag in ("api", "fastapi", "auth", "fintech", "ecommerce")):
        return True
    if project_type in (ProjectType.API, ProjectType.FULLSTACK):
        return True
    if "backend" in text:
        return True
    if project_type is ProjectType.WEB_APP:
        return "database" in features or any(hint in text for hint in BLOG_HINTS)
    return False


def analyze_task(text: str, *, engine: Optional[DecisionEngine] = None) -> TaskAnalysis:
    """Classify ``text`` into a :class:`TaskAnalysis` with technology recommendations."""
    lowered = text.lower()
    project_type = detect_project_type(lowered)
    features = detect_features(lowered)
    full_web = project_type in (ProjectType.WEB_APP, ProjectType.FULLSTACK)

    base = TaskAnalysis(
        project_type=project_type,
        features=features,
        complexity=determine_complexity(len(features)),
        has_auth="auth" in features,
        has_database="database" in features or "auth" in features or full_web,
        has_frontend="frontend" in features or full_web,
        has_backend=_needs_backend(lowered, project_type, features),
        has_realtime="realtime" in features,
        has_fastapi="fastapi" in features,
        has_fintech="fintech" in features,
        has_healthcare="healthcare" in features,
        has_ecommerce="ecommerce" in features,
    )

    engine = engine or DecisionEngine()
    updates = {}
    if base.has_database:
        updates["database_recommendation"] = engine.analyze_database(base)
    if base.has_backend:
        updates["backend_recommendation"] = engine.analyze_backend(base)
    if base.has_frontend:
        updates["frontend_recommendation"] = engine.analyze_frontend(base)
    return base.model_copy(update=updates) if updates else base


__all__ = [
    "FEATURE_RULES",
    "FeatureRule",
    "PROJECT_TYPE_RULES",
    "ProjectTypeRule",
    "analyze_task",
    "detect_features",
    "detect_project_type",
    "determine_complexity",
    "keyword_matches",
]
