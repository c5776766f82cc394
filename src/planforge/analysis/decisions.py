"""Rule tables and scoring for technology recommendations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Sequence

from ..schema import (
    Alternative,
    Complexity,
    ImplementationEstimate,
    ProjectType,
    TaskAnalysis,
    TechnologyComparison,
    Tradeoffs,
)

ScoreRule = Callable[[TaskAnalysis], float]

MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.95


def _clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    return max(lower, min(upper, value))


@dataclass(frozen=True)
class Candidate:
    """One technology competing on a decision axis."""

    recommendation: str
    score: ScoreRule
    reasoning: Sequence[str]
    pros: Sequence[str]
    cons: Sequence[str]
    alternatives: Sequence[Alternative] = field(default_factory=tuple)
    learning_curve: str = ""


def _sql_score(analysis: TaskAnalysis) -> float:
    score = 0.0
    if "auth" in analysis.features:
        score += 0.3
    if "payment" in analysis.features:
        score += 0.4
    if analysis.complexity is Complexity.COMPLEX:
        score += 0.3
    if analysis.has_auth:
        score += 0.2
    if analysis.has_fintech:
        score += 0.8
    if analysis.has_healthcare:
        score += 0.7
    if analysis.has_ecommerce:
        score += 0.5
    return _clamp(score)


def _nosql_score(analysis: TaskAnalysis) -> float:
    score = 0.0
    if "realtime" in analysis.features:
        score += 0.3
    if "analytics" in analysis.features:
        score += 0.4
    if analysis.complexity is Complexity.SIMPLE:
        score += 0.3
    if analysis.has_realtime:
        score += 0.2
    if analysis.has_fintech:
        score -= 0.6
    if analysis.has_healthcare:
        score -= 0.5
    return _clamp(score)


def _nodejs_score(analysis: TaskAnalysis) -> float:
    score = 0.0
    if analysis.has_frontend and not analysis.has_fastapi:
        score += 0.4
    if "realtime" in analysis.features:
        score += 0.3
    if analysis.complexity in (Complexity.SIMPLE, Complexity.MEDIUM):
        score += 0.3
    if analysis.has_fintech:
        score += 0.2
    return _clamp(score)


def _fastapi_score(analysis: TaskAnalysis) -> float:
    score = 0.0
    if analysis.has_fastapi:
        score += 0.5
    if "api" in analysis.features:
        score += 0.3
    if analysis.complexity is Complexity.COMPLEX:
        score += 0.2
    if analysis.has_fintech:
        score += 0.3
    return _clamp(score)


def _react_score(analysis: TaskAnalysis) -> float:
    score = 0.0
    if "frontend" in analysis.features:
        score += 0.4
    if analysis.project_type in (ProjectType.WEB_APP, ProjectType.FULLSTACK):
        score += 0.3
    if analysis.complexity in (Complexity.MEDIUM, Complexity.COMPLEX):
        score += 0.3
    return _clamp(score)


SQL = Candidate(
    recommendation="PostgreSQL",
    score=_sql_score,
    reasoning=(
        "Structured data with clear relationships",
        "ACID compliance for critical operations",
        "Complex queries with joins and aggregations",
        "Mature ecosystem with proven reliability",
    ),
    pros=("ACID compliance", "Complex queries with joins", "Mature ecosystem", "Excellent tooling", "Strong consistency"),
    cons=("Schema changes require migrations", "Primarily vertical scaling", "Less flexible for rapid changes"),
    alternatives=(
        Alternative(
            technology="MySQL",
            when_to_use="When you need a more established, widely-used SQL database",
            tradeoffs=["More mature ecosystem", "Better Windows support", "Less advanced features than PostgreSQL"],
        ),
        Alternative(
            technology="SQLite",
            when_to_use="For small applications or development/testing",
            tradeoffs=["Zero configuration", "Single file database", "Not suitable for production with multiple users"],
        ),
    ),
    learning_curve="Medium - SQL knowledge required",
)

NOSQL = Candidate(
    recommendation="MongoDB",
    score=_nosql_score,
    reasoning=(
        "Flexible schema for rapid development",
        "Horizontal scaling capabilities",
        "Good for document-based data",
        "JSON-like data structure",
    ),
    pros=("Flexible schema", "Horizontal scaling", "Fast development", "JSON-like data", "Good for prototyping"),
    cons=(
        "No ACID transactions",
        "Less mature tooling",
        "Can lead to data inconsistency",
        "Learning curve for complex queries",
    ),
    alternatives=(
        Alternative(
            technology="Cassandra",
            when_to_use="For massive scale and high availability requirements",
            tradeoffs=["Excellent horizontal scaling", "High availability", "Complex data modeling", "Steep learning curve"],
        ),
        Alternative(
            technology="Redis",
            when_to_use="For caching, sessions, or real-time data",
            tradeoffs=["Extremely fast", "In-memory storage", "Limited data types", "Not suitable as primary database"],
        ),
    ),
    learning_curve="Low - JSON-like structure",
)

NODEJS = Candidate(
    recommendation="Node.js with Express",
    score=_nodejs_score,
    reasoning=(
        "Same language as React frontend (JavaScript)",
        "Rich ecosystem with NPM packages",
        "Excellent for I/O-heavy applications",
        "Fast development with existing tooling",
    ),
    pros=("Same language as frontend", "Rich NPM ecosystem", "Fast development", "Good async performance", "Large community"),
    cons=("Single-threaded limitations", "Callback complexity", "Less suitable for CPU-intensive tasks"),
    alternatives=(
        Alternative(
            technology="Node.js with Fastify",
            when_to_use="When you need better performance than Express",
            tradeoffs=["Faster than Express", "Better TypeScript support", "Smaller ecosystem", "Less middleware"],
        ),
    ),
    learning_curve="Low if team knows JavaScript",
)

FASTAPI = Candidate(
    recommendation="Python with FastAPI",
    score=_fastapi_score,
    reasoning=(
        "Excellent performance for API-heavy applications",
        "Automatic API documentation",
        "Type safety with Pydantic",
        "Great async support",
    ),
    pros=("High performance", "Auto-generated docs", "Type safety", "Great async support", "Modern Python features"),
    cons=("Smaller ecosystem than Node.js", "Python learning curve if team is JS-focused", "Less mature than Express"),
    alternatives=(
        Alternative(
            technology="Python with Django",
            when_to_use="For full-stack applications with admin interface",
            tradeoffs=["Batteries included", "Admin interface", "Heavier framework", "More opinionated"],
        ),
        Alternative(
            technology="Python with Flask",
            when_to_use="For lightweight, flexible applications",
            tradeoffs=["Lightweight", "Flexible", "More manual setup", "Less features out of the box"],
        ),
    ),
    learning_curve="Medium - Python learning curve",
)

REACT = Candidate(
    recommendation="React with TypeScript",
    score=_react_score,
    reasoning=(
        "Most popular and mature frontend framework",
        "Large ecosystem and community",
        "Component-based architecture",
        "Excellent tooling and development experience",
    ),
    pros=("Large ecosystem", "Component-based", "Great tooling", "Strong community", "Flexible"),
    cons=("Learning curve", "Rapid changes", "Can be overkill for simple apps"),
    alternatives=(
        Alternative(
            technology="Vue.js",
            when_to_use="For teams wanting a gentler learning curve",
            tradeoffs=["Easier to learn", "Good documentation", "Smaller ecosystem", "Less job market"],
        ),
        Alternative(
            technology="Svelte",
            when_to_use="For performance-critical applications",
            tradeoffs=["Better performance", "Smaller bundle size", "Smaller ecosystem", "Less mature"],
        ),
    ),
    learning_curve="Medium - Component-based thinking required",
)

FINTECH_SQL_REASONING = (
    "ACID compliance essential for financial transactions",
    "Regulatory compliance (SOX, PCI DSS) requirements",
    "Audit trails and transaction logging capabilities",
    "Data integrity critical for financial calculations",
    "Complex financial reporting with joins and aggregations",
)

DATABASE_TIMELINES = {
    Complexity.SIMPLE: "1-2 days",
    Complexity.MEDIUM: "3-5 days",
    Complexity.COMPLEX: "1-2 weeks",
}

BACKEND_TIMELINES = {
    Complexity.SIMPLE: "1-2 weeks",
    Complexity.MEDIUM: "2-3 weeks",
    Complexity.COMPLEX: "3-6 weeks",
}

FRONTEND_TIMELINES = {
    Complexity.SIMPLE: "1-2 weeks",
    Complexity.MEDIUM: "2-4 weeks",
    Complexity.COMPLEX: "4-8 weeks",
}

_IMPLEMENTATION_TIERS = {
    Complexity.SIMPLE: "low",
    Complexity.MEDIUM: "medium",
    Complexity.COMPLEX: "high",
}


def _decisiveness(first: float, second: float) -> float:
    difference = abs(first - second)
    if difference > 0.5:
        return 0.1
    if difference < 0.2:
        return -0.1
    return 0.0


def _finalise_confidence(value: float) -> float:
    return round(_clamp(value, MIN_CONFIDENCE, MAX_CONFIDENCE), 2)


class DecisionEngine:
    """Score competing technologies for each axis of a task analysis.

    Ties go to the first-listed candidate: SQL before NoSQL, Node.js before FastAPI.
    """

    def analyze_database(self, analysis: TaskAnalysis) -> TechnologyComparison:
        sql_score = SQL.score(analysis)
        nosql_score = NOSQL.score(analysis)
        is_sql = sql_score >= nosql_score
        winner = SQL if is_sql else NOSQL

        confidence = max(sql_score, nosql_score)
        if is_sql:
            if analysis.has_fintech:
                confidence += 0.2
            if analysis.has_healthcare:
                confidence += 0.15
            if analysis.has_ecommerce:
                confidence += 0.1
            if analysis.has_auth:
                confidence += 0.1
            if "payment" in analysis.features:
                confidence += 0.15
            if analysis.complexity is Complexity.COMPLEX:
                confidence += 0.1
        else:
            if analysis.has_fintech:
                confidence -= 0.3
            if analysis.has_healthcare:
                confidence -= 0.25
        confidence += _decisiveness(sql_score, nosql_score)

        reasoning: Sequence[str] = winner.reasoning
        if analysis.has_fintech and is_sql:
            reasoning = FINTECH_SQL_REASONING

        return self._build(winner, analysis, confidence, DATABASE_TIMELINES, reasoning=reasoning)

    def analyze_backend(self, analysis: TaskAnalysis) -> TechnologyComparison:
        nodejs_score = NODEJS.score(analysis)
        fastapi_score = FASTAPI.score(analysis)
        is_nodejs = nodejs_score >= fastapi_score
        winner = NODEJS if is_nodejs else FASTAPI

        confidence = max(nodejs_score, fastapi_score)
        if is_nodejs:
            if analysis.has_frontend:
                confidence += 0.15
            if analysis.has_realtime:
                confidence += 0.1
        else:
            if analysis.has_fintech:
                confidence += 0.1
            if "api" in analysis.features:
                confidence += 0.1
            if analysis.complexity is Complexity.COMPLEX:
                confidence += 0.05
        if analysis.has_fastapi:
            confidence += 0.2
        confidence += _decisiveness(nodejs_score, fastapi_score)

        return self._build(winner, analysis, confidence, BACKEND_TIMELINES)

    def analyze_frontend(self, analysis: TaskAnalysis) -> TechnologyComparison:
        confidence = REACT.score(analysis)
        if analysis.project_type in (ProjectType.WEB_APP, ProjectType.FULLSTACK):
            confidence += 0.1
        if analysis.complexity in (Complexity.MEDIUM, Complexity.COMPLEX):
            confidence += 0.1
        if analysis.has_realtime:
            confidence += 0.05
        if analysis.has_backend:
            confidence += 0.05

        return self._build(REACT, analysis, confidence, FRONTEND_TIMELINES)

    @staticmethod
    def _build(
        candidate: Candidate,
        analysis: TaskAnalysis,
        confidence: float,
        timelines: dict[Complexity, str],
        *,
        reasoning: Sequence[str] | None = None,
    ) -> TechnologyComparison:
        reasons: List[str] = list(reasoning if reasoning is not None else candidate.reasoning)
        return TechnologyComparison(
            recommendation=candidate.recommendation,
            confidence=_finalise_confidence(confidence),
            reasoning=reasons,
            tradeoffs=Tradeoffs(pros=list(candidate.pros), cons=list(candidate.cons)),
            alternatives=list(candidate.alternatives),
            implementation=ImplementationEstimate(
                complexity=_IMPLEMENTATION_TIERS[analysis.complexity],
                timeline=timelines[analysis.complexity],
                learning_curve=candidate.learning_curve,
            ),
        )


__all__ = ["Candidate", "DecisionEngine", "MAX_CONFIDENCE", "MIN_CONFIDENCE"]
