"""Deterministic rule-based planner that turns a task into a phased plan."""

from __future__ import annotations

import time
from typing import Callable, List, Optional

from ..analysis.analyzer import analyze_task
from ..schema import Complexity, GenerationMethod, Phase, Plan, ProjectType, TaskAnalysis
from .templates import (
    auth_phase,
    backend_phase,
    database_phase,
    frontend_phase,
    setup_phase,
    testing_phase,
)

IdFactory = Callable[[], str]


def timestamp_plan_id() -> str:
    """Default plan identifier embedding the current epoch milliseconds."""
    return f"plan-{int(time.time() * 1000)}"


def generate_phases(analysis: TaskAnalysis) -> List[Phase]:
    """Emit phases in pipeline order: setup, [database], [auth], [backend], [frontend], testing."""
    phases = [setup_phase(analysis)]
    if analysis.has_database:
        phases.append(database_phase(analysis))
    if analysis.has_auth:
        phases.append(auth_phase(analysis))
    if analysis.has_backend:
        phases.append(backend_phase(analysis))
    if analysis.has_frontend:
        phases.append(frontend_phase(analysis))
    phases.append(testing_phase(analysis))
    return phases


def determine_tech_stack(analysis: TaskAnalysis) -> List[str]:
    """Advisory technology list; duplicates are possible when rules overlap."""
    fastapi = analysis.has_fastapi
    stack: List[str] = ["Python", "FastAPI", "Uvicorn"] if fastapi else ["TypeScript", "Node.js"]

    if analysis.has_frontend:
        stack.extend(["React", "Tailwind CSS"])

    if analysis.has_backend:
        if not fastapi:
            stack.append("Express.js")
        elif analysis.has_database:
            stack.append("SQLAlchemy")

    if analysis.has_database:
        stack.extend(["PostgreSQL", "SQLAlchemy"] if fastapi else ["PostgreSQL", "Prisma"])

    if analysis.has_auth:
        stack.extend(["JWT", "python-jose", "passlib"] if fastapi else ["JWT", "bcrypt"])

    if analysis.has_realtime:
        stack.append("WebSockets" if fastapi else "Socket.io")

    stack.extend(["pytest", "black", "flake8"] if fastapi else ["Jest", "ESLint", "Prettier"])
    return stack


def identify_risks(analysis: TaskAnalysis) -> List[str]:
    risks: List[str] = []
    if analysis.complexity is Complexity.COMPLEX:
        risks.append("High complexity may require additional planning and testing")
    if analysis.has_auth:
        risks.append("Security considerations for user authentication and data protection")
    if analysis.has_database:
        risks.append("Database schema changes may require careful migration planning")
    if analysis.has_realtime:
        risks.append("Real-time features may require additional infrastructure considerations")
    if "payment" in analysis.features:
        risks.append("Payment integration requires PCI compliance and secure handling")
    if analysis.project_type is ProjectType.FULLSTACK:
        risks.append("Full-stack development requires coordination between frontend and backend teams")
    return risks


def render_overview(analysis: TaskAnalysis, phase_count: int) -> str:
    return (
        f"Implementation plan with {phase_count} phases. Each phase contains detailed file-level "
        f"instructions for building a {analysis.project_type.value} with "
        f"{', '.join(analysis.features)} features."
    )


class Planner:
    """Build plans from task text with an injectable plan-id source."""

    def __init__(self, *, id_factory: Optional[IdFactory] = None) -> None:
        self._id_factory = id_factory or timestamp_plan_id

    def plan(self, task: str, *, analysis: Optional[TaskAnalysis] = None) -> Plan:
        """Return the rule-based plan for ``task``; ``analysis`` skips re-analysis when supplied."""
        analysis = analysis or analyze_task(task)
        phases = generate_phases(analysis)
        return Plan(
            id=self._id_factory(),
            task=task,
            overview=render_overview(analysis, len(phases)),
            phases=phases,
            tech_stack=determine_tech_stack(analysis),
            risks=identify_risks(analysis),
            generation_method=GenerationMethod.RULE_BASED,
        )


def plan_task(task: str, *, id_factory: Optional[IdFactory] = None) -> Plan:
    """Convenience wrapper around :class:`Planner` for one-off calls."""
    return Planner(id_factory=id_factory).plan(task)


__all__ = [
    "IdFactory",
    "Planner",
    "determine_tech_stack",
    "generate_phases",
    "identify_risks",
    "plan_task",
    "render_overview",
    "timestamp_plan_id",
]
