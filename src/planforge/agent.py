"""Deterministic stand-in for an execution agent: canned reports keyed by phase topic."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence, Tuple

from .schema import AgentResult, Phase


@dataclass(frozen=True, slots=True)
class AgentReport:
    title: str
    sections: Tuple[Tuple[str, Tuple[str, ...]], ...]
    default_time: str


def _matches(name_terms: Sequence[str], description_terms: Sequence[str]) -> Callable[[str, str], bool]:
    def predicate(name: str, description: str) -> bool:
        return any(term in name for term in name_terms) or any(term in description for term in description_terms)

    return predicate


SETUP_REPORT = AgentReport(
    title="Project Setup Complete",
    sections=(
        (
            "Key actions performed",
            (
                "Initialized the project with its toolchain",
                "Configured build scripts and development environment",
                "Set up linting and formatting for code quality",
                "Created basic project structure",
            ),
        ),
        (
            "Next steps",
            (
                "Review the generated manifest and adjust dependencies as needed",
                "Configure environment variables",
                "Set up version control (git init, .gitignore)",
            ),
        ),
    ),
    default_time="30 minutes",
)

AUTH_REPORT = AgentReport(
    title="Authentication System Implemented",
    sections=(
        (
            "Key features implemented",
            (
                "JWT token-based authentication",
                "Password hashing with a slow adaptive hash",
                "Role-based access control middleware",
                "Login/register endpoints with validation",
                "Token refresh mechanism",
            ),
        ),
        (
            "Security considerations",
            (
                "Passwords are hashed with salt rounds",
                "JWT tokens have expiration and refresh logic",
                "Rate limiting on auth endpoints",
                "Input validation and sanitization",
            ),
        ),
    ),
    default_time="60 minutes",
)

DATABASE_REPORT = AgentReport(
    title="Database Schema Created",
    sections=(
        (
            "Database structure",
            (
                "Primary tables with proper relationships",
                "Indexes for performance optimization",
                "Migration scripts with rollback support",
                "Data seeding for development",
            ),
        ),
        (
            "Key tables created",
            (
                "Users (id, email, password_hash, created_at)",
                "Sessions (id, user_id, token, expires_at)",
                "Additional tables based on domain requirements",
            ),
        ),
    ),
    default_time="45 minutes",
)

BACKEND_REPORT = AgentReport(
    title="Backend API Developed",
    sections=(
        (
            "API endpoints created",
            (
                "RESTful routes with proper HTTP methods",
                "Request validation and error handling",
                "Middleware for authentication and logging",
                "CORS configuration for frontend integration",
            ),
        ),
        (
            "Key features",
            (
                "Structured error handling",
                "Request/response logging",
                "Health check endpoints",
            ),
        ),
    ),
    default_time="90 minutes",
)

FRONTEND_REPORT = AgentReport(
    title="Frontend Components Built",
    sections=(
        (
            "React components created",
            (
                "Main application structure",
                "Responsive layout with Tailwind CSS",
                "Form components with validation",
                "Navigation and routing setup",
            ),
        ),
        (
            "Key features",
            (
                "Modern React with TypeScript",
                "Form handling with validation",
                "State management setup",
            ),
        ),
    ),
    default_time="120 minutes",
)

TEST_REPORT = AgentReport(
    title="Test Suite Implemented",
    sections=(
        (
            "Test coverage",
            (
                "Unit tests for core functions",
                "Integration tests for API endpoints",
                "Component tests for UI components",
                "End-to-end test scenarios",
            ),
        ),
        (
            "Testing setup",
            (
                "Test runner configuration",
                "Test utilities and mocks",
                "Coverage reporting",
                "CI/CD integration ready",
            ),
        ),
    ),
    default_time="60 minutes",
)

GENERIC_REPORT = AgentReport(
    title="Phase Implementation Complete",
    sections=(
        (
            "Implementation details",
            (
                "All specified files have been created",
                "Code follows best practices and conventions",
                "Proper error handling implemented",
                "Documentation and comments added",
            ),
        ),
        (
            "Next steps",
            (
                "Review generated code",
                "Run tests to ensure functionality",
                "Deploy to development environment",
            ),
        ),
    ),
    default_time="60 minutes",
)

# First match wins.
REPORT_RULES: Tuple[Tuple[Callable[[str, str], bool], AgentReport], ...] = (
    (_matches(("setup", "scaffold"), ()), SETUP_REPORT),
    (_matches(("auth",), ("authentication",)), AUTH_REPORT),
    (_matches(("database",), ("database",)), DATABASE_REPORT),
    (_matches(("backend", "api"), ()), BACKEND_REPORT),
    (_matches(("frontend",), ("frontend",)), FRONTEND_REPORT),
    (_matches(("test",), ("test",)), TEST_REPORT),
)


def select_report(phase: Phase) -> AgentReport:
    name = phase.name.lower()
    description = phase.description.lower()
    for predicate, report in REPORT_RULES:
        if predicate(name, description):
            return report
    return GENERIC_REPORT


def render_report(report: AgentReport, phase: Phase) -> str:
    lines = [report.title, "", "Generated files:"]
    lines.extend(f"- {change.path}" for change in phase.files)
    for heading, bullets in report.sections:
        lines.extend(["", f"{heading}:"])
        lines.extend(f"- {bullet}" for bullet in bullets)
    if report is GENERIC_REPORT:
        lines.extend(["", "Key accomplishments:", f"- {phase.description}"])
    lines.extend(["", f"Estimated completion time: {phase.estimated_time or report.default_time}"])
    return "\n".join(lines)


def run_agent(phase: Phase) -> AgentResult:
    """Pretend to execute ``phase`` and return a canned report; always succeeds."""
    return AgentResult(step_id=phase.id, success=True, output=render_report(select_report(phase), phase))


__all__ = ["AgentReport", "run_agent", "select_report"]
