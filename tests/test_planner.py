from __future__ import annotations

import pytest

from planforge.planning import PHASE_SEQUENCE, Planner, plan_task
from planforge.schema import GenerationMethod, PhaseStatus

TASKS = [
    "",
    "Build a todo app",
    "Build a React app with context API for state management",
    "Create a fullstack app with React context API and REST API endpoints",
    "Build a FastAPI service with PostgreSQL database and user login",
    "Build a fintech loan management app with user login",
    "Create an ecommerce platform with cart, checkout and payment",
    "Write a command line tool to rename files",
]


def _fixed_id() -> str:
    return "plan-fixed"


@pytest.mark.parametrize("task", TASKS)
def test_setup_first_and_testing_last_exactly_once(task: str) -> None:
    plan = plan_task(task)
    ids = [phase.id for phase in plan.phases]

    assert ids
    assert ids[0] == "phase-setup"
    assert ids[-1] == "phase-testing"
    assert ids.count("phase-setup") == 1
    assert ids.count("phase-testing") == 1
    assert len(ids) == len(set(ids))


@pytest.mark.parametrize("task", TASKS)
def test_phases_follow_pipeline_order(task: str) -> None:
    order = [phase_id.value for phase_id in PHASE_SEQUENCE]
    positions = [order.index(phase.id) for phase in plan_task(task).phases]

    assert positions == sorted(positions)


@pytest.mark.parametrize("task", TASKS)
def test_dependencies_only_point_backwards(task: str) -> None:
    plan = plan_task(task)
    seen: set[str] = set()
    for phase in plan.phases:
        assert set(phase.dependencies) <= seen, phase.id
        seen.add(phase.id)


@pytest.mark.parametrize("task", TASKS)
def test_planning_is_deterministic_apart_from_the_id(task: str) -> None:
    assert plan_task(task, id_factory=_fixed_id) == plan_task(task, id_factory=_fixed_id)


def test_default_plan_id_embeds_timestamp() -> None:
    plan = plan_task("Build a todo app")

    assert plan.id.startswith("plan-")
    assert plan.id.removeprefix("plan-").isdigit()


def test_empty_task_yields_web_app_pipeline() -> None:
    plan = plan_task("")

    assert [phase.id for phase in plan.phases] == [
        "phase-setup",
        "phase-database",
        "phase-frontend",
        "phase-testing",
    ]
    assert plan.phases[2].dependencies == ["phase-setup"]
    assert plan.phases[3].dependencies == ["phase-frontend"]
    assert plan.generation_method is GenerationMethod.RULE_BASED
    assert all(phase.status is PhaseStatus.READY for phase in plan.phases)


def test_fastapi_plan_uses_python_manifests() -> None:
    plan = plan_task("Build a FastAPI service with PostgreSQL database and user login", id_factory=_fixed_id)
    setup = plan.phases[0]

    assert [change.path for change in setup.files][:3] == ["requirements.txt", "app/__init__.py", "app/main.py"]
    assert [phase.id for phase in plan.phases] == [
        "phase-setup",
        "phase-database",
        "phase-auth",
        "phase-backend",
        "phase-testing",
    ]
    backend = plan.phases[3]
    assert backend.dependencies == ["phase-database"]
    assert plan.phases[-1].dependencies == ["phase-backend"]
    assert plan.tech_stack[:3] == ["Python", "FastAPI", "Uvicorn"]
    assert plan.tech_stack.count("SQLAlchemy") == 2
    assert "pytest" in plan.tech_stack


def test_node_plan_uses_typescript_manifests() -> None:
    plan = plan_task("Build a todo app")

    assert [change.path for change in plan.phases[0].files] == [
        "package.json",
        "tsconfig.json",
        "src/types/index.ts",
    ]
    assert plan.tech_stack[:2] == ["TypeScript", "Node.js"]
    assert plan.tech_stack[-3:] == ["Jest", "ESLint", "Prettier"]


def test_estimated_times_follow_phase_kind() -> None:
    plan = plan_task("Create a fullstack app with user login and a postgres database")
    times = {phase.id: phase.estimated_time for phase in plan.phases}

    assert times == {
        "phase-setup": "30 minutes",
        "phase-database": "45 minutes",
        "phase-auth": "60 minutes",
        "phase-backend": "90 minutes",
        "phase-frontend": "120 minutes",
        "phase-testing": "60 minutes",
    }


def test_risks_reflect_the_analysis() -> None:
    plan = plan_task("Create an ecommerce platform with cart, checkout and payment")

    assert "Payment integration requires PCI compliance and secure handling" in plan.risks
    assert "Database schema changes may require careful migration planning" in plan.risks


def test_overview_lists_type_and_features() -> None:
    plan = Planner(id_factory=_fixed_id).plan("Build a React app with context API for state management")

    assert plan.overview == (
        f"Implementation plan with {len(plan.phases)} phases. Each phase contains detailed file-level "
        "instructions for building a web-app with frontend features."
    )
    assert plan.task == "Build a React app with context API for state management"
