"""Command line entry point for generating and inspecting implementation plans."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, List, Optional

import typer

from .agent import run_agent
from .analysis.analyzer import analyze_task
from .config import (
    DEFAULT_CONFIG_NAME,
    ConfigError,
    PlanForgeConfig,
    default_config_data,
    load_config,
    write_config,
)
from .enhancement.service import EnhancementService
from .models.openai_chat import OpenAIChatClient
from .orchestrator import EnhancementStrategy, GenerationOptions
from .planning.planner import plan_task
from .schema import EnhancedPhase, Plan, PlanStatus, TechnologyComparison

APP_HELP = "Plan Forge: turn a task description into a phased implementation plan."

API_KEY_ENVVARS = ["PLANFORGE_API_KEY", "OPENAI_API_KEY"]

app = typer.Typer(help=APP_HELP)


def _config_option() -> Any:
    return typer.Option(
        None,
        "--config",
        "-c",
        help=f"Path to the configuration file (defaults to ./{DEFAULT_CONFIG_NAME} when present).",
    )


def _load(config: Optional[Path], verbose: bool = False) -> PlanForgeConfig:
    try:
        settings = load_config(config)
    except ConfigError as error:
        typer.echo(str(error), err=True)
        raise typer.Exit(code=1) from error
    level = logging.DEBUG if verbose else getattr(logging, settings.logging.level, logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return settings


def _require_task(task: str) -> str:
    if not task.strip():
        raise typer.BadParameter("Task description must not be empty.", param_hint="TASK")
    return task


def _emit_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, sort_keys=False))


def _format_recommendation(label: str, comparison: Optional[TechnologyComparison]) -> List[str]:
    if comparison is None:
        return []
    lines = [f"{label}: {comparison.recommendation} (confidence {comparison.confidence:.2f})"]
    lines.extend(f"  - {reason}" for reason in comparison.reasoning)
    return lines


def _render_plan(plan: Plan) -> None:
    typer.echo(f"Plan {plan.id} [{plan.generation_method.value}]")
    typer.echo(plan.overview)
    for position, phase in enumerate(plan.phases, start=1):
        depends = f" (after {', '.join(phase.dependencies)})" if phase.dependencies else ""
        typer.echo(f"\n{position}. {phase.name} - {phase.estimated_time}{depends}")
        typer.echo(f"   {phase.description}")
        for change in phase.files:
            typer.echo(f"   [{change.action.value}] {change.path}: {change.description}")
    typer.echo(f"\nTech stack: {', '.join(plan.tech_stack)}")
    if plan.risks:
        typer.echo("Risks:")
        for risk in plan.risks:
            typer.echo(f"- {risk}")


def _render_status(status: PlanStatus) -> None:
    typer.echo(
        f"\nEnhancement {status.progress.current}/{status.progress.total} "
        f"({'complete' if status.is_complete else 'in progress'})"
    )
    for index, phase in enumerate(status.base_plan.phases):
        outcome = status.enhanced_phases.get(index)
        state = status.phase_statuses.get(index)
        label = state.value if state is not None else "pending"
        typer.echo(f"- {phase.name}: {label}")
        if isinstance(outcome, EnhancedPhase):
            typer.echo(f"    {outcome.description}")
            if outcome.architecture is not None and outcome.architecture.patterns:
                typer.echo(f"    Patterns: {', '.join(outcome.architecture.patterns)}")


@app.command()
def plan(
    task: str = typer.Argument(..., help="Free-text description of the software to build."),
    api_key: Optional[str] = typer.Option(
        None,
        "--api-key",
        envvar=API_KEY_ENVVARS,
        help="Model API key; enables background enhancement.",
    ),
    strategy: Optional[EnhancementStrategy] = typer.Option(
        None,
        "--strategy",
        help="Enhancement strategy override (batch or sequential).",
    ),
    wait: bool = typer.Option(
        True,
        "--wait/--no-wait",
        help="Wait for model enhancement to finish before exiting.",
    ),
    timeout: float = typer.Option(300.0, "--timeout", help="Seconds to wait for enhancement."),
    as_json: bool = typer.Option(False, "--json", help="Emit machine-readable JSON."),
    config: Optional[Path] = _config_option(),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Generate a phased plan, enhancing it with a model when an API key is available."""
    task = _require_task(task)
    settings = _load(config, verbose)
    orchestrator = settings.build_orchestrator()
    try:
        result = orchestrator.generate_plan(task, GenerationOptions(api_key=api_key, strategy=strategy))
        status = orchestrator.get_status(result.task_hash)
        if api_key and wait:
            try:
                status = asyncio.run(orchestrator.wait_for(result.task_hash, timeout))
            except TimeoutError:
                typer.echo(f"Enhancement did not finish within {timeout:.0f}s.", err=True)
                status = orchestrator.get_status(result.task_hash)
    finally:
        orchestrator.close()

    if as_json:
        _emit_json(
            {
                "plan": result.plan.model_dump(mode="json"),
                "task_hash": result.task_hash,
                "status": status.model_dump(mode="json") if status is not None else None,
            }
        )
        return

    _render_plan(result.plan)
    typer.echo(f"\nTask hash: {result.task_hash}")
    if status is not None and status.enhancement_enabled:
        _render_status(status)


@app.command()
def analyze(
    task: str = typer.Argument(..., help="Free-text description of the software to build."),
    as_json: bool = typer.Option(False, "--json", help="Emit machine-readable JSON."),
) -> None:
    """Classify a task and show technology recommendations."""
    task = _require_task(task)
    analysis = analyze_task(task)
    if as_json:
        _emit_json(analysis.model_dump(mode="json"))
        return

    typer.echo(f"Project type: {analysis.project_type.value}")
    typer.echo(f"Complexity: {analysis.complexity.value}")
    typer.echo(f"Features: {', '.join(analysis.features) or 'none'}")
    flags = [
        name
        for name in ("auth", "database", "frontend", "backend", "realtime", "fastapi", "fintech", "healthcare", "ecommerce")
        if getattr(analysis, f"has_{name}")
    ]
    typer.echo(f"Flags: {', '.join(flags) or 'none'}")
    for line in (
        _format_recommendation("Database", analysis.database_recommendation)
        + _format_recommendation("Backend", analysis.backend_recommendation)
        + _format_recommendation("Frontend", analysis.frontend_recommendation)
    ):
        typer.echo(line)


@app.command("run-phase")
def run_phase(
    task: str = typer.Argument(..., help="Free-text description of the software to build."),
    phase_id: str = typer.Option(..., "--phase", "-p", help="Phase identifier, e.g. phase-setup."),
) -> None:
    """Run the mock agent against one phase of the task's plan."""
    task = _require_task(task)
    generated = plan_task(task)
    phase = next((candidate for candidate in generated.phases if candidate.id == phase_id), None)
    if phase is None:
        available = ", ".join(candidate.id for candidate in generated.phases)
        raise typer.BadParameter(f"Unknown phase '{phase_id}'. Available: {available}", param_hint="--phase")
    result = run_agent(phase)
    typer.echo(result.output)


@app.command("test-connection")
def test_connection(
    api_key: Optional[str] = typer.Option(
        None,
        "--api-key",
        envvar=API_KEY_ENVVARS,
        help="Model API key to verify.",
    ),
    config: Optional[Path] = _config_option(),
) -> None:
    """Check that the configured model endpoint accepts the API key."""
    settings = _load(config)
    if not api_key:
        typer.echo("No API key provided.", err=True)
        raise typer.Exit(code=1)
    client = OpenAIChatClient(api_key=api_key, model=settings.models.default, timeout=settings.models.timeout)
    ok = asyncio.run(EnhancementService(client).test_connection())
    if not ok:
        typer.echo("Connection failed.", err=True)
        raise typer.Exit(code=1)
    typer.echo("Connection OK.")


@app.command()
def stats(
    tasks: List[str] = typer.Argument(..., help="Tasks to plan before reporting statistics."),
    config: Optional[Path] = _config_option(),
) -> None:
    """Plan several tasks in one session and report orchestrator statistics."""
    settings = _load(config)
    orchestrator = settings.build_orchestrator()
    try:
        for task in tasks:
            orchestrator.generate_plan(_require_task(task))
        summary = orchestrator.stats()
    finally:
        orchestrator.close()
    typer.echo(f"Plans: {summary.total_plans}")
    typer.echo(f"Completed: {summary.completed_plans}")
    typer.echo(f"Average phases: {summary.average_phases:.1f}")
    typer.echo(f"Cache entries: {summary.cache.size}")


@app.command()
def init(
    config: Path = typer.Option(
        Path(DEFAULT_CONFIG_NAME),
        "--config",
        "-c",
        help="Where to write the configuration file.",
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration file."),
) -> None:
    """Write a configuration file populated with defaults."""
    if config.exists() and not force:
        typer.echo(f"Config already exists at {config}; use --force to overwrite.", err=True)
        raise typer.Exit(code=1)
    write_config(config, default_config_data())
    typer.echo(f"Wrote default configuration to {config}")


def main() -> None:  # pragma: no cover - console entry
    app()


__all__ = ["app", "main"]
