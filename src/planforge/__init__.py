"""Plan Forge turns free-text software tasks into phased implementation plans."""

from .agent import run_agent
from .analysis import analyze_task
from .orchestrator import GenerationOptions, PlanOrchestrator, task_hash
from .planning import Planner, plan_task

__all__ = [
    "GenerationOptions",
    "PlanOrchestrator",
    "Planner",
    "analyze_task",
    "plan_task",
    "run_agent",
    "task_hash",
]

__version__ = "0.1.0"
