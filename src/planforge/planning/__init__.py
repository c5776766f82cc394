"""
Rule-based plan synthesis from analyzed tasks.
"""

from .planner import Planner, plan_task
from .templates import PHASE_SEQUENCE, PhaseId

__all__ = ["PHASE_SEQUENCE", "PhaseId", "Planner", "plan_task"]
