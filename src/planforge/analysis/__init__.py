"""Task classification and technology decision rules."""

from .analyzer import analyze_task, detect_features, detect_project_type, determine_complexity
from .decisions import DecisionEngine

__all__ = [
    "DecisionEngine",
    "analyze_task",
    "detect_features",
    "detect_project_type",
    "determine_complexity",
]
