"""Typed records exchanged between the analyzer, planner, and enhancement layers."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RecordModel(BaseModel):
    """Base Pydantic model with strict field handling."""

    model_config = ConfigDict(extra="forbid", frozen=False)


class FrozenRecord(RecordModel):
    """Record that must not change once constructed."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class ProjectType(str, Enum):
    """Coarse classification of the project a task describes."""

    WEB_APP = "web-app"
    API = "api"
    CLI = "cli"
    LIBRARY = "library"
    FULLSTACK = "fullstack"


class Complexity(str, Enum):
    """Complexity tier derived from the number of detected features."""

    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


class FileAction(str, Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


class PhaseStatus(str, Enum):
    """Lifecycle states for a phase, both in a base plan and during enhancement."""

    PENDING = "pending"
    READY = "ready"
    IN_FLIGHT = "in_flight"
    ENHANCING = "enhancing"
    ENHANCED = "enhanced"
    ENHANCEMENT_FAILED = "enhancement_failed"


class GenerationMethod(str, Enum):
    RULE_BASED = "rule-based"
    HYBRID = "hybrid"


class Tradeoffs(FrozenRecord):
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)


class Alternative(FrozenRecord):
    """Technology that could replace a recommendation under a given condition."""

    technology: str
    when_to_use: str
    tradeoffs: List[str] = Field(default_factory=list)


class ImplementationEstimate(FrozenRecord):
    complexity: Literal["low", "medium", "high"]
    timeline: str
    learning_curve: str


class TechnologyComparison(FrozenRecord):
    """One scored technology recommendation produced by the decision engine."""

    recommendation: str
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: List[str] = Field(default_factory=list)
    tradeoffs: Tradeoffs = Field(default_factory=Tradeoffs)
    alternatives: List[Alternative] = Field(default_factory=list)
    implementation: ImplementationEstimate


class TaskAnalysis(FrozenRecord):
    """Structured signature of a free-text task description."""

    project_type: ProjectType
    features: List[str] = Field(default_factory=list)
    complexity: Complexity
    has_auth: bool = False
    has_database: bool = False
    has_frontend: bool = False
    has_backend: bool = False
    has_realtime: bool = False
    has_fastapi: bool = False
    has_fintech: bool = False
    has_healthcare: bool = False
    has_ecommerce: bool = False
    database_recommendation: Optional[TechnologyComparison] = None
    backend_recommendation: Optional[TechnologyComparison] = None
    frontend_recommendation: Optional[TechnologyComparison] = None


class FileChange(FrozenRecord):
    """File-level instruction inside a phase."""

    path: str
    action: FileAction
    description: str
    details: List[str] = Field(default_factory=list)
    reasoning: Optional[str] = None


class Phase(FrozenRecord):
    """Unit of planned work inside a plan."""

    id: str
    name: str
    description: str
    files: List[FileChange] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)
    estimated_time: Optional[str] = None
    status: PhaseStatus = PhaseStatus.READY


class Plan(FrozenRecord):
    """Phased implementation plan generated for a task."""

    id: str
    task: str
    overview: str
    phases: List[Phase] = Field(default_factory=list)
    tech_stack: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    generation_method: GenerationMethod = GenerationMethod.RULE_BASED


# Enhancement payloads returned by the language model.


class ModelPayload(FrozenRecord):
    """Model-authored record; unknown keys are dropped rather than rejected."""

    model_config = ConfigDict(extra="ignore", frozen=True)


class ArchitectureGuidance(ModelPayload):
    patterns: List[str]
    design_decisions: List[str]
    scalability_approach: str
    security_measures: List[str]
    performance_optimizations: List[str]


class ImplementationGuidance(ModelPayload):
    best_practices: List[str]
    code_structure: str
    error_handling: str
    testing_strategy: str
    deployment_considerations: str


class EnhancedFile(ModelPayload):
    path: str
    details: List[str]
    architecture_notes: str
    implementation_guidance: str
    security_considerations: str
    performance_tips: str


class EnhancementResponse(ModelPayload):
    """Full architecture-and-implementation schema requested from the model."""

    description: str
    reasoning: str
    architecture: ArchitectureGuidance
    implementation: ImplementationGuidance
    files: List[EnhancedFile]
    estimated_tokens: Optional[Union[int, float]] = None


class SimpleEnhancedFile(ModelPayload):
    path: str
    details: List[str] = Field(default_factory=list)


class SimpleEnhancementResponse(ModelPayload):
    """Reduced schema used only by the last-resort prompt."""

    description: str = ""
    reasoning: str = ""
    files: List[SimpleEnhancedFile] = Field(default_factory=list)


EnhancementSource = Literal["model", "repair", "simplified", "fallback", "cache"]


class EnhancementResult(FrozenRecord):
    """Outcome of enhancing a single phase."""

    response: EnhancementResponse
    source: EnhancementSource = "model"
    model_calls: int = 0

    @property
    def is_fallback(self) -> bool:
        return self.source == "fallback"


class EnhancedPhase(FrozenRecord):
    """Phase content merged with the model's enhancement."""

    id: str
    name: str
    description: str
    reasoning: str
    files: List[EnhancedFile] = Field(default_factory=list)
    architecture: Optional[ArchitectureGuidance] = None
    implementation: Optional[ImplementationGuidance] = None
    estimated_time: Optional[str] = None
    source: EnhancementSource = "model"


class Progress(FrozenRecord):
    current: int = 0
    total: int = 0


class PlanStatus(FrozenRecord):
    """Read-only snapshot of a plan's enhancement progress."""

    task_hash: str
    base_plan: Plan
    enhanced_phases: Dict[int, Union[EnhancedPhase, Literal["failed"]]] = Field(default_factory=dict)
    phase_statuses: Dict[int, PhaseStatus] = Field(default_factory=dict)
    progress: Progress = Field(default_factory=Progress)
    is_complete: bool = False
    enhancement_enabled: bool = False


class PlanResult(FrozenRecord):
    """Synchronous return value of plan generation."""

    plan: Plan
    task_hash: str


class AgentResult(FrozenRecord):
    step_id: str
    success: bool
    output: str


__all__ = [
    "AgentResult",
    "Alternative",
    "ArchitectureGuidance",
    "Complexity",
    "EnhancedFile",
    "EnhancedPhase",
    "EnhancementResponse",
    "EnhancementResult",
    "EnhancementSource",
    "FileAction",
    "FileChange",
    "GenerationMethod",
    "ImplementationEstimate",
    "ImplementationGuidance",
    "ModelPayload",
    "Phase",
    "PhaseStatus",
    "Plan",
    "PlanResult",
    "PlanStatus",
    "Progress",
    "ProjectType",
    "RecordModel",
    "SimpleEnhancedFile",
    "SimpleEnhancementResponse",
    "TaskAnalysis",
    "TechnologyComparison",
    "Tradeoffs",
]
