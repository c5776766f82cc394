from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def make_enhancement_payload(
    paths: Sequence[str] = ("package.json",),
    description: str = "Scaffold the project with strict typing.",
) -> Dict[str, Any]:
    """Return a payload that satisfies the full enhancement schema."""
    return {
        "description": description,
        "reasoning": "A predictable layout keeps later phases simple.",
        "architecture": {
            "patterns": ["Layered architecture", "Dependency injection"],
            "design_decisions": ["Keep configuration in one module"],
            "scalability_approach": "Stateless services behind a load balancer.",
            "security_measures": ["Secrets loaded from the environment"],
            "performance_optimizations": ["Lazy imports for cold start"],
        },
        "implementation": {
            "best_practices": ["Small modules", "Typed interfaces"],
            "code_structure": "src/ for code, tests/ for tests.",
            "error_handling": "Fail fast on invalid configuration.",
            "testing_strategy": "Unit tests for every module.",
            "deployment_considerations": "Ship as a container image.",
        },
        "files": [
            {
                "path": path,
                "details": ["Declare dependencies", "Pin versions"],
                "architecture_notes": "Single source of truth for tooling.",
                "implementation_guidance": "Keep scripts short.",
                "security_considerations": "Audit dependencies.",
                "performance_tips": "Avoid heavy install hooks.",
            }
            for path in paths
        ],
    }


def chat_envelope(content: str) -> str:
    return json.dumps({"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]})


@dataclass(slots=True)
class ScriptedTransport:
    """Replays canned message texts in order, repeating the last one, and records payloads."""

    replies: List[str]
    calls: List[Dict[str, Any]] = field(default_factory=list)

    def __call__(self, payload: Dict[str, Any]) -> str:
        self.calls.append(payload)
        index = min(len(self.calls), len(self.replies)) - 1
        return chat_envelope(self.replies[index])

    @property
    def prompts(self) -> List[str]:
        return [call["messages"][-1]["content"] for call in self.calls]


@pytest.fixture()
def enhancement_payload() -> Callable[..., Dict[str, Any]]:
    return make_enhancement_payload


@pytest.fixture()
def scripted_transport() -> Callable[..., ScriptedTransport]:
    def factory(*replies: str) -> ScriptedTransport:
        return ScriptedTransport(list(replies))

    return factory
