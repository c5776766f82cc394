"""Prompt templates used when asking a model to enrich plan phases."""

from __future__ import annotations

from typing import Sequence

from ..schema import Phase, TaskAnalysis

JSON_RESPONSE_INSTRUCTION = (
    "CRITICAL: Return ONLY valid JSON. No extra text, no explanations, no markdown formatting."
)

ENHANCEMENT_SYSTEM_PROMPT = (
    "You are a senior software architect. Given the task and a single phase, produce a JSON object "
    "ONLY, strictly matching the schema supplied. Do not output any prose outside the JSON. If you "
    "cannot follow the schema, return an error object with field 'error' and a helpful message. "
    "Your response must be valid JSON only."
)

REPAIR_SYSTEM_PROMPT = (
    "You are a JSON generator. Your ONLY job is to return valid JSON that matches the provided "
    "schema. Do NOT include any text, explanations, or markdown. Start your response with { and end "
    "with }. Return ONLY the JSON object."
)

SIMPLE_SYSTEM_PROMPT = "You are a JSON generator. Return ONLY valid JSON. Start with { and end with }."

CONNECTION_TEST_PROMPT = 'Test connection. Respond with "OK".'

GUIDANCE_BRIEF = """PROVIDE CONCISE BUT DETAILED ARCHITECTURAL GUIDANCE:

Keep responses under 800 words but include:
1. Key architecture patterns (2-3 most important)
2. Critical design decisions with brief reasoning
3. Essential security measures
4. Key performance optimizations
5. Scalability approach (1-2 sentences)
6. Error handling strategy (1-2 sentences)
7. Testing approach (1-2 sentences)
8. Deployment considerations (1-2 sentences)

Be specific but concise:
- Use 2-3 design patterns maximum
- 2-3 security measures maximum
- 2-3 performance optimizations maximum
- Keep file details to 2-3 bullet points each
- Use short, actionable sentences"""

FULL_SCHEMA = """{
  "description": "Brief 1-2 sentence description",
  "reasoning": "Brief 1-2 sentence reasoning",
  "architecture": {
    "patterns": ["Pattern1", "Pattern2"],
    "design_decisions": ["Decision1", "Decision2"],
    "scalability_approach": "Brief scalability strategy",
    "security_measures": ["Security1", "Security2"],
    "performance_optimizations": ["Optimization1", "Optimization2"]
  },
  "implementation": {
    "best_practices": ["Practice1", "Practice2"],
    "code_structure": "Brief structure description",
    "error_handling": "Brief error handling approach",
    "testing_strategy": "Brief testing approach",
    "deployment_considerations": "Brief deployment notes"
  },
  "files": [
    {
      "path": "file/path",
      "details": ["Detail1", "Detail2"],
      "architecture_notes": "Brief architectural note",
      "implementation_guidance": "Brief implementation note",
      "security_considerations": "Brief security note",
      "performance_tips": "Brief performance note"
    }
  ]
}"""

SIMPLE_SCHEMA = """{
  "description": "string",
  "reasoning": "string",
  "files": [
    {
      "path": "string",
      "details": ["string", "string"]
    }
  ]
}"""

JSON_RULES = """IMPORTANT RULES:
- Use double quotes for all strings
- No trailing commas
- No comments in JSON
- Escape special characters properly
- Keep arrays simple with 2-3 items max"""

BATCH_ENVELOPE = """{
  "phases": [
    {
      "phase_id": "phase-setup",
      ...every field of the CONCISE schema...
    }
  ]
}"""

REPAIR_PREVIEW_LIMIT = 1200


def render_phase_context(phase: Phase, task: str, analysis: TaskAnalysis) -> str:
    """Describe the task and one phase's file manifest."""
    files_list = "\n".join(
        f"- {change.path} ({change.action.value}): {change.description}" for change in phase.files
    )
    phase_detail = "\n\n".join(
        f"{change.path}:\n" + "\n".join(f"  - {detail}" for detail in change.details)
        for change in phase.files
    )
    return (
        f"Task: {task}\n"
        f"Project Type: {analysis.project_type.value}\n"
        f"Phase name: {phase.name}\n"
        f"Files: {files_list}\n"
        f"Phase detail: {phase_detail}"
    )


def render_enhancement_prompt(
    phase: Phase,
    task: str,
    analysis: TaskAnalysis,
    *,
    simple: bool = False,
) -> str:
    """Build the single-phase prompt; ``simple`` swaps in the reduced schema."""
    if simple:
        schema_block = f"Return JSON exactly matching this SIMPLE schema:\n{SIMPLE_SCHEMA}"
    else:
        schema_block = f"Return JSON exactly matching this CONCISE schema:\n{FULL_SCHEMA}"
    sections = [
        render_phase_context(phase, task, analysis),
        GUIDANCE_BRIEF,
        JSON_RESPONSE_INSTRUCTION,
        schema_block,
        JSON_RULES,
    ]
    return "\n\n".join(sections)


def render_repair_prompt(
    error: str,
    previous_output: str | None = None,
    *,
    expected_schema: str = FULL_SCHEMA,
) -> str:
    """Ask the model to resend well-formed JSON after ``error``."""
    lines = [
        "The previous JSON response had syntax errors. Please return ONLY valid JSON with proper formatting:",
        "- Use double quotes for all strings",
        "- No trailing commas",
        "- No extra text or explanations",
        "- Proper array and object syntax",
        "- Escape special characters in strings",
        "",
        f"Previous error: {error}",
    ]
    if previous_output:
        preview = previous_output.strip()
        if len(preview) > REPAIR_PREVIEW_LIMIT:
            preview = f"{preview[:REPAIR_PREVIEW_LIMIT]}..."
        lines.extend(["", "Previous response:", preview])
    lines.extend(["", f"Expected schema:\n{expected_schema}", "", "Return the corrected JSON response:"])
    return "\n".join(lines)


def render_batch_prompt(phases: Sequence[Phase], task: str, analysis: TaskAnalysis) -> str:
    """Build one prompt covering several phases, answered as ``{"phases": [...]}``."""
    blocks = []
    for phase in phases:
        blocks.append(f"### phase_id: {phase.id}\n{render_phase_context(phase, task, analysis)}")
    return "\n\n".join(
        [
            f"Enhance the following {len(blocks)} phases of one implementation plan.",
            "\n\n".join(blocks),
            GUIDANCE_BRIEF,
            JSON_RESPONSE_INSTRUCTION,
            "Return one JSON object shaped like:\n" + BATCH_ENVELOPE,
            f"Each entry must also match this CONCISE schema:\n{FULL_SCHEMA}",
            "Include exactly one entry per phase_id listed above.",
            JSON_RULES,
        ]
    )


__all__ = [
    "BATCH_ENVELOPE",
    "CONNECTION_TEST_PROMPT",
    "ENHANCEMENT_SYSTEM_PROMPT",
    "FULL_SCHEMA",
    "JSON_RESPONSE_INSTRUCTION",
    "REPAIR_SYSTEM_PROMPT",
    "SIMPLE_SCHEMA",
    "SIMPLE_SYSTEM_PROMPT",
    "render_batch_prompt",
    "render_enhancement_prompt",
    "render_phase_context",
    "render_repair_prompt",
]
