"""Turn raw model text into validated enhancement records or a tagged rejection."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ..schema import EnhancementResponse, SimpleEnhancementResponse

M = TypeVar("M", bound=BaseModel)

_FENCE_MARKER = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


class RejectionReason(str, Enum):
    TRANSPORT_ERROR = "transport_error"
    EMPTY_RESPONSE = "empty_response"
    TRUNCATED = "truncated"
    MALFORMED_JSON = "malformed_json"
    NOT_AN_OBJECT = "not_an_object"
    MODEL_ERROR = "model_error"
    MISSING_FIELD = "missing_field"
    WRONG_TYPE = "wrong_type"
    INVALID_FILE_ENTRY = "invalid_file_entry"


@dataclass(frozen=True, slots=True)
class Accepted:
    """Text parsed and validated against the requested schema."""

    value: Any
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Rejected:
    """Text that could not be used, with the reason it was refused."""

    reason: RejectionReason
    message: str

    def describe(self) -> str:
        return f"{self.reason.value}: {self.message}"


ValidationResult = Union[Accepted, Rejected]


@dataclass(frozen=True, slots=True)
class BatchValidation:
    """Per-phase outcome of a multi-phase response; ``None`` marks an unusable entry."""

    entries: Dict[str, Optional[EnhancementResponse]]
    rejections: Dict[str, Rejected] = field(default_factory=dict)

    @property
    def accepted_count(self) -> int:
        return sum(1 for value in self.entries.values() if value is not None)


def strip_code_fence(payload: str) -> str:
    """Remove a Markdown code fence that wraps the whole payload."""
    if not payload.startswith("```"):
        return payload
    fence_header = re.match(r"```(?:json)?", payload[:10], re.IGNORECASE)
    if not fence_header:
        return payload
    fence_end = payload.find("```", len(fence_header.group(0)))
    if fence_end == -1:
        return payload
    content_start = payload.find("\n", len(fence_header.group(0)))
    if content_start == -1:
        return payload
    return payload[content_start + 1 : fence_end].strip()


def normalise_json_string(payload: str) -> str:
    """Replace typographic characters models like to emit with their ASCII forms."""
    if not payload:
        return payload
    translation = {
        0x201C: '"',
        0x201D: '"',
        0x2018: "'",
        0x2019: "'",
        0x00A0: " ",
        0xFEFF: "",
    }
    return payload.translate(str.maketrans(translation))


def strip_trailing_commas(payload: str) -> str:
    if not payload:
        return payload
    return re.sub(r",(\s*[}\]])", r"\1", payload)


def extract_json_text(raw: Optional[str]) -> Union[str, Rejected]:
    """Strip fences and leading prose; text that does not end in ``}`` is treated as truncated."""
    if raw is None or not raw.strip():
        return Rejected(RejectionReason.EMPTY_RESPONSE, "Model returned no content")
    text = strip_code_fence(raw.strip())
    text = _FENCE_MARKER.sub("", text).strip()
    start = text.find("{")
    if start == -1:
        return Rejected(RejectionReason.MALFORMED_JSON, "Response does not contain a JSON object")
    text = text[start:]
    if not text.endswith("}"):
        return Rejected(RejectionReason.TRUNCATED, "JSON response appears to be truncated")
    return text


def parse_json_object(raw: Optional[str]) -> Union[Dict[str, Any], Rejected]:
    extracted = extract_json_text(raw)
    if isinstance(extracted, Rejected):
        return extracted
    try:
        parsed = json.loads(extracted)
    except json.JSONDecodeError as first_error:
        repaired = strip_trailing_commas(normalise_json_string(extracted))
        try:
            parsed = json.loads(repaired)
        except json.JSONDecodeError:
            return Rejected(RejectionReason.MALFORMED_JSON, str(first_error))
    if not isinstance(parsed, dict):
        return Rejected(RejectionReason.NOT_AN_OBJECT, f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _rejection_from_error(error: ValidationError) -> Rejected:
    details = error.errors()
    first = details[0] if details else {}
    location = tuple(first.get("loc", ()))
    dotted = ".".join(str(part) for part in location) or "<root>"
    message = f"{dotted}: {first.get('msg', str(error))}"
    if len(location) > 1 and location[0] == "files":
        return Rejected(RejectionReason.INVALID_FILE_ENTRY, message)
    if first.get("type") == "missing":
        return Rejected(RejectionReason.MISSING_FIELD, message)
    return Rejected(RejectionReason.WRONG_TYPE, message)


def validate_payload(payload: Dict[str, Any], model: Type[M]) -> ValidationResult:
    """Validate an already-parsed object strictly: no string-to-number coercion."""
    if "error" in payload and "description" not in payload:
        return Rejected(RejectionReason.MODEL_ERROR, str(payload.get("error")))
    try:
        value = model.model_validate_json(json.dumps(payload), strict=True)
    except ValidationError as error:
        return _rejection_from_error(error)
    return Accepted(value=value, payload=payload)


def validate_response(raw: Optional[str], model: Type[M] = EnhancementResponse) -> ValidationResult:
    """Extract, parse and validate ``raw`` against ``model``."""
    parsed = parse_json_object(raw)
    if isinstance(parsed, Rejected):
        return parsed
    return validate_payload(parsed, model)


def validate_simple_response(raw: Optional[str]) -> ValidationResult:
    return validate_response(raw, SimpleEnhancementResponse)


def validate_batch_response(raw: Optional[str], phase_ids: Sequence[str]) -> Union[BatchValidation, Rejected]:
    """Validate a ``{"phases": [...]}`` envelope entry by entry.

    The envelope itself must be well formed; individual entries that fail map to
    ``None`` so the rest of the batch can still be used.
    """
    parsed = parse_json_object(raw)
    if isinstance(parsed, Rejected):
        return parsed
    items = parsed.get("phases")
    if items is None:
        return Rejected(RejectionReason.MISSING_FIELD, "phases: Field required")
    if not isinstance(items, list):
        return Rejected(RejectionReason.WRONG_TYPE, "phases: Input should be a valid list")

    wanted = set(phase_ids)
    entries: Dict[str, Optional[EnhancementResponse]] = {phase_id: None for phase_id in phase_ids}
    rejections: Dict[str, Rejected] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        phase_id = item.get("phase_id")
        if not isinstance(phase_id, str) or phase_id not in wanted or entries[phase_id] is not None:
            continue
        body = {key: value for key, value in item.items() if key != "phase_id"}
        result = validate_payload(body, EnhancementResponse)
        if isinstance(result, Accepted):
            entries[phase_id] = result.value
            rejections.pop(phase_id, None)
        else:
            rejections[phase_id] = result

    missing: List[str] = [phase_id for phase_id, value in entries.items() if value is None]
    for phase_id in missing:
        rejections.setdefault(phase_id, Rejected(RejectionReason.MISSING_FIELD, f"No entry for {phase_id}"))
    return BatchValidation(entries=entries, rejections=rejections)


__all__ = [
    "Accepted",
    "BatchValidation",
    "Rejected",
    "RejectionReason",
    "ValidationResult",
    "extract_json_text",
    "normalise_json_string",
    "parse_json_object",
    "strip_code_fence",
    "strip_trailing_commas",
    "validate_batch_response",
    "validate_payload",
    "validate_response",
    "validate_simple_response",
]
