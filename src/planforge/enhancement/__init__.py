"""Model-backed phase enhancement: prompts, validation, admission control and the service."""

from .gate import AdmissionGate
from .service import (
    CacheEntry,
    CacheStats,
    EnhancementBatchError,
    EnhancementError,
    EnhancementNotInitializedError,
    EnhancementOptions,
    EnhancementService,
    cache_key,
)
from .validation import Accepted, Rejected, RejectionReason, validate_response

__all__ = [
    "Accepted",
    "AdmissionGate",
    "CacheEntry",
    "CacheStats",
    "EnhancementBatchError",
    "EnhancementError",
    "EnhancementNotInitializedError",
    "EnhancementOptions",
    "EnhancementService",
    "Rejected",
    "RejectionReason",
    "cache_key",
    "validate_response",
]
