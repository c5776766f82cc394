"""Model-backed enrichment of plan phases with caching, admission control and repair."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..memory.store import Clock, InMemoryStore, KeyValueStore
from ..models.llm_client import ChatRequest, LLMClient, LLMClientError
from ..schema import (
    ArchitectureGuidance,
    EnhancedFile,
    EnhancementResponse,
    EnhancementResult,
    FileChange,
    ImplementationGuidance,
    Phase,
    SimpleEnhancementResponse,
    TaskAnalysis,
)
from .gate import AdmissionGate
from .prompts import (
    BATCH_ENVELOPE,
    CONNECTION_TEST_PROMPT,
    ENHANCEMENT_SYSTEM_PROMPT,
    REPAIR_SYSTEM_PROMPT,
    SIMPLE_SYSTEM_PROMPT,
    render_batch_prompt,
    render_enhancement_prompt,
    render_repair_prompt,
)
from .validation import (
    Accepted,
    BatchValidation,
    Rejected,
    RejectionReason,
    validate_batch_response,
    validate_response,
    validate_simple_response,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 24 * 60 * 60
DEFAULT_MAX_CONCURRENCY = 3
SIMPLE_MAX_TOKENS = 400
CONNECTION_TEST_MAX_TOKENS = 10


class EnhancementError(RuntimeError):
    """Base error for enhancement failures surfaced to callers."""


class EnhancementNotInitializedError(EnhancementError):
    """Raised when enhancement is requested without a configured model client."""


class EnhancementBatchError(EnhancementError):
    """Raised when every attempt of a multi-phase call fails."""


@dataclass(slots=True)
class EnhancementOptions:
    """Per-call model settings; ``model=None`` uses the client's default."""

    model: Optional[str] = None
    max_tokens: int = 600
    temperature: float = 0.1
    max_attempts: int = 3


@dataclass(frozen=True, slots=True)
class CacheEntry:
    response: EnhancementResponse
    timestamp: float
    ttl: float = DEFAULT_CACHE_TTL

    def is_fresh(self, now: float) -> bool:
        return now - self.timestamp < self.ttl


@dataclass(frozen=True, slots=True)
class CacheStats:
    size: int
    hits: int
    misses: int

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


def cache_key(task: str, phase_name: str, files: Sequence[FileChange]) -> str:
    """Content address for one phase of one task; file order does not matter."""
    normalized_task = task.lower().strip()
    paths = ",".join(sorted(change.path for change in files))
    return hashlib.sha256(f"{normalized_task}|{phase_name}|{paths}".encode("utf-8")).hexdigest()


def fallback_response(phase: Phase) -> EnhancementResponse:
    """Locally synthesized enhancement used when the model never produced valid output."""
    return EnhancementResponse(
        description=(
            f"Enhanced implementation details for {phase.name}. "
            f"This phase focuses on {phase.description.lower()}."
        ),
        reasoning=(
            "This is a fallback response generated when AI enhancement failed. "
            "The base plan remains intact and functional."
        ),
        architecture=ArchitectureGuidance(
            patterns=["MVC Pattern", "Repository Pattern"],
            design_decisions=["Modular architecture for maintainability", "Separation of concerns"],
            scalability_approach="Horizontal scaling with load balancing",
            security_measures=["Input validation", "Authentication and authorization"],
            performance_optimizations=["Caching strategies", "Database indexing"],
        ),
        implementation=ImplementationGuidance(
            best_practices=[
                "Follow SOLID principles",
                "Use static typing for safety",
                "Implement proper error handling",
            ],
            code_structure="Organize code into modules with clear separation of concerns",
            error_handling="Implement comprehensive error handling with proper logging",
            testing_strategy="Unit tests, integration tests, and end-to-end testing",
            deployment_considerations="Containerization with Docker, CI/CD pipeline setup",
        ),
        files=[
            EnhancedFile(
                path=change.path,
                details=[
                    *change.details,
                    "Additional implementation considerations will be added during development",
                    "Follow best practices for the specific technology stack",
                ],
                architecture_notes="Follow established architectural patterns for this file type",
                implementation_guidance="Implement with focus on maintainability and scalability",
                security_considerations="Ensure proper input validation and security measures",
                performance_tips="Optimize for performance and consider caching where appropriate",
            )
            for change in phase.files
        ],
    )


def expand_simple_response(simple: SimpleEnhancementResponse, phase: Phase) -> EnhancementResponse:
    """Lift a reduced-schema answer into the full schema with generic guidance."""
    return EnhancementResponse(
        description=simple.description or f"Enhanced implementation for {phase.name}",
        reasoning=simple.reasoning or "AI-enhanced implementation with best practices",
        architecture=ArchitectureGuidance(
            patterns=["MVC Pattern", "Repository Pattern"],
            design_decisions=["Modular architecture", "Separation of concerns"],
            scalability_approach="Horizontal scaling with load balancing",
            security_measures=["Input validation", "Authentication"],
            performance_optimizations=["Caching", "Database indexing"],
        ),
        implementation=ImplementationGuidance(
            best_practices=["Follow SOLID principles", "Use static typing"],
            code_structure="Organize code into modules",
            error_handling="Comprehensive error handling with logging",
            testing_strategy="Unit and integration testing",
            deployment_considerations="Containerization with Docker",
        ),
        files=[
            EnhancedFile(
                path=entry.path,
                details=list(entry.details),
                architecture_notes="Follow established patterns",
                implementation_guidance="Implement with best practices",
                security_considerations="Ensure proper validation",
                performance_tips="Optimize for performance",
            )
            for entry in simple.files
        ],
    )


class EnhancementService:
    """Enrich plan phases through a chat model.

    Single-phase calls never raise for model misbehaviour: they walk the
    primary, repair, simplified and fallback tiers and always return a result.
    The only precondition failure is a missing client.
    """

    def __init__(
        self,
        client: Optional[LLMClient] = None,
        *,
        cache: Optional[KeyValueStore[CacheEntry]] = None,
        gate: Optional[AdmissionGate] = None,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        clock: Clock = time.time,
    ) -> None:
        self._client = client
        self._clock = clock
        if cache is None:
            cache = InMemoryStore(clock=clock, name="enhancement-cache")
        self._cache: KeyValueStore[CacheEntry] = cache
        self._gate = gate or AdmissionGate(max_concurrency)
        self._cache_ttl = cache_ttl
        self._stats_lock = threading.Lock()
        self._inflight: Dict[str, "asyncio.Future[EnhancementResult]"] = {}
        self._hits = 0
        self._misses = 0

    @property
    def is_initialized(self) -> bool:
        return self._client is not None

    @property
    def gate(self) -> AdmissionGate:
        return self._gate

    # ------------------------------------------------------------------ cache

    def _cache_lookup(self, key: str) -> Optional[EnhancementResponse]:
        entry = self._cache.get(key)
        fresh = entry is not None and entry.is_fresh(self._clock())
        if entry is not None and not fresh:
            self._cache.delete(key)
        with self._stats_lock:
            if fresh:
                self._hits += 1
            else:
                self._misses += 1
        return entry.response if fresh else None

    def _cache_store(self, key: str, response: EnhancementResponse) -> None:
        self._cache.set(key, CacheEntry(response=response, timestamp=self._clock(), ttl=self._cache_ttl))

    def clear_cache(self) -> None:
        self._cache.clear()
        with self._stats_lock:
            self._hits = 0
            self._misses = 0

    def sweep_cache(self) -> int:
        """Drop entries older than the cache TTL; returns how many were removed."""
        return self._cache.sweep(self._cache_ttl)

    def cache_stats(self) -> CacheStats:
        with self._stats_lock:
            return CacheStats(size=len(self._cache), hits=self._hits, misses=self._misses)

    # ------------------------------------------------------------- model calls

    def _require_client(self) -> LLMClient:
        if self._client is None:
            raise EnhancementNotInitializedError("Model client not initialized")
        return self._client

    async def _attempt(
        self,
        client: LLMClient,
        request: ChatRequest,
        validate: Callable[[Optional[str]], Any],
    ) -> Tuple[Any, Optional[str]]:
        """Run one gated call and validate it; transport failures become rejections."""
        try:
            async with self._gate:
                raw = await client.complete(request)
        except LLMClientError as error:
            return Rejected(RejectionReason.TRANSPORT_ERROR, str(error)), None
        return validate(raw), raw

    @staticmethod
    def _request(
        prompt: str,
        system_prompt: str,
        options: EnhancementOptions,
        *,
        max_tokens: Optional[int] = None,
    ) -> ChatRequest:
        return ChatRequest(
            prompt=prompt,
            system_prompt=system_prompt,
            model=options.model,
            max_tokens=max_tokens or options.max_tokens,
            temperature=options.temperature,
        )

    async def enhance(
        self,
        phase: Phase,
        task: str,
        analysis: TaskAnalysis,
        options: Optional[EnhancementOptions] = None,
    ) -> EnhancementResult:
        """Enhance a single phase, serving from the cache when possible."""
        client = self._require_client()
        options = options or EnhancementOptions()
        key = cache_key(task, phase.name, phase.files)
        cached = self._cache_lookup(key)
        if cached is not None:
            LOGGER.debug("Cache hit for %s", phase.id)
            return EnhancementResult(response=cached, source="cache", model_calls=0)

        joined = await self._join_inflight(key)
        if joined is not None:
            LOGGER.debug("Joined in-flight enhancement for %s", phase.id)
            return joined.model_copy(update={"model_calls": 0})

        future: "asyncio.Future[EnhancementResult]" = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await self._enhance_uncached(client, phase, task, analysis, options)
        except BaseException:
            future.cancel()
            raise
        finally:
            self._inflight.pop(key, None)
        self._cache_store(key, result.response)
        future.set_result(result)
        return result

    async def _join_inflight(self, key: str) -> Optional[EnhancementResult]:
        """Wait on a concurrent call for the same cache key; ``None`` when there is none to share."""
        while True:
            pending = self._inflight.get(key)
            if pending is None:
                return None
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                if not pending.cancelled():
                    raise

    async def _enhance_uncached(
        self,
        client: LLMClient,
        phase: Phase,
        task: str,
        analysis: TaskAnalysis,
        options: EnhancementOptions,
    ) -> EnhancementResult:
        attempts = max(1, options.max_attempts)
        primary = self._request(render_enhancement_prompt(phase, task, analysis), ENHANCEMENT_SYSTEM_PROMPT, options)
        calls = 0

        for attempt in range(1, attempts + 1):
            outcome, raw = await self._attempt(client, primary, validate_response)
            calls += 1
            if isinstance(outcome, Accepted):
                return EnhancementResult(response=outcome.value, source="model", model_calls=calls)
            LOGGER.warning(
                "Enhancement attempt %d/%d for %s failed: %s", attempt, attempts, phase.id, outcome.describe()
            )

            if attempt == attempts - 1:
                repair = self._request(render_repair_prompt(outcome.describe(), raw), REPAIR_SYSTEM_PROMPT, options)
                repaired, _ = await self._attempt(client, repair, validate_response)
                calls += 1
                if isinstance(repaired, Accepted):
                    LOGGER.info("Repair call recovered enhancement for %s", phase.id)
                    return EnhancementResult(response=repaired.value, source="repair", model_calls=calls)
                LOGGER.warning("Repair call for %s failed: %s", phase.id, repaired.describe())

        simple = self._request(
            render_enhancement_prompt(phase, task, analysis, simple=True),
            SIMPLE_SYSTEM_PROMPT,
            options,
            max_tokens=SIMPLE_MAX_TOKENS,
        )
        reduced, _ = await self._attempt(client, simple, validate_simple_response)
        calls += 1
        if isinstance(reduced, Accepted):
            LOGGER.info("Simplified schema recovered enhancement for %s", phase.id)
            return EnhancementResult(
                response=expand_simple_response(reduced.value, phase), source="simplified", model_calls=calls
            )

        LOGGER.warning(
            "All enhancement tiers failed for %s after %d model calls (%s); using fallback",
            phase.id,
            calls,
            reduced.describe(),
        )
        return EnhancementResult(response=fallback_response(phase), source="fallback", model_calls=calls)

    async def enhance_all(
        self,
        phases: Sequence[Phase],
        task: str,
        analysis: TaskAnalysis,
        options: Optional[EnhancementOptions] = None,
    ) -> List[Optional[EnhancementResult]]:
        """Enhance every phase with one model call; unusable entries come back as ``None``.

        Raises :class:`EnhancementBatchError` if no attempt yields a usable envelope.
        """
        client = self._require_client()
        options = options or EnhancementOptions()
        results: List[Optional[EnhancementResult]] = [None] * len(phases)
        pending: List[Tuple[int, Phase, str]] = []
        for index, phase in enumerate(phases):
            key = cache_key(task, phase.name, phase.files)
            cached = self._cache_lookup(key)
            if cached is not None:
                results[index] = EnhancementResult(response=cached, source="cache", model_calls=0)
            else:
                pending.append((index, phase, key))
        if not pending:
            return results

        phase_ids = [phase.id for _, phase, _ in pending]
        max_tokens = options.max_tokens * len(pending)
        primary = self._request(
            render_batch_prompt([phase for _, phase, _ in pending], task, analysis),
            ENHANCEMENT_SYSTEM_PROMPT,
            options,
            max_tokens=max_tokens,
        )

        def validate(raw: Optional[str]) -> Any:
            return validate_batch_response(raw, phase_ids)

        attempts = max(1, options.max_attempts)
        calls = 0
        batch: Optional[BatchValidation] = None
        source = "model"
        last_error = "no attempts made"
        for attempt in range(1, attempts + 1):
            outcome, raw = await self._attempt(client, primary, validate)
            calls += 1
            if isinstance(outcome, BatchValidation) and outcome.accepted_count:
                batch = outcome
                break
            last_error = self._describe_batch_failure(outcome)
            LOGGER.warning("Batch enhancement attempt %d/%d failed: %s", attempt, attempts, last_error)

            if attempt == attempts - 1:
                repair = self._request(
                    render_repair_prompt(last_error, raw, expected_schema=BATCH_ENVELOPE),
                    REPAIR_SYSTEM_PROMPT,
                    options,
                    max_tokens=max_tokens,
                )
                repaired, _ = await self._attempt(client, repair, validate)
                calls += 1
                if isinstance(repaired, BatchValidation) and repaired.accepted_count:
                    batch = repaired
                    source = "repair"
                    break
                last_error = self._describe_batch_failure(repaired)
                LOGGER.warning("Batch repair call failed: %s", last_error)

        if batch is None:
            raise EnhancementBatchError(f"Batch enhancement failed after {calls} model calls: {last_error}")

        for index, phase, key in pending:
            response = batch.entries.get(phase.id)
            if response is None:
                LOGGER.warning("Batch entry for %s unusable: %s", phase.id, batch.rejections[phase.id].describe())
                continue
            self._cache_store(key, response)
            results[index] = EnhancementResult(response=response, source=source, model_calls=calls)
        return results

    @staticmethod
    def _describe_batch_failure(outcome: Any) -> str:
        if isinstance(outcome, Rejected):
            return outcome.describe()
        rejections = list(outcome.rejections.values())
        return rejections[0].describe() if rejections else "no usable entries"

    async def test_connection(self) -> bool:
        """Issue a tiny request and report whether the model answered."""
        if self._client is None:
            return False
        request = ChatRequest(
            prompt=CONNECTION_TEST_PROMPT,
            max_tokens=CONNECTION_TEST_MAX_TOKENS,
            temperature=None,
            json_mode=False,
        )
        try:
            await self._client.complete(request)
        except LLMClientError as error:
            LOGGER.error("Connection test failed: %s", error)
            return False
        return True


__all__ = [
    "CacheEntry",
    "CacheStats",
    "DEFAULT_CACHE_TTL",
    "EnhancementBatchError",
    "EnhancementError",
    "EnhancementNotInitializedError",
    "EnhancementOptions",
    "EnhancementService",
    "cache_key",
    "expand_simple_response",
    "fallback_response",
]
