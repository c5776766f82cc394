"""Coordinate synchronous base planning with background model enhancement."""

from __future__ import annotations

import asyncio
import concurrent.futures
import hashlib
import logging
import threading
import time
import weakref
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Coroutine, Dict, Optional, Set, Union

from .analysis.analyzer import analyze_task
from .enhancement.gate import AdmissionGate
from .enhancement.service import (
    DEFAULT_CACHE_TTL,
    DEFAULT_MAX_CONCURRENCY,
    CacheEntry,
    CacheStats,
    EnhancementOptions,
    EnhancementService,
)
from .memory.store import Clock, InMemoryStore
from .models.llm_client import LLMClient
from .models.openai_chat import OpenAIChatClient
from .planning.planner import IdFactory, Planner
from .schema import (
    EnhancedPhase,
    EnhancementResult,
    GenerationMethod,
    Phase,
    PhaseStatus,
    Plan,
    PlanResult,
    PlanStatus,
    Progress,
    TaskAnalysis,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_STATE_MAX_AGE = 60 * 60
FAILED = "failed"

ClientFactory = Callable[[str], LLMClient]


class EnhancementStrategy(str, Enum):
    BATCH = "batch"
    SEQUENTIAL = "sequential"


@dataclass(slots=True)
class GenerationOptions:
    """Caller-supplied settings for one plan request; ``None`` defers to orchestrator defaults."""

    api_key: Optional[str] = None
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    strategy: Optional[EnhancementStrategy] = None


@dataclass(slots=True)
class PlanEnhancementState:
    """Mutable per-plan progress record; only touched under the orchestrator lock."""

    task_hash: str
    base_plan: Plan
    analysis: TaskAnalysis
    enhanced_phases: Dict[int, Union[EnhancedPhase, str]] = field(default_factory=dict)
    phase_statuses: Dict[int, PhaseStatus] = field(default_factory=dict)
    current: int = 0
    total: int = 0
    is_complete: bool = False
    enhancement_enabled: bool = False
    created_at: float = 0.0

    def snapshot(self) -> PlanStatus:
        return PlanStatus(
            task_hash=self.task_hash,
            base_plan=self.base_plan,
            enhanced_phases=dict(self.enhanced_phases),
            phase_statuses=dict(self.phase_statuses),
            progress=Progress(current=self.current, total=self.total),
            is_complete=self.is_complete,
            enhancement_enabled=self.enhancement_enabled,
        )


@dataclass(frozen=True, slots=True)
class EnhancementStats:
    total_plans: int
    completed_plans: int
    average_phases: float
    active_enhancements: int
    cache: CacheStats


def task_hash(task: str) -> str:
    """Stable 16-hex-digit identifier for a task, insensitive to case and outer whitespace."""
    return hashlib.sha256(task.lower().strip().encode("utf-8")).hexdigest()[:16]


def merge_enhancement(phase: Phase, result: EnhancementResult) -> EnhancedPhase:
    response = result.response
    return EnhancedPhase(
        id=phase.id,
        name=phase.name,
        description=response.description,
        reasoning=response.reasoning,
        files=list(response.files),
        architecture=response.architecture,
        implementation=response.implementation,
        estimated_time=phase.estimated_time,
        source=result.source,
    )


class PlanOrchestrator:
    """Return rule-based plans immediately and enrich them in the background.

    Enhancement runs on the caller's event loop when one is running, otherwise
    on a daemon thread that owns a private loop. Progress is polled through
    :meth:`get_status`, which always hands back an immutable snapshot.
    """

    def __init__(
        self,
        *,
        planner: Optional[Planner] = None,
        id_factory: Optional[IdFactory] = None,
        client_factory: Optional[ClientFactory] = None,
        default_model: str = "gpt-4",
        default_max_tokens: int = 600,
        default_temperature: float = 0.1,
        request_timeout: float = 60.0,
        strategy: EnhancementStrategy = EnhancementStrategy.BATCH,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        max_attempts: int = 3,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        state_max_age: float = DEFAULT_STATE_MAX_AGE,
        clock: Clock = time.time,
    ) -> None:
        self._planner = planner or Planner(id_factory=id_factory)
        self._default_model = default_model
        self._default_max_tokens = default_max_tokens
        self._default_temperature = default_temperature
        self._request_timeout = request_timeout
        self._client_factory = client_factory or self._default_client_factory
        self._strategy = EnhancementStrategy(strategy)
        self._max_concurrency = max_concurrency
        self._max_attempts = max_attempts
        self._cache_ttl = cache_ttl
        self._state_max_age = state_max_age
        self._clock = clock

        self._lock = threading.RLock()
        self._states: InMemoryStore[PlanEnhancementState] = InMemoryStore(clock=clock, name="plan-states")
        self._cache: InMemoryStore[CacheEntry] = InMemoryStore(clock=clock, name="enhancement-cache")
        self._services: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[str, EnhancementService]]" = (
            weakref.WeakKeyDictionary()
        )
        self._pending: Set[Union[asyncio.Task[Any], concurrent.futures.Future[Any]]] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

    def _default_client_factory(self, api_key: str) -> LLMClient:
        return OpenAIChatClient(api_key=api_key, model=self._default_model, timeout=self._request_timeout)

    # ------------------------------------------------------------------ public

    def generate_plan(self, task: str, options: Optional[GenerationOptions] = None) -> PlanResult:
        """Sweep stale states, register the new plan, and start enhancement when a key is present."""
        options = options or GenerationOptions()
        analysis = analyze_task(task)
        plan = self._planner.plan(task, analysis=analysis)
        digest = task_hash(task)
        enabled = bool(options.api_key)
        if enabled:
            plan = plan.model_copy(update={"generation_method": GenerationMethod.HYBRID})

        total = len(plan.phases)
        state = PlanEnhancementState(
            task_hash=digest,
            base_plan=plan,
            analysis=analysis,
            phase_statuses={index: PhaseStatus.PENDING for index in range(total)},
            total=total,
            is_complete=not enabled,
            enhancement_enabled=enabled,
            created_at=self._clock(),
        )
        self.sweep()
        with self._lock:
            self._states.set(digest, state)

        if enabled:
            LOGGER.info("Starting model enhancement for plan %s (%d phases)", digest, total)
            self._schedule(self._enhance_plan(state, options))
        else:
            LOGGER.info("No API key provided; skipping model enhancement for plan %s", digest)
        return PlanResult(plan=plan, task_hash=digest)

    def get_status(self, digest: str) -> Optional[PlanStatus]:
        with self._lock:
            state = self._states.get(digest)
            return state.snapshot() if state is not None else None

    async def wait_for(
        self,
        digest: str,
        timeout: Optional[float] = None,
        *,
        poll_interval: float = 0.05,
    ) -> Optional[PlanStatus]:
        """Poll until the plan completes; raises :class:`TimeoutError` after ``timeout`` seconds."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            status = self.get_status(digest)
            if status is None or status.is_complete:
                return status
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(f"Plan {digest} did not finish enhancing within {timeout}s")
            await asyncio.sleep(poll_interval)

    def sweep(self, max_age: Optional[float] = None) -> int:
        """Forget plans registered more than ``max_age`` seconds ago."""
        with self._lock:
            removed = self._states.sweep(self._state_max_age if max_age is None else max_age)
        if removed:
            LOGGER.info("Swept %d stale plan states", removed)
        return removed

    def stats(self) -> EnhancementStats:
        with self._lock:
            states = [state for _, state in self._states.items()]
            active = sum(1 for job in self._pending if not job.done())
            services = [service for by_key in list(self._services.values()) for service in by_key.values()]
        phase_total = sum(state.total for state in states)
        hits = misses = 0
        for service in services:
            service_stats = service.cache_stats()
            hits += service_stats.hits
            misses += service_stats.misses
        return EnhancementStats(
            total_plans=len(states),
            completed_plans=sum(1 for state in states if state.is_complete),
            average_phases=phase_total / len(states) if states else 0.0,
            active_enhancements=active,
            cache=CacheStats(size=len(self._cache), hits=hits, misses=misses),
        )

    def clear_cache(self) -> None:
        self._cache.clear()

    def close(self, timeout: float = 5.0) -> None:
        """Stop the background loop thread if one was started."""
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = self._thread = None
        if loop is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout)
        if not loop.is_running():
            loop.close()

    # -------------------------------------------------------------- scheduling

    def _background_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(target=loop.run_forever, name="planforge-enhancement", daemon=True)
                thread.start()
                self._loop, self._thread = loop, thread
            return self._loop

    def _schedule(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        job: Union[asyncio.Task[Any], concurrent.futures.Future[Any]]
        if running is not None:
            job = running.create_task(coro)
        else:
            job = asyncio.run_coroutine_threadsafe(coro, self._background_loop())
        with self._lock:
            self._pending.add(job)
        job.add_done_callback(self._forget_job)

    def _forget_job(self, job: Any) -> None:
        with self._lock:
            self._pending.discard(job)

    def _service_for(self, api_key: str) -> EnhancementService:
        loop = asyncio.get_running_loop()
        with self._lock:
            by_key = self._services.setdefault(loop, {})
            service = by_key.get(api_key)
            if service is None:
                gate = next((svc.gate for svc in by_key.values()), None) or AdmissionGate(self._max_concurrency)
                service = EnhancementService(
                    self._client_factory(api_key),
                    cache=self._cache,
                    gate=gate,
                    cache_ttl=self._cache_ttl,
                    clock=self._clock,
                )
                by_key[api_key] = service
            return service

    # ------------------------------------------------------------- enhancement

    def _mutate(self, state: PlanEnhancementState, update: Callable[[PlanEnhancementState], None]) -> None:
        with self._lock:
            update(state)

    async def _enhance_plan(self, state: PlanEnhancementState, options: GenerationOptions) -> None:
        """Enhance into ``state`` only; resubmitting the task registers a new state this run never touches."""
        digest, plan = state.task_hash, state.base_plan
        enhancement_options = EnhancementOptions(
            model=options.model or self._default_model,
            max_tokens=options.max_tokens or self._default_max_tokens,
            temperature=self._default_temperature if options.temperature is None else options.temperature,
            max_attempts=self._max_attempts,
        )
        strategy = EnhancementStrategy(options.strategy or self._strategy)
        try:
            try:
                service = self._service_for(options.api_key or "")
            except Exception:
                LOGGER.exception("Could not create a model client for plan %s", digest)
                self._mutate(state, self._fail_all)
                return
            if strategy is EnhancementStrategy.SEQUENTIAL:
                await self._enhance_sequential(state, service, enhancement_options)
            else:
                await self._enhance_batch(state, service, enhancement_options)
        finally:
            self._mutate(state, self._finish)

        with self._lock:
            enhanced = sum(1 for value in state.enhanced_phases.values() if value != FAILED)
        LOGGER.info("Model enhancement complete for %s: %d/%d phases enhanced", digest, enhanced, len(plan.phases))

    @staticmethod
    def _finish(state: PlanEnhancementState) -> None:
        state.current = state.total
        state.is_complete = True

    @staticmethod
    def _fail_all(state: PlanEnhancementState) -> None:
        for index in range(state.total):
            state.enhanced_phases[index] = FAILED
            state.phase_statuses[index] = PhaseStatus.ENHANCEMENT_FAILED

    def _set_status(self, state: PlanEnhancementState, index: int, status: PhaseStatus) -> None:
        def update(target: PlanEnhancementState) -> None:
            target.phase_statuses[index] = status

        self._mutate(state, update)

    async def _enhance_batch(
        self,
        state: PlanEnhancementState,
        service: EnhancementService,
        options: EnhancementOptions,
    ) -> None:
        plan, analysis = state.base_plan, state.analysis

        def mark_enhancing(target: PlanEnhancementState) -> None:
            for index in range(len(plan.phases)):
                target.phase_statuses[index] = PhaseStatus.ENHANCING

        self._mutate(state, mark_enhancing)
        try:
            results = await service.enhance_all(plan.phases, plan.task, analysis, options)
        except Exception:
            LOGGER.exception("Batch enhancement failed for plan %s", state.task_hash)
            results = [None] * len(plan.phases)

        def record(target: PlanEnhancementState) -> None:
            for index, phase in enumerate(plan.phases):
                result = results[index] if index < len(results) else None
                if result is None:
                    target.enhanced_phases[index] = FAILED
                    target.phase_statuses[index] = PhaseStatus.ENHANCEMENT_FAILED
                else:
                    target.enhanced_phases[index] = merge_enhancement(phase, result)
                    target.phase_statuses[index] = PhaseStatus.ENHANCED

        self._mutate(state, record)

    async def _enhance_sequential(
        self,
        state: PlanEnhancementState,
        service: EnhancementService,
        options: EnhancementOptions,
    ) -> None:
        plan, analysis = state.base_plan, state.analysis
        for index, phase in enumerate(plan.phases):
            self._set_status(state, index, PhaseStatus.IN_FLIGHT)
            try:
                result: Optional[EnhancementResult] = await service.enhance(phase, plan.task, analysis, options)
            except Exception:
                LOGGER.exception("Enhancement of %s failed for plan %s", phase.id, state.task_hash)
                result = None

            def record(target: PlanEnhancementState, i: int = index, p: Phase = phase, r=result) -> None:
                if r is None:
                    target.enhanced_phases[i] = FAILED
                    target.phase_statuses[i] = PhaseStatus.ENHANCEMENT_FAILED
                else:
                    target.enhanced_phases[i] = merge_enhancement(p, r)
                    target.phase_statuses[i] = (
                        PhaseStatus.ENHANCEMENT_FAILED if r.is_fallback else PhaseStatus.ENHANCED
                    )
                target.current = i + 1

            self._mutate(state, record)


__all__ = [
    "EnhancementStats",
    "EnhancementStrategy",
    "GenerationOptions",
    "PlanEnhancementState",
    "PlanOrchestrator",
    "merge_enhancement",
    "task_hash",
]
