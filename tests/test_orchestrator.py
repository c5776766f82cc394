from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List

import pytest
from conftest import chat_envelope, make_enhancement_payload
from pydantic import ValidationError

from planforge.models import OpenAIChatClient
from planforge.orchestrator import (
    EnhancementStrategy,
    GenerationOptions,
    PlanOrchestrator,
    task_hash,
)
from planforge.planning import plan_task
from planforge.schema import EnhancedPhase, GenerationMethod, PhaseStatus

TASK = "Create a fullstack app with user login and a postgres database"
PHASE_IDS = [phase.id for phase in plan_task(TASK).phases]


class FakeClock:
    def __init__(self, start: float = 5_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def _batch_reply(phase_ids: List[str]) -> str:
    return json.dumps({"phases": [{"phase_id": phase_id, **make_enhancement_payload()} for phase_id in phase_ids]})


def _orchestrator(transport, **kwargs: Any) -> PlanOrchestrator:
    def client_factory(api_key: str) -> OpenAIChatClient:
        return OpenAIChatClient(api_key=api_key, transport=transport)

    return PlanOrchestrator(client_factory=client_factory, id_factory=lambda: "plan-test", **kwargs)


async def _eventually(predicate) -> None:
    for _ in range(500):
        if predicate():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("condition never became true")


def _generate_and_wait(orchestrator: PlanOrchestrator, task: str, options: GenerationOptions):
    async def run():
        result = orchestrator.generate_plan(task, options)
        status = await orchestrator.wait_for(result.task_hash, timeout=5)
        return result, status

    return asyncio.run(run())


def test_task_hash_is_short_and_normalised() -> None:
    digest = task_hash("  Build A Blog ")

    assert digest == task_hash("build a blog")
    assert len(digest) == 16
    int(digest, 16)
    assert digest != task_hash("build a shop")


def test_without_api_key_plan_is_complete_and_unenhanced() -> None:
    orchestrator = PlanOrchestrator(id_factory=lambda: "plan-test")

    result = orchestrator.generate_plan(TASK)
    status = orchestrator.get_status(result.task_hash)

    assert result.plan.generation_method is GenerationMethod.RULE_BASED
    assert status is not None
    assert status.is_complete is True
    assert status.enhancement_enabled is False
    assert status.enhanced_phases == {}
    assert set(status.phase_statuses.values()) == {PhaseStatus.PENDING}
    assert status.progress.total == len(PHASE_IDS)


def test_unknown_hash_has_no_status() -> None:
    assert PlanOrchestrator().get_status("0" * 16) is None


def test_batch_enhancement_merges_every_phase(scripted_transport) -> None:
    transport = scripted_transport(_batch_reply(PHASE_IDS))
    orchestrator = _orchestrator(transport)

    result, status = _generate_and_wait(orchestrator, TASK, GenerationOptions(api_key="sk-test"))

    assert result.plan.generation_method is GenerationMethod.HYBRID
    assert len(transport.calls) == 1
    assert status.is_complete is True
    assert status.progress.current == status.progress.total == len(PHASE_IDS)
    assert set(status.phase_statuses.values()) == {PhaseStatus.ENHANCED}
    for index, phase in enumerate(result.plan.phases):
        enhanced = status.enhanced_phases[index]
        assert isinstance(enhanced, EnhancedPhase)
        assert enhanced.id == phase.id
        assert enhanced.name == phase.name
        assert enhanced.estimated_time == phase.estimated_time


def test_batch_failure_marks_every_phase_failed(scripted_transport) -> None:
    transport = scripted_transport("not json at all")
    orchestrator = _orchestrator(transport)

    _, status = _generate_and_wait(orchestrator, TASK, GenerationOptions(api_key="sk-test"))

    assert status.is_complete is True
    assert set(status.enhanced_phases.values()) == {"failed"}
    assert set(status.phase_statuses.values()) == {PhaseStatus.ENHANCEMENT_FAILED}


def test_partial_batch_only_fails_missing_phases(scripted_transport) -> None:
    transport = scripted_transport(_batch_reply(PHASE_IDS[:3]))
    orchestrator = _orchestrator(transport)

    _, status = _generate_and_wait(orchestrator, TASK, GenerationOptions(api_key="sk-test"))

    assert [status.phase_statuses[index] for index in range(len(PHASE_IDS))] == (
        [PhaseStatus.ENHANCED] * 3 + [PhaseStatus.ENHANCEMENT_FAILED] * (len(PHASE_IDS) - 3)
    )


def test_sequential_strategy_calls_once_per_phase(scripted_transport) -> None:
    transport = scripted_transport(json.dumps(make_enhancement_payload()))
    orchestrator = _orchestrator(transport)
    options = GenerationOptions(api_key="sk-test", strategy=EnhancementStrategy.SEQUENTIAL, max_tokens=700)

    _, status = _generate_and_wait(orchestrator, TASK, options)

    assert len(transport.calls) == len(PHASE_IDS)
    assert all(call["max_tokens"] == 700 for call in transport.calls)
    assert set(status.phase_statuses.values()) == {PhaseStatus.ENHANCED}
    assert status.progress.current == len(PHASE_IDS)


def test_sequential_fallback_is_kept_but_flagged(scripted_transport) -> None:
    transport = scripted_transport("still not json")
    orchestrator = _orchestrator(transport, strategy=EnhancementStrategy.SEQUENTIAL, max_concurrency=2)

    result, status = _generate_and_wait(orchestrator, TASK, GenerationOptions(api_key="sk-test"))

    assert set(status.phase_statuses.values()) == {PhaseStatus.ENHANCEMENT_FAILED}
    first = status.enhanced_phases[0]
    assert isinstance(first, EnhancedPhase)
    assert first.source == "fallback"
    assert [entry.path for entry in first.files] == [change.path for change in result.plan.phases[0].files]


def test_client_factory_failure_fails_the_plan() -> None:
    def client_factory(api_key: str) -> OpenAIChatClient:
        raise ValueError("bad key")

    orchestrator = PlanOrchestrator(client_factory=client_factory)

    _, status = _generate_and_wait(orchestrator, TASK, GenerationOptions(api_key="sk-test"))

    assert status.is_complete is True
    assert set(status.enhanced_phases.values()) == {"failed"}


def test_second_plan_for_same_task_is_served_from_cache(scripted_transport) -> None:
    transport = scripted_transport(_batch_reply(PHASE_IDS))
    orchestrator = _orchestrator(transport)

    _generate_and_wait(orchestrator, TASK, GenerationOptions(api_key="sk-test"))
    _, status = _generate_and_wait(orchestrator, TASK.upper(), GenerationOptions(api_key="sk-test"))

    assert len(transport.calls) == 1
    assert all(phase.source == "cache" for phase in status.enhanced_phases.values())
    assert orchestrator.stats().cache.size == len(PHASE_IDS)

    orchestrator.clear_cache()
    assert orchestrator.stats().cache.size == 0


def test_status_snapshots_are_frozen() -> None:
    orchestrator = PlanOrchestrator()
    result = orchestrator.generate_plan(TASK)
    status = orchestrator.get_status(result.task_hash)

    with pytest.raises(ValidationError):
        status.is_complete = False


def test_enhancement_runs_on_background_thread_outside_a_loop(scripted_transport) -> None:
    transport = scripted_transport(_batch_reply(PHASE_IDS))
    orchestrator = _orchestrator(transport)
    try:
        result = orchestrator.generate_plan(TASK, GenerationOptions(api_key="sk-test"))
        status = asyncio.run(orchestrator.wait_for(result.task_hash, timeout=5))
    finally:
        orchestrator.close()

    assert status is not None
    assert status.is_complete is True
    assert set(status.phase_statuses.values()) == {PhaseStatus.ENHANCED}


def test_wait_for_times_out() -> None:
    release = asyncio.Event()

    async def transport(payload: Dict[str, Any]) -> str:
        await release.wait()
        return "{}"

    orchestrator = _orchestrator(transport)

    async def run() -> None:
        result = orchestrator.generate_plan(TASK, GenerationOptions(api_key="sk-test"))
        with pytest.raises(TimeoutError):
            await orchestrator.wait_for(result.task_hash, timeout=0.1, poll_interval=0.01)
        assert orchestrator.stats().active_enhancements == 1
        release.set()
        await orchestrator.wait_for(result.task_hash, timeout=5)

    asyncio.run(run())


def test_sweep_forgets_old_plans() -> None:
    clock = FakeClock()
    orchestrator = PlanOrchestrator(clock=clock, state_max_age=60)

    old = orchestrator.generate_plan("Build a blog")
    clock.now += 50
    fresh = orchestrator.generate_plan("Build a shop")
    clock.now += 20

    assert orchestrator.sweep() == 1
    assert orchestrator.get_status(old.task_hash) is None
    assert orchestrator.get_status(fresh.task_hash) is not None
    assert orchestrator.sweep(max_age=0) == 1


def test_stats_summarise_registered_plans() -> None:
    orchestrator = PlanOrchestrator()
    orchestrator.generate_plan("")
    orchestrator.generate_plan(TASK)

    summary = orchestrator.stats()

    assert summary.total_plans == 2
    assert summary.completed_plans == 2
    assert summary.average_phases == (4 + len(PHASE_IDS)) / 2
    assert summary.active_enhancements == 0
    assert summary.cache.size == 0


def test_resubmitted_task_keeps_its_own_progress() -> None:
    gates: List[asyncio.Event] = []

    async def transport(payload: Dict[str, Any]) -> str:
        gate = asyncio.Event()
        gates.append(gate)
        await gate.wait()
        return chat_envelope(_batch_reply(PHASE_IDS))

    orchestrator = _orchestrator(transport)

    async def run():
        orchestrator.generate_plan(TASK, GenerationOptions(api_key="sk-test"))
        await _eventually(lambda: len(gates) == 1)
        second = orchestrator.generate_plan(TASK, GenerationOptions(api_key="sk-test"))
        await _eventually(lambda: len(gates) == 2)

        gates[0].set()
        await _eventually(lambda: orchestrator.stats().active_enhancements == 1)
        in_flight = orchestrator.get_status(second.task_hash)

        gates[1].set()
        finished = await orchestrator.wait_for(second.task_hash, timeout=5)
        return in_flight, finished

    in_flight, finished = asyncio.run(run())

    assert in_flight.is_complete is False
    assert in_flight.enhanced_phases == {}
    assert set(in_flight.phase_statuses.values()) == {PhaseStatus.ENHANCING}
    assert finished.is_complete is True
    assert set(finished.phase_statuses.values()) == {PhaseStatus.ENHANCED}


def test_registering_a_plan_sweeps_stale_states() -> None:
    clock = FakeClock()
    orchestrator = PlanOrchestrator(clock=clock, state_max_age=60)

    old = orchestrator.generate_plan("Build a blog")
    clock.now += 61
    fresh = orchestrator.generate_plan("Build a shop")

    assert orchestrator.get_status(old.task_hash) is None
    assert orchestrator.get_status(fresh.task_hash) is not None
    assert orchestrator.stats().total_plans == 1
