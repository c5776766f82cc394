from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest
import yaml
from conftest import make_enhancement_payload

from planforge.config import (
    ConfigError,
    PlanForgeConfig,
    default_config_data,
    load_config,
    write_config,
)
from planforge.models import OpenAIChatClient
from planforge.orchestrator import EnhancementStrategy, GenerationOptions


def test_defaults_apply_without_a_config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    config = load_config()

    assert config == PlanForgeConfig()
    assert config.models.default == "gpt-4"
    assert config.models.max_tokens == 600
    assert config.enhancement.strategy is EnhancementStrategy.BATCH
    assert config.enhancement.max_concurrency == 3
    assert config.enhancement.cache_ttl_seconds == 86400
    assert config.state.max_age_seconds == 3600


def test_default_template_round_trips(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "planforge.yaml"

    write_config(path, default_config_data())

    assert load_config(path) == PlanForgeConfig()


def test_working_directory_file_is_picked_up(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "planforge.yaml").write_text("models:\n  default: gpt-4o-mini\n", encoding="utf-8")

    config = load_config()

    assert config.models.default == "gpt-4o-mini"
    assert config.models.max_tokens == 600


def test_partial_overrides(tmp_path: Path) -> None:
    path = tmp_path / "custom.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "enhancement": {"strategy": "sequential", "max_concurrency": 5},
                "logging": {"level": " info "},
            }
        ),
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.enhancement.strategy is EnhancementStrategy.SEQUENTIAL
    assert config.enhancement.max_concurrency == 5
    assert config.logging.level == "INFO"


@pytest.mark.parametrize(
    "content",
    [
        "enhancement:\n  strategy: parallel\n",
        "enhancement:\n  max_concurrency: 0\n",
        "logging:\n  level: chatty\n",
        "models:\n  unknown_key: 1\n",
    ],
)
def test_invalid_values_are_rejected(tmp_path: Path, content: str) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(path)


def test_non_mapping_and_broken_yaml_are_rejected(tmp_path: Path) -> None:
    listing = tmp_path / "list.yaml"
    listing.write_text("- one\n- two\n", encoding="utf-8")
    broken = tmp_path / "broken.yaml"
    broken.write_text("models: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="mapping"):
        load_config(listing)
    with pytest.raises(ConfigError, match="parse"):
        load_config(broken)


def test_missing_explicit_path_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "absent.yaml")


def test_empty_file_means_defaults(tmp_path: Path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")

    assert load_config(path) == PlanForgeConfig()


def test_build_orchestrator_applies_settings(scripted_transport) -> None:
    config = PlanForgeConfig.from_mapping(
        {
            "models": {"default": "gpt-4o", "max_tokens": 321, "temperature": 0.5},
            "enhancement": {"strategy": "sequential"},
        }
    )
    transport = scripted_transport(json.dumps(make_enhancement_payload()))
    orchestrator = config.build_orchestrator(
        client_factory=lambda api_key: OpenAIChatClient(api_key=api_key, transport=transport),
        id_factory=lambda: "plan-config",
    )

    async def run():
        result = orchestrator.generate_plan("Build a todo app", GenerationOptions(api_key="sk-test"))
        await orchestrator.wait_for(result.task_hash, timeout=5)
        return result

    result = asyncio.run(run())

    assert result.plan.id == "plan-config"
    assert len(transport.calls) == len(result.plan.phases)
    assert {(call["model"], call["max_tokens"], call["temperature"]) for call in transport.calls} == {
        ("gpt-4o", 321, 0.5)
    }
