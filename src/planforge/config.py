"""YAML-backed configuration for the CLI and orchestrator wiring."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .enhancement.service import DEFAULT_CACHE_TTL, DEFAULT_MAX_CONCURRENCY
from .orchestrator import DEFAULT_STATE_MAX_AGE, ClientFactory, EnhancementStrategy, PlanOrchestrator
from .planning.planner import IdFactory

DEFAULT_CONFIG_NAME = "planforge.yaml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "models": {
        "default": "gpt-4",
        "max_tokens": 600,
        "temperature": 0.1,
        "timeout": 60,
    },
    "enhancement": {
        "strategy": EnhancementStrategy.BATCH.value,
        "max_concurrency": DEFAULT_MAX_CONCURRENCY,
        "max_attempts": 3,
        "cache_ttl_seconds": DEFAULT_CACHE_TTL,
    },
    "state": {
        "max_age_seconds": DEFAULT_STATE_MAX_AGE,
    },
    "logging": {
        "level": "WARNING",
    },
}


class ConfigError(ValueError):
    """Raised when a configuration file cannot be read or does not validate."""


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ModelSettings(_Section):
    default: str = "gpt-4"
    max_tokens: int = Field(default=600, ge=1)
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    timeout: float = Field(default=60.0, gt=0)


class EnhancementSettings(_Section):
    strategy: EnhancementStrategy = EnhancementStrategy.BATCH
    max_concurrency: int = Field(default=DEFAULT_MAX_CONCURRENCY, ge=1)
    max_attempts: int = Field(default=3, ge=1)
    cache_ttl_seconds: float = Field(default=DEFAULT_CACHE_TTL, gt=0)


class StateSettings(_Section):
    max_age_seconds: float = Field(default=DEFAULT_STATE_MAX_AGE, gt=0)


class LoggingSettings(_Section):
    level: str = "WARNING"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown logging level: {value}")
        return level


class PlanForgeConfig(_Section):
    """Validated view of ``planforge.yaml``; every section is optional."""

    models: ModelSettings = Field(default_factory=ModelSettings)
    enhancement: EnhancementSettings = Field(default_factory=EnhancementSettings)
    state: StateSettings = Field(default_factory=StateSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "PlanForgeConfig":
        try:
            return cls.model_validate(data)
        except ValidationError as error:
            raise ConfigError(f"Invalid configuration: {error}") from error

    def build_orchestrator(
        self,
        *,
        client_factory: Optional[ClientFactory] = None,
        id_factory: Optional[IdFactory] = None,
    ) -> PlanOrchestrator:
        return PlanOrchestrator(
            id_factory=id_factory,
            client_factory=client_factory,
            default_model=self.models.default,
            default_max_tokens=self.models.max_tokens,
            default_temperature=self.models.temperature,
            request_timeout=self.models.timeout,
            strategy=self.enhancement.strategy,
            max_concurrency=self.enhancement.max_concurrency,
            max_attempts=self.enhancement.max_attempts,
            cache_ttl=self.enhancement.cache_ttl_seconds,
            state_max_age=self.state.max_age_seconds,
        )


def default_config_data() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def load_config(config_path: Optional[Path] = None) -> PlanForgeConfig:
    """Load configuration from ``config_path``.

    With no explicit path, ``planforge.yaml`` in the working directory is used
    when present and built-in defaults otherwise.
    """
    if config_path is None:
        candidate = Path(DEFAULT_CONFIG_NAME)
        if not candidate.exists():
            return PlanForgeConfig()
        config_path = candidate
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config: {error}") from error
    except OSError as error:
        raise ConfigError(f"Failed to read config: {error}") from error

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.")
    return PlanForgeConfig.from_mapping(data)


def write_config(config_path: Path, config_data: Dict[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(config_data, handle, sort_keys=False)


__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_CONFIG_TEMPLATE",
    "EnhancementSettings",
    "LoggingSettings",
    "ModelSettings",
    "PlanForgeConfig",
    "StateSettings",
    "default_config_data",
    "load_config",
    "write_config",
]
