"""Async chat-completion client base class shared by all language-model integrations."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

__all__ = [
    "AttemptLogger",
    "ChatRequest",
    "LLMClient",
    "LLMClientError",
    "LLMResponseFormatError",
    "LLMTransportError",
]

LOGGER = logging.getLogger(__name__)


class LLMClientError(RuntimeError):
    """Base error raised for language-model client failures."""


class LLMTransportError(LLMClientError):
    """Raised when the underlying transport fails to return a response."""


class LLMResponseFormatError(LLMClientError):
    """Raised when the provider payload carries no usable message text."""


AttemptLogger = Callable[[Dict[str, Any], Optional[str], Optional[Exception], float], None]


@dataclass(slots=True)
class ChatRequest:
    """Single chat-completion request: system instruction, user prompt, and sampling caps."""

    prompt: str
    system_prompt: Optional[str] = None
    model: Optional[str] = None
    max_tokens: int = 600
    temperature: Optional[float] = 0.1
    json_mode: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self, default_model: str) -> Dict[str, Any]:
        """Render a transport-ready payload for the Chat Completions API."""
        messages: list[Dict[str, str]] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": self.prompt})

        payload: Dict[str, Any] = {
            "model": self.model or default_model,
            "messages": messages,
            "max_tokens": self.max_tokens,
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.json_mode:
            payload["response_format"] = {"type": "json_object"}
        if self.metadata:
            max_metadata_len = 512
            serialised_metadata: Dict[str, str] = {}
            for key, value in self.metadata.items():
                if isinstance(value, str):
                    formatted = value
                else:
                    formatted = json.dumps(value, separators=(",", ":"), sort_keys=True)
                if len(formatted) > max_metadata_len:
                    formatted = f"{formatted[: max_metadata_len - 3]}..."
                serialised_metadata[key] = formatted
            payload["metadata"] = serialised_metadata
        return payload


class LLMClient:
    """Send chat requests and hand back the raw message text.

    Parsing and validation of the text belong to the caller; this layer only
    normalises transport failures into :class:`LLMClientError` subclasses.
    """

    def __init__(self, model: str, *, attempt_logger: Optional[AttemptLogger] = None) -> None:
        self._model = model
        self._attempt_logger = attempt_logger

    @property
    def model(self) -> str:
        """Return the default model name configured for this client."""
        return self._model

    async def complete(self, request: ChatRequest) -> str:
        """Invoke the model once and return the message text."""
        payload = request.to_payload(self._model)
        started = time.monotonic()
        raw: Optional[str] = None
        try:
            raw = await self._raw_invoke(payload)
        except LLMClientError as error:
            self._log_attempt(payload, None, error, time.monotonic() - started)
            raise
        self._log_attempt(payload, raw, None, time.monotonic() - started)
        return raw

    async def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Perform the transport call. Subclasses must implement."""
        raise NotImplementedError("Subclasses must implement _raw_invoke().")

    def _log_attempt(
        self,
        payload: Dict[str, Any],
        raw: Optional[str],
        error: Optional[Exception],
        elapsed: float,
    ) -> None:
        if self._attempt_logger is not None:
            self._attempt_logger(payload, raw, error, elapsed)
        if error is not None:
            LOGGER.debug("Model %s call failed after %.2fs: %s", payload.get("model"), elapsed, error)
        else:
            LOGGER.debug(
                "Model %s answered in %.2fs (%d chars)",
                payload.get("model"),
                elapsed,
                len(raw or ""),
            )
