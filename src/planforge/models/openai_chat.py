"""Production client that speaks the OpenAI Chat Completions API."""

from __future__ import annotations

import asyncio
import inspect
import json
import os
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from .llm_client import AttemptLogger, LLMClient, LLMResponseFormatError, LLMTransportError

__all__ = ["OpenAIChatClient", "Transport"]


Transport = Callable[[Dict[str, Any]], Union[str, Awaitable[str]]]

DEFAULT_BASE_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4"


def _is_async_callable(func: Any) -> bool:
    return inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(getattr(func, "__call__", None))


class OpenAIChatClient(LLMClient):
    """Thin adapter around the Chat Completions endpoint.

    ``transport`` may be a plain callable (run in a worker thread so the event
    loop is never blocked) or a coroutine function (awaited directly).
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        transport: Optional[Transport] = None,
        timeout: float = 60.0,
        attempt_logger: Optional[AttemptLogger] = None,
    ) -> None:
        super().__init__(model=model, attempt_logger=attempt_logger)
        self._api_key = api_key or os.getenv("PLANFORGE_API_KEY") or os.getenv("OPENAI_API_KEY")
        self._base_url = base_url
        timeout_override = os.getenv("PLANFORGE_TIMEOUT")
        if timeout_override:
            try:
                parsed = float(timeout_override)
                if parsed > 0:
                    timeout = parsed
            except ValueError:
                pass
        self._timeout = timeout
        self._transport = transport or self._http_transport

        if transport is None and not self._api_key:
            raise ValueError("An API key is required when using the default transport.")

    async def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Send the request over the configured transport."""
        try:
            if _is_async_callable(self._transport):
                raw_response = await self._transport(payload)
            else:
                raw_response = await asyncio.to_thread(self._transport, payload)
                if inspect.isawaitable(raw_response):
                    raw_response = await raw_response
        except (LLMTransportError, LLMResponseFormatError):
            raise
        except Exception as error:
            raise LLMTransportError(f"Transport rejected the request: {error}") from error

        if not isinstance(raw_response, (str, dict)):
            raise LLMResponseFormatError(f"Transport returned {type(raw_response).__name__}, expected text.")
        content = self._extract_message_content(raw_response)
        if content is None:
            raise LLMResponseFormatError("Chat completion did not contain message content.")
        return content

    def _http_transport(self, payload: Dict[str, Any]) -> str:
        """Default blocking HTTP transport that targets the Chat Completions API."""
        import urllib.error
        import urllib.request

        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(
            self._base_url,
            data=data,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError("Chat completion timed out.") from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            raise LLMTransportError(f"HTTP {error.code}: {message}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(f"Failed to reach chat endpoint: {error.reason}") from error

        if status >= 400:
            raise LLMTransportError(f"Unexpected HTTP status {status}")

        return raw.decode("utf-8")

    @staticmethod
    def _extract_message_content(raw_response: Any) -> Optional[str]:
        """Return ``choices[0].message.content`` or the raw text when it is not an envelope."""
        if isinstance(raw_response, dict):
            data: Any = raw_response
        else:
            if not raw_response:
                return None
            try:
                data = json.loads(raw_response)
            except json.JSONDecodeError:
                return raw_response

        if not isinstance(data, dict) or "choices" not in data:
            # Not a completion envelope; the transport already handed back message text.
            return raw_response if isinstance(raw_response, str) else json.dumps(raw_response)

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        first = choices[0]
        if not isinstance(first, dict):
            return None
        message = first.get("message")
        if isinstance(message, dict):
            content = message.get("content")
            if isinstance(content, str) and content.strip():
                return content
        text = first.get("text")
        if isinstance(text, str) and text.strip():
            return text
        return None
