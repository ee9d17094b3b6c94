"""LLM client: HTTP connection to a text-completion backend.

The chat-stream route injects an LLM object matching the protocol:

    def stream(self, stage: str, prompt: str) -> AsyncIterator[str]: ...
    async def __call__(self, stage: str, prompt: str) -> str: ...

`stage` identifies the caller ("narrator", "summary"); implementations may use
it for logging. `stream` yields text deltas as the backend produces them,
`__call__` returns the whole completion.

Two implementations are provided:

    HttpLLM: real HTTP client, supports KoboldCpp and OpenAI-compatible
             backends. Selected by provider_format.
    EchoLLM: streams the prompt back unchanged. Useful for smoke-testing
             the streaming wiring without a running model.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import AsyncIterator
from typing import Any, Literal, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol: every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    def stream(self, stage: str, prompt: str) -> AsyncIterator[str]: ...

    async def __call__(self, stage: str, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM: connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["koboldcpp", "openai"]


class HttpLLM:
    """Async HTTP client for text-completion backends.

    Supported formats:
      "koboldcpp": POST /api/v1/generate  {"prompt": ...}
                     Response: {"results": [{"text": "..."}]}
                     Streaming: POST /api/extra/generate/stream,
                     SSE lines data: {"token": "..."}
      "openai": POST /v1/completions   {"model": ..., "prompt": ...}
                     Response: {"choices": [{"text": "..."}]}
                     Streaming: same URL with "stream": true,
                     SSE lines data: {"choices": [{"text": "..."}]}, data: [DONE]

    Args:
        provider_url:    Base URL of the backend, e.g. "http://localhost:5001".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "koboldcpp".
        model:           Model identifier, used only by the openai format.
        timeout:         HTTP timeout in seconds. Defaults to 120.
        transport:       Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "koboldcpp",
        model: str = "",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_connection(cls, conn: dict[str, Any], model: str | None = None) -> HttpLLM:
        """Build a client from a stored llm_connections entry."""
        return cls(
            provider_url=conn["provider_url"],
            api_key=conn.get("api_key", ""),
            provider_format=conn.get("provider_format", "koboldcpp"),
            model=model or conn.get("model", ""),
        )

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, prompt: str, stream: bool = False) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "openai":
            url = f"{self._base_url}/v1/completions"
            body: dict = {"prompt": prompt}
            if self._model:
                body["model"] = self._model
            if stream:
                body["stream"] = True
            return url, body

        # koboldcpp (default)
        if stream:
            return f"{self._base_url}/api/extra/generate/stream", {"prompt": prompt}
        return f"{self._base_url}/api/v1/generate", {"prompt": prompt}

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from the response body."""
        if self._format == "openai":
            choices = data.get("choices")
            if not choices or "text" not in choices[0]:
                raise LLMError("Unexpected response format from OpenAI-compatible backend")
            return choices[0]["text"]

        # koboldcpp
        results = data.get("results")
        if not results or "text" not in results[0]:
            raise LLMError("Unexpected response format from KoboldCpp backend")
        return results[0]["text"]

    def _parse_stream_line(self, line: str) -> str | None:
        """Extract the delta from one SSE line, or None for non-content lines."""
        if not line.startswith("data:"):
            return None
        payload = line[len("data:"):].strip()
        if not payload or payload == "[DONE]":
            return None
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Skipping malformed backend stream line: %r", payload[:200])
            return None
        if self._format == "openai":
            choices = data.get("choices") or [{}]
            return choices[0].get("text")
        return data.get("token")

    async def __call__(self, stage: str, prompt: str) -> str:
        url, body = self._build_request(prompt)
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.TransportError as e:
            raise LLMError(f"LLM backend connection failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("LLM backend returned a non-JSON response") from e
        if not isinstance(data, dict):
            raise LLMError("LLM backend returned an unexpected response")
        text = self._parse_response(data)
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text

    async def stream(self, stage: str, prompt: str) -> AsyncIterator[str]:
        url, body = self._build_request(prompt, stream=True)
        logger.debug("llm stream stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        total = 0
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                async with client.stream("POST", url, json=body, headers=self._headers()) as resp:
                    resp.raise_for_status()
                    async for line in resp.aiter_lines():
                        delta = self._parse_stream_line(line)
                        if delta:
                            total += len(delta)
                            yield delta
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.TransportError as e:
            raise LLMError(f"LLM backend stream interrupted after {total} chars") from e
        logger.debug("llm stream finished stage=%s len=%d", stage, total)


# ---------------------------------------------------------------------------
# Connection resolution
# ---------------------------------------------------------------------------

def resolve_llm(
    config: dict[str, Any],
    provider: str | None = None,
    model: str | None = None,
) -> HttpLLM:
    """Pick the LLM connection for a session.

    The session's provider names an entry of config["llm_connections"]; an
    unknown name falls back to config["default_connection"], then to the first
    connection, then to the LLM_PROVIDER_URL environment variable. The
    session's model, when set, overrides the connection's model.
    """
    connections = config.get("llm_connections", [])
    by_name = {c.get("name"): c for c in connections}

    conn = by_name.get(provider) if provider else None
    if provider and conn is None:
        logger.warning("Unknown LLM connection %r, using the default", provider)
    if conn is None and config.get("default_connection"):
        conn = by_name.get(config["default_connection"])
    if conn is None and connections:
        conn = connections[0]
    if conn is None:
        url = os.getenv("LLM_PROVIDER_URL", "")
        if not url:
            raise LLMError("No LLM connection configured. Add one in Settings")
        conn = {
            "provider_url": url,
            "api_key": os.getenv("LLM_API_KEY", ""),
            "provider_format": os.getenv("LLM_PROVIDER_FORMAT", "koboldcpp"),
            "model": os.getenv("LLM_MODEL", ""),
        }
    return HttpLLM.from_connection(conn, model)


# ---------------------------------------------------------------------------
# EchoLLM: returns the prompt unchanged; useful for smoke tests
# ---------------------------------------------------------------------------

class EchoLLM:
    """Returns the prompt text as-is, line by line when streaming. No network calls."""

    async def __call__(self, stage: str, prompt: str) -> str:
        logger.debug("EchoLLM stage=%s prompt_len=%d", stage, len(prompt))
        return prompt

    async def stream(self, stage: str, prompt: str) -> AsyncIterator[str]:
        logger.debug("EchoLLM stream stage=%s prompt_len=%d", stage, len(prompt))
        for line in prompt.splitlines(keepends=True):
            yield line


# ---------------------------------------------------------------------------
# LLMError: raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
