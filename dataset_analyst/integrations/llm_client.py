"""
Client for OpenAI-compatible chat completion servers (LM Studio, llama.cpp, vLLM).
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

import requests


@dataclass(frozen=True)
class LLMResponse:
    """Response from a non-streaming LLM call."""
    content: str
    model: str


class LLMClientError(Exception):
    pass


class LLMClient:
    """Async wrapper around a blocking ``/chat/completions`` endpoint."""

    def __init__(self, base_url: str, model_name: str, timeout_seconds: int = 30) -> None:
        self._base_url = base_url.rstrip("/")
        self._model_name = model_name
        self._timeout = timeout_seconds

    @property
    def model_name(self) -> str:
        return self._model_name

    def _post(self, payload: dict) -> str:
        try:
            resp = requests.post(f"{self._base_url}/chat/completions", json=payload, timeout=self._timeout)
            resp.raise_for_status()
            return resp.json()["choices"][0]["message"]["content"]
        except requests.exceptions.RequestException as exc:
            raise LLMClientError(f"LLM request failed: {exc}") from exc
        except (KeyError, IndexError, ValueError) as exc:
            raise LLMClientError(f"Unexpected LLM response shape: {exc}") from exc

    async def complete(self, system_prompt: str, user_message: str, temperature: float = 0.2) -> LLMResponse:
        """Send a non-streaming chat completion request."""
        payload = {
            "model": self._model_name,
            "messages": [{"role": "system", "content": system_prompt}, {"role": "user", "content": user_message}],
            "temperature": temperature,
        }
        content = await asyncio.to_thread(self._post, payload)
        return LLMResponse(content=content or "", model=self._model_name)

    async def check_health(self) -> tuple[bool, str, int | None]:
        """Check if the LLM server is reachable."""
        try:
            start = time.perf_counter()
            resp = await asyncio.to_thread(lambda: requests.get(f"{self._base_url}/models", timeout=5))
            latency_ms = int((time.perf_counter() - start) * 1000)
            if resp.status_code == 200:
                return True, "LLM server is reachable", latency_ms
            return False, f"LLM server returned status {resp.status_code}", None
        except requests.exceptions.ConnectionError:
            return False, f"Cannot connect to LLM server at {self._base_url}", None
        except requests.exceptions.RequestException as e:
            return False, str(e), None
