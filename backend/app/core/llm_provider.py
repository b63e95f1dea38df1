"""Provider clients for the prep roles: Ollama (default), Anthropic and OpenAI-compatible APIs.

Every provider exposes ``complete(prompt, system_prompt, json_mode)`` and returns the raw
completion text. Transport failures surface as :class:`LLMProviderError`; JSON handling
happens one layer up in ``json_reliability``.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

import httpx

from shared.config import LLM_MAX_TOKENS, LLM_TIMEOUT, OLLAMA_BASE_URL

logger = logging.getLogger(__name__)


class LLMProviderError(Exception):
    """Raised when a provider request cannot produce a completion."""


@runtime_checkable
class LLMProviderProtocol(Protocol):
    def complete(self, prompt: str, system_prompt: Optional[str] = None, json_mode: bool = False) -> str:
        ...


class _HttpProvider:
    """Shared httpx plumbing: one client per provider, uniform error mapping."""

    label = "LLM"
    default_url = ""

    def __init__(
        self,
        model: str,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.model = model
        self.base_url = (base_url or self.default_url).strip().rstrip("/")
        self.api_key = api_key or ""
        self.timeout = timeout or LLM_TIMEOUT
        self.client = httpx.Client(timeout=self.timeout)

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _headers(self) -> Dict[str, str]:
        return {"content-type": "application/json"}

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.client.post(url, json=payload, headers=self._headers())
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.error("%s request timed out after %ss (model=%s)", self.label, self.timeout, self.model)
            raise LLMProviderError(f"{self.label} request timed out after {self.timeout}s") from exc
        except httpx.ConnectError as exc:
            logger.error("Cannot connect to %s at %s: %s", self.label, self.base_url, exc)
            raise LLMProviderError(f"Cannot connect to {self.label} at {self.base_url}") from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error("%s returned HTTP %d: %s", self.label, status, exc.response.text[:500])
            raise LLMProviderError(f"{self.label} HTTP error {status}") from exc
        except httpx.HTTPError as exc:
            raise LLMProviderError(f"{self.label} network error: {exc}") from exc
        try:
            body = response.json()
        except ValueError as exc:
            raise LLMProviderError(f"{self.label} returned non-JSON response") from exc
        if not isinstance(body, dict):
            raise LLMProviderError(f"{self.label} returned an unexpected response shape")
        return body


class OllamaProvider(_HttpProvider):
    """Local Ollama server via /api/generate. Picks the first pulled model when none is configured."""

    label = "Ollama"
    default_url = OLLAMA_BASE_URL

    def list_models(self) -> list[str]:
        try:
            resp = self.client.get(f"{self.base_url}/api/tags", timeout=5.0)
            resp.raise_for_status()
            models = resp.json().get("models", [])
        except (httpx.HTTPError, ValueError) as exc:
            raise LLMProviderError(f"Cannot list Ollama models at {self.base_url}: {exc}") from exc
        return [m.get("name", "") for m in models if isinstance(m, dict)]

    def _resolve_model(self) -> str:
        if not self.model:
            names = [n for n in self.list_models() if n]
            if not names:
                raise LLMProviderError("No model configured and none pulled on the Ollama server")
            self.model = names[0]
            logger.info("Auto-detected Ollama model: %s", self.model)
        return self.model

    def complete(self, prompt: str, system_prompt: Optional[str] = None, json_mode: bool = False) -> str:
        payload: Dict[str, Any] = {"model": self._resolve_model(), "prompt": prompt, "stream": False}
        if system_prompt:
            payload["system"] = system_prompt
        if json_mode:
            payload["format"] = "json"
        return str(self._post("/api/generate", payload).get("response", ""))


class AnthropicProvider(_HttpProvider):
    """Anthropic Messages API. Needs an API key (role config or ANTHROPIC_API_KEY)."""

    label = "Anthropic"
    default_url = "https://api.anthropic.com"

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json",
        }

    def complete(self, prompt: str, system_prompt: Optional[str] = None, json_mode: bool = False) -> str:
        if not self.api_key:
            raise LLMProviderError("Anthropic API key not set")
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": LLM_MAX_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            payload["system"] = system_prompt
        blocks = self._post("/v1/messages", payload).get("content", [])
        return "".join(
            b.get("text", "") for b in blocks if isinstance(b, dict) and b.get("type") == "text"
        )


class OpenAICompatProvider(_HttpProvider):
    """Chat-completions APIs (OpenAI, OpenRouter, vLLM, LM Studio)."""

    label = "OpenAI-compatible API"
    default_url = "https://api.openai.com"

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        if self.api_key:
            headers["authorization"] = f"Bearer {self.api_key}"
        return headers

    def complete(self, prompt: str, system_prompt: Optional[str] = None, json_mode: bool = False) -> str:
        messages = [{"role": "system", "content": system_prompt}] if system_prompt else []
        messages.append({"role": "user", "content": prompt})
        payload: Dict[str, Any] = {"model": self.model, "messages": messages, "max_tokens": LLM_MAX_TOKENS}
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        choices = self._post("/v1/chat/completions", payload).get("choices") or [{}]
        return str(choices[0].get("message", {}).get("content", "") or "")


_PROVIDERS: dict[str, tuple[Callable[..., _HttpProvider], str]] = {
    "ollama": (OllamaProvider, ""),
    "anthropic": (AnthropicProvider, "ANTHROPIC_API_KEY"),
    "openai": (OpenAICompatProvider, "OPENAI_API_KEY"),
    "openai_compat": (OpenAICompatProvider, "OPENAI_API_KEY"),
}

SUPPORTED_PROVIDERS: tuple[str, ...] = tuple(_PROVIDERS)


def create_provider(provider: str, model: str, base_url: str = "", api_key: str = "") -> _HttpProvider:
    """Build a provider client by name; unknown names raise NotImplementedError."""
    try:
        factory, key_env = _PROVIDERS[provider]
    except KeyError:
        raise NotImplementedError(
            f"Provider '{provider}' not supported. Supported: {', '.join(SUPPORTED_PROVIDERS)}."
        ) from None
    if not api_key and key_env:
        api_key = os.environ.get(key_env, "")
    return factory(model=model, base_url=base_url or None, api_key=api_key or None)
