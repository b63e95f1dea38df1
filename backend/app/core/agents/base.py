"""Role-bound LLM access for the prep agents.

``AgentLLM("outline").complete(system_prompt, user_prompt, json_mode=True)`` resolves the
role's provider from MODEL_CONFIG on first use and returns the raw completion text.
Parsing, retries and fallbacks for structured output live in ``json_reliability``.
"""
from __future__ import annotations

import logging

from backend.app.config import MODEL_CONFIG
from backend.app.core.llm_provider import LLMProviderProtocol, create_provider

logger = logging.getLogger(__name__)


class AgentLLM:
    """One prep role (outline, scene_expander, canon_checker, ...) bound to its configured provider.

    When the role config names a ``fallback_provider``, a failed primary call is retried
    once against it before the error propagates.
    """

    def __init__(self, role: str) -> None:
        if role not in MODEL_CONFIG:
            raise ValueError(f"Unknown role: {role}. Known: {list(MODEL_CONFIG)}")
        self._role = role
        self._config = dict(MODEL_CONFIG[role])
        self._client: LLMProviderProtocol | None = None
        self._fallback: LLMProviderProtocol | None = None

    @property
    def role(self) -> str:
        return self._role

    def _primary(self) -> LLMProviderProtocol:
        if self._client is None:
            self._client = create_provider(
                self._config.get("provider", "ollama"),
                self._config.get("model", ""),
                self._config.get("base_url", ""),
                self._config.get("api_key", ""),
            )
        return self._client

    def _secondary(self) -> LLMProviderProtocol | None:
        provider = self._config.get("fallback_provider")
        if not provider:
            return None
        if self._fallback is None:
            try:
                self._fallback = create_provider(
                    provider,
                    self._config.get("fallback_model") or self._config.get("model", ""),
                    self._config.get("base_url", ""),
                )
            except NotImplementedError as e:
                logger.warning("AgentLLM %s: fallback provider unavailable: %s", self._role, e)
                return None
        return self._fallback

    def complete(self, system_prompt: str, user_prompt: str, json_mode: bool = False) -> str:
        """Return the completion for ``user_prompt``; ``json_mode`` asks the provider for JSON output."""
        try:
            return self._primary().complete(user_prompt, system_prompt, json_mode=json_mode)
        except Exception:
            fallback = self._secondary()
            if fallback is None:
                logger.exception("AgentLLM %s: LLM call failed", self._role)
                raise
            logger.warning("AgentLLM %s: primary provider failed, trying fallback", self._role)
        return fallback.complete(user_prompt, system_prompt, json_mode=json_mode)
