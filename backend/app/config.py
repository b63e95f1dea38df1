"""Backend settings: per-role LLM selection, prompt context sizes, status rules, security.

Each prep role resolves its provider from env, most specific first:
CAMPAIGN_ALLY_{ROLE}_{KEY}, then {ROLE}_{KEY}, then the default table below.
KEY is one of PROVIDER, MODEL, BASE_URL, API_KEY, FALLBACK_PROVIDER, FALLBACK_MODEL.
"""
from __future__ import annotations

import logging
import os

from shared.config import DATA_ROOT, DEFAULT_DB_PATH  # noqa: F401 (re-exported)
from shared.runtime_settings import env_flag, load_security_settings

logger = logging.getLogger(__name__)

# Structured-output roles use the larger local model; the fixer only rewrites prose.
_ROLE_DEFAULTS: dict[str, tuple[str, str]] = {
    "outline": ("ollama", "mistral-nemo:latest"),
    "scene_expander": ("ollama", "mistral-nemo:latest"),
    "canon_checker": ("ollama", "qwen3:8b"),
    "canon_fixer": ("ollama", "qwen3:4b"),
    "beat_forge": ("ollama", "mistral-nemo:latest"),
    "summarizer": ("ollama", "qwen3:8b"),
}

PREP_ROLES: tuple[str, ...] = tuple(_ROLE_DEFAULTS)

_OPTIONAL_KEYS: tuple[str, ...] = ("BASE_URL", "API_KEY")


def _role_env(role: str, key: str) -> str:
    upper = role.upper()
    for name in (f"CAMPAIGN_ALLY_{upper}_{key}", f"{upper}_{key}"):
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return ""


def _resolve_role(role: str) -> dict[str, str]:
    provider, model = _ROLE_DEFAULTS[role]
    cfg = {
        "provider": _role_env(role, "PROVIDER") or provider,
        "model": _role_env(role, "MODEL") or model,
    }
    for key in _OPTIONAL_KEYS:
        value = _role_env(role, key)
        if value:
            cfg[key.lower()] = value
    fallback = _role_env(role, "FALLBACK_PROVIDER")
    if fallback:
        cfg["fallback_provider"] = fallback
        cfg["fallback_model"] = _role_env(role, "FALLBACK_MODEL") or cfg["model"]
    return cfg


MODEL_CONFIG: dict[str, dict[str, str]] = {role: _resolve_role(role) for role in PREP_ROLES}


def _log_resolved_model_config() -> None:
    """Startup log of the role table; API keys are never printed."""
    lines = ["LLM config (per role):"]
    for role in sorted(MODEL_CONFIG):
        cfg = MODEL_CONFIG[role]
        url = "custom" if cfg.get("base_url") else "default"
        lines.append(f"  {role}: provider={cfg['provider']} model={cfg['model']} base_url={url}")
    logger.info("\n".join(lines))


SECURITY_SETTINGS = load_security_settings()

# Recent memory entries pulled into generation prompts; canon checks see more history.
OUTLINE_CONTEXT_MEMORIES = int(os.environ.get("CAMPAIGN_ALLY_OUTLINE_CONTEXT_MEMORIES", "10"))
CANON_CONTEXT_MEMORIES = int(os.environ.get("CAMPAIGN_ALLY_CANON_CONTEXT_MEMORIES", "15"))

# draft -> ready -> completed on status updates; off allows any jump.
ENFORCE_STATUS_TRANSITIONS = env_flag("CAMPAIGN_ALLY_ENFORCE_STATUS_TRANSITIONS", default=True)
