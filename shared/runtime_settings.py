"""Security settings for the prep API, read from CAMPAIGN_ALLY_* environment variables."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

# Local dev servers the UI is typically served from.
DEFAULT_DEV_CORS_ALLOW_ORIGINS: tuple[str, ...] = tuple(
    f"http://{host}{port}"
    for port in ("", ":3000", ":5173")
    for host in ("localhost", "127.0.0.1")
)

_TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class SecuritySettings:
    dev_mode: bool
    api_token: str
    cors_allow_origins: list[str]

    @property
    def auth_enabled(self) -> bool:
        return bool(self.api_token)


def env_flag(name: str, default: bool = False, environ: Mapping[str, str] | None = None) -> bool:
    raw = (os.environ if environ is None else environ).get(name, "").strip().lower()
    return default if not raw else raw in _TRUTHY


def parse_cors_allowlist(raw: str, fallback: tuple[str, ...] = DEFAULT_DEV_CORS_ALLOW_ORIGINS) -> list[str]:
    """Comma-separated origins; blank input yields ``fallback``."""
    return [o.strip() for o in raw.split(",") if o.strip()] or list(fallback)


def load_security_settings(environ: Mapping[str, str] | None = None) -> SecuritySettings:
    env = os.environ if environ is None else environ
    return SecuritySettings(
        dev_mode=env_flag("CAMPAIGN_ALLY_DEV_MODE", default=True, environ=env),
        api_token=env.get("CAMPAIGN_ALLY_API_TOKEN", "").strip(),
        cors_allow_origins=parse_cors_allowlist(env.get("CAMPAIGN_ALLY_CORS_ALLOW_ORIGINS", "")),
    )


def validate_security_settings(settings: SecuritySettings) -> None:
    """Production mode (CAMPAIGN_ALLY_DEV_MODE=0) needs a token and explicit CORS origins."""
    if settings.dev_mode:
        return
    if not settings.api_token:
        raise RuntimeError("CAMPAIGN_ALLY_API_TOKEN is required when CAMPAIGN_ALLY_DEV_MODE=0.")
    if "*" in settings.cors_allow_origins:
        raise RuntimeError(
            "Wildcard CORS origin is only allowed in dev mode; "
            "set CAMPAIGN_ALLY_CORS_ALLOW_ORIGINS to explicit origins."
        )
