"""Paths and endpoints shared by the backend, the UI client and the CLI.

All values come from CAMPAIGN_ALLY_* environment variables with local defaults.
"""
from __future__ import annotations

import os
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

DATA_ROOT = Path(os.environ.get("CAMPAIGN_ALLY_DATA_ROOT", str(_PROJECT_ROOT / "data")))
DEFAULT_DB_PATH = os.environ.get("CAMPAIGN_ALLY_DB_PATH", str(DATA_ROOT / "campaign_ally.db"))
EXPORT_DIR = os.environ.get("CAMPAIGN_ALLY_EXPORT_DIR", str(DATA_ROOT / "exports"))

DEFAULT_API_URL = os.environ.get("CAMPAIGN_ALLY_API_URL", "http://localhost:8000")

# LLM transport
OLLAMA_BASE_URL = os.environ.get("CAMPAIGN_ALLY_OLLAMA_URL", os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434"))
LLM_TIMEOUT = float(os.environ.get("CAMPAIGN_ALLY_LLM_TIMEOUT", "300"))
LLM_MAX_TOKENS = int(os.environ.get("CAMPAIGN_ALLY_LLM_MAX_TOKENS", "4096"))
