"""Shared fixtures: a migrated temp database, a connection to it, and an API client bound to it."""
from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

ROUTER_MODULES = (
    "backend.app.api.campaigns",
    "backend.app.api.prep",
    "backend.app.api.ai_prep",
)


def pytest_sessionstart(session) -> None:
    """Keep module-level settings away from the real data dir and run the API without auth."""
    scratch = Path(__file__).resolve().parent / ".tmp"
    scratch.mkdir(parents=True, exist_ok=True)
    os.environ["CAMPAIGN_ALLY_DATA_ROOT"] = str(scratch)
    os.environ["CAMPAIGN_ALLY_DB_PATH"] = str(scratch / "default.db")
    os.environ["CAMPAIGN_ALLY_DEV_MODE"] = "1"
    os.environ.pop("CAMPAIGN_ALLY_API_TOKEN", None)


@pytest.fixture
def db_path(tmp_path):
    from backend.app.db.migrate import apply_schema

    path = str(tmp_path / "prep.db")
    apply_schema(path)
    return path


@pytest.fixture
def conn(db_path):
    from backend.app.db.connection import get_connection

    c = get_connection(db_path)
    yield c
    c.close()


@pytest.fixture
def client(db_path):
    """TestClient with every router pointed at the temp database."""
    from fastapi.testclient import TestClient

    from backend.main import app

    patches = [patch(f"{mod}.DEFAULT_DB_PATH", db_path) for mod in ROUTER_MODULES]
    for p in patches:
        p.start()
    try:
        yield TestClient(app)
    finally:
        for p in patches:
            p.stop()
