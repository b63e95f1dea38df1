"""Campaign API: campaigns plus their canon sources (codex and memory entries)."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from backend.app.config import DEFAULT_DB_PATH
from backend.app.constants import MEMORY_LIST_DEFAULT_LIMIT, MEMORY_LIST_MAX_LIMIT
from backend.app.core import campaign_store
from backend.app.core.error_handling import http_error
from backend.app.core.errors import PrepError
from backend.app.db.connection import get_connection, transaction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v2", tags=["campaigns"])


class CreateCampaignRequest(BaseModel):
    name: str


class MajorArc(BaseModel):
    title: str
    status: str = "active"


class CodexRequest(BaseModel):
    premise: str | None = None
    pitch: str | None = None
    themes: list[str] = Field(default_factory=list)
    tone: dict[str, Any] = Field(default_factory=dict)
    pillars: list[str] = Field(default_factory=list)
    narrative_voice: str | None = None
    pacing_preference: str | None = None
    flair_level: str | None = None
    house_rules: str | None = None
    banned_content: list[str] = Field(default_factory=list)
    major_arcs: list[MajorArc] = Field(default_factory=list)


class CreateMemoryRequest(BaseModel):
    title: str
    content: str = ""
    type: str = "lore"
    tags: list[str] = Field(default_factory=list)


def _get_conn():
    """Return DB connection. Migrations are applied once at API startup."""
    return get_connection(DEFAULT_DB_PATH)


@router.post("/campaigns")
def create_campaign(body: CreateCampaignRequest):
    conn = _get_conn()
    try:
        with transaction(conn):
            campaign = campaign_store.create_campaign(conn, body.name)
        logger.info("Created campaign %s", campaign["id"])
        return campaign
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.get("/campaigns/{campaign_id}")
def get_campaign(campaign_id: str):
    conn = _get_conn()
    try:
        return campaign_store.require_campaign(conn, campaign_id)
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.delete("/campaigns/{campaign_id}")
def delete_campaign(campaign_id: str):
    """Cascades to sessions, scenes, codex and memories."""
    conn = _get_conn()
    try:
        with transaction(conn):
            campaign_store.delete_campaign(conn, campaign_id)
        logger.info("Deleted campaign %s", campaign_id)
        return {"deleted": True, "id": campaign_id}
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.put("/campaigns/{campaign_id}/codex")
def put_codex(campaign_id: str, body: CodexRequest):
    """Replace the campaign codex wholesale."""
    conn = _get_conn()
    try:
        with transaction(conn):
            codex = campaign_store.upsert_codex(conn, campaign_id, body.model_dump())
        return {"campaign_id": campaign_id, "codex": codex}
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.get("/campaigns/{campaign_id}/codex")
def get_codex(campaign_id: str):
    conn = _get_conn()
    try:
        campaign_store.require_campaign(conn, campaign_id)
        return {"campaign_id": campaign_id, "codex": campaign_store.load_codex(conn, campaign_id) or {}}
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.post("/campaigns/{campaign_id}/memories")
def create_memory(campaign_id: str, body: CreateMemoryRequest):
    conn = _get_conn()
    try:
        with transaction(conn):
            return campaign_store.create_memory(
                conn, campaign_id, body.title, body.content, body.type, body.tags
            )
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.get("/campaigns/{campaign_id}/memories")
def list_memories(
    campaign_id: str,
    memory_type: str | None = Query(None, alias="type"),
    limit: int = Query(MEMORY_LIST_DEFAULT_LIMIT, ge=1, le=MEMORY_LIST_MAX_LIMIT),
):
    """Newest first; ``type`` may be a comma-separated list."""
    types = [t.strip() for t in memory_type.split(",") if t.strip()] if memory_type else None
    conn = _get_conn()
    try:
        campaign_store.require_campaign(conn, campaign_id)
        return {"memories": campaign_store.list_memories(conn, campaign_id, limit=limit, memory_types=types)}
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.delete("/memories/{memory_id}")
def delete_memory(memory_id: str):
    """Scenes that link the memory keep their (now dangling) reference."""
    conn = _get_conn()
    try:
        with transaction(conn):
            campaign_store.delete_memory(conn, memory_id)
        return {"deleted": True, "id": memory_id}
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()
