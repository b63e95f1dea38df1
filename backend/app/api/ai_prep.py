"""AI prep API: outline generation, scene expansion, canon check/fixes, beat forge.

Generated output is persisted only where noted: the outline replaces the stored one, expansion
merges into the scene, canon check records the score. Canon fixes and forged beats come back
as proposals for the caller to save.
"""
from __future__ import annotations

import logging
import sqlite3
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from backend.app.config import CANON_CONTEXT_MEMORIES, DEFAULT_DB_PATH, OUTLINE_CONTEXT_MEMORIES
from backend.app.core import scene_store, session_store
from backend.app.core.agents import (
    AgentLLM,
    BeatForge,
    CanonChecker,
    CanonFixer,
    OutlineGenerator,
    SceneExpander,
    merge_generated_detail,
)
from backend.app.core.canon_context import build_prep_context
from backend.app.core.error_handling import http_error, log_error_with_context
from backend.app.core.errors import NotFoundError, PrepError, PrepValidationError
from backend.app.db.connection import get_connection, transaction
from shared.schemas import PartyInfo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v2/ai/prep", tags=["ai-prep"])


class OutlineRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    campaign_id: str = Field(alias="campaignId")
    session_id: str = Field(alias="sessionId")
    premise: str
    party_info: PartyInfo = Field(default_factory=PartyInfo, alias="partyInfo")
    use_canon: bool = Field(default=True, alias="useCanon")


class ExpandSceneRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    campaign_id: str = Field(alias="campaignId")
    session_id: str = Field(alias="sessionId")
    scene_id: str = Field(alias="sceneId")
    beat: dict[str, Any] | None = None
    use_canon: bool = Field(default=True, alias="useCanon")


class CanonCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    campaign_id: str = Field(alias="campaignId")
    content: str
    type: str = "scene"
    scene_id: str | None = Field(default=None, alias="sceneId")


class ApplyFixesRequest(BaseModel):
    content: str
    fixes: list[str] = Field(default_factory=list)


class EditBeatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    action: str
    beat_id: str | None = Field(default=None, alias="beatId")
    user_edit_text: str | None = Field(default=None, alias="userEditText")
    tone: str = "neutral"
    session_goal: str | None = Field(default=None, alias="sessionGoal")
    use_canon: bool = Field(default=False, alias="useCanon")


def _get_conn():
    """Return DB connection. Migrations are applied once at API startup."""
    return get_connection(DEFAULT_DB_PATH)


def _session_in_campaign(conn, session_id: str, campaign_id: str) -> dict[str, Any]:
    session = session_store.get_session(conn, session_id)
    if session["campaign_id"] != campaign_id:
        raise NotFoundError("Session not found in campaign", {"session_id": session_id, "campaign_id": campaign_id})
    return session


def _beat_for_scene(session: dict[str, Any], scene: dict[str, Any]) -> dict[str, Any]:
    """Originating beat of a scene, or a minimal stand-in built from the scene title."""
    beat_id = scene.get("beat_id")
    for beat in session_store.session_beats(session):
        if beat.id == beat_id:
            return beat.model_dump()
    return {"title": scene.get("title") or "", "description": None}


@router.post("/outline")
def generate_outline(body: OutlineRequest):
    """Generate an outline from the premise; it replaces the session's stored outline."""
    conn = _get_conn()
    try:
        session = _session_in_campaign(conn, body.session_id, body.campaign_id)
        canon = ""
        if body.use_canon:
            canon = build_prep_context(conn, body.campaign_id, memory_limit=OUTLINE_CONTEXT_MEMORIES)
        warnings: list[str] = []
        outline = OutlineGenerator(AgentLLM("outline")).generate(
            body.premise,
            body.party_info,
            canon_context=canon,
            campaign_id=body.campaign_id,
            warnings=warnings,
        )
        with transaction(conn):
            session = session_store.update_session(
                conn,
                session["id"],
                {
                    "premise": body.premise,
                    "party_info": body.party_info.model_dump(),
                    "outline": outline,
                },
            )
        return {"outline": session["outline"], "warnings": warnings}
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.post("/expand-scene")
def expand_scene(body: ExpandSceneRequest):
    """Expand one scene; generated fields merge into the stored scene data."""
    conn = _get_conn()
    try:
        session = _session_in_campaign(conn, body.session_id, body.campaign_id)
        scene = scene_store.get_scene(conn, body.scene_id)
        if scene["session_id"] != session["id"]:
            raise NotFoundError("Scene not found in session", {"scene_id": body.scene_id})
        beat = body.beat or _beat_for_scene(session, scene)
        canon = ""
        if body.use_canon:
            canon = build_prep_context(conn, body.campaign_id, memory_limit=OUTLINE_CONTEXT_MEMORIES)
        warnings: list[str] = []
        generated = SceneExpander(AgentLLM("scene_expander")).expand(
            beat,
            canon_context=canon,
            campaign_id=body.campaign_id,
            warnings=warnings,
        )
        with transaction(conn):
            current = scene_store.get_scene(conn, body.scene_id)
            merged = merge_generated_detail(scene_store.scene_data(current), generated)
            scene = scene_store.replace_scene_data(conn, body.scene_id, merged)
        return {"scene": scene, "warnings": warnings}
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.post("/canon-check")
def canon_check(body: CanonCheckRequest):
    if not body.content.strip():
        raise http_error(PrepValidationError("Content is required for a canon check"))
    conn = _get_conn()
    try:
        canon = build_prep_context(conn, body.campaign_id, memory_limit=CANON_CONTEXT_MEMORIES)
        result = CanonChecker(AgentLLM("canon_checker")).check(
            body.content,
            body.type,
            canon_context=canon,
            campaign_id=body.campaign_id,
            scene_id=body.scene_id,
        )
        if body.scene_id:
            try:
                with transaction(conn):
                    scene_store.record_canon_check(conn, body.scene_id, result.overall_score)
            except (PrepError, sqlite3.Error) as e:
                log_error_with_context(
                    error=e,
                    node_name="canon",
                    campaign_id=body.campaign_id,
                    agent_name="CanonChecker.record",
                    extra_context={"scene_id": body.scene_id},
                )
        return result.model_dump(by_alias=True)
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.post("/apply-canon-fixes")
def apply_canon_fixes(body: ApplyFixesRequest):
    """Return corrected text. Nothing is written; the caller saves it through the scene patch."""
    try:
        corrected = CanonFixer(AgentLLM("canon_fixer")).apply(body.content, body.fixes)
    except PrepError as e:
        raise http_error(e) from e
    return {"corrected": corrected}


@router.post("/edit-beat")
def edit_beat(body: EditBeatRequest):
    """Propose an edited beat list. Not persisted; save via PUT /v2/prep/sessions/{id}/beats."""
    conn = _get_conn()
    try:
        session = session_store.get_session(conn, body.session_id)
        canon = ""
        if body.use_canon:
            canon = build_prep_context(conn, session["campaign_id"], memory_limit=OUTLINE_CONTEXT_MEMORIES)
        outline = session.get("outline") or {}
        result = BeatForge(AgentLLM("beat_forge")).forge(
            session_title=outline.get("title") or session["title"],
            beats=session_store.session_beats(session),
            action=body.action,
            beat_id=body.beat_id,
            user_edit_text=body.user_edit_text,
            tone=body.tone,
            session_goal=body.session_goal,
            canon_context=canon,
            campaign_id=session["campaign_id"],
        )
        return result.to_wire()
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()
