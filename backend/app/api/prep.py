"""Session prep API: sessions, beats, scene conversion, scenes, reorder, export, progress, summary."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from backend.app.config import DEFAULT_DB_PATH, OUTLINE_CONTEXT_MEMORIES
from backend.app.core import scene_store, session_store
from backend.app.core.agents import AgentLLM, SessionSummarizer
from backend.app.core.campaign_store import get_memories_by_ids
from backend.app.core.canon_context import build_prep_context
from backend.app.core.error_handling import http_error
from backend.app.core.errors import PrepError, PrepValidationError
from backend.app.core.export import EXPORT_MODES, export_filename, render_session_markdown
from backend.app.core.pipeline_state import require_exportable, session_stage
from backend.app.core.scene_converter import convert_outline_to_scenes
from backend.app.db.connection import get_connection, transaction
from shared.beats import BeatNotFoundError, add_beat, delete_beat
from shared.progress import compute_progress
from shared.schemas import Beat, Outline, PartyInfo, ScenePatchData

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v2/prep", tags=["prep"])


class SessionCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    campaign_id: str = Field(alias="campaignId")
    title: str
    premise: str | None = None
    session_date: str | None = Field(default=None, alias="sessionDate")
    party_info: PartyInfo = Field(default_factory=PartyInfo, alias="partyInfo")
    target_duration: int = Field(default=180, alias="targetDuration")
    outline: Outline | None = None
    notes: str | None = None


class SessionUpdateRequest(BaseModel):
    """Partial update: only fields present in the body are applied."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    premise: str | None = None
    session_date: str | None = Field(default=None, alias="sessionDate")
    party_info: PartyInfo | None = Field(default=None, alias="partyInfo")
    target_duration: int | None = Field(default=None, alias="targetDuration")
    status: str | None = None
    outline: Outline | None = None
    notes: str | None = None


class BeatsRequest(BaseModel):
    beats: list[Beat]


class AddBeatRequest(BaseModel):
    beat: Beat
    position: int | None = None


class ConvertRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")


class ScenePatchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    data: ScenePatchData | None = None
    canon_checked: bool | None = Field(default=None, alias="canonChecked")


class ReorderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    scene_ids: list[str] = Field(alias="sceneIds")


class SummaryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    raw_notes: str = Field(alias="rawNotes")
    tone: str | None = None
    include_player_view: bool = Field(default=True, alias="includePlayerView")
    include_dm_view: bool = Field(default=True, alias="includeDmView")
    use_canon: bool = Field(default=True, alias="useCanon")


def _get_conn():
    """Return DB connection. Migrations are applied once at API startup."""
    return get_connection(DEFAULT_DB_PATH)


def _with_stage(conn, session: dict[str, Any]) -> dict[str, Any]:
    scene_count = session_store.count_scenes(conn, session["id"])
    return {**session, "stage": session_stage(session, scene_count).value, "scene_count": scene_count}


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@router.post("/sessions")
def create_session(body: SessionCreateRequest):
    conn = _get_conn()
    try:
        with transaction(conn):
            session = session_store.create_session(
                conn,
                campaign_id=body.campaign_id,
                title=body.title,
                premise=body.premise,
                session_date=body.session_date,
                party_info=body.party_info.model_dump(),
                target_duration=body.target_duration,
                outline=body.outline.model_dump() if body.outline else None,
                notes=body.notes,
            )
        return _with_stage(conn, session)
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.get("/sessions")
def list_sessions(campaign_id: str = Query(..., alias="campaignId")):
    """Sessions for a campaign, latest session date first."""
    conn = _get_conn()
    try:
        return {"sessions": session_store.list_sessions(conn, campaign_id)}
    finally:
        conn.close()


@router.get("/sessions/{session_id}")
def get_session(session_id: str):
    conn = _get_conn()
    try:
        return _with_stage(conn, session_store.get_session(conn, session_id))
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.patch("/sessions/{session_id}")
def update_session(session_id: str, body: SessionUpdateRequest):
    fields = body.model_dump(exclude_unset=True)
    conn = _get_conn()
    try:
        with transaction(conn):
            session = session_store.update_session(conn, session_id, fields)
        return _with_stage(conn, session)
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.delete("/sessions/{session_id}")
def delete_session(session_id: str):
    conn = _get_conn()
    try:
        with transaction(conn):
            session_store.delete_session(conn, session_id)
        return {"deleted": True, "id": session_id}
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Beats
# ---------------------------------------------------------------------------


@router.put("/sessions/{session_id}/beats")
def save_beats(session_id: str, body: BeatsRequest):
    """Persist the full beat array; outline title and goals are kept."""
    conn = _get_conn()
    try:
        with transaction(conn):
            session = session_store.save_beats(conn, session_id, body.beats)
        return _with_stage(conn, session)
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.post("/sessions/{session_id}/beats")
def append_beat(session_id: str, body: AddBeatRequest):
    conn = _get_conn()
    try:
        with transaction(conn):
            session = session_store.get_session(conn, session_id)
            beats = add_beat(session_store.session_beats(session), body.beat, body.position)
            session = session_store.save_beats(conn, session_id, beats)
        return _with_stage(conn, session)
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.delete("/sessions/{session_id}/beats/{beat_id}")
def remove_beat(session_id: str, beat_id: str):
    conn = _get_conn()
    try:
        with transaction(conn):
            session = session_store.get_session(conn, session_id)
            beats = delete_beat(session_store.session_beats(session), beat_id)
            session = session_store.save_beats(conn, session_id, beats)
        return _with_stage(conn, session)
    except BeatNotFoundError:
        raise HTTPException(status_code=404, detail="Beat not found") from None
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Conversion, scenes, reorder
# ---------------------------------------------------------------------------


@router.post("/convert-to-scenes")
def convert_to_scenes(body: ConvertRequest):
    """Upsert one scene per outline beat, matched by beat id. All or nothing."""
    conn = _get_conn()
    try:
        with transaction(conn):
            session = session_store.get_session(conn, body.session_id)
            result = convert_outline_to_scenes(conn, session)
        return result.to_wire()
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.get("/scenes")
def list_scenes(session_id: str = Query(..., alias="sessionId")):
    conn = _get_conn()
    try:
        session_store.get_session(conn, session_id)
        return {"scenes": scene_store.list_scenes(conn, session_id)}
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.post("/scenes/reorder")
def reorder_scenes(body: ReorderRequest):
    conn = _get_conn()
    try:
        with transaction(conn):
            session_store.get_session(conn, body.session_id)
            scenes = scene_store.reorder_scenes(conn, body.session_id, body.scene_ids)
        return {"scenes": scenes}
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.get("/scenes/{scene_id}")
def get_scene(scene_id: str):
    conn = _get_conn()
    try:
        return scene_store.get_scene(conn, scene_id)
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.patch("/scenes/{scene_id}")
def patch_scene(scene_id: str, body: ScenePatchRequest):
    """Merge-style patch: data fields not supplied are preserved."""
    kwargs: dict[str, Any] = {}
    if "title" in body.model_fields_set:
        kwargs["title"] = body.title
    if body.data is not None:
        kwargs["data"] = body.data
    if body.canon_checked is not None:
        kwargs["canon_checked"] = body.canon_checked
    conn = _get_conn()
    try:
        with transaction(conn):
            return scene_store.patch_scene(conn, scene_id, **kwargs)
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.delete("/scenes/{scene_id}")
def delete_scene(scene_id: str):
    conn = _get_conn()
    try:
        with transaction(conn):
            scene_store.delete_scene(conn, scene_id)
        return {"deleted": True, "id": scene_id}
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.get("/scenes/{scene_id}/memories")
def scene_memories(scene_id: str):
    """Linked memories that still exist, in link order."""
    conn = _get_conn()
    try:
        scene = scene_store.get_scene(conn, scene_id)
        linked = scene_store.scene_data(scene).related_memories
        return {"memories": get_memories_by_ids(conn, linked)}
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Export, progress, summary
# ---------------------------------------------------------------------------


@router.get("/export/markdown")
def export_markdown(
    session_id: str = Query(..., alias="sessionId"),
    mode: str = Query("dm"),
):
    conn = _get_conn()
    try:
        if mode not in EXPORT_MODES:
            raise PrepValidationError('Mode must be "dm" or "player"')
        session = session_store.get_session(conn, session_id)
        scenes = scene_store.list_scenes(conn, session_id)
        require_exportable(session, len(scenes))
        markdown = render_session_markdown(session, scenes, mode)
        logger.info("Exported session %s (%s mode, %d scenes)", session_id, mode, len(scenes))
        return {"markdown": markdown, "filename": export_filename(session, mode)}
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.get("/sessions/{session_id}/progress")
def session_progress(session_id: str):
    conn = _get_conn()
    try:
        session = session_store.get_session(conn, session_id)
        scenes = scene_store.list_scenes(conn, session_id)
        durations = [s["data"].get("estimatedDuration") for s in scenes]
        progress = compute_progress(durations, session.get("target_duration"))
        return {"sessionId": session_id, **progress.to_dict()}
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()


@router.post("/sessions/{session_id}/summary")
def generate_summary(session_id: str, body: SummaryRequest):
    """Summarize the DM's raw notes and store the result on the session."""
    if not body.raw_notes.strip():
        raise HTTPException(status_code=400, detail="Session notes are required to generate a summary")
    conn = _get_conn()
    try:
        session = session_store.get_session(conn, session_id)
        canon = ""
        if body.use_canon:
            canon = build_prep_context(conn, session["campaign_id"], memory_limit=OUTLINE_CONTEXT_MEMORIES)
        warnings: list[str] = []
        summary = SessionSummarizer(AgentLLM("summarizer")).summarize(
            session,
            body.raw_notes,
            tone=body.tone,
            include_player_view=body.include_player_view,
            include_dm_view=body.include_dm_view,
            canon_context=canon,
            warnings=warnings,
        )
        stored = {**summary.model_dump(), "raw_notes": body.raw_notes, "tone": body.tone}
        with transaction(conn):
            session = session_store.save_summary(conn, session_id, stored)
        return {
            "summary": session["summary"],
            "summary_generated_at": session["summary_generated_at"],
            "warnings": warnings,
        }
    except PrepError as e:
        raise http_error(e) from e
    finally:
        conn.close()
