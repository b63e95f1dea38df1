"""Outline beats -> scenes, upserted by originating beat id.

A beat that already has a scene keeps it (data untouched); beats without one get a new
scene. Final order: beat-backed scenes in beat order, then scenes whose beat is gone,
in their previous relative order.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any

from backend.app.constants import SCENE_DEFAULT_DURATION, SCENE_DEFAULT_MOOD, SCENE_TITLE_FALLBACK
from backend.app.core import scene_store
from backend.app.core.pipeline_state import require_convertible
from backend.app.core.session_store import session_beats
from shared.schemas import Beat, SceneData

logger = logging.getLogger(__name__)


@dataclass
class ConversionResult:
    scenes_created: int
    scenes_updated: int
    orphaned_scene_ids: list[str] = field(default_factory=list)
    scenes: list[dict[str, Any]] = field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        return {
            "scenesCreated": self.scenes_created,
            "scenesUpdated": self.scenes_updated,
            "orphanedSceneIds": self.orphaned_scene_ids,
            "scenes": self.scenes,
        }


def scene_title_for(beat: Beat, position: int) -> str:
    return (beat.title or "").strip() or SCENE_TITLE_FALLBACK.format(n=position + 1)


def scene_data_for(beat: Beat) -> SceneData:
    """Default scene body for a freshly converted beat."""
    duration = f"{beat.duration} min" if beat.duration else SCENE_DEFAULT_DURATION
    return SceneData(estimated_duration=duration, mood=SCENE_DEFAULT_MOOD)


def convert_outline_to_scenes(conn: sqlite3.Connection, session: dict[str, Any]) -> ConversionResult:
    """Create or match one scene per beat. Caller owns the transaction."""
    require_convertible(session)
    session_id = session["id"]
    beats = session_beats(session)
    existing = scene_store.list_scenes(conn, session_id)

    by_beat: dict[str, dict[str, Any]] = {}
    for scene in existing:
        beat_id = scene.get("beat_id")
        if beat_id and beat_id not in by_beat:
            by_beat[beat_id] = scene

    ordered_ids: list[str] = []
    created = 0
    updated = 0
    temp_order = scene_store.next_index_order(conn, session_id)
    for position, beat in enumerate(beats):
        match = by_beat.pop(beat.id, None)
        if match is not None:
            if not (match.get("title") or "").strip():
                scene_store.patch_scene(conn, match["id"], title=scene_title_for(beat, position))
            ordered_ids.append(match["id"])
            updated += 1
            continue
        new_id = scene_store.insert_scene(
            conn,
            session_id,
            index_order=temp_order,
            title=scene_title_for(beat, position),
            data=scene_data_for(beat),
            beat_id=beat.id,
        )
        temp_order += 1
        ordered_ids.append(new_id)
        created += 1

    matched = set(ordered_ids)
    orphans = [s["id"] for s in existing if s["id"] not in matched]
    scene_store.apply_order(conn, session_id, ordered_ids + orphans)

    logger.info(
        "Converted session %s: %d created, %d matched, %d orphaned",
        session_id, created, updated, len(orphans),
    )
    return ConversionResult(
        scenes_created=created,
        scenes_updated=updated,
        orphaned_scene_ids=orphans,
        scenes=scene_store.list_scenes(conn, session_id),
    )
