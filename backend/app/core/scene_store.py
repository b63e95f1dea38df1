"""Scene store: ordered scenes per session, merge-style patches, atomic full-list reorder."""
from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Sequence

from pydantic import ValidationError

from backend.app.constants import CANON_PASS_THRESHOLD
from backend.app.core.errors import NotFoundError, PrepValidationError
from shared.ordering import permutation_problems
from shared.schemas import SceneData, ScenePatchData

logger = logging.getLogger(__name__)

_SELECT = (
    "SELECT id, session_id, beat_id, index_order, title, data_json, canon_checked, "
    "last_canon_score, last_canon_checked_at, created_at, updated_at FROM scenes"
)

_UNSET: Any = object()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _load_data(raw: str | None) -> SceneData:
    try:
        return SceneData.model_validate(json.loads(raw or "{}"))
    except (json.JSONDecodeError, ValidationError):
        logger.warning("Unreadable scene data_json; using defaults")
        return SceneData()


def _row_to_scene(row: sqlite3.Row) -> dict[str, Any]:
    d = dict(row)
    d["data"] = _load_data(d.pop("data_json")).to_wire()
    d["canon_checked"] = bool(d["canon_checked"])
    return d


def list_scenes(conn: sqlite3.Connection, session_id: str) -> list[dict[str, Any]]:
    rows = conn.execute(
        f"{_SELECT} WHERE session_id = ? ORDER BY index_order ASC",
        (session_id,),
    ).fetchall()
    return [_row_to_scene(r) for r in rows]


def load_scene(conn: sqlite3.Connection, scene_id: str) -> dict[str, Any] | None:
    row = conn.execute(f"{_SELECT} WHERE id = ?", (scene_id,)).fetchone()
    return _row_to_scene(row) if row else None


def get_scene(conn: sqlite3.Connection, scene_id: str) -> dict[str, Any]:
    scene = load_scene(conn, scene_id)
    if scene is None:
        raise NotFoundError("Scene not found", {"scene_id": scene_id})
    return scene


def scene_data(scene: dict[str, Any]) -> SceneData:
    return SceneData.model_validate(scene.get("data") or {})


def next_index_order(conn: sqlite3.Connection, session_id: str) -> int:
    row = conn.execute(
        "SELECT COALESCE(MAX(index_order), -1) + 1 AS n FROM scenes WHERE session_id = ?",
        (session_id,),
    ).fetchone()
    return int(row["n"])


def insert_scene(
    conn: sqlite3.Connection,
    session_id: str,
    index_order: int,
    title: str | None,
    data: SceneData | None = None,
    beat_id: str | None = None,
) -> str:
    scene_id = str(uuid.uuid4())
    now = _now()
    conn.execute(
        """INSERT INTO scenes (id, session_id, beat_id, index_order, title, data_json, canon_checked, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, 0, ?, ?)""",
        (scene_id, session_id, beat_id, index_order, title, json.dumps((data or SceneData()).to_wire()), now, now),
    )
    return scene_id


def merge_scene_data(existing: SceneData, patch: ScenePatchData) -> SceneData:
    """Apply only the fields set on ``patch``; everything else is preserved."""
    updates = patch.model_dump(exclude_unset=True)
    updates = {k: v for k, v in updates.items() if v is not None}
    return existing.model_copy(update=updates)


def patch_scene(
    conn: sqlite3.Connection,
    scene_id: str,
    title: Any = _UNSET,
    data: ScenePatchData | dict[str, Any] | None = None,
    canon_checked: bool | None = None,
) -> dict[str, Any]:
    """Patch title and/or data fields. ``data`` merges into the stored object rather than replacing it."""
    scene = get_scene(conn, scene_id)
    columns: dict[str, Any] = {}
    if title is not _UNSET:
        columns["title"] = title
    if data is not None:
        try:
            patch = data if isinstance(data, ScenePatchData) else ScenePatchData.model_validate(data)
        except ValidationError as e:
            raise PrepValidationError(
                "Invalid scene data", {"errors": e.errors(include_url=False, include_context=False)}
            ) from e
        merged = merge_scene_data(scene_data(scene), patch)
        columns["data_json"] = json.dumps(merged.to_wire())
    if canon_checked is not None:
        columns["canon_checked"] = 1 if canon_checked else 0
    if not columns:
        raise PrepValidationError("No valid fields to update")
    columns["updated_at"] = _now()
    assignments = ", ".join(f"{col} = ?" for col in columns)
    conn.execute(f"UPDATE scenes SET {assignments} WHERE id = ?", (*columns.values(), scene_id))
    return get_scene(conn, scene_id)


def replace_scene_data(conn: sqlite3.Connection, scene_id: str, data: SceneData) -> dict[str, Any]:
    conn.execute(
        "UPDATE scenes SET data_json = ?, updated_at = ? WHERE id = ?",
        (json.dumps(data.to_wire()), _now(), scene_id),
    )
    return get_scene(conn, scene_id)


def delete_scene(conn: sqlite3.Connection, scene_id: str) -> None:
    cur = conn.execute("DELETE FROM scenes WHERE id = ?", (scene_id,))
    if cur.rowcount == 0:
        raise NotFoundError("Scene not found", {"scene_id": scene_id})


def apply_order(conn: sqlite3.Connection, session_id: str, ordered_ids: Sequence[str]) -> None:
    """Assign index_order 0..N-1 following ``ordered_ids``.

    Two passes through negative values keep UNIQUE(session_id, index_order) satisfied mid-update.
    Caller owns the transaction.
    """
    now = _now()
    for i, scene_id in enumerate(ordered_ids):
        conn.execute(
            "UPDATE scenes SET index_order = ? WHERE id = ? AND session_id = ?",
            (-(i + 1), scene_id, session_id),
        )
    for i, scene_id in enumerate(ordered_ids):
        conn.execute(
            "UPDATE scenes SET index_order = ?, updated_at = ? WHERE id = ? AND session_id = ?",
            (i, now, scene_id, session_id),
        )


def reorder_scenes(conn: sqlite3.Connection, session_id: str, scene_ids: Sequence[str]) -> list[dict[str, Any]]:
    """Replace the whole ordering of a session's scenes.

    ``scene_ids`` must be exactly a permutation of the session's scene ids; otherwise nothing changes.
    """
    current = [s["id"] for s in list_scenes(conn, session_id)]
    problems = permutation_problems(current, list(scene_ids))
    if problems:
        raise PrepValidationError(
            "sceneIds must list every scene of the session exactly once",
            {"problems": problems},
        )
    apply_order(conn, session_id, scene_ids)
    logger.info("Reordered %d scenes in session %s", len(scene_ids), session_id)
    return list_scenes(conn, session_id)


def record_canon_check(conn: sqlite3.Connection, scene_id: str, score: float) -> dict[str, Any]:
    """Store the latest canon score on a scene; ``canon_checked`` is true when the score passes."""
    score = max(0.0, min(1.0, float(score)))
    now = _now()
    cur = conn.execute(
        "UPDATE scenes SET last_canon_score = ?, last_canon_checked_at = ?, canon_checked = ?, updated_at = ? WHERE id = ?",
        (score, now, 1 if score > CANON_PASS_THRESHOLD else 0, now, scene_id),
    )
    if cur.rowcount == 0:
        raise NotFoundError("Scene not found", {"scene_id": scene_id})
    return get_scene(conn, scene_id)
