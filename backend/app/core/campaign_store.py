"""Campaigns and their canon sources: codex (one per campaign) and memory entries."""
from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any

from backend.app.core.errors import NotFoundError, PrepValidationError

logger = logging.getLogger(__name__)

FLAIR_LEVELS: tuple[str, ...] = ("minimal", "balanced", "rich", "verbose")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_campaign(conn: sqlite3.Connection, name: str) -> dict[str, Any]:
    name = (name or "").strip()
    if not name:
        raise PrepValidationError("Campaign name is required")
    campaign_id = str(uuid.uuid4())
    now = _now()
    conn.execute(
        "INSERT INTO campaigns (id, name, created_at, updated_at) VALUES (?, ?, ?, ?)",
        (campaign_id, name, now, now),
    )
    return {"id": campaign_id, "name": name, "created_at": now, "updated_at": now}


def load_campaign(conn: sqlite3.Connection, campaign_id: str) -> dict[str, Any] | None:
    row = conn.execute(
        "SELECT id, name, created_at, updated_at FROM campaigns WHERE id = ?",
        (campaign_id,),
    ).fetchone()
    return dict(row) if row else None


def require_campaign(conn: sqlite3.Connection, campaign_id: str) -> dict[str, Any]:
    camp = load_campaign(conn, campaign_id)
    if camp is None:
        raise NotFoundError("Campaign not found", {"campaign_id": campaign_id})
    return camp


def delete_campaign(conn: sqlite3.Connection, campaign_id: str) -> None:
    require_campaign(conn, campaign_id)
    conn.execute("DELETE FROM campaigns WHERE id = ?", (campaign_id,))


# ---------------------------------------------------------------------------
# Codex
# ---------------------------------------------------------------------------


def load_codex(conn: sqlite3.Connection, campaign_id: str) -> dict[str, Any] | None:
    row = conn.execute(
        "SELECT codex_json FROM campaign_codex WHERE campaign_id = ?",
        (campaign_id,),
    ).fetchone()
    if not row:
        return None
    try:
        return json.loads(row["codex_json"] or "{}")
    except json.JSONDecodeError:
        logger.warning("Corrupt codex_json for campaign %s; treating as empty", campaign_id)
        return {}


def upsert_codex(conn: sqlite3.Connection, campaign_id: str, codex: dict[str, Any]) -> dict[str, Any]:
    """Replace the campaign codex wholesale."""
    require_campaign(conn, campaign_id)
    flair = codex.get("flair_level")
    if flair is not None and flair not in FLAIR_LEVELS:
        raise PrepValidationError(
            f"flair_level must be one of {', '.join(FLAIR_LEVELS)}",
            {"flair_level": flair},
        )
    conn.execute(
        """INSERT INTO campaign_codex (campaign_id, codex_json, updated_at) VALUES (?, ?, ?)
           ON CONFLICT(campaign_id) DO UPDATE SET codex_json = excluded.codex_json, updated_at = excluded.updated_at""",
        (campaign_id, json.dumps(codex), _now()),
    )
    return codex


# ---------------------------------------------------------------------------
# Memories
# ---------------------------------------------------------------------------


def _row_to_memory(row: sqlite3.Row) -> dict[str, Any]:
    d = dict(row)
    try:
        d["tags"] = json.loads(d.pop("tags_json") or "[]")
    except json.JSONDecodeError:
        d["tags"] = []
    return d


def create_memory(
    conn: sqlite3.Connection,
    campaign_id: str,
    title: str,
    content: str = "",
    type: str = "lore",
    tags: list[str] | None = None,
) -> dict[str, Any]:
    require_campaign(conn, campaign_id)
    title = (title or "").strip()
    if not title:
        raise PrepValidationError("Memory title is required")
    memory_id = str(uuid.uuid4())
    now = _now()
    conn.execute(
        """INSERT INTO memory_entries (id, campaign_id, title, content, type, tags_json, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (memory_id, campaign_id, title, content or "", type or "lore", json.dumps(tags or []), now),
    )
    return {
        "id": memory_id,
        "campaign_id": campaign_id,
        "title": title,
        "content": content or "",
        "type": type or "lore",
        "tags": tags or [],
        "created_at": now,
    }


def list_memories(
    conn: sqlite3.Connection,
    campaign_id: str,
    limit: int = 50,
    memory_types: list[str] | None = None,
) -> list[dict[str, Any]]:
    """Most recent memory entries for a campaign (newest first), optionally filtered by type."""
    sql = "SELECT id, campaign_id, title, content, type, tags_json, created_at FROM memory_entries WHERE campaign_id = ?"
    params: list[Any] = [campaign_id]
    if memory_types:
        sql += f" AND type IN ({','.join('?' for _ in memory_types)})"
        params.extend(memory_types)
    sql += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
    params.append(limit)
    return [_row_to_memory(r) for r in conn.execute(sql, params).fetchall()]


def get_memories_by_ids(conn: sqlite3.Connection, memory_ids: list[str]) -> list[dict[str, Any]]:
    """Resolve weak memory references; ids that no longer exist are skipped. Input order is kept."""
    if not memory_ids:
        return []
    placeholders = ",".join("?" for _ in memory_ids)
    rows = conn.execute(
        f"SELECT id, campaign_id, title, content, type, tags_json, created_at FROM memory_entries WHERE id IN ({placeholders})",
        list(memory_ids),
    ).fetchall()
    by_id = {r["id"]: _row_to_memory(r) for r in rows}
    return [by_id[m] for m in dict.fromkeys(memory_ids) if m in by_id]


def delete_memory(conn: sqlite3.Connection, memory_id: str) -> None:
    """Delete a memory entry. Scenes linking it are not touched."""
    cur = conn.execute("DELETE FROM memory_entries WHERE id = ?", (memory_id,))
    if cur.rowcount == 0:
        raise NotFoundError("Memory not found", {"memory_id": memory_id})
