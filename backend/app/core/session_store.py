"""Session records: create, load, list, partial update, delete, outline/beat/summary persistence."""
from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from pydantic import ValidationError

from backend.app.config import ENFORCE_STATUS_TRANSITIONS
from backend.app.constants import TARGET_DURATION_DEFAULT, TARGET_DURATION_MAX, TARGET_DURATION_MIN
from backend.app.core.campaign_store import require_campaign
from backend.app.core.errors import NotFoundError, PrepValidationError
from backend.app.core.pipeline_state import SESSION_STATUSES, check_status_transition
from shared.beats import beats_to_wire, coerce_beats
from shared.schemas import Beat, Outline, PartyInfo

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS: tuple[str, ...] = (
    "title",
    "premise",
    "session_date",
    "party_info",
    "target_duration",
    "status",
    "outline",
    "notes",
)

_SELECT = (
    "SELECT id, campaign_id, title, premise, session_date, party_info_json, target_duration, status, "
    "outline_json, notes, summary_json, summary_generated_at, created_at, updated_at FROM sessions"
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _loads(raw: str | None, default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return default


def _row_to_session(row: sqlite3.Row) -> dict[str, Any]:
    d = dict(row)
    d["party_info"] = _loads(d.pop("party_info_json"), {"level": 1, "size": 4})
    d["outline"] = _loads(d.pop("outline_json"), None)
    d["summary"] = _loads(d.pop("summary_json"), None)
    return d


def _validate_title(title: Any) -> str:
    title = str(title or "").strip()
    if not title:
        raise PrepValidationError("Session title is required")
    return title


def _validate_party(party_info: Any) -> dict[str, int]:
    try:
        return PartyInfo.model_validate(party_info or {}).model_dump()
    except ValidationError as e:
        raise PrepValidationError(
            "Invalid party info (level 1-20, size 1-10)",
            {"errors": e.errors(include_url=False, include_context=False)},
        ) from e


def _validate_target(target: Any) -> int:
    try:
        minutes = int(target)
    except (TypeError, ValueError) as e:
        raise PrepValidationError("target_duration must be an integer") from e
    if not TARGET_DURATION_MIN <= minutes <= TARGET_DURATION_MAX:
        raise PrepValidationError(
            f"target_duration must be between {TARGET_DURATION_MIN} and {TARGET_DURATION_MAX} minutes",
            {"target_duration": minutes},
        )
    return minutes


def normalize_outline(outline: Outline | dict[str, Any] | None) -> dict[str, Any] | None:
    """Validate an outline and give every beat a stable id."""
    if outline is None:
        return None
    try:
        raw = outline.model_dump() if isinstance(outline, Outline) else dict(outline)
        beats = coerce_beats(raw.get("beats") or [])
        validated = Outline(title=raw.get("title"), goals=list(raw.get("goals") or []), beats=beats)
    except ValidationError as e:
        raise PrepValidationError(
            "Invalid outline", {"errors": e.errors(include_url=False, include_context=False)}
        ) from e
    return validated.model_dump()


def create_session(
    conn: sqlite3.Connection,
    campaign_id: str,
    title: str,
    premise: str | None = None,
    session_date: str | None = None,
    party_info: dict[str, Any] | None = None,
    target_duration: int = TARGET_DURATION_DEFAULT,
    outline: dict[str, Any] | None = None,
    notes: str | None = None,
) -> dict[str, Any]:
    """Create a session. Every new session starts in ``draft``; status moves go through :func:`update_session`."""
    require_campaign(conn, campaign_id)
    title = _validate_title(title)
    party = _validate_party(party_info)
    minutes = _validate_target(target_duration)
    outline_dict = normalize_outline(outline)
    session_id = str(uuid.uuid4())
    now = _now()
    conn.execute(
        """INSERT INTO sessions (id, campaign_id, title, premise, session_date, party_info_json, target_duration,
               status, outline_json, notes, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            session_id,
            campaign_id,
            title,
            premise,
            session_date,
            json.dumps(party),
            minutes,
            "draft",
            json.dumps(outline_dict) if outline_dict is not None else None,
            notes,
            now,
            now,
        ),
    )
    logger.info("Created session %s in campaign %s", session_id, campaign_id)
    return get_session(conn, session_id)


def load_session(conn: sqlite3.Connection, session_id: str) -> dict[str, Any] | None:
    row = conn.execute(f"{_SELECT} WHERE id = ?", (session_id,)).fetchone()
    return _row_to_session(row) if row else None


def get_session(conn: sqlite3.Connection, session_id: str) -> dict[str, Any]:
    session = load_session(conn, session_id)
    if session is None:
        raise NotFoundError("Session not found", {"session_id": session_id})
    return session


def list_sessions(conn: sqlite3.Connection, campaign_id: str) -> list[dict[str, Any]]:
    """Sessions for a campaign: latest session date first (undated last), then newest created."""
    rows = conn.execute(
        f"{_SELECT} WHERE campaign_id = ? ORDER BY session_date IS NULL, session_date DESC, created_at DESC",
        (campaign_id,),
    ).fetchall()
    return [_row_to_session(r) for r in rows]


def count_scenes(conn: sqlite3.Connection, session_id: str) -> int:
    row = conn.execute("SELECT COUNT(*) AS n FROM scenes WHERE session_id = ?", (session_id,)).fetchone()
    return int(row["n"])


def update_session(conn: sqlite3.Connection, session_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    """Partial update: only the supplied fields change. At least one updatable field is required."""
    session = get_session(conn, session_id)
    updates = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
    if not updates:
        raise PrepValidationError("No valid fields to update")

    columns: dict[str, Any] = {}
    if "title" in updates:
        columns["title"] = _validate_title(updates["title"])
    if "premise" in updates:
        columns["premise"] = updates["premise"]
    if "session_date" in updates:
        columns["session_date"] = updates["session_date"]
    if "party_info" in updates:
        columns["party_info_json"] = json.dumps(_validate_party(updates["party_info"]))
    if "target_duration" in updates:
        columns["target_duration"] = _validate_target(updates["target_duration"])
    if "status" in updates:
        target = updates["status"]
        if ENFORCE_STATUS_TRANSITIONS:
            check_status_transition(session["status"], target, count_scenes(conn, session_id))
        elif target not in SESSION_STATUSES:
            raise PrepValidationError(f"status must be one of {', '.join(SESSION_STATUSES)}")
        columns["status"] = target
    if "outline" in updates:
        outline_dict = normalize_outline(updates["outline"])
        columns["outline_json"] = json.dumps(outline_dict) if outline_dict is not None else None
    if "notes" in updates:
        columns["notes"] = updates["notes"]

    columns["updated_at"] = _now()
    assignments = ", ".join(f"{col} = ?" for col in columns)
    conn.execute(
        f"UPDATE sessions SET {assignments} WHERE id = ?",
        (*columns.values(), session_id),
    )
    return get_session(conn, session_id)


def delete_session(conn: sqlite3.Connection, session_id: str) -> None:
    """Delete a session; its scenes go with it."""
    get_session(conn, session_id)
    conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
    logger.info("Deleted session %s", session_id)


def save_outline(conn: sqlite3.Connection, session_id: str, outline: Outline | dict[str, Any]) -> dict[str, Any]:
    """Replace the stored outline wholesale."""
    return update_session(conn, session_id, {"outline": outline})


def session_beats(session: dict[str, Any]) -> list[Beat]:
    outline = session.get("outline") or {}
    return coerce_beats(outline.get("beats") or [])


def save_beats(conn: sqlite3.Connection, session_id: str, beats: Iterable[Beat | dict[str, Any]]) -> dict[str, Any]:
    """Persist the full beat list, keeping the outline's title and goals."""
    session = get_session(conn, session_id)
    outline = dict(session.get("outline") or {"title": None, "goals": []})
    outline["beats"] = beats_to_wire(coerce_beats(beats))
    return update_session(conn, session_id, {"outline": outline})


def save_summary(conn: sqlite3.Connection, session_id: str, summary: dict[str, Any]) -> dict[str, Any]:
    get_session(conn, session_id)
    now = _now()
    conn.execute(
        "UPDATE sessions SET summary_json = ?, summary_generated_at = ?, updated_at = ? WHERE id = ?",
        (json.dumps(summary), now, now, session_id),
    )
    return get_session(conn, session_id)
